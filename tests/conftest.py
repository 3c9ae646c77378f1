import asyncio
import os
import sys
from typing import Any, Dict, List, Optional, Sequence, Set

import pytest


def pytest_configure():
    # Ensure `src/` is importable as top-level for `common.*` imports
    root = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    src_path = os.path.join(root, "src")
    if src_path not in sys.path:
        sys.path.insert(0, src_path)


USER = "0xAbCdEf0000000000000000000000000000000001"
OTHER = "0x9999999999999999999999999999999999999999"
CONTRACT = "0xC0ffee0000000000000000000000000000000000"


class FakePendingTx:
    def __init__(self, ledger: "FakeLedger", record_id: str, snapshot: Any) -> None:
        self.tx_hash = f"0xtx-{record_id}"
        self._ledger = ledger
        self._record_id = record_id
        self._snapshot = snapshot

    async def await_confirmation(self):
        from state.models import Receipt

        self._ledger.calls.append(("await_confirmation", self._record_id))
        if self._ledger.fail_confirmation is not None:
            raise self._ledger.fail_confirmation
        self._ledger.add(self._record_id, self._snapshot)
        return Receipt(tx_hash=self.tx_hash)


class FakeLedger:
    """In-memory ledger implementing both reader and writer protocols."""

    def __init__(self) -> None:
        self.order: List[str] = []
        self.records: Dict[str, Any] = {}
        self.handles: Dict[str, str] = {}
        self.calls: List[tuple] = []
        self.extra_ids: List[str] = []
        self.fail_list: Optional[Exception] = None
        self.fail_get: Set[str] = set()
        self.fail_create: Optional[Exception] = None
        self.fail_confirmation: Optional[Exception] = None
        self.fail_verify: Optional[Exception] = None
        self.available = True
        self.address = CONTRACT
        self.list_gate: Optional[asyncio.Event] = None
        self.list_count = 0
        self.creator = USER
        self.clock = 1_700_000_000

    def add(self, record_id: str, snapshot: Any) -> None:
        if record_id not in self.records:
            self.order.append(record_id)
        self.records[record_id] = snapshot
        self.handles.setdefault(record_id, f"0xhandle-{record_id}")

    # reader
    async def list_record_ids(self) -> Sequence[str]:
        self.list_count += 1
        self.calls.append(("list_record_ids",))
        if self.list_gate is not None:
            await self.list_gate.wait()
        if self.fail_list is not None:
            raise self.fail_list
        return list(self.order) + list(self.extra_ids)

    async def get_record(self, record_id: str):
        self.calls.append(("get_record", record_id))
        if record_id in self.fail_get or record_id not in self.records:
            raise RuntimeError(f"cannot load {record_id}")
        return self.records[record_id]

    async def get_encrypted_handle(self, record_id: str) -> str:
        self.calls.append(("get_encrypted_handle", record_id))
        return self.handles[record_id]

    async def check_availability(self) -> bool:
        self.calls.append(("check_availability",))
        if isinstance(self.available, Exception):
            raise self.available
        return self.available

    async def get_address(self) -> str:
        return self.address

    # writer
    async def create_record(self, record_id, name, ciphertext, proof, participants, budget, description):
        from state.models import RecordSnapshot

        self.calls.append(("create_record", record_id, name, ciphertext, proof, participants, budget, description))
        if self.fail_create is not None:
            raise self.fail_create
        snap = RecordSnapshot(
            name=name,
            description=description,
            public_participants=participants,
            public_budget=budget,
            timestamp=self.clock,
            creator=self.creator,
            is_verified=False,
            revealed_value=0,
        )
        return FakePendingTx(self, record_id, snap)

    async def submit_decryption_proof(self, record_id: str, clear_values_encoding: str, proof: str):
        from state.models import Receipt

        self.calls.append(("submit_decryption_proof", record_id, clear_values_encoding, proof))
        if self.fail_verify is not None:
            raise self.fail_verify
        snap = self.records[record_id]
        self.records[record_id] = snap.model_copy(
            update={"is_verified": True, "revealed_value": int(clear_values_encoding)}
        )
        return Receipt(tx_hash=f"0xverify-{record_id}")

    def writes(self) -> List[tuple]:
        return [c for c in self.calls if c[0] in ("create_record", "submit_decryption_proof")]


class FakeCapability:
    def __init__(self) -> None:
        self.init_calls = 0
        self.init_error: Optional[Exception] = None
        self.init_gate: Optional[asyncio.Event] = None
        self.encrypt_calls: List[tuple] = []
        self.encrypt_error: Optional[Exception] = None
        self.proof_calls: List[tuple] = []
        self.proof_error: Optional[Exception] = None
        self.clear_values: Dict[str, int] = {}
        self.before_submit = None

    async def initialize(self) -> None:
        self.init_calls += 1
        if self.init_gate is not None:
            await self.init_gate.wait()
        if self.init_error is not None:
            raise self.init_error

    async def encrypt(self, context_address: str, user_address: str, value: int):
        from state.models import EncryptionArtifact

        self.encrypt_calls.append((context_address, user_address, value))
        if self.encrypt_error is not None:
            raise self.encrypt_error
        return EncryptionArtifact(ciphertext=f"0xct{value}", proof="0xinputproof")

    async def request_decryption_proof(self, handles, context_address, submit):
        from state.models import DecryptionResult

        self.proof_calls.append((list(handles), context_address))
        if self.proof_error is not None:
            raise self.proof_error
        values = {h: self.clear_values.get(h, 0) for h in handles}
        if self.before_submit is not None:
            await self.before_submit()
        encoding = str(values[handles[0]])
        await submit(encoding, "0xdecryptionproof")
        return DecryptionResult(clear_values=values, abi_encoded_clear_values=encoding, decryption_proof="0xdecryptionproof")


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def capability() -> FakeCapability:
    return FakeCapability()


@pytest.fixture
def wallet():
    from common.interfaces import StaticSession

    return StaticSession(USER, connected=True)


@pytest.fixture
def fast_settings():
    from common.config import Settings, StatusSettings

    return Settings(status=StatusSettings(success_dismiss_ms=20, error_dismiss_ms=30))


@pytest.fixture
def make_app(ledger, capability, wallet, fast_settings):
    from app.runtime import GiftExchangeApp

    def _make(**kwargs):
        return GiftExchangeApp(wallet, ledger, ledger, capability, settings=fast_settings, **kwargs)

    return _make


def snapshot(
    name: str = "Office party",
    *,
    participants: Any = 5,
    budget: Any = 20,
    creator: str = OTHER,
    verified: bool = False,
    revealed: Any = 0,
    timestamp: Any = 1_700_000_000,
    description: str = "",
):
    from state.models import RecordSnapshot

    return RecordSnapshot(
        name=name,
        description=description,
        public_participants=participants,
        public_budget=budget,
        timestamp=timestamp,
        creator=creator,
        is_verified=verified,
        revealed_value=revealed,
    )
