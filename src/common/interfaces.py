"""
Collaborator contracts consumed by the orchestration core.

The core depends only on these protocols. `common.ledger` and
`common.relayer` provide HTTP-backed implementations; tests provide fakes.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Sequence, runtime_checkable

from state.models import DecryptionResult, EncryptionArtifact, Receipt, RecordSnapshot


# (abi_encoded_clear_values, decryption_proof) -> awaitable receipt
SubmitProofCallback = Callable[[str, str], Awaitable[Any]]


@runtime_checkable
class LedgerReader(Protocol):
    async def list_record_ids(self) -> Sequence[str]: ...

    async def get_record(self, record_id: str) -> RecordSnapshot: ...

    async def get_encrypted_handle(self, record_id: str) -> str: ...

    async def check_availability(self) -> bool: ...

    async def get_address(self) -> str: ...


@runtime_checkable
class PendingTransaction(Protocol):
    tx_hash: str

    async def await_confirmation(self) -> Receipt: ...


@runtime_checkable
class LedgerWriter(Protocol):
    async def create_record(
        self,
        record_id: str,
        name: str,
        ciphertext: Any,
        proof: Any,
        participants: int,
        budget: int,
        description: str,
    ) -> PendingTransaction: ...

    async def submit_decryption_proof(
        self, record_id: str, clear_values_encoding: str, proof: str
    ) -> Receipt:
        """Raises `common.errors.AlreadyVerified` if the record is already verified."""
        ...


@runtime_checkable
class ConfidentialCapability(Protocol):
    async def initialize(self) -> None:
        """Raises `common.errors.InitializationError` on failure."""
        ...

    async def encrypt(self, context_address: str, user_address: str, value: int) -> EncryptionArtifact: ...

    async def request_decryption_proof(
        self,
        handles: Sequence[str],
        context_address: str,
        submit: SubmitProofCallback,
    ) -> DecryptionResult: ...


@runtime_checkable
class SessionSource(Protocol):
    """Wallet session, push-updated externally; the core only reads it."""

    @property
    def address(self) -> Optional[str]: ...

    @property
    def is_connected(self) -> bool: ...


class StaticSession:
    """Mutable in-process SessionSource, handy for embedding and tests."""

    def __init__(self, address: Optional[str] = None, *, connected: bool = False) -> None:
        self._address = address
        self._connected = connected

    @property
    def address(self) -> Optional[str]:
        return self._address

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self, address: str) -> None:
        self._address = address
        self._connected = True

    def disconnect(self) -> None:
        self._address = None
        self._connected = False


def clear_value_for(result: DecryptionResult, handle: str) -> Any:
    """Look up the clear value for `handle`, tolerating hex-case differences."""
    values: Mapping[Any, Any] = result.clear_values
    if handle in values:
        return values[handle]
    lowered = handle.lower() if isinstance(handle, str) else handle
    for k, v in values.items():
        if isinstance(k, str) and k.lower() == lowered:
            return v
    raise KeyError(handle)


__all__ = [
    "ConfidentialCapability",
    "LedgerReader",
    "LedgerWriter",
    "PendingTransaction",
    "SessionSource",
    "StaticSession",
    "SubmitProofCallback",
    "clear_value_for",
]
