from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from common.coercion import optional_int, same_address, to_non_negative_int
from common.errors import ErrorKind


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class InitState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class StatusPhase(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class RevealPhase(str, Enum):
    IDLE = "idle"
    CHECKING_ON_CHAIN = "checking_on_chain"
    ALREADY_VERIFIED = "already_verified"
    REQUESTING_HANDLE = "requesting_handle"
    PRODUCING_PROOF = "producing_proof"
    SUBMITTING_PROOF = "submitting_proof"
    VERIFIED = "verified"
    FAILED = "failed"


class Session(BaseModel):
    connection_state: ConnectionState = ConnectionState.DISCONNECTED
    init_state: InitState = InitState.UNINITIALIZED
    address: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self.connection_state is ConnectionState.CONNECTED

    @property
    def ready(self) -> bool:
        return self.connected and self.init_state is InitState.READY


class RecordSnapshot(BaseModel):
    """
    A record as the ledger read client returns it.

    Numeric fields are left raw (ints, numeric strings, big-number wrappers or
    garbage); `Record.from_snapshot` performs the coercion.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = ""
    description: str = ""
    public_participants: Any = 0
    public_budget: Any = 0
    timestamp: Any = 0
    creator: str = ""
    is_verified: bool = False
    revealed_value: Any = None


class Record(BaseModel):
    id: str
    name: str = ""
    description: str = ""
    participant_count: int = Field(default=0, ge=0)
    budget: int = Field(default=0, ge=0, description="Public mirror of the encrypted budget")
    created_at: int = Field(default=0, ge=0, description="Unix seconds")
    creator: str = ""
    is_verified: bool = False
    revealed_value: Optional[int] = None

    @classmethod
    def from_snapshot(cls, record_id: str, snap: RecordSnapshot) -> "Record":
        return cls(
            id=record_id,
            name=snap.name or "",
            description=snap.description or "",
            participant_count=to_non_negative_int(snap.public_participants),
            budget=to_non_negative_int(snap.public_budget),
            created_at=to_non_negative_int(snap.timestamp),
            creator=snap.creator or "",
            is_verified=bool(snap.is_verified),
            revealed_value=optional_int(snap.revealed_value) if snap.is_verified else None,
        )


class ReadModelStats(BaseModel):
    total_records: int = 0
    total_participants: int = 0
    total_budget: int = 0
    verified_records: int = 0
    owned_records: int = 0


class ReadModel(BaseModel):
    """All known records plus the subset created by the current address.

    Always rebuilt wholesale via `build`; never patched in place.
    """

    model_config = ConfigDict(frozen=True)

    records: Tuple[Record, ...] = ()
    owned: Tuple[Record, ...] = ()

    @classmethod
    def empty(cls) -> "ReadModel":
        return cls()

    @classmethod
    def build(cls, records: List[Record], owner: Optional[str]) -> "ReadModel":
        seen: set[str] = set()
        unique: List[Record] = []
        for rec in records:
            if rec.id in seen:
                continue
            seen.add(rec.id)
            unique.append(rec)
        owned = [r for r in unique if same_address(r.creator, owner)]
        return cls(records=tuple(unique), owned=tuple(owned))

    def get(self, record_id: str) -> Optional[Record]:
        for rec in self.records:
            if rec.id == record_id:
                return rec
        return None

    def ids(self) -> List[str]:
        return [r.id for r in self.records]

    def stats(self) -> ReadModelStats:
        return ReadModelStats(
            total_records=len(self.records),
            total_participants=sum(r.participant_count for r in self.records),
            total_budget=sum(r.budget for r in self.records),
            verified_records=sum(1 for r in self.records if r.is_verified),
            owned_records=len(self.owned),
        )


class TransactionStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    visible: bool = False
    phase: StatusPhase = StatusPhase.PENDING
    message: str = ""
    token: int = 0

    @classmethod
    def hidden(cls, token: int = 0) -> "TransactionStatus":
        return cls(visible=False, phase=StatusPhase.PENDING, message="", token=token)


class EncryptionArtifact(BaseModel):
    model_config = ConfigDict(frozen=True)

    ciphertext: Any
    proof: Any


class DecryptionResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    clear_values: Dict[Any, Any] = Field(default_factory=dict)
    abi_encoded_clear_values: Optional[str] = None
    decryption_proof: Optional[str] = None


class Receipt(BaseModel):
    tx_hash: str = ""
    status: int = 1
    block_number: Optional[int] = None


class RecordForm(BaseModel):
    """Raw creation-form input; numbers arrive as strings from the form.

    Accepts both `participant_count` and the form's `participantCount` key.
    """

    name: str = ""
    description: str = ""
    participant_count: Any = Field(
        default="", validation_alias=AliasChoices("participant_count", "participantCount")
    )
    budget: Any = ""

    @field_validator("name", "description", mode="before")
    @classmethod
    def _text_or_empty(cls, value: Any) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)


class Outcome(BaseModel):
    ok: bool
    value: Optional[int] = None
    error: Optional[ErrorKind] = None
    message: str = ""
    record_id: Optional[str] = None

    @classmethod
    def success(cls, message: str = "", *, value: Optional[int] = None, record_id: Optional[str] = None) -> "Outcome":
        return cls(ok=True, value=value, message=message, record_id=record_id)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, *, record_id: Optional[str] = None) -> "Outcome":
        return cls(ok=False, error=kind, message=message, record_id=record_id)


class AppState(BaseModel):
    """
    The single owned application state passed by reference into each component.

    Fields
    - session: connection and initialization state
    - read_model: last synchronized view of the ledger records
    - status: the transient notification singleton
    - context_address: address of the confidential contract used for encryption
    - loading: True until the first connect-time bootstrap finishes
    - form_open / form_draft: creation-form state
    """

    session: Session = Field(default_factory=Session)
    read_model: ReadModel = Field(default_factory=ReadModel.empty)
    status: TransactionStatus = Field(default_factory=TransactionStatus.hidden)
    context_address: str = ""
    loading: bool = True
    form_open: bool = False
    form_draft: RecordForm = Field(default_factory=RecordForm)


__all__ = [
    "AppState",
    "ConnectionState",
    "DecryptionResult",
    "EncryptionArtifact",
    "InitState",
    "Outcome",
    "ReadModel",
    "ReadModelStats",
    "Receipt",
    "Record",
    "RecordForm",
    "RecordSnapshot",
    "RevealPhase",
    "Session",
    "StatusPhase",
    "TransactionStatus",
]
