from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    NOT_CONNECTED = "not_connected"
    INITIALIZATION = "initialization"
    SYNC_PARTIAL = "sync_partial"
    SYNC_FATAL = "sync_fatal"
    TRANSACTION_REJECTED = "transaction_rejected"
    SUBMISSION_FAILED = "submission_failed"
    DECRYPTION_FAILED = "decryption_failed"
    ALREADY_VERIFIED = "already_verified"


class GiftExchangeError(RuntimeError):
    """Base error for the orchestration core.

    Every subclass carries an `ErrorKind` so callers can classify a failure
    without inspecting message text.
    """

    kind: ErrorKind = ErrorKind.SUBMISSION_FAILED

    def __init__(self, message: str = "", *, detail: Optional[str] = None) -> None:
        super().__init__(message or self.__class__.__name__)
        self.detail = detail if detail is not None else message


class NotConnected(GiftExchangeError):
    """No wallet session (or no address) is available."""

    kind = ErrorKind.NOT_CONNECTED


class InitializationError(GiftExchangeError):
    """The confidential-computation subsystem failed to initialize."""

    kind = ErrorKind.INITIALIZATION


class SyncPartialFailure(GiftExchangeError):
    """A single record could not be fetched; logged and skipped."""

    kind = ErrorKind.SYNC_PARTIAL

    def __init__(self, record_id: str, message: str = "") -> None:
        super().__init__(message or f"Failed to load record {record_id}")
        self.record_id = record_id


class SyncFatalFailure(GiftExchangeError):
    """The identifier-set request failed; the read model is left untouched."""

    kind = ErrorKind.SYNC_FATAL


class TransactionRejected(GiftExchangeError):
    """The wallet owner declined to sign the transaction."""

    kind = ErrorKind.TRANSACTION_REJECTED


class SubmissionFailed(GiftExchangeError):
    kind = ErrorKind.SUBMISSION_FAILED


class DecryptionFailed(GiftExchangeError):
    kind = ErrorKind.DECRYPTION_FAILED


class AlreadyVerified(GiftExchangeError):
    """Raised by the ledger writer when a record was verified by someone else.

    Orchestrators treat this as success.
    """

    kind = ErrorKind.ALREADY_VERIFIED


__all__ = [
    "ErrorKind",
    "GiftExchangeError",
    "NotConnected",
    "InitializationError",
    "SyncPartialFailure",
    "SyncFatalFailure",
    "TransactionRejected",
    "SubmissionFailed",
    "DecryptionFailed",
    "AlreadyVerified",
]
