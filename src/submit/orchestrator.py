from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional, Union

from pydantic import ValidationError

from common.coercion import to_non_negative_int
from common.errors import ErrorKind, GiftExchangeError, NotConnected, SubmissionFailed, TransactionRejected
from common.interfaces import ConfidentialCapability, LedgerWriter
from common.logging_utils import get_logger
from notify.status import StatusNotifier
from session.controller import SessionController
from state.models import AppState, Outcome, RecordForm
from sync.synchronizer import RecordSynchronizer


logger = get_logger(__name__)

ID_PREFIX = "santa-"

NOT_CONNECTED_MESSAGE = "Please connect wallet first"
NOT_READY_MESSAGE = "Encryption system is not ready"
ENCRYPTING_MESSAGE = "Creating record with confidential encryption..."
CONFIRMING_MESSAGE = "Waiting for transaction confirmation..."
CREATED_MESSAGE = "Record created successfully!"
REJECTED_MESSAGE = "Transaction rejected by user"
FAILED_PREFIX = "Submission failed: "
INVALID_FORM_DETAIL = "invalid form input"


class MillisecondSequence:
    """Strictly increasing millisecond stamps; bumps by one on collision."""

    def __init__(self) -> None:
        self._last_ms = 0
        self._lock = threading.Lock()

    def next_after(self, ms: int) -> int:
        with self._lock:
            if ms <= self._last_ms:
                ms = self._last_ms + 1
            self._last_ms = ms
            return ms


_PROCESS_SEQUENCE = MillisecondSequence()


class RecordIdGenerator:
    """Timestamp-derived ids (`santa-<epoch ms>`) that never repeat within the process.

    Generators share one process-wide sequence unless given their own.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        prefix: str = ID_PREFIX,
        sequence: Optional[MillisecondSequence] = None,
    ) -> None:
        self._clock = clock
        self._prefix = prefix
        self._sequence = sequence or _PROCESS_SEQUENCE

    def next_id(self) -> str:
        ms = self._sequence.next_after(int(self._clock() * 1000))
        return f"{self._prefix}{ms}"


def _describe(exc: BaseException) -> str:
    if isinstance(exc, GiftExchangeError) and exc.detail:
        return str(exc.detail)
    return str(exc) or "Unknown error"


class SubmissionOrchestrator:
    """
    Creates a record: encrypt budget -> create on ledger -> await confirmation
    -> refresh read model -> close the creation form.

    Any failing step short-circuits the rest. The record only becomes visible
    through the refresh after confirmation.
    """

    def __init__(
        self,
        state: AppState,
        session: SessionController,
        capability: ConfidentialCapability,
        writer: LedgerWriter,
        synchronizer: RecordSynchronizer,
        notifier: StatusNotifier,
        *,
        ids: Optional[RecordIdGenerator] = None,
    ) -> None:
        self._state = state
        self._session = session
        self._capability = capability
        self._writer = writer
        self._sync = synchronizer
        self._notifier = notifier
        self._ids = ids or RecordIdGenerator()

    async def submit(self, form: Union[RecordForm, Dict[str, Any]]) -> Outcome:
        if not isinstance(form, RecordForm):
            try:
                form = RecordForm.model_validate(form)
            except ValidationError as exc:
                logger.warning("Rejected malformed form input: %s", exc)
                message = FAILED_PREFIX + INVALID_FORM_DETAIL
                self._notifier.error(message)
                return Outcome.failure(ErrorKind.SUBMISSION_FAILED, message)

        self._session.sync_connection()
        session = self._state.session
        if not session.connected or not session.address:
            self._notifier.error(NOT_CONNECTED_MESSAGE)
            return Outcome.failure(NotConnected.kind, NOT_CONNECTED_MESSAGE)
        if not await self._session.ensure_ready():
            self._notifier.error(NOT_READY_MESSAGE)
            return Outcome.failure(ErrorKind.INITIALIZATION, NOT_READY_MESSAGE)
        user_address = self._state.session.address or session.address

        self._notifier.pending(ENCRYPTING_MESSAGE)
        record_id = self._ids.next_id()
        budget = to_non_negative_int(form.budget)
        participants = to_non_negative_int(form.participant_count)

        try:
            artifact = await self._capability.encrypt(self._state.context_address, user_address, budget)
            logger.info("Encrypted budget for %s", record_id)

            pending = await self._writer.create_record(
                record_id,
                form.name,
                artifact.ciphertext,
                artifact.proof,
                participants,
                budget,
                form.description,
            )
            self._notifier.pending(CONFIRMING_MESSAGE)
            receipt = await pending.await_confirmation()
            logger.info("Record %s confirmed in tx %s", record_id, receipt.tx_hash or pending.tx_hash)
        except TransactionRejected:
            logger.info("Record %s: transaction rejected by user", record_id)
            self._notifier.error(REJECTED_MESSAGE)
            return Outcome.failure(ErrorKind.TRANSACTION_REJECTED, REJECTED_MESSAGE, record_id=record_id)
        except Exception as exc:
            failure = SubmissionFailed(FAILED_PREFIX + _describe(exc), detail=_describe(exc))
            logger.error("Record %s: %s", record_id, failure)
            self._notifier.error(str(failure))
            return Outcome.failure(failure.kind, str(failure), record_id=record_id)

        self._notifier.success(CREATED_MESSAGE)
        await self._sync.refresh()
        self._state.form_open = False
        self._state.form_draft = RecordForm()
        return Outcome.success(CREATED_MESSAGE, record_id=record_id)


__all__ = ["SubmissionOrchestrator", "RecordIdGenerator", "MillisecondSequence"]
