from __future__ import annotations

from typing import Optional

from common.coercion import to_non_negative_int
from common.errors import AlreadyVerified, DecryptionFailed, ErrorKind, GiftExchangeError
from common.interfaces import ConfidentialCapability, LedgerReader, LedgerWriter, clear_value_for
from common.logging_utils import get_logger
from notify.status import StatusNotifier
from session.controller import SessionController
from state.models import AppState, Outcome, RevealPhase
from sync.synchronizer import RecordSynchronizer


logger = get_logger(__name__)

NOT_CONNECTED_MESSAGE = "Please connect wallet first"
NOT_READY_MESSAGE = "Encryption system is not ready"
ALREADY_VERIFIED_MESSAGE = "Data already verified on-chain"
RACE_VERIFIED_MESSAGE = "Data is already verified on-chain"
VERIFYING_MESSAGE = "Verifying decryption on-chain..."
REVEALED_MESSAGE = "Gift pairing revealed successfully!"
FAILED_PREFIX = "Decryption failed: "


class RevealOrchestrator:
    """
    Reveals a record's encrypted value through on-chain proof verification.

    Idle -> CheckingOnChain -> (AlreadyVerified | RequestingHandle)
         -> ProducingProof -> SubmittingProof -> (Verified | Failed)

    An already-verified record short-circuits without a proof request. An
    `AlreadyVerified` raised by the proof write (someone else revealed it
    first) counts as success without a value.
    """

    def __init__(
        self,
        state: AppState,
        session: SessionController,
        capability: ConfidentialCapability,
        reader: LedgerReader,
        writer: LedgerWriter,
        synchronizer: RecordSynchronizer,
        notifier: StatusNotifier,
    ) -> None:
        self._state = state
        self._session = session
        self._capability = capability
        self._reader = reader
        self._writer = writer
        self._sync = synchronizer
        self._notifier = notifier
        self.phase = RevealPhase.IDLE
        self.last_phase = RevealPhase.IDLE

    async def reveal(self, record_id: str) -> Outcome:
        self._session.sync_connection()
        session = self._state.session
        if not session.connected or not session.address:
            self._notifier.error(NOT_CONNECTED_MESSAGE)
            return Outcome.failure(ErrorKind.NOT_CONNECTED, NOT_CONNECTED_MESSAGE, record_id=record_id)
        if not await self._session.ensure_ready():
            self._notifier.error(NOT_READY_MESSAGE)
            return Outcome.failure(ErrorKind.INITIALIZATION, NOT_READY_MESSAGE, record_id=record_id)

        try:
            return await self._reveal(record_id)
        except AlreadyVerified:
            logger.info("Record %s was verified concurrently", record_id)
            self.phase = RevealPhase.VERIFIED
            self._notifier.success(RACE_VERIFIED_MESSAGE)
            await self._sync.refresh()
            return Outcome.success(RACE_VERIFIED_MESSAGE, record_id=record_id)
        except Exception as exc:
            detail = exc.detail if isinstance(exc, GiftExchangeError) and exc.detail else str(exc)
            failure = DecryptionFailed(FAILED_PREFIX + (detail or "Unknown error"), detail=detail)
            logger.error("Reveal of %s failed during %s: %s", record_id, self.phase.value, detail)
            self.phase = RevealPhase.FAILED
            self._notifier.error(str(failure))
            return Outcome.failure(failure.kind, str(failure), record_id=record_id)
        finally:
            self.last_phase = self.phase
            self.phase = RevealPhase.IDLE

    async def _reveal(self, record_id: str) -> Outcome:
        self.phase = RevealPhase.CHECKING_ON_CHAIN
        snap = await self._reader.get_record(record_id)
        if snap.is_verified:
            self.phase = RevealPhase.ALREADY_VERIFIED
            stored = to_non_negative_int(snap.revealed_value)
            self._notifier.success(ALREADY_VERIFIED_MESSAGE)
            return Outcome.success(ALREADY_VERIFIED_MESSAGE, value=stored, record_id=record_id)

        self.phase = RevealPhase.REQUESTING_HANDLE
        handle = await self._reader.get_encrypted_handle(record_id)

        async def submit_proof(clear_values_encoding: str, proof: str) -> object:
            self.phase = RevealPhase.SUBMITTING_PROOF
            return await self._writer.submit_decryption_proof(record_id, clear_values_encoding, proof)

        self.phase = RevealPhase.PRODUCING_PROOF
        result = await self._capability.request_decryption_proof(
            [handle], self._state.context_address, submit_proof
        )

        self._notifier.pending(VERIFYING_MESSAGE)
        clear_value: Optional[int]
        try:
            clear_value = to_non_negative_int(clear_value_for(result, handle))
        except KeyError:
            # Proof is already on-chain; the stored value comes from the resync
            logger.warning("Decryption result for %s has no value for its handle", record_id)
            clear_value = None
        self.phase = RevealPhase.VERIFIED
        await self._sync.refresh()
        if clear_value is None:
            record = self._state.read_model.get(record_id)
            clear_value = record.revealed_value if record is not None else None
        self._notifier.success(REVEALED_MESSAGE)
        logger.info("Revealed record %s", record_id)
        return Outcome.success(REVEALED_MESSAGE, value=clear_value, record_id=record_id)


__all__ = ["RevealOrchestrator"]
