from __future__ import annotations

import asyncio
from typing import List, Optional

from common.errors import ErrorKind, SyncFatalFailure, SyncPartialFailure
from common.interfaces import LedgerReader
from common.logging_utils import get_logger
from notify.status import StatusNotifier
from state.models import AppState, Outcome, ReadModel, Record


logger = get_logger(__name__)

LOAD_FAILED_MESSAGE = "Failed to load records"
CANCELLED_MESSAGE = "Refresh cancelled"


class RecordSynchronizer:
    """
    Rebuilds `AppState.read_model` from the ledger.

    - One logical refresh at a time: a caller arriving while a refresh is in
      flight joins it and gets the same Outcome; no second fetch happens.
    - `refresh(supersede=True)` cancels the in-flight refresh and starts a new
      one; joined callers follow the newer refresh.
    - A cancelled or failed refresh never writes the read model.
    """

    def __init__(self, state: AppState, reader: LedgerReader, notifier: StatusNotifier) -> None:
        self._state = state
        self._reader = reader
        self._notifier = notifier
        self._task: Optional[asyncio.Task[Outcome]] = None

    @property
    def is_refreshing(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self, *, supersede: bool = False) -> Outcome:
        session = self._state.session
        if not session.connected:
            return Outcome.failure(ErrorKind.NOT_CONNECTED, "Please connect wallet first")
        if not session.ready:
            return Outcome.failure(ErrorKind.INITIALIZATION, "Encryption system is not ready")

        if self.is_refreshing:
            if not supersede:
                logger.debug("Refresh already in flight; joining")
                return await self._join(self._task)  # type: ignore[arg-type]
            logger.info("Superseding in-flight refresh")
            self._task.cancel()  # type: ignore[union-attr]

        task = asyncio.create_task(self._run())
        self._task = task
        return await self._join(task)

    def cancel(self) -> bool:
        """Cancel the in-flight refresh, if any. Returns True if one was cancelled."""
        if not self.is_refreshing:
            return False
        task = self._task
        self._task = None
        task.cancel()  # type: ignore[union-attr]
        return True

    async def _join(self, task: asyncio.Task[Outcome]) -> Outcome:
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                # The caller itself was cancelled
                raise
            current = self._task
            if current is not None and current is not task:
                return await self._join(current)
            return Outcome.failure(ErrorKind.SYNC_FATAL, CANCELLED_MESSAGE)

    async def _run(self) -> Outcome:
        try:
            ids = list(await self._reader.list_record_ids())
        except Exception as exc:
            failure = SyncFatalFailure(LOAD_FAILED_MESSAGE, detail=str(exc))
            logger.error("Failed to list record ids: %s", exc)
            self._notifier.error(str(failure))
            return Outcome.failure(failure.kind, str(failure))

        records: List[Record] = []
        seen: set[str] = set()
        skipped = 0
        for record_id in ids:
            if record_id in seen:
                continue
            seen.add(record_id)
            try:
                snap = await self._reader.get_record(record_id)
                records.append(Record.from_snapshot(record_id, snap))
            except Exception as exc:
                skipped += 1
                failure = SyncPartialFailure(record_id, f"Error loading record {record_id}: {exc}")
                logger.warning("%s", failure)

        # Address is read at the end so a reconnect mid-refresh partitions correctly
        self._state.read_model = ReadModel.build(records, self._state.session.address)
        logger.info("Synchronized %d records (%d skipped)", len(records), skipped)
        return Outcome.success(f"Loaded {len(records)} records")


__all__ = ["RecordSynchronizer"]
