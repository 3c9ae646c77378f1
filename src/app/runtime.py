from __future__ import annotations

from typing import Any, Dict, Optional, Union

from common.config import Settings, load_settings
from common.errors import ErrorKind
from common.interfaces import ConfidentialCapability, LedgerReader, LedgerWriter, SessionSource
from common.ledger import LedgerGatewayClient
from common.logging_utils import configure_logging, get_logger
from common.relayer import RelayerClient
from notify.status import StatusNotifier
from reveal.orchestrator import RevealOrchestrator
from session.controller import SessionController
from state.models import AppState, Outcome, ReadModelStats, RecordForm
from submit.orchestrator import RecordIdGenerator, SubmissionOrchestrator
from sync.synchronizer import RecordSynchronizer


logger = get_logger(__name__)


class GiftExchangeApp:
    """
    Wires the session controller, synchronizer, orchestrators and notifier
    around one `AppState`.

    Typical use:
        app = GiftExchangeApp.from_settings(wallet)
        await app.on_connection_change()
        await app.submit({"name": "Xmas", "participantCount": "10", "budget": "25"})
        await app.reveal("santa-1734567890123")
        await app.aclose()
    """

    def __init__(
        self,
        source: SessionSource,
        reader: LedgerReader,
        writer: LedgerWriter,
        capability: ConfidentialCapability,
        *,
        settings: Optional[Settings] = None,
        state: Optional[AppState] = None,
        ids: Optional[RecordIdGenerator] = None,
    ) -> None:
        self._settings = settings or Settings()
        self.state = state or AppState()
        self._reader = reader
        self._closeables: list[Any] = []
        self.notifier = StatusNotifier(self.state, self._settings.status)
        self.session = SessionController(self.state, source, capability, self.notifier, reader=reader)
        self.synchronizer = RecordSynchronizer(self.state, reader, self.notifier)
        self.submission = SubmissionOrchestrator(
            self.state, self.session, capability, writer, self.synchronizer, self.notifier, ids=ids
        )
        self.revealer = RevealOrchestrator(
            self.state, self.session, capability, reader, writer, self.synchronizer, self.notifier
        )

    @classmethod
    def from_settings(cls, source: SessionSource, settings: Optional[Settings] = None) -> "GiftExchangeApp":
        settings = settings or load_settings()
        configure_logging(settings.logging)
        ledger = LedgerGatewayClient(
            settings.ledger.url,
            signer_token=settings.ledger.signer_token,
            timeout=settings.ledger.timeout,
            max_per_second=settings.ledger.max_per_second,
        )
        relayer = RelayerClient(
            settings.relayer.url,
            api_key=settings.relayer.api_key,
            timeout=settings.relayer.timeout,
        )
        app = cls(source, ledger, ledger, relayer, settings=settings)
        app._closeables.extend([ledger, relayer])
        return app

    async def on_connection_change(self) -> Outcome:
        """Connect-time bootstrap: initialize, load records, resolve the contract address."""
        self.session.sync_connection()
        if not self.state.session.connected:
            self.synchronizer.cancel()
            self.state.loading = False
            return Outcome.failure(ErrorKind.NOT_CONNECTED, "Please connect wallet first")
        try:
            if not await self.session.ensure_ready():
                return Outcome.failure(ErrorKind.INITIALIZATION, "Encryption system initialization failed")
            outcome = await self.synchronizer.refresh()
            try:
                self.state.context_address = await self._reader.get_address()
            except Exception as exc:
                logger.error("Failed to resolve contract address: %s", exc)
            return outcome
        finally:
            self.state.loading = False

    async def refresh(self, *, supersede: bool = False) -> Outcome:
        return await self.synchronizer.refresh(supersede=supersede)

    async def submit(self, form: Union[RecordForm, Dict[str, Any]]) -> Outcome:
        return await self.submission.submit(form)

    async def reveal(self, record_id: str) -> Outcome:
        return await self.revealer.reveal(record_id)

    async def check_availability(self) -> Outcome:
        return await self.session.check_availability()

    def open_form(self, draft: Optional[RecordForm] = None) -> None:
        self.state.form_open = True
        if draft is not None:
            self.state.form_draft = draft

    def close_form(self) -> None:
        self.state.form_open = False

    def stats(self) -> ReadModelStats:
        return self.state.read_model.stats()

    async def aclose(self) -> None:
        self.synchronizer.cancel()
        self.notifier.close()
        for c in self._closeables:
            await c.aclose()
        self._closeables.clear()


__all__ = ["GiftExchangeApp"]
