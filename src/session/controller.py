from __future__ import annotations

import asyncio
from typing import Optional

from common.errors import ErrorKind, GiftExchangeError
from common.interfaces import ConfidentialCapability, LedgerReader, SessionSource
from common.logging_utils import get_logger
from notify.status import StatusNotifier
from state.models import AppState, ConnectionState, InitState, Outcome


logger = get_logger(__name__)

INIT_FAILED_MESSAGE = "Encryption system initialization failed"
AVAILABLE_MESSAGE = "Confidential system is available and ready!"
UNAVAILABLE_MESSAGE = "Availability check failed"


class SessionController:
    """
    Tracks wallet connectivity and drives one-shot initialization of the
    confidential-computation capability.

    State machine: Uninitialized -> Initializing -> {Ready, Failed}. Failed is
    retryable. The in-flight attempt is held as a task so concurrent callers
    join it instead of starting a second `initialize()`.
    """

    def __init__(
        self,
        state: AppState,
        source: SessionSource,
        capability: ConfidentialCapability,
        notifier: StatusNotifier,
        *,
        reader: Optional[LedgerReader] = None,
    ) -> None:
        self._state = state
        self._source = source
        self._capability = capability
        self._notifier = notifier
        self._reader = reader
        self._init_task: Optional[asyncio.Task[bool]] = None
        self._generation = 0

    @property
    def is_initializing(self) -> bool:
        return self._init_task is not None and not self._init_task.done()

    def sync_connection(self) -> None:
        """Copy the externally-owned wallet session into AppState."""
        session = self._state.session
        connected = bool(self._source.is_connected)
        address = self._source.address if connected else None
        if not connected and session.connected:
            logger.info("Wallet disconnected; resetting session")
            # An attempt still in flight belongs to the old connection
            self._generation += 1
            self._init_task = None
            self._state.session = session.model_copy(
                update={
                    "connection_state": ConnectionState.DISCONNECTED,
                    "init_state": InitState.UNINITIALIZED,
                    "address": None,
                }
            )
            return
        self._state.session = session.model_copy(
            update={
                "connection_state": ConnectionState.CONNECTED if connected else ConnectionState.DISCONNECTED,
                "address": address,
            }
        )

    async def ensure_ready(self) -> bool:
        """Initialize the capability once per connection; returns True when Ready."""
        self.sync_connection()
        session = self._state.session
        if not session.connected:
            return False
        if session.init_state is InitState.READY:
            return True
        if self._init_task is not None and not self._init_task.done():
            return await asyncio.shield(self._init_task)

        self._set_init_state(InitState.INITIALIZING)
        self._init_task = asyncio.create_task(self._initialize())
        return await asyncio.shield(self._init_task)

    async def check_availability(self) -> Outcome:
        if self._reader is None:
            self._notifier.error(UNAVAILABLE_MESSAGE)
            return Outcome.failure(ErrorKind.INITIALIZATION, UNAVAILABLE_MESSAGE)
        try:
            available = await self._reader.check_availability()
        except Exception as exc:
            logger.warning("Availability check failed: %s", exc)
            self._notifier.error(UNAVAILABLE_MESSAGE)
            return Outcome.failure(ErrorKind.INITIALIZATION, UNAVAILABLE_MESSAGE)
        if not available:
            self._notifier.error(UNAVAILABLE_MESSAGE)
            return Outcome.failure(ErrorKind.INITIALIZATION, UNAVAILABLE_MESSAGE)
        self._notifier.success(AVAILABLE_MESSAGE)
        return Outcome.success(AVAILABLE_MESSAGE)

    async def _initialize(self) -> bool:
        generation = self._generation
        logger.info("Initializing confidential-computation capability")
        try:
            await self._capability.initialize()
        except Exception as exc:
            detail = exc.detail if isinstance(exc, GiftExchangeError) else str(exc)
            logger.error("Initialization failed: %s", detail)
            if generation != self._generation:
                return False
            self._set_init_state(InitState.FAILED)
            self._notifier.error(INIT_FAILED_MESSAGE)
            return False
        # A disconnect while initializing leaves the session Uninitialized
        if generation != self._generation or not self._state.session.connected:
            return False
        self._set_init_state(InitState.READY)
        logger.info("Confidential-computation capability ready")
        return True

    def _set_init_state(self, init_state: InitState) -> None:
        self._state.session = self._state.session.model_copy(update={"init_state": init_state})


__all__ = ["SessionController"]
