from __future__ import annotations

import asyncio
import itertools
from typing import Dict, Optional

from common.config import StatusSettings
from common.logging_utils import get_logger
from state.models import AppState, StatusPhase, TransactionStatus


logger = get_logger(__name__)


class StatusNotifier:
    """
    Owner of the single transient `TransactionStatus` in `AppState`.

    - `show` overwrites the status (last write wins) and gives it a new token.
    - `auto_dismiss` schedules a clear for the status that is current when it
      is called. The timer only clears the status if that token is still the
      current one, so an older timer never hides a newer message.
    - `report` is `show` plus the default delay for the phase: success 2000 ms,
      error 3000 ms, pending stays until overwritten.
    """

    def __init__(self, state: AppState, settings: Optional[StatusSettings] = None) -> None:
        self._state = state
        self._settings = settings or StatusSettings()
        self._tokens = itertools.count(1)
        self._timers: Dict[int, asyncio.TimerHandle] = {}

    @property
    def current(self) -> TransactionStatus:
        return self._state.status

    def show(self, phase: StatusPhase, message: str) -> int:
        token = next(self._tokens)
        self._state.status = TransactionStatus(visible=True, phase=phase, message=message, token=token)
        logger.debug("status[%d] %s: %s", token, phase.value, message)
        return token

    def auto_dismiss(self, delay_ms: int, *, token: Optional[int] = None) -> None:
        target = self._state.status.token if token is None else token
        loop = asyncio.get_running_loop()
        handle = loop.call_later(max(delay_ms, 0) / 1000.0, self._dismiss_if_current, target)
        self._timers[target] = handle

    def report(self, phase: StatusPhase, message: str) -> int:
        token = self.show(phase, message)
        if phase is StatusPhase.SUCCESS:
            self.auto_dismiss(self._settings.success_dismiss_ms, token=token)
        elif phase is StatusPhase.ERROR:
            self.auto_dismiss(self._settings.error_dismiss_ms, token=token)
        return token

    def pending(self, message: str) -> int:
        return self.report(StatusPhase.PENDING, message)

    def success(self, message: str) -> int:
        return self.report(StatusPhase.SUCCESS, message)

    def error(self, message: str) -> int:
        return self.report(StatusPhase.ERROR, message)

    def dismiss(self) -> None:
        self._dismiss_if_current(self._state.status.token)

    def close(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    def _dismiss_if_current(self, token: int) -> None:
        self._timers.pop(token, None)
        if self._state.status.token != token:
            # superseded
            return
        self._state.status = TransactionStatus.hidden(token=token)


__all__ = ["StatusNotifier"]
