from __future__ import annotations

import asyncio

import pytest

from common.config import StatusSettings
from notify.status import StatusNotifier
from state.models import AppState, StatusPhase


def _notifier(success_ms: int = 20, error_ms: int = 30):
    state = AppState()
    return state, StatusNotifier(state, StatusSettings(success_dismiss_ms=success_ms, error_dismiss_ms=error_ms))


@pytest.mark.asyncio
async def test_show_sets_visible_status_with_new_token():
    state, n = _notifier()
    t1 = n.show(StatusPhase.PENDING, "working")
    t2 = n.show(StatusPhase.ERROR, "broken")

    assert t2 > t1
    assert state.status.visible is True
    assert state.status.phase is StatusPhase.ERROR
    assert state.status.message == "broken"
    assert state.status.token == t2


@pytest.mark.asyncio
async def test_success_auto_dismisses_after_delay():
    state, n = _notifier(success_ms=10)
    n.success("done")
    assert state.status.visible

    await asyncio.sleep(0.05)
    assert state.status.visible is False
    assert state.status.message == ""


@pytest.mark.asyncio
async def test_pending_is_not_auto_dismissed():
    state, n = _notifier(success_ms=5, error_ms=5)
    n.pending("waiting")
    await asyncio.sleep(0.03)
    assert state.status.visible is True
    assert state.status.phase is StatusPhase.PENDING


@pytest.mark.asyncio
async def test_stale_timer_does_not_clear_newer_message():
    state, n = _notifier(success_ms=10, error_ms=200)
    n.success("first")  # dismissal due in 10ms
    n.error("second")  # dismissal due in 200ms

    await asyncio.sleep(0.05)
    # The first timer fired but the newer message survives
    assert state.status.visible is True
    assert state.status.message == "second"
    n.close()


@pytest.mark.asyncio
async def test_newer_message_without_timer_survives_old_timer():
    state, n = _notifier(success_ms=10)
    n.success("created")
    n.pending("next action running")

    await asyncio.sleep(0.04)
    assert state.status.visible is True
    assert state.status.message == "next action running"


@pytest.mark.asyncio
async def test_dismiss_and_close():
    state, n = _notifier(error_ms=10)
    n.error("oops")
    n.close()
    await asyncio.sleep(0.03)
    # Timer cancelled by close; status still visible until explicit dismiss
    assert state.status.visible is True
    n.dismiss()
    assert state.status.visible is False
