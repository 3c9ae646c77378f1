from __future__ import annotations

import asyncio

import pytest

from common.errors import InitializationError
from state.models import ConnectionState, InitState, StatusPhase


@pytest.mark.asyncio
async def test_not_connected_is_a_noop(make_app, wallet, capability):
    wallet.disconnect()
    app = make_app()

    assert await app.session.ensure_ready() is False
    assert capability.init_calls == 0
    assert app.state.session.connection_state is ConnectionState.DISCONNECTED
    assert app.state.session.init_state is InitState.UNINITIALIZED


@pytest.mark.asyncio
async def test_initializes_once_and_becomes_ready(make_app, capability):
    app = make_app()

    assert await app.session.ensure_ready() is True
    assert await app.session.ensure_ready() is True
    assert capability.init_calls == 1
    assert app.state.session.init_state is InitState.READY
    assert app.state.session.address is not None


@pytest.mark.asyncio
async def test_rapid_calls_while_initializing_trigger_one_initialize(make_app, capability):
    capability.init_gate = asyncio.Event()
    app = make_app()

    first = asyncio.create_task(app.session.ensure_ready())
    await asyncio.sleep(0)
    assert app.state.session.init_state is InitState.INITIALIZING
    assert app.session.is_initializing
    second = asyncio.create_task(app.session.ensure_ready())
    await asyncio.sleep(0)

    capability.init_gate.set()
    assert await first is True
    assert await second is True
    assert capability.init_calls == 1


@pytest.mark.asyncio
async def test_failure_sets_failed_and_reports_error(make_app, capability):
    capability.init_error = InitializationError("boom")
    app = make_app()

    assert await app.session.ensure_ready() is False
    assert app.state.session.init_state is InitState.FAILED
    assert app.state.status.phase is StatusPhase.ERROR
    assert app.state.status.message == "Encryption system initialization failed"

    # Error status auto-clears (30ms in test settings)
    await asyncio.sleep(0.08)
    assert app.state.status.visible is False


@pytest.mark.asyncio
async def test_failed_is_retryable(make_app, capability):
    capability.init_error = RuntimeError("relayer down")
    app = make_app()
    assert await app.session.ensure_ready() is False

    capability.init_error = None
    assert await app.session.ensure_ready() is True
    assert capability.init_calls == 2
    assert app.state.session.init_state is InitState.READY


@pytest.mark.asyncio
async def test_disconnect_resets_and_reconnect_reinitializes(make_app, wallet, capability):
    app = make_app()
    assert await app.session.ensure_ready() is True

    wallet.disconnect()
    app.session.sync_connection()
    assert app.state.session.init_state is InitState.UNINITIALIZED
    assert app.state.session.address is None

    wallet.connect("0x1234")
    assert await app.session.ensure_ready() is True
    assert capability.init_calls == 2
    assert app.state.session.address == "0x1234"


@pytest.mark.asyncio
async def test_check_availability_reports_success(make_app, ledger):
    app = make_app()
    outcome = await app.check_availability()

    assert outcome.ok
    assert app.state.status.phase is StatusPhase.SUCCESS
    assert app.state.status.message == "Confidential system is available and ready!"


@pytest.mark.asyncio
async def test_check_availability_reports_failure(make_app, ledger):
    ledger.available = RuntimeError("rpc down")
    app = make_app()
    outcome = await app.check_availability()

    assert not outcome.ok
    assert app.state.status.phase is StatusPhase.ERROR
    assert app.state.status.message == "Availability check failed"
