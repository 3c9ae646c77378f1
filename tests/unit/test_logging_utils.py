from __future__ import annotations

import logging

import pytest

from common import config, logging_utils


def test_get_logger_leaves_root_handlers_alone():
    root = logging.getLogger()
    before = list(root.handlers)

    log = logging_utils.get_logger("santa.test")

    assert log.name == "santa.test"
    assert root.handlers == before


def test_get_logger_does_not_read_settings(monkeypatch: pytest.MonkeyPatch):
    def _no_ssm(prefix, names):
        raise AssertionError("SSM must not be read when creating a logger")

    monkeypatch.setenv(config.ENV_PARAM_PREFIX, "/santa/")
    monkeypatch.setattr(config, "_load_ssm_params", _no_ssm)
    config.load_settings.cache_clear()

    logging_utils.get_logger("sync.synchronizer")

    config.load_settings.cache_clear()


@pytest.mark.asyncio
async def test_from_settings_configures_logging(monkeypatch: pytest.MonkeyPatch):
    from app import runtime
    from common.interfaces import StaticSession

    seen = []
    monkeypatch.setattr(runtime, "configure_logging", lambda settings=None: seen.append(settings))
    settings = config.Settings(logging=config.LoggingSettings(level="DEBUG"))

    app = runtime.GiftExchangeApp.from_settings(StaticSession("0xabc"), settings)
    try:
        assert seen == [settings.logging]
    finally:
        await app.aclose()
