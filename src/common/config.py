from __future__ import annotations

import os
from functools import lru_cache
from typing import Dict, Iterable, Optional

from pydantic import BaseModel, Field


# Environment variable names
ENV_LEDGER_URL = "LEDGER_GATEWAY_URL"
ENV_RELAYER_URL = "RELAYER_URL"
ENV_PARAM_PREFIX = "PARAM_PREFIX"
ENV_HTTP_TIMEOUT = "HTTP_TIMEOUT_SECONDS"
ENV_MAX_PER_SECOND = "LEDGER_MAX_PER_SECOND"
ENV_SUCCESS_DISMISS_MS = "STATUS_SUCCESS_DISMISS_MS"
ENV_ERROR_DISMISS_MS = "STATUS_ERROR_DISMISS_MS"
ENV_LOG_LEVEL = "LOG_LEVEL"
ENV_LOG_FILE = "LOG_FILE"

# Secrets may come from env directly or from SSM under PARAM_PREFIX
ENV_RELAYER_API_KEY = "RELAYER_API_KEY"
ENV_SIGNER_TOKEN = "SIGNER_TOKEN"

# Backward-compatible fallbacks
FALLBACK_ENV_LEDGER_URL = "SANTA_LEDGER_URL"
FALLBACK_ENV_RELAYER_URL = "SANTA_RELAYER_URL"
FALLBACK_ENV_PARAM_PREFIX = "SANTA_PARAM_PREFIX"

DEFAULT_LEDGER_URL = "http://127.0.0.1:8545"
DEFAULT_RELAYER_URL = "http://127.0.0.1:8600"

SSM_PARAM_NAMES = ("relayer_api_key", "signer_token")


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: Optional[str] = Field(default=None, description="Optional log file path")


class StatusSettings(BaseModel):
    success_dismiss_ms: int = Field(default=2000, ge=0)
    error_dismiss_ms: int = Field(default=3000, ge=0)


class LedgerSettings(BaseModel):
    url: str = DEFAULT_LEDGER_URL
    signer_token: Optional[str] = None
    timeout: float = Field(default=30.0, gt=0)
    max_per_second: int = Field(default=10, ge=1)


class RelayerSettings(BaseModel):
    url: str = DEFAULT_RELAYER_URL
    api_key: Optional[str] = None
    timeout: float = Field(default=60.0, gt=0)


class Settings(BaseModel):
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    relayer: RelayerSettings = Field(default_factory=RelayerSettings)
    status: StatusSettings = Field(default_factory=StatusSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.environ.get(name)
    return val if val not in (None, "") else default


def _float_env(name: str, default: float) -> float:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _load_ssm_params(prefix: str, names: Iterable[str]) -> Dict[str, Optional[str]]:
    import boto3
    from botocore.exceptions import ClientError

    ssm = boto3.client("ssm")
    out: Dict[str, Optional[str]] = {k: None for k in names}
    for name in names:
        full = f"{prefix}{name}"
        try:
            resp = ssm.get_parameter(Name=full, WithDecryption=True)
        except ClientError as e:
            # Leave as None if parameter missing or access denied
            code = e.response.get("Error", {}).get("Code")
            if code in ("ParameterNotFound", "AccessDeniedException"):
                continue
            raise
        val = resp.get("Parameter", {}).get("Value")
        out[name] = val if isinstance(val, str) and val != "" else None
    return out


def settings_from_env() -> Settings:
    """Build Settings from the environment, overlaying SSM secrets when PARAM_PREFIX is set.

    Env secrets win over SSM values so local runs never need AWS access.
    """
    api_key = _getenv(ENV_RELAYER_API_KEY)
    signer_token = _getenv(ENV_SIGNER_TOKEN)

    prefix = _getenv(ENV_PARAM_PREFIX) or _getenv(FALLBACK_ENV_PARAM_PREFIX)
    if prefix and (api_key is None or signer_token is None):
        params = _load_ssm_params(prefix, SSM_PARAM_NAMES)
        api_key = api_key or params.get("relayer_api_key")
        signer_token = signer_token or params.get("signer_token")

    return Settings(
        ledger=LedgerSettings(
            url=_getenv(ENV_LEDGER_URL) or _getenv(FALLBACK_ENV_LEDGER_URL, DEFAULT_LEDGER_URL),
            signer_token=signer_token,
            timeout=_float_env(ENV_HTTP_TIMEOUT, 30.0),
            max_per_second=_int_env(ENV_MAX_PER_SECOND, 10),
        ),
        relayer=RelayerSettings(
            url=_getenv(ENV_RELAYER_URL) or _getenv(FALLBACK_ENV_RELAYER_URL, DEFAULT_RELAYER_URL),
            api_key=api_key,
            timeout=_float_env(ENV_HTTP_TIMEOUT, 60.0),
        ),
        status=StatusSettings(
            success_dismiss_ms=_int_env(ENV_SUCCESS_DISMISS_MS, 2000),
            error_dismiss_ms=_int_env(ENV_ERROR_DISMISS_MS, 3000),
        ),
        logging=LoggingSettings(
            level=_getenv(ENV_LOG_LEVEL, "INFO") or "INFO",
            file=_getenv(ENV_LOG_FILE),
        ),
    )


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    return settings_from_env()


__all__ = [
    "Settings",
    "LedgerSettings",
    "RelayerSettings",
    "StatusSettings",
    "LoggingSettings",
    "settings_from_env",
    "load_settings",
]
