from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional, Sequence

import httpx

from .errors import InitializationError
from .interfaces import SubmitProofCallback
from .logging_utils import get_logger
from state.models import DecryptionResult, EncryptionArtifact


DEFAULT_RELAYER_URL = "http://127.0.0.1:8600"

logger = get_logger(__name__)


class RelayerError(RuntimeError):
    """Base error for the confidential-computation relayer client."""


class RelayerApiError(RelayerError):
    """Relayer returned an error payload or unexpected structure."""


class RelayerClient:
    """
    Async client for the confidential-computation relayer.

    Endpoints
    - POST /init                                         -> {"ok": true}
    - POST /encrypt {"contract", "user", "value"}       -> {"ciphertext", "proof"}
    - POST /decrypt {"handles", "contract"}             -> {"clear_values",
                                                             "abi_encoded_clear_values",
                                                             "decryption_proof"}

    `request_decryption_proof` hands the encoding and proof to the caller's
    submit callback before returning, so proof production and the on-chain
    verification write form one logical step.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_RELAYER_URL,
        *,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        max_attempts: int = 3,
        initial_backoff: float = 0.5,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_attempts = max(1, max_attempts)
        self._initial_backoff = initial_backoff
        headers = {"x-api-key": api_key} if api_key else None
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, headers=headers
        )
        self._initialized = False

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "RelayerClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    @property
    def initialized(self) -> bool:
        return self._initialized

    # --------------- Public API ---------------
    async def initialize(self) -> None:
        try:
            await self._post("/init", {})
        except RelayerError as exc:
            raise InitializationError("Encryption system initialization failed", detail=str(exc)) from exc
        self._initialized = True

    async def encrypt(self, context_address: str, user_address: str, value: int) -> EncryptionArtifact:
        data = await self._post(
            "/encrypt", {"contract": context_address, "user": user_address, "value": int(value)}
        )
        if "ciphertext" not in data or "proof" not in data:
            raise RelayerApiError("Encrypt response missing ciphertext or proof")
        return EncryptionArtifact(ciphertext=data["ciphertext"], proof=data["proof"])

    async def request_decryption_proof(
        self,
        handles: Sequence[str],
        context_address: str,
        submit: SubmitProofCallback,
    ) -> DecryptionResult:
        data = await self._post("/decrypt", {"handles": list(handles), "contract": context_address})
        clear_values = data.get("clear_values")
        encoding = data.get("abi_encoded_clear_values")
        proof = data.get("decryption_proof")
        if not isinstance(clear_values, dict) or not isinstance(encoding, str) or not isinstance(proof, str):
            raise RelayerApiError("Decrypt response missing clear values or proof")

        # The callback performs the on-chain write; its failures propagate as-is
        await submit(encoding, proof)
        return DecryptionResult(
            clear_values=clear_values,
            abi_encoded_clear_values=encoding,
            decryption_proof=proof,
        )

    # --------------- Internal ---------------
    async def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        attempt = 0
        backoff = self._initial_backoff
        last_exc: Optional[Exception] = None
        while attempt < self._max_attempts:
            try:
                resp = await self._client.post(path, json=body)
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                last_exc = exc
            else:
                if resp.status_code == 200:
                    try:
                        payload = resp.json()
                    except ValueError as exc:
                        raise RelayerApiError("Failed to parse JSON from relayer") from exc
                    if not isinstance(payload, dict):
                        raise RelayerApiError("Malformed response from relayer")
                    if payload.get("ok") is False:
                        raise RelayerApiError(str(payload.get("error") or "Relayer error"))
                    return payload
                if resp.status_code in (429, 500, 502, 503, 504):
                    last_exc = RelayerApiError(f"HTTP {resp.status_code} from relayer")
                else:
                    raise RelayerApiError(f"HTTP {resp.status_code} from relayer: {resp.text[:200]}")

            attempt += 1
            if attempt < self._max_attempts:
                logger.debug("Retrying relayer %s after %s", path, last_exc)
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, 8.0)

        if last_exc is not None:
            raise RelayerError("Failed request after retries") from last_exc
        raise RelayerError("Failed request after retries (unknown error)")


__all__ = [
    "RelayerClient",
    "RelayerError",
    "RelayerApiError",
]
