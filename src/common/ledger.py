from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .errors import AlreadyVerified, TransactionRejected
from .logging_utils import get_logger
from .rate_limiter import AsyncSlidingWindowRateLimiter, RateLimitError
from state.models import Receipt, RecordSnapshot


DEFAULT_GATEWAY_URL = "http://127.0.0.1:8545"

# EIP-1193 "User Rejected Request"
USER_REJECTED_CODE = 4001
USER_REJECTED_MARKERS = ("user rejected", "action_rejected", "user denied")
ALREADY_VERIFIED_MARKER = "already verified"

logger = get_logger(__name__)


class LedgerError(RuntimeError):
    """Base error for the ledger gateway client."""


class LedgerApiError(LedgerError):
    """Gateway returned an error payload or unexpected structure."""

    def __init__(self, message: str, *, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code


class LedgerRateLimitError(LedgerError):
    """Local or remote rate limiting prevented the request."""


def _snapshot_from_payload(data: Dict[str, Any]) -> RecordSnapshot:
    # Contract getter field names; publicValue1 is participants, publicValue2 the budget
    return RecordSnapshot(
        name=str(data.get("name") or ""),
        description=str(data.get("description") or ""),
        public_participants=data.get("publicValue1", 0),
        public_budget=data.get("publicValue2", 0),
        timestamp=data.get("timestamp", 0),
        creator=str(data.get("creator") or ""),
        is_verified=bool(data.get("isVerified", False)),
        revealed_value=data.get("decryptedValue"),
    )


def _classify_error(err: Dict[str, Any]) -> Exception:
    """Translate a gateway error envelope into a typed exception."""
    message = str(err.get("message") or "Ledger gateway error")
    code = err.get("code")
    lowered = message.lower()
    if code == USER_REJECTED_CODE or any(m in lowered for m in USER_REJECTED_MARKERS):
        return TransactionRejected("Transaction rejected by user", detail=message)
    if ALREADY_VERIFIED_MARKER in lowered:
        return AlreadyVerified("Data already verified", detail=message)
    return LedgerApiError(f"{message} (code={code})", code=code if isinstance(code, int) else None)


class GatewayPendingTransaction:
    def __init__(self, client: "LedgerGatewayClient", tx_hash: str) -> None:
        self.tx_hash = tx_hash
        self._client = client

    async def await_confirmation(self) -> Receipt:
        return await self._client.wait_for_receipt(self.tx_hash)


class LedgerGatewayClient:
    """
    Async client for a JSON contract-call gateway in front of the gift-exchange contract.

    Endpoints
    - POST /call  {"method", "params"} -> {"ok": true, "result": ...}   (read-only views)
    - POST /send  {"method", "params"} -> {"ok": true, "result": {"tx_hash"}}  (signed writes)
    - POST /wait  {"tx_hash"}          -> {"ok": true, "result": {receipt}}
    - GET  /contract                   -> {"ok": true, "result": {"address"}}

    Notes
    - Error envelopes are {"ok": false, "error": {"code", "message"}}. Wallet
      rejections (code 4001) raise `TransactionRejected`; "already verified"
      reverts raise `AlreadyVerified`.
    - Transport errors, 429 and 5xx are retried with exponential backoff. Writes
      are never retried once the gateway answered.
    - A local sliding-window limiter caps request rate (default 10 req/sec).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_GATEWAY_URL,
        *,
        signer_token: Optional[str] = None,
        timeout: float = 30.0,
        max_per_second: int = 10,
        max_attempts: int = 4,
        initial_backoff: float = 0.5,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self._base_url = base_url.rstrip("/")
        self._signer_token = signer_token
        self._timeout = timeout
        self._max_attempts = max(1, max_attempts)
        self._initial_backoff = initial_backoff
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout)
        self._limiter = AsyncSlidingWindowRateLimiter(max_calls=max_per_second, per_seconds=1.0)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "LedgerGatewayClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # --------------- Read API ---------------
    async def list_record_ids(self) -> List[str]:
        result = await self._call("getAllBusinessIds", [])
        if not isinstance(result, list):
            raise LedgerApiError("Malformed identifier list from gateway")
        return [str(x) for x in result]

    async def get_record(self, record_id: str) -> RecordSnapshot:
        result = await self._call("getBusinessData", [record_id])
        if not isinstance(result, dict):
            raise LedgerApiError(f"Malformed record payload for {record_id}")
        return _snapshot_from_payload(result)

    async def get_encrypted_handle(self, record_id: str) -> str:
        result = await self._call("getEncryptedValue", [record_id])
        if not isinstance(result, str) or not result:
            raise LedgerApiError(f"Missing encrypted handle for {record_id}")
        return result

    async def check_availability(self) -> bool:
        return bool(await self._call("isAvailable", []))

    async def get_address(self) -> str:
        result = await self._request("GET", "/contract", None)
        address = result.get("address") if isinstance(result, dict) else None
        if not isinstance(address, str) or not address:
            raise LedgerApiError("Gateway did not report a contract address")
        return address

    # --------------- Write API ---------------
    async def create_record(
        self,
        record_id: str,
        name: str,
        ciphertext: Any,
        proof: Any,
        participants: int,
        budget: int,
        description: str,
    ) -> GatewayPendingTransaction:
        params = [record_id, name, ciphertext, proof, participants, budget, description]
        return await self._send("createBusinessData", params)

    async def submit_decryption_proof(self, record_id: str, clear_values_encoding: str, proof: str) -> Receipt:
        pending = await self._send("verifyDecryption", [record_id, clear_values_encoding, proof])
        return await pending.await_confirmation()

    async def wait_for_receipt(self, tx_hash: str) -> Receipt:
        result = await self._request("POST", "/wait", {"tx_hash": tx_hash})
        if not isinstance(result, dict):
            raise LedgerApiError(f"Malformed receipt for {tx_hash}")
        receipt = Receipt(
            tx_hash=str(result.get("tx_hash") or tx_hash),
            status=int(result.get("status", 1)),
            block_number=result.get("block_number"),
        )
        if receipt.status != 1:
            raise LedgerApiError(f"Transaction {tx_hash} reverted")
        return receipt

    # --------------- Internal ---------------
    async def _call(self, method: str, params: Sequence[Any]) -> Any:
        return await self._request("POST", "/call", {"method": method, "params": list(params)})

    async def _send(self, method: str, params: Sequence[Any]) -> GatewayPendingTransaction:
        result = await self._request(
            "POST", "/send", {"method": method, "params": list(params)}, signed=True
        )
        tx_hash = result.get("tx_hash") if isinstance(result, dict) else None
        if not isinstance(tx_hash, str) or not tx_hash:
            raise LedgerApiError(f"Gateway returned no tx_hash for {method}")
        logger.debug("Submitted %s tx=%s", method, tx_hash)
        return GatewayPendingTransaction(self, tx_hash)

    async def _request(
        self,
        http_method: str,
        path: str,
        body: Optional[Dict[str, Any]],
        *,
        signed: bool = False,
    ) -> Any:
        try:
            await self._limiter.acquire(blocking=True)
        except RateLimitError as rl:
            raise LedgerRateLimitError("Local rate limiter prevented request") from rl

        headers: Dict[str, str] = {}
        if signed and self._signer_token:
            headers["Authorization"] = f"Bearer {self._signer_token}"

        attempt = 0
        backoff = self._initial_backoff
        last_exc: Optional[Exception] = None
        while attempt < self._max_attempts:
            try:
                resp = await self._client.request(http_method, path, json=body, headers=headers)
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                last_exc = exc
            else:
                if resp.status_code == 200:
                    try:
                        payload = resp.json()
                    except ValueError as exc:
                        raise LedgerApiError("Failed to parse JSON from ledger gateway") from exc
                    return self._unwrap(payload)
                if resp.status_code in (429, 500, 502, 503, 504):
                    last_exc = LedgerApiError(f"HTTP {resp.status_code} from ledger gateway")
                else:
                    raise LedgerApiError(
                        f"HTTP {resp.status_code} from ledger gateway: {resp.text[:200]}"
                    )

            attempt += 1
            if attempt < self._max_attempts:
                logger.debug("Retrying %s %s after %s", http_method, path, last_exc)
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, 8.0)

        if last_exc is not None:
            raise LedgerError("Failed request after retries") from last_exc
        raise LedgerError("Failed request after retries (unknown error)")

    @staticmethod
    def _unwrap(payload: Any) -> Any:
        if not isinstance(payload, dict) or "ok" not in payload:
            raise LedgerApiError("Malformed response from ledger gateway")
        if payload.get("ok") is True:
            return payload.get("result")
        err = payload.get("error")
        raise _classify_error(err if isinstance(err, dict) else {})


__all__ = [
    "LedgerGatewayClient",
    "GatewayPendingTransaction",
    "LedgerError",
    "LedgerApiError",
    "LedgerRateLimitError",
]
