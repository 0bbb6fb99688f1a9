from __future__ import annotations

import itertools
import logging
import re
from typing import Any

import httpx

from .errors import InvalidInputError, NetworkError, RpcError
from .program_ids import TOKEN_PROGRAM_ID
from .retry import RetryPolicy, with_retry

logger = logging.getLogger(__name__)

_BASE58 = "[1-9A-HJ-NP-Za-km-z]"
_ADDRESS = re.compile(rf"^{_BASE58}{{32,44}}$")
_SIGNATURE = re.compile(rf"^{_BASE58}{{64,88}}$")


def validate_address(address: str, field: str = "address") -> str:
    if not isinstance(address, str) or not _ADDRESS.match(address):
        raise InvalidInputError(f"Invalid Solana address: {address!r}", field=field)
    return address


def validate_signature(signature: str) -> str:
    if not isinstance(signature, str) or not _SIGNATURE.match(signature):
        raise InvalidInputError(f"Invalid transaction signature: {signature!r}", field="signature")
    return signature


class SolanaRpcClient:
    """Minimal JSON-RPC client for a Solana node; every call is retried."""

    def __init__(
        self,
        rpc_url: str,
        retry: RetryPolicy | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.retry = retry or RetryPolicy()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def call(self, method: str, params: list[Any] | dict[str, Any] | None = None) -> Any:
        return await with_retry(lambda: self._post(method, params), self.retry)

    async def _post(self, method: str, params: list[Any] | dict[str, Any] | None) -> Any:
        payload: dict[str, Any] = {"jsonrpc": "2.0", "id": next(self._ids), "method": method}
        if params is not None:
            payload["params"] = params

        try:
            resp = await self._client.post(self.rpc_url, json=payload)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"timeout: {method} {exc}") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"network error: {method} {exc}") from exc

        if resp.status_code >= 400:
            raise RpcError(
                f"HTTP {resp.status_code} {resp.reason_phrase} from {method}",
                status_code=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError as exc:
            raise RpcError(f"Malformed JSON-RPC response from {method}") from exc

        error = body.get("error") if isinstance(body, dict) else None
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise RpcError(f"RPC error {code}: {message}", code=code)
        if not isinstance(body, dict) or "result" not in body:
            raise RpcError(f"JSON-RPC response from {method} has no result")
        return body["result"]

    async def get_signatures_for_address(
        self,
        address: str,
        limit: int = 100,
        before: str | None = None,
        until: str | None = None,
    ) -> list[dict[str, Any]]:
        validate_address(address)
        options: dict[str, Any] = {"limit": limit}
        if before:
            options["before"] = before
        if until:
            options["until"] = until
        result = await self.call("getSignaturesForAddress", [address, options])
        return result if isinstance(result, list) else []

    async def get_transaction(self, signature: str) -> dict[str, Any] | None:
        validate_signature(signature)
        result = await self.call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "maxSupportedTransactionVersion": 0,
                    "commitment": "confirmed",
                },
            ],
        )
        return result if isinstance(result, dict) else None

    async def get_balance(self, address: str) -> int:
        validate_address(address)
        result = await self.call("getBalance", [address])
        if isinstance(result, dict):
            return int(result.get("value", 0))
        return int(result or 0)

    async def get_token_accounts_by_owner(
        self, address: str, program_id: str = TOKEN_PROGRAM_ID
    ) -> list[dict[str, Any]]:
        validate_address(address)
        result = await self.call(
            "getTokenAccountsByOwner",
            [address, {"programId": program_id}, {"encoding": "jsonParsed"}],
        )
        value = result.get("value") if isinstance(result, dict) else None
        return value if isinstance(value, list) else []

    async def get_asset(self, mint: str) -> dict[str, Any] | None:
        validate_address(mint, field="mint")
        result = await self.call("getAsset", {"id": mint})
        return result if isinstance(result, dict) else None
