from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from .retry import RetryPolicy, with_retry
from .token_registry import create_unknown_token, static_tokens_for, validate_cluster
from .types import Cluster, TokenInfo

if TYPE_CHECKING:
    from .rpc import SolanaRpcClient

logger = logging.getLogger(__name__)

DEFAULT_JUPITER_API_URL = "https://api.jup.ag/tokens/v2/tag?query=verified"
MIN_RETRY_INTERVAL_SECONDS = 30.0


@dataclass(frozen=True)
class TokenRegistryConfig:
    cluster: Cluster = "mainnet-beta"
    static_tokens: Mapping[str, TokenInfo] = field(default_factory=dict)
    custom_tokens: Mapping[str, TokenInfo] = field(default_factory=dict)
    jupiter_api_url: str = DEFAULT_JUPITER_API_URL
    jupiter_api_key: str | None = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    timeout: float = 10.0

    @classmethod
    def for_cluster(
        cls,
        cluster: str = "mainnet-beta",
        custom_tokens: Mapping[str, TokenInfo] | None = None,
        **kwargs: Any,
    ) -> TokenRegistryConfig:
        return cls(
            cluster=validate_cluster(cluster),
            static_tokens=dict(static_tokens_for(cluster)),
            custom_tokens=dict(custom_tokens or {}),
            **kwargs,
        )

    @property
    def is_mainnet(self) -> bool:
        return self.cluster == "mainnet-beta"


class TokenMetadataResolver:
    """Resolves mint addresses to token identity.

    Lookup order: custom overrides, the cluster's static table, the Jupiter
    verified token list, on-chain asset metadata, then a placeholder. The two
    network tiers only run on mainnet; their results are cached per instance.
    """

    def __init__(
        self,
        config: TokenRegistryConfig | None = None,
        client: httpx.AsyncClient | None = None,
        rpc: SolanaRpcClient | None = None,
    ) -> None:
        self.config = config or TokenRegistryConfig.for_cluster()
        self.rpc = rpc
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.config.timeout)
        self._cache: dict[str, TokenInfo] = {}
        self._list_loaded = False
        self._list_lock = asyncio.Lock()
        self._onchain_misses: set[str] = set()
        self._last_error_at: float | None = None

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def cache_size(self) -> int:
        return len(self._cache)

    def _lookup_static(self, mint: str) -> TokenInfo | None:
        return self.config.custom_tokens.get(mint) or self.config.static_tokens.get(mint)

    async def get_token(self, mint: str, decimals: int = 9) -> TokenInfo:
        known = self._lookup_static(mint)
        if known is not None:
            return known

        if not self.config.is_mainnet:
            return create_unknown_token(mint, decimals)

        cached = self._cache.get(mint)
        if cached:
            return cached

        await self._ensure_token_list()
        cached = self._cache.get(mint)
        if cached:
            return cached

        if mint in self._onchain_misses:
            return create_unknown_token(mint, decimals)

        onchain = await self._fetch_onchain_metadata(mint, decimals)
        if onchain is not None:
            self._cache[mint] = onchain
            return onchain
        self._onchain_misses.add(mint)

        return create_unknown_token(mint, decimals)

    async def get_tokens(
        self, mints: Iterable[str], default_decimals: int = 9
    ) -> dict[str, TokenInfo]:
        distinct = list(dict.fromkeys(mints))
        if not distinct:
            return {}
        resolved = await asyncio.gather(
            *(self.get_token(mint, default_decimals) for mint in distinct)
        )
        return dict(zip(distinct, resolved))

    async def refresh(self) -> None:
        if not self.config.is_mainnet:
            return
        self._cache.clear()
        self._onchain_misses.clear()
        self._list_loaded = False
        self._last_error_at = None
        await self._ensure_token_list()

    async def _ensure_token_list(self) -> None:
        if self._list_loaded:
            return

        async with self._list_lock:
            if self._list_loaded:
                return
            if (
                self._last_error_at is not None
                and time.monotonic() - self._last_error_at < MIN_RETRY_INTERVAL_SECONDS
            ):
                return

            try:
                tokens = await with_retry(self._fetch_token_list, self.config.retry)
            except (httpx.HTTPError, ValueError) as exc:
                self._last_error_at = time.monotonic()
                logger.warning("Jupiter token list request failed: %s", exc)
                return

            for token in tokens:
                self._cache[token.mint] = token
            self._list_loaded = True
            self._last_error_at = None
            logger.debug("Loaded %d tokens from Jupiter", len(tokens))

    async def _fetch_token_list(self) -> list[TokenInfo]:
        headers: dict[str, str] = {}
        if self.config.jupiter_api_key:
            headers["x-api-key"] = self.config.jupiter_api_key
        resp = await self._client.get(self.config.jupiter_api_url, headers=headers)
        resp.raise_for_status()
        return parse_jupiter_tokens(resp.json())

    async def _fetch_onchain_metadata(self, mint: str, decimals: int) -> TokenInfo | None:
        if self.rpc is None:
            return None
        try:
            asset = await self.rpc.get_asset(mint)
        except Exception as exc:
            logger.debug("On-chain metadata lookup failed for %s: %s", mint, exc)
            return None
        return parse_das_asset(mint, asset, decimals)


def parse_jupiter_tokens(data: Any) -> list[TokenInfo]:
    if not isinstance(data, list):
        return []
    out: list[TokenInfo] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        mint = item.get("id") or item.get("address")
        symbol = item.get("symbol")
        if not isinstance(mint, str) or not isinstance(symbol, str):
            continue
        try:
            decimals = int(item.get("decimals", 0))
        except (TypeError, ValueError):
            continue
        out.append(
            TokenInfo(
                mint=mint,
                symbol=symbol,
                name=str(item.get("name") or symbol),
                decimals=decimals,
                logo_uri=item.get("icon") or item.get("logoURI") or None,
            )
        )
    return out


def parse_das_asset(mint: str, asset: Any, default_decimals: int = 9) -> TokenInfo | None:
    if not isinstance(asset, dict):
        return None
    content = asset.get("content") if isinstance(asset.get("content"), dict) else {}
    metadata = content.get("metadata") if isinstance(content.get("metadata"), dict) else {}
    token_info = asset.get("token_info") if isinstance(asset.get("token_info"), dict) else {}

    symbol = metadata.get("symbol") or token_info.get("symbol")
    name = metadata.get("name")
    if not symbol and not name:
        return None

    decimals = token_info.get("decimals", default_decimals)
    links = content.get("links") if isinstance(content.get("links"), dict) else {}
    return TokenInfo(
        mint=mint,
        symbol=str(symbol or name),
        name=str(name or symbol),
        decimals=int(decimals),
        logo_uri=links.get("image") or None,
    )
