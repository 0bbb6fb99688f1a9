from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any

import httpx
from dotenv import load_dotenv

from .retry import RetryPolicy
from .token_registry import validate_cluster
from .token_resolver import DEFAULT_JUPITER_API_URL
from .types import Cluster, TokenInfo

DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"


@dataclass(frozen=True)
class Settings:
    rpc_url: str = DEFAULT_RPC_URL
    rpc_api_key: str | None = None
    cluster: Cluster = "mainnet-beta"
    custom_tokens: dict[str, TokenInfo] = field(default_factory=dict)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    jupiter_api_url: str = DEFAULT_JUPITER_API_URL
    jupiter_api_key: str | None = None
    fetch_concurrency: int = 10
    log_level: str = "INFO"

    @property
    def rpc_endpoint(self) -> str:
        if not self.rpc_api_key:
            return self.rpc_url
        return str(httpx.URL(self.rpc_url).copy_merge_params({"api-key": self.rpc_api_key}))


def _optional_str(name: str) -> str | None:
    return os.getenv(name, "").strip() or None


def _optional_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _optional_json(name: str) -> dict[str, Any] | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    parsed = json.loads(raw)
    if not isinstance(parsed, dict):
        raise ValueError(f"{name} must decode to a JSON object")
    return parsed


def parse_custom_tokens(data: dict[str, Any] | None) -> dict[str, TokenInfo]:
    tokens: dict[str, TokenInfo] = {}
    for mint, entry in (data or {}).items():
        if not isinstance(entry, dict) or "symbol" not in entry or "decimals" not in entry:
            raise ValueError(f"Custom token {mint} needs at least symbol and decimals")
        tokens[mint] = TokenInfo(
            mint=mint,
            symbol=str(entry["symbol"]),
            name=str(entry.get("name") or entry["symbol"]),
            decimals=int(entry["decimals"]),
            logo_uri=entry.get("logoURI") or entry.get("logo_uri"),
        )
    return tokens


def load_settings() -> Settings:
    load_dotenv()
    concurrency = _optional_int("FETCH_CONCURRENCY", 10)
    if concurrency < 1:
        raise ValueError("FETCH_CONCURRENCY must be >= 1")
    return Settings(
        rpc_url=os.getenv("SOLANA_RPC_URL", DEFAULT_RPC_URL).strip(),
        rpc_api_key=_optional_str("SOLANA_RPC_API_KEY"),
        cluster=validate_cluster(os.getenv("SOLANA_CLUSTER", "mainnet-beta").strip()),
        custom_tokens=parse_custom_tokens(_optional_json("CUSTOM_TOKENS")),
        retry=RetryPolicy(
            max_attempts=_optional_int("RETRY_MAX_ATTEMPTS", 3),
            base_delay=_optional_int("RETRY_BASE_DELAY_MS", 1000) / 1000,
            max_delay=_optional_int("RETRY_MAX_DELAY_MS", 10000) / 1000,
        ),
        jupiter_api_url=os.getenv("JUPITER_API_URL", DEFAULT_JUPITER_API_URL).strip(),
        jupiter_api_key=_optional_str("JUPITER_API_KEY"),
        fetch_concurrency=concurrency,
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
