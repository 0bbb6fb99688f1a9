from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection
from dataclasses import dataclass
from typing import Any

from .legs import LAMPORTS_PER_SOL
from .rpc import SolanaRpcClient
from .token_registry import NATIVE_SOL_MINT
from .token_resolver import TokenMetadataResolver
from .types import TokenAccountBalance, WalletBalance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _TokenAccount:
    address: str | None
    mint: str
    decimals: int
    amount_raw: int
    amount_ui: float


def _parse_token_account(item: dict[str, Any]) -> _TokenAccount | None:
    try:
        info = item["account"]["data"]["parsed"]["info"]
        amount = info["tokenAmount"]
        decimals = int(amount["decimals"])
        raw = int(amount["amount"])
    except (KeyError, TypeError, ValueError):
        return None
    ui_amount = amount.get("uiAmount")
    return _TokenAccount(
        address=item.get("pubkey"),
        mint=str(info["mint"]),
        decimals=decimals,
        amount_raw=raw,
        amount_ui=float(ui_amount) if ui_amount is not None else raw / 10**decimals,
    )


async def fetch_wallet_balance(
    rpc: SolanaRpcClient,
    resolver: TokenMetadataResolver,
    address: str,
    tracked_mints: Collection[str] | None = None,
) -> WalletBalance:
    lamports, raw_accounts = await asyncio.gather(
        rpc.get_balance(address),
        rpc.get_token_accounts_by_owner(address),
    )

    accounts = [acc for acc in map(_parse_token_account, raw_accounts) if acc is not None]
    if tracked_mints is not None:
        accounts = [acc for acc in accounts if acc.mint in tracked_mints]

    held = {acc.mint for acc in accounts}
    missing = [
        mint
        for mint in (tracked_mints or ())
        if mint != NATIVE_SOL_MINT and mint not in held
    ]

    mints = [acc.mint for acc in accounts] + missing
    tokens = await resolver.get_tokens(mints)

    balances = [
        TokenAccountBalance(
            mint=acc.mint,
            symbol=tokens[acc.mint].symbol,
            decimals=acc.decimals,
            amount_raw=acc.amount_raw,
            amount_ui=acc.amount_ui,
            token_account=acc.address,
        )
        for acc in accounts
    ]
    for mint in missing:
        token = tokens[mint]
        balances.append(
            TokenAccountBalance(
                mint=mint,
                symbol=token.symbol,
                decimals=token.decimals,
                amount_raw=0,
                amount_ui=0.0,
            )
        )

    logger.debug("Balance for %s: %d lamports, %d token rows", address, lamports, len(balances))
    return WalletBalance(
        address=address,
        lamports=lamports,
        sol=lamports / LAMPORTS_PER_SOL,
        tokens=balances,
    )
