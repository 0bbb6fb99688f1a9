from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from .memo import extract_memo
from .protocols import detect_protocol
from .rpc import SolanaRpcClient
from .types import RawTransaction, SignatureInfo, TokenBalance

logger = logging.getLogger(__name__)


async def fetch_wallet_signatures(
    rpc: SolanaRpcClient,
    address: str,
    limit: int = 100,
    before: str | None = None,
    until: str | None = None,
) -> list[SignatureInfo]:
    rows = await rpc.get_signatures_for_address(address, limit=limit, before=before, until=until)
    out: list[SignatureInfo] = []
    for row in rows:
        if not isinstance(row, dict) or not row.get("signature"):
            continue
        out.append(
            SignatureInfo(
                signature=str(row["signature"]),
                slot=int(row.get("slot") or 0),
                block_time=row.get("blockTime"),
                err=row.get("err"),
                memo=row.get("memo"),
            )
        )
    return out


def _account_keys(message: dict[str, Any], meta: dict[str, Any]) -> list[str]:
    keys: list[str] = []
    for key in message.get("accountKeys") or []:
        if isinstance(key, dict):
            keys.append(str(key.get("pubkey", "")))
        else:
            keys.append(str(key))

    # Plain json encoding lists lookup-table addresses separately; jsonParsed inlines them.
    loaded = meta.get("loadedAddresses") or {}
    seen = set(keys)
    for address in [*(loaded.get("writable") or []), *(loaded.get("readonly") or [])]:
        if address not in seen:
            keys.append(address)
            seen.add(address)
    return keys


def _instruction_program(instruction: dict[str, Any], keys: list[str]) -> str | None:
    program_id = instruction.get("programId")
    if program_id:
        return str(program_id)
    index = instruction.get("programIdIndex")
    if isinstance(index, int) and 0 <= index < len(keys):
        return keys[index]
    return None


def _program_ids(
    message: dict[str, Any], meta: dict[str, Any], keys: list[str]
) -> tuple[str, ...]:
    instructions = list(message.get("instructions") or [])
    for inner in meta.get("innerInstructions") or []:
        instructions.extend(inner.get("instructions") or [])

    found: dict[str, None] = {}
    for instruction in instructions:
        if not isinstance(instruction, dict):
            continue
        program_id = _instruction_program(instruction, keys)
        if program_id:
            found.setdefault(program_id, None)
    return tuple(found)


def _parsed_memo(message: dict[str, Any]) -> str | None:
    for instruction in message.get("instructions") or []:
        if isinstance(instruction, dict) and instruction.get("program") == "spl-memo":
            parsed = instruction.get("parsed")
            if isinstance(parsed, str):
                return parsed
    return None


def _token_balances(rows: Any) -> tuple[TokenBalance, ...]:
    out: list[TokenBalance] = []
    for row in rows or []:
        amount = row.get("uiTokenAmount") or {}
        decimals = int(amount.get("decimals", 0))
        raw = int(amount.get("amount", "0"))
        ui_amount = amount.get("uiAmount")
        out.append(
            TokenBalance(
                account_index=int(row["accountIndex"]),
                mint=str(row["mint"]),
                owner=row.get("owner"),
                amount_raw=raw,
                decimals=decimals,
                ui_amount=float(ui_amount) if ui_amount is not None else raw / 10**decimals,
            )
        )
    return tuple(out)


def parse_transaction(signature: str, response: dict[str, Any]) -> RawTransaction:
    """Normalise a ``getTransaction`` result into a :class:`RawTransaction`."""
    meta = response.get("meta") or {}
    message = (response.get("transaction") or {}).get("message") or {}
    keys = _account_keys(message, meta)
    program_ids = _program_ids(message, meta, keys)

    return RawTransaction(
        signature=signature,
        slot=response.get("slot"),
        block_time=response.get("blockTime"),
        err=meta.get("err"),
        program_ids=program_ids,
        protocol=detect_protocol(program_ids),
        fee=int(meta.get("fee") or 0),
        account_keys=tuple(keys),
        pre_balances=tuple(int(v) for v in meta.get("preBalances") or []),
        post_balances=tuple(int(v) for v in meta.get("postBalances") or []),
        pre_token_balances=_token_balances(meta.get("preTokenBalances")),
        post_token_balances=_token_balances(meta.get("postTokenBalances")),
        memo=extract_memo(meta.get("logMessages")) or _parsed_memo(message),
    )


async def fetch_transaction(rpc: SolanaRpcClient, signature: str) -> RawTransaction | None:
    response = await rpc.get_transaction(signature)
    if response is None:
        return None
    return parse_transaction(signature, response)


async def fetch_transactions_batch(
    rpc: SolanaRpcClient,
    signatures: Sequence[str],
    concurrency: int = 10,
) -> list[RawTransaction]:
    """Fetch transactions concurrently, preserving input order.

    Signatures that fail or are unknown to the node are logged and skipped.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")
    semaphore = asyncio.Semaphore(concurrency)

    async def fetch_one(signature: str) -> RawTransaction | None:
        async with semaphore:
            try:
                return await fetch_transaction(rpc, signature)
            except Exception as exc:
                logger.warning("Skipping transaction %s: %s", signature, exc)
                return None

    results = await asyncio.gather(*(fetch_one(signature) for signature in signatures))
    return [tx for tx in results if tx is not None]
