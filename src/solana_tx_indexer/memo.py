from __future__ import annotations

import json
import re
from collections.abc import Iterable
from dataclasses import dataclass

from .program_ids import MEMO_PROGRAM_IDS

_MEMO_LOG = re.compile(r'Program log: Memo \(len \d+\): "(.+)"')


@dataclass(frozen=True)
class SolanaPayMemo:
    raw: str
    merchant: str | None = None
    item: str | None = None
    reference: str | None = None
    label: str | None = None
    message: str | None = None


def extract_memo(log_messages: Iterable[str] | None) -> str | None:
    for line in log_messages or ():
        match = _MEMO_LOG.search(line)
        if match:
            return match.group(1)
    return None


def is_solana_pay_transaction(program_ids: Iterable[str], memo: str | None) -> bool:
    return memo is not None and any(p in MEMO_PROGRAM_IDS for p in program_ids)


def parse_solana_pay_memo(memo: str) -> SolanaPayMemo:
    try:
        parsed = json.loads(memo)
    except json.JSONDecodeError:
        return SolanaPayMemo(raw=memo)
    if not isinstance(parsed, dict):
        return SolanaPayMemo(raw=memo)

    def text(key: str) -> str | None:
        value = parsed.get(key)
        return str(value) if value is not None else None

    return SolanaPayMemo(
        raw=memo,
        merchant=text("merchant"),
        item=text("item"),
        reference=text("reference"),
        label=text("label"),
        message=text("message"),
    )
