from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .token_registry import NATIVE_SOL_MINT
from .types import ClassificationResult, ClassifiedTransaction, RawTransaction


@dataclass(frozen=True)
class SpamFilterConfig:
    min_sol_amount: float = 0.001
    min_token_amount: float = 0.01
    min_confidence: float = 0.5
    allow_failed: bool = False


DEFAULT_SPAM_FILTER = SpamFilterConfig()


def is_dust(classification: ClassificationResult, config: SpamFilterConfig) -> bool:
    amount = classification.primary_amount
    if amount is None or amount.token.is_nft:
        return False
    if amount.token.mint == NATIVE_SOL_MINT:
        return amount.amount_ui < config.min_sol_amount
    return amount.amount_ui < config.min_token_amount


def is_spam_transaction(
    tx: RawTransaction,
    classification: ClassificationResult,
    config: SpamFilterConfig = DEFAULT_SPAM_FILTER,
) -> bool:
    if tx.err is not None and not config.allow_failed:
        return True
    if not classification.is_relevant:
        return True
    if classification.confidence < config.min_confidence:
        return True
    return is_dust(classification, config)


def filter_spam_transactions(
    items: Iterable[ClassifiedTransaction],
    config: SpamFilterConfig = DEFAULT_SPAM_FILTER,
) -> list[ClassifiedTransaction]:
    return [item for item in items if not is_spam_transaction(item.tx, item.classification, config)]
