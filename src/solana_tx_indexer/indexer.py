from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection
from typing import Any

from .balances import fetch_wallet_balance
from .config import Settings
from .legs import transaction_to_legs
from .pipeline import ClassificationPipeline
from .rpc import SolanaRpcClient, validate_address, validate_signature
from .spam_filter import SpamFilterConfig, filter_spam_transactions
from .token_resolver import TokenMetadataResolver, TokenRegistryConfig
from .transactions import fetch_transaction, fetch_transactions_batch, fetch_wallet_signatures
from .types import ClassifiedTransaction, RawTransaction, TokenInfo, WalletBalance, WalletSummary

logger = logging.getLogger(__name__)

MAX_SPAM_PAGES = 10


class TxIndexer:
    """Fetches a wallet's history from a node and classifies each transaction."""

    def __init__(
        self,
        rpc: SolanaRpcClient,
        resolver: TokenMetadataResolver,
        tracked_mints: Collection[str] | None = None,
        concurrency: int = 10,
        pipeline: ClassificationPipeline | None = None,
    ) -> None:
        self.rpc = rpc
        self.resolver = resolver
        self.tracked_mints = frozenset(tracked_mints) if tracked_mints is not None else None
        self.concurrency = concurrency
        self.pipeline = pipeline or ClassificationPipeline()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> TxIndexer:
        rpc = SolanaRpcClient(settings.rpc_endpoint, retry=settings.retry)
        resolver = TokenMetadataResolver(
            TokenRegistryConfig.for_cluster(
                settings.cluster,
                settings.custom_tokens,
                jupiter_api_url=settings.jupiter_api_url,
                jupiter_api_key=settings.jupiter_api_key,
                retry=settings.retry,
            ),
            rpc=rpc,
        )
        kwargs.setdefault("concurrency", settings.fetch_concurrency)
        return cls(rpc, resolver, **kwargs)

    async def close(self) -> None:
        await self.resolver.close()
        await self.rpc.close()

    async def __aenter__(self) -> TxIndexer:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def get_balance(
        self, address: str, tracked_mints: Collection[str] | None = None
    ) -> WalletBalance:
        validate_address(address)
        mints = tracked_mints if tracked_mints is not None else self.tracked_mints
        return await fetch_wallet_balance(self.rpc, self.resolver, address, mints)

    async def get_raw_transaction(self, signature: str) -> RawTransaction | None:
        validate_signature(signature)
        return await fetch_transaction(self.rpc, signature)

    async def get_transaction(
        self, signature: str, wallet: str | None = None
    ) -> ClassifiedTransaction | None:
        tx = await self.get_raw_transaction(signature)
        if tx is None:
            return None
        return await self.classify(tx, wallet)

    async def classify(self, tx: RawTransaction, wallet: str | None = None) -> ClassifiedTransaction:
        token_infos = await self._token_infos(tx)
        legs = transaction_to_legs(tx, self.tracked_mints, token_infos)
        classification = self.pipeline.classify(legs, tx, wallet)
        return ClassifiedTransaction(tx=tx, classification=classification)

    async def _token_infos(self, tx: RawTransaction) -> dict[str, TokenInfo]:
        decimals: dict[str, int] = {}
        for balance in (*tx.pre_token_balances, *tx.post_token_balances):
            decimals.setdefault(balance.mint, balance.decimals)
        if not decimals:
            return {}
        resolved = await asyncio.gather(
            *(self.resolver.get_token(mint, dec) for mint, dec in decimals.items())
        )
        return dict(zip(decimals, resolved))

    async def get_transactions(
        self,
        address: str,
        limit: int = 10,
        before: str | None = None,
        until: str | None = None,
        filter_spam: bool = True,
        spam_config: SpamFilterConfig | None = None,
    ) -> list[ClassifiedTransaction]:
        """Classified history for ``address``, newest first.

        With spam filtering on, further pages are fetched until ``limit``
        results survive the filter or the history runs out.
        """
        validate_address(address)
        if limit < 1:
            raise ValueError("limit must be >= 1")

        collected: list[ClassifiedTransaction] = []
        cursor = before
        pages = MAX_SPAM_PAGES if filter_spam else 1

        for page in range(pages):
            signatures = await fetch_wallet_signatures(
                self.rpc, address, limit=limit, before=cursor, until=until
            )
            if not signatures:
                break

            txs = await fetch_transactions_batch(
                self.rpc, [sig.signature for sig in signatures], self.concurrency
            )
            classified = list(await asyncio.gather(*(self.classify(tx, address) for tx in txs)))
            if filter_spam:
                kept = filter_spam_transactions(classified, spam_config or SpamFilterConfig())
                logger.debug(
                    "Page %d for %s: kept %d of %d transactions", page + 1, address, len(kept), len(classified)
                )
                classified = kept
            collected.extend(classified)

            if len(collected) >= limit or len(signatures) < limit:
                break
            cursor = signatures[-1].signature

        logger.info("Fetched %d classified transactions for %s", len(collected[:limit]), address)
        return collected[:limit]

    async def get_wallet_summary(self, address: str, limit: int = 10) -> WalletSummary:
        balance, transactions = await asyncio.gather(
            self.get_balance(address),
            self.get_transactions(address, limit=limit),
        )
        return WalletSummary(balance=balance, transactions=transactions)
