import asyncio

import pytest

from solana_tx_indexer.config import Settings
from solana_tx_indexer.errors import InvalidInputError
from solana_tx_indexer.indexer import TxIndexer
from solana_tx_indexer.program_ids import SYSTEM_PROGRAM_ID
from solana_tx_indexer.token_registry import MAINNET_TOKEN_INFO, KnownTokens, create_unknown_token
from solana_tx_indexer.types import TokenInfo

WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
OTHER = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


def _sol_transfer(amount: int) -> dict:
    return {
        "slot": 1,
        "blockTime": 1_700_000_000,
        "meta": {
            "err": None,
            "fee": 5000,
            "preBalances": [10_000_000_000, 0, 1],
            "postBalances": [10_000_000_000 - amount - 5000, amount, 1],
            "preTokenBalances": [],
            "postTokenBalances": [],
        },
        "transaction": {
            "message": {
                "accountKeys": [WALLET, OTHER, SYSTEM_PROGRAM_ID],
                "instructions": [{"programIdIndex": 2}],
            }
        },
    }


def _fee_only() -> dict:
    response = _sol_transfer(0)
    response["meta"]["postBalances"] = [10_000_000_000 - 5000, 0, 1]
    return response


class DummyRpc:
    def __init__(self) -> None:
        self.pages = {
            None: ["t1", "f1"],
            "f1": ["t2", "f2"],
            "f2": [],
        }
        self.transactions = {
            "t1": _sol_transfer(1_000_000_000),
            "t2": _sol_transfer(2_000_000_000),
            "f1": _fee_only(),
            "f2": _fee_only(),
            "5" * 88: _sol_transfer(3_000_000_000),
        }
        self.befores: list[str | None] = []
        self.closed = False

    async def get_signatures_for_address(self, address, limit=100, before=None, until=None):
        self.befores.append(before)
        return [{"signature": sig, "slot": 1} for sig in self.pages[before][:limit]]

    async def get_transaction(self, signature: str) -> dict | None:
        return self.transactions.get(signature)

    async def get_balance(self, address: str) -> int:
        return 2_500_000_000

    async def get_token_accounts_by_owner(self, address: str) -> list[dict]:
        return [
            {
                "pubkey": "usdcAta",
                "account": {
                    "data": {
                        "parsed": {
                            "info": {
                                "mint": KnownTokens.USDC,
                                "tokenAmount": {"amount": "12500000", "decimals": 6, "uiAmount": 12.5},
                            }
                        }
                    }
                },
            },
            {"pubkey": "broken", "account": {}},
        ]

    async def close(self) -> None:
        self.closed = True


class DummyResolver:
    def __init__(self) -> None:
        self.closed = False

    async def get_token(self, mint: str, decimals: int = 9) -> TokenInfo:
        return MAINNET_TOKEN_INFO.get(mint) or create_unknown_token(mint, decimals)

    async def get_tokens(self, mints, default_decimals: int = 9) -> dict[str, TokenInfo]:
        return {mint: await self.get_token(mint, default_decimals) for mint in mints}

    async def close(self) -> None:
        self.closed = True


def _indexer() -> TxIndexer:
    return TxIndexer(DummyRpc(), DummyResolver(), concurrency=2)


def test_spam_filter_paginates_until_limit() -> None:
    indexer = _indexer()

    txs = asyncio.run(indexer.get_transactions(WALLET, limit=2))

    assert [item.tx.signature for item in txs] == ["t1", "t2"]
    assert all(item.classification.primary_type == "transfer" for item in txs)
    assert txs[1].classification.primary_amount.amount_ui == 2.0
    assert indexer.rpc.befores == [None, "f1"]


def test_unfiltered_history_keeps_fee_only() -> None:
    indexer = _indexer()

    txs = asyncio.run(indexer.get_transactions(WALLET, limit=2, filter_spam=False))

    assert [item.classification.primary_type for item in txs] == ["transfer", "fee_only"]
    assert indexer.rpc.befores == [None]


def test_history_stops_when_exhausted() -> None:
    indexer = _indexer()
    indexer.rpc.pages = {None: ["f1"]}

    assert asyncio.run(indexer.get_transactions(WALLET, limit=5)) == []


def test_get_transaction_classifies_from_wallet_perspective() -> None:
    indexer = _indexer()

    item = asyncio.run(indexer.get_transaction("5" * 88, wallet=OTHER))

    assert item is not None
    assert item.classification.primary_type == "transfer"
    assert item.classification.metadata["direction"] == "incoming"
    assert asyncio.run(indexer.get_transaction("4" * 88)) is None


def test_get_balance_adds_missing_tracked_mints() -> None:
    indexer = _indexer()

    balance = asyncio.run(
        indexer.get_balance(WALLET, tracked_mints=[KnownTokens.SOL, KnownTokens.USDC, KnownTokens.BONK])
    )

    assert balance.sol == 2.5
    assert [(row.symbol, row.amount_ui) for row in balance.tokens] == [("USDC", 12.5), ("BONK", 0.0)]
    assert balance.tokens[0].token_account == "usdcAta"


def test_wallet_summary_combines_balance_and_history() -> None:
    indexer = _indexer()

    summary = asyncio.run(indexer.get_wallet_summary(WALLET, limit=1))

    assert summary.balance.lamports == 2_500_000_000
    assert [item.tx.signature for item in summary.transactions] == ["t1"]


def test_invalid_address_is_rejected_before_fetching() -> None:
    indexer = _indexer()
    with pytest.raises(InvalidInputError):
        asyncio.run(indexer.get_transactions("bad address"))
    assert indexer.rpc.befores == []


def test_context_manager_closes_collaborators() -> None:
    indexer = _indexer()

    async def run() -> None:
        async with indexer:
            pass

    asyncio.run(run())
    assert indexer.rpc.closed and indexer.resolver.closed


def test_from_settings_wires_endpoint_and_concurrency() -> None:
    settings = Settings(rpc_url="https://rpc.example.com", rpc_api_key="k", fetch_concurrency=4, cluster="devnet")
    indexer = TxIndexer.from_settings(settings)
    try:
        assert indexer.rpc.rpc_url.startswith("https://rpc.example.com")
        assert "api-key=k" in indexer.rpc.rpc_url
        assert indexer.concurrency == 4
        assert indexer.resolver.config.cluster == "devnet"
    finally:
        asyncio.run(indexer.close())
