from solana_tx_indexer.spam_filter import SpamFilterConfig, filter_spam_transactions, is_spam_transaction
from solana_tx_indexer.token_registry import MAINNET_TOKEN_INFO, SOL_TOKEN, KnownTokens
from solana_tx_indexer.types import ClassificationResult, ClassifiedTransaction, MoneyAmount, RawTransaction, TokenInfo

USDC = MAINNET_TOKEN_INFO[KnownTokens.USDC]
NFT = TokenInfo("Nft11111111111111111111111111111111111111111", "NFT", "Thing #7", 0)


def _result(token: TokenInfo, ui: float, confidence: float = 0.95, relevant: bool = True) -> ClassificationResult:
    return ClassificationResult(
        primary_type="transfer",
        primary_amount=MoneyAmount(token, int(ui * 10**token.decimals), ui),
        confidence=confidence,
        is_relevant=relevant,
    )


def test_failed_transactions_are_spam_unless_allowed() -> None:
    tx = RawTransaction(signature="s", err={"InstructionError": [0, "Custom"]})
    result = _result(SOL_TOKEN, 1.0)

    assert is_spam_transaction(tx, result)
    assert not is_spam_transaction(tx, result, SpamFilterConfig(allow_failed=True))


def test_dust_thresholds_depend_on_asset() -> None:
    tx = RawTransaction(signature="s")

    assert is_spam_transaction(tx, _result(SOL_TOKEN, 0.0001))
    assert not is_spam_transaction(tx, _result(SOL_TOKEN, 0.01))
    assert is_spam_transaction(tx, _result(USDC, 0.001))
    assert not is_spam_transaction(tx, _result(USDC, 0.5))
    assert not is_spam_transaction(tx, _result(NFT, 1))


def test_low_confidence_and_irrelevant_are_spam() -> None:
    tx = RawTransaction(signature="s")

    assert is_spam_transaction(tx, _result(USDC, 10, confidence=0.3))
    assert is_spam_transaction(tx, _result(USDC, 10, relevant=False))


def test_filter_keeps_order() -> None:
    items = [
        ClassifiedTransaction(RawTransaction(signature="a"), _result(USDC, 10)),
        ClassifiedTransaction(RawTransaction(signature="b"), _result(USDC, 0.0001)),
        ClassifiedTransaction(RawTransaction(signature="c"), _result(SOL_TOKEN, 2)),
    ]
    assert [item.tx.signature for item in filter_spam_transactions(items)] == ["a", "c"]
