import pytest

from solana_tx_indexer.account_id import FEE_ACCOUNT_ID, account_address, build_account_id, parse_account_id
from solana_tx_indexer.memo import extract_memo, is_solana_pay_transaction, parse_solana_pay_memo
from solana_tx_indexer.program_ids import MEMO_V1_PROGRAM_ID, PAYAI_FACILITATOR, detect_facilitator


def test_extract_memo_from_logs() -> None:
    logs = [
        "Program MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr invoke [1]",
        'Program log: Memo (len 12): "order #42 ok"',
    ]
    assert extract_memo(logs) == "order #42 ok"
    assert extract_memo(["Program log: nothing"]) is None
    assert extract_memo(None) is None


def test_solana_pay_detection_needs_memo_program_and_memo() -> None:
    assert is_solana_pay_transaction([MEMO_V1_PROGRAM_ID], "hi")
    assert not is_solana_pay_transaction([MEMO_V1_PROGRAM_ID], None)
    assert not is_solana_pay_transaction([], "hi")


def test_parse_solana_pay_memo() -> None:
    memo = parse_solana_pay_memo('{"merchant": "Cafe", "label": "Latte", "extra": 1}')
    assert memo.merchant == "Cafe"
    assert memo.label == "Latte"
    assert memo.item is None

    plain = parse_solana_pay_memo("thanks!")
    assert plain.raw == "thanks!"
    assert plain.merchant is None
    assert parse_solana_pay_memo("[1, 2]").merchant is None


def test_account_id_round_trip_shapes() -> None:
    assert build_account_id("external", "Abc") == "external:Abc"
    assert build_account_id("fee") == FEE_ACCOUNT_ID
    protocol_id = build_account_id("protocol", "Pool", protocol="raydium", token="USDC")
    assert protocol_id == "protocol:raydium:USDC:Pool"

    parsed = parse_account_id(protocol_id)
    assert (parsed.kind, parsed.protocol, parsed.token, parsed.address) == ("protocol", "raydium", "USDC", "Pool")
    assert parse_account_id(FEE_ACCOUNT_ID).kind == "fee"
    assert parse_account_id("weird").kind == "unknown"
    assert account_address("protocol:supply:Mint") == "Mint"


def test_protocol_account_needs_protocol() -> None:
    with pytest.raises(ValueError):
        build_account_id("protocol", "Pool")


def test_detect_facilitator() -> None:
    assert detect_facilitator(["x", PAYAI_FACILITATOR]) == "payai"
    assert detect_facilitator(["x"]) is None
