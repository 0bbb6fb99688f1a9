import asyncio

from solana_tx_indexer import program_ids as pid
from solana_tx_indexer.errors import NetworkError
from solana_tx_indexer.token_registry import KnownTokens
from solana_tx_indexer.transactions import (
    fetch_transactions_batch,
    fetch_wallet_signatures,
    parse_transaction,
)

WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
OTHER = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
LOOKUP = "LkupAddr11111111111111111111111111111111111"


def _response(**meta_overrides) -> dict:
    meta = {
        "err": None,
        "fee": 5000,
        "preBalances": [2_000_000_000, 0, 1, 1],
        "postBalances": [1_999_995_000, 0, 1, 1],
        "preTokenBalances": [
            {
                "accountIndex": 1,
                "mint": KnownTokens.USDC,
                "owner": WALLET,
                "uiTokenAmount": {"amount": "1000000", "decimals": 6, "uiAmount": 1.0},
            }
        ],
        "postTokenBalances": [
            {
                "accountIndex": 1,
                "mint": KnownTokens.USDC,
                "owner": WALLET,
                "uiTokenAmount": {"amount": "0", "decimals": 6, "uiAmount": None},
            }
        ],
        "innerInstructions": [
            {"index": 0, "instructions": [{"programId": pid.TOKEN_PROGRAM_ID, "parsed": {}}]}
        ],
        "logMessages": [
            f"Program {pid.JUPITER_V6_PROGRAM_ID} invoke [1]",
            'Program log: Memo (len 11): "hello world"',
        ],
    }
    meta.update(meta_overrides)
    return {
        "slot": 250_000_000,
        "blockTime": 1_700_000_000,
        "meta": meta,
        "transaction": {
            "signatures": ["sig"],
            "message": {
                "accountKeys": [
                    {"pubkey": WALLET, "signer": True, "writable": True},
                    {"pubkey": OTHER, "signer": False, "writable": True},
                    {"pubkey": pid.JUPITER_V6_PROGRAM_ID, "signer": False, "writable": False},
                    {"pubkey": pid.TOKEN_PROGRAM_ID, "signer": False, "writable": False},
                ],
                "instructions": [{"programId": pid.JUPITER_V6_PROGRAM_ID, "accounts": []}],
            },
        },
    }


def test_parse_transaction_collects_programs_balances_and_memo() -> None:
    tx = parse_transaction("sig", _response())

    assert tx.slot == 250_000_000
    assert tx.fee == 5000
    assert tx.fee_payer == WALLET
    assert tx.program_ids == (pid.JUPITER_V6_PROGRAM_ID, pid.TOKEN_PROGRAM_ID)
    assert tx.protocol is not None and tx.protocol.id == "jupiter"
    assert tx.memo == "hello world"
    assert tx.pre_token_balances[0].amount_raw == 1_000_000
    assert tx.post_token_balances[0].ui_amount == 0.0


def test_parse_transaction_appends_loaded_addresses_for_plain_keys() -> None:
    response = _response(loadedAddresses={"writable": [LOOKUP], "readonly": []})
    message = response["transaction"]["message"]
    message["accountKeys"] = [WALLET, OTHER, pid.STAKE_PROGRAM_ID]
    message["instructions"] = [{"programIdIndex": 2, "accounts": [0, 3]}]
    response["meta"]["innerInstructions"] = []

    tx = parse_transaction("sig", response)

    assert tx.account_keys == (WALLET, OTHER, pid.STAKE_PROGRAM_ID, LOOKUP)
    assert tx.program_ids == (pid.STAKE_PROGRAM_ID,)
    assert tx.protocol is not None and tx.protocol.id == "stake"


def test_parse_transaction_keeps_failure() -> None:
    tx = parse_transaction("sig", _response(err={"InstructionError": [0, "Custom"]}, logMessages=None))
    assert tx.err == {"InstructionError": [0, "Custom"]}
    assert tx.memo is None


class DummyRpc:
    def __init__(self, responses: dict) -> None:
        self.responses = responses
        self.active = 0
        self.peak = 0

    async def get_transaction(self, signature: str) -> dict | None:
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0)
        self.active -= 1
        response = self.responses[signature]
        if isinstance(response, Exception):
            raise response
        return response

    async def get_signatures_for_address(self, address, limit=100, before=None, until=None):
        return [
            {"signature": "a", "slot": 2, "blockTime": 10, "err": None, "memo": None},
            {"signature": "b", "slot": 1, "blockTime": None, "err": {"x": 1}, "memo": "m"},
            {"slot": 0},
        ]


def test_batch_skips_failures_and_keeps_order() -> None:
    rpc = DummyRpc(
        {
            "one": _response(),
            "two": NetworkError("timeout: getTransaction"),
            "three": None,
            "four": _response(),
        }
    )

    txs = asyncio.run(fetch_transactions_batch(rpc, ["one", "two", "three", "four"], concurrency=2))

    assert [tx.signature for tx in txs] == ["one", "four"]
    assert rpc.peak <= 2


def test_fetch_wallet_signatures_drops_rows_without_signature() -> None:
    sigs = asyncio.run(fetch_wallet_signatures(DummyRpc({}), WALLET))

    assert [sig.signature for sig in sigs] == ["a", "b"]
    assert sigs[1].err == {"x": 1}
    assert sigs[1].memo == "m"
