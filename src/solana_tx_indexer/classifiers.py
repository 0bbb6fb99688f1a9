from __future__ import annotations

from collections.abc import Collection, Iterable
from typing import Any, Protocol

from .account_id import account_address, parse_account_id
from .memo import is_solana_pay_transaction, parse_solana_pay_memo
from .program_ids import PRIVACY_CASH_FEE_RECIPIENT, PRIVACY_CASH_SUPPORTED_MINTS, detect_facilitator
from .protocols import (
    is_bridge_protocol,
    is_dex_protocol,
    is_nft_mint_protocol,
    is_privacy_protocol,
    is_stake_protocol,
)
from .token_registry import NATIVE_SOL_MINT
from .types import ClassificationResult, Leg, RawTransaction

OUTGOING_ROLES = frozenset({"sent", "protocol_deposit"})
INCOMING_ROLES = frozenset({"received", "protocol_withdraw"})


class Classifier(Protocol):
    name: str

    def classify(
        self, legs: list[Leg], tx: RawTransaction, wallet: str | None = None
    ) -> ClassificationResult | None: ...


def is_wallet_leg(leg: Leg, wallet: str | None) -> bool:
    """True when the leg belongs to the wallet under analysis.

    Without an explicit wallet every external account counts.
    """
    parsed = parse_account_id(leg.account_id)
    if parsed.kind not in ("external", "wallet"):
        return False
    return wallet is None or parsed.address == wallet


def _is_sol(leg: Leg) -> bool:
    return leg.amount.token.mint == NATIVE_SOL_MINT


def _owned_by(leg: Leg, address: str | None) -> bool:
    parsed = parse_account_id(leg.account_id)
    return parsed.kind in ("external", "wallet") and parsed.address == address


def _non_fee(legs: Iterable[Leg]) -> list[Leg]:
    return [leg for leg in legs if leg.role != "fee"]


def _outgoing(legs: Iterable[Leg]) -> list[Leg]:
    return [leg for leg in legs if leg.side == "debit" and leg.role in OUTGOING_ROLES]


def _incoming(legs: Iterable[Leg]) -> list[Leg]:
    return [leg for leg in legs if leg.side == "credit" and leg.role in INCOMING_ROLES]


def _largest(legs: Iterable[Leg]) -> Leg | None:
    return max(legs, key=lambda leg: leg.amount.amount_ui, default=None)


def _dominant(legs: list[Leg]) -> Leg | None:
    nfts = [leg for leg in legs if leg.amount.token.is_nft]
    return nfts[0] if nfts else _largest(legs)


def _perspective(tx: RawTransaction, wallet: str | None) -> str | None:
    return wallet or tx.fee_payer


def _with_facilitator(tx: RawTransaction, metadata: dict[str, Any]) -> dict[str, Any]:
    facilitator = detect_facilitator(tx.account_keys)
    if facilitator:
        metadata["facilitator"] = facilitator
    return metadata


def find_transfer_pair(legs: list[Leg], wallet: str | None) -> tuple[Leg, Leg] | None:
    """Best sent/received pair of one mint between two different accounts."""
    best: tuple[Leg, Leg] | None = None
    best_score = -1.0
    for debit in legs:
        if debit.side != "debit" or debit.role != "sent":
            continue
        for credit in legs:
            if credit.side != "credit" or credit.role != "received":
                continue
            if credit.amount.token.mint != debit.amount.token.mint:
                continue
            if account_address(credit.account_id) == account_address(debit.account_id):
                continue
            if not (is_wallet_leg(debit, wallet) or is_wallet_leg(credit, wallet)):
                continue
            score = min(debit.amount.amount_ui, credit.amount.amount_ui)
            if score > best_score:
                best, best_score = (debit, credit), score
    return best


class SolanaPayClassifier:
    name = "solana-pay"

    def classify(
        self, legs: list[Leg], tx: RawTransaction, wallet: str | None = None
    ) -> ClassificationResult | None:
        if not is_solana_pay_transaction(tx.program_ids, tx.memo):
            return None
        pair = find_transfer_pair(legs, wallet)
        if pair is None:
            return None
        debit, credit = pair
        memo = parse_solana_pay_memo(tx.memo or "")

        metadata: dict[str, Any] = {"payment_type": "solana_pay", "memo": memo.raw}
        for key in ("merchant", "item", "reference", "label", "message"):
            value = getattr(memo, key)
            if value is not None:
                metadata[key] = value

        return ClassificationResult(
            primary_type="transfer",
            primary_amount=debit.amount,
            sender=account_address(debit.account_id),
            receiver=account_address(credit.account_id),
            confidence=0.98,
            is_relevant=True,
            metadata=_with_facilitator(tx, metadata),
        )


class BridgeClassifier:
    """Cross-chain moves in or out of the wallet.

    Without an explicit wallet the fee payer's legs are read; when the payer
    holds none, all external legs are, and a transaction with both directions
    counts as incoming.
    """

    name = "bridge"

    def classify(
        self, legs: list[Leg], tx: RawTransaction, wallet: str | None = None
    ) -> ClassificationResult | None:
        if tx.protocol is None or not is_bridge_protocol(tx.protocol):
            return None

        owner = _perspective(tx, wallet)
        wallet_legs = _non_fee(leg for leg in legs if _owned_by(leg, owner))
        narrowed = bool(wallet_legs) or wallet is not None
        if not narrowed:
            wallet_legs = _non_fee(leg for leg in legs if is_wallet_leg(leg, None))
        outgoing = _outgoing(wallet_legs)
        incoming = _incoming(wallet_legs)
        if not outgoing and not incoming:
            return None

        if incoming and not outgoing:
            direction = "bridge_in"
        elif outgoing and not incoming:
            direction = "bridge_out"
        elif not narrowed:
            direction = "bridge_in"
        else:
            direction = "bridge_in" if _dominant(outgoing + incoming) in incoming else "bridge_out"

        primary = _dominant(incoming if direction == "bridge_in" else outgoing)
        if primary is None:
            return None
        top_out = _dominant(outgoing)
        top_in = _dominant(incoming)

        return ClassificationResult(
            primary_type=direction,
            primary_amount=primary.amount,
            sender=account_address(top_out.account_id) if top_out else None,
            receiver=account_address(top_in.account_id) if top_in else None,
            confidence=0.9,
            is_relevant=True,
            metadata={
                "bridge_protocol": tx.protocol.id,
                "bridge_name": tx.protocol.name,
            },
        )


class PrivacyCashClassifier:
    """Deposits into and withdrawals from a shielded pool.

    ``pool_accounts`` lists pool and fee-recipient addresses; a leg on one of them
    marks the transaction even when the program id itself is not among the
    account keys.
    """

    name = "privacy-cash"

    def __init__(self, pool_accounts: Collection[str] = (PRIVACY_CASH_FEE_RECIPIENT,)) -> None:
        self.pool_accounts = frozenset(pool_accounts)

    def _touches_pool(self, legs: list[Leg]) -> bool:
        return any(account_address(leg.account_id) in self.pool_accounts for leg in legs)

    def classify(
        self, legs: list[Leg], tx: RawTransaction, wallet: str | None = None
    ) -> ClassificationResult | None:
        if not is_privacy_protocol(tx.protocol) and not self._touches_pool(legs):
            return None

        wallet_legs = _non_fee(
            leg
            for leg in legs
            if is_wallet_leg(leg, wallet)
            and account_address(leg.account_id) not in self.pool_accounts
        )
        outgoing = _outgoing(wallet_legs)
        incoming = _incoming(wallet_legs)
        dominant = _dominant(outgoing + incoming)
        if dominant is None:
            return None

        deposit = dominant in outgoing
        token = dominant.amount.token
        supported = token.mint == NATIVE_SOL_MINT or token.mint in PRIVACY_CASH_SUPPORTED_MINTS
        fee = next((leg for leg in legs if leg.role == "fee" and leg.side == "debit"), None)
        address = account_address(dominant.account_id)

        return ClassificationResult(
            primary_type="privacy_deposit" if deposit else "privacy_withdraw",
            primary_amount=dominant.amount,
            sender=address if deposit else None,
            receiver=None if deposit else address,
            confidence=0.95 if supported else 0.85,
            is_relevant=True,
            metadata={
                "privacy_protocol": "privacy-cash",
                "privacy_operation": "shield" if deposit else "unshield",
                "token": token.symbol,
                "fee_amount": fee.amount.amount_ui if fee else None,
            },
        )


class NftMintClassifier:
    name = "nft-mint"

    def classify(
        self, legs: list[Leg], tx: RawTransaction, wallet: str | None = None
    ) -> ClassificationResult | None:
        if tx.protocol is None or not is_nft_mint_protocol(tx.protocol):
            return None

        minted = [
            leg
            for leg in legs
            if is_wallet_leg(leg, wallet) and leg.side == "credit" and leg.amount.token.is_nft
        ]
        if not minted:
            return None

        nft = minted[0]
        receiver = account_address(nft.account_id)
        payment = _largest(
            leg
            for leg in _outgoing(legs)
            if _owned_by(leg, receiver) and not leg.amount.token.is_nft
        )

        return ClassificationResult(
            primary_type="nft_mint",
            primary_amount=nft.amount,
            secondary_amount=payment.amount if payment else None,
            receiver=receiver,
            confidence=0.9,
            is_relevant=True,
            metadata={
                "nft_mint": nft.amount.token.mint,
                "nft_name": nft.amount.token.name,
                "mint_program": tx.protocol.id,
                "quantity": len(minted),
            },
        )


class StakeDepositClassifier:
    name = "stake-deposit"

    def classify(
        self, legs: list[Leg], tx: RawTransaction, wallet: str | None = None
    ) -> ClassificationResult | None:
        if tx.protocol is None or not is_stake_protocol(tx.protocol):
            return None
        owner = _perspective(tx, wallet)
        deposit = _largest(
            leg for leg in _outgoing(legs) if _is_sol(leg) and _owned_by(leg, owner)
        )
        if deposit is None:
            return None

        stake_account = _largest(
            leg for leg in _incoming(legs) if _is_sol(leg) and not _owned_by(leg, owner)
        )
        return ClassificationResult(
            primary_type="staking",
            primary_amount=deposit.amount,
            sender=owner,
            receiver=account_address(stake_account.account_id) if stake_account else None,
            confidence=0.9,
            is_relevant=True,
            metadata={"staking_action": "deposit", "stake_protocol": tx.protocol.id},
        )


class StakeWithdrawClassifier:
    name = "stake-withdraw"

    def classify(
        self, legs: list[Leg], tx: RawTransaction, wallet: str | None = None
    ) -> ClassificationResult | None:
        if tx.protocol is None or not is_stake_protocol(tx.protocol):
            return None
        owner = _perspective(tx, wallet)
        owned = [leg for leg in legs if _owned_by(leg, owner) and _is_sol(leg)]
        if _outgoing(owned):
            return None
        withdrawal = _largest(_incoming(owned))
        if withdrawal is None:
            return None

        stake_account = _largest(
            leg for leg in _outgoing(legs) if _is_sol(leg) and not _owned_by(leg, owner)
        )
        return ClassificationResult(
            primary_type="staking",
            primary_amount=withdrawal.amount,
            sender=account_address(stake_account.account_id) if stake_account else None,
            receiver=owner,
            confidence=0.9,
            is_relevant=True,
            metadata={"staking_action": "withdraw", "stake_protocol": tx.protocol.id},
        )


class SwapClassifier:
    name = "swap"

    def classify(
        self, legs: list[Leg], tx: RawTransaction, wallet: str | None = None
    ) -> ClassificationResult | None:
        if tx.protocol is None:
            return None
        owner = _perspective(tx, wallet)
        owned = _non_fee(leg for leg in legs if _owned_by(leg, owner))

        best: tuple[Leg, Leg] | None = None
        best_score = -1.0
        for out_leg in _outgoing(owned):
            for in_leg in _incoming(owned):
                if out_leg.amount.token.mint == in_leg.amount.token.mint:
                    continue
                score = max(out_leg.amount.amount_ui, in_leg.amount.amount_ui)
                if score > best_score:
                    best, best_score = (out_leg, in_leg), score
        if best is None:
            return None

        out_leg, in_leg = best
        from_token = out_leg.amount.token
        to_token = in_leg.amount.token
        if from_token.mint == NATIVE_SOL_MINT:
            swap_type = "sol_to_token"
        elif to_token.mint == NATIVE_SOL_MINT:
            swap_type = "token_to_sol"
        else:
            swap_type = "token_to_token"

        return ClassificationResult(
            primary_type="swap",
            primary_amount=out_leg.amount,
            secondary_amount=in_leg.amount,
            sender=owner,
            receiver=owner,
            confidence=0.95 if is_dex_protocol(tx.protocol) else 0.75,
            is_relevant=True,
            metadata={
                "swap_type": swap_type,
                "protocol": tx.protocol.id,
                "from_token": from_token.symbol,
                "to_token": to_token.symbol,
                "from_amount": out_leg.amount.amount_ui,
                "to_amount": in_leg.amount.amount_ui,
            },
        )


class StakeRewardClassifier:
    name = "stake-reward"

    def classify(
        self, legs: list[Leg], tx: RawTransaction, wallet: str | None = None
    ) -> ClassificationResult | None:
        if tx.protocol is None or not is_stake_protocol(tx.protocol):
            return None
        rewards = [
            leg
            for leg in legs
            if is_wallet_leg(leg, wallet) and leg.side == "credit" and leg.role == "reward"
        ]
        reward = _largest(rewards)
        if reward is None:
            return None
        receiver = account_address(reward.account_id)
        if any(leg.side == "debit" for leg in _non_fee(legs) if _owned_by(leg, receiver)):
            return None

        return ClassificationResult(
            primary_type="staking",
            primary_amount=reward.amount,
            receiver=receiver,
            confidence=0.85,
            is_relevant=True,
            metadata={"staking_action": "reward", "stake_protocol": tx.protocol.id},
        )


class AirdropClassifier:
    name = "airdrop"

    def classify(
        self, legs: list[Leg], tx: RawTransaction, wallet: str | None = None
    ) -> ClassificationResult | None:
        protocol_legs = [leg for leg in legs if parse_account_id(leg.account_id).kind == "protocol"]
        if not protocol_legs:
            return None

        wallet_legs = _non_fee(leg for leg in legs if is_wallet_leg(leg, wallet) and not _is_sol(leg))
        if any(leg.side == "debit" for leg in wallet_legs):
            return None
        received = _largest(leg for leg in wallet_legs if leg.side == "credit")
        if received is None:
            return None

        source = _largest(
            leg
            for leg in protocol_legs
            if leg.side == "debit" and leg.amount.token.mint == received.amount.token.mint
        )
        return ClassificationResult(
            primary_type="airdrop",
            primary_amount=received.amount,
            sender=account_address(source.account_id) if source else None,
            receiver=account_address(received.account_id),
            confidence=0.85,
            is_relevant=True,
            metadata=_with_facilitator(
                tx, {"airdrop_type": "nft" if received.amount.token.is_nft else "token"}
            ),
        )


class FeeOnlyClassifier:
    name = "fee-only"

    def classify(
        self, legs: list[Leg], tx: RawTransaction, wallet: str | None = None
    ) -> ClassificationResult | None:
        wallet_legs = [leg for leg in legs if is_wallet_leg(leg, wallet)]
        if not wallet_legs or any(leg.role != "fee" for leg in wallet_legs):
            return None

        fee = _largest(wallet_legs)
        if fee is None:
            return None
        return ClassificationResult(
            primary_type="fee_only",
            primary_amount=fee.amount,
            sender=tx.fee_payer or account_address(fee.account_id),
            confidence=0.95,
            is_relevant=False,
            metadata={"fee_type": "network"},
        )


class TransferClassifier:
    name = "transfer"

    def classify(
        self, legs: list[Leg], tx: RawTransaction, wallet: str | None = None
    ) -> ClassificationResult | None:
        pair = find_transfer_pair(legs, wallet)
        if pair is None:
            return None
        debit, credit = pair
        sender = account_address(debit.account_id)
        receiver = account_address(credit.account_id)

        metadata: dict[str, Any] = {}
        if wallet is not None:
            metadata["direction"] = "incoming" if receiver == wallet else "outgoing"
        incoming = metadata.get("direction") == "incoming"

        return ClassificationResult(
            primary_type="transfer",
            primary_amount=credit.amount if incoming else debit.amount,
            sender=sender,
            receiver=receiver,
            confidence=0.95,
            is_relevant=True,
            metadata=_with_facilitator(tx, metadata),
        )


class UnknownClassifier:
    name = "unknown"

    def classify(
        self, legs: list[Leg], tx: RawTransaction, wallet: str | None = None
    ) -> ClassificationResult | None:
        largest = _largest(_non_fee(legs))
        return ClassificationResult(
            primary_type="unknown",
            primary_amount=largest.amount if largest else None,
            confidence=0.0,
            is_relevant=False,
            metadata={"protocol": tx.protocol.id} if tx.protocol else {},
        )
