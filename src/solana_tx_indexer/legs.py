from __future__ import annotations

from collections import defaultdict
from collections.abc import Collection, Mapping
from dataclasses import dataclass

from .account_id import FEE_ACCOUNT_ID, build_account_id
from .protocols import is_dex_protocol, is_stake_protocol
from .token_registry import SOL_TOKEN, create_unknown_token, get_token_info
from .types import Leg, LegRole, MoneyAmount, RawTransaction, TokenBalance, TokenInfo

LAMPORTS_PER_SOL = 1_000_000_000
SUPPLY_PROTOCOL = "supply"


@dataclass(frozen=True)
class SolBalanceChange:
    account_index: int
    address: str
    pre: int
    post: int

    @property
    def change(self) -> int:
        return self.post - self.pre


@dataclass(frozen=True)
class TokenBalanceChange:
    account_index: int
    mint: str
    owner: str | None
    token: TokenInfo
    decimals: int
    pre: int
    post: int

    @property
    def change(self) -> int:
        return self.post - self.pre

    @property
    def change_ui(self) -> float:
        return self.change / 10**self.decimals


@dataclass(frozen=True)
class LegTokenBalance:
    debits: int
    credits: int

    @property
    def diff(self) -> int:
        return self.credits - self.debits


@dataclass(frozen=True)
class LegBalanceResult:
    is_balanced: bool
    by_mint: dict[str, LegTokenBalance]


def extract_sol_balance_changes(tx: RawTransaction) -> list[SolBalanceChange]:
    changes: list[SolBalanceChange] = []
    for idx, address in enumerate(tx.account_keys):
        if not address:
            continue
        pre = tx.pre_balances[idx] if idx < len(tx.pre_balances) else 0
        post = tx.post_balances[idx] if idx < len(tx.post_balances) else 0
        if post != pre:
            changes.append(SolBalanceChange(idx, address, int(pre), int(post)))
    return changes


def extract_token_balance_changes(
    tx: RawTransaction,
    tracked_mints: Collection[str] | None = None,
    token_infos: Mapping[str, TokenInfo] | None = None,
) -> list[TokenBalanceChange]:
    pre_by_index: dict[int, TokenBalance] = {b.account_index: b for b in tx.pre_token_balances}
    post_by_index: dict[int, TokenBalance] = {b.account_index: b for b in tx.post_token_balances}

    changes: list[TokenBalanceChange] = []
    # Accounts closed during the transaction only show up in the pre balances.
    for idx in sorted(set(pre_by_index) | set(post_by_index)):
        pre = pre_by_index.get(idx)
        post = post_by_index.get(idx)
        row = post or pre
        if row is None:
            continue
        if tracked_mints is not None and row.mint not in tracked_mints:
            continue

        pre_raw = pre.amount_raw if pre else 0
        post_raw = post.amount_raw if post else 0
        if pre_raw == post_raw:
            continue

        changes.append(
            TokenBalanceChange(
                account_index=idx,
                mint=row.mint,
                owner=row.owner or (pre.owner if pre else None),
                token=_resolve_token(row.mint, row.decimals, token_infos),
                decimals=row.decimals,
                pre=pre_raw,
                post=post_raw,
            )
        )
    return changes


def _resolve_token(
    mint: str, decimals: int, token_infos: Mapping[str, TokenInfo] | None
) -> TokenInfo:
    if token_infos and mint in token_infos:
        return token_infos[mint]
    return get_token_info(mint) or create_unknown_token(mint, decimals)


def _sol_amount(lamports: int) -> MoneyAmount:
    lamports = abs(lamports)
    return MoneyAmount(token=SOL_TOKEN, amount_raw=lamports, amount_ui=lamports / LAMPORTS_PER_SOL)


def transaction_to_legs(
    tx: RawTransaction,
    tracked_mints: Collection[str] | None = None,
    token_infos: Mapping[str, TokenInfo] | None = None,
) -> list[Leg]:
    """Turn a transaction's pre/post balances into a closed double-entry ledger.

    The fee payer's SOL movement is split into a ``fee`` debit and a separate
    programmatic leg; a ``fee:network`` credit balances the fee. Ordering is by
    account index, then mint, with the network fee leg last.
    """
    fee_payer = tx.fee_payer
    keyed: list[tuple[tuple[int, str, int], Leg]] = []

    def add(index: int, mint: str, leg: Leg) -> None:
        keyed.append(((index, mint, len(keyed)), leg))

    sol_changes = extract_sol_balance_changes(tx)
    imbalance = -sum(change.change for change in sol_changes)
    network_fee = tx.fee if tx.fee > 0 else max(imbalance, 0)
    charge_fee = fee_payer is not None and network_fee > 0

    if charge_fee:
        # A payer refunded exactly the fee still needs its offsetting leg.
        if all(change.account_index != 0 for change in sol_changes):
            pre = tx.pre_balances[0] if tx.pre_balances else 0
            post = tx.post_balances[0] if tx.post_balances else 0
            sol_changes.insert(0, SolBalanceChange(0, fee_payer, int(pre), int(post)))

        add(
            0,
            SOL_TOKEN.mint,
            Leg(
                account_id=build_account_id("external", fee_payer),
                side="debit",
                role="fee",
                amount=_sol_amount(network_fee),
            ),
        )

    for change in sol_changes:
        delta = change.change
        is_payer = change.account_index == 0
        if is_payer and charge_fee:
            delta += network_fee
        if delta == 0:
            continue
        add(
            change.account_index,
            SOL_TOKEN.mint,
            Leg(
                account_id=build_account_id("external", change.address),
                side="credit" if delta > 0 else "debit",
                role=_sol_role(delta, is_payer, tx),
                amount=_sol_amount(delta),
            ),
        )

    dex = is_dex_protocol(tx.protocol)
    token_changes = extract_token_balance_changes(tx, tracked_mints, token_infos)
    for change in token_changes:
        owner = change.owner or change.mint
        is_payer = fee_payer is not None and change.owner == fee_payer
        if dex and not is_payer:
            account_id = build_account_id(
                "protocol", owner, protocol=tx.protocol.id, token=change.token.symbol
            )
        else:
            account_id = build_account_id("external", owner)

        add(
            change.account_index,
            change.mint,
            Leg(
                account_id=account_id,
                side="credit" if change.change > 0 else "debit",
                role=_token_role(change.change > 0, is_payer, dex),
                amount=MoneyAmount(
                    token=change.token,
                    amount_raw=abs(change.change),
                    amount_ui=abs(change.change_ui),
                ),
            ),
        )

    keyed.sort(key=lambda item: item[0])
    legs = [leg for _, leg in keyed]
    legs.extend(_supply_legs(token_changes))

    if charge_fee:
        legs.append(
            Leg(
                account_id=FEE_ACCOUNT_ID,
                side="credit",
                role="fee",
                amount=_sol_amount(network_fee),
            )
        )
    return legs


def _supply_legs(changes: list[TokenBalanceChange]) -> list[Leg]:
    """Balance minted or burned supply against a per-mint issuance account."""
    net: dict[str, int] = defaultdict(int)
    tokens: dict[str, TokenInfo] = {}
    for change in changes:
        net[change.mint] += change.change
        tokens[change.mint] = change.token

    legs: list[Leg] = []
    for mint in sorted(net):
        delta = net[mint]
        if delta == 0:
            continue
        token = tokens[mint]
        legs.append(
            Leg(
                account_id=build_account_id("protocol", mint, protocol=SUPPLY_PROTOCOL),
                side="debit" if delta > 0 else "credit",
                role="protocol_deposit" if delta > 0 else "protocol_withdraw",
                amount=MoneyAmount(
                    token=token,
                    amount_raw=abs(delta),
                    amount_ui=abs(delta) / 10**token.decimals,
                ),
            )
        )
    return legs


def _sol_role(delta: int, is_payer: bool, tx: RawTransaction) -> LegRole:
    if delta < 0:
        return "sent"
    if is_stake_protocol(tx.protocol) and not is_payer:
        return "reward"
    return "received"


def _token_role(is_credit: bool, is_payer: bool, dex: bool) -> LegRole:
    if dex and not is_payer:
        return "protocol_withdraw" if is_credit else "protocol_deposit"
    return "received" if is_credit else "sent"


def validate_legs_balance(legs: list[Leg]) -> LegBalanceResult:
    debits: dict[str, int] = defaultdict(int)
    credits: dict[str, int] = defaultdict(int)
    for leg in legs:
        mint = leg.amount.token.mint
        if leg.side == "debit":
            debits[mint] += leg.amount.amount_raw
        else:
            credits[mint] += leg.amount.amount_raw

    by_mint = {
        mint: LegTokenBalance(debits=debits[mint], credits=credits[mint])
        for mint in sorted(set(debits) | set(credits))
    }
    return LegBalanceResult(
        is_balanced=all(balance.diff == 0 for balance in by_mint.values()),
        by_mint=by_mint,
    )


def group_legs_by_account(legs: list[Leg]) -> dict[str, list[Leg]]:
    grouped: dict[str, list[Leg]] = defaultdict(list)
    for leg in legs:
        grouped[leg.account_id].append(leg)
    return dict(grouped)


def group_legs_by_mint(legs: list[Leg]) -> dict[str, list[Leg]]:
    grouped: dict[str, list[Leg]] = defaultdict(list)
    for leg in legs:
        grouped[leg.amount.token.mint].append(leg)
    return dict(grouped)
