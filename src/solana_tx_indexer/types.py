from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Cluster = Literal["mainnet-beta", "devnet", "testnet"]
LegSide = Literal["debit", "credit"]
LegRole = Literal["fee", "sent", "received", "protocol_deposit", "protocol_withdraw", "reward"]
PrimaryType = Literal[
    "swap",
    "transfer",
    "bridge_in",
    "bridge_out",
    "nft_mint",
    "airdrop",
    "staking",
    "privacy_deposit",
    "privacy_withdraw",
    "fee_only",
    "unknown",
]


@dataclass(frozen=True)
class TokenInfo:
    mint: str
    symbol: str
    name: str
    decimals: int
    logo_uri: str | None = None

    @property
    def is_nft(self) -> bool:
        return self.decimals == 0


@dataclass(frozen=True)
class MoneyAmount:
    token: TokenInfo
    amount_raw: int
    amount_ui: float


@dataclass(frozen=True)
class Leg:
    account_id: str
    side: LegSide
    role: LegRole
    amount: MoneyAmount


@dataclass(frozen=True)
class ProtocolInfo:
    id: str
    name: str


@dataclass(frozen=True)
class TokenBalance:
    account_index: int
    mint: str
    owner: str | None
    amount_raw: int
    decimals: int
    ui_amount: float


@dataclass(frozen=True)
class RawTransaction:
    signature: str
    slot: int | None = None
    block_time: int | None = None
    err: Any = None
    program_ids: tuple[str, ...] = ()
    protocol: ProtocolInfo | None = None
    fee: int = 0
    account_keys: tuple[str, ...] = ()
    pre_balances: tuple[int, ...] = ()
    post_balances: tuple[int, ...] = ()
    pre_token_balances: tuple[TokenBalance, ...] = ()
    post_token_balances: tuple[TokenBalance, ...] = ()
    memo: str | None = None

    @property
    def fee_payer(self) -> str | None:
        return self.account_keys[0] if self.account_keys else None


@dataclass(frozen=True)
class SignatureInfo:
    signature: str
    slot: int
    block_time: int | None
    err: Any
    memo: str | None


@dataclass(frozen=True)
class ClassificationResult:
    primary_type: PrimaryType
    primary_amount: MoneyAmount | None
    confidence: float
    is_relevant: bool
    secondary_amount: MoneyAmount | None = None
    sender: str | None = None
    receiver: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")


@dataclass(frozen=True)
class ClassifiedTransaction:
    tx: RawTransaction
    classification: ClassificationResult


@dataclass(frozen=True)
class TokenAccountBalance:
    mint: str
    symbol: str
    decimals: int
    amount_raw: int
    amount_ui: float
    token_account: str | None = None


@dataclass(frozen=True)
class WalletBalance:
    address: str
    lamports: int
    sol: float
    tokens: list[TokenAccountBalance]


@dataclass(frozen=True)
class WalletSummary:
    balance: WalletBalance
    transactions: list[ClassifiedTransaction]
