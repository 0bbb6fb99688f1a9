from __future__ import annotations

from .types import Cluster, TokenInfo

CLUSTERS: tuple[Cluster, ...] = ("mainnet-beta", "devnet", "testnet")

NATIVE_SOL_MINT = "So11111111111111111111111111111111111111112"

_SOL_LOGO = (
    "https://raw.githubusercontent.com/solana-labs/token-list/main/assets/mainnet/"
    f"{NATIVE_SOL_MINT}/logo.png"
)


class KnownTokens:
    SOL = NATIVE_SOL_MINT
    USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
    USDT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
    USDC_BRIDGED = "A9mUU4qviSctJVPJdBJWkb28deg915LYJKrzQ19ji3FM"
    PYUSD = "2b1kV6DkPAnxd5ixfnxCpjxmKwqjjaYmCZfHsFu24GXo"
    JUP = "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN"
    BONK = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
    WIF = "EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm"
    MSOL = "mSoLzYCxHdYgdzU8g5Qbh3ZwE9WdZ3xwVNTRB6Lf1oa"
    JITOSOL = "J1toso1uCk3RLmjorhTtrVwY9HJ7X8V9yYac6Y7kGCPn"
    BSOL = "bSo13r4TkiE4KumL71LsHTPpL2euBYLFx6h9HP3piy1"


class DevnetKnownTokens:
    SOL = NATIVE_SOL_MINT
    USDC = "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"
    USDT = "EJwZgeZrdC8TXTQbQBoL6bfuAnFUUy1PVCMB4DYPzVaS"


SOL_TOKEN = TokenInfo(
    mint=NATIVE_SOL_MINT,
    symbol="SOL",
    name="Solana",
    decimals=9,
    logo_uri=_SOL_LOGO,
)


def _table(*tokens: TokenInfo) -> dict[str, TokenInfo]:
    return {token.mint: token for token in tokens}


MAINNET_TOKEN_INFO: dict[str, TokenInfo] = _table(
    SOL_TOKEN,
    TokenInfo(KnownTokens.USDC, "USDC", "USD Coin", 6),
    TokenInfo(KnownTokens.USDT, "USDT", "Tether USD", 6),
    TokenInfo(KnownTokens.USDC_BRIDGED, "USDCet", "USDC (Bridged)", 6),
    TokenInfo(KnownTokens.PYUSD, "PYUSD", "PayPal USD", 6),
    TokenInfo(KnownTokens.JUP, "JUP", "Jupiter", 6),
    TokenInfo(KnownTokens.BONK, "BONK", "Bonk", 5),
    TokenInfo(KnownTokens.WIF, "WIF", "dogwifhat", 6),
    TokenInfo(KnownTokens.MSOL, "mSOL", "Marinade Staked SOL", 9),
    TokenInfo(KnownTokens.JITOSOL, "JitoSOL", "Jito Staked SOL", 9),
    TokenInfo(KnownTokens.BSOL, "bSOL", "BlazeStake Staked SOL", 9),
)

DEVNET_TOKEN_INFO: dict[str, TokenInfo] = _table(
    SOL_TOKEN,
    TokenInfo(DevnetKnownTokens.USDC, "USDC", "USD Coin (Devnet)", 6),
    TokenInfo(DevnetKnownTokens.USDT, "USDT", "Tether USD (Devnet)", 6),
)

# Testnet has no well-known stablecoin deployments of its own.
CLUSTER_TOKEN_INFO: dict[str, dict[str, TokenInfo]] = {
    "mainnet-beta": MAINNET_TOKEN_INFO,
    "devnet": DEVNET_TOKEN_INFO,
    "testnet": DEVNET_TOKEN_INFO,
}


def validate_cluster(cluster: str) -> Cluster:
    if cluster not in CLUSTERS:
        raise ValueError(f"Unknown cluster {cluster!r}; expected one of {', '.join(CLUSTERS)}")
    return cluster  # type: ignore[return-value]


def static_tokens_for(cluster: str) -> dict[str, TokenInfo]:
    return CLUSTER_TOKEN_INFO[validate_cluster(cluster)]


def get_token_info(mint: str, cluster: str = "mainnet-beta") -> TokenInfo | None:
    return static_tokens_for(cluster).get(mint)


def create_unknown_token(mint: str, decimals: int = 9) -> TokenInfo:
    prefix = mint[:8]
    return TokenInfo(
        mint=mint,
        symbol="UNKNOWN",
        name=f"Unknown Token ({prefix}...)",
        decimals=decimals,
    )
