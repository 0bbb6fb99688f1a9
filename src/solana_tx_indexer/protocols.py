from __future__ import annotations

from collections.abc import Iterable

from . import program_ids as pid
from .types import ProtocolInfo

KNOWN_PROGRAMS: dict[str, ProtocolInfo] = {
    pid.JUPITER_V6_PROGRAM_ID: ProtocolInfo("jupiter", "Jupiter"),
    pid.JUPITER_V4_PROGRAM_ID: ProtocolInfo("jupiter-v4", "Jupiter V4"),
    pid.TOKEN_PROGRAM_ID: ProtocolInfo("spl-token", "Token Program"),
    pid.SYSTEM_PROGRAM_ID: ProtocolInfo("system", "System Program"),
    pid.COMPUTE_BUDGET_PROGRAM_ID: ProtocolInfo("compute-budget", "Compute Budget"),
    pid.ASSOCIATED_TOKEN_PROGRAM_ID: ProtocolInfo("associated-token", "Associated Token Program"),
    pid.METAPLEX_PROGRAM_ID: ProtocolInfo("metaplex", "Metaplex"),
    pid.ORCA_WHIRLPOOL_PROGRAM_ID: ProtocolInfo("orca-whirlpool", "Orca Whirlpool"),
    pid.RAYDIUM_PROGRAM_ID: ProtocolInfo("raydium", "Raydium"),
    pid.STAKE_PROGRAM_ID: ProtocolInfo("stake", "Stake Program"),
    pid.STAKE_POOL_PROGRAM_ID: ProtocolInfo("stake-pool", "Stake Pool Program"),
    pid.CANDY_GUARD_PROGRAM_ID: ProtocolInfo("candy-guard", "Metaplex Candy Guard Program"),
    pid.CANDY_MACHINE_V3_PROGRAM_ID: ProtocolInfo(
        "candy-machine-v3", "Metaplex Candy Machine Core Program"
    ),
    pid.BUBBLEGUM_PROGRAM_ID: ProtocolInfo("bubblegum", "Bubblegum Program"),
    pid.MAGIC_EDEN_CANDY_MACHINE_ID: ProtocolInfo(
        "magic-eden-candy-machine", "Nft Candy Machine Program (Magic Eden)"
    ),
    pid.WORMHOLE_PROGRAM_ID: ProtocolInfo("wormhole", "Wormhole"),
    pid.WORMHOLE_TOKEN_BRIDGE_ID: ProtocolInfo("wormhole-token-bridge", "Wormhole Token Bridge"),
    pid.DEGODS_BRIDGE_PROGRAM_ID: ProtocolInfo("degods-bridge", "DeGods Bridge"),
    pid.DEBRIDGE_PROGRAM_ID: ProtocolInfo("debridge", "deBridge"),
    pid.ALLBRIDGE_PROGRAM_ID: ProtocolInfo("allbridge", "Allbridge"),
    pid.PRIVACY_CASH_PROGRAM_ID: ProtocolInfo("privacy-cash", "Privacy Cash"),
}

# Lower index wins when several known programs appear in one transaction.
PRIORITY_ORDER: tuple[str, ...] = (
    "wormhole",
    "wormhole-token-bridge",
    "degods-bridge",
    "debridge",
    "allbridge",
    "privacy-cash",
    "jupiter",
    "jupiter-v4",
    "raydium",
    "orca-whirlpool",
    "candy-guard",
    "candy-machine-v3",
    "magic-eden-candy-machine",
    "bubblegum",
    "metaplex",
    "stake-pool",
    "stake",
    "associated-token",
    "spl-token",
    "compute-budget",
    "system",
)

DEX_PROTOCOL_IDS = frozenset({"jupiter", "jupiter-v4", "raydium", "orca-whirlpool"})
NFT_MINT_PROTOCOL_IDS = frozenset(
    {"metaplex", "candy-machine-v3", "candy-guard", "bubblegum", "magic-eden-candy-machine"}
)
STAKE_PROTOCOL_IDS = frozenset({"stake", "stake-pool"})
BRIDGE_PROTOCOL_IDS = frozenset(
    {"wormhole", "wormhole-token-bridge", "degods-bridge", "debridge", "allbridge"}
)
PRIVACY_PROTOCOL_IDS = frozenset({"privacy-cash"})

_RANK = {protocol_id: idx for idx, protocol_id in enumerate(PRIORITY_ORDER)}
_DECLARATION = {info.id: idx for idx, info in enumerate(KNOWN_PROGRAMS.values())}


def _rank(protocol: ProtocolInfo) -> tuple[int, int]:
    return (_RANK.get(protocol.id, len(PRIORITY_ORDER)), _DECLARATION.get(protocol.id, 0))


def detect_protocol(program_ids: Iterable[str]) -> ProtocolInfo | None:
    """Pick the owning protocol among the known programs a transaction touched."""
    detected = {
        KNOWN_PROGRAMS[program_id].id: KNOWN_PROGRAMS[program_id]
        for program_id in program_ids
        if program_id in KNOWN_PROGRAMS
    }
    if not detected:
        return None
    return min(detected.values(), key=_rank)


def _protocol_id(protocol: ProtocolInfo | str | None) -> str | None:
    if isinstance(protocol, ProtocolInfo):
        return protocol.id
    return protocol


def is_dex_protocol(protocol: ProtocolInfo | str | None) -> bool:
    return _protocol_id(protocol) in DEX_PROTOCOL_IDS


def is_bridge_protocol(protocol: ProtocolInfo | str | None) -> bool:
    return _protocol_id(protocol) in BRIDGE_PROTOCOL_IDS


def is_nft_mint_protocol(protocol: ProtocolInfo | str | None) -> bool:
    return _protocol_id(protocol) in NFT_MINT_PROTOCOL_IDS


def is_stake_protocol(protocol: ProtocolInfo | str | None) -> bool:
    return _protocol_id(protocol) in STAKE_PROTOCOL_IDS


def is_privacy_protocol(protocol: ProtocolInfo | str | None) -> bool:
    return _protocol_id(protocol) in PRIVACY_PROTOCOL_IDS
