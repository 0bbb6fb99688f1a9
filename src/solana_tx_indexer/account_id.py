from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

AccountKind = Literal["wallet", "protocol", "external", "fee"]

FEE_ACCOUNT_ID = "fee:network"


@dataclass(frozen=True)
class ParsedAccountId:
    kind: AccountKind | Literal["unknown"]
    address: str | None = None
    protocol: str | None = None
    token: str | None = None


def build_account_id(
    kind: AccountKind,
    address: str = "",
    protocol: str | None = None,
    token: str | None = None,
) -> str:
    if kind == "wallet":
        return f"wallet:{address}"
    if kind == "external":
        return f"external:{address}"
    if kind == "fee":
        return FEE_ACCOUNT_ID
    if kind == "protocol" and protocol:
        if token:
            return f"protocol:{protocol}:{token}:{address}"
        return f"protocol:{protocol}:{address}"
    raise ValueError(f"Invalid account id parameters: kind={kind} address={address} protocol={protocol}")


def parse_account_id(account_id: str) -> ParsedAccountId:
    parts = account_id.split(":")
    head = parts[0]
    if head in ("wallet", "external") and len(parts) == 2:
        return ParsedAccountId(kind=head, address=parts[1])
    if head == "protocol" and len(parts) == 4:
        return ParsedAccountId(kind="protocol", protocol=parts[1], token=parts[2], address=parts[3])
    if head == "protocol" and len(parts) == 3:
        return ParsedAccountId(kind="protocol", protocol=parts[1], address=parts[2])
    if account_id == FEE_ACCOUNT_ID:
        return ParsedAccountId(kind="fee")
    return ParsedAccountId(kind="unknown", address=account_id)


def account_address(account_id: str) -> str | None:
    return parse_account_id(account_id).address
