"""Fee parsing and gas defaults for EIP-1559 transactions."""

from __future__ import annotations

import re
from dataclasses import dataclass

from chainsync.records import TokenType

ETH_GAS_LIMIT = 60_000
TOKEN_GAS_LIMIT = 120_000
MIN_1_GWEI = 1_000_000_000
NATIVE_CONTRACT = "0x00"

_DECIMAL = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


@dataclass(frozen=True)
class FeeInfo:
    """Fee figures derived from a fast-fee quote."""

    gas_price: int
    gas_tip_cap: int
    multiplier: int
    multiplied_tip: int
    max_priority_fee: int


def _parse_decimal(text: str) -> int | None:
    """Parse an optionally signed base-10 integer; None if malformed."""
    if not _DECIMAL.fullmatch(text):
        return None
    return int(text)


def parse_fast_fee(fast_fee: str) -> FeeInfo:
    """Parse a ``"<gas price>|<tip cap>|*<multiplier>"`` quote.

    The multiplied tip is the tip cap times the multiplier; the maximum
    fee is twice the multiplied tip plus the gas price.
    """
    parts = fast_fee.split("|")
    if len(parts) != 3:
        raise ValueError(f"invalid fast fee format: {fast_fee}")
    price_text, tip_text, multiplier_field = parts

    gas_price = _parse_decimal(price_text)
    if gas_price is None:
        raise ValueError(f"invalid gas price: {price_text}")

    gas_tip_cap = _parse_decimal(tip_text)
    if gas_tip_cap is None:
        raise ValueError(f"invalid gas tip cap: {tip_text}")

    multiplier = _parse_decimal(multiplier_field.removeprefix("*"))
    if multiplier is None or not _INT64_MIN <= multiplier <= _INT64_MAX:
        raise ValueError(f"invalid multiplier: {multiplier_field}")

    multiplied_tip = gas_tip_cap * multiplier
    max_priority_fee = multiplied_tip * 2 + gas_price
    return FeeInfo(
        gas_price=gas_price,
        gas_tip_cap=gas_tip_cap,
        multiplier=multiplier,
        multiplied_tip=multiplied_tip,
        max_priority_fee=max_priority_fee,
    )


def determine_token_type(contract_address: str) -> TokenType:
    """Return ETH for the native marker address, ERC20 otherwise."""
    if contract_address == NATIVE_CONTRACT:
        return TokenType.ETH
    return TokenType.ERC20


def gas_and_contract_info(contract_address: str) -> tuple[int, str]:
    """Return the gas limit and contract address to use for a transfer."""
    if contract_address == NATIVE_CONTRACT:
        return ETH_GAS_LIMIT, NATIVE_CONTRACT
    return TOKEN_GAS_LIMIT, contract_address