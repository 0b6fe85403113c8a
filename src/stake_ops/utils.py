"""Utility functions for amount conversion and receipt handling."""

import time
from collections.abc import Mapping, Sequence
from decimal import ROUND_DOWN, Decimal, InvalidOperation, localcontext
from typing import Any

from eth_typing import HexStr
from hexbytes import HexBytes

from .constants import CALL_DEADLINE_SECONDS, DEFAULT_TOKEN_DECIMALS, MAX_UINT256
from .exceptions import ValidationError

UINT256_DIGITS = len(str(MAX_UINT256)) + 1


def to_base_units(
    value: float | Decimal | int | str, decimals: int = DEFAULT_TOKEN_DECIMALS
) -> int:
    """Convert a human token amount to integer base units, truncating extra precision."""
    if isinstance(value, Decimal):
        quantity = value
    else:
        try:
            quantity = Decimal(str(value).strip())
        except (ValueError, InvalidOperation) as exc:
            raise ValidationError(
                "Invalid token amount",
                field="amount",
                value=value,
                details={"error": str(exc)},
            ) from exc

    if not quantity.is_finite():
        raise ValidationError("Token amount must be finite", field="amount", value=value)

    if quantity < 0:
        raise ValidationError("Amount cannot be negative", field="amount", value=value)

    with localcontext() as ctx:
        ctx.prec = UINT256_DIGITS + decimals
        scaled = (quantity * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN)
    units = int(scaled)

    if units > MAX_UINT256:
        raise ValidationError("Amount exceeds uint256 maximum", field="amount", value=value)

    return units


def from_base_units(units: int, decimals: int = DEFAULT_TOKEN_DECIMALS) -> Decimal:
    """Convert integer base units to a Decimal token amount."""
    return Decimal(units) / (Decimal(10) ** decimals)


def apply_slippage(amount: int, slippage_percent: int) -> int:
    """Return the minimum acceptable amount after slippage."""
    if not 0 <= slippage_percent < 100:
        raise ValidationError(
            "Slippage must be between 0 and 99 percent",
            field="slippage_percent",
            value=slippage_percent,
        )
    return amount * (100 - slippage_percent) // 100


def call_deadline(now: float | None = None, window: int = CALL_DEADLINE_SECONDS) -> int:
    """Unix timestamp embedded in router and sale calls."""
    current = time.time() if now is None else now
    return int(current) + window


def normalise_tx_hash(tx_hash: Any) -> HexStr:
    """Return a 0x-prefixed hex string for any hash representation."""
    if isinstance(tx_hash, str):
        return HexStr(tx_hash if tx_hash.startswith("0x") else f"0x{tx_hash}")
    return HexStr(HexBytes(tx_hash).to_0x_hex())


def serialise_receipt(receipt: Any) -> Any:
    """Serialise web3 receipt objects into JSON-friendly structures."""
    if receipt is None:
        return None
    if isinstance(receipt, Mapping):
        return {key: serialise_receipt(value) for key, value in receipt.items()}
    if isinstance(receipt, Sequence) and not isinstance(
        receipt, str | bytes | bytearray | HexBytes
    ):
        return [serialise_receipt(item) for item in receipt]
    if isinstance(receipt, bytes | bytearray | HexBytes):
        return HexBytes(receipt).to_0x_hex()
    return receipt
