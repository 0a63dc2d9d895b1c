"""Conversions between ledger drops and 18-decimal sidechain units."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from sidechain_bridge.errors import InvalidAmount

NATIVE_DECIMALS = 6
DESTINATION_DECIMALS = 18
SCALE_FACTOR = 10 ** (DESTINATION_DECIMALS - NATIVE_DECIMALS)

_INTEGER_RE = re.compile(r"^[0-9]+$")
_DISPLAY_RE = re.compile(r"^[0-9]+(\.[0-9]+)?$")


def to_destination_units(native_amount: str) -> int:
    """Scale an integer drops amount to sidechain units (drops * 10**12)."""

    if not isinstance(native_amount, str) or not _INTEGER_RE.fullmatch(native_amount):
        raise InvalidAmount(f"Native amount must be a non-negative integer string: {native_amount!r}")
    return int(native_amount) * SCALE_FACTOR


def from_destination_units(units: int) -> str:
    """Inverse of :func:`to_destination_units`; rejects values with sub-drop dust."""

    if units < 0:
        raise InvalidAmount(f"Destination amount must be non-negative: {units}")
    drops, remainder = divmod(units, SCALE_FACTOR)
    if remainder:
        raise InvalidAmount(f"Destination amount {units} is not a whole number of drops")
    return str(drops)


def to_native_units(display_amount: str) -> str:
    """Convert an XRP display amount ("10", "0.25") into a drops string."""

    if not isinstance(display_amount, str) or not _DISPLAY_RE.fullmatch(display_amount.strip()):
        raise InvalidAmount(f"Amount must be a non-negative decimal string: {display_amount!r}")
    try:
        value = Decimal(display_amount.strip())
    except InvalidOperation as exc:  # pragma: no cover - regex guards the format
        raise InvalidAmount(f"Amount is not numeric: {display_amount!r}") from exc

    drops = value.scaleb(NATIVE_DECIMALS)
    if drops != drops.to_integral_value():
        raise InvalidAmount(f"Amount {display_amount} has more than {NATIVE_DECIMALS} decimal places")
    return str(int(drops))
