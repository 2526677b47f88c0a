"""Decimal-string to smallest-unit conversion.

Amounts travel as strings and are converted with integer arithmetic only,
so no float rounding can reach a signed transaction.
"""

import re

DEFAULT_DECIMALS = 6


class InvalidAmountError(ValueError):
    """Amount string is not digits[.digits] within the allowed scale."""
    pass


def _amount_pattern(decimals: int) -> "re.Pattern[str]":
    if decimals == 0:
        return re.compile(r"^([0-9]+)$")
    return re.compile(r"^([0-9]+)(?:\.([0-9]{1,%d}))?$" % decimals)


def parse_units(amount: str, decimals: int = DEFAULT_DECIMALS) -> int:
    """Parse a decimal string into smallest units.

    Examples:
        parse_units("12.345678") -> 12345678
        parse_units("1.23") -> 1230000

    Raises:
        InvalidAmountError: On any other shape, including too many decimals
    """
    if not isinstance(amount, str):
        raise InvalidAmountError("amount must be a string")

    match = _amount_pattern(decimals).fullmatch(amount)
    if not match:
        raise InvalidAmountError(f"invalid amount (use up to {decimals} decimals)")

    int_part = match.group(1)
    frac_part = (match.group(2) if decimals else None) or ""
    return int(int_part) * 10**decimals + int(frac_part.ljust(decimals, "0") or "0")


def format_units(units: int, decimals: int = DEFAULT_DECIMALS) -> str:
    """Inverse of parse_units, for logs."""
    if decimals == 0:
        return str(units)
    whole, frac = divmod(units, 10**decimals)
    frac_str = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{whole}.{frac_str}" if frac_str else str(whole)
