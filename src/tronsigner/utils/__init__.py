"""Shared utilities."""

from tronsigner.utils.amounts import InvalidAmountError, format_units, parse_units
from tronsigner.utils.locks import KeyedLocks, LockTimeoutError

__all__ = [
    "InvalidAmountError",
    "format_units",
    "parse_units",
    "KeyedLocks",
    "LockTimeoutError",
]
