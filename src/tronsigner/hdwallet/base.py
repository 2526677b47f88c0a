"""Signing identity types and key provider errors.

A signing identity is a private key plus the TRON address it controls. The
hot identity is loaded once at startup; derived identities are recomputed
from the master extended key on every request and never stored.
"""

from dataclasses import dataclass, field
from typing import Optional

# BIP44 policy constants for TRON (SLIP-44 coin type 195)
PURPOSE = 44
COIN_TYPE = 195
ACCOUNT = 0
CHANGE = 0

# Final path segment is non-hardened
MAX_DERIVATION_INDEX = 2**31 - 1


@dataclass(frozen=True)
class SigningIdentity:
    """Key material used to sign a transfer."""

    address: str
    private_key: bytes = field(repr=False)
    derivation_path: Optional[str] = None
    index: Optional[int] = None

    @property
    def is_derived(self) -> bool:
        return self.index is not None


def derivation_path(index: int) -> str:
    """Full derivation path for a child index.

    Format: m/44'/195'/0'/0/index
    """
    return f"m/{PURPOSE}'/{COIN_TYPE}'/{ACCOUNT}'/{CHANGE}/{index}"


class KeyProviderError(Exception):
    """Base exception for key resolution."""
    pass


class KeyConfigurationError(KeyProviderError):
    """Configured key material is malformed (raised at startup)."""
    pass


class HDNotConfiguredError(KeyProviderError):
    """HD transfer requested but no master extended key is configured."""

    def __init__(self):
        super().__init__("TRON_XPRV not configured")


class KeyDerivationError(KeyProviderError):
    """Derivation did not produce a usable private key."""
    pass
