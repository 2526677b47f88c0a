"""Signing key resolution: fixed hot key or BIP32-derived child keys."""

from tronsigner.hdwallet.base import (
    HDNotConfiguredError,
    KeyConfigurationError,
    KeyDerivationError,
    KeyProviderError,
    SigningIdentity,
    derivation_path,
)
from tronsigner.hdwallet.factory import get_hd_key_provider, get_hot_key_provider
from tronsigner.hdwallet.trx import DisabledHDKeyProvider, HotKeyProvider, TronHDKeyProvider

__all__ = [
    "SigningIdentity",
    "derivation_path",
    "HotKeyProvider",
    "TronHDKeyProvider",
    "DisabledHDKeyProvider",
    "get_hot_key_provider",
    "get_hd_key_provider",
    "HDNotConfiguredError",
    "KeyConfigurationError",
    "KeyDerivationError",
    "KeyProviderError",
]
