"""TRON key providers.

Hot key: a single secp256k1 private key loaded from SIGNER_PRIVATE_KEY.
HD keys: BIP32 children of TRON_XPRV at m/44'/195'/0'/0/index.

Address format: T... (base58check with 0x41 prefix)
"""

import logging

from bip_utils import Bip32KeyError, Bip32Secp256k1, TrxAddrEncoder
from tronpy.keys import PrivateKey

from tronsigner.hdwallet.base import (
    MAX_DERIVATION_INDEX,
    HDNotConfiguredError,
    KeyConfigurationError,
    KeyDerivationError,
    SigningIdentity,
    derivation_path,
)

logger = logging.getLogger(__name__)


def _parse_private_key_hex(value: str) -> bytes:
    raw = value.strip()
    if raw.lower().startswith("0x"):
        raw = raw[2:]
    try:
        key_bytes = bytes.fromhex(raw)
    except ValueError as e:
        raise KeyConfigurationError("SIGNER_PRIVATE_KEY is not valid hex") from e
    if len(key_bytes) != 32:
        raise KeyConfigurationError("SIGNER_PRIVATE_KEY must be 32 bytes")
    return key_bytes


def address_from_private_key(private_key: bytes) -> str:
    """TRON base58check address controlled by a private key."""
    return PrivateKey(private_key).public_key.to_base58check_address()


class HotKeyProvider:
    """Fixed hot wallet identity.

    Fails fast at construction if the key material is malformed.
    """

    def __init__(self, private_key_hex: str):
        key_bytes = _parse_private_key_hex(private_key_hex)
        try:
            address = address_from_private_key(key_bytes)
        except Exception as e:
            raise KeyConfigurationError(f"Invalid hot wallet key: {e}") from e

        self._identity = SigningIdentity(address=address, private_key=key_bytes)
        logger.info(f"Loaded hot wallet signer {address}")

    @property
    def address(self) -> str:
        return self._identity.address

    def identity(self) -> SigningIdentity:
        return self._identity


class TronHDKeyProvider:
    """Derives child signing identities from a master extended private key.

    Derivation is deterministic: the same master key and index always yield
    the same private key and address. Nothing is cached.

    Usage:
        provider = TronHDKeyProvider(xprv="xprv...")
        identity = provider.derive(index=7)
    """

    def __init__(self, xprv: str):
        try:
            self._root = Bip32Secp256k1.FromExtendedKey(xprv.strip())
        except Exception as e:
            # Base58 checksum and key deserialization errors share no base class
            raise KeyConfigurationError(f"Invalid TRON_XPRV: {e}") from e

        if self._root.IsPublicOnly():
            raise KeyConfigurationError("TRON_XPRV must be an extended private key")

    def derive(self, index: int) -> SigningIdentity:
        """Derive the signing identity at m/44'/195'/0'/0/index.

        Raises:
            KeyDerivationError: If the index is out of range or no private key results
        """
        if index < 0 or index > MAX_DERIVATION_INDEX:
            raise KeyDerivationError(f"Derivation index out of range: {index}")

        path = derivation_path(index)
        try:
            child = self._root.DerivePath(path[2:])
        except Bip32KeyError as e:
            raise KeyDerivationError(f"Derivation failed for {path}: {e}") from e

        if child.IsPublicOnly():
            raise KeyDerivationError(f"Child private key missing for {path}")

        private_key = child.PrivateKey().Raw().ToBytes()
        if len(private_key) != 32 or not any(private_key):
            raise KeyDerivationError(f"Child private key invalid for {path}")

        address = TrxAddrEncoder.EncodeKey(child.PublicKey().RawUncompressed().ToBytes())

        return SigningIdentity(
            address=address,
            private_key=private_key,
            derivation_path=path,
            index=index,
        )


class DisabledHDKeyProvider:
    """Placeholder used when TRON_XPRV is not configured."""

    def derive(self, index: int) -> SigningIdentity:
        raise HDNotConfiguredError()
