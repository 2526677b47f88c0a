"""Key provider factory.

Builds the hot and HD key providers from settings. Malformed key material
raises KeyConfigurationError here, at startup.
"""

import logging
from typing import Union

from tronsigner.config import Settings
from tronsigner.hdwallet.trx import DisabledHDKeyProvider, HotKeyProvider, TronHDKeyProvider

logger = logging.getLogger(__name__)

HDKeyProvider = Union[TronHDKeyProvider, DisabledHDKeyProvider]


def get_hot_key_provider(settings: Settings) -> HotKeyProvider:
    return HotKeyProvider(settings.signer_private_key)


def get_hd_key_provider(settings: Settings) -> HDKeyProvider:
    """Get HD key provider, or a disabled one when TRON_XPRV is unset."""
    if not settings.hd_enabled:
        logger.warning("TRON_XPRV not set - HD transfers disabled")
        return DisabledHDKeyProvider()

    provider = TronHDKeyProvider(settings.tron_xprv)
    logger.info("HD transfers enabled (m/44'/195'/0'/0/index)")
    return provider
