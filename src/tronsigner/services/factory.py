"""Wires the signing pipeline from settings."""

import logging
from typing import Optional

from tronsigner.auth import Authenticator, InMemoryNonceCache
from tronsigner.config import Settings
from tronsigner.hdwallet.factory import get_hd_key_provider, get_hot_key_provider
from tronsigner.idempotency import IdempotencyStore, get_idempotency_store
from tronsigner.policy import AllowlistConfig, PolicyGate
from tronsigner.services.orchestrator import SigningOrchestrator
from tronsigner.withdrawal.base import LedgerClient
from tronsigner.withdrawal.factory import get_ledger_client

logger = logging.getLogger(__name__)


def build_orchestrator(
    settings: Settings,
    ledger: Optional[LedgerClient] = None,
    store: Optional[IdempotencyStore] = None,
) -> SigningOrchestrator:
    """Build the orchestrator and its collaborators.

    Raises:
        KeyConfigurationError: If hot or HD key material is malformed
    """
    authenticator = Authenticator(
        settings.signer_hmac_secret,
        max_skew_seconds=settings.hmac_max_skew_sec,
        nonce_cache=InMemoryNonceCache(retention_seconds=settings.nonce_retention_sec),
    )

    if store is None:
        store = get_idempotency_store(settings)
    if store.backend == "memory":
        logger.warning(
            "DATABASE_URL not set - idempotency is in-memory (single instance, lost on restart)"
        )

    return SigningOrchestrator(
        authenticator=authenticator,
        policy=PolicyGate(AllowlistConfig.from_settings(settings)),
        hot_keys=get_hot_key_provider(settings),
        hd_keys=get_hd_key_provider(settings),
        store=store,
        ledger=ledger if ledger is not None else get_ledger_client(settings),
        fee_limit_sun=settings.fee_limit_sun,
        token_decimals=settings.token_decimals,
        broadcast_timeout=settings.broadcast_timeout_sec,
    )
