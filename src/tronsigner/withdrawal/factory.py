"""Factory for creating the ledger client."""

import logging

from tronsigner.config import Settings
from tronsigner.withdrawal.base import LedgerClient, SimulatedLedgerClient

logger = logging.getLogger(__name__)


def get_ledger_client(settings: Settings) -> LedgerClient:
    """Get the ledger client for the configured network.

    Returns a SimulatedLedgerClient when DRY_RUN is enabled.
    """
    if settings.dry_run:
        logger.warning("DRY_RUN enabled - transfers are simulated, nothing is broadcast")
        return SimulatedLedgerClient()

    from tronsigner.withdrawal.trx import TronLedgerClient

    return TronLedgerClient(
        fullnode_url=settings.tron_fullnode_url,
        solidity_url=settings.tron_solidity_url,
        api_key=settings.trongrid_api_key,
        request_timeout=settings.broadcast_timeout_sec,
    )
