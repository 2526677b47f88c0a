"""Ledger client for building, signing and broadcasting TRC20 transfers."""

from tronsigner.withdrawal.base import (
    BroadcastReceipt,
    LedgerClient,
    SimulatedLedgerClient,
    TransferInstruction,
    TransferStatus,
)
from tronsigner.withdrawal.factory import get_ledger_client

__all__ = [
    "BroadcastReceipt",
    "LedgerClient",
    "SimulatedLedgerClient",
    "TransferInstruction",
    "TransferStatus",
    "get_ledger_client",
]
