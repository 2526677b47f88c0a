"""Base interfaces for the ledger client.

Transfer flow:
1. Orchestrator resolves the signing identity and normalized amount
2. Client builds the TRC20 transfer with the fixed fee ceiling
3. Client signs with the identity's private key
4. Client broadcasts and returns the node's receipt
"""

import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from tronsigner.hdwallet.base import SigningIdentity

logger = logging.getLogger(__name__)


class TransferStatus(str, Enum):
    """On-chain status of a broadcast transfer."""

    PENDING = "pending"          # Not yet visible on the solidity node
    COMPLETED = "completed"      # Confirmed with SUCCESS
    FAILED = "failed"            # Confirmed with a non-success result
    NOT_FOUND = "not_found"      # Unknown to the network


@dataclass(frozen=True)
class TransferInstruction:
    """TRC20 transfer to build, sign and broadcast."""
    to: str
    token_contract: str
    amount_units: int              # Smallest token units
    fee_limit_sun: int


@dataclass
class BroadcastReceipt:
    """Result of a broadcast as reported by the node."""
    result: bool
    txid: Optional[str] = None
    message: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return bool(self.result) and isinstance(self.txid, str) and bool(self.txid)


class LedgerClient(ABC):
    """Abstract ledger client capability."""

    @abstractmethod
    async def transfer(
        self, identity: SigningIdentity, instruction: TransferInstruction
    ) -> BroadcastReceipt:
        """Build, sign and broadcast a token transfer from ``identity``.

        Raises:
            Exception: Network or node errors propagate to the caller
        """
        pass

    @abstractmethod
    async def get_transaction_status(self, txid: str) -> TransferStatus:
        """Check transaction confirmation status."""
        pass


class SimulatedLedgerClient(LedgerClient):
    """Simulated ledger client for dry runs and testing."""

    def __init__(self):
        self.transfers: list[tuple[SigningIdentity, TransferInstruction, str]] = []

    async def transfer(
        self, identity: SigningIdentity, instruction: TransferInstruction
    ) -> BroadcastReceipt:
        txid = secrets.token_hex(32)
        self.transfers.append((identity, instruction, txid))

        logger.info(
            f"[SIMULATED] Transfer {instruction.amount_units} units of "
            f"{instruction.token_contract} from {identity.address} to {instruction.to}"
        )

        return BroadcastReceipt(result=True, txid=txid, raw={"result": True, "txid": txid})

    async def get_transaction_status(self, txid: str) -> TransferStatus:
        if any(t[2] == txid for t in self.transfers):
            return TransferStatus.COMPLETED
        return TransferStatus.NOT_FOUND
