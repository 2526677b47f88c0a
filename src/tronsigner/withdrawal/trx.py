"""TRC20 ledger client.

Uses tronpy for transaction building, signing and broadcast, and the
TronGrid REST API for confirmation status.
"""

import logging
from typing import Optional

import httpx
from tronpy import AsyncTron
from tronpy.keys import PrivateKey
from tronpy.providers.async_http import AsyncHTTPProvider

from tronsigner.hdwallet.base import SigningIdentity
from tronsigner.withdrawal.base import (
    BroadcastReceipt,
    LedgerClient,
    TransferInstruction,
    TransferStatus,
)

logger = logging.getLogger(__name__)

TRONGRID_MAINNET = "https://api.trongrid.io"


class TronLedgerClient(LedgerClient):
    """TRON client for TRC20 `transfer(address,uint256)` calls."""

    def __init__(
        self,
        fullnode_url: str = TRONGRID_MAINNET,
        solidity_url: str = TRONGRID_MAINNET,
        api_key: Optional[str] = None,
        request_timeout: float = 30.0,
    ):
        self.fullnode_url = fullnode_url.rstrip("/")
        self.solidity_url = solidity_url.rstrip("/")
        self.api_key = api_key
        self.request_timeout = request_timeout

        self._headers = {"Accept": "application/json"}
        if api_key:
            self._headers["TRON-PRO-API-KEY"] = api_key

    def _provider(self) -> AsyncHTTPProvider:
        return AsyncHTTPProvider(
            self.fullnode_url,
            timeout=self.request_timeout,
            api_key=self.api_key,
        )

    async def transfer(
        self, identity: SigningIdentity, instruction: TransferInstruction
    ) -> BroadcastReceipt:
        """Build, sign and broadcast a TRC20 transfer.

        The owner is always the signing identity's own address.
        """
        priv_key = PrivateKey(identity.private_key)

        async with AsyncTron(provider=self._provider()) as client:
            contract = await client.get_contract(instruction.token_contract)

            txb = await contract.functions.transfer(instruction.to, instruction.amount_units)
            txn = await (
                txb.with_owner(identity.address)
                .fee_limit(instruction.fee_limit_sun)
                .build()
            )
            txn = txn.sign(priv_key)
            logger.info(f"Signed {txn.txid} from {identity.address}, broadcasting")

            result = await txn.broadcast()

        raw = dict(result) if result else {}
        logger.info(
            f"Broadcast TRC20 transfer from {identity.address}: "
            f"result={raw.get('result')} txid={raw.get('txid')}"
        )

        return BroadcastReceipt(
            result=bool(raw.get("result", False)),
            txid=raw.get("txid"),
            message=raw.get("message"),
            raw=raw,
        )

    async def get_transaction_status(self, txid: str) -> TransferStatus:
        """Check TRC20 transaction status."""
        async with httpx.AsyncClient(timeout=self.request_timeout) as client:
            response = await client.post(
                f"{self.solidity_url}/walletsolidity/gettransactioninfobyid",
                json={"value": txid},
                headers=self._headers,
            )
            response.raise_for_status()
            info = response.json()

            if info:
                receipt_result = info.get("receipt", {}).get("result")
                if info.get("result") == "FAILED" or (
                    receipt_result and receipt_result != "SUCCESS"
                ):
                    return TransferStatus.FAILED
                return TransferStatus.COMPLETED

            # Not solidified yet; check whether the full node knows it
            response = await client.post(
                f"{self.fullnode_url}/wallet/gettransactionbyid",
                json={"value": txid},
                headers=self._headers,
            )
            response.raise_for_status()
            if response.json():
                return TransferStatus.PENDING

        return TransferStatus.NOT_FOUND
