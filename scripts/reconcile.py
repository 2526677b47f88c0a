#!/usr/bin/env python3
"""Idempotency Reconciliation Script.

Checks every committed idempotency record against the chain and reports
transfers that failed or are unknown to the network. Transfers that were
broadcast but never committed are logged by the signer with a
"RECONCILE:" prefix; pass those tx ids with --txid to check them too.

Usage:
    python scripts/reconcile.py [--since 2024-01-01] [--limit 500] [--txid TXID ...]
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv

from tronsigner.config import get_settings
from tronsigner.idempotency import Database, SQLIdempotencyStore
from tronsigner.withdrawal.base import TransferStatus
from tronsigner.withdrawal.trx import TronLedgerClient

load_dotenv()

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


async def reconcile(since: Optional[datetime], limit: int, extra_txids: list[str]) -> int:
    """Check records on chain. Returns the number of problem transfers."""
    settings = get_settings()
    if not settings.database_url:
        logger.error("DATABASE_URL not set - nothing persisted to reconcile")
        return 1

    store = SQLIdempotencyStore(Database(settings.database_url))
    client = TronLedgerClient(
        fullnode_url=settings.tron_fullnode_url,
        solidity_url=settings.tron_solidity_url,
        api_key=settings.trongrid_api_key,
    )

    problems = 0
    try:
        records = await store.list_records(since=since, limit=limit)
        logger.info(f"Checking {len(records)} committed records")

        checks = [(f"{r.operation_kind.value}:{r.idempotency_key}", r.tx_id) for r in records]
        checks += [("uncommitted", txid) for txid in extra_txids]

        for label, txid in checks:
            try:
                status = await client.get_transaction_status(txid)
            except Exception as e:
                logger.error(f"{label} tx={txid}: status lookup failed: {e}")
                problems += 1
                continue

            if status in (TransferStatus.FAILED, TransferStatus.NOT_FOUND):
                logger.warning(f"{label} tx={txid}: {status.value}")
                problems += 1
            else:
                logger.info(f"{label} tx={txid}: {status.value}")
    finally:
        await store.close()

    logger.info(f"Reconciliation finished: {problems} problem transfer(s)")
    return problems


def main() -> None:
    parser = argparse.ArgumentParser(description="Reconcile signed transfers with the chain")
    parser.add_argument("--since", help="Only records created on/after this ISO date")
    parser.add_argument("--limit", type=int, default=1000, help="Maximum records to check")
    parser.add_argument("--txid", action="append", default=[], help="Extra tx id to check")
    args = parser.parse_args()

    since = None
    if args.since:
        since = datetime.fromisoformat(args.since)
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)

    problems = asyncio.run(reconcile(since, args.limit, args.txid))
    sys.exit(1 if problems else 0)


if __name__ == "__main__":
    main()
