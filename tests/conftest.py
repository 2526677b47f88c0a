"""Pytest configuration and fixtures."""

import asyncio
import json
import os
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from bip_utils import Bip32Secp256k1
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["SIGNER_PRIVATE_KEY"] = "11" * 32
os.environ["SIGNER_HMAC_SECRET"] = "test-hmac-secret-0123456789abcdef"
os.environ.pop("DATABASE_URL", None)
os.environ.pop("TRON_XPRV", None)

from tronsigner.auth import AuthEnvelope, sign_request
from tronsigner.config import Settings
from tronsigner.hdwallet.base import SigningIdentity
from tronsigner.idempotency.database import Database
from tronsigner.idempotency.models import Base
from tronsigner.idempotency.store import InMemoryIdempotencyStore
from tronsigner.withdrawal.base import (
    BroadcastReceipt,
    LedgerClient,
    TransferInstruction,
    TransferStatus,
)

HOT_KEY_HEX = "11" * 32
HMAC_SECRET = "test-hmac-secret-0123456789abcdef"
TEST_SEED = bytes.fromhex("000102030405060708090a0b0c0d0e0f")

USDT_CONTRACT = "TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t"
DEST_A = "TLa2f6VPqDgRE67v1736s7bJ8Ray5wYjU7"
DEST_B = "TJRabPrwbZy45sbavfcjinPJC18kjpRTv8"
DEST_C = "TNPeeaaFB7K9cmo4uQpcU32zGK8G1NYqeL"


def make_xprv(seed: bytes = TEST_SEED) -> str:
    """Master extended private key for a test seed."""
    return Bip32Secp256k1.FromSeed(seed).PrivateKey().ToExtended()


def make_settings(**overrides) -> Settings:
    values = {
        "signer_private_key": HOT_KEY_HEX,
        "signer_hmac_secret": HMAC_SECRET,
        "tron_xprv": make_xprv(),
        "database_url": None,
        "dry_run": True,
        "broadcast_timeout_sec": 2.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def transfer_body(key: str = "order-0001", **overrides) -> dict:
    body = {
        "to": DEST_A,
        "amount": "12.345678",
        "tokenContract": USDT_CONTRACT,
        "idempotencyKey": key,
    }
    body.update(overrides)
    return body


def encode(body) -> bytes:
    if isinstance(body, bytes):
        return body
    return json.dumps(body).encode()


def signed_envelope(body, secret: str = HMAC_SECRET, **header_overrides) -> AuthEnvelope:
    """Build an envelope signed over the exact encoded body."""
    raw = encode(body)
    headers = sign_request(secret, raw)
    headers.update(header_overrides)
    return AuthEnvelope(
        timestamp=headers["x-ts"],
        nonce=headers["x-nonce"],
        signature=headers["x-signer-hmac"],
        raw_body=raw,
    )


class RecordingLedgerClient(LedgerClient):
    """Ledger client double that records transfers and returns sequential tx ids."""

    def __init__(
        self,
        delay: float = 0.0,
        error: Optional[Exception] = None,
        receipt: Optional[BroadcastReceipt] = None,
    ):
        self.delay = delay
        self.error = error
        self.receipt = receipt
        self.calls: list[tuple[SigningIdentity, TransferInstruction]] = []

    async def transfer(
        self, identity: SigningIdentity, instruction: TransferInstruction
    ) -> BroadcastReceipt:
        self.calls.append((identity, instruction))
        txid = f"{len(self.calls):064x}"
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.receipt is not None:
            return self.receipt
        return BroadcastReceipt(result=True, txid=txid, raw={"result": True, "txid": txid})

    async def get_transaction_status(self, txid: str) -> TransferStatus:
        return TransferStatus.COMPLETED


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def ledger() -> RecordingLedgerClient:
    return RecordingLedgerClient()


@pytest.fixture
def memory_store() -> InMemoryIdempotencyStore:
    return InMemoryIdempotencyStore()


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create in-memory database engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def database(db_engine) -> Database:
    return Database(engine=db_engine)
