"""Tests for the idempotency stores."""

import asyncio

import pytest
import pytest_asyncio

from tronsigner.idempotency import (
    CommitResult,
    InMemoryIdempotencyStore,
    OperationKind,
    SQLIdempotencyStore,
    get_idempotency_store,
    normalize_database_url,
)

from conftest import make_settings

TXID_1 = "a" * 64
TXID_2 = "b" * 64


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request, database):
    if request.param == "memory":
        return InMemoryIdempotencyStore()
    return SQLIdempotencyStore(database)


class TestStoreContract:
    """Behaviour shared by both backends."""

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        """Unknown keys return None."""
        assert await store.get(OperationKind.HOT, "order-0001") is None

    @pytest.mark.asyncio
    async def test_commit_then_get(self, store):
        """A committed record is read back intact."""
        result = await store.commit(
            OperationKind.HOT, "order-0001", TXID_1, from_address="TSender", request_fingerprint="f" * 64
        )

        assert result == CommitResult.COMMITTED
        record = await store.get(OperationKind.HOT, "order-0001")
        assert record.tx_id == TXID_1
        assert record.from_address == "TSender"
        assert record.request_fingerprint == "f" * 64
        assert record.operation_kind == OperationKind.HOT

    @pytest.mark.asyncio
    async def test_duplicate_commit_keeps_first(self, store):
        """A second commit for the same pair is refused and the first tx id stays."""
        await store.commit(OperationKind.HOT, "order-0001", TXID_1)

        result = await store.commit(OperationKind.HOT, "order-0001", TXID_2)

        assert result == CommitResult.ALREADY_EXISTS
        assert (await store.get(OperationKind.HOT, "order-0001")).tx_id == TXID_1

    @pytest.mark.asyncio
    async def test_keys_scoped_by_operation_kind(self, store):
        """The same key on different endpoints is independent."""
        assert await store.commit(OperationKind.HOT, "order-0001", TXID_1) == CommitResult.COMMITTED
        assert await store.commit(OperationKind.HD, "order-0001", TXID_2) == CommitResult.COMMITTED

        assert (await store.get(OperationKind.HOT, "order-0001")).tx_id == TXID_1
        assert (await store.get(OperationKind.HD, "order-0001")).tx_id == TXID_2

    @pytest.mark.asyncio
    async def test_list_records(self, store):
        """Records are listed in insertion order up to the limit."""
        for i in range(3):
            await store.commit(OperationKind.HD, f"order-{i:04d}", f"{i:064x}")

        records = await store.list_records()
        assert [r.idempotency_key for r in records] == ["order-0000", "order-0001", "order-0002"]

        assert len(await store.list_records(limit=2)) == 2


class TestInMemoryStore:
    """In-memory backend specifics."""

    @pytest.mark.asyncio
    async def test_concurrent_commits_single_winner(self):
        """Exactly one of many concurrent commits wins."""
        store = InMemoryIdempotencyStore()

        results = await asyncio.gather(
            *(store.commit(OperationKind.HOT, "order-0001", f"{i:064x}") for i in range(10))
        )

        assert results.count(CommitResult.COMMITTED) == 1
        assert results.count(CommitResult.ALREADY_EXISTS) == 9
        assert len(store) == 1


class TestStoreSelection:
    """Backend selection from configuration."""

    def test_memory_without_database_url(self):
        store = get_idempotency_store(make_settings(database_url=None))

        assert store.backend == "memory"

    @pytest.mark.asyncio
    async def test_sql_with_database(self, database):
        store = get_idempotency_store(make_settings(), database=database)

        assert store.backend == "sql"

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("postgres://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
            ("postgresql://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
            ("sqlite:///./signer.db", "sqlite+aiosqlite:///./signer.db"),
            ("sqlite+aiosqlite:///./signer.db", "sqlite+aiosqlite:///./signer.db"),
        ],
    )
    def test_normalize_database_url(self, url, expected):
        assert normalize_database_url(url) == expected
