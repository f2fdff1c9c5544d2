"""Tests for indexer_spine.registry.mapping."""

from __future__ import annotations

import asyncio
import itertools
from unittest.mock import AsyncMock, MagicMock

import psycopg
import pytest
from psycopg import errors as pg_errors

from indexer_spine.core.errors import DatabaseError
from indexer_spine.registry.mapping import (
    INDEXER_ID_ALPHABET,
    INDEXER_ID_LENGTH,
    InMemoryMappingStore,
    PostgresMappingStore,
    generate_indexer_id,
)


def sequence(*ids):
    it = iter(ids)
    return lambda: next(it)


class TestGenerateIndexerId:
    def test_shape(self):
        for _ in range(100):
            value = generate_indexer_id()
            assert len(value) == INDEXER_ID_LENGTH
            assert set(value) <= set(INDEXER_ID_ALPHABET)


class TestInMemoryMappingStore:
    @pytest.mark.asyncio
    async def test_first_sight_creates(self):
        store = InMemoryMappingStore(id_factory=sequence("aaaaaaaaaa"))
        result = await store.resolve_or_create("Token_r1")
        assert result.internal_id == "aaaaaaaaaa"
        assert result.created is True

    @pytest.mark.asyncio
    async def test_stable_across_calls(self):
        store = InMemoryMappingStore()
        first = await store.resolve_or_create("Token_r1")
        second = await store.resolve_or_create("Token_r1")
        assert second.internal_id == first.internal_id
        assert second.created is False
        assert await store.lookup("Token_r1") == first.internal_id

    @pytest.mark.asyncio
    async def test_lookup_unknown(self):
        assert await InMemoryMappingStore().lookup("nope_r1") is None

    @pytest.mark.asyncio
    async def test_concurrent_resolution_yields_one_id(self):
        store = InMemoryMappingStore()
        results = await asyncio.gather(*[store.resolve_or_create("Token_r1") for _ in range(20)])
        assert len({r.internal_id for r in results}) == 1
        assert sum(r.created for r in results) == 1
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_distinct_keys_get_distinct_ids(self):
        store = InMemoryMappingStore(id_factory=sequence("aaaaaaaaaa", "aaaaaaaaaa", "bbbbbbbbbb"))
        a = await store.resolve_or_create("A_r1")
        b = await store.resolve_or_create("B_r1")
        assert a.internal_id == "aaaaaaaaaa"
        assert b.internal_id == "bbbbbbbbbb"

    @pytest.mark.asyncio
    async def test_gives_up_after_repeated_collisions(self):
        store = InMemoryMappingStore(id_factory=lambda: "aaaaaaaaaa")
        await store.resolve_or_create("A_r1")
        with pytest.raises(DatabaseError, match="Could not allocate"):
            await store.resolve_or_create("B_r1")


# ── Postgres store with a mocked psycopg pool ───────────────────────────


def make_pool(conn):
    pool = MagicMock()
    pool.connection.return_value.__aenter__ = AsyncMock(return_value=conn)
    pool.connection.return_value.__aexit__ = AsyncMock(return_value=False)
    return pool


def make_conn(*rows, insert_errors=()):
    """Connection whose ``execute`` cursors return ``rows`` in order.

    ``insert_errors`` are raised (in order) by INSERT statements before
    any row is consumed for them.
    """
    conn = MagicMock()
    conn.transaction.return_value.__aenter__ = AsyncMock(return_value=None)
    conn.transaction.return_value.__aexit__ = AsyncMock(return_value=False)
    row_iter = iter(rows)
    error_iter = iter(insert_errors)

    async def execute(sql, params=None):
        if "INSERT" in sql:
            error = next(error_iter, None)
            if error is not None:
                raise error
        cur = MagicMock()
        cur.fetchone = AsyncMock(return_value=next(row_iter))
        return cur

    conn.execute = AsyncMock(side_effect=execute)
    return conn


class TestPostgresMappingStore:
    @pytest.mark.asyncio
    async def test_insert_creates(self):
        conn = make_conn(("abcdefghij",))
        store = PostgresMappingStore(make_pool(conn), id_factory=lambda: "abcdefghij")

        result = await store.resolve_or_create("Token_r1")

        assert result.internal_id == "abcdefghij"
        assert result.created is True
        sql, params = conn.execute.call_args.args
        assert "ON CONFLICT (name_uuid) DO NOTHING" in sql
        assert params == ("Token_r1", "abcdefghij")

    @pytest.mark.asyncio
    async def test_existing_key_is_reread(self):
        conn = make_conn(None, ("existingid",))
        store = PostgresMappingStore(make_pool(conn), id_factory=lambda: "candidate_")

        result = await store.resolve_or_create("Token_r1")

        assert result.internal_id == "existingid"
        assert result.created is False
        assert conn.execute.call_count == 2
        assert "SELECT indexer_id" in conn.execute.call_args.args[0]

    @pytest.mark.asyncio
    async def test_id_collision_retries_with_new_id(self):
        conn = make_conn(("second_id_",), insert_errors=(pg_errors.UniqueViolation("dup"),))
        ids = itertools.cycle(["first_id__", "second_id_"])
        store = PostgresMappingStore(make_pool(conn), id_factory=lambda: next(ids))

        result = await store.resolve_or_create("Token_r1")

        assert result.internal_id == "second_id_"
        assert result.created is True

    @pytest.mark.asyncio
    async def test_driver_error_becomes_database_error(self):
        conn = make_conn(insert_errors=(psycopg.OperationalError("connection lost"),))
        store = PostgresMappingStore(make_pool(conn))

        with pytest.raises(DatabaseError, match="Mapping store unavailable") as exc:
            await store.resolve_or_create("Token_r1")
        assert exc.value.context.contract == "Token_r1"

    @pytest.mark.asyncio
    async def test_lookup(self):
        store = PostgresMappingStore(make_pool(make_conn(("abcdefghij",))))
        assert await store.lookup("Token_r1") == "abcdefghij"

    @pytest.mark.asyncio
    async def test_lookup_unknown(self):
        store = PostgresMappingStore(make_pool(make_conn(None)))
        assert await store.lookup("Token_r1") is None

    @pytest.mark.asyncio
    async def test_ensure_schema(self):
        conn = make_conn(None)
        await PostgresMappingStore(make_pool(conn)).ensure_schema()
        sql = conn.execute.call_args.args[0]
        assert "CREATE TABLE IF NOT EXISTS name_uuid_indexer_id_mapping" in sql
        assert "indexer_id VARCHAR(255) NOT NULL UNIQUE" in sql
