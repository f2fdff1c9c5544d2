"""
Identifier mapping store.

Maps a composite key (``{name}_{report_id}``) to a generated internal id
that is stable for the lifetime of the key. The internal id becomes the
contract's ``name`` in ``rindexer.yaml``, its ABI filename and part of its
Postgres schema name, so it is short, fixed-length and drawn from a
filename- and identifier-safe alphabet.

Race safety comes from the storage layer, not from this process: the
composite key is the table's primary key, and a caller that loses an insert
race re-reads the winner's id instead of failing.

Architecture:
    ::

        resolve_or_create("Token_r1")
              │
              ├─ INSERT ... ON CONFLICT (name_uuid) DO NOTHING RETURNING indexer_id
              │        └─ row returned  → MappingResult(id, created=True)
              │
              └─ no row (key exists or lost race)
                       └─ SELECT indexer_id → MappingResult(id, created=False)

Implementations:
    - :class:`PostgresMappingStore` — psycopg async pool (production)
    - :class:`InMemoryMappingStore` — dict + asyncio.Lock (tests, local dev)

Tags:
    registry, identifier-mapping, postgres, idempotency, indexer-spine
"""

from __future__ import annotations

import asyncio
import secrets
from dataclasses import dataclass
from typing import Protocol

import psycopg
from psycopg import errors as pg_errors
from psycopg_pool import AsyncConnectionPool

from indexer_spine.core.errors import DatabaseError
from indexer_spine.core.logging import get_logger

log = get_logger(__name__)

INDEXER_ID_ALPHABET = "_abcdefghijklmnopqrstuvwxyz"
INDEXER_ID_LENGTH = 10

# Retries after an indexer_id collision between two keys.
MAX_ID_ATTEMPTS = 5

MAPPING_TABLE = "name_uuid_indexer_id_mapping"

CREATE_MAPPING_TABLE = f"""
CREATE TABLE IF NOT EXISTS {MAPPING_TABLE} (
    name_uuid VARCHAR(255) PRIMARY KEY,
    indexer_id VARCHAR(255) NOT NULL UNIQUE
)
"""


def generate_indexer_id() -> str:
    return "".join(secrets.choice(INDEXER_ID_ALPHABET) for _ in range(INDEXER_ID_LENGTH))


@dataclass(frozen=True)
class MappingResult:
    """Resolved internal id; ``created`` is True when this call inserted it."""

    internal_id: str
    created: bool


class MappingStore(Protocol):
    """Contract shared by all mapping store implementations."""

    async def resolve_or_create(self, composite_key: str) -> MappingResult:
        """Return the key's internal id, creating it on first sight."""
        ...

    async def lookup(self, composite_key: str) -> str | None:
        """Return the key's internal id, or ``None`` if never registered."""
        ...


class PostgresMappingStore:
    """Mapping store backed by the ``name_uuid_indexer_id_mapping`` table."""

    def __init__(self, pool: AsyncConnectionPool, *, id_factory=generate_indexer_id):
        self._pool = pool
        self._id_factory = id_factory

    async def ensure_schema(self) -> None:
        try:
            async with self._pool.connection() as conn:
                await conn.execute(CREATE_MAPPING_TABLE)
        except psycopg.Error as e:
            raise DatabaseError(f"Could not create {MAPPING_TABLE}: {e}", cause=e) from e

    async def lookup(self, composite_key: str) -> str | None:
        try:
            async with self._pool.connection() as conn:
                cur = await conn.execute(
                    f"SELECT indexer_id FROM {MAPPING_TABLE} WHERE name_uuid = %s",
                    (composite_key,),
                )
                row = await cur.fetchone()
        except psycopg.Error as e:
            raise DatabaseError(f"Mapping lookup failed: {e}", cause=e).with_context(
                contract=composite_key
            ) from e
        return row[0] if row else None

    async def resolve_or_create(self, composite_key: str) -> MappingResult:
        try:
            async with self._pool.connection() as conn:
                for _attempt in range(MAX_ID_ATTEMPTS):
                    candidate = self._id_factory()
                    try:
                        async with conn.transaction():
                            cur = await conn.execute(
                                f"""
                                INSERT INTO {MAPPING_TABLE} (name_uuid, indexer_id)
                                VALUES (%s, %s)
                                ON CONFLICT (name_uuid) DO NOTHING
                                RETURNING indexer_id
                                """,
                                (composite_key, candidate),
                            )
                            row = await cur.fetchone()
                    except pg_errors.UniqueViolation:
                        # indexer_id collided with another key's id
                        log.warning("indexer_id_collision", contract=composite_key, indexer_id=candidate)
                        continue

                    if row is not None:
                        log.info("indexer_id_created", contract=composite_key, indexer_id=row[0])
                        return MappingResult(internal_id=row[0], created=True)

                    cur = await conn.execute(
                        f"SELECT indexer_id FROM {MAPPING_TABLE} WHERE name_uuid = %s",
                        (composite_key,),
                    )
                    existing = await cur.fetchone()
                    if existing is not None:
                        return MappingResult(internal_id=existing[0], created=False)
                    # Row vanished between INSERT and SELECT; retry.
        except psycopg.Error as e:
            raise DatabaseError(f"Mapping store unavailable: {e}", cause=e).with_context(
                contract=composite_key
            ) from e

        raise DatabaseError(
            f"Could not allocate an indexer id after {MAX_ID_ATTEMPTS} attempts"
        ).with_context(contract=composite_key)


class InMemoryMappingStore:
    """Process-local mapping store with the same uniqueness guarantees."""

    def __init__(self, *, id_factory=generate_indexer_id):
        self._by_key: dict[str, str] = {}
        self._ids: set[str] = set()
        self._lock = asyncio.Lock()
        self._id_factory = id_factory

    async def lookup(self, composite_key: str) -> str | None:
        return self._by_key.get(composite_key)

    async def resolve_or_create(self, composite_key: str) -> MappingResult:
        async with self._lock:
            existing = self._by_key.get(composite_key)
            if existing is not None:
                return MappingResult(internal_id=existing, created=False)

            for _attempt in range(MAX_ID_ATTEMPTS):
                candidate = self._id_factory()
                if candidate not in self._ids:
                    self._by_key[composite_key] = candidate
                    self._ids.add(candidate)
                    return MappingResult(internal_id=candidate, created=True)

        raise DatabaseError(
            f"Could not allocate an indexer id after {MAX_ID_ATTEMPTS} attempts"
        ).with_context(contract=composite_key)

    def __len__(self) -> int:
        return len(self._by_key)
