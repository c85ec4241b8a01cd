"""Collection repositories: durable named slots for marketplace records.

Each slot holds one whole collection as a list of JSON-compatible dicts.
A missing slot is seeded empty on first access. Mutations go through
``update``, which reads, transforms and writes the slot as one unit, so a
failed write leaves the previous collection intact and concurrent writers
never overwrite each other.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

import structlog
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from atlas.core.errors import StorageUnavailableError
from atlas.models.storage import StorageSlot

logger = structlog.get_logger()

Record = dict[str, Any]
T = TypeVar("T")

# Receives a private copy of the slot. Returns the records to persist
# (None = leave the slot untouched) and a value handed back to the caller.
Mutation = Callable[[list[Record]], tuple[list[Record] | None, T]]

_UPSERT_DIALECTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class CollectionRepository(Protocol):
    async def get(self, key: str) -> list[Record]: ...

    async def update(self, key: str, mutate: Mutation[T]) -> T: ...


class InMemoryCollectionRepository:
    """Process-local slots. Callers always receive and hand over copies."""

    def __init__(self, initial: dict[str, list[Record]] | None = None) -> None:
        self._slots: dict[str, list[Record]] = copy.deepcopy(initial or {})

    async def get(self, key: str) -> list[Record]:
        return copy.deepcopy(self._slots.setdefault(key, []))

    async def update(self, key: str, mutate: Mutation[T]) -> T:
        records, result = mutate(copy.deepcopy(self._slots.setdefault(key, [])))
        if records is not None:
            self._slots[key] = copy.deepcopy(records)
        return result

    async def set(self, key: str, records: list[Record]) -> None:
        await self.update(key, lambda _: (records, None))


class SqlCollectionRepository:
    """Slots stored as rows of the ``storage_slots`` table.

    ``update`` seeds the row if needed, then locks it with
    ``SELECT ... FOR UPDATE`` for the rest of the transaction, which
    serializes writers across processes. Within a process, calls for the
    same key also queue on an ``asyncio.Lock`` so they never share a
    connection mid-transaction.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._key_locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        return self._key_locks.setdefault(key, asyncio.Lock())

    async def _seed(self, session: AsyncSession, key: str) -> None:
        insert = _UPSERT_DIALECTS.get(session.get_bind().dialect.name)
        if insert is not None:
            await session.execute(
                insert(StorageSlot)
                .values(key=key, records=[])
                .on_conflict_do_nothing(index_elements=[StorageSlot.key])
            )
        elif await session.get(StorageSlot, key) is None:
            session.add(StorageSlot(key=key, records=[]))
            await session.flush()

    async def get(self, key: str) -> list[Record]:
        async with self._lock_for(key):
            try:
                async with self._session_factory() as session, session.begin():
                    slot = await session.get(StorageSlot, key)
                    if slot is None:
                        await self._seed(session, key)
                        return []
                    records = copy.deepcopy(slot.records)
            except SQLAlchemyError as exc:
                logger.error("storage_read_failed", key=key, error=str(exc))
                raise StorageUnavailableError(key, "read", str(exc)) from exc
        return records

    async def update(self, key: str, mutate: Mutation[T]) -> T:
        async with self._lock_for(key):
            try:
                async with self._session_factory() as session, session.begin():
                    await self._seed(session, key)
                    slot = (
                        await session.execute(
                            select(StorageSlot)
                            .where(StorageSlot.key == key)
                            .with_for_update()
                        )
                    ).scalar_one()
                    records, result = mutate(copy.deepcopy(slot.records))
                    if records is not None:
                        slot.records = copy.deepcopy(records)
            except SQLAlchemyError as exc:
                logger.error("storage_write_failed", key=key, error=str(exc))
                raise StorageUnavailableError(key, "write", str(exc)) from exc
        return result

    async def set(self, key: str, records: list[Record]) -> None:
        await self.update(key, lambda _: (records, None))
