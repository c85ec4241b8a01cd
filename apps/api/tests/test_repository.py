"""Tests for the collection repositories."""

from __future__ import annotations

import asyncio
import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from atlas.core.errors import StorageUnavailableError
from atlas.models.enums import InvestmentType
from atlas.models.storage import StorageSlot
from atlas.modules.marketplace.repository import (
    InMemoryCollectionRepository,
    SqlCollectionRepository,
)
from atlas.modules.marketplace.schemas import SubmissionFields
from atlas.modules.marketplace.service import MarketplaceStore

pytestmark = pytest.mark.anyio


class TestInMemoryRepository:
    async def test_missing_slot_is_empty(self):
        assert await InMemoryCollectionRepository().get("nothing") == []

    async def test_returns_copies(self):
        repo = InMemoryCollectionRepository()
        records = [{"id": 1, "tags": ["a"]}]
        await repo.set("k", records)

        records[0]["tags"].append("mutated")
        loaded = await repo.get("k")
        loaded[0]["id"] = 99

        assert await repo.get("k") == [{"id": 1, "tags": ["a"]}]


class TestSqlRepository:
    async def test_missing_slot_is_empty(self, session_factory):
        assert await SqlCollectionRepository(session_factory).get("nothing") == []

    async def test_set_inserts_then_replaces_slot(self, session_factory):
        repo = SqlCollectionRepository(session_factory)
        await repo.set("listings", [{"id": "a"}])
        await repo.set("listings", [{"id": "a"}, {"id": "b"}])

        assert await repo.get("listings") == [{"id": "a"}, {"id": "b"}]
        async with session_factory() as session:
            rows = (await session.execute(select(StorageSlot))).scalars().all()
        assert [row.key for row in rows] == ["listings"]

    async def test_slots_are_independent(self, session_factory):
        repo = SqlCollectionRepository(session_factory)
        await repo.set("listings", [{"id": 1}])
        await repo.set("submissions", [{"id": 2}, {"id": 3}])

        assert await repo.get("listings") == [{"id": 1}]
        assert len(await repo.get("submissions")) == 2

    async def test_store_round_trip_through_database(self, session_factory, field_site, clock):
        store = MarketplaceStore(SqlCollectionRepository(session_factory), clock=clock)
        first = await store.publish(field_site, 25.0, 60.0)
        second = await store.publish(field_site)

        reloaded = MarketplaceStore(SqlCollectionRepository(session_factory), clock=clock)
        listing = await reloaded.find_by_site(field_site.id)

        assert listing is not None
        assert listing.id == first.id == second.id
        assert listing.investor_score.total_score == first.investor_score.total_score
        assert listing.co2_credits_available is None

    async def test_driver_errors_become_storage_unavailable(self, session_factory):
        class BrokenSession(AsyncSession):
            async def get(self, *args, **kwargs):
                raise OperationalError("SELECT", {}, Exception("database is locked"))

            async def execute(self, *args, **kwargs):
                raise OperationalError("INSERT", {}, Exception("database is locked"))

        broken_factory = async_sessionmaker(
            session_factory.kw["bind"], class_=BrokenSession, expire_on_commit=False
        )
        repo = SqlCollectionRepository(broken_factory)

        with pytest.raises(StorageUnavailableError) as read_error:
            await repo.get("listings")
        with pytest.raises(StorageUnavailableError) as write_error:
            await repo.set("listings", [])

        assert read_error.value.operation == "read"
        assert write_error.value.operation == "write"
        assert read_error.value.key == "listings"


class TestSqlRepositoryConcurrency:
    async def test_get_seeds_missing_slot(self, session_factory):
        await SqlCollectionRepository(session_factory).get("listings")

        async with session_factory() as session:
            slot = await session.get(StorageSlot, "listings")
        assert slot is not None
        assert slot.records == []

    async def test_update_returns_mutation_result_and_skips_noop(self, session_factory):
        repo = SqlCollectionRepository(session_factory)
        await repo.set("submissions", [{"id": 1}])

        result = await repo.update("submissions", lambda records: (None, len(records)))

        assert result == 1
        assert await repo.get("submissions") == [{"id": 1}]

    async def test_failed_mutation_rolls_back(self, session_factory):
        repo = SqlCollectionRepository(session_factory)
        await repo.set("submissions", [{"id": 1}])

        def explode(records):
            raise ValueError("bad record")

        with pytest.raises(ValueError):
            await repo.update("submissions", explode)
        assert await repo.get("submissions") == [{"id": 1}]

    @pytest.mark.parametrize("preseed", [False, True], ids=["missing_slot", "existing_slot"])
    async def test_two_stores_on_one_repository_keep_every_submission(
        self, session_factory, field_site, clock, preseed
    ):
        repo = SqlCollectionRepository(session_factory)
        if preseed:
            await repo.set("atlas_investment_submissions", [])
        first = MarketplaceStore(repo, clock=clock)
        second = MarketplaceStore(repo, clock=clock)
        fields = SubmissionFields(
            listing_id=uuid.uuid4(),
            site_id=field_site.id,
            site_name=field_site.name,
            investor_name="Karim Idrissi",
            investor_email="karim@example.com",
            investment_type=InvestmentType.SITE_INVESTMENT,
        )

        a, b = await asyncio.gather(first.submit_interest(fields), second.submit_interest(fields))

        stored = await first.list_submissions()
        assert {s.id for s in stored} == {a.id, b.id}
