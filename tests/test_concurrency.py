"""
Concurrency tests for the table layer.
"""

import asyncio

import pytest

from tablestore.models.exceptions import StaleConnectionError
from tablestore.models.response import Status


class TestConcurrentOperations:
    """Operations issued together on one Database."""

    async def test_many_concurrent_inserts(self, people):
        tasks = [
            people.create("people", {"name": f"user{i}", "email": f"user{i}@x"})
            for i in range(50)
        ]
        results = await asyncio.gather(*tasks)

        assert all(r.status == Status.CREATED for r in results)
        records = await people.select_all("people")
        assert [r["id"] for r in records] == list(range(1, 51))

    async def test_create_table_waits_for_in_flight_operations(self, people):
        inserts = [
            people.create("people", {"name": f"user{i}", "email": f"user{i}@x"})
            for i in range(20)
        ]
        results = await asyncio.gather(*inserts, people.create_table("audit"), *[
            people.select_one("people", "name", f"user{i}") for i in range(20)
        ])

        assert all(r.status == Status.CREATED for r in results[:21])
        assert all(r["name"] == f"user{i}" for i, r in enumerate(results[21:]))
        assert people.version == 3

    async def test_concurrent_create_tables_are_serialized(self, db):
        results = await asyncio.gather(*[db.create_table(f"t{i}") for i in range(5)])

        assert all(r.status == Status.CREATED for r in results)
        assert db.version == 6
        assert sorted(db.schemas) == [f"t{i}" for i in range(5)]

    async def test_generation_changes_with_handle(self, people):
        generation = people.generation
        await people.create_table("other")
        assert people.generation == generation + 1
        await people.close()
        assert people.generation == generation + 2
        assert (await people.select_all("people")) == []

    async def test_stale_lease_rejected(self, people):
        async with people._session() as lease:
            people._generation += 1
            with pytest.raises(StaleConnectionError):
                people._transaction(lease, "people", "readonly")

    async def test_cancelled_create_table_releases_waiting_operations(self, people):
        async with people._session():
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(people.create_table("audit"), 0.1)

        assert await asyncio.wait_for(people.select_all("people"), 1) == []
        assert "audit" not in people.schemas
        assert people.version == 2

        response = await asyncio.wait_for(people.create_table("audit"), 1)
        assert response.status == Status.CREATED
        assert people.version == 3
