"""
Tests for the single-table Memory facade.
"""

import pytest
import pytest_asyncio

from tablestore.database import Database
from tablestore.memory import Memory
from tablestore.models.exceptions import ConnectionClosedError, DataError
from tablestore.models.response import OperationError, Response, Status


@pytest_asyncio.fixture
async def memory(engine):
    mem = Memory(engine=engine)
    yield mem
    await mem.close()


class TestMemory:
    """Create, read and delete named memories."""

    async def test_create_and_read(self, memory):
        response = await memory.create("greeting", {"text": "hello"})
        assert response.status == Status.CREATED
        assert await memory.read("greeting") == {"text": "hello"}

    async def test_create_existing_conflicts(self, memory):
        await memory.create("greeting", "hello")
        response = await memory.create("greeting", "bye")

        assert response.status == Status.CONFLICT
        assert await memory.read("greeting") == "hello"

    async def test_falsy_values_are_stored(self, memory):
        await memory.create("zero", 0)
        await memory.create("empty", "")
        assert await memory.read("zero") == 0
        assert await memory.read("empty") == ""
        assert (await memory.create("zero", 1)).status == Status.CONFLICT

    async def test_read_missing(self, memory):
        response = await memory.read("nothing")
        assert response.status == Status.NOT_FOUND
        assert "nothing" in response.message

    async def test_delete(self, memory):
        await memory.create("greeting", "hello")
        response = await memory.delete("greeting")

        assert response.status == Status.OK
        assert (await memory.read("greeting")).status == Status.NOT_FOUND

    async def test_delete_missing(self, memory):
        response = await memory.delete("nothing")
        assert response.status == Status.NOT_FOUND

    async def test_shares_engine_with_tables(self, engine, memory):
        async with Database("shop", engine=engine) as db:
            await db.create_table("orders", "id", True, ["status"])
            await memory.create("last_order", 1)
            assert (await db.create("orders", {"status": "open"})).status == Status.CREATED
        assert await memory.read("last_order") == 1

    async def test_adds_store_to_existing_database(self, engine):
        async with Database("memoryDB", engine=engine) as db:
            await db.create_table("other")

        mem = Memory(engine=engine)
        assert (await mem.create("k", "v")).status == Status.CREATED
        assert await mem.read("k") == "v"
        await mem.close()


class TestMemoryFailures:
    """Engine failures: read returns a 500 envelope, create and delete raise."""

    async def test_read_on_closed_connection_returns_envelope(self, memory):
        await memory.create("greeting", "hello")
        memory._handle.close()

        response = await memory.read("greeting")
        assert isinstance(response, Response)
        assert response.status == Status.INTERNAL_ERROR
        assert isinstance(response.error, ConnectionClosedError)

    async def test_create_on_closed_connection_raises(self, memory):
        await memory.read("warm-up")
        memory._handle.close()

        with pytest.raises(OperationError) as exc_info:
            await memory.create("greeting", "hello")
        assert exc_info.value.status == Status.INTERNAL_ERROR
        assert isinstance(exc_info.value.error, ConnectionClosedError)

    async def test_delete_on_closed_connection_raises(self, memory):
        await memory.create("greeting", "hello")
        memory._handle.close()

        with pytest.raises(OperationError) as exc_info:
            await memory.delete("greeting")
        assert exc_info.value.status == Status.INTERNAL_ERROR

    async def test_unpersistable_value_raises(self, persistent_engine):
        mem = Memory(engine=persistent_engine)
        with pytest.raises(OperationError) as exc_info:
            await mem.create("handle", object())
        assert isinstance(exc_info.value.error, DataError)
        assert (await mem.read("handle")).status == Status.NOT_FOUND
        await mem.close()
