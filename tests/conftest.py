"""
Shared pytest fixtures for the table layer and storage engine tests.
"""

import pytest
import pytest_asyncio

from tablestore.database import Database
from tablestore.engine.engine import StorageEngine
from tablestore.models.object_store import StoreData


@pytest_asyncio.fixture
async def engine():
    """Provide an in-memory StorageEngine."""
    async with StorageEngine() as eng:
        yield eng


@pytest_asyncio.fixture
async def persistent_engine(tmp_path):
    """Provide a StorageEngine journaling to a temporary directory."""
    async with StorageEngine(storage_dir=str(tmp_path)) as eng:
        yield eng


@pytest_asyncio.fixture
async def db(engine):
    """Provide a Database on the in-memory engine."""
    async with Database("shop", engine=engine) as database:
        yield database


@pytest_asyncio.fixture
async def people(db):
    """Provide a Database with a ``people`` table indexed on name and unique email."""
    await db.create_table("people", "id", True, ["name", {"name": "email", "unique": True}])
    return db


@pytest.fixture
def store():
    """Provide an auto-increment StoreData keyed on ``id``."""
    return StoreData("items", "id", auto_increment=True)


@pytest.fixture
def sample_records():
    """Provide sample records without primary keys."""
    return [
        {"name": "ada", "email": "ada@example.com"},
        {"name": "grace", "email": "grace@example.com"},
        {"name": "alan", "email": "alan@example.com"},
    ]
