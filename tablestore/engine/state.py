"""
DatabaseState - committed contents of one database held by the engine.
"""

import asyncio

from tablestore.models.exceptions import StorageIOError
from tablestore.models.journal import Journal
from tablestore.models.journal_entry import JournalEntry
from tablestore.models.object_store import StoreData


class DatabaseState:
    """
    Committed version, stores and open connections of one database.

    ``stores`` maps names to StoreData objects that are never mutated once
    committed: writers clone, and commit swaps the clone in. Readers that
    captured the old object keep a consistent snapshot.
    """

    def __init__(self, name: str, journal: Journal | None = None) -> None:
        self.name = name
        self.version = 0
        self.stores: dict[str, StoreData] = {}
        self.journal = journal
        self.connections: set = set()
        # Serializes readwrite transactions and upgrades
        self.write_lock = asyncio.Lock()

    async def persist(self, entries: list[JournalEntry]) -> None:
        """
        Append committed entries to the journal, if the database has one.

        Raises:
            DataError: If an entry cannot be serialized. Nothing is written.
            StorageIOError: If the journal write fails.
        """
        if self.journal is None or not entries:
            return
        try:
            await self.journal.batch_append(entries)
        except OSError as e:
            raise StorageIOError(f"failed to write journal of {self.name!r}: {e}") from e
