"""
DatabaseRecoverer - Rebuild a database from its journal.
"""

from tablestore.engine.state import DatabaseState
from tablestore.models.exceptions import StorageIOError
from tablestore.models.journal_entry import JournalEntry, Operation
from tablestore.models.object_store import StoreData


class DatabaseRecoverer:
    """
    Recovers committed state by replaying journal entries.

    Used when a persistent database is first opened in a process.
    """

    def recover(self, state: DatabaseState) -> int:
        """
        Replay the journal of ``state`` into it.

        Args:
            state: Freshly created state with a journal attached.

        Returns:
            Number of entries replayed.

        Raises:
            JournalCorruptionError: If an entry fails its checksum.
            StorageIOError: If an entry cannot be decoded or replayed.
        """
        count = 0
        for entry in state.journal.recover():
            try:
                self.apply(state, entry)
            except (KeyError, TypeError, ValueError) as e:
                raise StorageIOError(
                    f"cannot replay journal entry {entry.seq} of {state.name!r}: {e}"
                ) from e
            count += 1
        return count

    def apply(self, state: DatabaseState, entry: JournalEntry) -> None:
        op = entry.op
        if op == Operation.SET_VERSION:
            state.version = entry.payload
        elif op == Operation.CREATE_STORE:
            state.stores[entry.store] = StoreData(
                entry.store,
                entry.payload["key_path"],
                entry.payload["auto_increment"],
            )
        elif op == Operation.DELETE_STORE:
            state.stores.pop(entry.store, None)
        else:
            store = state.stores[entry.store]
            if op == Operation.PUT:
                store.put_record(entry.key, entry.payload)
            elif op == Operation.DELETE:
                store.delete(entry.key)
            elif op == Operation.CLEAR:
                store.clear()
            elif op == Operation.CREATE_INDEX:
                store.create_index(
                    entry.payload["name"],
                    entry.payload["key_path"],
                    entry.payload["unique"],
                )
            elif op == Operation.DELETE_INDEX:
                store.delete_index(entry.payload)
            elif op == Operation.SET_COUNTER:
                store.counter = entry.payload
