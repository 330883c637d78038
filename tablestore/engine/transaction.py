"""
StoreTransaction, ObjectStore and Index - transactional access to stores.
"""

import logging
from collections.abc import Mapping
from typing import Any

from tablestore.engine.state import DatabaseState
from tablestore.interfaces.storage_handle import READWRITE, Transaction
from tablestore.interfaces.store_accessor import IndexAccessor, StoreAccessor
from tablestore.models.exceptions import (
    DataError,
    InvalidStateError,
    NotFoundError,
    ReadOnlyError,
    StorageError,
)
from tablestore.models.journal_entry import JournalEntry, Operation
from tablestore.models.keys import normalize_key
from tablestore.models.object_store import StoreData, copy_record

logger = logging.getLogger(__name__)


class StoreTransaction(Transaction):
    """
    A transaction over a fixed set of stores.

    Readonly transactions read the stores as committed when the transaction
    began. Readwrite transactions hold the database write lock, write to
    private clones of the stores they touch, and swap the clones in at
    commit after the journal batch is written.
    """

    def __init__(self, state: DatabaseState, scope: list[str], mode: str) -> None:
        self._state = state
        self.scope = scope
        self.mode = mode
        self._snapshot: dict[str, StoreData] = {}
        self._working: dict[str, StoreData] = {}
        self._journal: list[JournalEntry] = []
        self._active = False
        self._finished = False

    async def __aenter__(self) -> "StoreTransaction":
        if self._active or self._finished:
            raise InvalidStateError("transaction has already been used")

        if self.mode == READWRITE:
            await self._state.write_lock.acquire()
        try:
            for name in self.scope:
                if name not in self._state.stores:
                    raise NotFoundError(f"no object store {name!r} in {self._state.name!r}")
                self._snapshot[name] = self._state.stores[name]
        except NotFoundError:
            if self.mode == READWRITE:
                self._state.write_lock.release()
            self._finished = True
            raise

        self._active = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            if exc_type is None:
                if self.mode == READWRITE and self._working:
                    await self._commit()
            else:
                logger.debug(
                    "Transaction on %s aborted: %s", self.scope, exc_val
                )
        finally:
            self._active = False
            self._finished = True
            self._working.clear()
            self._journal.clear()
            if self.mode == READWRITE:
                self._state.write_lock.release()

    async def _commit(self) -> None:
        for name, store in self._working.items():
            if store.counter != self._snapshot[name].counter:
                self._journal.append(
                    JournalEntry(Operation.SET_COUNTER, name, payload=store.counter)
                )
        await self._state.persist(self._journal)
        self._state.stores.update(self._working)
        logger.debug(
            "Committed %d change(s) to %s in %s",
            len(self._journal),
            list(self._working),
            self._state.name,
        )

    def object_store(self, name: str) -> "ObjectStore":
        if name not in self.scope:
            raise NotFoundError(f"object store {name!r} is not in the transaction scope")
        return ObjectStore(self, name)

    @property
    def active(self) -> bool:
        return self._active

    def _check_active(self) -> None:
        if not self._active:
            raise InvalidStateError("transaction is not active")

    def _read(self, name: str) -> StoreData:
        self._check_active()
        store = self._working.get(name)
        if store is None:
            store = self._snapshot[name]
        return store

    def _write(self, name: str) -> StoreData:
        self._check_active()
        if self.mode != READWRITE:
            raise ReadOnlyError(f"cannot write to {name!r} in a readonly transaction")
        store = self._working.get(name)
        if store is None:
            store = self._working[name] = self._snapshot[name].clone()
        return store

    def _record(self, entry: JournalEntry) -> None:
        self._journal.append(entry)


class ObjectStore(StoreAccessor):
    """Access to one store through a StoreTransaction."""

    def __init__(self, transaction: StoreTransaction, name: str) -> None:
        self._tx = transaction
        self.name = name

    @property
    def key_path(self) -> str:
        return self._tx._read(self.name).key_path

    @property
    def auto_increment(self) -> bool:
        return self._tx._read(self.name).auto_increment

    @property
    def index_names(self) -> list[str]:
        return sorted(self._tx._read(self.name).indexes)

    async def add(self, record: Mapping[str, Any]) -> Any:
        return self._write_record(record, overwrite=False)

    async def put(self, record: Mapping[str, Any]) -> Any:
        return self._write_record(record, overwrite=True)

    def _write_record(self, record: Mapping[str, Any], overwrite: bool) -> Any:
        if not isinstance(record, Mapping):
            raise DataError(f"records must be mappings, got {type(record).__name__}")

        store = self._tx._write(self.name)
        record = copy_record(dict(record))
        counter = store.counter
        try:
            key = store.assign_key(record)
            store.put_record(key, record, overwrite=overwrite)
        except StorageError:
            store.counter = counter
            raise

        self._tx._record(JournalEntry(Operation.PUT, self.name, key=key, payload=record))
        return key

    async def get(self, key: Any) -> dict | None:
        record = self._tx._read(self.name).get(normalize_key(key))
        return None if record is None else copy_record(record)

    async def get_all(self) -> list[dict]:
        return [copy_record(record) for record in self._tx._read(self.name).records()]

    async def delete(self, key: Any) -> None:
        key = normalize_key(key)
        if self._tx._write(self.name).delete(key):
            self._tx._record(JournalEntry(Operation.DELETE, self.name, key=key))

    async def count(self) -> int:
        return self._tx._read(self.name).count()

    async def clear(self) -> None:
        self._tx._write(self.name).clear()
        self._tx._record(JournalEntry(Operation.CLEAR, self.name))

    def index(self, name: str) -> "Index":
        self._tx._read(self.name).index(name)
        return Index(self._tx, self.name, name)


class Index(IndexAccessor):
    """Lookup by a secondary index through a StoreTransaction."""

    def __init__(self, transaction: StoreTransaction, store_name: str, name: str) -> None:
        self._tx = transaction
        self.store_name = store_name
        self.name = name

    async def get(self, value: Any) -> dict | None:
        store = self._tx._read(self.store_name)
        primary_key = store.index(self.name).first(normalize_key(value))
        if primary_key is None:
            return None
        return copy_record(store.get(primary_key))

    async def get_all(self, value: Any) -> list[dict]:
        store = self._tx._read(self.store_name)
        keys = store.index(self.name).primary_keys(normalize_key(value))
        return [copy_record(store.get(key)) for key in keys]

    async def count(self, value: Any) -> int:
        store = self._tx._read(self.store_name)
        return len(store.index(self.name).primary_keys(normalize_key(value)))
