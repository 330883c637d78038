"""
Connection and UpgradeTransaction - handles returned by StorageEngine.open.
"""

import logging

from tablestore.engine.state import DatabaseState
from tablestore.engine.transaction import StoreTransaction
from tablestore.interfaces.storage_handle import READONLY, READWRITE, StorageHandle, UpgradeHandle
from tablestore.models.exceptions import (
    ConnectionClosedError,
    ConstraintError,
    DataError,
    InvalidStateError,
    NotFoundError,
)
from tablestore.models.journal_entry import JournalEntry, Operation
from tablestore.models.object_store import StoreData

logger = logging.getLogger(__name__)


class Connection(StorageHandle):
    """An open connection to a database, fixed at the version it was opened with."""

    def __init__(self, state: DatabaseState) -> None:
        self._state = state
        self._version = state.version
        self._closed = False

    @property
    def name(self) -> str:
        return self._state.name

    @property
    def version(self) -> int:
        return self._version

    @property
    def object_store_names(self) -> list[str]:
        return sorted(self._state.stores)

    @property
    def closed(self) -> bool:
        return self._closed

    def transaction(self, store_names: str | list[str], mode: str = READONLY) -> StoreTransaction:
        if self._closed:
            raise ConnectionClosedError(f"connection to {self.name!r} is closed")
        if mode not in (READONLY, READWRITE):
            raise ValueError(f"mode must be {READONLY!r} or {READWRITE!r}, got {mode!r}")

        scope = [store_names] if isinstance(store_names, str) else list(store_names)
        if not scope:
            raise InvalidStateError("a transaction needs at least one store")
        for name in scope:
            if name not in self._state.stores:
                raise NotFoundError(f"no object store {name!r} in {self.name!r}")
        return StoreTransaction(self._state, scope, mode)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._state.connections.discard(self)
        logger.debug("Closed connection to %s (version %d)", self.name, self._version)


class UpgradeTransaction(UpgradeHandle):
    """
    Schema changes made inside an upgrade callback.

    Works on a copy of the store map; the engine installs it only if the
    callback returns without raising.
    """

    def __init__(self, state: DatabaseState, old_version: int, new_version: int) -> None:
        self.old_version = old_version
        self.new_version = new_version
        self.stores: dict[str, StoreData] = dict(state.stores)
        self.entries: list[JournalEntry] = []
        self._cloned: set[str] = set()
        self._active = True

    @property
    def object_store_names(self) -> list[str]:
        return sorted(self.stores)

    def finish(self) -> None:
        self._active = False

    def _check_active(self) -> None:
        if not self._active:
            raise InvalidStateError("schema changes are only allowed during an upgrade")

    def _editable(self, name: str) -> StoreData:
        self._check_active()
        if name not in self.stores:
            raise NotFoundError(f"no object store {name!r}")
        if name not in self._cloned:
            self.stores[name] = self.stores[name].clone()
            self._cloned.add(name)
        return self.stores[name]

    def create_object_store(self, name: str, key_path: str, auto_increment: bool = False) -> None:
        self._check_active()
        if not name:
            raise DataError("object store name cannot be empty")
        if name in self.stores:
            raise ConstraintError(f"object store {name!r} already exists")

        store = StoreData(name, key_path, auto_increment)
        self.stores[name] = store
        self._cloned.add(name)
        self.entries.append(JournalEntry(Operation.CREATE_STORE, name, payload=store.describe()))
        logger.debug("Created object store %s (key_path=%s, auto_increment=%s)", name, key_path, auto_increment)

    def delete_object_store(self, name: str) -> None:
        self._check_active()
        if name not in self.stores:
            raise NotFoundError(f"no object store {name!r}")
        del self.stores[name]
        self._cloned.discard(name)
        self.entries.append(JournalEntry(Operation.DELETE_STORE, name))

    def create_index(self, store_name: str, name: str, key_path: str | None = None, unique: bool = False) -> None:
        index = self._editable(store_name).create_index(name, key_path or name, unique)
        self.entries.append(JournalEntry(Operation.CREATE_INDEX, store_name, payload=index.describe()))

    def delete_index(self, store_name: str, name: str) -> None:
        self._editable(store_name).delete_index(name)
        self.entries.append(JournalEntry(Operation.DELETE_INDEX, store_name, payload=name))
