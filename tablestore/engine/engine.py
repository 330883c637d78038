"""
StorageEngine - versioned, per-origin key-value databases.
"""

import asyncio
import inspect
import logging
import os
import threading
from collections.abc import Awaitable, Callable
from urllib.parse import quote, unquote

from tablestore.engine.connection import Connection, UpgradeTransaction
from tablestore.engine.recoverer import DatabaseRecoverer
from tablestore.engine.state import DatabaseState
from tablestore.models.exceptions import (
    DatabaseBlockedError,
    StorageIOError,
    UpgradeError,
    VersionError,
)
from tablestore.models.journal import Journal
from tablestore.models.journal_entry import JournalEntry, Operation

logger = logging.getLogger(__name__)

UpgradeCallback = Callable[[UpgradeTransaction, int, int], Awaitable[None] | None]

JOURNAL_SUFFIX = ".journal"


class StorageEngine:
    """
    A set of named databases belonging to one origin.

    Provides:
    - open(name, version, on_upgrade): Open a database, upgrading it if needed
    - stored_version(name): Version currently committed for a database
    - database_names(): Databases known to the engine
    - delete_database(name): Drop a database and its journal

    Architecture:
    - Each database is a set of object stores held in memory
    - Opening at a higher version runs the upgrade callback, the only place
      where stores and indexes may be created or removed
    - With a storage directory, every commit is appended to a per-database
      journal and replayed the first time the database is opened
    """

    # Maximum fsync interval for the journal (10 seconds)
    MAX_FSYNC_INTERVAL_MS = 10000

    def __init__(self, storage_dir: str | None = None, fsync_interval_ms: int = 0) -> None:
        """
        Initialize the engine.

        Args:
            storage_dir: Directory for journals. None keeps databases in memory only.
            fsync_interval_ms: Milliseconds between journal fsyncs (default: 0 = always fsync).
        """
        if fsync_interval_ms < 0:
            raise ValueError(f"fsync_interval_ms must be >= 0, got {fsync_interval_ms}")
        if fsync_interval_ms > self.MAX_FSYNC_INTERVAL_MS:
            raise ValueError(
                f"fsync_interval_ms cannot exceed {self.MAX_FSYNC_INTERVAL_MS}ms, got {fsync_interval_ms}"
            )

        if storage_dir is not None:
            if not storage_dir.strip():
                raise ValueError("storage_dir cannot be empty")
            storage_dir = os.path.abspath(storage_dir)

            if not os.path.exists(storage_dir):
                parent = os.path.dirname(storage_dir)
                if not os.access(parent, os.W_OK):
                    raise PermissionError(
                        f"Cannot create storage_dir: {storage_dir}. "
                        f"Parent directory not writable: {parent}"
                    )
            elif not os.access(storage_dir, os.W_OK):
                raise PermissionError(f"storage_dir not writable: {storage_dir}")

        self._storage_dir = storage_dir
        self._fsync_interval_ms = fsync_interval_ms
        self._databases: dict[str, DatabaseState] = {}
        self._recoverer = DatabaseRecoverer()

        # Serializes open, upgrade and delete (lazy initialized in async context)
        self._open_lock: asyncio.Lock | None = None
        self._async_initialized: bool = False
        self._init_lock = threading.Lock()

    @property
    def storage_dir(self) -> str | None:
        return self._storage_dir

    @property
    def in_memory(self) -> bool:
        return self._storage_dir is None

    async def _ensure_async_initialized(self) -> None:
        if self._async_initialized:
            return

        with self._init_lock:
            if not self._async_initialized:
                self._open_lock = asyncio.Lock()
                self._async_initialized = True

    def _journal_path(self, name: str) -> str:
        return os.path.join(self._storage_dir, quote(name, safe="") + JOURNAL_SUFFIX)

    def _load(self, name: str) -> DatabaseState:
        """Return the state of a database, recovering it from its journal on first use."""
        state = self._databases.get(name)
        if state is not None:
            return state

        journal = None
        if self._storage_dir is not None:
            journal = Journal(self._journal_path(name), self._fsync_interval_ms)
        state = DatabaseState(name, journal)

        if journal is not None:
            try:
                os.makedirs(self._storage_dir, exist_ok=True)
                replayed = self._recoverer.recover(state)
                journal.open()
            except OSError as e:
                raise StorageIOError(f"failed to load journal of {name!r}: {e}") from e
            if replayed:
                logger.info(
                    "Recovered %s at version %d from %d journal entries",
                    name,
                    state.version,
                    replayed,
                )

        self._databases[name] = state
        return state

    async def open(
        self,
        name: str,
        version: int | None = None,
        on_upgrade: UpgradeCallback | None = None,
    ) -> Connection:
        """
        Open a database, creating or upgrading it as needed.

        Args:
            name: Database name.
            version: Requested version. None opens at the stored version
                (1 for a database that does not exist yet).
            on_upgrade: Called as ``on_upgrade(upgrade, old_version, new_version)``
                when the requested version is higher than the stored one.
                May be a coroutine function.

        Returns:
            An open Connection.

        Raises:
            VersionError: If ``version`` is lower than the stored version.
            DatabaseBlockedError: If an upgrade is needed while other connections are open.
            UpgradeError: If the callback raised. Nothing from the upgrade persists.
        """
        if not name:
            raise ValueError("database name is required")
        if version is not None and (isinstance(version, bool) or not isinstance(version, int) or version < 1):
            raise ValueError(f"version must be a positive integer, got {version!r}")

        await self._ensure_async_initialized()
        async with self._open_lock:
            state = self._load(name)
            target = version if version is not None else max(state.version, 1)

            if target < state.version:
                raise VersionError(
                    f"requested version {target} of {name!r} is lower than stored version {state.version}"
                )
            if target > state.version:
                if state.connections:
                    raise DatabaseBlockedError(
                        f"cannot upgrade {name!r} to version {target}: "
                        f"{len(state.connections)} connection(s) still open"
                    )
                await self._upgrade(state, target, on_upgrade)

            connection = Connection(state)
            state.connections.add(connection)
            logger.debug("Opened %s at version %d", name, state.version)
            return connection

    async def _upgrade(self, state: DatabaseState, target: int, on_upgrade: UpgradeCallback | None) -> None:
        async with state.write_lock:
            old_version = state.version
            upgrade = UpgradeTransaction(state, old_version, target)
            try:
                if on_upgrade is not None:
                    result = on_upgrade(upgrade, old_version, target)
                    if inspect.isawaitable(result):
                        await result
            except Exception as e:
                raise UpgradeError(
                    f"upgrade of {state.name!r} from version {old_version} to {target} failed: {e}"
                ) from e
            finally:
                upgrade.finish()

            entries = upgrade.entries + [JournalEntry(Operation.SET_VERSION, payload=target)]
            await state.persist(entries)
            state.stores = upgrade.stores
            state.version = target
            logger.info("Upgraded %s from version %d to %d", state.name, old_version, target)

    async def stored_version(self, name: str) -> int:
        """Return the committed version of a database, 0 if it does not exist."""
        await self._ensure_async_initialized()
        async with self._open_lock:
            state = self._databases.get(name)
            if state is None:
                if self._storage_dir is None or not os.path.exists(self._journal_path(name)):
                    return 0
                state = self._load(name)
            return state.version

    async def database_names(self) -> list[str]:
        names = {name for name, state in self._databases.items() if state.version > 0}
        if self._storage_dir is not None and os.path.isdir(self._storage_dir):
            for filename in os.listdir(self._storage_dir):
                if filename.endswith(JOURNAL_SUFFIX):
                    names.add(unquote(filename[: -len(JOURNAL_SUFFIX)]))
        return sorted(names)

    async def delete_database(self, name: str) -> None:
        """
        Drop a database and its journal.

        Raises:
            DatabaseBlockedError: If connections to it are still open.
        """
        await self._ensure_async_initialized()
        async with self._open_lock:
            state = self._databases.get(name)
            if state is not None and state.connections:
                raise DatabaseBlockedError(
                    f"cannot delete {name!r}: {len(state.connections)} connection(s) still open"
                )

            self._databases.pop(name, None)
            try:
                if state is not None and state.journal is not None:
                    state.journal.destroy()
                elif self._storage_dir is not None and os.path.exists(self._journal_path(name)):
                    os.remove(self._journal_path(name))
            except OSError as e:
                raise StorageIOError(f"failed to delete journal of {name!r}: {e}") from e
            logger.info("Deleted database %s", name)

    async def close(self) -> None:
        """
        Close every connection and journal.

        Persistent databases are recovered from their journals on the next
        open; in-memory databases are dropped.
        """
        for state in self._databases.values():
            for connection in list(state.connections):
                connection.close()
            if state.journal is not None:
                state.journal.close()
        self._databases.clear()

    async def __aenter__(self) -> "StorageEngine":
        await self._ensure_async_initialized()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
