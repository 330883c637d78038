"""
Database - schema-aware tables over a versioned storage engine.
"""

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from tablestore.config import default_engine
from tablestore.engine.engine import StorageEngine
from tablestore.interfaces.storage_handle import (
    READONLY,
    READWRITE,
    StorageHandle,
    Transaction,
    UpgradeHandle,
)
from tablestore.models.column import ColumnSpec, parse_columns
from tablestore.models.exceptions import StaleConnectionError, StorageError
from tablestore.models.response import OperationError, Response, Status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Lease:
    """The handle an operation runs against, and the generation it was taken in."""

    handle: StorageHandle
    generation: int


class Database:
    """
    Named tables with remembered column schemas over one engine database.

    Provides:
    - create_table(name, key_path, auto_increment, columns): Add a table by
      upgrading the database to the next version
    - create(table, data): Insert a record, rejecting unknown columns
    - select_one(table, index, value): Point lookup by index
    - get_by_key(table, key): Point lookup by primary key
    - select_all(table): Every record in primary key order
    - update(table, index, value, new_data): Read, merge and write back
    - delete(table, key): Delete by primary key

    Results are Response envelopes (or the records themselves for reads).
    Engine failures raise OperationError carrying a status 500 envelope.

    Exactly one handle is live at a time. create_table waits for in-flight
    operations to finish before it closes the handle, and holds new ones
    back until the replacement is open.
    """

    def __init__(self, name: str, version: int = 1, engine: StorageEngine | None = None) -> None:
        """
        Args:
            name: Database name.
            version: Starting version; raised to the stored version on first open.
            engine: Engine holding the database. Defaults to the process-wide engine.
        """
        if not name:
            raise ValueError("database name is required")
        if isinstance(version, bool) or not isinstance(version, int) or version < 1:
            raise ValueError(f"version must be a positive integer, got {version!r}")

        self.name = name
        self.version = version
        self.schemas: dict[str, list[str]] = {}
        self._engine = engine if engine is not None else default_engine()
        self._handle: StorageHandle | None = None

        # Connection generation, bumped on every handle swap
        self._generation = 0
        self._in_flight = 0
        self._swapping = False

        # asyncio primitives (lazy initialized in async context)
        self._state: asyncio.Condition | None = None
        self._open_lock: asyncio.Lock | None = None
        self._async_initialized = False
        self._init_lock = threading.Lock()

    @property
    def generation(self) -> int:
        return self._generation

    async def _ensure_async_initialized(self) -> None:
        if self._async_initialized:
            return

        with self._init_lock:
            if not self._async_initialized:
                self._state = asyncio.Condition()
                self._open_lock = asyncio.Lock()
                self._async_initialized = True

    async def _connection(self) -> StorageHandle:
        """Return the live handle, opening it at the stored version if needed."""
        if self._handle is not None:
            return self._handle

        async with self._open_lock:
            if self._handle is None:
                try:
                    handle = await self._engine.open(self.name)
                except StorageError as e:
                    raise self._failure(f"Error opening database {self.name}.", e) from e
                self.version = max(self.version, handle.version)
                self._handle = handle
                logger.debug("Opened %s at version %d", self.name, handle.version)
        return self._handle

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[_Lease]:
        """Count an operation as in flight for as long as it runs."""
        await self._ensure_async_initialized()
        async with self._state:
            await self._state.wait_for(lambda: not self._swapping)
            self._in_flight += 1
        try:
            handle = await self._connection()
            yield _Lease(handle, self._generation)
        finally:
            async with self._state:
                self._in_flight -= 1
                self._state.notify_all()

    def _transaction(self, lease: _Lease, table_name: str, mode: str) -> Transaction:
        if lease.generation != self._generation:
            raise StaleConnectionError(lease.generation, self._generation)
        return lease.handle.transaction(table_name, mode)

    def _failure(self, message: str, error: StorageError) -> OperationError:
        logger.error("%s %s", message, error)
        return OperationError(Response(message, Status.INTERNAL_ERROR, error=error))

    async def create_table(
        self,
        table_name: str,
        key_path: str = "id",
        auto_increment: bool = True,
        columns: Iterable[ColumnSpec] | None = None,
    ) -> Response:
        """
        Create a table by reopening the database at the next version.

        The store and its indexes are only created if no store of that name
        exists. The schema registry entry is replaced in every case.

        Args:
            table_name: Store name.
            key_path: Primary key field.
            auto_increment: Whether missing primary keys are generated.
            columns: Column declarations; each becomes a secondary index.

        Returns:
            A status 201 envelope echoing the registered column names.

        Raises:
            OperationError: If the engine could not open at the new version.
            ValueError: If a column declaration has no name.
        """
        columns = parse_columns(columns)
        await self._ensure_async_initialized()

        async with self._state:
            await self._state.wait_for(lambda: not self._swapping)
            self._swapping = True
        try:
            async with self._state:
                await self._state.wait_for(lambda: self._in_flight == 0)
            await self._connection()
            return await self._reopen_with_table(table_name, key_path, auto_increment, columns)
        finally:
            async with self._state:
                self._swapping = False
                self._state.notify_all()

    async def _reopen_with_table(self, table_name, key_path, auto_increment, columns) -> Response:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

        def upgrade(tx: UpgradeHandle, old_version: int, new_version: int) -> None:
            if table_name in tx.object_store_names:
                logger.debug("Table %s already exists, leaving its indexes as they are", table_name)
                return
            tx.create_object_store(table_name, key_path=key_path, auto_increment=auto_increment)
            for column in columns:
                tx.create_index(table_name, column.name, column.name, unique=column.unique)

        new_version = self.version + 1
        try:
            handle = await self._engine.open(self.name, new_version, upgrade)
        except StorageError as e:
            await self._reopen_after_failure()
            raise self._failure(f"Error creating table {table_name}.", e) from e

        self.version = new_version
        self._handle = handle
        self._generation += 1

        names = [column.name for column in columns]
        previous = self.schemas.get(table_name)
        if previous is not None and previous != names:
            logger.warning(
                "Schema of table %s replaced: %s -> %s (existing indexes are unchanged)",
                table_name,
                previous,
                names,
            )
        self.schemas[table_name] = names
        logger.info("Table %s created in %s at version %d", table_name, self.name, new_version)

        return Response(
            f"Table {table_name} created successfully.",
            Status.CREATED,
            schema=list(names),
        )

    async def _reopen_after_failure(self) -> None:
        """Bring ``version`` back in line with the engine and reopen a handle."""
        try:
            handle = await self._engine.open(self.name)
        except StorageError as e:
            # The next operation retries the open lazily.
            logger.error("Could not reopen %s after a failed upgrade: %s", self.name, e)
            return
        self.version = handle.version
        self._handle = handle
        self._generation += 1

    async def create(self, table_name: str, data: Mapping[str, Any]) -> Response:
        """
        Insert a record.

        When the table has a registered schema, every key of ``data`` must be
        a registered column. Columns may be left out, and the primary key is
        not checked.

        Returns:
            Status 201 on success, or status 400 naming the unknown keys.

        Raises:
            OperationError: On engine failure, e.g. a primary key collision.
        """
        async with self._session() as lease:
            schema = self.schemas.get(table_name)
            if schema is not None:
                invalid = [key for key in data if key not in schema]
                if invalid:
                    return Response(f"invalid keys: {', '.join(map(str, invalid))}", Status.BAD_REQUEST)

            try:
                async with self._transaction(lease, table_name, READWRITE) as tx:
                    key = await tx.object_store(table_name).add(dict(data))
            except StorageError as e:
                raise self._failure("Failed to create the record.", e) from e

        logger.debug("Inserted %r into %s", key, table_name)
        return Response("Record created successfully.", Status.CREATED)

    async def _lookup(self, lease: _Lease, table_name: str, index_name: str, value: Any) -> dict | None:
        async with self._transaction(lease, table_name, READONLY) as tx:
            store = tx.object_store(table_name)
            if index_name not in store.index_names and index_name == store.key_path:
                return await store.get(value)
            return await store.index(index_name).get(value)

    async def select_one(self, table_name: str, index_name: str, value: Any) -> dict | Response:
        """
        Find the first record whose ``index_name`` field equals ``value``.

        Passing the table's key path as ``index_name`` looks up by primary key.

        Returns:
            The record, or a status 404 envelope.

        Raises:
            OperationError: On engine failure, including an unknown index.
        """
        async with self._session() as lease:
            try:
                record = await self._lookup(lease, table_name, index_name, value)
            except StorageError as e:
                raise self._failure("Error finding record.", e) from e

        if record is None:
            return Response("Record not found.", Status.NOT_FOUND)
        return record

    async def get_by_key(self, table_name: str, key: Any) -> dict | Response:
        """Return the record with primary key ``key``, or a status 404 envelope."""
        async with self._session() as lease:
            try:
                async with self._transaction(lease, table_name, READONLY) as tx:
                    record = await tx.object_store(table_name).get(key)
            except StorageError as e:
                raise self._failure("Error finding record.", e) from e

        if record is None:
            return Response("Record not found.", Status.NOT_FOUND)
        return record

    async def select_all(self, table_name: str) -> list[dict]:
        async with self._session() as lease:
            try:
                async with self._transaction(lease, table_name, READONLY) as tx:
                    return await tx.object_store(table_name).get_all()
            except StorageError as e:
                raise self._failure("Error getting data.", e) from e

    async def update(
        self,
        table_name: str,
        index_name: str,
        value: Any,
        new_data: Mapping[str, Any],
    ) -> Response:
        """
        Merge ``new_data`` into the record found by ``index_name``/``value``.

        The lookup and the write run in separate transactions and the write
        is a plain put: concurrent updates are last-writer-wins. Changing the
        primary key in ``new_data`` writes a new record and keeps the old one.

        Returns:
            Status 200 on success, or a status 404 envelope if nothing matched.

        Raises:
            OperationError: On engine failure.
        """
        async with self._session() as lease:
            try:
                existing = await self._lookup(lease, table_name, index_name, value)
            except StorageError as e:
                raise self._failure("Error finding record.", e) from e
            if existing is None:
                return Response("Record not found.", Status.NOT_FOUND)

            updated = {**existing, **new_data}
            try:
                async with self._transaction(lease, table_name, READWRITE) as tx:
                    await tx.object_store(table_name).put(updated)
            except StorageError as e:
                raise self._failure("Error updating data.", e) from e

        return Response("Data updated successfully.", Status.OK)

    async def delete(self, table_name: str, key: Any) -> Response:
        """Delete by primary key. Succeeds whether or not the record existed."""
        async with self._session() as lease:
            try:
                async with self._transaction(lease, table_name, READWRITE) as tx:
                    await tx.object_store(table_name).delete(key)
            except StorageError as e:
                raise self._failure("Error deleting data.", e) from e

        return Response("Record deleted successfully.", Status.OK)

    async def close(self) -> None:
        """Close the live handle. The next operation reopens it."""
        await self._ensure_async_initialized()
        async with self._state:
            await self._state.wait_for(lambda: self._in_flight == 0 and not self._swapping)
            if self._handle is not None:
                self._handle.close()
                self._handle = None
                self._generation += 1

    async def __aenter__(self) -> "Database":
        await self._ensure_async_initialized()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
