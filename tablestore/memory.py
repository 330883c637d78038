"""
Memory - a single-table key/value facade.
"""

import asyncio
import logging
from typing import Any

from tablestore.config import default_engine
from tablestore.engine.engine import StorageEngine
from tablestore.interfaces.storage_handle import READONLY, READWRITE, StorageHandle, UpgradeHandle
from tablestore.models.exceptions import StorageError
from tablestore.models.response import OperationError, Response, Status

logger = logging.getLogger(__name__)

MISSING = object()


class Memory:
    """
    Named values in one store keyed by ``name``.

    No indexes and no schema: each memory is stored as
    ``{"name": memory_name, "value": memory_value}``.
    """

    KEY_PATH = "name"

    def __init__(
        self,
        engine: StorageEngine | None = None,
        name: str = "memoryDB",
        store_name: str = "memories",
    ) -> None:
        if not name:
            raise ValueError("database name is required")
        if not store_name:
            raise ValueError("store name is required")
        self.name = name
        self.store_name = store_name
        self._engine = engine if engine is not None else default_engine()
        self._handle: StorageHandle | None = None
        self._open_lock: asyncio.Lock | None = None

    def _upgrade(self, tx: UpgradeHandle, old_version: int, new_version: int) -> None:
        if self.store_name not in tx.object_store_names:
            tx.create_object_store(self.store_name, key_path=self.KEY_PATH)

    async def _connection(self) -> StorageHandle:
        if self._handle is not None:
            return self._handle

        if self._open_lock is None:
            self._open_lock = asyncio.Lock()
        async with self._open_lock:
            if self._handle is None:
                handle = await self._engine.open(self.name, None, self._upgrade)
                if self.store_name not in handle.object_store_names:
                    # Database was created by someone else without our store.
                    version = handle.version + 1
                    handle.close()
                    handle = await self._engine.open(self.name, version, self._upgrade)
                self._handle = handle
        return self._handle

    async def _get(self, memory_name: str) -> Any:
        handle = await self._connection()
        async with handle.transaction(self.store_name, READONLY) as tx:
            record = await tx.object_store(self.store_name).get(memory_name)
        return MISSING if record is None else record["value"]

    async def create(self, memory_name: str, memory_value: Any) -> Response:
        """
        Store a new memory.

        Returns:
            Status 201, or status 409 if a memory with that name exists.

        Raises:
            OperationError: On engine failure.
        """
        try:
            if await self._get(memory_name) is not MISSING:
                return Response(f"Memory {memory_name} already exists.", Status.CONFLICT)

            handle = await self._connection()
            async with handle.transaction(self.store_name, READWRITE) as tx:
                await tx.object_store(self.store_name).put(
                    {self.KEY_PATH: memory_name, "value": memory_value}
                )
        except StorageError as e:
            logger.error("Error creating memory %s: %s", memory_name, e)
            raise OperationError(
                Response(f"Error creating memory {memory_name}.", Status.INTERNAL_ERROR, error=e)
            ) from e

        return Response(f"Memory {memory_name} created successfully.", Status.CREATED)

    async def read(self, memory_name: str) -> Any:
        """
        Return the stored value, or a status 404 envelope.

        Engine failures are returned as a status 500 envelope, not raised.
        """
        try:
            value = await self._get(memory_name)
        except StorageError as e:
            logger.error("Error reading memory %s: %s", memory_name, e)
            return Response(f"Error reading memory {memory_name}.", Status.INTERNAL_ERROR, error=e)

        if value is MISSING:
            return Response(f"Memory {memory_name} does not exist.", Status.NOT_FOUND)
        return value

    async def delete(self, memory_name: str) -> Response:
        """
        Delete a memory.

        Returns:
            Status 200, or status 404 if no memory with that name exists.

        Raises:
            OperationError: On engine failure.
        """
        try:
            if await self._get(memory_name) is MISSING:
                return Response(f"Memory {memory_name} does not exist.", Status.NOT_FOUND)

            handle = await self._connection()
            async with handle.transaction(self.store_name, READWRITE) as tx:
                await tx.object_store(self.store_name).delete(memory_name)
        except StorageError as e:
            logger.error("Error deleting memory %s: %s", memory_name, e)
            raise OperationError(
                Response(f"Error deleting memory {memory_name}.", Status.INTERNAL_ERROR, error=e)
            ) from e

        return Response(f"Memory {memory_name} deleted successfully.", Status.OK)

    async def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None
