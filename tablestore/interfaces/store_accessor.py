"""
StoreAccessor and IndexAccessor abstract base classes.
"""

from abc import ABC, abstractmethod
from typing import Any


class IndexAccessor(ABC):
    """Read access to a secondary index within a transaction."""

    @abstractmethod
    async def get(self, value: Any) -> dict | None:
        """
        Return the first record (lowest primary key) whose indexed field equals ``value``.

        Returns:
            The record if found, None otherwise.
        """
        pass

    @abstractmethod
    async def get_all(self, value: Any) -> list[dict]:
        pass

    @abstractmethod
    async def count(self, value: Any) -> int:
        pass


class StoreAccessor(ABC):
    """
    Access to one store within a transaction.

    Every method completes exactly once, either returning or raising a
    StorageError subclass.
    """

    @property
    @abstractmethod
    def key_path(self) -> str:
        pass

    @property
    @abstractmethod
    def index_names(self) -> list[str]:
        pass

    @abstractmethod
    async def add(self, record: dict) -> Any:
        """
        Insert a record.

        Returns:
            The record's primary key.

        Raises:
            ConstraintError: If the key already exists.
        """
        pass

    @abstractmethod
    async def put(self, record: dict) -> Any:
        """Insert or replace a record. Returns its primary key."""
        pass

    @abstractmethod
    async def get(self, key: Any) -> dict | None:
        pass

    @abstractmethod
    async def get_all(self) -> list[dict]:
        """Return every record in primary key order."""
        pass

    @abstractmethod
    async def delete(self, key: Any) -> None:
        """Delete by primary key. Deleting an absent key is not an error."""
        pass

    @abstractmethod
    async def count(self) -> int:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass

    @abstractmethod
    def index(self, name: str) -> IndexAccessor:
        """
        Raises:
            NotFoundError: If the store has no index with that name.
        """
        pass
