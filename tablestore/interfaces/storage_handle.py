"""
StorageHandle, Transaction and UpgradeHandle abstract base classes.
"""

from abc import ABC, abstractmethod
from typing import Any

from tablestore.interfaces.store_accessor import StoreAccessor

READONLY = "readonly"
READWRITE = "readwrite"


class Transaction(ABC):
    """
    Scoped access to one or more stores.

    Used as an async context manager: a clean exit commits, an exception
    aborts and discards every change made through the transaction.
    """

    @abstractmethod
    def object_store(self, name: str) -> StoreAccessor:
        """
        Return the accessor for a store in this transaction's scope.

        Raises:
            NotFoundError: If the store is not in scope.
        """
        pass

    @abstractmethod
    async def __aenter__(self) -> "Transaction":
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        pass


class StorageHandle(ABC):
    """An open connection to one database at one version."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def version(self) -> int:
        pass

    @property
    @abstractmethod
    def object_store_names(self) -> list[str]:
        pass

    @abstractmethod
    def transaction(self, store_names: str | list[str], mode: str = READONLY) -> Transaction:
        """
        Start a transaction over the named stores.

        Args:
            store_names: A store name or a list of store names.
            mode: ``"readonly"`` or ``"readwrite"``.

        Raises:
            ConnectionClosedError: If the handle has been closed.
            NotFoundError: If a store does not exist.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the handle. Transactions already started still complete."""
        pass


class UpgradeHandle(ABC):
    """Schema editing access, only valid inside an upgrade callback."""

    @property
    @abstractmethod
    def object_store_names(self) -> list[str]:
        pass

    @abstractmethod
    def create_object_store(self, name: str, key_path: str, auto_increment: bool = False) -> Any:
        """
        Create a store.

        Raises:
            ConstraintError: If a store with that name already exists.
        """
        pass

    @abstractmethod
    def delete_object_store(self, name: str) -> None:
        pass

    @abstractmethod
    def create_index(self, store_name: str, name: str, key_path: str | None = None, unique: bool = False) -> None:
        """
        Create a secondary index on an existing store.

        Args:
            store_name: Store to index.
            name: Index name.
            key_path: Indexed field, defaults to ``name``.
            unique: Whether duplicate values are rejected.
        """
        pass

    @abstractmethod
    def delete_index(self, store_name: str, name: str) -> None:
        pass
