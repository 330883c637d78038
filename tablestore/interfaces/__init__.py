"""
Abstract base classes for the storage collaborator.
"""

from tablestore.interfaces.storage_handle import (
    READONLY,
    READWRITE,
    StorageHandle,
    Transaction,
    UpgradeHandle,
)
from tablestore.interfaces.store_accessor import IndexAccessor, StoreAccessor

__all__ = [
    "READONLY",
    "READWRITE",
    "StorageHandle",
    "Transaction",
    "UpgradeHandle",
    "IndexAccessor",
    "StoreAccessor",
]
