from tablestore.engine.connection import Connection, UpgradeTransaction
from tablestore.engine.engine import StorageEngine
from tablestore.engine.transaction import Index, ObjectStore, StoreTransaction

__all__ = [
    "Connection",
    "Index",
    "ObjectStore",
    "StorageEngine",
    "StoreTransaction",
    "UpgradeTransaction",
]
