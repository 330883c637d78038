"""
Schema-aware tables over an asynchronous, versioned key-value store.

This package provides:
- Database: create_table / create / select_one / get_by_key / select_all /
  update / delete, validated against the columns declared per table
- Memory: a single-table name -> value facade
- StorageEngine: the versioned, transactional store both are built on,
  in memory or backed by a checksummed journal
"""

from tablestore.config import Settings, configure_logging, default_engine
from tablestore.database import Database
from tablestore.engine.engine import StorageEngine
from tablestore.memory import Memory
from tablestore.models.column import Column
from tablestore.models.response import OperationError, Response, Status

__version__ = "0.1.0"

__all__ = [
    "Column",
    "Database",
    "Memory",
    "OperationError",
    "Response",
    "Settings",
    "Status",
    "StorageEngine",
    "configure_logging",
    "default_engine",
]
