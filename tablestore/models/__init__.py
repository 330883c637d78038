"""
Data models for the storage engine and the table layer.
"""

from tablestore.models.column import Column, parse_columns
from tablestore.models.journal import Journal
from tablestore.models.journal_entry import JournalEntry, Operation
from tablestore.models.object_store import IndexData, StoreData
from tablestore.models.response import OperationError, Response, Status

__all__ = [
    "Column",
    "parse_columns",
    "Journal",
    "JournalEntry",
    "Operation",
    "IndexData",
    "StoreData",
    "OperationError",
    "Response",
    "Status",
]
