"""
Custom exceptions for the storage engine and the table layer.
"""


class StorageError(Exception):
    """Base class for every error raised by the storage engine."""


class ConstraintError(StorageError):
    """Raised when a write would break a primary key or unique index constraint."""


class DataError(StorageError):
    """Raised when a record or key cannot be stored (bad key, missing key path)."""


class NotFoundError(StorageError):
    """Raised when a store or index does not exist."""


class ReadOnlyError(StorageError):
    """Raised when a write is attempted in a readonly transaction."""


class InvalidStateError(StorageError):
    """Raised when an object is used outside of its valid lifetime."""


class ConnectionClosedError(InvalidStateError):
    """Raised when a transaction is requested on a closed connection."""


class StaleConnectionError(InvalidStateError):
    """
    Raised when an operation started against a connection that has since
    been replaced. The operation may be retried.
    """

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"connection generation changed from {expected} to {actual}"
        )


class VersionError(StorageError):
    """Raised when opening a database at a lower version than stored."""


class UpgradeError(StorageError):
    """Raised when an upgrade callback fails. Nothing from the upgrade persists."""


class DatabaseBlockedError(StorageError):
    """Raised when a version change is requested while other connections are open."""


class StorageIOError(StorageError):
    """Raised when the journal cannot be written or read."""


class JournalCorruptionError(StorageError):
    """
    Raised when journal entry corruption is detected via checksum mismatch.

    This is a fail-fast error indicating data integrity issues.
    """

    def __init__(self, expected: int, actual: int, entry_offset: int):
        """
        Initialize corruption error.

        Args:
            expected: Expected CRC32 checksum.
            actual: Actual CRC32 checksum computed.
            entry_offset: File offset where corruption detected.
        """
        self.expected = expected
        self.actual = actual
        self.entry_offset = entry_offset
        super().__init__(
            f"journal corruption detected at offset {entry_offset}: "
            f"expected CRC32 0x{expected:08x}, got 0x{actual:08x}"
        )
