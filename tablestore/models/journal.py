import asyncio
import logging
import os
import time
import zlib
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO

from tablestore.models.exceptions import DataError, JournalCorruptionError, StorageError, StorageIOError
from tablestore.models.journal_entry import JournalEntry

logger = logging.getLogger(__name__)


class Journal:
    """
    Append-only journal of committed changes to one database.

    Each committed transaction is written as one batch of framed entries.
    Replaying the journal from the start rebuilds the database.
    """

    def __init__(self, file_path: str, fsync_interval_ms: int = 0) -> None:
        """
        Initialize the journal.

        Args:
            file_path: Path to the journal file.
            fsync_interval_ms: Milliseconds between fsyncs. 0 = always fsync.
        """
        if fsync_interval_ms < 0:
            raise ValueError(f"fsync_interval_ms must be >= 0, got {fsync_interval_ms}")
        if fsync_interval_ms > 10000:
            raise ValueError(f"fsync_interval_ms cannot exceed 10000ms, got {fsync_interval_ms}")

        self.file_path = file_path
        self._file: BinaryIO | None = None
        self._seq: int = 0
        self._fsync_interval_ms = fsync_interval_ms
        self._last_fsync_time: float = 0.0
        self._lock = asyncio.Lock()

    @property
    def seq(self) -> int:
        return self._seq

    def recover(self) -> list[JournalEntry]:
        """
        Read every intact entry and drop a truncated tail.

        Must be called before ``open``; appending after a partial frame
        would make the next replay fail.

        Raises:
            JournalCorruptionError: If a complete entry fails its checksum.
            StorageIOError: If a complete entry cannot be decoded.
        """
        iterator = _JournalIterator(self.file_path)
        with iterator:
            entries = list(iterator)

        if os.path.exists(self.file_path):
            size = os.path.getsize(self.file_path)
            if size > iterator.valid_offset:
                logger.warning(
                    "Dropping %d bytes of truncated journal tail from %s",
                    size - iterator.valid_offset,
                    self.file_path,
                )
                with open(self.file_path, "r+b") as f:
                    f.truncate(iterator.valid_offset)

        if entries:
            self._seq = entries[-1].seq + 1
        return entries

    def open(self) -> None:
        Path(self.file_path).parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.file_path, "ab")

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def _should_flush(self) -> bool:
        if self._fsync_interval_ms == 0:
            return True

        current_time = time.monotonic()
        elapsed_ms = (current_time - self._last_fsync_time) * 1000

        if elapsed_ms >= self._fsync_interval_ms:
            self._last_fsync_time = current_time
            return True
        return False

    def _perform_flush(self) -> None:
        """Flush from Python user space to the OS and then to disk."""
        self._file.flush()
        _sync_data = getattr(os, "fdatasync", os.fsync)
        _sync_data(self._file.fileno())

    async def batch_append(self, entries: list[JournalEntry]) -> None:
        """
        Append a batch of entries with a single fsync.

        Sequence numbers are assigned here, in the event loop.

        Raises:
            RuntimeError: If the journal is not open.
            DataError: If an entry cannot be serialized. Nothing is written.
            OSError: If the write fails.
        """
        if self._file is None:
            raise RuntimeError("journal is not open")

        for offset, entry in enumerate(entries):
            entry.seq = self._seq + offset
        # Serialize everything before writing so a bad entry writes nothing.
        frames = []
        for entry in entries:
            entry_bytes = bytes(entry)
            checksum = zlib.crc32(entry_bytes) & 0xffffffff
            # Write: [length:4][entry_data][crc32:4]
            frames.append(len(entry_bytes).to_bytes(4, "big") + entry_bytes + checksum.to_bytes(4, "big"))

        async with self._lock:
            self._file.write(b"".join(frames))
            if self._should_flush():
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, self._perform_flush)

        if entries:
            self._seq = entries[-1].seq + 1

    def close(self) -> None:
        """Close the journal file, flushing it first."""
        if self._file:
            self._perform_flush()
            self._file.close()
            self._file = None

    def destroy(self) -> None:
        """Delete the journal file and close this instance."""
        self.close()
        if os.path.exists(self.file_path):
            os.remove(self.file_path)

    def __iter__(self) -> Iterator[JournalEntry]:
        return _JournalIterator(self.file_path)


class _JournalIterator(Iterator[JournalEntry]):
    """Iterator over journal entries; tracks the end of the last intact frame."""

    def __init__(self, file_path: str) -> None:
        self._file: BinaryIO | None = None
        self.valid_offset = 0
        if os.path.exists(file_path):
            self._file = open(file_path, "rb")

    def __iter__(self) -> Iterator[JournalEntry]:
        return self

    def __next__(self) -> JournalEntry:
        if self._file is None:
            raise StopIteration

        try:
            entry_offset = self._file.tell()

            length_bytes = self._file.read(4)
            if len(length_bytes) < 4:
                self.close()
                raise StopIteration

            length = int.from_bytes(length_bytes, "big")
            entry_bytes = self._file.read(length)
            checksum_bytes = self._file.read(4)
            if len(entry_bytes) < length or len(checksum_bytes) < 4:
                self.close()
                raise StopIteration

            expected_checksum = int.from_bytes(checksum_bytes, "big")
            actual_checksum = zlib.crc32(entry_bytes) & 0xffffffff

            if expected_checksum != actual_checksum:
                self.close()
                raise JournalCorruptionError(
                    expected=expected_checksum,
                    actual=actual_checksum,
                    entry_offset=entry_offset,
                )

            try:
                entry = JournalEntry.from_bytes(entry_bytes)
            except DataError as e:
                self.close()
                raise StorageIOError(f"undecodable journal entry at offset {entry_offset}: {e}") from e
            self.valid_offset = self._file.tell()
            return entry
        except (StopIteration, StorageError):
            raise
        except Exception:
            self.close()
            raise

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    def __del__(self) -> None:
        self.close()

    def __enter__(self) -> "_JournalIterator":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
