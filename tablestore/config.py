"""
Environment-driven settings and logging setup.
"""

import logging
import os
import threading
from collections.abc import Mapping
from dataclasses import dataclass

from tablestore.engine.engine import StorageEngine

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

_default_engine: StorageEngine | None = None
_default_engine_lock = threading.Lock()


@dataclass(frozen=True)
class Settings:
    """
    Attributes:
        storage_dir: Directory for database journals, None for in-memory storage.
        fsync_interval_ms: Milliseconds between journal fsyncs (0 = always fsync).
        log_level: Name of the logging level.
    """

    storage_dir: str | None = None
    fsync_interval_ms: int = 0
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.fsync_interval_ms < 0:
            raise ValueError(f"fsync_interval_ms must be >= 0, got {self.fsync_interval_ms}")
        if self.fsync_interval_ms > StorageEngine.MAX_FSYNC_INTERVAL_MS:
            raise ValueError(
                f"fsync_interval_ms cannot exceed {StorageEngine.MAX_FSYNC_INTERVAL_MS}ms, "
                f"got {self.fsync_interval_ms}"
            )
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"unknown log level: {self.log_level!r}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Read settings from ``TABLESTORE_*`` environment variables.

        ``TABLESTORE_LOG_LEVEL`` falls back to ``LOG_LEVEL``.
        """
        env = os.environ if environ is None else environ

        raw_interval = env.get("TABLESTORE_FSYNC_INTERVAL_MS", "0")
        try:
            fsync_interval_ms = int(raw_interval)
        except ValueError:
            raise ValueError(
                f"TABLESTORE_FSYNC_INTERVAL_MS must be an integer, got {raw_interval!r}"
            ) from None

        return cls(
            storage_dir=env.get("TABLESTORE_STORAGE_DIR") or None,
            fsync_interval_ms=fsync_interval_ms,
            log_level=env.get("TABLESTORE_LOG_LEVEL", env.get("LOG_LEVEL", "INFO")).upper(),
        )

    def create_engine(self) -> StorageEngine:
        return StorageEngine(storage_dir=self.storage_dir, fsync_interval_ms=self.fsync_interval_ms)


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or Settings.from_env()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)


def default_engine() -> StorageEngine:
    """Return the process-wide engine, built from the environment on first use."""
    global _default_engine
    if _default_engine is None:
        with _default_engine_lock:
            if _default_engine is None:
                _default_engine = Settings.from_env().create_engine()
    return _default_engine
