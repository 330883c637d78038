"""
Tests for environment settings and logging setup.
"""

import logging

import pytest

from tablestore.config import LOG_FORMAT, Settings, configure_logging


class TestSettings:
    """Settings read from the environment."""

    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings == Settings(storage_dir=None, fsync_interval_ms=0, log_level="INFO")

    def test_reads_tablestore_variables(self, tmp_path):
        settings = Settings.from_env({
            "TABLESTORE_STORAGE_DIR": str(tmp_path),
            "TABLESTORE_FSYNC_INTERVAL_MS": "250",
            "TABLESTORE_LOG_LEVEL": "debug",
        })
        assert settings.storage_dir == str(tmp_path)
        assert settings.fsync_interval_ms == 250
        assert settings.log_level == "DEBUG"

    def test_log_level_falls_back_to_log_level(self):
        assert Settings.from_env({"LOG_LEVEL": "warning"}).log_level == "WARNING"

    def test_empty_storage_dir_means_memory(self):
        assert Settings.from_env({"TABLESTORE_STORAGE_DIR": ""}).storage_dir is None

    def test_non_integer_interval(self):
        with pytest.raises(ValueError):
            Settings.from_env({"TABLESTORE_FSYNC_INTERVAL_MS": "soon"})

    def test_interval_out_of_range(self):
        with pytest.raises(ValueError):
            Settings(fsync_interval_ms=60000)

    def test_unknown_log_level(self):
        with pytest.raises(ValueError):
            Settings(log_level="CHATTY")

    def test_create_engine(self, tmp_path):
        engine = Settings(storage_dir=str(tmp_path)).create_engine()
        assert engine.storage_dir == str(tmp_path)
        assert not engine.in_memory


class TestConfigureLogging:
    """Logging setup."""

    def test_basic_config_called(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

        configure_logging(Settings(log_level="DEBUG"))

        assert calls == [{"level": "DEBUG", "format": LOG_FORMAT}]
