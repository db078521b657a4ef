"""Tests for cipherstore configuration and logging helpers."""

import logging
from pathlib import Path

from cipherstore.config import StoreConfig
from cipherstore.log import mask_url, redact, setup_logging


class TestStoreConfig:
    """Tests for StoreConfig."""

    def test_default_config(self, tmp_path):
        config = StoreConfig()

        assert config.storage_dir.resolve() == tmp_path.resolve()
        assert config.echo_sql is False
        assert config.log_level == "WARNING"
        assert config.busy_timeout == 5.0
        assert config.create_dirs is True

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CIPHERSTORE_STORAGE_DIR", str(tmp_path / "stores"))
        monkeypatch.setenv("CIPHERSTORE_ECHO_SQL", "true")
        monkeypatch.setenv("CIPHERSTORE_BUSY_TIMEOUT", "0.5")

        config = StoreConfig()

        assert config.storage_dir == tmp_path / "stores"
        assert config.echo_sql is True
        assert config.busy_timeout == 0.5

    def test_env_file(self, tmp_path):
        (tmp_path / ".env").write_text("CIPHERSTORE_LOG_LEVEL=DEBUG\n")
        assert StoreConfig().log_level == "DEBUG"

    def test_resolve_relative_path(self, tmp_path):
        config = StoreConfig(storage_dir=tmp_path)
        assert config.resolve_path("users.db") == tmp_path / "users.db"

    def test_resolve_absolute_path(self, tmp_path):
        config = StoreConfig(storage_dir=Path("/elsewhere"))
        assert config.resolve_path(tmp_path / "x.db") == tmp_path / "x.db"


class TestLoggingHelpers:
    """Tests for logging helpers."""

    def test_redact(self):
        assert redact("key s3cret rejected", "s3cret") == "key **** rejected"
        assert redact("nothing to hide", None) == "nothing to hide"

    def test_mask_url(self):
        assert (
            mask_url("sqlite+pysqlcipher://:s3cret@/data/users.db")
            == "sqlite+pysqlcipher://:****@/data/users.db"
        )
        assert mask_url("sqlite:///data/users.db") == "sqlite:///data/users.db"

    def test_setup_logging_accepts_names(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.append(kw))

        setup_logging("debug")
        setup_logging()

        assert calls[0]["level"] == logging.DEBUG
        assert calls[1]["level"] == logging.WARNING
