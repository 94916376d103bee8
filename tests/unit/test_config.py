"""
Unit tests for environment-based configuration.
"""

import pytest

from ledger.population_data.config import (
    HttpConfig,
    ServerConfig,
    StateBackend,
    StorageConfig,
)


class TestServerConfig:
    """Tests for ServerConfig.from_env() and validate()."""

    def test_defaults(self, monkeypatch, tmp_path):
        """Defaults select the SQLite backend with JSON logs."""
        for name in ("STATE_BACKEND", "HTTP_PORT", "LOG_FORMAT", "SEED_ON_STARTUP"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("DATA_DIR", str(tmp_path))

        config = ServerConfig.from_env()

        assert config.storage.backend == StateBackend.SQLITE
        assert config.storage.data_dir == str(tmp_path)
        assert config.http.port == 8080
        assert config.seed.on_startup is False
        assert config.observability.log_format == "json"

    def test_reads_environment(self, monkeypatch):
        """Environment variables override defaults."""
        monkeypatch.setenv("STATE_BACKEND", "memory")
        monkeypatch.setenv("HTTP_PORT", "9000")
        monkeypatch.setenv("HTTP_CORS_ORIGINS", "http://a.test, http://b.test")
        monkeypatch.setenv("SEED_ON_STARTUP", "true")
        monkeypatch.setenv("HISTORY_BATCH_SIZE", "10")
        monkeypatch.setenv("LOG_FORMAT", "text")

        config = ServerConfig.from_env()

        assert config.storage.backend == StateBackend.MEMORY
        assert config.storage.history_batch_size == 10
        assert config.http.port == 9000
        assert config.http.cors_origins == ("http://a.test", "http://b.test")
        assert config.seed.on_startup is True
        assert config.observability.log_format == "text"

    def test_invalid_backend(self, monkeypatch):
        """Unknown backends are rejected."""
        monkeypatch.setenv("STATE_BACKEND", "fabric")

        with pytest.raises(ValueError, match="STATE_BACKEND"):
            ServerConfig.from_env()

    @pytest.mark.parametrize(
        "config",
        [
            ServerConfig(storage=StorageConfig(history_batch_size=0)),
            ServerConfig(storage=StorageConfig(busy_timeout_ms=-1)),
            ServerConfig(storage=StorageConfig(data_dir="")),
            ServerConfig(http=HttpConfig(port=70000)),
        ],
    )
    def test_validate_rejects(self, config):
        """Inconsistent settings fail validation."""
        with pytest.raises(ValueError):
            config.validate()
