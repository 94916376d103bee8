"""
Configuration management for the population data ledger.

All configuration is done via environment variables - no config files.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments MUST set DATA_DIR explicitly
    - The in-memory backend is never durable; it exists for tests and demos

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Document every new variable in the class docstring
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class StateBackend(Enum):
    """Supported state store backends."""

    SQLITE = "sqlite"
    MEMORY = "memory"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class StorageConfig:
    """State store configuration.

    Attributes:
        backend: Which state backend to use
        data_dir: Directory for the SQLite database
        db_name: SQLite database file name
        wal_mode: SQLite WAL journal mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
        history_batch_size: Rows fetched per round trip when reading history
    """

    backend: StateBackend = StateBackend.SQLITE
    data_dir: str = "./data"
    db_name: str = "ledger.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000
    history_batch_size: int = 100

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables.

        Raises:
            ValueError: If STATE_BACKEND is not a known backend
        """
        backend_str = os.getenv("STATE_BACKEND", "sqlite").lower()
        try:
            backend = StateBackend(backend_str)
        except ValueError:
            raise ValueError(
                f"Invalid STATE_BACKEND '{backend_str}'. Must be one of: sqlite, memory"
            )

        return cls(
            backend=backend,
            data_dir=os.getenv("DATA_DIR", "./data"),
            db_name=os.getenv("STATE_DB_NAME", "ledger.db"),
            wal_mode=_env_bool("SQLITE_WAL_MODE", "true"),
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
            history_batch_size=int(os.getenv("HISTORY_BATCH_SIZE", "100")),
        )


@dataclass(frozen=True)
class HttpConfig:
    """HTTP API configuration.

    Attributes:
        host: Address to bind
        port: Port to bind
        cors_origins: Allowed CORS origins
    """

    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: tuple[str, ...] = ("*",)

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        origins = os.getenv("HTTP_CORS_ORIGINS", "*")
        return cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("HTTP_PORT", "8080")),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        )


@dataclass(frozen=True)
class SeedConfig:
    """Seeding configuration.

    Attributes:
        on_startup: Seed the fixed initial records when the server starts
    """

    on_startup: bool = False

    @classmethod
    def from_env(cls) -> SeedConfig:
        """Load configuration from environment variables."""
        return cls(on_startup=_env_bool("SEED_ON_STARTUP", "false"))


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    This aggregates all configuration sections and provides validation.

    Attributes:
        storage: State store configuration
        http: HTTP API configuration
        seed: Seeding configuration
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    seed: SeedConfig = field(default_factory=SeedConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            http=HttpConfig.from_env(),
            seed=SeedConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.storage.backend == StateBackend.SQLITE:
            if not self.storage.data_dir:
                raise ValueError("DATA_DIR is required when STATE_BACKEND=sqlite")
            if not self.storage.db_name:
                raise ValueError("STATE_DB_NAME is required when STATE_BACKEND=sqlite")
            if not os.path.exists(self.storage.data_dir):
                logger.warning(
                    f"Data directory does not exist: {self.storage.data_dir}. "
                    "It will be created on connect."
                )

        if self.storage.busy_timeout_ms < 0:
            raise ValueError("SQLITE_BUSY_TIMEOUT_MS must not be negative")
        if self.storage.history_batch_size < 1:
            raise ValueError("HISTORY_BATCH_SIZE must be at least 1")
        if not 0 < self.http.port < 65536:
            raise ValueError(f"HTTP_PORT out of range: {self.http.port}")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Server configuration loaded",
            extra={
                "state_backend": self.storage.backend.value,
                "data_dir": self.storage.data_dir
                if self.storage.backend == StateBackend.SQLITE
                else None,
                "http_bind": f"{self.http.host}:{self.http.port}",
                "seed_on_startup": self.seed.on_startup,
                "log_level": self.observability.log_level,
            },
        )
