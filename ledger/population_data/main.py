"""
Population Data Ledger - Main entry point.

This module starts the HTTP API server:
- Opens the configured state store
- Optionally seeds the fixed initial records
- Serves the FastAPI app with uvicorn

Usage:
    python -m ledger.population_data.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - Server opens the state store before accepting requests
    - Graceful shutdown closes the state store
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter
import uvicorn

from .api import create_app
from .config import ObservabilityConfig, ServerConfig

logger = logging.getLogger(__name__)


def setup_logging(config: ObservabilityConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Observability configuration
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    if config.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point."""
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.observability)
    config.log_config()

    app = create_app(config)

    logger.info(f"Starting population data server on {config.http.host}:{config.http.port}")
    uvicorn.run(
        app,
        host=config.http.host,
        port=config.http.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
