"""
HTTP API for the population data ledger.

This module provides a FastAPI application exposing:
- init: seed the fixed initial records
- create / read / update of person records
- history of a record's versions
- health check

Invariants:
    - One request performs one RecordService operation
    - Responses use the canonical PascalCase record encoding
"""

from .http_server import create_app, status_for_error
from .routes import router

__all__ = ["create_app", "router", "status_for_error"]
