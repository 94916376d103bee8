"""
Population Data Ledger Test Suite.

This package contains:
- unit/: Unit tests (in-memory and temporary SQLite stores)
- integration/: Integration tests (HTTP API over SQLite)
"""
