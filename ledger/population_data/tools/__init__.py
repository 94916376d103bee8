"""
CLI tools for population data ledger administration.

This module provides command-line tools for:
- records: init/create/read/update/history against a local state store

Invariants:
    - Tools work offline (no running server required)
    - init is idempotent; the other commands follow RecordService rules
"""

from .records_cli import RecordsCLI

__all__ = ["RecordsCLI"]
