"""
Population Data Ledger - versioned person records keyed by passport number.

This package implements a record store built on:
- PersonRecord as the sole entity, keyed by passport number
- A versioned state store (world state + append-only history) as the
  single source of truth
- A stateless RecordService enforcing create-once / update-existing rules

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌─────────────────┐
    │   Client    │────▶│  HTTP API   │────▶│  RecordService  │
    │ (HTTP/CLI)  │     │  (FastAPI)  │     │                 │
    └─────────────┘     └─────────────┘     └────────┬────────┘
                                                     │
                                                     ▼
                        ┌─────────────────────────────────────────┐
                        │   VersionedStateStore (SQLite/memory)   │
                        │   world_state  +  key_history           │
                        └─────────────────────────────────────────┘

Invariants:
    - The state store is the source of truth; nothing is cached above it
    - A passport number is created once and never deleted
    - History is append-only and ordered oldest first
    - A failed guard never leaves a partial write

How to change safely:
    - Record encoding changes must stay readable by from_json()
    - New fields need a wire key in records.model.FIELD_KEYS
    - Never add a delete path; history is an audit log

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
