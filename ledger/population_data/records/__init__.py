"""
Records module for the population data ledger.

This module handles:
- The PersonRecord model and its canonical JSON encoding
- The RecordService create/read/update/history operations
- Seeding the fixed initial records

Invariants:
    - A passport number is created once and never deleted
    - Stored PassportNumber always matches its key
    - History contains every committed version, oldest first
"""

from .model import MAX_FIELD_LENGTH, MUTABLE_FIELDS, PersonRecord, RecordVersion
from .seed import SEED_RECORDS, seed_ledger
from .service import RecordHistory, RecordService

__all__ = [
    "MAX_FIELD_LENGTH",
    "MUTABLE_FIELDS",
    "PersonRecord",
    "RecordVersion",
    "RecordHistory",
    "RecordService",
    "SEED_RECORDS",
    "seed_ledger",
]
