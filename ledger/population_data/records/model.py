"""
PersonRecord data model and its canonical wire encoding.

Records are stored as UTF-8 JSON objects with PascalCase keys:

    {"PassportNumber": "1", "Name": "Ildar", "LastName": "Zinatulin",
     "City": "Moscow", "ResidentialAddress": "...", "PhoneNumber": "...",
     "FamilyStatus": "..."}

The same key mapping is used on the write and read paths, so encoding a
decoded record reproduces the stored bytes exactly.

Invariants:
    - Every field is an opaque string; no numeric parsing or formats
    - Fields longer than MAX_FIELD_LENGTH are rejected at construction
    - Fields that cannot be encoded as UTF-8 (lone surrogates) are rejected
    - Decoding ignores unknown keys but requires all seven known keys
"""

from __future__ import annotations

import json
from dataclasses import dataclass, fields, replace
from typing import Any

from ..errors import InvalidRecordError
from ..state import KeyModification

MAX_FIELD_LENGTH = 4096

# attribute name -> wire key
FIELD_KEYS: dict[str, str] = {
    "passport_number": "PassportNumber",
    "name": "Name",
    "last_name": "LastName",
    "city": "City",
    "residential_address": "ResidentialAddress",
    "phone_number": "PhoneNumber",
    "family_status": "FamilyStatus",
}

MUTABLE_FIELDS = tuple(name for name in FIELD_KEYS if name != "passport_number")


class RecordDecodeError(ValueError):
    """Stored bytes are not a valid encoded PersonRecord."""
    pass


@dataclass(frozen=True)
class PersonRecord:
    """A person's data, keyed by passport number.

    Attributes:
        passport_number: Unique key, immutable once created
        name: First name
        last_name: Last name
        city: City of residence
        residential_address: Street address
        phone_number: Contact phone number
        family_status: Marital/family status
    """

    passport_number: str
    name: str = ""
    last_name: str = ""
    city: str = ""
    residential_address: str = ""
    phone_number: str = ""
    family_status: str = ""

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, str):
                raise InvalidRecordError(f.name, f"expected str, got {type(value).__name__}")
            if len(value) > MAX_FIELD_LENGTH:
                raise InvalidRecordError(
                    f.name, f"length {len(value)} exceeds {MAX_FIELD_LENGTH}"
                )
            try:
                value.encode("utf-8")
            except UnicodeEncodeError as e:
                raise InvalidRecordError(f.name, "not valid UTF-8") from e

    def with_passport_number(self, passport_number: str) -> PersonRecord:
        """Copy of this record stored under another key."""
        if passport_number == self.passport_number:
            return self
        return replace(self, passport_number=passport_number)

    def to_dict(self) -> dict[str, str]:
        """Convert to the canonical PascalCase mapping."""
        return {key: getattr(self, name) for name, key in FIELD_KEYS.items()}

    @classmethod
    def from_dict(cls, data: Any) -> PersonRecord:
        """Create from the canonical PascalCase mapping.

        Raises:
            RecordDecodeError: If data is not a mapping with all seven string fields
        """
        if not isinstance(data, dict):
            raise RecordDecodeError(f"expected JSON object, got {type(data).__name__}")

        values = {}
        for name, key in FIELD_KEYS.items():
            if key not in data:
                raise RecordDecodeError(f"missing field {key}")
            if not isinstance(data[key], str):
                raise RecordDecodeError(f"field {key} is not a string")
            values[name] = data[key]

        try:
            return cls(**values)
        except InvalidRecordError as e:
            raise RecordDecodeError(e.message) from e

    def to_json(self) -> bytes:
        """Encode to the stored byte form."""
        return json.dumps(self.to_dict(), ensure_ascii=False).encode("utf-8")

    @classmethod
    def from_json(cls, raw: bytes) -> PersonRecord:
        """Decode from the stored byte form.

        Raises:
            RecordDecodeError: If raw is not a valid encoded record
        """
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise RecordDecodeError(f"invalid JSON: {e}") from e
        return cls.from_dict(data)


@dataclass(frozen=True)
class RecordVersion:
    """A historical version of a record plus its commit metadata."""

    record: PersonRecord
    sequence: int
    tx_id: str
    timestamp_ms: int

    @classmethod
    def from_modification(cls, record: PersonRecord, mod: KeyModification) -> RecordVersion:
        return cls(
            record=record,
            sequence=mod.sequence,
            tx_id=mod.tx_id,
            timestamp_ms=mod.timestamp_ms,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "tx_id": self.tx_id,
            "timestamp_ms": self.timestamp_ms,
            "record": self.record.to_dict(),
        }
