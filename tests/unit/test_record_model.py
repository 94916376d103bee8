"""
Unit tests for the PersonRecord model and its JSON encoding.

Tests cover:
- Canonical PascalCase encoding
- Decoding failures
- Field validation
"""

import json

import pytest

from ledger.population_data.errors import InvalidRecordError
from ledger.population_data.records.model import (
    MAX_FIELD_LENGTH,
    PersonRecord,
    RecordDecodeError,
)


def _record(**overrides):
    values = {
        "passport_number": "1",
        "name": "Ildar",
        "last_name": "Zinatulin",
        "city": "Moscow",
        "residential_address": "Some street, house 1, apartment 10",
        "phone_number": "+79999999999",
        "family_status": "Not married",
    }
    values.update(overrides)
    return PersonRecord(**values)


class TestPersonRecordEncoding:
    """Tests for to_json/from_json."""

    def test_encodes_pascal_case_keys_in_order(self):
        """Stored JSON uses the canonical key names and order."""
        data = json.loads(_record().to_json())

        assert list(data.keys()) == [
            "PassportNumber",
            "Name",
            "LastName",
            "City",
            "ResidentialAddress",
            "PhoneNumber",
            "FamilyStatus",
        ]
        assert data["LastName"] == "Zinatulin"

    def test_decode_reproduces_record(self):
        """Decoding stored bytes yields an equal record."""
        record = _record(name="Ильдар", city="Москва")

        decoded = PersonRecord.from_json(record.to_json())

        assert decoded == record
        assert decoded.to_json() == record.to_json()

    def test_empty_fields_are_kept(self):
        """Empty strings are valid values, not missing ones."""
        record = PersonRecord(passport_number="7")

        decoded = PersonRecord.from_json(record.to_json())

        assert decoded.name == ""
        assert decoded.family_status == ""

    def test_unknown_keys_ignored(self):
        """Extra keys in stored JSON do not break decoding."""
        data = _record().to_dict()
        data["Nickname"] = "ild"

        decoded = PersonRecord.from_json(json.dumps(data).encode())

        assert decoded == _record()

    @pytest.mark.parametrize(
        "raw",
        [
            b"not json",
            b"\xff\xfe",
            b"[]",
            b'"string"',
            b"",
        ],
    )
    def test_decode_rejects_malformed_bytes(self, raw):
        """Non-object or non-JSON payloads fail to decode."""
        with pytest.raises(RecordDecodeError):
            PersonRecord.from_json(raw)

    def test_decode_rejects_missing_field(self):
        """A stored object missing a field fails to decode."""
        data = _record().to_dict()
        del data["City"]

        with pytest.raises(RecordDecodeError, match="City"):
            PersonRecord.from_json(json.dumps(data).encode())

    def test_decode_rejects_non_string_field(self):
        """Numeric values are not coerced to strings."""
        data = _record().to_dict()
        data["PhoneNumber"] = 79999999999

        with pytest.raises(RecordDecodeError, match="PhoneNumber"):
            PersonRecord.from_json(json.dumps(data).encode())


class TestPersonRecordValidation:
    """Tests for field validation."""

    def test_rejects_non_string(self):
        """Constructing with a non-string field fails."""
        with pytest.raises(InvalidRecordError) as exc_info:
            _record(city=None)

        assert exc_info.value.field_name == "city"
        assert exc_info.value.code == "INVALID_RECORD"

    def test_rejects_overlong_field(self):
        """Fields longer than the limit are rejected."""
        with pytest.raises(InvalidRecordError):
            _record(residential_address="x" * (MAX_FIELD_LENGTH + 1))

    def test_accepts_field_at_limit(self):
        """A field exactly at the limit is accepted."""
        record = _record(residential_address="x" * MAX_FIELD_LENGTH)
        assert len(record.residential_address) == MAX_FIELD_LENGTH

    @pytest.mark.parametrize("value", ["\ud800", "abc\udcff"])
    def test_rejects_lone_surrogate(self, value):
        """Text that cannot be encoded as UTF-8 is rejected at construction."""
        with pytest.raises(InvalidRecordError) as exc_info:
            _record(name=value)

        assert exc_info.value.field_name == "name"
        assert exc_info.value.reason == "not valid UTF-8"

    def test_decode_rejects_escaped_surrogate(self):
        """A stored JSON escape for a lone surrogate is corrupt data."""
        raw = _record().to_json().replace(b'"Name": "Ildar"', b'"Name": "\\ud800"')

        with pytest.raises(RecordDecodeError):
            PersonRecord.from_json(raw)

    def test_with_passport_number(self):
        """Re-keying a record only changes the passport number."""
        record = _record()

        rekeyed = record.with_passport_number("42")

        assert rekeyed.passport_number == "42"
        assert rekeyed.name == record.name
        assert record.with_passport_number("1") is record
