"""
Error types for the population data ledger.

This module defines all exception types raised by the record service:
- PopulationDataError: Base exception
- AlreadyExistsError: Create on an existing passport number
- NotFoundError: Read/update/history on an absent passport number
- CorruptRecordError: Stored payload cannot be decoded
- BackendUnavailableError: State store failed to respond
- InvalidRecordError: Payload field failed validation

Invariants:
    - All errors inherit from PopulationDataError
    - Every error carries a stable code for programmatic handling
    - Error messages name the passport number they concern
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PopulationDataError(Exception):
    """Base exception for all record service errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "POPULATION_DATA_ERROR"
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the error body returned by the API and CLI."""
        return {
            "error": self.message,
            "error_code": self.code,
            "details": self.details,
        }


class AlreadyExistsError(PopulationDataError):
    """A record with this passport number already exists."""

    def __init__(self, passport_number: str) -> None:
        super().__init__(
            f"the person's data with passport number {passport_number} already exists",
            code="ALREADY_EXISTS",
            details={"passport_number": passport_number},
        )
        self.passport_number = passport_number


class NotFoundError(PopulationDataError):
    """No record exists for this passport number."""

    def __init__(self, passport_number: str) -> None:
        super().__init__(
            f"the person with passport number {passport_number} does not exist",
            code="NOT_FOUND",
            details={"passport_number": passport_number},
        )
        self.passport_number = passport_number


class CorruptRecordError(PopulationDataError):
    """Stored payload failed to decode.

    Raised when:
    - Stored bytes are not UTF-8 JSON
    - The JSON document is not an object
    - A required field is missing or not a string

    Attributes:
        passport_number: Key the payload is stored under
        sequence: History position of the bad version (None for the current value)
        reason: Decoder error description
    """

    def __init__(
        self,
        passport_number: str,
        reason: str,
        sequence: Optional[int] = None,
    ) -> None:
        where = f" at version {sequence}" if sequence is not None else ""
        super().__init__(
            f"stored data for passport number {passport_number}{where} is corrupt: {reason}",
            code="CORRUPT_RECORD",
            details={
                "passport_number": passport_number,
                "sequence": sequence,
                "reason": reason,
            },
        )
        self.passport_number = passport_number
        self.sequence = sequence
        self.reason = reason


class BackendUnavailableError(PopulationDataError):
    """The state store failed to respond.

    Not retried by the service; retry policy belongs to the caller.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="BACKEND_UNAVAILABLE",
            details={"operation": operation},
        )
        self.operation = operation


class InvalidRecordError(PopulationDataError):
    """Payload field failed validation.

    Raised when:
    - A field value is not a string
    - A field value exceeds the maximum length
    - A field value cannot be encoded as UTF-8
    """

    def __init__(self, field_name: str, reason: str) -> None:
        super().__init__(
            f"invalid value for {field_name}: {reason}",
            code="INVALID_RECORD",
            details={"field": field_name, "reason": reason},
        )
        self.field_name = field_name
        self.reason = reason
