"""
API routes for the population data ledger.

Provides REST endpoints over RecordService. Records in responses use the
canonical PascalCase field names; request bodies accept either PascalCase
or snake_case names.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from ..records import MAX_FIELD_LENGTH, PersonRecord, RecordService, seed_ledger

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Population Data"])


# --- Request/Response Models ---


def _text(alias: str, description: str) -> Any:
    return Field(..., alias=alias, max_length=MAX_FIELD_LENGTH, description=description)


class PersonFields(BaseModel):
    """Mutable person fields."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = _text("Name", "First name")
    last_name: str = _text("LastName", "Last name")
    city: str = _text("City", "City of residence")
    residential_address: str = _text("ResidentialAddress", "Street address")
    phone_number: str = _text("PhoneNumber", "Contact phone number")
    family_status: str = _text("FamilyStatus", "Family status")

    def to_record(self, passport_number: str) -> PersonRecord:
        return PersonRecord(
            passport_number=passport_number,
            name=self.name,
            last_name=self.last_name,
            city=self.city,
            residential_address=self.residential_address,
            phone_number=self.phone_number,
            family_status=self.family_status,
        )


class RecordCreateRequest(PersonFields):
    """Request to create a record."""

    passport_number: str = Field(
        ...,
        alias="PassportNumber",
        min_length=1,
        max_length=MAX_FIELD_LENGTH,
        description="Passport number (record key)",
    )


class RecordUpdateRequest(PersonFields):
    """Request to update a record.

    A passport number in the body is accepted and ignored; the path wins.
    """

    passport_number: str | None = Field(None, alias="PassportNumber")


class SeedResponse(BaseModel):
    """Result of seeding the ledger."""

    seeded: int


class ExistsResponse(BaseModel):
    """Result of an existence check."""

    passport_number: str
    exists: bool


# --- Dependencies ---


def get_record_service(request: Request) -> RecordService:
    """Get record service from app state."""
    return request.app.state.record_service


# --- Routes ---


@router.post("/init", response_model=SeedResponse)
async def init_ledger(service: RecordService = Depends(get_record_service)):
    """
    Seed the ledger with the fixed initial records.

    Records that already exist are left untouched, so repeating the call
    is harmless and reports zero seeded records.
    """
    seeded = await seed_ledger(service)
    return SeedResponse(seeded=seeded)


@router.post("/records", status_code=201)
async def create_record(
    body: RecordCreateRequest,
    service: RecordService = Depends(get_record_service),
) -> dict[str, str]:
    """
    Create a record.

    Fails with 409 if the passport number is already stored.
    """
    record = await service.create(body.to_record(body.passport_number))
    return record.to_dict()


@router.get("/records/{passport_number}")
async def read_record(
    passport_number: str,
    service: RecordService = Depends(get_record_service),
) -> dict[str, str]:
    """Get the current record for a passport number."""
    record = await service.read(passport_number)
    return record.to_dict()


@router.put("/records/{passport_number}")
async def update_record(
    passport_number: str,
    body: RecordUpdateRequest,
    service: RecordService = Depends(get_record_service),
) -> dict[str, str]:
    """
    Replace the current record for a passport number.

    Fails with 404 if the passport number was never created.
    """
    record = await service.update(passport_number, body.to_record(passport_number))
    return record.to_dict()


@router.get("/records/{passport_number}/history")
async def record_history(
    passport_number: str,
    service: RecordService = Depends(get_record_service),
) -> dict[str, Any]:
    """
    Get every version of a record, oldest first.

    The full history is decoded before responding; a single corrupt
    version fails the request.
    """
    history = await service.history(passport_number)
    versions = await history.collect_versions()
    return {
        "passport_number": passport_number,
        "versions": [v.to_dict() for v in versions],
    }


@router.api_route(
    "/records/{passport_number}/exists",
    methods=["GET", "HEAD"],
    response_model=ExistsResponse,
)
async def record_exists(
    passport_number: str,
    service: RecordService = Depends(get_record_service),
):
    """Check whether a record is stored for a passport number."""
    exists = await service.exists(passport_number)
    return ExistsResponse(passport_number=passport_number, exists=exists)
