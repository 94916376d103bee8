"""
Initial ledger contents.

seed_ledger() writes a fixed pair of records through the create guard, so
running it against a populated store skips existing keys instead of
overwriting them.
"""

from __future__ import annotations

import logging

from ..errors import AlreadyExistsError
from .model import PersonRecord
from .service import RecordService

logger = logging.getLogger(__name__)

SEED_RECORDS: tuple[PersonRecord, ...] = (
    PersonRecord(
        passport_number="1",
        name="Ildar",
        last_name="Zinatulin",
        city="Moscow",
        residential_address="Some street, house 1, apartment 10",
        phone_number="+79999999999",
        family_status="Not married",
    ),
    PersonRecord(
        passport_number="2",
        name="Artem",
        last_name="Barger",
        city="Moscow",
        residential_address="Some street, house 1, apartment 11",
        phone_number="+79999999998",
        family_status="No data",
    ),
)


async def seed_ledger(service: RecordService) -> int:
    """Create the seed records that are not stored yet.

    Args:
        service: Record service to write through

    Returns:
        Number of records created by this call

    Raises:
        BackendUnavailableError: If the store fails
    """
    created = 0
    for record in SEED_RECORDS:
        try:
            await service.create(record)
        except AlreadyExistsError:
            logger.info(
                "Seed record already present, skipping",
                extra={"passport_number": record.passport_number},
            )
            continue
        created += 1

    logger.info(f"Seeded {created} of {len(SEED_RECORDS)} records")
    return created
