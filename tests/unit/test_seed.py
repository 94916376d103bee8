"""
Unit tests for seeding the fixed initial records.
"""

import pytest

from ledger.population_data.errors import BackendUnavailableError
from ledger.population_data.records import SEED_RECORDS, RecordService, seed_ledger
from ledger.population_data.records.model import PersonRecord
from ledger.population_data.state.memory import InMemoryStateStore


class TestSeedLedger:
    """Tests for seed_ledger()."""

    @pytest.fixture
    async def service(self):
        store = InMemoryStateStore()
        await store.connect()
        yield RecordService(store)
        await store.close()

    @pytest.mark.asyncio
    async def test_seeds_empty_store(self, service):
        """Both fixed records are created on an empty store."""
        assert await seed_ledger(service) == 2

        first = await service.read("1")
        assert first.name == "Ildar"
        assert first.last_name == "Zinatulin"
        assert first.city == "Moscow"
        assert (await service.read("2")).family_status == "No data"

    @pytest.mark.asyncio
    async def test_reseeding_is_noop(self, service):
        """A second run creates nothing and keeps history at one version."""
        await seed_ledger(service)

        assert await seed_ledger(service) == 0
        assert len(await service.history_list("1")) == 1
        assert len(await service.history_list("2")) == 1

    @pytest.mark.asyncio
    async def test_existing_record_not_overwritten(self, service):
        """A pre-existing seed key keeps its value; the other key is seeded."""
        custom = PersonRecord(passport_number="1", name="Custom")
        await service.create(custom)

        assert await seed_ledger(service) == 1
        assert await service.read("1") == custom
        assert await service.read("2") == SEED_RECORDS[1]

    @pytest.mark.asyncio
    async def test_backend_failure_propagates(self, service):
        """Store failures are not swallowed."""
        await service.store.close()

        with pytest.raises(BackendUnavailableError):
            await seed_ledger(service)
