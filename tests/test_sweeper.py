"""
Tests for the stuck lead sweep.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from conftest import InMemoryLeadStore, make_lead
from leadcore.models.leads import LeadStatus
from leadcore.services.jobs import requeue_stuck_leads


def minutes_ago(minutes):
    return datetime.now(timezone.utc) - timedelta(minutes=minutes)


@pytest.mark.unit
class TestRequeueStuckLeads:
    def test_stale_enriching_lead_goes_back_to_scraped(self):
        store = InMemoryLeadStore([
            make_lead("stale", status=LeadStatus.ENRICHING, updated_at=minutes_ago(45)),
            make_lead("fresh", status=LeadStatus.ENRICHING, updated_at=minutes_ago(5)),
            make_lead("done", status=LeadStatus.ENRICHED, updated_at=minutes_ago(120)),
        ])

        result = asyncio.run(requeue_stuck_leads(store, timeout_minutes=30))

        assert result.found == 1
        assert result.requeued == ["stale"]
        assert store.status_of("stale") == LeadStatus.SCRAPED
        assert store.status_of("fresh") == LeadStatus.ENRICHING
        assert store.status_of("done") == LeadStatus.ENRICHED

    def test_lead_reclaimed_between_scan_and_write_is_left_alone(self):
        class ReclaimingStore(InMemoryLeadStore):
            async def stuck_leads(self, older_than):
                stuck = await super().stuck_leads(older_than)
                # Another tick refreshes the lease right after the scan
                for lead in stuck:
                    self.leads[lead.id] = self.leads[lead.id].model_copy(
                        update={"updated_at": datetime.now(timezone.utc)}
                    )
                return stuck

        store = ReclaimingStore([make_lead("stale", status=LeadStatus.ENRICHING, updated_at=minutes_ago(45))])

        result = asyncio.run(requeue_stuck_leads(store, timeout_minutes=30))

        assert result.found == 1
        assert result.requeued == []
        assert store.status_of("stale") == LeadStatus.ENRICHING

    def test_requeued_lead_is_picked_up_by_the_next_tick(self):
        store = InMemoryLeadStore([make_lead("stale", status=LeadStatus.ENRICHING, updated_at=minutes_ago(60))])
        asyncio.run(requeue_stuck_leads(store, timeout_minutes=30))

        assert asyncio.run(store.users_with_scraped_leads()) == ["user-1"]

    @pytest.mark.parametrize("timeout_minutes", [0, -5])
    def test_non_positive_timeout_is_rejected(self, timeout_minutes):
        store = InMemoryLeadStore([make_lead("fresh", status=LeadStatus.ENRICHING, updated_at=minutes_ago(0))])

        with pytest.raises(ValueError):
            asyncio.run(requeue_stuck_leads(store, timeout_minutes=timeout_minutes))

        assert store.status_of("fresh") == LeadStatus.ENRICHING
