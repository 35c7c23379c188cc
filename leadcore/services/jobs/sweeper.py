"""
Stuck lead sweep - return leads abandoned in `enriching` to `scraped`.

A run that crashes between claim and its terminal write leaves the lead in
`enriching` forever. The sweep treats `updated_at` as a lease: once it is
older than the configured timeout the lead is requeued, again by
compare-and-set so a lead re-claimed in the meantime is left alone.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List

from ..db.lead_store import LeadStore, utc_now

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    found: int = 0
    requeued: List[str] = field(default_factory=list)


async def requeue_stuck_leads(store: LeadStore, timeout_minutes: int) -> SweepResult:
    # A non-positive lease would put the cutoff at or after now and undo live claims
    if timeout_minutes <= 0:
        raise ValueError(f"timeout_minutes must be positive, got {timeout_minutes}")
    cutoff = utc_now() - timedelta(minutes=timeout_minutes)
    stuck = await store.stuck_leads(cutoff)
    result = SweepResult(found=len(stuck))

    for lead in stuck:
        requeued = await store.requeue_stale(lead.id, cutoff)
        if requeued is not None:
            result.requeued.append(lead.id)

    if stuck:
        logger.warning(
            "[Sweeper] Requeued %d of %d lead(s) stuck in enriching for over %d min",
            len(result.requeued), len(stuck), timeout_minutes,
        )
    return result
