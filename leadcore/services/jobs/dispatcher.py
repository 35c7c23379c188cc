"""
Job Dispatcher - one enrichment tick across every user with a backlog.

Each tick:
1. Asks the store which users own at least one `scraped` lead
2. For each user (in parallel, bounded by a semaphore) takes the oldest
   `scraped` lead and claims it with a scraped -> enriching compare-and-set
3. Enriches the claimed lead, then writes enriched (with enrich_info) or
   scraped (enrich_info null, retried next tick)
4. Verifies the first scraped email, whatever the enrichment outcome

One lead per user per tick keeps a large backlog from starving other users.
A claim that loses the race is skipped without side effects. Failures inside
a user's job are logged and never fail the tick.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ...config import DispatcherSettings
from ...models.leads import Lead
from ..db.lead_store import LeadStore
from ..enrichment.llm_enricher import Enricher, EnrichmentFailed
from ..verification.email_verifier import (
    EmailVerifier,
    VerificationOutcome,
    VerificationResult,
    error_marker,
)

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    NO_LEAD = "no_lead"
    LOST_CLAIM = "lost_claim"
    ENRICHED = "enriched"
    RETRY = "retry"
    UNENRICHABLE = "unenrichable"
    ERROR = "error"


@dataclass
class JobOutcome:
    """What happened to one user's job in a tick."""

    user_id: str
    status: JobStatus
    lead_id: Optional[str] = None
    verification: Optional[VerificationOutcome] = None
    error: Optional[str] = None


@dataclass
class TickResult:
    ok: bool
    error: Optional[str] = None
    users: int = 0
    outcomes: List[JobOutcome] = field(default_factory=list)

    def count(self, status: JobStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    def summary(self) -> Dict[str, Any]:
        return {
            "users": self.users,
            "claimed": sum(
                1 for o in self.outcomes
                if o.status in (JobStatus.ENRICHED, JobStatus.RETRY, JobStatus.UNENRICHABLE)
            ),
            "enriched": self.count(JobStatus.ENRICHED),
            "retry": self.count(JobStatus.RETRY),
            "unenrichable": self.count(JobStatus.UNENRICHABLE),
            "lost_claims": self.count(JobStatus.LOST_CLAIM),
            "errors": self.count(JobStatus.ERROR),
            "verified": sum(1 for o in self.outcomes if o.verification == VerificationOutcome.VERIFIED),
        }


class JobDispatcher:
    """Runs enrichment ticks against injected store and adapters."""

    def __init__(
        self,
        store: LeadStore,
        enricher: Enricher,
        verifier: EmailVerifier,
        settings: Optional[DispatcherSettings] = None,
    ):
        self.store = store
        self.enricher = enricher
        self.verifier = verifier
        self.settings = settings or DispatcherSettings()

    async def run_tick(self) -> TickResult:
        """Run one tick. Only a failure to enumerate users makes it not ok."""
        try:
            user_ids = await self.store.users_with_scraped_leads()
        except Exception as e:
            logger.error("[Dispatcher] Could not list users with scraped leads: %s", e)
            return TickResult(ok=False, error=str(e) or type(e).__name__)

        if not user_ids:
            logger.info("[Dispatcher] No users with scraped leads")
            return TickResult(ok=True)

        logger.info("[Dispatcher] Tick for %d user(s)", len(user_ids))
        semaphore = asyncio.Semaphore(max(1, self.settings.max_concurrent_users))

        async def bounded(user_id: str) -> JobOutcome:
            async with semaphore:
                return await self.run_user_job(user_id)

        outcomes = await asyncio.gather(*(bounded(user_id) for user_id in user_ids))
        result = TickResult(ok=True, users=len(user_ids), outcomes=list(outcomes))
        logger.info("[Dispatcher] Tick complete: %s", result.summary())
        return result

    async def run_user_job(self, user_id: str) -> JobOutcome:
        """process_user with every failure turned into an ERROR outcome."""
        try:
            return await self.process_user(user_id)
        except Exception as e:
            logger.exception("[Dispatcher] Job failed for user %s", user_id)
            return JobOutcome(user_id=user_id, status=JobStatus.ERROR, error=str(e) or type(e).__name__)

    async def process_user(self, user_id: str) -> JobOutcome:
        """Claim and advance at most one lead for a user."""
        candidate = await self.store.next_scraped_lead(user_id)
        if candidate is None:
            return JobOutcome(user_id=user_id, status=JobStatus.NO_LEAD)

        lead = await self.store.claim(candidate.id)
        if lead is None:
            logger.info("[Dispatcher] Lead %s already claimed, skipping", candidate.id)
            return JobOutcome(user_id=user_id, status=JobStatus.LOST_CLAIM, lead_id=candidate.id)

        status = await self.enrich(lead)
        outcome = JobOutcome(user_id=user_id, status=status, lead_id=lead.id)
        if status is JobStatus.LOST_CLAIM:
            return outcome

        verification = await self.verify(lead)
        if verification is not None:
            outcome.verification = verification.outcome
        return outcome

    async def enrich(self, lead: Lead) -> JobStatus:
        """Run enrichment for a claimed lead and write its terminal state."""
        scrap_info = lead.parsed_scrap_info
        if scrap_info is None:
            logger.warning("[Dispatcher] Lead %s has no scraped payload, marking failed", lead.id)
            written = await self.store.mark_failed(lead.id)
            return JobStatus.UNENRICHABLE if written else JobStatus.LOST_CLAIM

        try:
            enrich_info = await self.enricher.enrich(scrap_info, lead.url or None)
        except EnrichmentFailed as e:
            logger.warning("[Dispatcher] Enrichment failed for lead %s: %s", lead.id, e)
            enrich_info = None
        except Exception:
            logger.exception("[Dispatcher] Enricher raised for lead %s", lead.id)
            enrich_info = None

        if enrich_info is None:
            written = await self.store.release_for_retry(lead.id)
            status = JobStatus.RETRY
        else:
            written = await self.store.complete_enrichment(lead.id, enrich_info)
            status = JobStatus.ENRICHED

        if written is None:
            logger.warning("[Dispatcher] Lead %s left enriching before its result was written", lead.id)
            return JobStatus.LOST_CLAIM
        return status

    async def verify(self, lead: Lead) -> Optional[VerificationResult]:
        """Verify the lead's first email; no email means no call and no write."""
        email = lead.first_email
        if not email:
            return None

        try:
            result = await self.verifier.verify(email)
        except Exception as e:
            logger.exception("[Dispatcher] Verifier raised for lead %s", lead.id)
            result = VerificationResult(email, VerificationOutcome.ERROR, error_marker(email, e))

        await self.store.record_verification(lead.id, result.status, result.info)
        return result
