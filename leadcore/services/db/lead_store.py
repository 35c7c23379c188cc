"""
Lead Store - persistence for the lead lifecycle.

Every status change the pipeline makes is a compare-and-set on the `status`
column: the PATCH carries `status=eq.<expected>` as a filter and an empty
representation back means another run got there first. That single-row
check is the only lock the pipeline uses.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ...models.leads import EnrichInfo, Lead, LeadStatus, VerifyEmailStatus, can_transition
from .supabase_client import SupabaseClient


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LeadStore(ABC):
    """Abstract lead persistence used by the dispatcher."""

    @abstractmethod
    async def users_with_scraped_leads(self) -> List[str]:
        """Distinct user ids that own at least one lead in `scraped`."""

    @abstractmethod
    async def next_scraped_lead(self, user_id: str) -> Optional[Lead]:
        """Oldest (by created_at) `scraped` lead of a user, or None."""

    @abstractmethod
    async def _write_transition(
        self,
        lead_id: str,
        expected: LeadStatus,
        target: LeadStatus,
        fields: Optional[Dict[str, Any]],
    ) -> Optional[Lead]:
        """Compare-and-set write of `target` filtered on `status == expected`."""

    async def transition(
        self,
        lead_id: str,
        expected: LeadStatus,
        target: LeadStatus,
        fields: Optional[Dict[str, Any]] = None,
    ) -> Optional[Lead]:
        """
        Move a lead from `expected` to `target`, writing `fields` alongside.

        Returns the updated lead, or None when the lead was not in
        `expected` any more (lost race). Raises ValueError for a move the
        pipeline never makes.
        """
        if not can_transition(expected, target):
            raise ValueError(f"Illegal lead transition {expected.value} -> {target.value}")
        return await self._write_transition(lead_id, expected, target, fields)

    @abstractmethod
    async def record_verification(
        self,
        lead_id: str,
        status: VerifyEmailStatus,
        info: Any,
    ) -> None:
        """Persist the email verification outcome and its raw payload."""

    @abstractmethod
    async def stuck_leads(self, older_than: datetime) -> List[Lead]:
        """Leads sitting in `enriching` with updated_at before `older_than`."""

    @abstractmethod
    async def requeue_stale(self, lead_id: str, older_than: datetime) -> Optional[Lead]:
        """
        Return a lead stuck in `enriching` to `scraped`.

        Only applies while the lead is still `enriching` and its updated_at
        is still before `older_than`, so a fresh claim is never undone.
        """

    async def claim(self, lead_id: str) -> Optional[Lead]:
        return await self.transition(lead_id, LeadStatus.SCRAPED, LeadStatus.ENRICHING)

    async def complete_enrichment(self, lead_id: str, enrich_info: EnrichInfo) -> Optional[Lead]:
        return await self.transition(
            lead_id,
            LeadStatus.ENRICHING,
            LeadStatus.ENRICHED,
            {"enrich_info": enrich_info.model_dump()},
        )

    async def release_for_retry(self, lead_id: str) -> Optional[Lead]:
        return await self.transition(
            lead_id, LeadStatus.ENRICHING, LeadStatus.SCRAPED, {"enrich_info": None}
        )

    async def mark_failed(self, lead_id: str) -> Optional[Lead]:
        return await self.transition(
            lead_id, LeadStatus.ENRICHING, LeadStatus.FAILED, {"enrich_info": None}
        )


class SupabaseLeadStore(LeadStore):
    """LeadStore backed by the Supabase `leads` table."""

    def __init__(self, client: SupabaseClient, table: str = "leads", users_rpc: str = "get_users_with_available_enrich_jobs"):
        self.client = client
        self.table = table
        self.users_rpc = users_rpc

    async def users_with_scraped_leads(self) -> List[str]:
        result = await self.client.rpc(self.users_rpc).execute()
        user_ids: List[str] = []
        for row in result.data:
            user_id = row.get("user_id") if isinstance(row, dict) else row
            if user_id and user_id not in user_ids:
                user_ids.append(str(user_id))
        return user_ids

    async def next_scraped_lead(self, user_id: str) -> Optional[Lead]:
        result = await (
            self.client.table(self.table)
            .select("*")
            .eq("user_id", user_id)
            .eq("status", LeadStatus.SCRAPED.value)
            .order("created_at")
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        return Lead.model_validate(result.data[0])

    async def _write_transition(
        self,
        lead_id: str,
        expected: LeadStatus,
        target: LeadStatus,
        fields: Optional[Dict[str, Any]],
    ) -> Optional[Lead]:
        payload = {**(fields or {}), "status": target.value, "updated_at": utc_now().isoformat()}
        result = await (
            self.client.table(self.table)
            .update(payload)
            .eq("id", lead_id)
            .eq("status", expected.value)
            .execute()
        )
        if not result.data:
            return None
        return Lead.model_validate(result.data[0])

    async def record_verification(self, lead_id: str, status: VerifyEmailStatus, info: Any) -> None:
        await (
            self.client.table(self.table)
            .update({
                "verify_email_status": status.value,
                "verify_email_info": info,
                "updated_at": utc_now().isoformat(),
            })
            .eq("id", lead_id)
            .execute()
        )

    async def stuck_leads(self, older_than: datetime) -> List[Lead]:
        result = await (
            self.client.table(self.table)
            .select("*")
            .eq("status", LeadStatus.ENRICHING.value)
            .lt("updated_at", older_than.isoformat())
            .order("updated_at")
            .execute()
        )
        return [Lead.model_validate(row) for row in result.data]

    async def requeue_stale(self, lead_id: str, older_than: datetime) -> Optional[Lead]:
        result = await (
            self.client.table(self.table)
            .update({
                "status": LeadStatus.SCRAPED.value,
                "enrich_info": None,
                "updated_at": utc_now().isoformat(),
            })
            .eq("id", lead_id)
            .eq("status", LeadStatus.ENRICHING.value)
            .lt("updated_at", older_than.isoformat())
            .execute()
        )
        if not result.data:
            return None
        return Lead.model_validate(result.data[0])
