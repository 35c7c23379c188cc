import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

import pytest


# Ensure project root on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from leadcore import dependencies  # noqa: E402
from leadcore.config import get_settings  # noqa: E402
from leadcore.models.leads import (  # noqa: E402
    EnrichInfo,
    Lead,
    LeadStatus,
    ScrapInfo,
)
from leadcore.models.proxies import (  # noqa: E402
    ProxyHealCheckLogEntry,
    ProxyRecord,
    ProxySignalLogEntry,
    ProxyStatus,
)
from leadcore.services.db.lead_store import LeadStore  # noqa: E402
from leadcore.services.db.proxy_log_store import (  # noqa: E402
    ProxyLogStore,
    ProxyLogUnavailable,
    ProxyRegistry,
)
from leadcore.services.enrichment.llm_enricher import Enricher, parse_enrichment  # noqa: E402
from leadcore.services.verification.email_verifier import EmailVerifier  # noqa: E402


@pytest.fixture(autouse=True)
def _test_env(monkeypatch):
    # Keep tests offline: no real credentials and no cached settings
    for name in ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_KEY", "OPENAI_API_KEY", "APIFY_API_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    _clear_caches()
    yield
    _clear_caches()


def _clear_caches():
    get_settings.cache_clear()
    for provider in (dependencies.get_supabase, dependencies.get_enricher, dependencies.get_email_verifier):
        provider.cache_clear()


NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_lead(
    lead_id: str,
    user_id: str = "user-1",
    status: LeadStatus = LeadStatus.SCRAPED,
    scrap_info: Any = "default",
    created_minutes_ago: int = 10,
    **fields: Any,
) -> Lead:
    if scrap_info == "default":
        scrap_info = {"title": "Acme Co", "desc": "sells widgets", "emails": ["hello@acme.test"]}
    created = NOW - timedelta(minutes=created_minutes_ago)
    return Lead(
        id=lead_id,
        user_id=user_id,
        url=f"https://{lead_id}.example.com",
        source="shopify",
        status=status,
        scrap_info=scrap_info,
        created_at=created,
        updated_at=fields.pop("updated_at", created),
        **fields,
    )


class InMemoryLeadStore(LeadStore):
    """LeadStore with the same compare-and-set semantics as the PostgREST store."""

    def __init__(self, leads: Iterable[Lead] = (), fail_listing: Optional[Exception] = None):
        self.leads: Dict[str, Lead] = {lead.id: lead for lead in leads}
        self.fail_listing = fail_listing
        self.writes: List[Dict[str, Any]] = []
        self.verifications: List[Dict[str, Any]] = []
        self.clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)

    async def users_with_scraped_leads(self) -> List[str]:
        if self.fail_listing:
            raise self.fail_listing
        users: List[str] = []
        for lead in self.leads.values():
            if lead.status == LeadStatus.SCRAPED and lead.user_id not in users:
                users.append(lead.user_id)
        return users

    async def next_scraped_lead(self, user_id: str) -> Optional[Lead]:
        candidates = [
            lead for lead in self.leads.values()
            if lead.user_id == user_id and lead.status == LeadStatus.SCRAPED
        ]
        # Yield so concurrent jobs interleave between read and claim
        await asyncio.sleep(0)
        if not candidates:
            return None
        return min(candidates, key=lambda lead: lead.created_at).model_copy()

    async def _write_transition(self, lead_id, expected, target, fields):
        lead = self.leads.get(lead_id)
        if lead is None or lead.status != expected:
            return None
        update = {**(fields or {}), "status": target, "updated_at": self.clock()}
        self.leads[lead_id] = lead.model_copy(update=update)
        self.writes.append({"id": lead_id, "from": expected, "to": target, **(fields or {})})
        return self.leads[lead_id].model_copy()

    async def record_verification(self, lead_id, status, info):
        lead = self.leads[lead_id]
        self.leads[lead_id] = lead.model_copy(update={"verify_email_status": status, "verify_email_info": info})
        self.verifications.append({"id": lead_id, "status": status, "info": info})

    async def stuck_leads(self, older_than):
        return [
            lead.model_copy() for lead in self.leads.values()
            if lead.status == LeadStatus.ENRICHING and lead.updated_at < older_than
        ]

    async def requeue_stale(self, lead_id, older_than):
        lead = self.leads.get(lead_id)
        if lead is None or lead.status != LeadStatus.ENRICHING or lead.updated_at >= older_than:
            return None
        self.leads[lead_id] = lead.model_copy(update={
            "status": LeadStatus.SCRAPED,
            "enrich_info": None,
            "updated_at": self.clock(),
        })
        return self.leads[lead_id].model_copy()

    def status_of(self, lead_id: str) -> LeadStatus:
        return self.leads[lead_id].status


class TextEnricher(Enricher):
    """Enricher whose "model" always answers with the given completion text."""

    def __init__(self, text: str = '{"summary": "Acme sells widgets.", "title_guess": "Acme Widgets"}', delay: float = 0):
        self.text = text
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.on_call: Optional[Callable[[ScrapInfo, Optional[str]], None]] = None

    async def enrich(self, scrap_info: ScrapInfo, url: Optional[str] = None) -> EnrichInfo:
        self.calls.append({"scrap_info": scrap_info, "url": url})
        if self.on_call:
            self.on_call(scrap_info, url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            return parse_enrichment(self.text)
        finally:
            self.in_flight -= 1


class RaisingEnricher(Enricher):
    """Fault-injected enricher that always throws."""

    def __init__(self, error: Exception = None):
        self.error = error or RuntimeError("upstream exploded")
        self.calls = 0

    async def enrich(self, scrap_info, url=None):
        self.calls += 1
        raise self.error


class ScriptedVerifier(EmailVerifier):
    """Verifier returning fixed verdicts, or raising when `error` is set."""

    def __init__(self, verdicts: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None):
        self.verdicts = verdicts if verdicts is not None else [{"email": "hello@acme.test", "status": "valid"}]
        self.error = error
        self.emails: List[str] = []

    async def check(self, email: str) -> List[Dict[str, Any]]:
        self.emails.append(email)
        if self.error:
            raise self.error
        return self.verdicts


class InMemoryProxyLogStore(ProxyLogStore):
    def __init__(
        self,
        signals: Iterable[ProxySignalLogEntry] = (),
        heal_checks: Iterable[ProxyHealCheckLogEntry] = (),
    ):
        self.signals = list(signals)
        self.heal_checks = list(heal_checks)
        self.unavailable: Optional[str] = None

    def _check(self):
        if self.unavailable:
            raise ProxyLogUnavailable(self.unavailable)

    @staticmethod
    def _filter(entries, since, host, port):
        return [
            entry for entry in entries
            if (since is None or (entry.created_at and entry.created_at >= since))
            and (host is None or entry.proxy_host == host)
            and (port is None or entry.proxy_port == port)
        ]

    async def append_signal(self, entry):
        stored = entry.model_copy(update={"id": f"sig-{len(self.signals) + 1}"})
        self.signals.append(stored)
        return stored

    async def append_heal_check(self, entry):
        stored = entry.model_copy(update={"id": f"hc-{len(self.heal_checks) + 1}"})
        self.heal_checks.append(stored)
        return stored

    async def signal_entries(self, since=None, host=None, port=None):
        self._check()
        return self._filter(self.signals, since, host, port)

    async def heal_check_entries(self, since=None, host=None, port=None):
        self._check()
        return self._filter(self.heal_checks, since, host, port)


class InMemoryProxyRegistry(ProxyRegistry):
    def __init__(self, proxies: Iterable[ProxyRecord] = (), fail_listing: Optional[Exception] = None):
        self.proxies = {proxy.id: proxy for proxy in proxies}
        self.fail_listing = fail_listing
        self.updates: List[Dict[str, Any]] = []

    async def list_proxies(self, statuses):
        if self.fail_listing:
            raise self.fail_listing
        wanted = set(statuses)
        return [proxy for proxy in self.proxies.values() if proxy.status in wanted]

    async def update_proxy(self, proxy_id, fields):
        self.updates.append({"id": proxy_id, **fields})
        self.proxies[proxy_id] = self.proxies[proxy_id].model_copy(update={
            key: ProxyStatus(value) if key == "status" else value
            for key, value in fields.items()
        })


def signal(host: str, port: int, status: str, minutes_ago: int = 5, **fields: Any) -> ProxySignalLogEntry:
    return ProxySignalLogEntry(
        created_at=NOW - timedelta(minutes=minutes_ago),
        proxy_host=host,
        proxy_port=port,
        status=status,
        web_source=fields.pop("web_source", "shopify"),
        **fields,
    )


def heal_check(host: str, port: int, status: str, duration: int = 100, minutes_ago: int = 5) -> ProxyHealCheckLogEntry:
    return ProxyHealCheckLogEntry(
        created_at=NOW - timedelta(minutes=minutes_ago),
        proxy_host=host,
        proxy_port=port,
        status=status,
        duration=duration,
    )


@pytest.fixture
def lead_store():
    return InMemoryLeadStore([make_lead("lead-1")])


@pytest.fixture
def proxy_log_store():
    return InMemoryProxyLogStore()
