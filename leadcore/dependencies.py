"""
Dependency providers - build the Supabase, OpenAI and Apify backed services
once per process and hand them to the routers through FastAPI's Depends.

Tests replace any of these with `app.dependency_overrides`.
"""

from functools import lru_cache

from fastapi import Depends

from .config import Settings, get_settings
from .services.db.lead_store import LeadStore, SupabaseLeadStore
from .services.db.proxy_log_store import (
    ProxyLogStore,
    ProxyRegistry,
    SupabaseProxyLogStore,
    SupabaseProxyRegistry,
)
from .services.db.supabase_client import SupabaseClient
from .services.enrichment.llm_enricher import Enricher, OpenAIEnricher
from .services.jobs.dispatcher import JobDispatcher
from .services.proxies.heal_check import HealCheckProber
from .services.proxies.health import ProxyHealthAggregator
from .services.verification.email_verifier import ApifyEmailVerifier, EmailVerifier


class ServiceNotConfigured(Exception):
    """A backing service is missing the credentials it needs."""


@lru_cache(maxsize=1)
def get_supabase() -> SupabaseClient:
    settings = get_settings().supabase
    try:
        return SupabaseClient(settings.url, settings.key, timeout=settings.timeout_seconds)
    except ValueError as e:
        raise ServiceNotConfigured(str(e)) from e


def get_lead_store() -> LeadStore:
    settings = get_settings().supabase
    return SupabaseLeadStore(get_supabase(), table=settings.leads_table, users_rpc=settings.users_rpc)


def get_proxy_log_store() -> ProxyLogStore:
    settings = get_settings().supabase
    return SupabaseProxyLogStore(
        get_supabase(),
        signal_table=settings.proxy_logs_table,
        heal_check_table=settings.heal_check_logs_table,
    )


def get_proxy_registry() -> ProxyRegistry:
    return SupabaseProxyRegistry(get_supabase(), table=get_settings().supabase.proxies_table)


@lru_cache(maxsize=1)
def get_enricher() -> Enricher:
    try:
        return OpenAIEnricher(get_settings().enrichment)
    except ValueError as e:
        raise ServiceNotConfigured(str(e)) from e


@lru_cache(maxsize=1)
def get_email_verifier() -> EmailVerifier:
    try:
        return ApifyEmailVerifier(get_settings().verification)
    except ValueError as e:
        raise ServiceNotConfigured(str(e)) from e


def get_dispatcher(
    store: LeadStore = Depends(get_lead_store),
    enricher: Enricher = Depends(get_enricher),
    verifier: EmailVerifier = Depends(get_email_verifier),
    settings: Settings = Depends(get_settings),
) -> JobDispatcher:
    return JobDispatcher(store, enricher, verifier, settings.dispatcher)


def get_health_aggregator(
    log_store: ProxyLogStore = Depends(get_proxy_log_store),
    settings: Settings = Depends(get_settings),
) -> ProxyHealthAggregator:
    return ProxyHealthAggregator(log_store, settings.proxy_health)


def get_heal_check_prober(
    registry: ProxyRegistry = Depends(get_proxy_registry),
    log_store: ProxyLogStore = Depends(get_proxy_log_store),
    settings: Settings = Depends(get_settings),
) -> HealCheckProber:
    return HealCheckProber(registry, log_store, settings.proxy_health)
