"""
Configuration - environment driven settings for the lead pipeline service.

Reads .env.local then .env (python-dotenv) and exposes one frozen dataclass
per concern. `get_settings()` caches the aggregate for the running process;
tests build the dataclasses directly.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv(".env.local")
load_dotenv()


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


@dataclass(frozen=True)
class SupabaseSettings:
    """Supabase REST connection details and table names."""

    url: Optional[str] = None
    key: Optional[str] = None
    leads_table: str = "leads"
    proxy_logs_table: str = "proxy_logs"
    heal_check_logs_table: str = "proxy_heal_check_logs"
    proxies_table: str = "proxies"
    users_rpc: str = "get_users_with_available_enrich_jobs"
    timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls) -> "SupabaseSettings":
        return cls(
            url=os.getenv("SUPABASE_URL"),
            key=os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_KEY"),
            leads_table=os.getenv("SUPABASE_LEADS_TABLE", "leads"),
            proxy_logs_table=os.getenv("SUPABASE_PROXY_LOGS_TABLE", "proxy_logs"),
            heal_check_logs_table=os.getenv("SUPABASE_HEAL_CHECK_LOGS_TABLE", "proxy_heal_check_logs"),
            proxies_table=os.getenv("SUPABASE_PROXIES_TABLE", "proxies"),
            users_rpc=os.getenv("SUPABASE_USERS_RPC", "get_users_with_available_enrich_jobs"),
            timeout_seconds=_env_float("SUPABASE_TIMEOUT_SECONDS", 30.0),
        )


@dataclass(frozen=True)
class EnrichmentSettings:
    """Settings for the generative summary step."""

    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    temperature: float = 0.2
    max_tokens: int = 2048
    timeout_seconds: float = 60.0

    @classmethod
    def from_env(cls) -> "EnrichmentSettings":
        return cls(
            api_key=os.getenv("OPENAI_API_KEY"),
            model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            temperature=_env_float("OPENAI_TEMPERATURE", 0.2),
            max_tokens=_env_int("OPENAI_MAX_TOKENS", 2048),
            timeout_seconds=_env_float("ENRICHMENT_TIMEOUT_SECONDS", 60.0),
        )


@dataclass(frozen=True)
class VerificationSettings:
    """Settings for the Apify email deliverability actor."""

    api_token: Optional[str] = None
    actor_id: str = "fatihtahta~email-verifier-free-to-use"
    # The actor run itself is capped at 300s on Apify's side.
    timeout_seconds: float = 330.0

    @classmethod
    def from_env(cls) -> "VerificationSettings":
        return cls(
            api_token=os.getenv("APIFY_API_TOKEN"),
            actor_id=os.getenv("EMAIL_VERIFIER_ACTOR_ID", "fatihtahta~email-verifier-free-to-use"),
            timeout_seconds=_env_float("EMAIL_VERIFICATION_TIMEOUT_SECONDS", 330.0),
        )


@dataclass(frozen=True)
class DispatcherSettings:
    """Tick fan-out bound and stuck lead lease."""

    max_concurrent_users: int = 10
    stuck_lead_timeout_minutes: int = 30

    @classmethod
    def from_env(cls) -> "DispatcherSettings":
        return cls(
            max_concurrent_users=_env_int("DISPATCH_MAX_CONCURRENT_USERS", 10),
            stuck_lead_timeout_minutes=_env_int("STUCK_LEAD_TIMEOUT_MINUTES", 30),
        )


@dataclass(frozen=True)
class ProxyHealthSettings:
    """Health classification policy and heal-check prober parameters."""

    healthy_threshold: float = 80.0
    degraded_threshold: float = 60.0
    top_performers: int = 3
    heal_check_url: str = "https://ip.oxylabs.io/location"
    heal_check_timeout_seconds: float = 20.0
    monitor_window_hours: int = 24
    heal_check_concurrency: int = 10

    @classmethod
    def from_env(cls) -> "ProxyHealthSettings":
        return cls(
            healthy_threshold=_env_float("PROXY_HEALTHY_THRESHOLD", 80.0),
            degraded_threshold=_env_float("PROXY_DEGRADED_THRESHOLD", 60.0),
            top_performers=_env_int("PROXY_TOP_PERFORMERS", 3),
            heal_check_url=os.getenv("PROXY_HEAL_CHECK_URL", "https://ip.oxylabs.io/location"),
            heal_check_timeout_seconds=_env_float("PROXY_HEAL_CHECK_TIMEOUT_SECONDS", 20.0),
            monitor_window_hours=_env_int("PROXY_MONITOR_WINDOW_HOURS", 24),
            heal_check_concurrency=_env_int("PROXY_HEAL_CHECK_CONCURRENCY", 10),
        )


@dataclass(frozen=True)
class Settings:
    supabase: SupabaseSettings = field(default_factory=SupabaseSettings)
    enrichment: EnrichmentSettings = field(default_factory=EnrichmentSettings)
    verification: VerificationSettings = field(default_factory=VerificationSettings)
    dispatcher: DispatcherSettings = field(default_factory=DispatcherSettings)
    proxy_health: ProxyHealthSettings = field(default_factory=ProxyHealthSettings)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            supabase=SupabaseSettings.from_env(),
            enrichment=EnrichmentSettings.from_env(),
            verification=VerificationSettings.from_env(),
            dispatcher=DispatcherSettings.from_env(),
            proxy_health=ProxyHealthSettings.from_env(),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
