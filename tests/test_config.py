import pytest

from leadcore.config import Settings, get_settings


@pytest.mark.unit
def test_defaults_without_environment():
    settings = Settings.from_env()

    assert settings.supabase.url is None
    assert settings.supabase.leads_table == "leads"
    assert settings.enrichment.model == "gpt-4o-mini"
    assert settings.enrichment.timeout_seconds == 60.0
    assert settings.verification.actor_id == "fatihtahta~email-verifier-free-to-use"
    assert settings.verification.timeout_seconds == 330.0
    assert settings.dispatcher.max_concurrent_users == 10
    assert settings.dispatcher.stuck_lead_timeout_minutes == 30
    assert settings.proxy_health.healthy_threshold == 80.0
    assert settings.proxy_health.degraded_threshold == 60.0
    assert settings.proxy_health.top_performers == 3


@pytest.mark.unit
def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://proj.supabase.co")
    monkeypatch.setenv("SUPABASE_KEY", "anon-fallback")
    monkeypatch.setenv("DISPATCH_MAX_CONCURRENT_USERS", "3")
    monkeypatch.setenv("PROXY_HEALTHY_THRESHOLD", "90")

    settings = Settings.from_env()

    assert settings.supabase.url == "https://proj.supabase.co"
    assert settings.supabase.key == "anon-fallback"
    assert settings.dispatcher.max_concurrent_users == 3
    assert settings.proxy_health.healthy_threshold == 90.0


@pytest.mark.unit
def test_service_role_key_wins(monkeypatch):
    monkeypatch.setenv("SUPABASE_KEY", "anon")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service")
    assert Settings.from_env().supabase.key == "service"


@pytest.mark.unit
def test_settings_are_cached():
    assert get_settings() is get_settings()
