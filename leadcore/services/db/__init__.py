from .lead_store import LeadStore, SupabaseLeadStore
from .proxy_log_store import (
    ProxyLogStore,
    ProxyLogUnavailable,
    ProxyRegistry,
    SupabaseProxyLogStore,
    SupabaseProxyRegistry,
)
from .supabase_client import StoreError, SupabaseClient, check_connection

__all__ = [
    "LeadStore",
    "SupabaseLeadStore",
    "ProxyLogStore",
    "ProxyLogUnavailable",
    "ProxyRegistry",
    "SupabaseProxyLogStore",
    "SupabaseProxyRegistry",
    "StoreError",
    "SupabaseClient",
    "check_connection",
]
