from .leads import (
    EnrichInfo,
    Lead,
    LeadSource,
    LeadStatus,
    OpaqueScrapInfo,
    VerifyEmailStatus,
    WebsiteScrapInfo,
    can_transition,
    parse_scrap_info,
)
from .proxies import (
    HealCheckStatus,
    HealCheckSummary,
    HealthClass,
    PoolHealthReport,
    PoolStats,
    ProxyHealCheckLogEntry,
    ProxyRecord,
    ProxySignalLogEntry,
    ProxySignalStatus,
    ProxyStats,
    ProxyStatus,
)

__all__ = [
    "EnrichInfo",
    "Lead",
    "LeadSource",
    "LeadStatus",
    "OpaqueScrapInfo",
    "VerifyEmailStatus",
    "WebsiteScrapInfo",
    "can_transition",
    "parse_scrap_info",
    "HealCheckStatus",
    "HealCheckSummary",
    "HealthClass",
    "PoolHealthReport",
    "PoolStats",
    "ProxyHealCheckLogEntry",
    "ProxyRecord",
    "ProxySignalLogEntry",
    "ProxySignalStatus",
    "ProxyStats",
    "ProxyStatus",
]
