"""
Proxy models - signal log entries, heal-check entries, registry rows and the
derived health statistics.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field


class ProxySignalStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    BANNED = "banned"
    TIMEOUT = "timeout"
    PENDING = "pending"


class HealCheckStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class ProxyStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"


class HealthClass(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    NO_DATA = "no_data"


ProxyKey = Tuple[str, int]


class ProxySignalLogEntry(BaseModel):
    """One outbound scrape request through a proxy (`proxy_logs`)."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    created_at: Optional[datetime] = None
    web_source: Optional[str] = None
    web_url: Optional[str] = None
    proxy_host: str
    proxy_port: int
    proxy_ip: Optional[str] = None
    status: ProxySignalStatus
    duration: Optional[int] = None
    error: Optional[str] = None

    @property
    def key(self) -> ProxyKey:
        return (self.proxy_host, self.proxy_port)


class ProxyHealCheckLogEntry(BaseModel):
    """One active probe of a proxy (`proxy_heal_check_logs`)."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    created_at: Optional[datetime] = None
    proxy_host: str
    proxy_port: int
    proxy_ip: Optional[str] = None
    status: HealCheckStatus
    duration: Optional[int] = None
    error: Optional[str] = None

    @property
    def key(self) -> ProxyKey:
        return (self.proxy_host, self.proxy_port)


class ProxyRecord(BaseModel):
    """A row of the `proxies` registry."""

    model_config = ConfigDict(extra="ignore")

    id: str
    host: str
    port: int
    username: Optional[str] = None
    password: Optional[str] = None
    status: ProxyStatus = ProxyStatus.ACTIVE
    last_checked_at: Optional[datetime] = None
    error_count_24h: Optional[int] = None
    total_count_24h: Optional[int] = None
    avg_response_ms: Optional[int] = None

    @property
    def proxy_url(self) -> str:
        if self.username:
            username = quote(self.username, safe="")
            password = quote(self.password or "", safe="")
            return f"http://{username}:{password}@{self.host}:{self.port}"
        return f"http://{self.host}:{self.port}"


class HealCheckSummary(BaseModel):
    total: int = 0
    success: int = 0
    failed: int = 0


class ProxyStats(BaseModel):
    """Statistics for one (host, port) endpoint."""

    proxy_host: str
    proxy_port: int
    total: int = 0
    success: int = 0
    failed: int = 0
    banned: int = 0
    timeout: int = 0
    pending: int = 0
    success_rate: float = 0.0
    health: HealthClass = HealthClass.NO_DATA
    last_seen_at: Optional[datetime] = None
    last_checked_at: Optional[datetime] = None
    avg_response_ms: Optional[int] = None
    heal_checks: HealCheckSummary = Field(default_factory=HealCheckSummary)


class PoolStats(BaseModel):
    """Pool-wide rollup over the signal log, heal checks reported beside it."""

    total: int = 0
    success: int = 0
    failed: int = 0
    banned: int = 0
    timeout: int = 0
    pending: int = 0
    overall_health: float = 0.0
    activity_rate: float = 0.0
    proxy_count: int = 0
    active_proxies: int = 0
    healthy_proxies: int = 0
    top_performers: List[ProxyStats] = Field(default_factory=list)
    proxies: List[ProxyStats] = Field(default_factory=list)
    heal_checks: HealCheckSummary = Field(default_factory=HealCheckSummary)


class PoolHealthReport(BaseModel):
    """Aggregator output; `available` is false when a log stream could not be read."""

    available: bool
    error: Optional[str] = None
    generated_at: datetime
    since: Optional[datetime] = None
    stats: Optional[PoolStats] = None
