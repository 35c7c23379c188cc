"""
Heal Check Prober - actively probe registered proxies.

For every proxy in `active` or `error` status: GET the check URL through the
proxy, append the result to the heal-check log, then refresh the proxy row's
monitor fields (status, last_checked_at and the trailing-window error count,
total count and average response time) from the heal-check log.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import httpx

from ...config import ProxyHealthSettings
from ...models.proxies import HealCheckStatus, ProxyRecord, ProxyStatus
from ..db.proxy_log_store import ProxyLogStore, ProxyRegistry

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (LeadCoreAI ProxyCheck)"

ClientFactory = Callable[[ProxyRecord, ProxyHealthSettings], httpx.AsyncClient]


def default_client_factory(proxy: ProxyRecord, settings: ProxyHealthSettings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        proxy=proxy.proxy_url,
        timeout=settings.heal_check_timeout_seconds,
        headers={"User-Agent": USER_AGENT},
    )


@dataclass
class ProbeResult:
    proxy_id: str
    proxy_host: str
    proxy_port: int
    status: HealCheckStatus
    duration_ms: int
    error: Optional[str] = None
    avg_response_ms: Optional[int] = None
    error_count: int = 0
    total_count: int = 0


@dataclass
class HealCheckRun:
    ok: bool
    error: Optional[str] = None
    results: List[ProbeResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def checked(self) -> int:
        return len(self.results)

    @property
    def healthy(self) -> int:
        return sum(1 for r in self.results if r.status == HealCheckStatus.SUCCESS)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == HealCheckStatus.FAILED)


class HealCheckProber:
    def __init__(
        self,
        registry: ProxyRegistry,
        log_store: ProxyLogStore,
        settings: Optional[ProxyHealthSettings] = None,
        client_factory: ClientFactory = default_client_factory,
    ):
        self.registry = registry
        self.log_store = log_store
        self.settings = settings or ProxyHealthSettings()
        self.client_factory = client_factory

    async def probe(self, proxy: ProxyRecord) -> ProbeResult:
        """Probe one proxy, log the result and refresh its monitor fields."""
        started_at = datetime.now(timezone.utc)
        status = HealCheckStatus.FAILED
        error: Optional[str] = None

        try:
            async with self.client_factory(proxy, self.settings) as client:
                response = await client.get(self.settings.heal_check_url)
            if response.is_success:
                status = HealCheckStatus.SUCCESS
            else:
                error = f"Proxy response error: HTTP {response.status_code} - {response.reason_phrase or 'Unknown error'}"
        except httpx.HTTPError as e:
            error = str(e) or type(e).__name__

        ended_at = datetime.now(timezone.utc)
        entry = await self.log_store.log_heal_check(
            proxy_host=proxy.host,
            proxy_port=proxy.port,
            started_at=started_at,
            ended_at=ended_at,
            status=status,
            error=error,
        )
        result = ProbeResult(
            proxy_id=proxy.id,
            proxy_host=proxy.host,
            proxy_port=proxy.port,
            status=status,
            duration_ms=entry.duration or 0,
            error=error,
        )

        window_start = ended_at - timedelta(hours=self.settings.monitor_window_hours)
        recent = await self.log_store.heal_check_entries(since=window_start, host=proxy.host, port=proxy.port)
        durations = [e.duration for e in recent if e.duration is not None]
        result.total_count = len(recent)
        result.error_count = sum(1 for e in recent if e.status == HealCheckStatus.FAILED)
        result.avg_response_ms = round(sum(durations) / len(durations)) if durations else None

        await self.registry.update_proxy(proxy.id, {
            "status": (ProxyStatus.ACTIVE if status == HealCheckStatus.SUCCESS else ProxyStatus.ERROR).value,
            "last_checked_at": ended_at.isoformat(),
            "error_count_24h": result.error_count,
            "total_count_24h": result.total_count,
            "avg_response_ms": result.avg_response_ms,
        })

        if status == HealCheckStatus.SUCCESS:
            logger.info("[HealCheck] Proxy %s:%s OK (%dms)", proxy.host, proxy.port, result.duration_ms)
        else:
            logger.warning("[HealCheck] Proxy %s:%s failed: %s", proxy.host, proxy.port, error)
        return result

    async def run(self) -> HealCheckRun:
        """Probe every active or erroring proxy."""
        try:
            proxies = await self.registry.list_proxies([ProxyStatus.ACTIVE, ProxyStatus.ERROR])
        except Exception as e:
            logger.error("[HealCheck] Could not list proxies: %s", e)
            return HealCheckRun(ok=False, error=str(e) or type(e).__name__)

        semaphore = asyncio.Semaphore(max(1, self.settings.heal_check_concurrency))
        run = HealCheckRun(ok=True)

        async def guarded(proxy: ProxyRecord) -> None:
            async with semaphore:
                try:
                    run.results.append(await self.probe(proxy))
                except Exception as e:
                    logger.exception("[HealCheck] Probe failed for proxy %s", proxy.id)
                    run.errors.append(f"{proxy.id}: {e}")

        await asyncio.gather(*(guarded(proxy) for proxy in proxies))
        logger.info("[HealCheck] Checked %d proxies: %d healthy, %d failed", run.checked, run.healthy, run.failed)
        return run
