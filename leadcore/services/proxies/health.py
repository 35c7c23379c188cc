"""
Proxy Health Aggregator - read-only statistics over the proxy log streams.

Success rates come from the signal log (live scrape traffic) only. Heal-check
entries are synthetic probes: they feed last-checked time, average response
time and their own summary, never the success rate.

Classification (thresholds from ProxyHealthSettings):
- healthy:   rate >= healthy_threshold (80)
- degraded:  degraded_threshold (60) <= rate < healthy_threshold
- unhealthy: rate < degraded_threshold
- no_data:   no signal entries for the proxy
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from ...config import ProxyHealthSettings
from ...models.proxies import (
    HealCheckStatus,
    HealCheckSummary,
    HealthClass,
    PoolHealthReport,
    PoolStats,
    ProxyHealCheckLogEntry,
    ProxyKey,
    ProxySignalLogEntry,
    ProxySignalStatus,
    ProxyStats,
)
from ..db.proxy_log_store import ProxyLogStore, ProxyLogUnavailable

logger = logging.getLogger(__name__)


def percentage(part: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return part * 100.0 / total


def classify(success_rate: float, total: int, settings: ProxyHealthSettings) -> HealthClass:
    if total <= 0:
        return HealthClass.NO_DATA
    if success_rate >= settings.healthy_threshold:
        return HealthClass.HEALTHY
    if success_rate >= settings.degraded_threshold:
        return HealthClass.DEGRADED
    return HealthClass.UNHEALTHY


def _latest(current: Optional[datetime], candidate: Optional[datetime]) -> Optional[datetime]:
    if candidate is None:
        return current
    if current is None or candidate > current:
        return candidate
    return current


def summarize_heal_checks(entries: Iterable[ProxyHealCheckLogEntry]) -> HealCheckSummary:
    summary = HealCheckSummary()
    for entry in entries:
        summary.total += 1
        if entry.status == HealCheckStatus.SUCCESS:
            summary.success += 1
        else:
            summary.failed += 1
    return summary


def build_proxy_stats(
    key: ProxyKey,
    signals: List[ProxySignalLogEntry],
    heal_checks: List[ProxyHealCheckLogEntry],
    settings: ProxyHealthSettings,
) -> ProxyStats:
    host, port = key
    stats = ProxyStats(proxy_host=host, proxy_port=port, total=len(signals))

    for entry in signals:
        if entry.status == ProxySignalStatus.SUCCESS:
            stats.success += 1
        elif entry.status == ProxySignalStatus.FAILED:
            stats.failed += 1
        elif entry.status == ProxySignalStatus.BANNED:
            stats.banned += 1
        elif entry.status == ProxySignalStatus.TIMEOUT:
            stats.timeout += 1
        else:
            stats.pending += 1
        stats.last_seen_at = _latest(stats.last_seen_at, entry.created_at)

    stats.success_rate = percentage(stats.success, stats.total)
    stats.health = classify(stats.success_rate, stats.total, settings)

    stats.heal_checks = summarize_heal_checks(heal_checks)
    durations = [entry.duration for entry in heal_checks if entry.duration is not None]
    if durations:
        stats.avg_response_ms = round(sum(durations) / len(durations))
    for entry in heal_checks:
        stats.last_checked_at = _latest(stats.last_checked_at, entry.created_at)
    return stats


def top_performers(proxies: List[ProxyStats], limit: int) -> List[ProxyStats]:
    """Best success rates among proxies with live traffic; ties go to more traffic."""
    ranked = sorted(
        (p for p in proxies if p.total > 0),
        key=lambda p: (-p.success_rate, -p.total, p.proxy_host, p.proxy_port),
    )
    return ranked[:limit]


def aggregate(
    signals: List[ProxySignalLogEntry],
    heal_checks: List[ProxyHealCheckLogEntry],
    settings: ProxyHealthSettings,
) -> PoolStats:
    """Build per-proxy and pool-wide statistics from both log streams."""
    signals_by_key: Dict[ProxyKey, List[ProxySignalLogEntry]] = defaultdict(list)
    checks_by_key: Dict[ProxyKey, List[ProxyHealCheckLogEntry]] = defaultdict(list)
    for entry in signals:
        signals_by_key[entry.key].append(entry)
    for entry in heal_checks:
        checks_by_key[entry.key].append(entry)

    keys = sorted(set(signals_by_key) | set(checks_by_key))
    proxies = [
        build_proxy_stats(key, signals_by_key.get(key, []), checks_by_key.get(key, []), settings)
        for key in keys
    ]

    pool = PoolStats(
        total=sum(p.total for p in proxies),
        success=sum(p.success for p in proxies),
        failed=sum(p.failed for p in proxies),
        banned=sum(p.banned for p in proxies),
        timeout=sum(p.timeout for p in proxies),
        pending=sum(p.pending for p in proxies),
        proxy_count=len(proxies),
        active_proxies=sum(1 for p in proxies if p.success_rate > 0),
        healthy_proxies=sum(1 for p in proxies if p.health == HealthClass.HEALTHY),
        proxies=proxies,
        heal_checks=summarize_heal_checks(heal_checks),
    )
    pool.overall_health = percentage(pool.success, pool.total)
    pool.activity_rate = percentage(pool.success + pool.failed, pool.total)
    pool.top_performers = top_performers(proxies, settings.top_performers)
    return pool


class ProxyHealthAggregator:
    """Reads both log streams and reports pool or per-proxy health."""

    def __init__(self, log_store: ProxyLogStore, settings: Optional[ProxyHealthSettings] = None):
        self.log_store = log_store
        self.settings = settings or ProxyHealthSettings()

    async def _load(self, since: Optional[datetime], host: Optional[str] = None, port: Optional[int] = None):
        return await asyncio.gather(
            self.log_store.signal_entries(since=since, host=host, port=port),
            self.log_store.heal_check_entries(since=since, host=host, port=port),
        )

    async def pool_report(self, since: Optional[datetime] = None) -> PoolHealthReport:
        generated_at = datetime.now(timezone.utc)
        try:
            signals, heal_checks = await self._load(since)
        except ProxyLogUnavailable as e:
            logger.error("[ProxyHealth] Log stream unavailable: %s", e)
            return PoolHealthReport(available=False, error=str(e), generated_at=generated_at, since=since)

        stats = aggregate(signals, heal_checks, self.settings)
        return PoolHealthReport(available=True, generated_at=generated_at, since=since, stats=stats)

    async def proxy_report(self, host: str, port: int, since: Optional[datetime] = None) -> Optional[ProxyStats]:
        """
        Stats for one endpoint; None when neither stream mentions it.

        Raises:
            ProxyLogUnavailable: a stream could not be read
        """
        signals, heal_checks = await self._load(since, host=host, port=port)
        key = (host, port)
        signals = [entry for entry in signals if entry.key == key]
        heal_checks = [entry for entry in heal_checks if entry.key == key]
        if not signals and not heal_checks:
            return None
        return build_proxy_stats(key, signals, heal_checks, self.settings)
