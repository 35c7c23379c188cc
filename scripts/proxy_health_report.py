"""
Print the proxy pool health report.
Run directly: python scripts/proxy_health_report.py [--hours 24]
"""

import argparse
import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv(".env.local")
load_dotenv()

from leadcore.config import get_settings
from leadcore.dependencies import get_proxy_log_store, get_supabase
from leadcore.services.proxies import ProxyHealthAggregator


async def main(hours: float):
    since = datetime.now(timezone.utc) - timedelta(hours=hours) if hours else None
    aggregator = ProxyHealthAggregator(get_proxy_log_store(), get_settings().proxy_health)
    report = await aggregator.pool_report(since=since)
    await get_supabase().aclose()

    print("=" * 60)
    print(f"PROXY HEALTH ({'last %sh' % hours if hours else 'all time'})")
    print("=" * 60)

    if not report.available:
        print(f"\nProxy logs unavailable: {report.error}")
        return 1

    stats = report.stats
    print(f"\nRequests: {stats.total} (success {stats.success}, failed {stats.failed}, "
          f"banned {stats.banned}, timeout {stats.timeout}, pending {stats.pending})")
    print(f"Overall health: {stats.overall_health:.1f}%")
    print(f"Activity rate:  {stats.activity_rate:.1f}%")
    print(f"Proxies: {stats.proxy_count} seen, {stats.active_proxies} active, {stats.healthy_proxies} healthy")
    print(f"Heal checks: {stats.heal_checks.success}/{stats.heal_checks.total} succeeded")

    print("\nTop performers:")
    for i, proxy in enumerate(stats.top_performers, 1):
        print(f"  {i}. {proxy.proxy_host}:{proxy.proxy_port} {proxy.success_rate:.1f}% ({proxy.total} requests)")

    print("\nAll proxies:")
    print("-" * 60)
    for proxy in stats.proxies:
        latency = f"{proxy.avg_response_ms}ms" if proxy.avg_response_ms is not None else "-"
        print(f"  {proxy.proxy_host}:{proxy.proxy_port:<6} {proxy.health.value:<10} "
              f"{proxy.success_rate:5.1f}%  n={proxy.total:<5} heal={latency}")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Proxy pool health report")
    parser.add_argument("--hours", type=float, default=24, help="Window size; 0 for all time")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.hours)))
