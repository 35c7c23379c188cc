"""
Run one enrichment tick against the configured Supabase project.
Run directly: python scripts/run_enrich_tick.py [--requeue-stuck]
"""

import argparse
import asyncio
import logging
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv(".env.local")
load_dotenv()

from leadcore.config import get_settings
from leadcore.dependencies import get_email_verifier, get_enricher, get_lead_store, get_supabase
from leadcore.services.jobs import JobDispatcher, requeue_stuck_leads


async def main(requeue_stuck: bool):
    settings = get_settings()
    store = get_lead_store()

    print("=" * 60)
    print("ENRICHMENT TICK")
    print("=" * 60)

    if requeue_stuck:
        print(f"\n[1] Requeueing leads stuck > {settings.dispatcher.stuck_lead_timeout_minutes} min...")
        sweep = await requeue_stuck_leads(store, settings.dispatcher.stuck_lead_timeout_minutes)
        print(f"    Found {sweep.found}, requeued {len(sweep.requeued)}")

    print("\n[2] Running tick...")
    dispatcher = JobDispatcher(store, get_enricher(), get_email_verifier(), settings.dispatcher)
    result = await dispatcher.run_tick()

    if not result.ok:
        print(f"    Tick failed: {result.error}")
        await get_supabase().aclose()
        return 1

    for key, value in result.summary().items():
        print(f"    {key}: {value}")

    print("\n[3] Per-user outcomes:")
    for outcome in result.outcomes:
        lead = outcome.lead_id[:8] if outcome.lead_id else "-"
        line = f"    {outcome.user_id[:8]}... lead={lead} {outcome.status.value}"
        if outcome.verification:
            line += f" verify={outcome.verification.value}"
        if outcome.error:
            line += f" error={outcome.error}"
        print(line)

    await get_supabase().aclose()
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run one enrichment tick")
    parser.add_argument("--requeue-stuck", action="store_true", help="Sweep stuck leads first")
    args = parser.parse_args()

    logging.basicConfig(level=get_settings().log_level.upper())
    sys.exit(asyncio.run(main(args.requeue_stuck)))
