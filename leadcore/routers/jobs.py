"""
Jobs Router - scheduler triggers

Endpoints:
- POST /jobs/enrich - Run one enrichment tick
- POST /jobs/requeue-stuck - Return leads stuck in enriching to scraped
- POST /jobs/proxy-heal-check - Probe every active/erroring proxy

Each answers {"ok": true, ...} with 200, or {"ok": false, "error": ...}
with 500 when the run could not start. Failures inside a user's job or a
single probe are logged and do not change the response.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import Settings, get_settings
from ..dependencies import get_dispatcher, get_heal_check_prober, get_lead_store
from ..services.db.lead_store import LeadStore
from ..services.jobs.dispatcher import JobDispatcher
from ..services.jobs.sweeper import requeue_stuck_leads
from ..services.proxies.heal_check import HealCheckProber

logger = logging.getLogger(__name__)

router = APIRouter()

_RUNNING_TASKS: set = set()


# ============================================
# Pydantic Models
# ============================================

class TickResponse(BaseModel):
    ok: bool
    error: Optional[str] = None
    background: bool = False
    summary: Optional[Dict[str, Any]] = None


class SweepResponse(BaseModel):
    ok: bool
    error: Optional[str] = None
    found: int = 0
    requeued: int = 0


class HealCheckResponse(BaseModel):
    ok: bool
    error: Optional[str] = None
    checked: int = 0
    healthy: int = 0
    failed: int = 0


def _respond(model: BaseModel) -> JSONResponse:
    status_code = 200 if model.ok else 500
    return JSONResponse(status_code=status_code, content=model.model_dump(exclude_none=True))


def _start_background(coro) -> None:
    task = asyncio.create_task(coro)
    _RUNNING_TASKS.add(task)
    task.add_done_callback(_RUNNING_TASKS.discard)


async def _tick_worker(dispatcher: JobDispatcher) -> None:
    result = await dispatcher.run_tick()
    if not result.ok:
        logger.error("[Jobs] Background tick failed: %s", result.error)


# ============================================
# Endpoints
# ============================================

@router.post("/enrich")
async def enrich_tick(background: bool = False, dispatcher: JobDispatcher = Depends(get_dispatcher)):
    """
    Run one enrichment tick.

    Args:
        background: Return immediately and let the tick finish in the background
    """
    if background:
        _start_background(_tick_worker(dispatcher))
        return _respond(TickResponse(ok=True, background=True))

    try:
        result = await dispatcher.run_tick()
    except Exception as e:
        logger.exception("[Jobs] Unexpected error during enrichment tick")
        return _respond(TickResponse(ok=False, error=str(e) or type(e).__name__))

    if not result.ok:
        return _respond(TickResponse(ok=False, error=result.error))
    return _respond(TickResponse(ok=True, summary=result.summary()))


@router.post("/requeue-stuck")
async def requeue_stuck(
    timeout_minutes: Optional[int] = Query(default=None, gt=0),
    store: LeadStore = Depends(get_lead_store),
    settings: Settings = Depends(get_settings),
):
    """Requeue leads stuck in enriching for longer than the lease."""
    if timeout_minutes is None:
        minutes = settings.dispatcher.stuck_lead_timeout_minutes
    else:
        minutes = timeout_minutes
    try:
        result = await requeue_stuck_leads(store, minutes)
    except Exception as e:
        logger.error("[Jobs] Stuck lead sweep failed: %s", e)
        return _respond(SweepResponse(ok=False, error=str(e) or type(e).__name__))
    return _respond(SweepResponse(ok=True, found=result.found, requeued=len(result.requeued)))


@router.post("/proxy-heal-check")
async def proxy_heal_check(prober: HealCheckProber = Depends(get_heal_check_prober)):
    """Probe every active or erroring proxy."""
    run = await prober.run()
    if not run.ok:
        return _respond(HealCheckResponse(ok=False, error=run.error))
    return _respond(HealCheckResponse(ok=True, checked=run.checked, healthy=run.healthy, failed=run.failed))
