"""
Proxies Router - proxy signal log writes and health views

Endpoints:
- POST /proxies/logs - Append a signal log entry (scraping collaborator)
- GET /proxies/health - Pool-wide health report
- GET /proxies/{host}/{port}/health - Health of a single proxy
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..dependencies import get_health_aggregator, get_proxy_log_store
from ..models.proxies import ProxySignalLogEntry, ProxySignalStatus, ProxyStats
from ..services.db.proxy_log_store import ProxyLogStore, ProxyLogUnavailable
from ..services.db.supabase_client import StoreError
from ..services.proxies.health import ProxyHealthAggregator

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Pydantic Models
# ============================================

class ProxyOperation(BaseModel):
    proxy_host: str
    proxy_port: int
    proxy_ip: Optional[str] = None
    web_source: Optional[str] = None
    web_url: Optional[str] = None
    status: ProxySignalStatus
    started_at: datetime
    ended_at: datetime
    error: Optional[str] = None


def _since(since_hours: Optional[float]) -> Optional[datetime]:
    if not since_hours:
        return None
    return datetime.now(timezone.utc) - timedelta(hours=since_hours)


# ============================================
# Endpoints
# ============================================

@router.post("/logs", response_model=ProxySignalLogEntry, status_code=201)
async def log_proxy_operation(operation: ProxyOperation, log_store: ProxyLogStore = Depends(get_proxy_log_store)):
    """Append one scrape request outcome to the signal log."""
    if operation.ended_at < operation.started_at:
        raise HTTPException(status_code=422, detail="ended_at is before started_at")
    try:
        return await log_store.log_proxy_operation(**operation.model_dump())
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/health")
async def pool_health(
    since_hours: Optional[float] = Query(default=None, gt=0),
    aggregator: ProxyHealthAggregator = Depends(get_health_aggregator),
):
    """Pool-wide health; 503 with available=false when a log stream is unreadable."""
    report = await aggregator.pool_report(since=_since(since_hours))
    status_code = 200 if report.available else 503
    return JSONResponse(status_code=status_code, content=report.model_dump(mode="json"))


@router.get("/{host}/{port}/health", response_model=ProxyStats)
async def proxy_health(
    host: str,
    port: int,
    since_hours: Optional[float] = Query(default=None, gt=0),
    aggregator: ProxyHealthAggregator = Depends(get_health_aggregator),
):
    """Health of one proxy endpoint."""
    try:
        stats = await aggregator.proxy_report(host, port, since=_since(since_hours))
    except ProxyLogUnavailable as e:
        raise HTTPException(status_code=503, detail=f"Proxy logs unavailable: {e}")
    if stats is None:
        raise HTTPException(status_code=404, detail="Proxy not found in logs")
    return stats
