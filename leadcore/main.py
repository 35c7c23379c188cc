"""
LeadCore v1 - FastAPI Application

Headless API that enriches scraped leads, verifies their emails and reports
on scraping proxy health. The job endpoints are meant to be hit by a
scheduler (cron, Supabase pg_cron, etc.).
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import get_settings
from .dependencies import ServiceNotConfigured, get_supabase
from .routers import jobs, proxies

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="LeadCore API",
    description="Lead enrichment, email verification and proxy health",
    version=__version__,
)

# CORS middleware (adjust origins for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceNotConfigured)
async def service_not_configured_handler(request: Request, exc: ServiceNotConfigured):
    logger.error("[API] %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"ok": False, "error": str(exc)})


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "LeadCore API",
        "version": __version__,
    }


@app.get("/health")
async def health_check():
    """Health check with database connection test."""
    from .services.db.supabase_client import check_connection

    try:
        client = get_supabase()
    except ServiceNotConfigured:
        return {"status": "degraded", "database": "not configured"}

    db_ok = await check_connection(client, table=get_settings().supabase.leads_table)

    return {
        "status": "healthy" if db_ok else "degraded",
        "database": "connected" if db_ok else "disconnected",
    }


# Include routers
app.include_router(jobs.router, prefix="/jobs", tags=["Jobs"])
app.include_router(proxies.router, prefix="/proxies", tags=["Proxies"])
