"""
CRM Analytics Hub — API Server
================================

Read-only API layer serving analytics computed from Supabase records.

Route groups:
  /api/health        - Health check
  /api/analytics/*   - Dashboard report, exports, financial overview
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


# ─── Lifespan ─────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app):
    """Application startup and shutdown."""
    logger.info("Starting CRM Analytics Hub...")

    # Supabase connection check
    try:
        from scripts.lib.supabase_client import get_client
        get_client()
        logger.info("Supabase connected")
    except Exception as e:
        logger.warning("Supabase not available: %s", e)

    logger.info("CRM Analytics Hub ready")
    yield
    logger.info("Shutting down CRM Analytics Hub...")


# ─── App Setup ────────────────────────────────────────────────

cors_origins = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"
).split(",")

app = FastAPI(
    title="CRM Analytics Hub",
    version=VERSION,
    description="Sales, activity and financial analytics over CRM records",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)


# ─── Include Routers ──────────────────────────────────────────

from dashboard.api.routers.analytics import router as analytics_router  # noqa: E402

app.include_router(analytics_router)


# ─── Health ───────────────────────────────────────────────────

@app.get("/api/health", tags=["system"])
async def health():
    """Health check with data source status."""
    supabase_ok = False
    try:
        from scripts.lib.supabase_client import get_client
        get_client()
        supabase_ok = True
    except Exception:
        pass

    return {
        "status": "healthy",
        "service": "CRM Analytics Hub",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "integrations": {
            "supabase": supabase_ok,
        },
    }
