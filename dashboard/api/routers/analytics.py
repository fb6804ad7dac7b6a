"""
CRM Analytics Hub — Analytics Router
======================================
Read-only analytics endpoints. Records are fetched from Supabase on every
request and run through the analytics pipeline.

Endpoints:
  GET /api/analytics/dashboard   - Full analytics report
  GET /api/analytics/export      - JSON summary or CSV download
  GET /api/analytics/financial   - Financial section only
  GET /api/analytics/snapshot    - Last stored report
"""
from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse, Response

from models.analytics_models import AnalyticsReport
from scripts.analytics.config import load_config, window_options
from scripts.analytics.pipeline import run_pipeline
from scripts.analytics.report import EXPORT_FORMATS, render_csv, to_export_summary
from scripts.analytics.window import validate_window_days
from scripts.lib.errors import DataFetchError, InvalidWindowError, UnsupportedFormatError
from scripts.lib.logger import setup_logger
from scripts.lib.supabase_client import fetch_crm_snapshot, get_latest_snapshot

logger = setup_logger("analytics_router")

router = APIRouter(prefix="/api/analytics", tags=["analytics"])

SNAPSHOT_SOURCE = "analytics-dashboard"


@lru_cache(maxsize=1)
def get_config() -> Dict[str, Any]:
    return load_config()


def _build_report(window_days: int) -> AnalyticsReport:
    config = get_config()
    try:
        validate_window_days(window_days, window_options(config))
    except InvalidWindowError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        records = fetch_crm_snapshot()
    except DataFetchError as e:
        logger.error("Analytics fetch failed: %s", e)
        raise HTTPException(status_code=502, detail="Failed to fetch CRM records")
    except RuntimeError as e:
        logger.error("Supabase not configured: %s", e)
        raise HTTPException(status_code=503, detail="Data source not configured")

    return run_pipeline(
        records.get("clients"),
        records.get("tasks"),
        records.get("events"),
        records.get("expenses"),
        records.get("payments"),
        records.get("budgets"),
        window_days=window_days,
        now=datetime.now(timezone.utc),
        config=config,
    )


@router.get("/dashboard")
def analytics_dashboard(
    window_days: int = Query(30, description="Trailing window: 7, 30, 90 or 365 days"),
):
    """Full analytics report for the dashboard."""
    report = _build_report(window_days)
    return JSONResponse(content=report.model_dump(mode="json"))


@router.get("/export")
def analytics_export(
    window_days: int = Query(30, description="Trailing window: 7, 30, 90 or 365 days"),
    format: str = Query("json", description="Export format: json or csv"),
):
    """Downloadable export of the analytics report."""
    fmt = format.lower()
    if fmt not in EXPORT_FORMATS:
        raise HTTPException(status_code=400, detail=str(UnsupportedFormatError(format, EXPORT_FORMATS)))

    report = _build_report(window_days)
    filename = f"analytics-report-{report.generated_at.strftime('%Y-%m-%d')}.{fmt}"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}

    if fmt == "csv":
        return Response(content=render_csv(report), media_type="text/csv", headers=headers)
    return JSONResponse(content=to_export_summary(report), headers=headers)


@router.get("/financial")
def financial_overview(
    window_days: int = Query(30, description="Trailing window: 7, 30, 90 or 365 days"),
):
    """Budgets, payments, expenses and client profitability."""
    report = _build_report(window_days)
    return JSONResponse(content={
        "window_days": report.window_days,
        "generated_at": report.generated_at.isoformat(),
        **report.financial.model_dump(mode="json"),
    })


@router.get("/snapshot")
async def latest_snapshot():
    """Most recently stored report (written by scripts/crm_analytics.py)."""
    data = get_latest_snapshot(SNAPSHOT_SOURCE)
    if not data:
        raise HTTPException(status_code=404, detail="No stored analytics snapshot")
    return data
