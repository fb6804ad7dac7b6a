"""
Supabase Client Helper for CRM Analytics Hub.
Provides the connection, record fetching for the analytics pipeline, and
report snapshot storage in the ``export_jobs`` table.

Access control is enforced by the database; this module only reads what
the configured key is allowed to see.

Usage:
    from scripts.lib.supabase_client import fetch_crm_snapshot, upsert_snapshot

    records = fetch_crm_snapshot()
    upsert_snapshot("analytics-dashboard", report_dict)
"""
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from tenacity import retry, stop_after_attempt, wait_exponential

from scripts.lib.errors import DataFetchError
from scripts.lib.logger import setup_logger

logger = setup_logger(__name__)

# Load .env from project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(PROJECT_ROOT / ".env")

SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_KEY = (
    os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")
    or os.environ.get("SUPABASE_KEY", "")
)

PAGE_SIZE = 1000
SNAPSHOT_TABLE = "export_jobs"

# Snapshot key -> Supabase table
CRM_TABLES: Dict[str, str] = {
    "clients": "clients",
    "tasks": "tasks",
    "events": "calendar_events",
    "expenses": "expenses",
    "payments": "payments",
    "budgets": "budgets",
}

_client = None


def get_client():
    """Create and return a Supabase client (singleton)."""
    global _client
    if _client is not None:
        return _client

    if not SUPABASE_URL or not SUPABASE_KEY:
        raise RuntimeError(
            "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set in .env"
        )

    from supabase import create_client
    _client = create_client(SUPABASE_URL, SUPABASE_KEY)
    logger.info("Supabase client connected to %s", SUPABASE_URL)
    return _client


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    reraise=True,
)
def _fetch_page(client, table: str, select: str, offset: int, page_size: int) -> List[Dict]:
    result = (
        client.table(table)
        .select(select)
        .order("created_at", desc=True)
        .range(offset, offset + page_size - 1)
        .execute()
    )
    return result.data or []


def fetch_records(table: str, select: str = "*", page_size: int = PAGE_SIZE) -> List[Dict]:
    """
    Fetch every row of a table, newest first, one page at a time.

    Args:
        table: Table name.
        select: Columns to select (default "*").
        page_size: Rows per request.

    Returns:
        List of row dicts.

    Raises:
        RuntimeError: Supabase credentials are not configured.
        DataFetchError: a page still failed after retries.
    """
    client = get_client()
    rows: List[Dict] = []
    offset = 0
    while True:
        try:
            page = _fetch_page(client, table, select, offset, page_size)
        except Exception as e:
            logger.error("Supabase fetch failed on %s at offset %d: %s", table, offset, e)
            raise DataFetchError(f"Failed to fetch {table}: {e}", source=table) from e
        rows.extend(page)
        if len(page) < page_size:
            break
        offset += page_size

    logger.debug("Fetched %d rows from %s", len(rows), table)
    return rows


def fetch_crm_snapshot(tables: Optional[Dict[str, str]] = None) -> Dict[str, List[Dict]]:
    """Fetch every collection the analytics pipeline consumes."""
    tables = tables or CRM_TABLES
    snapshot = {key: fetch_records(table) for key, table in tables.items()}
    logger.info(
        "Fetched CRM snapshot: %s",
        ", ".join(f"{len(rows)} {key}" for key, rows in snapshot.items()),
    )
    return snapshot


def upsert_snapshot(source: str, data: Dict[str, Any], fmt: str = "json") -> bool:
    """
    Store a computed report as a completed export job.

    Args:
        source: Report type identifier (e.g. "analytics-dashboard").
        data: JSON-serializable report dict.
        fmt: Export format recorded on the job.

    Returns:
        True on success, False on failure.
    """
    try:
        client = get_client()
        row = {
            "report_name": "Analytics Dashboard Report",
            "report_type": source,
            "status": "completed",
            "format": fmt,
            "data": data,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        client.table(SNAPSHOT_TABLE).insert(row).execute()
        logger.info("Snapshot inserted for source: %s", source)
        return True
    except Exception as e:
        logger.error("Supabase snapshot insert failed for %s: %s", source, e)
        return False


def get_latest_snapshot(source: str) -> Optional[Dict]:
    """
    Fetch the most recently stored report for a source.

    Returns:
        The data dict from the latest snapshot, or None.
    """
    try:
        client = get_client()
        result = (
            client.table(SNAPSHOT_TABLE)
            .select("data, created_at")
            .eq("report_type", source)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        if result.data:
            return result.data[0].get("data")
        return None
    except Exception as e:
        logger.error("Supabase fetch failed for %s: %s", source, e)
        return None
