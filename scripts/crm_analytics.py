"""
CRM Analytics Runner
=====================
Loads CRM records (from a JSON snapshot file or live from Supabase), runs
the analytics pipeline and writes the export to data/processed/.

Usage:
    python scripts/crm_analytics.py --window 30
    python scripts/crm_analytics.py --input data/raw/crm_snapshot.json --format csv --no-sync

The input file holds one key per collection (clients, tasks, events,
expenses, payments, budgets); each value may be a list or a {"data": [...]}
envelope.
"""
from __future__ import annotations

import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from models.analytics_models import AnalyticsReport  # noqa: E402
from scripts.analytics.config import load_config  # noqa: E402
from scripts.analytics.pipeline import run_pipeline  # noqa: E402
from scripts.analytics.report import EXPORT_FORMATS, render_export  # noqa: E402
from scripts.lib.errors import AnalyticsError, DataFetchError  # noqa: E402
from scripts.lib.logger import setup_logger  # noqa: E402
from scripts.lib.utils import atomic_write_text, load_json_file  # noqa: E402

PROCESSED_DIR = BASE_DIR / "data" / "processed"
SNAPSHOT_SOURCE = "analytics-dashboard"

load_dotenv(BASE_DIR / ".env")

logger = setup_logger(__name__)


def load_records(input_path: Optional[Path] = None) -> Dict[str, Any]:
    """Read a snapshot file, or fetch live from Supabase when no file is given."""
    if input_path is not None:
        logger.info("Loading CRM snapshot from %s", input_path)
        try:
            payload = load_json_file(input_path)
        except (OSError, ValueError) as e:
            raise DataFetchError(f"Could not read snapshot file: {e}", source=str(input_path)) from e
        return payload if isinstance(payload, dict) else {}

    from scripts.lib.supabase_client import fetch_crm_snapshot
    return fetch_crm_snapshot()


def run_crm_analysis(
    window_days: int,
    input_path: Optional[Path] = None,
    config: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> AnalyticsReport:
    """Load records and run every analytics stage."""
    records = load_records(input_path)
    return run_pipeline(
        records.get("clients"),
        records.get("tasks"),
        records.get("events"),
        records.get("expenses"),
        records.get("payments"),
        records.get("budgets"),
        window_days=window_days,
        now=now or datetime.now(timezone.utc),
        config=config,
    )


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Compute CRM analytics and write an export")
    parser.add_argument("--window", type=int, default=None, help="Trailing window in days")
    parser.add_argument("--input", type=Path, default=None, help="JSON snapshot file (default: Supabase)")
    parser.add_argument("--format", choices=EXPORT_FORMATS, default="json", help="Export format")
    parser.add_argument("--output", type=Path, default=None, help="Output path")
    parser.add_argument("--config", type=Path, default=None, help="YAML config overrides")
    parser.add_argument("--no-sync", action="store_true", help="Skip storing the snapshot in Supabase")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        window_days = args.window if args.window is not None else config["default_window_days"]
        report = run_crm_analysis(window_days, args.input, config)
        body = render_export(report, args.format)
    except AnalyticsError as e:
        logger.error("Analytics run failed: %s", e)
        return 1

    output = args.output or PROCESSED_DIR / (
        f"analytics-report-{report.generated_at.strftime('%Y-%m-%d')}.{args.format}"
    )
    if not atomic_write_text(body, output):
        return 1
    logger.info("Export written to %s", output)

    if not args.no_sync:
        try:
            from scripts.lib.supabase_client import upsert_snapshot
            upsert_snapshot(SNAPSHOT_SOURCE, report.model_dump(mode="json"), fmt=args.format)
        except Exception as e:
            logger.warning("Snapshot sync failed (non-fatal): %s", e)

    return 0


if __name__ == "__main__":
    sys.exit(main())
