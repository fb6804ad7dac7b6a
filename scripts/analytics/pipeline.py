"""
Analytics pipeline: normalize -> filter -> aggregate -> classify -> assemble.

Pure and re-entrant. All wall-clock access goes through the injected
``now``; calling it twice with the same inputs gives an identical report.

Usage:
    from scripts.analytics.pipeline import run_pipeline
    report = run_pipeline(clients, tasks, events, window_days=30, now=now)
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from models.analytics_models import AnalyticsReport
from scripts.analytics.aggregator import aggregate_sales, stage_counts
from scripts.analytics.config import DEFAULT_CONFIG, window_options
from scripts.analytics.financial import summarize_financials
from scripts.analytics.insights import classify_trends, derive_insights
from scripts.analytics.normalizer import (
    normalize_budgets,
    normalize_clients,
    normalize_events,
    normalize_expenses,
    normalize_payments,
    normalize_tasks,
)
from scripts.analytics.report import assemble_report
from scripts.analytics.window import created_at, ensure_aware, filter_by_window, validate_window_days
from scripts.lib.logger import setup_logger

logger = setup_logger(__name__)


def _payment_date(payment):
    return payment.payment_date or payment.created_at


def _expense_date(expense):
    return expense.expense_date or expense.created_at


def run_pipeline(
    clients: Any,
    tasks: Any,
    events: Any,
    expenses: Any = None,
    payments: Any = None,
    budgets: Any = None,
    *,
    window_days: int,
    now: datetime,
    config: Optional[Dict[str, Any]] = None,
) -> AnalyticsReport:
    """Run the full analytics pipeline over raw record payloads.

    Raises:
        InvalidWindowError: ``window_days`` is not one of the configured options.
    """
    config = config or DEFAULT_CONFIG
    validate_window_days(window_days, window_options(config))
    now = ensure_aware(now)

    # 1. Normalize
    all_clients = normalize_clients(clients)
    all_tasks = normalize_tasks(tasks)
    all_events = normalize_events(events)
    all_expenses = normalize_expenses(expenses)
    all_payments = normalize_payments(payments)
    all_budgets = normalize_budgets(budgets)

    # 2. Filter to the trailing window
    window_clients = filter_by_window(all_clients, window_days, created_at, now)
    window_tasks = filter_by_window(all_tasks, window_days, created_at, now)
    window_events = filter_by_window(all_events, window_days, created_at, now)
    window_expenses = filter_by_window(all_expenses, window_days, _expense_date, now)
    window_payments = filter_by_window(all_payments, window_days, _payment_date, now)
    window_budgets = filter_by_window(all_budgets, window_days, created_at, now)

    logger.info(
        "Analytics window %dd: %d/%d clients, %d/%d tasks, %d/%d events, "
        "%d payments, %d expenses, %d budgets",
        window_days, len(window_clients), len(all_clients), len(window_tasks), len(all_tasks),
        len(window_events), len(all_events), len(window_payments), len(window_expenses),
        len(window_budgets),
    )
    logger.debug("Stage distribution: %s", stage_counts(window_clients))

    # 3. Aggregate
    metrics = aggregate_sales(
        window_clients, window_tasks, window_events, now, window_days,
        config=config, all_clients=all_clients,
    )
    financial = summarize_financials(window_payments, window_expenses, window_budgets, all_clients)

    # 4. Classify
    trends = classify_trends(metrics, config)
    insights = derive_insights(metrics, config)

    # 5. Assemble
    return assemble_report(
        metrics, trends, insights, financial,
        window_days=window_days,
        generated_at=now,
        record_counts={
            "clients": len(window_clients),
            "tasks": len(window_tasks),
            "events": len(window_events),
            "payments": len(window_payments),
            "expenses": len(window_expenses),
            "budgets": len(window_budgets),
        },
    )
