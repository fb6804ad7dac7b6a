"""
Metric Aggregator
=================
Named, independently testable reductions over normalized CRM records.

Every function is pure: it reads records (and an explicit ``now`` where time
matters) and returns numbers or frozen models. Nothing is rounded here;
rounding happens in the export projections.
"""
from __future__ import annotations

import math
import re
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from models.analytics_models import (
    ActivityMetrics,
    Forecasting,
    MonthBucket,
    OwnerPerformance,
    PerformanceMetrics,
    SalesMetrics,
    StageBucket,
    TeamPerformance,
    TopClient,
)
from models.crm_models import ClientRecord, EventRecord, TaskRecord
from scripts.analytics.config import DEFAULT_CONFIG
from scripts.analytics.window import ensure_aware, window_cutoff

_MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

UNKNOWN_COMPANY = "Unknown"
UNASSIGNED_OWNER = "Unassigned"
NO_PERFORMER = "No data"


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------

def _safe_div(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Zero-safe division."""
    if denominator == 0:
        return default
    return numerator / denominator


def _pct(part: float, whole: float) -> float:
    return _safe_div(part, whole) * 100.0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _days_between(start: datetime, end: datetime) -> float:
    return abs((end - start).total_seconds()) / 86400.0


def _shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _month_start(year: int, month: int, like: datetime) -> datetime:
    return datetime(year, month, 1, tzinfo=like.tzinfo)


def stage_label(stage: str) -> str:
    """Display label for a stage key: ``closed-won`` -> ``Closed Won``."""
    words = [w for w in re.split(r"[-_\s]+", stage) if w]
    return " ".join(w[:1].upper() + w[1:] for w in words) or stage


def won_deals(clients: Iterable[ClientRecord]) -> List[ClientRecord]:
    return [c for c in clients if c.is_won]


# ---------------------------------------------------------------------------
# Headline metrics
# ---------------------------------------------------------------------------

def total_revenue(clients: Sequence[ClientRecord]) -> float:
    return sum(c.deal_value for c in clients if c.is_won)


def conversion_rate(clients: Sequence[ClientRecord]) -> float:
    return _pct(len(won_deals(clients)), len(clients))


def avg_deal_value(clients: Sequence[ClientRecord]) -> float:
    won = won_deals(clients)
    return _safe_div(sum(c.deal_value for c in won), len(won))


def active_deals(clients: Sequence[ClientRecord]) -> int:
    return sum(1 for c in clients if c.is_active)


def growth_rate(current: float, previous: float) -> float:
    """Percent change; 100 when starting from zero, 0 when both are zero."""
    if previous > 0:
        return (current - previous) / previous * 100.0
    return 100.0 if current > 0 else 0.0


def revenue_between(
    clients: Sequence[ClientRecord], start: datetime, end: datetime, now: datetime
) -> Tuple[float, int]:
    """Won revenue and deal count closed in ``[start, end)``."""
    revenue = 0.0
    deals = 0
    for client in won_deals(clients):
        closed = ensure_aware(client.closed_date(now))
        if start <= closed < end:
            revenue += client.deal_value
            deals += 1
    return revenue, deals


def monthly_growth(clients: Sequence[ClientRecord], now: datetime) -> float:
    """Growth of this calendar month's won revenue over last month's."""
    now = ensure_aware(now)
    this_month = _month_start(now.year, now.month, now)
    last_month = _month_start(*_shift_month(now.year, now.month, -1), now)
    next_month = _month_start(*_shift_month(now.year, now.month, 1), now)
    current, _ = revenue_between(clients, this_month, next_month, now)
    previous, _ = revenue_between(clients, last_month, this_month, now)
    return growth_rate(current, previous)


def client_growth(clients: Sequence[ClientRecord], days: int, now: datetime) -> float:
    """New clients in the current window vs the window immediately before it."""
    now = ensure_aware(now)
    cutoff = window_cutoff(days, now)
    previous_cutoff = cutoff - timedelta(days=days)
    current = previous = 0
    for client in clients:
        created = client.created_at
        if created is None or created >= cutoff:
            current += 1
        elif created >= previous_cutoff:
            previous += 1
    return growth_rate(current, previous)


# ---------------------------------------------------------------------------
# Groupings
# ---------------------------------------------------------------------------

def clients_by_stage(clients: Sequence[ClientRecord]) -> Tuple[StageBucket, ...]:
    """Partition clients by literal stage, in first-seen order."""
    groups: Dict[str, Dict[str, Any]] = {}
    for client in clients:
        bucket = groups.setdefault(client.stage, {"count": 0, "value": 0.0})
        bucket["count"] += 1
        bucket["value"] += client.deal_value
    return tuple(
        StageBucket(stage=stage, label=stage_label(stage), count=g["count"], value=g["value"])
        for stage, g in groups.items()
    )


def revenue_by_month(
    clients: Sequence[ClientRecord], now: datetime, months: int = 6
) -> Tuple[MonthBucket, ...]:
    """Fixed trailing series of ``months`` calendar months ending with ``now``'s."""
    now = ensure_aware(now)
    series = []
    for offset in range(months - 1, -1, -1):
        year, month = _shift_month(now.year, now.month, -offset)
        start = _month_start(year, month, now)
        end = _month_start(*_shift_month(year, month, 1), now)
        revenue, deals = revenue_between(clients, start, end, now)
        series.append(MonthBucket(
            key=f"{year:04d}-{month:02d}",
            month=_MONTH_ABBR[month - 1],
            revenue=revenue,
            deals=deals,
        ))
    return tuple(series)


def top_clients(clients: Sequence[ClientRecord], limit: int = 5) -> Tuple[TopClient, ...]:
    """Companies by summed deal value. Equal values keep first-seen order."""
    totals: Dict[str, Dict[str, Any]] = {}
    for client in clients:
        name = client.company_name or UNKNOWN_COMPANY
        entry = totals.setdefault(name, {"value": 0.0, "deals": 0})
        entry["value"] += client.deal_value
        entry["deals"] += 1
    ranked = sorted(totals.items(), key=lambda item: item[1]["value"], reverse=True)
    return tuple(
        TopClient(name=name, value=data["value"], deals=data["deals"])
        for name, data in ranked[:max(limit, 0)]
    )


# ---------------------------------------------------------------------------
# Activity, performance, forecasting, team
# ---------------------------------------------------------------------------

def activity_metrics(
    tasks: Sequence[TaskRecord],
    events: Sequence[EventRecord],
    now: datetime,
    horizon_days: int = 7,
) -> ActivityMetrics:
    now = ensure_aware(now)
    horizon = now + timedelta(days=horizon_days)
    completed = sum(1 for t in tasks if t.is_completed)
    overdue = sum(
        1 for t in tasks
        if not t.is_completed and t.due_date is not None and t.due_date < now
    )
    upcoming = sum(
        1 for e in events
        if e.occurs_at is not None and now <= e.occurs_at <= horizon
    )
    return ActivityMetrics(
        total_tasks=len(tasks),
        completed_tasks=completed,
        overdue_tasks=overdue,
        upcoming_events=upcoming,
    )


def avg_deal_cycle_time(clients: Sequence[ClientRecord]) -> float:
    """Mean days from creation to close over won deals with both timestamps."""
    cycles = [
        _days_between(c.created_at, c.updated_at)
        for c in won_deals(clients)
        if c.created_at is not None and c.updated_at is not None
    ]
    return _safe_div(sum(cycles), len(cycles))


def sales_velocity(avg_value: float, conversion: float, cycle_days: float) -> float:
    """Expected won value per 30 days; cycle time is floored at one day."""
    return avg_value * (conversion / 100.0) * (30.0 / max(cycle_days, 1.0))


def forecasting(clients: Sequence[ClientRecord]) -> Forecasting:
    conversion = conversion_rate(clients)
    active = [c for c in clients if c.is_active]
    pipeline_value = sum(c.deal_value for c in active)
    return Forecasting(
        pipeline_value=pipeline_value,
        projected_revenue=pipeline_value * (conversion / 100.0),
        expected_closing_deals=_round_half_up(len(active) * (conversion / 100.0)),
    )


def team_performance(clients: Sequence[ClientRecord], tasks: Sequence[TaskRecord]) -> TeamPerformance:
    """Won deals per owner plus task completion for the whole team."""
    owners: Dict[str, Dict[str, Any]] = {}
    won = won_deals(clients)
    for client in won:
        entry = owners.setdefault(client.assigned_to or UNASSIGNED_OWNER, {"deals": 0, "revenue": 0.0})
        entry["deals"] += 1
        entry["revenue"] += client.deal_value

    top_performer = NO_PERFORMER
    best_revenue: Optional[float] = None
    for owner, data in owners.items():
        if best_revenue is None or data["revenue"] > best_revenue:
            top_performer, best_revenue = owner, data["revenue"]

    completed = sum(1 for t in tasks if t.is_completed)
    return TeamPerformance(
        top_performer=top_performer,
        avg_deals_per_user=len(won) / max(len(owners), 1),
        team_productivity=_pct(completed, len(tasks)),
        owners=tuple(
            OwnerPerformance(owner=owner, deals=data["deals"], revenue=data["revenue"])
            for owner, data in owners.items()
        ),
    )


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------

def aggregate_sales(
    clients: Sequence[ClientRecord],
    tasks: Sequence[TaskRecord],
    events: Sequence[EventRecord],
    now: datetime,
    window_days: int,
    config: Optional[Dict[str, Any]] = None,
    all_clients: Optional[Sequence[ClientRecord]] = None,
) -> SalesMetrics:
    """Compute every sales metric from window-filtered records.

    ``all_clients`` (the unfiltered client list) is only used for client
    growth, which compares the current window against the previous one.
    """
    config = config or DEFAULT_CONFIG
    now = ensure_aware(now)

    revenue = total_revenue(clients)
    conversion = conversion_rate(clients)
    avg_value = avg_deal_value(clients)
    cycle = avg_deal_cycle_time(clients)

    return SalesMetrics(
        total_revenue=revenue,
        total_clients=len(clients),
        active_deals=active_deals(clients),
        conversion_rate=conversion,
        avg_deal_value=avg_value,
        monthly_growth=monthly_growth(clients, now),
        client_growth=client_growth(all_clients if all_clients is not None else clients, window_days, now),
        clients_by_stage=clients_by_stage(clients),
        revenue_by_month=revenue_by_month(clients, now, config.get("revenue_series_months", 6)),
        top_clients=top_clients(clients, config.get("top_clients_limit", 5)),
        activity_metrics=activity_metrics(tasks, events, now, config.get("upcoming_events_days", 7)),
        performance_metrics=PerformanceMetrics(
            avg_deal_cycle_time=cycle,
            sales_velocity=sales_velocity(avg_value, conversion, cycle),
        ),
        forecasting=forecasting(clients),
        team_performance=team_performance(clients, tasks),
    )


def stage_counts(clients: Iterable[ClientRecord]) -> Dict[str, int]:
    """Plain ``{stage: count}`` mapping, handy for logging."""
    return dict(Counter(c.stage for c in clients))
