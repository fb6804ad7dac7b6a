"""
CRM Analytics Hub — Report Models
===================================

Immutable result structures produced by the analytics pipeline and served
by the API. Values carry full precision; formatting belongs to the export
projections in ``scripts.analytics.report``.
"""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Trend = Literal["up", "down", "stable"]


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# ─── Sales ──────────────────────────────────────────────────

class StageBucket(FrozenModel):
    """Clients grouped by their literal stage value."""
    stage: str
    label: str
    count: int = 0
    value: float = 0.0


class MonthBucket(FrozenModel):
    """Won revenue for one calendar month."""
    key: str = Field(description="YYYY-MM")
    month: str = Field(description="Short month name, e.g. 'Oct'")
    revenue: float = 0.0
    deals: int = 0


class TopClient(FrozenModel):
    name: str
    value: float = 0.0
    deals: int = 0


class ActivityMetrics(FrozenModel):
    total_tasks: int = 0
    completed_tasks: int = 0
    overdue_tasks: int = 0
    upcoming_events: int = 0


class PerformanceMetrics(FrozenModel):
    avg_deal_cycle_time: float = 0.0
    sales_velocity: float = 0.0


class Forecasting(FrozenModel):
    pipeline_value: float = 0.0
    projected_revenue: float = 0.0
    expected_closing_deals: int = 0


class OwnerPerformance(FrozenModel):
    owner: str
    deals: int = 0
    revenue: float = 0.0


class TeamPerformance(FrozenModel):
    top_performer: str = "No data"
    avg_deals_per_user: float = 0.0
    team_productivity: float = 0.0
    owners: tuple[OwnerPerformance, ...] = ()


class SalesMetrics(FrozenModel):
    """Output of the metric aggregator."""
    total_revenue: float = 0.0
    total_clients: int = 0
    active_deals: int = 0
    conversion_rate: float = 0.0
    avg_deal_value: float = 0.0
    monthly_growth: float = 0.0
    client_growth: float = 0.0
    clients_by_stage: tuple[StageBucket, ...] = ()
    revenue_by_month: tuple[MonthBucket, ...] = ()
    top_clients: tuple[TopClient, ...] = ()
    activity_metrics: ActivityMetrics = ActivityMetrics()
    performance_metrics: PerformanceMetrics = PerformanceMetrics()
    forecasting: Forecasting = Forecasting()
    team_performance: TeamPerformance = TeamPerformance()


# ─── Classification ─────────────────────────────────────────

class Trends(FrozenModel):
    revenue_growth_trend: Trend = "stable"
    client_growth_trend: Trend = "stable"
    conversion_trend: Trend = "stable"
    activity_trend: Trend = "stable"


class Insights(FrozenModel):
    best_performing_stage: str = "N/A"
    worst_performing_stage: str = "N/A"
    peak_revenue_month: str = "N/A"
    recommended_actions: tuple[str, ...] = ()


# ─── Financial ──────────────────────────────────────────────

class CategoryTotal(FrozenModel):
    category: str
    amount: float = 0.0
    count: int = 0


class ClientProfitability(FrozenModel):
    client_id: str
    client_name: str
    revenue: float = 0.0
    expenses: float = 0.0
    profit: float = 0.0
    profit_margin: float = 0.0


class BudgetSummary(FrozenModel):
    total_budgets: int = 0
    total_allocated: float = 0.0
    total_spent: float = 0.0
    total_remaining: float = 0.0
    utilization_rate: float = 0.0
    overbudget_count: int = 0


class FinancialSummary(FrozenModel):
    total_revenue: float = 0.0
    pending_payments: float = 0.0
    total_expenses: float = 0.0
    net_profit: float = 0.0
    profit_margin: float = 0.0
    budgets: BudgetSummary = BudgetSummary()
    expenses_by_category: tuple[CategoryTotal, ...] = ()
    payments_by_status: dict[str, int] = Field(default_factory=dict)
    client_profitability: tuple[ClientProfitability, ...] = ()


# ─── Report ─────────────────────────────────────────────────

class AnalyticsReport(FrozenModel):
    """Everything the dashboard and exports render, computed once."""
    generated_at: datetime
    window_days: int
    metrics: SalesMetrics
    trends: Trends
    insights: Insights
    financial: FinancialSummary
    record_counts: dict[str, int] = Field(default_factory=dict)
