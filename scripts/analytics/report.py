"""
Report Assembler
================
Builds the immutable AnalyticsReport and projects it into the two export
shapes: a formatted JSON summary for the UI download and a tabular
``Section, Metric, Value`` layout for CSV. Both projections read the same
report, so a dashboard and its export can never disagree.
"""
from __future__ import annotations

import csv
import io
import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from models.analytics_models import AnalyticsReport, FinancialSummary, Insights, SalesMetrics, Trends
from scripts.lib.errors import UnsupportedFormatError

EXPORT_FORMATS = ("json", "csv")
CSV_COLUMNS = ("Section", "Metric", "Value")


def assemble_report(
    metrics: SalesMetrics,
    trends: Trends,
    insights: Insights,
    financial: FinancialSummary,
    *,
    window_days: int,
    generated_at: datetime,
    record_counts: Optional[Dict[str, int]] = None,
) -> AnalyticsReport:
    return AnalyticsReport(
        generated_at=generated_at,
        window_days=window_days,
        metrics=metrics,
        trends=trends,
        insights=insights,
        financial=financial,
        record_counts=dict(record_counts or {}),
    )


# ─── Formatting ─────────────────────────────────────────────

def format_currency(amount: float) -> str:
    """``1234.5`` -> ``$1,234.50``; negatives keep the sign in front."""
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def format_percent(value: float) -> str:
    return f"{value:.2f}%"


def _r(value: float) -> float:
    return round(value, 2)


# ─── JSON summary ───────────────────────────────────────────

def to_export_summary(report: AnalyticsReport) -> Dict[str, Any]:
    """Currency/percent formatted summary for the UI's JSON download."""
    m = report.metrics
    f = report.financial
    return {
        "generated_at": report.generated_at.isoformat(),
        "date_range": f"Last {report.window_days} days",
        "metrics": {
            "total_revenue": format_currency(m.total_revenue),
            "total_clients": m.total_clients,
            "active_deals": m.active_deals,
            "conversion_rate": format_percent(m.conversion_rate),
            "avg_deal_value": format_currency(m.avg_deal_value),
            "monthly_growth": format_percent(m.monthly_growth),
            "client_growth": format_percent(m.client_growth),
        },
        "clients_by_stage": [
            {"stage": b.label, "count": b.count, "value": format_currency(b.value)}
            for b in m.clients_by_stage
        ],
        "revenue_by_month": [
            {"month": b.month, "key": b.key, "revenue": format_currency(b.revenue), "deals": b.deals}
            for b in m.revenue_by_month
        ],
        "top_clients": [
            {"name": c.name, "value": format_currency(c.value), "deals": c.deals}
            for c in m.top_clients
        ],
        "activity_metrics": m.activity_metrics.model_dump(),
        "performance_metrics": {
            "avg_deal_cycle_time_days": _r(m.performance_metrics.avg_deal_cycle_time),
            "sales_velocity": format_currency(m.performance_metrics.sales_velocity),
        },
        "forecasting": {
            "pipeline_value": format_currency(m.forecasting.pipeline_value),
            "projected_revenue": format_currency(m.forecasting.projected_revenue),
            "expected_closing_deals": m.forecasting.expected_closing_deals,
        },
        "team_performance": {
            "top_performer": m.team_performance.top_performer,
            "avg_deals_per_user": _r(m.team_performance.avg_deals_per_user),
            "team_productivity": format_percent(m.team_performance.team_productivity),
        },
        "trends": report.trends.model_dump(),
        "insights": {
            **report.insights.model_dump(exclude={"recommended_actions"}),
            "recommended_actions": list(report.insights.recommended_actions),
        },
        "financial": {
            "total_revenue": format_currency(f.total_revenue),
            "pending_payments": format_currency(f.pending_payments),
            "total_expenses": format_currency(f.total_expenses),
            "net_profit": format_currency(f.net_profit),
            "profit_margin": format_percent(f.profit_margin),
            "budget_utilization": format_percent(f.budgets.utilization_rate),
            "overbudget_count": f.budgets.overbudget_count,
            "expenses_by_category": [
                {"category": c.category, "amount": format_currency(c.amount), "count": c.count}
                for c in f.expenses_by_category
            ],
        },
    }


# ─── CSV ────────────────────────────────────────────────────

def to_csv_rows(report: AnalyticsReport) -> List[Dict[str, Any]]:
    """Flatten the report into ``Section, Metric, Value`` rows."""
    m = report.metrics
    f = report.financial
    rows: List[Dict[str, Any]] = []

    def add(section: str, metric: str, value: Any) -> None:
        rows.append({"Section": section, "Metric": metric, "Value": value})

    add("Summary", "Window (days)", report.window_days)
    add("Summary", "Total Revenue", _r(m.total_revenue))
    add("Summary", "Total Clients", m.total_clients)
    add("Summary", "Active Deals", m.active_deals)
    add("Summary", "Conversion Rate (%)", _r(m.conversion_rate))
    add("Summary", "Avg Deal Value", _r(m.avg_deal_value))
    add("Summary", "Monthly Growth (%)", _r(m.monthly_growth))
    add("Summary", "Client Growth (%)", _r(m.client_growth))

    for bucket in m.clients_by_stage:
        add("Clients By Stage", f"{bucket.label} (count)", bucket.count)
        add("Clients By Stage", f"{bucket.label} (value)", _r(bucket.value))
    for bucket in m.revenue_by_month:
        add("Revenue By Month", f"{bucket.key} revenue", _r(bucket.revenue))
        add("Revenue By Month", f"{bucket.key} deals", bucket.deals)
    for client in m.top_clients:
        add("Top Clients", client.name, _r(client.value))

    a = m.activity_metrics
    add("Activity", "Total Tasks", a.total_tasks)
    add("Activity", "Completed Tasks", a.completed_tasks)
    add("Activity", "Overdue Tasks", a.overdue_tasks)
    add("Activity", "Upcoming Events", a.upcoming_events)

    add("Performance", "Avg Deal Cycle Time (days)", _r(m.performance_metrics.avg_deal_cycle_time))
    add("Performance", "Sales Velocity", _r(m.performance_metrics.sales_velocity))
    add("Forecasting", "Pipeline Value", _r(m.forecasting.pipeline_value))
    add("Forecasting", "Projected Revenue", _r(m.forecasting.projected_revenue))
    add("Forecasting", "Expected Closing Deals", m.forecasting.expected_closing_deals)
    add("Team", "Top Performer", m.team_performance.top_performer)
    add("Team", "Avg Deals Per User", _r(m.team_performance.avg_deals_per_user))
    add("Team", "Team Productivity (%)", _r(m.team_performance.team_productivity))

    for name, trend in report.trends.model_dump().items():
        add("Trends", name, trend)
    add("Insights", "Best Performing Stage", report.insights.best_performing_stage)
    add("Insights", "Worst Performing Stage", report.insights.worst_performing_stage)
    add("Insights", "Peak Revenue Month", report.insights.peak_revenue_month)
    for action in report.insights.recommended_actions:
        add("Insights", "Recommended Action", action)

    add("Financial", "Total Revenue", _r(f.total_revenue))
    add("Financial", "Pending Payments", _r(f.pending_payments))
    add("Financial", "Total Expenses", _r(f.total_expenses))
    add("Financial", "Net Profit", _r(f.net_profit))
    add("Financial", "Profit Margin (%)", _r(f.profit_margin))
    add("Financial", "Budget Utilization (%)", _r(f.budgets.utilization_rate))
    for category in f.expenses_by_category:
        add("Expenses By Category", category.category, _r(category.amount))
    return rows


def render_csv(report: AnalyticsReport) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, lineterminator="\n")
    writer.writeheader()
    writer.writerows(to_csv_rows(report))
    return buffer.getvalue()


def render_export(report: AnalyticsReport, fmt: str = "json") -> str:
    """Serialize the report in one of EXPORT_FORMATS."""
    fmt = (fmt or "").lower()
    if fmt == "json":
        return json.dumps(to_export_summary(report), indent=2, ensure_ascii=False)
    if fmt == "csv":
        return render_csv(report)
    raise UnsupportedFormatError(fmt, EXPORT_FORMATS)
