"""End-to-end tests for the analytics pipeline."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from scripts.analytics.insights import ACTION_IMPROVE_QUALIFICATION, ACTION_TEAM_TRAINING
from scripts.analytics.pipeline import run_pipeline
from scripts.lib.errors import InvalidWindowError

NOW = datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)


def _days_ago(days: float) -> str:
    return (NOW - timedelta(days=days)).isoformat()


DIRTY_CLIENTS = {
    "success": True,
    "data": [
        {"id": "c1", "company_name": "Acme", "stage": "closed", "deal_value": "1200",
         "assigned_to": "A", "created_at": _days_ago(20), "updated_at": _days_ago(2)},
        {"id": "c2", "company_name": "Bolt", "stage": "proposal", "deal_value": None},
        {"id": "c3", "company_name": None, "stage": None, "deal_value": "n/a"},
        {"id": "c4", "company_name": "Old", "stage": "closed", "deal_value": 9000,
         "created_at": _days_ago(200)},
        "garbage",
        {"id": "c5", "stage": "lost", "deal_value": float("nan")},
    ],
}


class TestScenarios:
    def test_empty_inputs(self):
        report = run_pipeline([], [], [], window_days=30, now=NOW)
        m = report.metrics
        assert m.total_revenue == 0
        assert m.total_clients == 0
        assert m.conversion_rate == 0
        assert m.avg_deal_value == 0
        assert m.clients_by_stage == ()
        assert m.top_clients == ()
        assert len(m.revenue_by_month) == 6
        assert all(b.revenue == 0 for b in m.revenue_by_month)
        assert m.team_performance.top_performer == "No data"
        assert report.trends.revenue_growth_trend == "stable"
        assert report.trends.conversion_trend == "down"
        assert report.insights.best_performing_stage == "N/A"
        assert report.insights.peak_revenue_month == "May"
        assert list(report.insights.recommended_actions) == [
            ACTION_IMPROVE_QUALIFICATION, ACTION_TEAM_TRAINING,
        ]

    def test_none_inputs_are_treated_as_empty(self):
        report = run_pipeline(None, None, None, None, None, None, window_days=7, now=NOW)
        assert report.metrics.total_clients == 0
        assert report.financial.total_revenue == 0

    def test_basic_deals(self):
        clients = [
            {"stage": "closed", "deal_value": 1000},
            {"stage": "closed", "deal_value": 2000},
            {"stage": "prospect", "deal_value": 500},
        ]
        m = run_pipeline(clients, [], [], window_days=30, now=NOW).metrics
        assert m.total_revenue == 3000
        assert round(m.conversion_rate, 2) == 66.67
        assert m.avg_deal_value == 1500
        assert m.active_deals == 1

    def test_team_ranking(self):
        clients = [
            {"stage": "closed", "deal_value": 100, "assigned_to": "A"},
            {"stage": "closed", "deal_value": 500, "assigned_to": "B"},
        ]
        team = run_pipeline(clients, [], [], window_days=30, now=NOW).metrics.team_performance
        assert team.top_performer == "B"
        assert team.avg_deals_per_user == 1.0

    def test_growth_from_empty_prior_month(self):
        clients = [{"stage": "closed", "deal_value": 200, "updated_at": "2026-10-03T00:00:00Z"}]
        report = run_pipeline(clients, [], [], window_days=30, now=NOW)
        assert report.metrics.monthly_growth == 100
        assert report.trends.revenue_growth_trend == "up"


class TestWindowing:
    def test_old_records_are_excluded(self):
        report = run_pipeline(DIRTY_CLIENTS, [], [], window_days=30, now=NOW)
        assert report.metrics.total_clients == 4
        assert report.metrics.total_revenue == 1200
        assert report.record_counts["clients"] == 4

    def test_wider_window_includes_them(self):
        report = run_pipeline(DIRTY_CLIENTS, [], [], window_days=365, now=NOW)
        assert report.metrics.total_clients == 5
        assert report.metrics.total_revenue == 10200

    def test_unlisted_window_is_rejected(self):
        with pytest.raises(InvalidWindowError):
            run_pipeline([], [], [], window_days=14, now=NOW)

    def test_payments_use_payment_date(self):
        payments = [
            {"amount": 100, "status": "completed", "payment_date": _days_ago(3), "created_at": _days_ago(90)},
            {"amount": 700, "status": "completed", "payment_date": _days_ago(60)},
        ]
        report = run_pipeline([], [], [], [], payments, [], window_days=30, now=NOW)
        assert report.financial.total_revenue == 100


class TestInvariants:
    def test_idempotent(self):
        first = run_pipeline(DIRTY_CLIENTS, [], [], window_days=90, now=NOW)
        second = run_pipeline(DIRTY_CLIENTS, [], [], window_days=90, now=NOW)
        assert first == second
        assert first.model_dump() == second.model_dump()
        assert first.generated_at == NOW

    def test_stage_partition_and_bounds(self):
        tasks = [{"completed": True}, {"completed": "false", "due_date": _days_ago(1)}, "junk"]
        report = run_pipeline(DIRTY_CLIENTS, tasks, [], window_days=365, now=NOW)
        m = report.metrics
        assert sum(b.count for b in m.clients_by_stage) == m.total_clients
        for pct in (m.conversion_rate, m.team_performance.team_productivity,
                    report.financial.budgets.utilization_rate):
            assert 0 <= pct <= 100
        numbers = [
            m.total_revenue, m.avg_deal_value, m.monthly_growth, m.client_growth,
            m.performance_metrics.sales_velocity, m.forecasting.projected_revenue,
        ]
        assert all(math.isfinite(n) for n in numbers)
        assert m.total_revenue == sum(b.value for b in m.clients_by_stage if b.stage == "closed")

    def test_stage_labels_for_malformed_stage(self):
        report = run_pipeline(DIRTY_CLIENTS, [], [], window_days=30, now=NOW)
        labels = [b.label for b in report.metrics.clients_by_stage]
        assert "Unknown" in labels
        assert labels[0] == "Closed"


class TestActivityWindow:
    def test_upcoming_events_follow_creation_window(self):
        events = [{"created_at": _days_ago(40), "start_time": _days_ago(-1)}]
        tasks = [{"created_at": _days_ago(40), "completed": False, "due_date": _days_ago(2)}]
        narrow = run_pipeline([], tasks, events, window_days=30, now=NOW).metrics.activity_metrics
        wide = run_pipeline([], tasks, events, window_days=90, now=NOW).metrics.activity_metrics
        assert (narrow.upcoming_events, narrow.overdue_tasks) == (0, 0)
        assert (wide.upcoming_events, wide.overdue_tasks) == (1, 1)
