"""Tests for the metric aggregator."""

from datetime import datetime, timedelta, timezone

import pytest

from scripts.analytics import aggregator
from scripts.analytics.normalizer import normalize_clients, normalize_events, normalize_tasks

NOW = datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)


def _days_ago(days: float) -> str:
    return (NOW - timedelta(days=days)).isoformat()


class TestHeadlineMetrics:
    def test_basic_deal_counts(self):
        clients = normalize_clients([
            {"stage": "closed", "deal_value": 1000},
            {"stage": "closed", "deal_value": 2000},
            {"stage": "prospect", "deal_value": 500},
        ])
        assert aggregator.total_revenue(clients) == 3000
        assert aggregator.conversion_rate(clients) == pytest.approx(66.6667, abs=1e-3)
        assert aggregator.avg_deal_value(clients) == 1500
        assert aggregator.active_deals(clients) == 1

    def test_empty_collections_give_zero(self):
        assert aggregator.total_revenue([]) == 0
        assert aggregator.conversion_rate([]) == 0
        assert aggregator.avg_deal_value([]) == 0
        assert aggregator.active_deals([]) == 0

    def test_lost_deals_are_not_active(self):
        clients = normalize_clients([{"stage": "lost"}, {"stage": "closed"}, {"stage": "proposal"}])
        assert aggregator.active_deals(clients) == 1


class TestGrowth:
    def test_growth_from_zero(self):
        assert aggregator.growth_rate(200, 0) == 100
        assert aggregator.growth_rate(0, 0) == 0

    def test_growth_rate(self):
        assert aggregator.growth_rate(300, 200) == pytest.approx(50)
        assert aggregator.growth_rate(100, 200) == pytest.approx(-50)

    def test_monthly_growth_from_closed_dates(self):
        clients = normalize_clients([
            {"stage": "closed", "deal_value": 300, "updated_at": "2026-10-05T10:00:00Z"},
            {"stage": "closed", "deal_value": 200, "updated_at": "2026-09-10T10:00:00Z"},
            {"stage": "prospect", "deal_value": 9999, "updated_at": "2026-10-05T10:00:00Z"},
        ])
        assert aggregator.monthly_growth(clients, NOW) == pytest.approx(50)

    def test_monthly_growth_with_no_prior_month(self):
        clients = normalize_clients([
            {"stage": "closed", "deal_value": 200, "updated_at": "2026-10-02T00:00:00Z"},
        ])
        assert aggregator.monthly_growth(clients, NOW) == 100

    def test_client_growth_compares_adjacent_windows(self):
        clients = normalize_clients([
            {"created_at": _days_ago(5)},
            {"created_at": _days_ago(6)},
            {"created_at": _days_ago(40)},
            {"created_at": _days_ago(100)},
        ])
        assert aggregator.client_growth(clients, 30, NOW) == pytest.approx(100)


class TestStageBuckets:
    def test_partition_covers_every_client(self):
        clients = normalize_clients([
            {"stage": "prospect", "deal_value": 100},
            {"stage": "closed", "deal_value": 400},
            {"stage": None, "deal_value": 50},
            {"stage": 7},
            {"stage": "prospect", "deal_value": 200},
        ])
        buckets = aggregator.clients_by_stage(clients)
        assert [b.stage for b in buckets] == ["prospect", "closed", "unknown"]
        assert sum(b.count for b in buckets) == len(clients)
        assert buckets[0].value == 300
        assert buckets[2].count == 2
        assert buckets[2].label == "Unknown"

    @pytest.mark.parametrize("stage,label", [
        ("closed-won", "Closed Won"),
        ("prospect", "Prospect"),
        ("in_review", "In Review"),
        ("unknown", "Unknown"),
    ])
    def test_stage_label(self, stage, label):
        assert aggregator.stage_label(stage) == label


class TestRevenueByMonth:
    def test_six_months_in_order(self):
        series = aggregator.revenue_by_month([], NOW)
        assert [b.key for b in series] == ["2026-05", "2026-06", "2026-07", "2026-08", "2026-09", "2026-10"]
        assert [b.month for b in series] == ["May", "Jun", "Jul", "Aug", "Sep", "Oct"]
        assert all(b.revenue == 0 and b.deals == 0 for b in series)

    def test_series_crosses_year_boundary(self):
        series = aggregator.revenue_by_month([], datetime(2026, 2, 10, tzinfo=timezone.utc))
        assert [b.key for b in series] == ["2025-09", "2025-10", "2025-11", "2025-12", "2026-01", "2026-02"]

    def test_month_boundaries_are_half_open(self):
        clients = normalize_clients([
            {"stage": "closed", "deal_value": 500, "updated_at": "2026-08-31T23:00:00Z"},
            {"stage": "closed", "deal_value": 700, "updated_at": "2026-09-01T00:00:00Z"},
            {"stage": "closed", "deal_value": 1000, "updated_at": "2026-10-05T00:00:00Z"},
            {"stage": "closed", "deal_value": 50, "updated_at": "2025-01-05T00:00:00Z"},
        ])
        by_key = {b.key: b for b in aggregator.revenue_by_month(clients, NOW)}
        assert by_key["2026-08"].revenue == 500
        assert by_key["2026-09"].revenue == 700
        assert by_key["2026-10"].revenue == 1000
        assert by_key["2026-10"].deals == 1
        assert sum(b.revenue for b in by_key.values()) == 2200

    def test_undated_won_deal_counts_this_month(self):
        clients = normalize_clients([{"stage": "closed", "deal_value": 250}])
        series = aggregator.revenue_by_month(clients, NOW)
        assert series[-1].revenue == 250


class TestTopClients:
    def test_ties_keep_input_order(self):
        clients = normalize_clients([
            {"company_name": "Acme", "deal_value": 100},
            {"company_name": "Bolt", "deal_value": 100},
            {"company_name": "Crest", "deal_value": 300},
        ])
        assert [c.name for c in aggregator.top_clients(clients)] == ["Crest", "Acme", "Bolt"]

    def test_values_are_summed_per_company(self):
        clients = normalize_clients([
            {"company_name": "Acme", "deal_value": 100},
            {"company_name": "Acme", "deal_value": 250},
            {"deal_value": 10},
        ])
        top = aggregator.top_clients(clients)
        assert top[0].name == "Acme"
        assert top[0].value == 350
        assert top[0].deals == 2
        assert top[1].name == "Unknown"

    def test_limit(self):
        clients = normalize_clients([{"company_name": f"Co {i}", "deal_value": i} for i in range(8)])
        top = aggregator.top_clients(clients)
        assert len(top) == 5
        assert top[0].name == "Co 7"


class TestActivity:
    def test_overdue_and_upcoming(self):
        tasks = normalize_tasks([
            {"completed": False, "due_date": _days_ago(1)},
            {"completed": True, "due_date": _days_ago(3)},
            {"status": "completed", "due_date": _days_ago(3)},
            {"completed": False},
            {"completed": False, "due_date": _days_ago(-2)},
        ])
        events = normalize_events([
            {"start_time": _days_ago(-3)},
            {"start_time": _days_ago(-8)},
            {"start_time": _days_ago(1)},
            {"date": _days_ago(-1)},
            {"title": "no date"},
        ])
        activity = aggregator.activity_metrics(tasks, events, NOW)
        assert activity.total_tasks == 5
        assert activity.completed_tasks == 2
        assert activity.overdue_tasks == 1
        assert activity.upcoming_events == 2


class TestPerformance:
    def test_deal_cycle_time(self):
        clients = normalize_clients([
            {"stage": "closed", "created_at": "2026-09-01T00:00:00Z", "updated_at": "2026-09-11T00:00:00Z"},
            {"stage": "closed", "created_at": "2026-09-01T00:00:00Z", "updated_at": "2026-09-21T00:00:00Z"},
            {"stage": "closed", "created_at": "2026-09-01T00:00:00Z"},
            {"stage": "prospect", "created_at": "2026-01-01T00:00:00Z", "updated_at": "2026-09-01T00:00:00Z"},
        ])
        assert aggregator.avg_deal_cycle_time(clients) == pytest.approx(15)

    def test_no_cycle_data_is_zero(self):
        assert aggregator.avg_deal_cycle_time(normalize_clients([{"stage": "closed"}])) == 0

    def test_sales_velocity(self):
        assert aggregator.sales_velocity(1500, 50, 10) == pytest.approx(2250)
        assert aggregator.sales_velocity(1500, 50, 0) == pytest.approx(22500)
        assert aggregator.sales_velocity(0, 0, 0) == 0

    def test_forecasting(self):
        clients = normalize_clients([
            {"stage": "closed", "deal_value": 1000},
            {"stage": "prospect", "deal_value": 500},
            {"stage": "proposal", "deal_value": 300},
            {"stage": "lost", "deal_value": 200},
        ])
        forecast = aggregator.forecasting(clients)
        assert forecast.pipeline_value == 800
        assert forecast.projected_revenue == pytest.approx(200)
        assert forecast.expected_closing_deals == 1


class TestTeamPerformance:
    def test_top_performer_by_revenue(self):
        clients = normalize_clients([
            {"stage": "closed", "deal_value": 100, "assigned_to": "A"},
            {"stage": "closed", "deal_value": 500, "assigned_to": "B"},
            {"stage": "prospect", "deal_value": 9000, "assigned_to": "C"},
        ])
        team = aggregator.team_performance(clients, [])
        assert team.top_performer == "B"
        assert team.avg_deals_per_user == 1.0
        assert [o.owner for o in team.owners] == ["A", "B"]

    def test_missing_owner_and_no_data(self):
        unassigned = aggregator.team_performance(normalize_clients([{"stage": "closed", "deal_value": 1}]), [])
        assert unassigned.top_performer == "Unassigned"

        empty = aggregator.team_performance([], [])
        assert empty.top_performer == "No data"
        assert empty.avg_deals_per_user == 0
        assert empty.team_productivity == 0

    def test_team_productivity(self):
        tasks = normalize_tasks([{"completed": True}, {"completed": False}, {"status": "completed"}, {}])
        assert aggregator.team_performance([], tasks).team_productivity == 50


class TestAggregateSales:
    def test_single_overdue_task(self):
        tasks = normalize_tasks([{"completed": False, "due_date": _days_ago(1)}])
        metrics = aggregator.aggregate_sales([], tasks, [], NOW, 30)
        assert metrics.activity_metrics.overdue_tasks == 1
        assert metrics.activity_metrics.completed_tasks == 0
        assert metrics.team_performance.team_productivity == 0

    def test_config_limits_apply(self):
        clients = normalize_clients([{"company_name": f"Co {i}", "deal_value": i} for i in range(8)])
        config = {"top_clients_limit": 2, "revenue_series_months": 3, "upcoming_events_days": 7}
        metrics = aggregator.aggregate_sales(clients, [], [], NOW, 30, config=config)
        assert len(metrics.top_clients) == 2
        assert len(metrics.revenue_by_month) == 3

    def test_stage_counts(self):
        clients = normalize_clients([{"stage": "closed"}, {"stage": "closed"}, {}])
        assert aggregator.stage_counts(clients) == {"closed": 2, "unknown": 1}
