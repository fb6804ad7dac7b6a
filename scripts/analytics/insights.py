"""
Trend & Insight Classifier
==========================
Deterministic thresholding over already-computed sales metrics.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from models.analytics_models import Insights, MonthBucket, SalesMetrics, StageBucket, Trend, Trends
from scripts.analytics.config import DEFAULT_CONFIG

NOT_AVAILABLE = "N/A"

ACTION_IMPROVE_QUALIFICATION = "Focus on improving lead qualification and follow-up processes"
ACTION_STREAMLINE_PROCESS = "Streamline sales process to reduce deal cycle time"
ACTION_PRIORITIZE_TASKS = "Prioritize task management and deadline adherence"
ACTION_REVIEW_STRATEGY = "Analyze market trends and adjust sales strategy"
ACTION_TEAM_TRAINING = "Provide additional training and support to team members"
ACTION_MAINTAIN_COURSE = "Continue current successful strategies and monitor performance"


def classify(value: float, up: float, down: float) -> Trend:
    """``up`` strictly above ``up``, ``down`` strictly below ``down``."""
    if value > up:
        return "up"
    if value < down:
        return "down"
    return "stable"


def _thresholds(config: Dict[str, Any], name: str) -> Dict[str, float]:
    return config.get("trend_thresholds", {}).get(name) or DEFAULT_CONFIG["trend_thresholds"][name]


def classify_trends(metrics: SalesMetrics, config: Optional[Dict[str, Any]] = None) -> Trends:
    config = config or DEFAULT_CONFIG
    revenue = _thresholds(config, "revenue_growth")
    clients = _thresholds(config, "client_growth")
    conversion = _thresholds(config, "conversion")
    activity = _thresholds(config, "activity")
    return Trends(
        revenue_growth_trend=classify(metrics.monthly_growth, revenue["up"], revenue["down"]),
        client_growth_trend=classify(metrics.client_growth, clients["up"], clients["down"]),
        conversion_trend=classify(metrics.conversion_rate, conversion["up"], conversion["down"]),
        activity_trend=classify(
            metrics.team_performance.team_productivity, activity["up"], activity["down"]
        ),
    )


def best_stage(buckets: Sequence[StageBucket]) -> str:
    if not buckets:
        return NOT_AVAILABLE
    best = buckets[0]
    for bucket in buckets[1:]:
        if bucket.value > best.value:
            best = bucket
    return best.label


def worst_stage(buckets: Sequence[StageBucket]) -> str:
    if not buckets:
        return NOT_AVAILABLE
    worst = buckets[0]
    for bucket in buckets[1:]:
        if bucket.value < worst.value:
            worst = bucket
    return worst.label


def peak_month(series: Sequence[MonthBucket]) -> str:
    if not series:
        return NOT_AVAILABLE
    peak = series[0]
    for bucket in series[1:]:
        if bucket.revenue > peak.revenue:
            peak = bucket
    return peak.month


def recommended_actions(metrics: SalesMetrics, config: Optional[Dict[str, Any]] = None) -> List[str]:
    """Every matching rule, in fixed order; a single default when none match."""
    config = config or DEFAULT_CONFIG
    limits = {**DEFAULT_CONFIG["recommendation_thresholds"], **config.get("recommendation_thresholds", {})}

    rules = (
        (metrics.conversion_rate < limits["min_conversion_rate"], ACTION_IMPROVE_QUALIFICATION),
        (metrics.performance_metrics.avg_deal_cycle_time > limits["max_deal_cycle_days"],
         ACTION_STREAMLINE_PROCESS),
        (metrics.activity_metrics.overdue_tasks > limits["max_overdue_tasks"], ACTION_PRIORITIZE_TASKS),
        (metrics.monthly_growth < limits["min_monthly_growth"], ACTION_REVIEW_STRATEGY),
        (metrics.team_performance.team_productivity < limits["min_team_productivity"],
         ACTION_TEAM_TRAINING),
    )
    actions = [action for fired, action in rules if fired]
    return actions or [ACTION_MAINTAIN_COURSE]


def derive_insights(metrics: SalesMetrics, config: Optional[Dict[str, Any]] = None) -> Insights:
    return Insights(
        best_performing_stage=best_stage(metrics.clients_by_stage),
        worst_performing_stage=worst_stage(metrics.clients_by_stage),
        peak_revenue_month=peak_month(metrics.revenue_by_month),
        recommended_actions=tuple(recommended_actions(metrics, config)),
    )
