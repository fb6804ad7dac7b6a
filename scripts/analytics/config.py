"""
Analytics configuration: thresholds, limits and window options.

Defaults live in DEFAULT_CONFIG. A YAML file (path passed explicitly or via
$ANALYTICS_CONFIG) can override any subset of keys; nested mappings are
merged, everything else is replaced.

Example override file:

    top_clients_limit: 10
    trend_thresholds:
      conversion: {up: 20, down: 8}
"""
from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from scripts.lib.errors import ConfigError
from scripts.lib.logger import setup_logger

logger = setup_logger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(PROJECT_ROOT / ".env")

DEFAULT_CONFIG: Dict[str, Any] = {
    "window_options": [7, 30, 90, 365],
    "default_window_days": 30,
    "top_clients_limit": 5,
    "revenue_series_months": 6,
    "upcoming_events_days": 7,
    "trend_thresholds": {
        "revenue_growth": {"up": 5.0, "down": -5.0},
        "client_growth": {"up": 5.0, "down": -5.0},
        "conversion": {"up": 15.0, "down": 5.0},
        "activity": {"up": 70.0, "down": 40.0},
    },
    "recommendation_thresholds": {
        "min_conversion_rate": 10.0,
        "max_deal_cycle_days": 60.0,
        "max_overdue_tasks": 5,
        "min_monthly_growth": 0.0,
        "min_team_productivity": 50.0,
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(path: Optional[str | Path] = None) -> Dict[str, Any]:
    """
    Build the effective configuration.

    Args:
        path: YAML override file. Falls back to $ANALYTICS_CONFIG; when
            neither is set the defaults are returned.

    Returns:
        A fresh dict safe for the caller to mutate.

    Raises:
        ConfigError: the file is missing, unreadable, or not a YAML mapping.
    """
    path = path or os.getenv("ANALYTICS_CONFIG")
    if not path:
        return copy.deepcopy(DEFAULT_CONFIG)

    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Analytics config not found: {config_path}", str(config_path))

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read analytics config: {e}", str(config_path)) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Analytics config must be a YAML mapping", str(config_path))

    logger.info("Loaded analytics config overrides from %s", config_path.name)
    return _deep_merge(DEFAULT_CONFIG, data)


def window_options(config: Optional[Dict[str, Any]] = None) -> tuple:
    """Allowed trailing-window sizes, in days."""
    config = config or DEFAULT_CONFIG
    return tuple(int(d) for d in config.get("window_options", DEFAULT_CONFIG["window_options"]))
