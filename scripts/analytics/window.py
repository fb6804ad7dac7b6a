"""Trailing time-window filtering with an injected clock."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, TypeVar

from scripts.lib.errors import InvalidWindowError

T = TypeVar("T")


def ensure_aware(now: datetime) -> datetime:
    """Treat a naive ``now`` as UTC."""
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _check_positive(days) -> None:
    if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
        raise InvalidWindowError(days)


def validate_window_days(days, allowed: Iterable[int]) -> int:
    """Fail fast unless ``days`` is one of the enumerated window options."""
    allowed = tuple(allowed)
    _check_positive(days)
    if days not in allowed:
        raise InvalidWindowError(days, allowed)
    return days


def window_cutoff(days: int, now: datetime) -> datetime:
    _check_positive(days)
    return ensure_aware(now) - timedelta(days=days)


def filter_by_window(
    records: Iterable[T],
    days: int,
    date_field: Callable[[T], Optional[datetime]],
    now: datetime,
) -> List[T]:
    """Keep records whose date is on or after ``now - days``.

    A record without a date counts as happening now and is always kept.
    """
    cutoff = window_cutoff(days, now)
    kept: List[T] = []
    for record in records:
        when = date_field(record)
        if when is None or ensure_aware(when) >= cutoff:
            kept.append(record)
    return kept


def created_at(record) -> Optional[datetime]:
    return record.created_at
