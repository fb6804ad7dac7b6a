"""
Record normalizer: the single boundary between loosely shaped API payloads
and the typed records the rest of the pipeline works on.

Accepted shapes: a bare list, a ``{"data": [...]}`` envelope, ``None``, or
anything else (treated as empty). Items that are not mappings, or that
cannot be coerced even after defaults are applied, are dropped.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, List, Type, TypeVar

from pydantic import ValidationError

from models.crm_models import (
    BudgetRecord,
    ClientRecord,
    CRMRecord,
    EventRecord,
    ExpenseRecord,
    PaymentRecord,
    TaskRecord,
)
from scripts.lib.logger import setup_logger

logger = setup_logger(__name__)

R = TypeVar("R", bound=CRMRecord)


def unwrap(raw: Any) -> list:
    """Return the list of items inside ``raw``, or an empty list."""
    if isinstance(raw, Mapping):
        raw = raw.get("data")
    if isinstance(raw, (list, tuple)):
        return list(raw)
    return []


def normalize(raw: Any, model: Type[R]) -> List[R]:
    """Coerce ``raw`` into a list of ``model`` records. Never raises on bad data."""
    records: List[R] = []
    skipped = 0
    for index, item in enumerate(unwrap(raw)):
        if isinstance(item, model):
            records.append(item)
            continue
        if not isinstance(item, Mapping):
            skipped += 1
            continue
        try:
            records.append(model.model_validate(dict(item)))
        except ValidationError as e:
            skipped += 1
            logger.debug("Skipping %s item %d: %s", model.__name__, index, e.errors()[:1])

    if skipped:
        logger.debug("Normalized %d %s records (%d skipped)", len(records), model.__name__, skipped)
    return records


def normalize_clients(raw: Any) -> List[ClientRecord]:
    return normalize(raw, ClientRecord)


def normalize_tasks(raw: Any) -> List[TaskRecord]:
    return normalize(raw, TaskRecord)


def normalize_events(raw: Any) -> List[EventRecord]:
    return normalize(raw, EventRecord)


def normalize_expenses(raw: Any) -> List[ExpenseRecord]:
    return normalize(raw, ExpenseRecord)


def normalize_payments(raw: Any) -> List[PaymentRecord]:
    return normalize(raw, PaymentRecord)


def normalize_budgets(raw: Any) -> List[BudgetRecord]:
    return normalize(raw, BudgetRecord)
