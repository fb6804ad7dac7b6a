"""
CRM Analytics Hub — Record Models
===================================

Canonical, read-only shapes for the CRM rows the analytics core consumes.
Rows arrive from Supabase (or a JSON snapshot) with missing fields, string
numbers and assorted timestamp formats; the validators below coerce all of
that so downstream reductions never see ``None`` amounts or ``NaN``.
"""
from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

CLIENT_STAGES = ("prospect", "connected", "replied", "meeting", "proposal", "closed", "lost")
WON_STAGE = "closed"
LOST_STAGE = "lost"
TERMINAL_STAGES = frozenset({WON_STAGE, LOST_STAGE})
UNKNOWN_STAGE = "unknown"


# ─── Coercion helpers ───────────────────────────────────────

def coerce_amount(value: Any) -> float:
    """Return a finite float, or 0.0 for anything unusable."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(amount) or math.isinf(amount):
        return 0.0
    return amount


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a timestamp into an aware UTC datetime, or None."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        if math.isnan(value) or math.isinf(value):
            return None
        # Epoch milliseconds are what a JS client would send
        seconds = value / 1000.0 if abs(value) > 1e11 else float(value)
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        cleaned = value.strip().replace("Z", "+00:00")
        try:
            dt = datetime.fromisoformat(cleaned)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _clean_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


# ─── Base ───────────────────────────────────────────────────

class CRMRecord(BaseModel):
    """Common behaviour for every snapshot row."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v):
        return _clean_str(v)

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created(cls, v):
        return parse_timestamp(v)


# ─── CRM ────────────────────────────────────────────────────

class ClientRecord(CRMRecord):
    """A client/deal row. ``updated_at`` doubles as the closed date."""

    company_name: Optional[str] = None
    stage: str = UNKNOWN_STAGE
    deal_value: float = 0.0
    assigned_to: Optional[str] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _owner_fallback(cls, data):
        if isinstance(data, dict) and not data.get("assigned_to") and data.get("owner"):
            data = {**data, "assigned_to": data["owner"]}
        return data

    @field_validator("company_name", "assigned_to", mode="before")
    @classmethod
    def _coerce_text(cls, v):
        return _clean_str(v)

    @field_validator("stage", mode="before")
    @classmethod
    def _coerce_stage(cls, v):
        if not isinstance(v, str) or not v.strip():
            return UNKNOWN_STAGE
        return v.strip()

    @field_validator("deal_value", mode="before")
    @classmethod
    def _coerce_value(cls, v):
        return coerce_amount(v)

    @field_validator("updated_at", mode="before")
    @classmethod
    def _coerce_updated(cls, v):
        return parse_timestamp(v)

    @property
    def is_won(self) -> bool:
        return self.stage == WON_STAGE

    @property
    def is_active(self) -> bool:
        return self.stage not in TERMINAL_STAGES

    def closed_date(self, now: datetime) -> datetime:
        """Best guess at when a won deal closed."""
        return self.updated_at or self.created_at or now


class TaskRecord(CRMRecord):
    title: Optional[str] = None
    completed: bool = False
    status: Optional[str] = None
    due_date: Optional[datetime] = None

    @field_validator("completed", mode="before")
    @classmethod
    def _coerce_completed(cls, v):
        if isinstance(v, str):
            return v.strip().lower() in ("true", "1", "yes")
        return bool(v)

    @field_validator("title", "status", mode="before")
    @classmethod
    def _coerce_text(cls, v):
        return _clean_str(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def _coerce_due(cls, v):
        return parse_timestamp(v)

    @property
    def is_completed(self) -> bool:
        return self.completed or (self.status or "").lower() == "completed"


class EventRecord(CRMRecord):
    title: Optional[str] = None
    start_time: Optional[datetime] = None
    date: Optional[datetime] = None

    @field_validator("title", mode="before")
    @classmethod
    def _coerce_text(cls, v):
        return _clean_str(v)

    @field_validator("start_time", "date", mode="before")
    @classmethod
    def _coerce_times(cls, v):
        return parse_timestamp(v)

    @property
    def occurs_at(self) -> Optional[datetime]:
        return self.start_time or self.date


# ─── Financial ──────────────────────────────────────────────

class ExpenseRecord(CRMRecord):
    client_id: Optional[str] = None
    vendor_id: Optional[str] = None
    amount: float = 0.0
    status: Optional[str] = None
    category: Optional[str] = None
    expense_date: Optional[datetime] = None

    @field_validator("client_id", "vendor_id", "status", "category", mode="before")
    @classmethod
    def _coerce_text(cls, v):
        return _clean_str(v)

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, v):
        return coerce_amount(v)

    @field_validator("expense_date", mode="before")
    @classmethod
    def _coerce_date(cls, v):
        return parse_timestamp(v)


class PaymentRecord(CRMRecord):
    client_id: Optional[str] = None
    amount: float = 0.0
    status: Optional[str] = None
    payment_method: Optional[str] = None
    payment_date: Optional[datetime] = None

    @field_validator("client_id", "status", "payment_method", mode="before")
    @classmethod
    def _coerce_text(cls, v):
        return _clean_str(v)

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, v):
        return coerce_amount(v)

    @field_validator("payment_date", mode="before")
    @classmethod
    def _coerce_date(cls, v):
        return parse_timestamp(v)


class BudgetRecord(CRMRecord):
    client_id: Optional[str] = None
    category: Optional[str] = None
    allocated_amount: float = 0.0
    spent_amount: float = 0.0
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _amount_fallback(cls, data):
        # Older rows stored the allocation as ``amount``
        if isinstance(data, dict) and data.get("allocated_amount") is None and "amount" in data:
            data = {**data, "allocated_amount": data["amount"]}
        return data

    @field_validator("client_id", "category", "status", mode="before")
    @classmethod
    def _coerce_text(cls, v):
        return _clean_str(v)

    @field_validator("allocated_amount", "spent_amount", mode="before")
    @classmethod
    def _coerce_amounts(cls, v):
        return coerce_amount(v)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _coerce_dates(cls, v):
        return parse_timestamp(v)

    @property
    def is_overbudget(self) -> bool:
        return (self.status or "").lower() == "overbudget" or self.spent_amount > self.allocated_amount
