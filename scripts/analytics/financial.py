"""
Financial Aggregator
====================
Revenue, expense, budget and per-client profitability totals from payment,
expense and budget records. Only completed payments count as revenue and
only approved expenses count as spend.
"""
from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Sequence

from models.analytics_models import BudgetSummary, CategoryTotal, ClientProfitability, FinancialSummary
from models.crm_models import BudgetRecord, ClientRecord, ExpenseRecord, PaymentRecord

PAYMENT_COMPLETED = "completed"
PAYMENT_PENDING = "pending"
EXPENSE_APPROVED = "approved"
UNCATEGORIZED = "uncategorized"
UNKNOWN_STATUS = "unknown"


def _status(value) -> str:
    return (value or "").lower()


def _safe_pct(part: float, whole: float) -> float:
    if whole == 0:
        return 0.0
    return part / whole * 100.0


def completed_payments(payments: Sequence[PaymentRecord]) -> list:
    return [p for p in payments if _status(p.status) == PAYMENT_COMPLETED]


def approved_expenses(expenses: Sequence[ExpenseRecord]) -> list:
    return [e for e in expenses if _status(e.status) == EXPENSE_APPROVED]


def summarize_budgets(budgets: Sequence[BudgetRecord]) -> BudgetSummary:
    allocated = sum(b.allocated_amount for b in budgets)
    spent = sum(b.spent_amount for b in budgets)
    utilization = min(max(_safe_pct(spent, allocated), 0.0), 100.0)
    return BudgetSummary(
        total_budgets=len(budgets),
        total_allocated=allocated,
        total_spent=spent,
        total_remaining=allocated - spent,
        utilization_rate=utilization,
        overbudget_count=sum(1 for b in budgets if b.is_overbudget),
    )


def expenses_by_category(expenses: Sequence[ExpenseRecord]) -> tuple:
    groups: Dict[str, Dict[str, Any]] = {}
    for expense in approved_expenses(expenses):
        entry = groups.setdefault(expense.category or UNCATEGORIZED, {"amount": 0.0, "count": 0})
        entry["amount"] += expense.amount
        entry["count"] += 1
    ranked = sorted(groups.items(), key=lambda item: item[1]["amount"], reverse=True)
    return tuple(CategoryTotal(category=name, **data) for name, data in ranked)


def client_profitability(
    payments: Sequence[PaymentRecord],
    expenses: Sequence[ExpenseRecord],
    clients: Sequence[ClientRecord] = (),
) -> tuple:
    """Completed-payment revenue minus approved expenses, per client id."""
    names = {c.id: c.company_name for c in clients if c.id}
    ledger: Dict[str, Dict[str, float]] = {}
    for payment in completed_payments(payments):
        if payment.client_id:
            ledger.setdefault(payment.client_id, {"revenue": 0.0, "expenses": 0.0})["revenue"] += payment.amount
    for expense in approved_expenses(expenses):
        if expense.client_id:
            ledger.setdefault(expense.client_id, {"revenue": 0.0, "expenses": 0.0})["expenses"] += expense.amount

    rows = []
    for client_id, totals in ledger.items():
        profit = totals["revenue"] - totals["expenses"]
        rows.append(ClientProfitability(
            client_id=client_id,
            client_name=names.get(client_id) or "Unknown",
            revenue=totals["revenue"],
            expenses=totals["expenses"],
            profit=profit,
            profit_margin=_safe_pct(profit, totals["revenue"]),
        ))
    rows.sort(key=lambda row: row.profit, reverse=True)
    return tuple(rows)


def summarize_financials(
    payments: Sequence[PaymentRecord],
    expenses: Sequence[ExpenseRecord],
    budgets: Sequence[BudgetRecord],
    clients: Sequence[ClientRecord] = (),
) -> FinancialSummary:
    revenue = sum(p.amount for p in completed_payments(payments))
    spend = sum(e.amount for e in approved_expenses(expenses))
    net = revenue - spend
    return FinancialSummary(
        total_revenue=revenue,
        pending_payments=sum(p.amount for p in payments if _status(p.status) == PAYMENT_PENDING),
        total_expenses=spend,
        net_profit=net,
        profit_margin=_safe_pct(net, revenue),
        budgets=summarize_budgets(budgets),
        expenses_by_category=expenses_by_category(expenses),
        payments_by_status=dict(Counter(_status(p.status) or UNKNOWN_STATUS for p in payments)),
        client_profitability=client_profitability(payments, expenses, clients),
    )
