"""Read-only ledger projections: balances, statements, dashboard."""

from personal_ledger.queries.balances import compute_balance, compute_balances
from personal_ledger.queries.reports import build_report, opening_balance_at
from personal_ledger.queries.summary import summarize_ledger

__all__ = [
    "build_report",
    "compute_balance",
    "compute_balances",
    "opening_balance_at",
    "summarize_ledger",
]
