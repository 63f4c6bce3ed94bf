"""
Dashboard Summary

Headline figures for the ledger: cash in hand, money in the bank,
voucher counts. Account types are free text, so cash and bank accounts
are recognised by a case-insensitive substring match on the type.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Optional

from personal_ledger.models.ledger import LedgerState
from personal_ledger.models.report import LedgerSummary
from personal_ledger.queries.balances import compute_balances


CASH_MARKER = "cash"
BANK_MARKER = "bank"


def summarize_ledger(
    state: LedgerState,
    balances: Optional[dict[str, Decimal]] = None,
) -> LedgerSummary:
    """Summarize current balances and voucher counts."""
    if balances is None:
        balances = compute_balances(state)

    total_cash = Decimal("0")
    total_bank = Decimal("0")
    by_type: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))

    for account in state.accounts:
        balance = balances.get(account.id, Decimal("0"))
        account_type = account.type.lower()
        if CASH_MARKER in account_type:
            total_cash += balance
        if BANK_MARKER in account_type:
            total_bank += balance
        by_type[account.type or "Uncategorised"] += balance

    posted = sum(1 for tx in state.transactions if tx.posted)

    return LedgerSummary(
        total_cash=total_cash,
        total_bank=total_bank,
        total_balance=total_cash + total_bank,
        account_count=len(state.accounts),
        posted_count=posted,
        draft_count=len(state.transactions) - posted,
        balances_by_type=dict(by_type),
    )
