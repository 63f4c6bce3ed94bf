"""
Report Builder

DESIGN DECISION: Reports are DETERMINISTIC projections of the ledger.
Given the same state and filter they always produce the same rows in
the same order.

How an account statement is built:
1. Take posted vouchers only
2. Sort by (date, voucher number); same-day vouchers go in number order
3. Carry forward: opening balance + everything before the start date
4. Keep vouchers inside the inclusive date range
5. One row per matching line, with a running balance
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from personal_ledger.errors import NotFoundError
from personal_ledger.models.ledger import LedgerState, Transaction
from personal_ledger.models.report import Report, ReportFilter, ReportRow


def _chronological(state: LedgerState) -> list[Transaction]:
    posted = [tx for tx in state.transactions if tx.posted]
    # sorted() is stable: exact (date, voucher) ties keep insertion order
    return sorted(posted, key=lambda tx: (tx.date, tx.voucher_no))


def opening_balance_at(
    state: LedgerState,
    account_id: str,
    start_date: Optional[date] = None,
) -> Decimal:
    """
    Balance of an account at the start of `start_date`.

    Without a start date this is the account's nominal opening balance.
    """
    account = state.get_account(account_id)
    if account is None:
        raise NotFoundError("account", account_id)

    balance = account.opening_balance
    if start_date is None:
        return balance

    for tx in state.transactions:
        if not tx.posted or tx.date >= start_date:
            continue
        for line in tx.lines:
            if line.account_id == account_id:
                balance += line.dr - line.cr
    return balance


def build_report(
    state: LedgerState,
    report_filter: Optional[ReportFilter] = None,
) -> Report:
    """
    Build a statement for the given filter.

    With an account filter every row carries the running balance;
    without one the report lists every line and only totals are kept.
    """
    report_filter = report_filter or ReportFilter()
    account_id = report_filter.account_id
    start, end = report_filter.start_date, report_filter.end_date

    opening = Decimal("0")
    if account_id is not None:
        opening = opening_balance_at(state, account_id, start)

    account_names = {account.id: account.name for account in state.accounts}

    rows = []
    running = opening
    total_dr = Decimal("0")
    total_cr = Decimal("0")

    for tx in _chronological(state):
        if start is not None and tx.date < start:
            continue
        if end is not None and tx.date > end:
            continue

        for line in tx.lines:
            if account_id is not None and line.account_id != account_id:
                continue

            balance = None
            if account_id is not None:
                running += line.dr - line.cr
                balance = running

            total_dr += line.dr
            total_cr += line.cr

            rows.append(ReportRow(
                line_id=line.id,
                transaction_id=tx.id,
                voucher_no=tx.voucher_no,
                date=tx.date,
                narration=line.narration or tx.narration,
                account_id=line.account_id,
                account_name=account_names.get(line.account_id),
                dr=line.dr,
                cr=line.cr,
                balance=balance,
            ))

    return Report(
        filter=report_filter,
        rows=rows,
        opening_balance=opening,
        total_dr=total_dr,
        total_cr=total_cr,
        final_balance=running,
    )
