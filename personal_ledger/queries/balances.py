"""
Balance Engine

DESIGN DECISION: Balances are never stored. They are always derived
from opening balances plus posted vouchers, so a balance is correct as
long as the transaction history is correct.

Drafts never count. Lines pointing at an account that no longer exists
(possible after an import or restore) are skipped, not treated as an
error; the account-in-use guard keeps this out of normal operation.
"""

from decimal import Decimal

import structlog

from personal_ledger.errors import NotFoundError
from personal_ledger.models.ledger import LedgerState


logger = structlog.get_logger(__name__)


def compute_balances(state: LedgerState) -> dict[str, Decimal]:
    """Return {account_id: current balance} for every account."""
    balances = {account.id: account.opening_balance for account in state.accounts}

    for transaction in state.transactions:
        if not transaction.posted:
            continue
        for line in transaction.lines:
            if line.account_id not in balances:
                logger.debug(
                    "dangling_account_reference",
                    transaction_id=transaction.id,
                    account_id=line.account_id,
                )
                continue
            balances[line.account_id] += line.dr - line.cr

    return balances


def compute_balance(state: LedgerState, account_id: str) -> Decimal:
    """Current balance of a single account."""
    account = state.get_account(account_id)
    if account is None:
        raise NotFoundError("account", account_id)

    balance = account.opening_balance
    for transaction in state.transactions:
        if not transaction.posted:
            continue
        for line in transaction.lines:
            if line.account_id == account_id:
                balance += line.dr - line.cr
    return balance
