"""
Balance Aggregation

Pure folds over transaction lists. Nothing here touches storage.

Sign convention (kept from the existing data):
- a `pay` transaction ADDS to the account balance
- a `receive` transaction SUBTRACTS from it

So a positive balance means the account owes us (receivable) and a
negative balance means we owe it (payable).
"""

from decimal import Decimal
from typing import Iterable

from accounts_keeper.models.ledger import (
    Account,
    AccountStats,
    AccountStatus,
    BalanceSummary,
    OverviewSummary,
    Transaction,
    TransactionDirection,
    TransactionSummary,
)


ZERO = Decimal("0")


def compute_account_stats(transactions: Iterable[Transaction]) -> AccountStats:
    """
    Fold one account's transactions into its stats.

    The result does not depend on the order of `transactions`.
    Amounts that were missing or non-numeric in the store were
    already parsed to zero by the model.
    """
    balance = ZERO
    received = ZERO
    paid = ZERO
    count = 0

    for t in transactions:
        count += 1
        if t.direction == TransactionDirection.RECEIVE:
            received += t.amount
            balance -= t.amount
        elif t.direction == TransactionDirection.PAY:
            paid += t.amount
            balance += t.amount

    return AccountStats(
        balance=balance,
        total_transactions=count,
        total_received=received,
        total_paid=paid,
    )


def account_balance(transactions: Iterable[Transaction], account_id: str) -> Decimal:
    """Balance of one account out of a user's full transaction list."""
    return compute_account_stats(
        t for t in transactions if t.account_id == account_id
    ).balance


def account_status(balance: Decimal) -> AccountStatus:
    if balance > 0:
        return AccountStatus.ACTIVE
    if balance < 0:
        return AccountStatus.OVERDUE
    return AccountStatus.ZERO


def balances_by_account(
    accounts: Iterable[Account],
    transactions: list[Transaction],
) -> dict[str, Decimal]:
    """Map account ID -> balance for every account, zero when it has no transactions."""
    balances = {account.id: ZERO for account in accounts}
    for t in transactions:
        if t.account_id not in balances:
            continue
        if t.direction == TransactionDirection.PAY:
            balances[t.account_id] += t.amount
        elif t.direction == TransactionDirection.RECEIVE:
            balances[t.account_id] -= t.amount
    return balances


def balance_summary(
    accounts: list[Account],
    transactions: list[Transaction],
) -> BalanceSummary:
    """
    Receivable/payable totals across all accounts.

    Receivable sums the positive balances, payable sums the
    magnitudes of the negative ones.
    """
    receivable = ZERO
    payable = ZERO
    for balance in balances_by_account(accounts, transactions).values():
        if balance > 0:
            receivable += balance
        elif balance < 0:
            payable += abs(balance)

    return BalanceSummary(
        account_count=len(accounts),
        total_receivable=receivable,
        total_payable=payable,
    )


def summarize_transactions(transactions: Iterable[Transaction]) -> TransactionSummary:
    """Totals for a (possibly filtered) transaction list."""
    stats = compute_account_stats(transactions)
    return TransactionSummary(
        total_count=stats.total_transactions,
        total_receipts=stats.total_received,
        total_payments=stats.total_paid,
    )


def most_recent(transactions: Iterable[Transaction], limit: int) -> list[Transaction]:
    """Newest transactions first, by date string."""
    ordered = sorted(transactions, key=lambda t: t.transaction_date, reverse=True)
    return ordered[:limit]


def overview_summary(
    transactions: list[Transaction],
    recent_limit: int = 5,
) -> OverviewSummary:
    """
    Figures for the overview page.

    Income is what was received, expenses what was paid.
    """
    stats = compute_account_stats(transactions)
    return OverviewSummary(
        income=stats.total_received,
        expenses=stats.total_paid,
        recent=most_recent(transactions, recent_limit),
    )
