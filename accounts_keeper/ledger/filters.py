"""
Transaction Filtering, Sorting and Pagination

Backs the transactions page. Every active filter must match
(conjunctive). Sorting is stable: transactions with equal keys keep
their relative order, so sorting by account keeps each account's
transactions in load order.
"""

import math
from typing import Optional

from pydantic import BaseModel, Field

from accounts_keeper.models.ledger import (
    SortField,
    SortOrder,
    Transaction,
    TransactionFilter,
)


def _matches(
    transaction: Transaction,
    filt: TransactionFilter,
    account_names: dict[str, str],
) -> bool:
    if filt.search:
        haystack = f"{transaction.description} {account_names.get(transaction.account_id, '')}"
        if filt.search.lower() not in haystack.lower():
            return False

    if filt.direction and transaction.direction != filt.direction:
        return False

    if filt.account_id and transaction.account_id != filt.account_id:
        return False

    # Inclusive string comparison on YYYY-MM-DD
    if filt.date_from and transaction.transaction_date < filt.date_from:
        return False
    if filt.date_to and transaction.transaction_date > filt.date_to:
        return False

    if filt.emi_only and not transaction.enable_emi:
        return False

    return True


def apply_filters(
    transactions: list[Transaction],
    filt: TransactionFilter,
    account_names: Optional[dict[str, str]] = None,
) -> list[Transaction]:
    """
    Filter and sort transactions for display.

    Args:
        transactions: The user's transactions, in load order
        filt: Active filters and ordering
        account_names: Account ID -> name, used by search and account sort

    Returns:
        A new list; the input is not modified
    """
    account_names = account_names or {}
    selected = [t for t in transactions if _matches(t, filt, account_names)]

    if filt.sort_by == SortField.AMOUNT:
        key = lambda t: t.amount
    elif filt.sort_by == SortField.ACCOUNT:
        key = lambda t: account_names.get(t.account_id, "")
    else:
        key = lambda t: t.transaction_date

    # sorted() is stable in both directions
    return sorted(selected, key=key, reverse=filt.sort_order == SortOrder.DESC)


class TransactionPage(BaseModel):
    """One page of a filtered transaction list."""

    items: list[Transaction] = Field(default_factory=list)
    page: int = Field(default=1, ge=1)
    total_pages: int = Field(default=0, ge=0)
    total_items: int = Field(default=0, ge=0)

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def paginate(
    transactions: list[Transaction],
    page: int = 1,
    per_page: int = 20,
) -> TransactionPage:
    """
    Slice out one page.

    Out-of-range page numbers are clamped to the nearest valid page.
    """
    total_pages = math.ceil(len(transactions) / per_page) if per_page > 0 else 0
    page = min(max(page, 1), max(total_pages, 1))
    start = (page - 1) * per_page
    return TransactionPage(
        items=transactions[start:start + per_page],
        page=page,
        total_pages=total_pages,
        total_items=len(transactions),
    )


def page_window(current: int, total_pages: int, radius: int = 2) -> list[Optional[int]]:
    """
    Page numbers to show in the pagination bar.

    Always the first and last page plus current +/- radius.
    None marks an ellipsis, emitted once on each side where pages
    are skipped. Empty when there is at most one page.
    """
    if total_pages <= 1:
        return []

    window: list[Optional[int]] = []
    for i in range(1, total_pages + 1):
        if i == 1 or i == total_pages or current - radius <= i <= current + radius:
            window.append(i)
        elif i == current - radius - 1 or i == current + radius + 1:
            window.append(None)
    return window
