"""
Ledger package.

Pure domain logic (installment schedules, balances, filtering,
formatting) plus the user-scoped repository over the document store.
"""

from accounts_keeper.ledger.balances import (
    account_balance,
    account_status,
    balance_summary,
    balances_by_account,
    compute_account_stats,
    overview_summary,
    summarize_transactions,
)
from accounts_keeper.ledger.emi import add_units, build_schedule, find_unpaid, paid_dates
from accounts_keeper.ledger.filters import (
    TransactionPage,
    apply_filters,
    page_window,
    paginate,
)
from accounts_keeper.ledger.formatting import (
    balance_css_class,
    currency_preview,
    format_balance,
    format_currency,
    group_indian,
)
from accounts_keeper.ledger.repository import (
    DEFAULT_ACCOUNT_TYPES,
    DEFAULT_CATEGORIES,
    DEFAULT_TRANSACTION_TYPES,
    LedgerRepository,
)

__all__ = [
    # Balances
    "account_balance",
    "account_status",
    "balance_summary",
    "balances_by_account",
    "compute_account_stats",
    "overview_summary",
    "summarize_transactions",
    # Installments
    "add_units",
    "build_schedule",
    "find_unpaid",
    "paid_dates",
    # Filtering
    "TransactionPage",
    "apply_filters",
    "page_window",
    "paginate",
    # Formatting
    "balance_css_class",
    "currency_preview",
    "format_balance",
    "format_currency",
    "group_indian",
    # Repository
    "DEFAULT_ACCOUNT_TYPES",
    "DEFAULT_CATEGORIES",
    "DEFAULT_TRANSACTION_TYPES",
    "LedgerRepository",
]
