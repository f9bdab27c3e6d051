"""
Data Models Package

This package contains all Pydantic models used in Accounts Keeper.
All data flowing through the system must conform to these schemas.
"""

from accounts_keeper.models.ledger import (
    CURRENCIES,
    Account,
    AccountStats,
    AccountStatus,
    AccountType,
    AccountTypeCategory,
    BalanceSummary,
    Category,
    EMIUnit,
    Installment,
    LedgerDocument,
    OverviewSummary,
    ReconciliationResult,
    SortField,
    SortOrder,
    Transaction,
    TransactionDirection,
    TransactionFilter,
    TransactionSummary,
    TransactionType,
    TransactionTypeCategory,
    UserSettings,
    parse_amount,
)
from accounts_keeper.models.forms import (
    AccountFormInput,
    ActionResult,
    TransactionFormInput,
    ValidationIssue,
    ValidationResult,
)
from accounts_keeper.models.session import (
    DeepLink,
    ExportBundle,
    UserContext,
    UserProfile,
)
from accounts_keeper.models.views import (
    AccountDetailPage,
    AccountsPage,
    FilteredTransactions,
    LoadResult,
    OverviewPage,
    SettingsPage,
    TransactionFormData,
    TransactionsPage,
)
from accounts_keeper.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "CURRENCIES",
    "Account",
    "AccountStats",
    "AccountStatus",
    "AccountType",
    "AccountTypeCategory",
    "BalanceSummary",
    "Category",
    "EMIUnit",
    "Installment",
    "LedgerDocument",
    "OverviewSummary",
    "ReconciliationResult",
    "SortField",
    "SortOrder",
    "Transaction",
    "TransactionDirection",
    "TransactionFilter",
    "TransactionSummary",
    "TransactionType",
    "TransactionTypeCategory",
    "UserSettings",
    "parse_amount",
    # Forms
    "AccountFormInput",
    "ActionResult",
    "TransactionFormInput",
    "ValidationIssue",
    "ValidationResult",
    # Session
    "DeepLink",
    "ExportBundle",
    "UserContext",
    "UserProfile",
    # Page views
    "AccountDetailPage",
    "AccountsPage",
    "FilteredTransactions",
    "LoadResult",
    "OverviewPage",
    "SettingsPage",
    "TransactionFormData",
    "TransactionsPage",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
