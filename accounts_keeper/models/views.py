"""
Page View Models

What each page loads before it renders. Loaders wrap them in a
LoadResult so a failed read reaches the page as an explicit error
instead of an empty list.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from accounts_keeper.models.ledger import (
    Account,
    AccountStats,
    AccountType,
    BalanceSummary,
    Category,
    OverviewSummary,
    Transaction,
    TransactionSummary,
    TransactionType,
    UserSettings,
)


class LoadResult(BaseModel):
    """
    Outcome of loading a page.

    Exactly one of `data` and `error_message` is meaningful:
    check `ok` first.
    """

    data: Optional[Any] = None
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_message is None

    @classmethod
    def loaded(cls, data: Any) -> "LoadResult":
        return cls(data=data)

    @classmethod
    def failed(cls, message: str) -> "LoadResult":
        return cls(error_message=message)


class AccountsPage(BaseModel):
    accounts: list[Account] = Field(default_factory=list)
    account_types: list[AccountType] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    summary: BalanceSummary = Field(default_factory=BalanceSummary)


class AccountDetailPage(BaseModel):
    account: Account
    account_type_name: str = "Unknown"
    transactions: list[Transaction] = Field(default_factory=list)
    stats: AccountStats = Field(default_factory=AccountStats)


class TransactionsPage(BaseModel):
    """Everything the transactions page filters over."""

    accounts: list[Account] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)

    @property
    def account_names(self) -> dict[str, str]:
        return {a.id: a.name for a in self.accounts}


class TransactionFormData(BaseModel):
    """Choices offered by the receipt/payment form."""

    accounts: list[Account] = Field(default_factory=list)
    account_types: list[AccountType] = Field(default_factory=list)
    transaction_types: list[TransactionType] = Field(
        default_factory=list,
        description="Only the types matching the form's direction"
    )
    editing: Optional[Transaction] = None


class SettingsPage(BaseModel):
    settings: UserSettings = Field(default_factory=UserSettings)
    account_types: list[AccountType] = Field(default_factory=list)
    transaction_types: list[TransactionType] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)


class OverviewPage(BaseModel):
    summary: OverviewSummary = Field(default_factory=OverviewSummary)
    categories: list[Category] = Field(default_factory=list)
    accounts: list[Account] = Field(default_factory=list)


class FilteredTransactions(BaseModel):
    """Result of applying the transactions-page filters."""

    summary: TransactionSummary = Field(default_factory=TransactionSummary)
    total_pages: int = 0
    page: int = 1
    items: list[Transaction] = Field(default_factory=list)
