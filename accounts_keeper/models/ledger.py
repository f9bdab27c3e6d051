"""
Core Data Models for Accounts Keeper

These models define the schemas for every document in the ledger.
They are designed to:
1. Enforce type safety at runtime
2. Round-trip cleanly to and from the document store
3. Keep the stored field names (userId, accountId, enableEMI, ...)
   while exposing snake_case attributes in Python

DESIGN DECISION: Documents are stored with camelCase keys so exported
JSON and existing data keep their shape. Models use aliases for this.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionDirection(str, Enum):
    """
    Direction of a transaction relative to an account.

    Balance convention: PAY adds to the account balance,
    RECEIVE subtracts from it.
    """
    RECEIVE = "receive"
    PAY = "pay"


# Directions written by the overview ledger
LEGACY_DIRECTIONS = {
    "income": TransactionDirection.RECEIVE,
    "expense": TransactionDirection.PAY,
}


class TransactionTypeCategory(str, Enum):
    """Which form a user-defined transaction type belongs to."""
    RECEIPT = "receipt"
    PAYMENT = "payment"


class AccountTypeCategory(str, Enum):
    """Optional classification of an account type."""
    ASSET = "asset"
    LIABILITY = "liability"


class EMIUnit(str, Enum):
    """Recurrence unit of an installment schedule."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class AccountStatus(str, Enum):
    """Display status derived from the sign of an account balance."""
    ACTIVE = "Active"
    OVERDUE = "Overdue"
    ZERO = "Zero"


class SortField(str, Enum):
    """Sort keys offered on the transactions page."""
    DATE = "date"
    AMOUNT = "amount"
    ACCOUNT = "account"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


# Supported currencies: code -> (symbol, name)
CURRENCIES: dict[str, tuple[str, str]] = {
    "INR": ("₹", "Indian Rupee"),
    "USD": ("$", "US Dollar"),
    "EUR": ("€", "Euro"),
    "GBP": ("£", "British Pound"),
    "JPY": ("¥", "Japanese Yen"),
    "CAD": ("C$", "Canadian Dollar"),
    "AUD": ("A$", "Australian Dollar"),
}


def parse_amount(value: Any) -> Decimal:
    """
    Parse a stored amount into a Decimal.

    Missing, non-numeric and non-finite values count as zero.
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal("0")
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return parsed if parsed.is_finite() else Decimal("0")


# =============================================================================
# STORED DOCUMENTS
# =============================================================================

class LedgerDocument(BaseModel):
    """
    Base class for every user-owned document.

    `id` is the document key in the store and is never written
    into the document body.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    id: Optional[str] = Field(
        default=None,
        description="Document ID assigned by the store"
    )
    user_id: str = Field(
        ...,
        alias="userId",
        min_length=1,
        description="Owning user; every query filters on this"
    )
    created_at: Optional[datetime] = Field(
        default=None,
        alias="createdAt",
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        alias="updatedAt",
    )

    def to_document(self) -> dict:
        """Serialize to the stored document body (camelCase, JSON-safe)."""
        return self.model_dump(mode="json", by_alias=True, exclude={"id"})

    @classmethod
    def from_document(cls, doc_id: str, data: dict):
        """Build a model from a stored document."""
        return cls.model_validate({**data, "id": doc_id})


class AccountType(LedgerDocument):
    """User-defined account type (Cash, Bank Account, Credit Card, ...)."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    category: Optional[AccountTypeCategory] = None


class TransactionType(LedgerDocument):
    """User-defined sub-kind of a receipt or a payment."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    category: TransactionTypeCategory


class Account(LedgerDocument):
    """
    A ledger account.

    DESIGN DECISION: Deleting an account deletes all of its
    transactions in the same atomic batch.
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Account name"
    )
    account_type_id: str = Field(
        ...,
        alias="type",
        min_length=1,
        description="ID of the AccountType"
    )
    description: str = Field(
        default="",
        max_length=1000,
    )


class Category(LedgerDocument):
    """Category used by the overview ledger."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    color: str = Field(
        default="#007bff",
        pattern="^#[0-9a-fA-F]{6}$",
    )


class Transaction(LedgerDocument):
    """
    A receipt or payment recorded against an account.

    CRITICAL: `transaction_date` is kept as the stored string, whitespace
    included. Installment reconciliation compares these strings exactly.

    Entries written by the overview ledger before accounts existed have
    no `accountId` and an `income`/`expense` type; they load with an
    empty account and the matching direction.
    """
    model_config = ConfigDict(str_strip_whitespace=False)

    account_id: str = Field(
        default="",
        alias="accountId",
    )
    direction: TransactionDirection = Field(
        ...,
        alias="type",
        description="receive or pay"
    )
    sub_type: str = Field(
        default="",
        alias="subType",
        description="Name of the TransactionType"
    )
    amount: Decimal = Field(
        default=Decimal("0"),
        description="Amount; non-numeric stored values read as zero"
    )
    description: str = ""
    transaction_date: str = Field(
        ...,
        alias="date",
        description="Calendar date string, YYYY-MM-DD"
    )

    # Installment sub-record
    enable_emi: bool = Field(
        default=False,
        alias="enableEMI",
    )
    emi_numbers: Optional[int] = Field(
        default=None,
        alias="emiNumbers",
        ge=0,
    )
    emi_amount: Optional[Decimal] = Field(
        default=None,
        alias="emiAmount",
    )
    emi_type: Optional[EMIUnit] = Field(
        default=None,
        alias="emiType",
    )
    is_emi_payment: bool = Field(
        default=False,
        alias="isEMIPayment",
        description="True for transactions written as installment settlements"
    )

    category_id: Optional[str] = Field(
        default=None,
        alias="categoryId",
        description="Category on the overview ledger"
    )

    @field_validator("direction", mode="before")
    @classmethod
    def coerce_direction(cls, v: Any) -> Any:
        if isinstance(v, str):
            return LEGACY_DIRECTIONS.get(v, v)
        return v

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Decimal:
        return parse_amount(v)

    @field_validator("emi_amount", mode="before")
    @classmethod
    def coerce_emi_amount(cls, v: Any) -> Optional[Decimal]:
        if v is None:
            return None
        return parse_amount(v)

    @field_validator("emi_type", mode="before")
    @classmethod
    def coerce_emi_type(cls, v: Any) -> Optional[str]:
        """Unknown units read as missing, which schedules monthly."""
        if isinstance(v, EMIUnit):
            return v
        if isinstance(v, str) and v in {u.value for u in EMIUnit}:
            return v
        return None

    @field_validator("emi_numbers", mode="before")
    @classmethod
    def coerce_emi_numbers(cls, v: Any) -> Optional[int]:
        if v is None or v == "":
            return None
        try:
            return int(float(v))
        except (TypeError, ValueError):
            return 0

    @property
    def is_receipt(self) -> bool:
        return self.direction == TransactionDirection.RECEIVE


class UserSettings(BaseModel):
    """Per-user settings. The document ID is the user ID."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    currency: str = Field(
        default="INR",
        description="Currency code"
    )
    currency_symbol: str = Field(
        default="₹",
        alias="currencySymbol",
    )

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Only allow supported currencies."""
        code = v.upper()
        if code not in CURRENCIES:
            raise ValueError(f"Unsupported currency: {v}. Allowed: {sorted(CURRENCIES)}")
        return code

    @classmethod
    def for_currency(cls, code: str) -> "UserSettings":
        code = code.upper()
        if code not in CURRENCIES:
            raise ValueError(f"Unsupported currency: {code}")
        return cls(currency=code, currency_symbol=CURRENCIES[code][0])

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# DERIVED VALUES
# =============================================================================

class Installment(BaseModel):
    """One projected installment of an EMI schedule."""

    date: str = Field(
        ...,
        description="Due date as YYYY-MM-DD"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
    )
    installment: int = Field(
        ...,
        ge=1,
        description="1-based installment index"
    )
    origin_transaction_id: Optional[str] = Field(
        default=None,
        description="Transaction the schedule was projected from"
    )


class ReconciliationResult(BaseModel):
    """
    Unpaid installments for one account.

    If the store could not be read, `installments` is empty and
    `degraded` is True; the caller decides whether to tell the user.
    """

    account_id: str
    installments: list[Installment] = Field(default_factory=list)
    degraded: bool = False
    error_message: Optional[str] = None

    @property
    def total_amount(self) -> Decimal:
        return sum((i.amount for i in self.installments), Decimal("0"))


class AccountStats(BaseModel):
    """Result of folding one account's transactions."""

    balance: Decimal = Decimal("0")
    total_transactions: int = 0
    total_received: Decimal = Decimal("0")
    total_paid: Decimal = Decimal("0")


class BalanceSummary(BaseModel):
    """Receivable/payable totals across all of a user's accounts."""

    account_count: int = 0
    total_receivable: Decimal = Decimal("0")
    total_payable: Decimal = Decimal("0")

    @property
    def net_balance(self) -> Decimal:
        return self.total_receivable - self.total_payable


class TransactionSummary(BaseModel):
    """Totals shown above a filtered transaction list."""

    total_count: int = 0
    total_receipts: Decimal = Decimal("0")
    total_payments: Decimal = Decimal("0")

    @property
    def net_amount(self) -> Decimal:
        return self.total_receipts - self.total_payments


class OverviewSummary(BaseModel):
    """Figures for the overview page."""

    income: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")
    recent: list[Transaction] = Field(default_factory=list)

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses


# =============================================================================
# QUERY MODELS
# =============================================================================

class TransactionFilter(BaseModel):
    """
    Filters and ordering for the transactions page.

    All active filters must match. Dates compare as strings,
    inclusive at both ends.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    search: str = ""
    direction: Optional[TransactionDirection] = None
    account_id: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    emi_only: bool = False
    sort_by: SortField = SortField.DATE
    sort_order: SortOrder = SortOrder.DESC

    @property
    def is_default(self) -> bool:
        return self == TransactionFilter()
