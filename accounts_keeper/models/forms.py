"""
Form and Result Models

Forms are validated before any write. Every user action returns an
ActionResult that the UI turns into a banner.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from accounts_keeper.models.ledger import (
    EMIUnit,
    Installment,
    TransactionDirection,
)


# =============================================================================
# FORM INPUTS
# =============================================================================

class TransactionFormInput(BaseModel):
    """
    Raw values submitted from the receipt/payment form.

    Fields are optional because the form can be submitted incomplete;
    the validator reports what is missing.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    direction: TransactionDirection
    sub_type: str = ""
    account_id: str = ""
    amount: Optional[Decimal] = None
    description: str = ""
    transaction_date: Optional[str] = Field(
        default_factory=lambda: date.today().isoformat()
    )

    enable_emi: bool = False
    emi_numbers: Optional[int] = None
    emi_amount: Optional[Decimal] = None
    emi_type: EMIUnit = EMIUnit.MONTH

    # Overview ledger entries only
    category_id: str = ""

    # Installments ticked in the unpaid EMI checklist
    selected_installments: list[Installment] = Field(default_factory=list)

    @property
    def emi_total(self) -> Decimal:
        """Total of an EMI-enabled receipt: installments x amount."""
        return Decimal(self.emi_numbers or 0) * (self.emi_amount or Decimal("0"))

    @property
    def selected_total(self) -> Decimal:
        return sum((i.amount for i in self.selected_installments), Decimal("0"))


class AccountFormInput(BaseModel):
    """Values submitted from the account form."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = ""
    account_type_id: str = ""
    description: str = ""


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="What the user can do about it"
    )


class ValidationResult(BaseModel):
    """Result of validating one form submission."""

    form: str = Field(
        ...,
        description="Which form was validated"
    )
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def first_error(self) -> Optional[str]:
        for issue in self.issues:
            if issue.severity == "error":
                return issue.message
        return None


# =============================================================================
# ACTION RESULTS
# =============================================================================

class ActionResult(BaseModel):
    """
    Outcome of a user action.

    `level` maps onto the alert banner style.
    """

    success: bool
    message: str
    level: str = Field(
        default="success",
        pattern="^(success|warning|danger|info)$",
    )
    affected_ids: list[str] = Field(
        default_factory=list,
        description="IDs of documents written or deleted"
    )

    @classmethod
    def ok(cls, message: str, affected_ids: Optional[list[str]] = None) -> "ActionResult":
        return cls(success=True, message=message, level="success", affected_ids=affected_ids or [])

    @classmethod
    def warning(cls, message: str) -> "ActionResult":
        return cls(success=False, message=message, level="warning")

    @classmethod
    def failed(cls, message: str) -> "ActionResult":
        return cls(success=False, message=message, level="danger")
