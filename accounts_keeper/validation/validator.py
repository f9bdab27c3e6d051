"""
Form Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - REQUIRED FIELDS:
- Presence of every required field
- Format checks (dates, emails)
- If this stage fails nothing is written

STAGE 2 - SEMANTIC CHECKS:
- Rules between fields (EMI only on receipts, amount matches
  the selected installments)
- Suspicious but allowed values (future dates, negative amounts)

Stage 2 only runs when stage 1 passes, so the user sees the missing
fields first.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; the flow decides what to show.
"""

from datetime import date
from typing import Optional

from accounts_keeper.config import get_settings
from accounts_keeper.models.forms import (
    AccountFormInput,
    TransactionFormInput,
    ValidationIssue,
    ValidationResult,
)
from accounts_keeper.models.ledger import TransactionDirection
from accounts_keeper.services.auth.service import is_valid_email, password_strength


REQUIRED_FIELDS_MESSAGE = "Please fill in all required fields."

# 50 years of monthly installments
MAX_EMI_NUMBERS = 600


def _parse_iso(value: Optional[str]) -> Optional[date]:
    try:
        return date.fromisoformat(value or "")
    except ValueError:
        return None


def _result(form: str, issues: list[ValidationIssue]) -> ValidationResult:
    return ValidationResult(
        form=form,
        is_valid=not any(issue.severity == "error" for issue in issues),
        issues=issues,
    )


class FormValidator:
    """
    Validates form submissions before anything is written.

    Stage 1: Required fields (errors)
    Stage 2: Semantic checks (errors for broken rules, warnings otherwise)
    """

    def __init__(self):
        self._auth_settings = get_settings().auth

    # =========================================================================
    # TRANSACTION FORM
    # =========================================================================

    def _validate_transaction_required(
        self,
        form: TransactionFormInput,
    ) -> list[ValidationIssue]:
        issues = []

        if not form.sub_type:
            issues.append(ValidationIssue(
                field="sub_type",
                issue_type="missing",
                message=REQUIRED_FIELDS_MESSAGE,
                severity="error",
                suggested_fix="Choose a transaction type",
            ))

        if not form.account_id:
            issues.append(ValidationIssue(
                field="account_id",
                issue_type="missing",
                message=REQUIRED_FIELDS_MESSAGE,
                severity="error",
                suggested_fix="Choose an account",
            ))

        if form.amount is None or form.amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message=REQUIRED_FIELDS_MESSAGE,
                severity="error",
                suggested_fix="Enter a non-zero amount",
            ))

        if not form.transaction_date:
            issues.append(ValidationIssue(
                field="transaction_date",
                issue_type="missing",
                message="Please select a date.",
                severity="error",
            ))
        elif _parse_iso(form.transaction_date) is None:
            issues.append(ValidationIssue(
                field="transaction_date",
                issue_type="invalid_value",
                message=f"Date ({form.transaction_date}) is not a valid YYYY-MM-DD date",
                severity="error",
            ))

        return issues

    def _validate_transaction_semantic(
        self,
        form: TransactionFormInput,
    ) -> list[ValidationIssue]:
        issues = []

        if form.enable_emi:
            if form.direction != TransactionDirection.RECEIVE:
                issues.append(ValidationIssue(
                    field="enable_emi",
                    issue_type="not_allowed",
                    message="EMI can only be set up on a receipt",
                    severity="error",
                ))
            if not form.emi_numbers or form.emi_numbers < 1:
                issues.append(ValidationIssue(
                    field="emi_numbers",
                    issue_type="missing",
                    message="Number of EMIs must be at least 1",
                    severity="error",
                ))
            elif form.emi_numbers > MAX_EMI_NUMBERS:
                issues.append(ValidationIssue(
                    field="emi_numbers",
                    issue_type="invalid_value",
                    message=f"Number of EMIs can be at most {MAX_EMI_NUMBERS}",
                    severity="error",
                ))
            if form.emi_amount is None or form.emi_amount <= 0:
                issues.append(ValidationIssue(
                    field="emi_amount",
                    issue_type="missing",
                    message="EMI amount must be greater than zero",
                    severity="error",
                ))

        if form.selected_installments:
            if form.direction != TransactionDirection.PAY:
                issues.append(ValidationIssue(
                    field="selected_installments",
                    issue_type="not_allowed",
                    message="Installments can only be settled with a payment",
                    severity="error",
                ))
            elif form.amount != form.selected_total:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="inconsistent",
                    message=(
                        f"Amount ({form.amount}) doesn't match the selected "
                        f"installments ({form.selected_total})"
                    ),
                    severity="error",
                    suggested_fix="Leave the amount to the installment selection",
                ))

        if form.amount is not None and form.amount < 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Amount is negative",
                severity="warning",
                suggested_fix="Use a payment instead of a negative receipt",
            ))

        entered = _parse_iso(form.transaction_date)
        if entered and entered > date.today():
            issues.append(ValidationIssue(
                field="transaction_date",
                issue_type="future_date",
                message=f"Date ({entered}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        return issues

    def validate_transaction(self, form: TransactionFormInput) -> ValidationResult:
        """Validate a receipt/payment submission."""
        issues = self._validate_transaction_required(form)
        if not issues:
            issues.extend(self._validate_transaction_semantic(form))
        return _result("transaction", issues)

    def validate_ledger_entry(self, form: TransactionFormInput) -> ValidationResult:
        """
        Validate an overview ledger entry.

        Like a receipt/payment but tagged with a category instead of a
        transaction type, and without installments.
        """
        issues = [
            issue for issue in self._validate_transaction_required(form)
            if issue.field != "sub_type"
        ]
        if not form.category_id:
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="missing",
                message=REQUIRED_FIELDS_MESSAGE,
                severity="error",
                suggested_fix="Choose a category",
            ))
        if not issues:
            issues.extend(self._validate_transaction_semantic(form))
        return _result("ledger_entry", issues)

    # =========================================================================
    # ACCOUNT FORMS
    # =========================================================================

    def validate_account(self, form: AccountFormInput) -> ValidationResult:
        """Name and type are required, for both full and quick account forms."""
        issues = []
        if not form.name:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message=REQUIRED_FIELDS_MESSAGE,
                severity="error",
                suggested_fix="Enter an account name",
            ))
        elif len(form.name) > 200:
            issues.append(ValidationIssue(
                field="name",
                issue_type="invalid_value",
                message="Account name is too long (200 characters max)",
                severity="error",
            ))
        if not form.account_type_id:
            issues.append(ValidationIssue(
                field="account_type_id",
                issue_type="missing",
                message=REQUIRED_FIELDS_MESSAGE,
                severity="error",
                suggested_fix="Choose an account type",
            ))
        return _result("account", issues)

    def validate_type_name(self, form: str, name: str) -> ValidationResult:
        """Account types and transaction types only need a name."""
        issues = []
        if not (name or "").strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Please enter a type name",
                severity="error",
            ))
        return _result(form, issues)

    # =========================================================================
    # PROFILE FORMS
    # =========================================================================

    def validate_sign_up(
        self,
        email: str,
        password: str,
        display_name: str,
    ) -> ValidationResult:
        issues = []
        if not is_valid_email((email or "").strip()):
            issues.append(ValidationIssue(
                field="email",
                issue_type="invalid_value",
                message="Please enter a valid email",
                severity="error",
            ))

        min_length = self._auth_settings.min_password_length
        if len(password or "") < min_length:
            issues.append(ValidationIssue(
                field="password",
                issue_type="too_short",
                message=f"Password must be at least {min_length} characters",
                severity="error",
            ))
        elif password_strength(password) <= 2:
            issues.append(ValidationIssue(
                field="password",
                issue_type="weak",
                message="Password is weak",
                severity="info",
                suggested_fix="Use 8+ characters with an uppercase letter, a digit and a symbol",
            ))

        if not (display_name or "").strip():
            issues.append(ValidationIssue(
                field="display_name",
                issue_type="missing",
                message="Please enter your name",
                severity="error",
            ))
        return _result("sign_up", issues)

    def validate_display_name(self, display_name: str) -> ValidationResult:
        issues = []
        if not (display_name or "").strip():
            issues.append(ValidationIssue(
                field="display_name",
                issue_type="missing",
                message="Display name is required.",
                severity="error",
            ))
        return _result("profile", issues)

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        One banner message for a validation result.

        Identical messages (several missing fields) collapse into one.
        """
        if result.is_valid:
            warnings = [i.message for i in result.issues if i.severity == "warning"]
            return "Please verify: " + "; ".join(warnings) if warnings else ""

        messages: list[str] = []
        for issue in result.issues:
            if issue.severity == "error" and issue.message not in messages:
                messages.append(issue.message)
        return " ".join(messages)
