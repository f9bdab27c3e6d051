"""
Tests for form validation.
"""

from datetime import date, timedelta
from decimal import Decimal

from accounts_keeper.models import (
    AccountFormInput,
    Installment,
    TransactionDirection,
    TransactionFormInput,
)
from accounts_keeper.validation import FormValidator
from accounts_keeper.validation.validator import MAX_EMI_NUMBERS


def receipt(**overrides):
    values = {
        "direction": TransactionDirection.RECEIVE,
        "sub_type": "Savings",
        "account_id": "a1",
        "amount": Decimal("500"),
        "transaction_date": "2024-01-15",
    }
    values.update(overrides)
    return TransactionFormInput(**values)


def payment(**overrides):
    return receipt(direction=TransactionDirection.PAY, sub_type="Repayment", **overrides)


INSTALLMENTS = [
    Installment(date="2024-02-15", amount=Decimal("1000"), installment=1),
    Installment(date="2024-03-15", amount=Decimal("1000"), installment=2),
]


class TestTransactionValidation:
    """Tests for receipt/payment submissions."""

    def test_complete_receipt_is_valid(self):
        """Test a complete receipt passes with no issues."""
        result = FormValidator().validate_transaction(receipt())
        assert result.is_valid is True
        assert result.issues == []

    def test_missing_fields(self):
        """Test each missing required field is reported."""
        form = receipt(sub_type="", account_id="", amount=None)
        result = FormValidator().validate_transaction(form)
        assert result.is_valid is False
        assert {i.field for i in result.issues} == {"sub_type", "account_id", "amount"}

    def test_zero_amount_is_missing(self):
        """Test a zero amount counts as not filled in."""
        result = FormValidator().validate_transaction(receipt(amount=Decimal("0")))
        assert result.first_error == "Please fill in all required fields."

    def test_missing_date(self):
        """Test a blank date has its own message."""
        result = FormValidator().validate_transaction(receipt(transaction_date=""))
        assert result.first_error == "Please select a date."

    def test_invalid_date(self):
        """Test an unparseable date is an error."""
        result = FormValidator().validate_transaction(receipt(transaction_date="2024-02-30"))
        assert result.is_valid is False
        assert result.issues[0].issue_type == "invalid_value"

    def test_semantic_checks_wait_for_required_fields(self):
        """Test EMI rules aren't reported while required fields are missing."""
        form = payment(account_id="", enable_emi=True)
        result = FormValidator().validate_transaction(form)
        assert [i.field for i in result.issues] == ["account_id"]

    def test_emi_needs_count_and_amount(self):
        """Test EMI receipts need a count and a positive amount."""
        form = receipt(enable_emi=True, emi_numbers=0, emi_amount=None)
        result = FormValidator().validate_transaction(form)
        assert {i.field for i in result.issues} == {"emi_numbers", "emi_amount"}

    def test_emi_count_is_capped(self):
        """Test an absurd number of installments is rejected."""
        validator = FormValidator()
        allowed = receipt(enable_emi=True, emi_numbers=MAX_EMI_NUMBERS, emi_amount=Decimal("10"))
        too_many = receipt(enable_emi=True, emi_numbers=MAX_EMI_NUMBERS + 1, emi_amount=Decimal("10"))

        assert validator.validate_transaction(allowed).is_valid is True
        result = validator.validate_transaction(too_many)
        assert result.is_valid is False
        assert result.issues[0].field == "emi_numbers"

    def test_ledger_entry_needs_category_not_type(self):
        """Test overview entries need a category but no transaction type."""
        validator = FormValidator()
        tagged = receipt(sub_type="", category_id="c1")
        untagged = receipt(sub_type="")

        assert validator.validate_ledger_entry(tagged).is_valid is True
        result = validator.validate_ledger_entry(untagged)
        assert [i.field for i in result.issues] == ["category_id"]

    def test_emi_only_on_receipts(self):
        """Test EMI can't be enabled on a payment."""
        form = payment(enable_emi=True, emi_numbers=3, emi_amount=Decimal("100"))
        result = FormValidator().validate_transaction(form)
        assert result.is_valid is False
        assert result.issues[0].field == "enable_emi"

    def test_selected_installments_must_match_amount(self):
        """Test the amount has to equal the selected installments' total."""
        validator = FormValidator()
        matching = payment(amount=Decimal("2000"), selected_installments=INSTALLMENTS)
        mismatched = payment(amount=Decimal("1500"), selected_installments=INSTALLMENTS)

        assert validator.validate_transaction(matching).is_valid is True
        result = validator.validate_transaction(mismatched)
        assert result.is_valid is False
        assert result.issues[0].issue_type == "inconsistent"

    def test_installments_only_on_payments(self):
        """Test installments can't be settled with a receipt."""
        form = receipt(amount=Decimal("2000"), selected_installments=INSTALLMENTS)
        assert FormValidator().validate_transaction(form).is_valid is False

    def test_future_date_is_a_warning(self):
        """Test a future date is allowed but flagged."""
        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        result = FormValidator().validate_transaction(receipt(transaction_date=tomorrow))
        assert result.is_valid is True
        assert result.issues[0].severity == "warning"
        assert result.issues[0].issue_type == "future_date"


class TestOtherForms:
    """Tests for account, type and profile forms."""

    def test_account_requires_name_and_type(self):
        """Test name and type are both required."""
        result = FormValidator().validate_account(AccountFormInput(name="  "))
        assert result.error_count == 2

    def test_account_name_length(self):
        """Test very long names are rejected."""
        form = AccountFormInput(name="x" * 201, account_type_id="at1")
        assert FormValidator().validate_account(form).is_valid is False

    def test_type_name(self):
        """Test type names can't be blank."""
        validator = FormValidator()
        assert validator.validate_type_name("account_type", "Gold").is_valid is True
        assert validator.validate_type_name("account_type", "   ").is_valid is False

    def test_sign_up(self):
        """Test email, password length and name on sign-up."""
        validator = FormValidator()
        assert validator.validate_sign_up("asha@example.com", "Secret1!x", "Asha").issues == []

        result = validator.validate_sign_up("asha", "abc", "")
        assert {i.field for i in result.issues} == {"email", "password", "display_name"}

    def test_weak_password_is_info_only(self):
        """Test a weak but long enough password doesn't block sign-up."""
        result = FormValidator().validate_sign_up("asha@example.com", "secret", "Asha")
        assert result.is_valid is True
        assert result.issues[0].severity == "info"

    def test_display_name(self):
        """Test the display name can't be blank."""
        assert FormValidator().validate_display_name(" ").first_error == "Display name is required."


class TestUserFriendlySummary:
    """Tests for the banner message."""

    def test_repeated_messages_collapse(self):
        """Test several missing fields give one message."""
        validator = FormValidator()
        result = validator.validate_transaction(receipt(sub_type="", account_id=""))
        assert validator.get_user_friendly_summary(result) == "Please fill in all required fields."

    def test_different_errors_are_joined(self):
        """Test distinct errors are all shown."""
        validator = FormValidator()
        result = validator.validate_transaction(receipt(account_id="", transaction_date=""))
        assert validator.get_user_friendly_summary(result) == (
            "Please fill in all required fields. Please select a date."
        )

    def test_warnings_on_valid_result(self):
        """Test a valid result with warnings asks the user to verify."""
        validator = FormValidator()
        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        result = validator.validate_transaction(receipt(transaction_date=tomorrow))
        assert validator.get_user_friendly_summary(result).startswith("Please verify: ")

    def test_clean_result_has_no_summary(self):
        """Test nothing is shown for a clean result."""
        validator = FormValidator()
        assert validator.get_user_friendly_summary(validator.validate_transaction(receipt())) == ""
