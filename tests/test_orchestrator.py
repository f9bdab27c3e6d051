"""
End-to-end tests for the page flows.

Components are built around an in-memory store so every flow runs
exactly as the app runs it, without Google Sheets.
"""

import asyncio
import json
from datetime import date
from decimal import Decimal

import pytest

from accounts_keeper.models import (
    AccountFormInput,
    AuditEventType,
    Installment,
    TransactionDirection,
    TransactionFilter,
    TransactionFormInput,
    UserContext,
    UserProfile,
)
from accounts_keeper.orchestrator import CONFIRMATION_REQUIRED, create_app_components
from accounts_keeper.services.storage import (
    TRANSACTIONS,
    InMemoryAuditStorage,
    InMemoryDocumentStore,
    StorageError,
)


class FlakyStore(InMemoryDocumentStore):
    """Memory store whose transaction reads can be switched off."""

    def __init__(self):
        super().__init__()
        self.transactions_down = False

    async def query(self, collection, filters=None):
        if self.transactions_down and collection == TRANSACTIONS:
            raise StorageError("transactions sheet unavailable")
        return await super().query(collection, filters)


async def _raise_storage_error(*args, **kwargs):
    raise StorageError("write failed")


@pytest.fixture
def audit():
    return InMemoryAuditStorage()


@pytest.fixture
def flaky_store():
    return FlakyStore()


@pytest.fixture
def components(flaky_store, audit):
    return create_app_components(store=flaky_store, audit_storage=audit)


@pytest.fixture
def ctx():
    return UserContext(user=UserProfile(uid="u1", email="asha@example.com", display_name="Asha"))


def event_types(audit):
    return [e.event_type for e in audit.events]


def setup_account(components, ctx, name="Ravi Loan"):
    """Create an account using the first default account type."""
    async def scenario():
        page = await components.accounts.load_accounts_page(ctx)
        type_id = page.data.account_types[0].id
        result = await components.accounts.save_account(
            ctx, AccountFormInput(name=name, account_type_id=type_id)
        )
        return result.affected_ids[0]

    return asyncio.run(scenario())


def open_form(components, ctx, direction, transaction_id=None):
    form = components.new_transaction_form()
    loaded = asyncio.run(form.open(ctx, direction, transaction_id))
    assert loaded.ok
    return form


def lend_with_emi(components, ctx, account_id):
    """Receipt of 3 monthly EMIs of 1000 starting 2024-01-31."""
    form = open_form(components, ctx, TransactionDirection.RECEIVE)
    return asyncio.run(form.submit(TransactionFormInput(
        direction=TransactionDirection.RECEIVE,
        sub_type="Loan",
        account_id=account_id,
        transaction_date="2024-01-31",
        enable_emi=True,
        emi_numbers=3,
        emi_amount=Decimal("1000"),
    )))


class TestFactory:
    """Tests for component wiring."""

    def test_injected_store(self, components, flaky_store):
        """Test an injected store is used as is."""
        assert components.backend == "custom"
        assert components.store is flaky_store

    def test_memory_backend(self):
        """Test the memory backend builds without any Google settings."""
        built = create_app_components(backend="memory")
        assert built.backend == "memory"
        assert isinstance(built.store, InMemoryDocumentStore)

    def test_auth_services_are_per_session(self, components):
        """Test each call gives a fresh AuthService."""
        assert components.new_auth_service() is not components.new_auth_service()


class TestSessionFlow:
    """Tests for sign-up, sign-in and the user context."""

    def test_sign_up_audits_and_seeds(self, components, audit):
        """Test sign-up is audited, including the seeded categories."""
        auth = components.new_auth_service()
        result = asyncio.run(components.session.sign_up(auth, "asha@example.com", "Secret1!", "Asha"))

        assert result.success is True
        assert result.message == "Welcome, Asha!"
        assert event_types(audit) == [AuditEventType.USER_SIGNED_UP, AuditEventType.DEFAULTS_SEEDED]

    def test_sign_up_validation(self, components):
        """Test a blank name is rejected before anything is written."""
        auth = components.new_auth_service()
        result = asyncio.run(components.session.sign_up(auth, "asha@example.com", "Secret1!", ""))
        assert result.success is False
        assert result.level == "warning"
        assert auth.current_user is None

    def test_sign_in_failure_is_a_warning(self, components):
        """Test bad credentials come back as a warning, not an exception."""
        auth = components.new_auth_service()
        result = asyncio.run(components.session.sign_in(auth, "nobody@example.com", "x"))
        assert result.level == "warning"

    def test_context_uses_saved_currency(self, components, ctx):
        """Test the context carries the user's currency."""
        asyncio.run(components.settings.save_currency(ctx, "usd"))
        loaded = asyncio.run(components.session.load_context(ctx.user))
        assert loaded.currency_symbol == "$"


class TestAccountsFlow:
    """Tests for the accounts pages."""

    def test_accounts_page_seeds_types(self, components, ctx):
        """Test the first load seeds the default account types."""
        page = asyncio.run(components.accounts.load_accounts_page(ctx))
        assert page.ok
        assert len(page.data.account_types) == 8
        assert page.data.accounts == []

    def test_create_and_update(self, components, ctx):
        """Test both messages and the detail page."""
        account_id = setup_account(components, ctx, "Cash box")
        detail = asyncio.run(components.accounts.load_account_detail(ctx, account_id))
        assert detail.data.account.name == "Cash box"

        result = asyncio.run(components.accounts.save_account(
            ctx,
            AccountFormInput(name="Wallet", account_type_id=detail.data.account.account_type_id),
            account_id,
        ))
        assert result.message == "Account updated successfully!"

    def test_invalid_account_is_rejected_and_audited(self, components, ctx, audit):
        """Test a blank form writes nothing and is audited."""
        result = asyncio.run(components.accounts.save_account(ctx, AccountFormInput()))
        assert result.message == "Please fill in all required fields."
        assert AuditEventType.VALIDATION_FAILED in event_types(audit)

    def test_unknown_account(self, components, ctx):
        """Test a missing account is a failed load."""
        detail = asyncio.run(components.accounts.load_account_detail(ctx, "nope"))
        assert detail.ok is False
        assert detail.error_message == "Account not found."

    def test_delete_needs_confirmation(self, components, ctx):
        """Test deleting needs confirmed=True and then cascades."""
        account_id = setup_account(components, ctx)
        lend_with_emi(components, ctx, account_id)

        refused = asyncio.run(components.accounts.delete_account(ctx, account_id))
        assert refused.message == CONFIRMATION_REQUIRED

        deleted = asyncio.run(components.accounts.delete_account(ctx, account_id, confirmed=True))
        assert deleted.message == "Account and 1 transactions deleted successfully!"
        assert asyncio.run(components.accounts.load_account_detail(ctx, account_id)).ok is False


class TestTransactionForm:
    """Tests for the receipt/payment form."""

    def test_not_ready_before_open(self, components):
        """Test waiting on an unopened form times out."""
        form = components.new_transaction_form()
        assert asyncio.run(form.wait_until_ready(timeout=0.01)) is False
        assert form.is_ready is False

    def test_failed_open_does_not_wait(self, components, ctx, flaky_store):
        """Test a form that failed to load answers at once, on any event loop."""
        flaky_store.query = _raise_storage_error
        form = components.new_transaction_form()
        assert asyncio.run(form.open(ctx, TransactionDirection.RECEIVE)).ok is False
        assert form.state == "failed"

        receipt = TransactionFormInput(
            direction=TransactionDirection.RECEIVE,
            sub_type="Savings",
            account_id="a1",
            amount=Decimal("100"),
            transaction_date="2024-01-15",
        )
        for _ in range(2):
            result = asyncio.run(asyncio.wait_for(form.submit(receipt), timeout=1))
            assert result.success is False
            assert result.message == "The form could not be loaded. Please open it again."

    def test_ready_form_survives_new_event_loops(self, components, ctx):
        """Test a loaded form kept between reruns submits from fresh loops."""
        account_id = setup_account(components, ctx)
        form = open_form(components, ctx, TransactionDirection.RECEIVE)

        for day in ("2024-01-15", "2024-01-16"):
            result = asyncio.run(form.submit(TransactionFormInput(
                direction=TransactionDirection.RECEIVE,
                sub_type="Savings",
                account_id=account_id,
                amount=Decimal("100"),
                transaction_date=day,
            )))
            assert result.success is True

    def test_open_loads_types_for_direction(self, components, ctx):
        """Test only the matching transaction types are offered."""
        receipt_form = open_form(components, ctx, TransactionDirection.RECEIVE)
        payment_form = open_form(components, ctx, TransactionDirection.PAY)
        assert [t.name for t in receipt_form.data.transaction_types] == ["Loan", "Savings"]
        assert [t.name for t in payment_form.data.transaction_types] == ["Credit", "Repayment"]

    def test_plain_receipt(self, components, ctx):
        """Test a simple receipt is saved with its message."""
        account_id = setup_account(components, ctx)
        form = open_form(components, ctx, TransactionDirection.RECEIVE)
        result = asyncio.run(form.submit(TransactionFormInput(
            direction=TransactionDirection.RECEIVE,
            sub_type="Savings",
            account_id=account_id,
            amount=Decimal("1500"),
            transaction_date="2024-01-15",
        )))
        assert result.message == "Receipt of ₹1,500.00 saved successfully!"

    def test_emi_receipt_amount_is_derived(self, components, ctx):
        """Test an EMI receipt is saved for count x amount."""
        account_id = setup_account(components, ctx)
        result = lend_with_emi(components, ctx, account_id)
        assert result.message == "Receipt of ₹3,000.00 saved successfully!"

        saved = asyncio.run(components.repository.get_transaction("u1", result.affected_ids[0]))
        assert saved.amount == Decimal("3000")
        assert saved.enable_emi is True
        assert saved.emi_numbers == 3

    def test_unpaid_installments_and_settlement(self, components, ctx, audit):
        """Test the unpaid list, batch settlement and the reduced list."""
        account_id = setup_account(components, ctx)
        lend_with_emi(components, ctx, account_id)

        form = open_form(components, ctx, TransactionDirection.PAY)
        unpaid = asyncio.run(form.find_unpaid_installments(account_id))
        assert [i.date for i in unpaid.installments] == ["2024-02-29", "2024-03-31", "2024-04-30"]
        assert unpaid.degraded is False

        result = asyncio.run(form.submit(TransactionFormInput(
            direction=TransactionDirection.PAY,
            sub_type="Repayment",
            account_id=account_id,
            selected_installments=unpaid.installments[:2],
        )))
        assert result.success is True
        assert result.message == "2 EMI payments of ₹2,000.00 saved successfully!"
        assert len(result.affected_ids) == 2
        assert AuditEventType.EMI_PAYMENTS_SAVED in event_types(audit)

        remaining = asyncio.run(open_form(components, ctx, TransactionDirection.PAY)
                                .find_unpaid_installments(account_id))
        assert [i.date for i in remaining.installments] == ["2024-04-30"]

    def test_receipt_form_has_no_installments(self, components, ctx):
        """Test receipts never offer installments."""
        account_id = setup_account(components, ctx)
        lend_with_emi(components, ctx, account_id)
        form = open_form(components, ctx, TransactionDirection.RECEIVE)
        assert asyncio.run(form.find_unpaid_installments(account_id)).installments == []

    def test_reconciliation_degrades_on_storage_error(self, components, ctx, flaky_store, audit):
        """Test a read failure gives an empty, degraded result and is audited."""
        account_id = setup_account(components, ctx)
        form = open_form(components, ctx, TransactionDirection.PAY)

        flaky_store.transactions_down = True
        result = asyncio.run(form.find_unpaid_installments(account_id))

        assert result.installments == []
        assert result.degraded is True
        assert result.error_message == "Could not check pending EMIs for this account."
        assert AuditEventType.EMI_RECONCILIATION_DEGRADED in event_types(audit)

    def test_storage_failure_on_submit(self, components, ctx, flaky_store, audit):
        """Test a failed write is reported and audited."""
        account_id = setup_account(components, ctx)
        form = open_form(components, ctx, TransactionDirection.PAY)
        flaky_store.add = _raise_storage_error
        result = asyncio.run(form.submit(TransactionFormInput(
            direction=TransactionDirection.PAY,
            sub_type="Credit",
            account_id=account_id,
            amount=Decimal("10"),
            transaction_date="2024-01-01",
        )))
        assert result.level == "danger"
        assert result.message == "Error saving the transaction. Please try again."
        assert AuditEventType.STORAGE_ERROR in event_types(audit)

    def test_validation_failure_writes_nothing(self, components, ctx, flaky_store, audit):
        """Test an incomplete form is rejected with the required-fields message."""
        form = open_form(components, ctx, TransactionDirection.RECEIVE)
        result = asyncio.run(form.submit(TransactionFormInput(
            direction=TransactionDirection.RECEIVE,
            amount=Decimal("100"),
        )))
        assert result.success is False
        assert result.message == "Please fill in all required fields."
        assert flaky_store.count(TRANSACTIONS) == 0
        assert AuditEventType.VALIDATION_FAILED in event_types(audit)

    def test_amount_follows_selected_installments(self, components, ctx):
        """Test the amount always follows the selected installments."""
        account_id = setup_account(components, ctx)
        form = open_form(components, ctx, TransactionDirection.PAY)
        result = asyncio.run(form.submit(TransactionFormInput(
            direction=TransactionDirection.PAY,
            sub_type="Repayment",
            account_id=account_id,
            amount=Decimal("1"),
            selected_installments=[Installment(date="2024-02-29", amount=Decimal("1000"), installment=1)],
        )))
        assert result.message == "1 EMI payments of ₹1,000.00 saved successfully!"

    def test_edit_keeps_stored_direction(self, components, ctx):
        """Test editing updates in place and keeps the transaction's direction."""
        account_id = setup_account(components, ctx)
        created = lend_with_emi(components, ctx, account_id)
        txn_id = created.affected_ids[0]

        form = open_form(components, ctx, TransactionDirection.PAY, txn_id)
        assert form.direction == TransactionDirection.RECEIVE
        assert form.editing_id == txn_id

        result = asyncio.run(form.submit(TransactionFormInput(
            direction=TransactionDirection.PAY,
            sub_type="Savings",
            account_id=account_id,
            amount=Decimal("750"),
            transaction_date="2024-02-01",
        )))
        assert result.message == "Receipt updated successfully!"

        updated = asyncio.run(components.repository.get_transaction("u1", txn_id))
        assert updated.amount == Decimal("750")
        assert updated.direction == TransactionDirection.RECEIVE
        assert updated.enable_emi is False
        assert updated.transaction_date == "2024-02-01"

    def test_open_unknown_transaction(self, components, ctx):
        """Test editing a missing transaction fails to load."""
        form = components.new_transaction_form()
        loaded = asyncio.run(form.open(ctx, TransactionDirection.RECEIVE, "nope"))
        assert loaded.error_message == "Transaction not found."
        assert form.is_ready is False

    def test_quick_account(self, components, ctx):
        """Test a quick account is created and offered in the form."""
        form = open_form(components, ctx, TransactionDirection.RECEIVE)
        type_id = form.data.account_types[0].id

        result = asyncio.run(form.create_quick_account(AccountFormInput(name="Petty cash", account_type_id=type_id)))

        assert result.message == "Account created successfully!"
        assert len(result.affected_ids) == 1
        assert [a.name for a in form.data.accounts] == ["Petty cash"]


class TestTransactionsPage:
    """Tests for filtering and deleting on the transactions page."""

    def test_filter_paginates_and_summarizes_all_matches(self, components, ctx):
        """Test the summary covers every match while items are one page."""
        account_id = setup_account(components, ctx)

        async def seed():
            form = components.new_transaction_form()
            await form.open(ctx, TransactionDirection.PAY)
            for day in range(1, 26):
                await form.submit(TransactionFormInput(
                    direction=TransactionDirection.PAY,
                    sub_type="Credit",
                    account_id=account_id,
                    amount=Decimal("10"),
                    transaction_date=f"2024-01-{day:02d}",
                ))
            return await components.transactions.load(ctx)

        page = asyncio.run(seed())
        filtered = components.transactions.filter(page.data, TransactionFilter(), page=2)

        assert filtered.total_pages == 2
        assert filtered.page == 2
        assert len(filtered.items) == 5
        assert filtered.summary.total_count == 25
        assert filtered.summary.total_payments == Decimal("250")
        assert filtered.items[-1].transaction_date == "2024-01-01"

    def test_clear_filters(self, components):
        filt, page = components.transactions.clear_filters()
        assert filt.is_default is True
        assert page == 1

    def test_delete_transaction(self, components, ctx, audit):
        """Test delete needs confirmation and is audited."""
        account_id = setup_account(components, ctx)
        txn_id = lend_with_emi(components, ctx, account_id).affected_ids[0]

        refused = asyncio.run(components.transactions.delete_transaction(ctx, txn_id))
        assert refused.message == CONFIRMATION_REQUIRED

        result = asyncio.run(components.transactions.delete_transaction(ctx, txn_id, confirmed=True))
        assert result.message == "Transaction deleted successfully!"
        assert AuditEventType.TRANSACTION_DELETED in event_types(audit)


class TestSettingsFlow:
    """Tests for the settings page actions."""

    def test_load_seeds_everything(self, components, ctx):
        """Test the settings page seeds account and transaction types."""
        page = asyncio.run(components.settings.load(ctx))
        assert len(page.data.account_types) == 8
        assert len(page.data.transaction_types) == 4

    def test_unsupported_currency(self, components, ctx):
        result = asyncio.run(components.settings.save_currency(ctx, "XYZ"))
        assert result.level == "warning"

    def test_type_and_category_lifecycle(self, components, ctx):
        """Test create then confirmed delete of a type and a category."""
        async def scenario():
            saved_type = await components.settings.save_account_type(ctx, "  Gold  ")
            saved_category = await components.settings.save_category(ctx, "Travel", "#28a745")
            bad_colour = await components.settings.save_category(ctx, "Fuel", "red")
            refused = await components.settings.delete_account_type(ctx, saved_type.affected_ids[0])
            deleted = await components.settings.delete_category(
                ctx, saved_category.affected_ids[0], confirmed=True
            )
            return saved_type, bad_colour, refused, deleted

        saved_type, bad_colour, refused, deleted = asyncio.run(scenario())
        assert saved_type.message == "Account type created successfully!"
        assert bad_colour.message == "Please pick a colour like #28a745."
        assert refused.message == CONFIRMATION_REQUIRED
        assert deleted.message == "Category deleted successfully!"

    def test_blank_type_name(self, components, ctx):
        result = asyncio.run(components.settings.save_transaction_type(ctx, " ", "receipt"))
        assert result.message == "Please enter a type name"

    def test_export_filename(self, components):
        assert components.settings.export_filename(date(2024, 5, 1)) == "accounts-keeper-data-2024-05-01.json"

    def test_export(self, components, ctx, audit):
        """Test the export holds the user's transactions and is audited."""
        account_id = setup_account(components, ctx)
        lend_with_emi(components, ctx, account_id)

        result, payload = asyncio.run(components.settings.export_data(ctx))

        assert result.message == "Data exported successfully!"
        data = json.loads(payload)
        assert len(data["transactions"]) == 1
        assert data["settings"]["currency"] == "INR"
        assert AuditEventType.DATA_EXPORTED in event_types(audit)

    def test_display_name(self, components):
        """Test the display name is updated through the session's auth."""
        auth = components.new_auth_service()
        asyncio.run(components.session.sign_up(auth, "asha@example.com", "Secret1!", "Asha"))
        result = asyncio.run(components.settings.update_display_name(auth, "Asha K"))
        assert result.message == "Account settings saved successfully!"
        assert auth.current_user.display_name == "Asha K"

    def test_delete_user(self, components, audit):
        """Test deletion needs the word and the confirmation, then signs out."""
        auth = components.new_auth_service()
        asyncio.run(components.session.sign_up(auth, "asha@example.com", "Secret1!", "Asha"))

        refused = asyncio.run(components.settings.delete_user(auth, "DELETE"))
        assert refused.level == "warning"
        assert auth.current_user is not None

        result = asyncio.run(components.settings.delete_user(auth, "DELETE", confirmed=True))
        assert result.success is True
        assert auth.current_user is None
        assert AuditEventType.USER_DELETED in event_types(audit)


class TestOverviewFlow:
    """Tests for the overview page."""

    def test_overview(self, components, ctx):
        """Test income and expenses on the overview."""
        account_id = setup_account(components, ctx)
        lend_with_emi(components, ctx, account_id)
        page = asyncio.run(components.overview.load(ctx))
        assert page.ok
        assert page.data.summary.income == Decimal("3000")
        assert page.data.summary.expenses == Decimal("0")
        assert len(page.data.summary.recent) == 1

    def test_add_entry_with_category(self, components, ctx, audit):
        """Test a quick-add entry is saved with its category and shows on the overview."""
        account_id = setup_account(components, ctx)
        asyncio.run(components.repository.create_default_categories("u1"))
        page = asyncio.run(components.overview.load(ctx)).data
        category = page.categories[0]
        assert [a.id for a in page.accounts] == [account_id]

        result = asyncio.run(components.overview.add_entry(ctx, TransactionFormInput(
            direction=TransactionDirection.PAY,
            account_id=account_id,
            category_id=category.id,
            amount=Decimal("250"),
            description="Groceries",
            transaction_date="2024-03-01",
        )))

        assert result.message == "Expense of ₹250.00 saved successfully!"
        saved = asyncio.run(components.repository.get_transaction("u1", result.affected_ids[0]))
        assert saved.category_id == category.id
        assert saved.direction == TransactionDirection.PAY
        assert AuditEventType.TRANSACTION_CREATED in event_types(audit)

        summary = asyncio.run(components.overview.load(ctx)).data.summary
        assert summary.expenses == Decimal("250")
        assert summary.recent[0].category_id == category.id

    def test_add_entry_needs_a_category(self, components, ctx):
        """Test an entry without a category is rejected before anything is written."""
        account_id = setup_account(components, ctx)
        result = asyncio.run(components.overview.add_entry(ctx, TransactionFormInput(
            direction=TransactionDirection.RECEIVE,
            account_id=account_id,
            amount=Decimal("100"),
            transaction_date="2024-03-01",
        )))
        assert result.level == "warning"
        assert result.message == "Please fill in all required fields."
        assert asyncio.run(components.repository.list_transactions("u1")) == []

    def test_add_entry_rejects_other_users_category(self, components, ctx):
        """Test a category that isn't the user's can't be used."""
        account_id = setup_account(components, ctx)
        asyncio.run(components.repository.create_default_categories("u2"))
        foreign = asyncio.run(components.repository.list_categories("u2"))[0]

        result = asyncio.run(components.overview.add_entry(ctx, TransactionFormInput(
            direction=TransactionDirection.RECEIVE,
            account_id=account_id,
            category_id=foreign.id,
            amount=Decimal("100"),
            transaction_date="2024-03-01",
        )))
        assert result.message == "Category not found."
