"""
Main Orchestrator for Accounts Keeper

This module ties together all the components and defines the
end-to-end flows behind every page:
1. Session (sign up / sign in / sign out, user context)
2. Accounts (list, detail, create/edit, cascade delete)
3. Transaction form (create, edit, EMI settlement, quick account)
4. Transactions page (filter, paginate, delete)
5. Settings (currency, profile, types, export, delete user)
6. Overview

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written before validation passes
- Destructive actions need an explicit confirmation
- Every write and every failure is audited
- Failures come back as an ActionResult or LoadResult, never as a
  silently empty page

This is the "glue" the Streamlit app talks to. The app never touches
the repository or the store directly.
"""

import asyncio
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

import structlog

from accounts_keeper.audit import AuditLogger, create_correlation_id
from accounts_keeper.config import get_settings
from accounts_keeper.ledger.balances import (
    balance_summary,
    compute_account_stats,
    overview_summary,
    summarize_transactions,
)
from accounts_keeper.ledger.emi import find_unpaid
from accounts_keeper.ledger.filters import apply_filters, paginate
from accounts_keeper.ledger.formatting import format_currency
from accounts_keeper.ledger.repository import (
    DEFAULT_CATEGORIES,
    LedgerRepository,
    default_user_settings,
)
from accounts_keeper.models.forms import (
    AccountFormInput,
    ActionResult,
    TransactionFormInput,
    ValidationResult,
)
from accounts_keeper.models.ledger import (
    CURRENCIES,
    AccountTypeCategory,
    ReconciliationResult,
    Transaction,
    TransactionDirection,
    TransactionFilter,
    TransactionTypeCategory,
    UserSettings,
)
from accounts_keeper.models.session import UserContext, UserProfile
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
from accounts_keeper.services.auth import (
    AuthError,
    AuthService,
    DeletionNotConfirmedError,
)
from accounts_keeper.services.storage import (
    ACCOUNT_TYPES,
    ACCOUNTS,
    CATEGORIES,
    TRANSACTION_TYPES,
    TRANSACTIONS,
    USER_SETTINGS,
    AuditStorageInterface,
    DocumentStore,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryAuditStorage,
    InMemoryDocumentStore,
    NotFoundError,
    StorageError,
)
from accounts_keeper.validation import FormValidator


logger = structlog.get_logger(__name__)

CONFIRMATION_REQUIRED = "Please confirm before deleting."


class _LedgerFlow:
    """Shared plumbing: repository, validator and optional audit logger."""

    def __init__(
        self,
        repository: LedgerRepository,
        validator: Optional[FormValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._validator = validator or FormValidator()
        self._audit_logger = audit_logger

    async def _storage_failed(
        self,
        operation: str,
        error: Exception,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """Audit a storage failure; returns the message for the banner."""
        if self._audit_logger:
            await self._audit_logger.log_storage_error(
                operation=operation,
                error_message=str(error),
                user_id=user_id,
                correlation_id=correlation_id,
            )
        else:
            logger.error("storage_failed", operation=operation, error=str(error))
        return f"Error {operation}. Please try again."

    async def _rejected(
        self,
        user_id: str,
        result: ValidationResult,
        correlation_id: Optional[UUID] = None,
    ) -> ActionResult:
        """Audit a validation failure and turn it into a warning banner."""
        if self._audit_logger:
            issues = [
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in result.issues
                if i.severity == "error"
            ]
            await self._audit_logger.log_validation_failed(
                user_id=user_id,
                form=result.form,
                issues=issues,
                correlation_id=correlation_id,
            )
        return ActionResult.warning(self._validator.get_user_friendly_summary(result))


# =============================================================================
# SESSION
# =============================================================================

class SessionFlow(_LedgerFlow):
    """
    Authentication actions for one browser session.

    The AuthService is passed in per call because it holds that
    session's signed-in user.
    """

    async def sign_up(
        self,
        auth: AuthService,
        email: str,
        password: str,
        display_name: str,
    ) -> ActionResult:
        result = self._validator.validate_sign_up(email, password, display_name)
        if not result.is_valid:
            return ActionResult.warning(self._validator.get_user_friendly_summary(result))

        try:
            user = await auth.sign_up(email, password, display_name)
        except AuthError as e:
            return ActionResult.warning(str(e))
        except StorageError as e:
            return ActionResult.failed(await self._storage_failed("creating your account", e))

        if self._audit_logger:
            await self._audit_logger.log_user_signed_up(user.uid, user.email)
            await self._audit_logger.log_defaults_seeded(
                user.uid, CATEGORIES, [name for name, _ in DEFAULT_CATEGORIES]
            )
        return ActionResult.ok(f"Welcome, {user.label}!", [user.uid])

    async def sign_in(self, auth: AuthService, email: str, password: str) -> ActionResult:
        try:
            user = await auth.sign_in(email, password)
        except AuthError as e:
            return ActionResult.warning(str(e))
        except StorageError as e:
            return ActionResult.failed(await self._storage_failed("signing in", e))
        return ActionResult.ok(f"Welcome back, {user.label}!", [user.uid])

    async def sign_out(self, auth: AuthService) -> ActionResult:
        await auth.sign_out()
        return ActionResult.ok("Signed out.")

    async def load_context(self, user: UserProfile) -> UserContext:
        """
        Build the context every page receives.

        Falls back to default settings if they can't be read; currency
        is cosmetic and shouldn't lock the user out.
        """
        try:
            settings = await self._repository.get_user_settings(user.uid)
        except StorageError as e:
            logger.warning("settings_load_failed", user_id=user.uid, error=str(e))
            settings = default_user_settings()
        return UserContext(user=user, settings=settings)


# =============================================================================
# ACCOUNTS
# =============================================================================

class AccountsFlow(_LedgerFlow):
    """Accounts list, account detail, account create/edit/delete."""

    async def load_accounts_page(self, ctx: UserContext) -> LoadResult:
        try:
            account_types = await self._repository.ensure_default_account_types(ctx.user_id)
            accounts = await self._repository.list_accounts(ctx.user_id)
            transactions = await self._repository.list_transactions(ctx.user_id)
        except StorageError as e:
            return LoadResult.failed(await self._storage_failed("loading accounts", e, ctx.user_id))

        return LoadResult.loaded(AccountsPage(
            accounts=accounts,
            account_types=account_types,
            transactions=transactions,
            summary=balance_summary(accounts, transactions),
        ))

    async def load_account_detail(self, ctx: UserContext, account_id: str) -> LoadResult:
        """
        Load one account with its history and stats.

        An unknown account, or one owned by someone else, is a failed
        load; the page goes back to the accounts list.
        """
        try:
            account = await self._repository.get_account(ctx.user_id, account_id)
            if account is None:
                return LoadResult.failed("Account not found.")
            account_types = await self._repository.list_account_types(ctx.user_id)
            transactions = await self._repository.list_transactions(ctx.user_id, account_id)
        except StorageError as e:
            return LoadResult.failed(await self._storage_failed("loading the account", e, ctx.user_id))

        type_names = {t.id: t.name for t in account_types}
        return LoadResult.loaded(AccountDetailPage(
            account=account,
            account_type_name=type_names.get(account.account_type_id, "Unknown"),
            transactions=transactions,
            stats=compute_account_stats(transactions),
        ))

    async def save_account(
        self,
        ctx: UserContext,
        form: AccountFormInput,
        account_id: Optional[str] = None,
    ) -> ActionResult:
        """Create an account, or update it when account_id is given."""
        correlation_id = create_correlation_id()
        result = self._validator.validate_account(form)
        if not result.is_valid:
            return await self._rejected(ctx.user_id, result, correlation_id)

        try:
            if account_id:
                await self._repository.update_account(
                    ctx.user_id, account_id, form.name, form.account_type_id, form.description
                )
                saved_id, message = account_id, "Account updated successfully!"
            else:
                saved_id = await self._repository.create_account(
                    ctx.user_id, form.name, form.account_type_id, form.description
                )
                message = "Account created successfully!"
        except NotFoundError:
            return ActionResult.failed("Account not found.")
        except StorageError as e:
            return ActionResult.failed(
                await self._storage_failed("saving the account", e, ctx.user_id, correlation_id)
            )

        if self._audit_logger:
            await self._audit_logger.log_document_saved(
                ctx.user_id, ACCOUNTS, saved_id, created=account_id is None,
                correlation_id=correlation_id,
            )
        return ActionResult.ok(message, [saved_id])

    async def delete_account(
        self,
        ctx: UserContext,
        account_id: str,
        confirmed: bool = False,
    ) -> ActionResult:
        """Delete an account together with all of its transactions."""
        if not confirmed:
            return ActionResult.warning(CONFIRMATION_REQUIRED)

        try:
            deleted = await self._repository.delete_account(ctx.user_id, account_id)
        except NotFoundError:
            return ActionResult.failed("Account not found.")
        except StorageError as e:
            return ActionResult.failed(await self._storage_failed("deleting the account", e, ctx.user_id))

        if self._audit_logger:
            await self._audit_logger.log_account_deleted(ctx.user_id, account_id, deleted)
        return ActionResult.ok(
            f"Account and {deleted} transactions deleted successfully!", [account_id]
        )


# =============================================================================
# TRANSACTION FORM
# =============================================================================

class FormState(str, Enum):
    """Loading state of a transaction form."""
    CLOSED = "closed"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class TransactionFormFlow(_LedgerFlow):
    """
    One receipt or payment form.

    Create a new instance each time the form opens. open() loads the
    choices and then sets the ready signal; submit() waits for that
    signal instead of polling. The signal is made by open() on the loop
    that runs it, and a form that is not loading never waits, so a flow
    kept across Streamlit reruns (one event loop per call) stays usable.
    """

    def __init__(
        self,
        repository: LedgerRepository,
        validator: Optional[FormValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(repository, validator, audit_logger)
        self._ready: Optional[asyncio.Event] = None
        self._state = FormState.CLOSED
        self._ctx: Optional[UserContext] = None
        self._direction = TransactionDirection.RECEIVE
        self._data = TransactionFormData()

    @property
    def is_ready(self) -> bool:
        return self._state == FormState.READY

    @property
    def state(self) -> str:
        return self._state

    @property
    def data(self) -> TransactionFormData:
        return self._data

    @property
    def direction(self) -> TransactionDirection:
        return self._direction

    @property
    def editing_id(self) -> Optional[str]:
        return self._data.editing.id if self._data.editing else None

    async def open(
        self,
        ctx: UserContext,
        direction: TransactionDirection,
        transaction_id: Optional[str] = None,
    ) -> LoadResult:
        """
        Load accounts, account types and the transaction types for
        this direction (seeding defaults), then signal ready.

        With transaction_id the form opens in edit mode and takes the
        direction of the stored transaction.
        """
        self._ready = asyncio.Event()
        self._state = FormState.LOADING
        self._ctx = ctx
        self._direction = TransactionDirection(direction)
        try:
            editing = None
            if transaction_id:
                editing = await self._repository.get_transaction(ctx.user_id, transaction_id)
                if editing is None:
                    self._state = FormState.FAILED
                    return LoadResult.failed("Transaction not found.")
                self._direction = editing.direction

            category = (
                TransactionTypeCategory.RECEIPT
                if self._direction == TransactionDirection.RECEIVE
                else TransactionTypeCategory.PAYMENT
            )
            await self._repository.ensure_default_transaction_types(ctx.user_id)
            self._data = TransactionFormData(
                accounts=await self._repository.list_accounts(ctx.user_id),
                account_types=await self._repository.ensure_default_account_types(ctx.user_id),
                transaction_types=await self._repository.list_transaction_types(ctx.user_id, category),
                editing=editing,
            )
            self._state = FormState.READY
        except StorageError as e:
            self._state = FormState.FAILED
            return LoadResult.failed(await self._storage_failed("loading the form", e, ctx.user_id))
        finally:
            if self._state == FormState.LOADING:
                self._state = FormState.FAILED
            # waiters wake on failure too and read the state
            self._ready.set()

        return LoadResult.loaded(self._data)

    async def wait_until_ready(self, timeout: Optional[float] = 10.0) -> bool:
        """
        Wait for an open() in progress to finish.

        Returns immediately when the form is not loading: True if it is
        ready, False if it was never opened or failed to load.

        Returns:
            False if the form is not ready within `timeout` seconds
        """
        if self._state != FormState.LOADING:
            return self._state == FormState.READY
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return self._state == FormState.READY

    def _not_ready(self) -> ActionResult:
        if self._state == FormState.LOADING:
            return ActionResult.warning("The form is still loading. Please try again.")
        return ActionResult.warning("The form could not be loaded. Please open it again.")

    async def find_unpaid_installments(self, account_id: str) -> ReconciliationResult:
        """
        Unpaid installments of an account, for the payment form.

        Receipt forms never show installments. If the account's
        transactions can't be read the result is empty and marked
        degraded, and the failure is audited.
        """
        if self._ctx is None or self._direction != TransactionDirection.PAY or not account_id:
            return ReconciliationResult(account_id=account_id or "")

        user_id = self._ctx.user_id
        try:
            transactions = await self._repository.list_transactions(user_id, account_id)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_emi_reconciliation_degraded(user_id, account_id, str(e))
            else:
                logger.warning("emi_reconciliation_degraded", account_id=account_id, error=str(e))
            return ReconciliationResult(
                account_id=account_id,
                degraded=True,
                error_message="Could not check pending EMIs for this account.",
            )

        return ReconciliationResult(
            account_id=account_id,
            installments=find_unpaid(transactions, account_id),
        )

    def _prepare(self, form: TransactionFormInput) -> TransactionFormInput:
        """Derive the amount where the form computes it."""
        updates = {"direction": self._direction}
        if form.selected_installments:
            updates["amount"] = form.selected_total
        elif form.enable_emi and form.emi_total > 0:
            updates["amount"] = form.emi_total
        return form.model_copy(update=updates)

    def _emi_fields(self, form: TransactionFormInput) -> dict:
        if not form.enable_emi:
            return {"enable_emi": False, "emi_numbers": None, "emi_amount": None, "emi_type": None}
        return {
            "enable_emi": True,
            "emi_numbers": form.emi_numbers or 0,
            "emi_amount": form.emi_amount or Decimal("0"),
            "emi_type": form.emi_type,
        }

    async def submit(self, form: TransactionFormInput) -> ActionResult:
        """
        Save the form.

        Modes, in order of precedence:
        - edit: partial update of the opened transaction
        - EMI settlement: one payment per selected installment, one batch
        - create: a single new transaction
        """
        if not await self.wait_until_ready():
            return self._not_ready()

        ctx = self._ctx
        correlation_id = create_correlation_id()
        form = self._prepare(form)

        result = self._validator.validate_transaction(form)
        if not result.is_valid:
            return await self._rejected(ctx.user_id, result, correlation_id)

        label = "Receipt" if self._direction == TransactionDirection.RECEIVE else "Payment"
        symbol = ctx.currency_symbol

        try:
            if self.editing_id:
                changes = Transaction(
                    user_id=ctx.user_id,
                    account_id=form.account_id,
                    direction=self._direction,
                    sub_type=form.sub_type,
                    amount=form.amount,
                    description=form.description,
                    transaction_date=form.transaction_date,
                    **self._emi_fields(form),
                ).model_dump(
                    mode="json",
                    by_alias=True,
                    include={
                        "account_id", "direction", "sub_type", "amount", "description",
                        "transaction_date", "enable_emi", "emi_numbers", "emi_amount", "emi_type",
                    },
                )
                await self._repository.update_transaction(ctx.user_id, self.editing_id, changes)
                saved_ids = [self.editing_id]
                message = f"{label} updated successfully!"

            elif form.selected_installments:
                saved_ids = await self._repository.save_emi_payments(
                    ctx.user_id,
                    form.account_id,
                    form.sub_type,
                    form.selected_installments,
                    form.description,
                )
                message = (
                    f"{len(saved_ids)} EMI payments of "
                    f"{format_currency(form.selected_total, symbol)} saved successfully!"
                )

            else:
                transaction = Transaction(
                    user_id=ctx.user_id,
                    account_id=form.account_id,
                    direction=self._direction,
                    sub_type=form.sub_type,
                    amount=form.amount,
                    description=form.description,
                    transaction_date=form.transaction_date,
                    **self._emi_fields(form),
                )
                saved_ids = [await self._repository.create_transaction(transaction)]
                message = f"{label} of {format_currency(form.amount, symbol)} saved successfully!"

        except NotFoundError:
            return ActionResult.failed("Transaction not found.")
        except StorageError as e:
            return ActionResult.failed(
                await self._storage_failed("saving the transaction", e, ctx.user_id, correlation_id)
            )

        if self._audit_logger:
            if form.selected_installments and not self.editing_id:
                await self._audit_logger.log_emi_payments_saved(
                    ctx.user_id, form.account_id, saved_ids,
                    str(form.selected_total), correlation_id,
                )
            else:
                await self._audit_logger.log_document_saved(
                    ctx.user_id, TRANSACTIONS, saved_ids[0],
                    created=self.editing_id is None, correlation_id=correlation_id,
                )
        return ActionResult.ok(message, saved_ids)

    async def create_quick_account(self, form: AccountFormInput) -> ActionResult:
        """
        Create an account from inside the form and add it to the
        account choices. The new ID is the only affected_id.
        """
        if not await self.wait_until_ready():
            return self._not_ready()

        ctx = self._ctx
        result = self._validator.validate_account(form)
        if not result.is_valid:
            return await self._rejected(ctx.user_id, result)

        try:
            account_id = await self._repository.create_account(
                ctx.user_id, form.name, form.account_type_id, form.description
            )
            accounts = await self._repository.list_accounts(ctx.user_id)
        except StorageError as e:
            return ActionResult.failed(await self._storage_failed("creating the account", e, ctx.user_id))

        self._data = self._data.model_copy(update={"accounts": accounts})
        if self._audit_logger:
            await self._audit_logger.log_document_saved(ctx.user_id, ACCOUNTS, account_id, created=True)
        return ActionResult.ok("Account created successfully!", [account_id])


# =============================================================================
# TRANSACTIONS PAGE
# =============================================================================

class TransactionsPageFlow(_LedgerFlow):
    """Search, filter, sort and page through all of a user's transactions."""

    async def load(self, ctx: UserContext) -> LoadResult:
        try:
            accounts = await self._repository.list_accounts(ctx.user_id)
            transactions = await self._repository.list_transactions(ctx.user_id)
        except StorageError as e:
            return LoadResult.failed(await self._storage_failed("loading transactions", e, ctx.user_id))
        return LoadResult.loaded(TransactionsPage(accounts=accounts, transactions=transactions))

    def filter(
        self,
        data: TransactionsPage,
        filt: TransactionFilter,
        page: int = 1,
    ) -> FilteredTransactions:
        """Apply filters; the summary covers every match, not just the page."""
        matches = apply_filters(data.transactions, filt, data.account_names)
        sliced = paginate(matches, page, get_settings().app.transactions_per_page)
        return FilteredTransactions(
            summary=summarize_transactions(matches),
            total_pages=sliced.total_pages,
            page=sliced.page,
            items=sliced.items,
        )

    @staticmethod
    def clear_filters() -> tuple[TransactionFilter, int]:
        """Default filters (date, newest first) and page 1."""
        return TransactionFilter(), 1

    async def delete_transaction(
        self,
        ctx: UserContext,
        transaction_id: str,
        confirmed: bool = False,
    ) -> ActionResult:
        if not confirmed:
            return ActionResult.warning(CONFIRMATION_REQUIRED)
        try:
            await self._repository.delete_transaction(ctx.user_id, transaction_id)
        except NotFoundError:
            return ActionResult.failed("Transaction not found.")
        except StorageError as e:
            return ActionResult.failed(await self._storage_failed("deleting the transaction", e, ctx.user_id))

        if self._audit_logger:
            await self._audit_logger.log_document_deleted(ctx.user_id, TRANSACTIONS, transaction_id)
        return ActionResult.ok("Transaction deleted successfully!", [transaction_id])


# =============================================================================
# SETTINGS
# =============================================================================

class SettingsFlow(_LedgerFlow):
    """Currency, profile, account/transaction types, export and deletion."""

    async def load(self, ctx: UserContext) -> LoadResult:
        try:
            settings = await self._repository.get_user_settings(ctx.user_id)
            account_types = await self._repository.ensure_default_account_types(ctx.user_id)
            transaction_types = await self._repository.ensure_default_transaction_types(ctx.user_id)
            categories = await self._repository.list_categories(ctx.user_id)
        except StorageError as e:
            return LoadResult.failed(await self._storage_failed("loading settings", e, ctx.user_id))
        return LoadResult.loaded(SettingsPage(
            settings=settings,
            account_types=account_types,
            transaction_types=transaction_types,
            categories=categories,
        ))

    async def save_currency(self, ctx: UserContext, currency: str) -> ActionResult:
        if currency.upper() not in CURRENCIES:
            return ActionResult.warning(f"Unsupported currency: {currency}")
        settings = UserSettings.for_currency(currency)
        try:
            await self._repository.save_user_settings(ctx.user_id, settings)
        except StorageError as e:
            return ActionResult.failed(await self._storage_failed("saving currency settings", e, ctx.user_id))

        if self._audit_logger:
            await self._audit_logger.log_document_saved(ctx.user_id, USER_SETTINGS, ctx.user_id, created=False)
        return ActionResult.ok("Currency settings saved successfully!")

    async def update_display_name(self, auth: AuthService, display_name: str) -> ActionResult:
        result = self._validator.validate_display_name(display_name)
        if not result.is_valid:
            return ActionResult.warning(self._validator.get_user_friendly_summary(result))
        try:
            user = await auth.update_display_name(display_name)
        except AuthError as e:
            return ActionResult.warning(str(e))
        except StorageError as e:
            return ActionResult.failed(await self._storage_failed("saving account settings", e))
        return ActionResult.ok("Account settings saved successfully!", [user.uid])

    async def save_account_type(
        self,
        ctx: UserContext,
        name: str,
        category: Optional[AccountTypeCategory] = None,
        type_id: Optional[str] = None,
    ) -> ActionResult:
        result = self._validator.validate_type_name("account_type", name)
        if not result.is_valid:
            return await self._rejected(ctx.user_id, result)
        try:
            saved_id = await self._repository.save_account_type(ctx.user_id, name.strip(), category, type_id)
        except NotFoundError:
            return ActionResult.failed("Account type not found.")
        except StorageError as e:
            return ActionResult.failed(await self._storage_failed("saving the account type", e, ctx.user_id))

        if self._audit_logger:
            await self._audit_logger.log_document_saved(ctx.user_id, ACCOUNT_TYPES, saved_id, created=type_id is None)
        verb = "updated" if type_id else "created"
        return ActionResult.ok(f"Account type {verb} successfully!", [saved_id])

    async def delete_account_type(
        self,
        ctx: UserContext,
        type_id: str,
        confirmed: bool = False,
    ) -> ActionResult:
        return await self._delete(ctx, ACCOUNT_TYPES, type_id, confirmed, "Account type")

    async def save_transaction_type(
        self,
        ctx: UserContext,
        name: str,
        category: TransactionTypeCategory,
        type_id: Optional[str] = None,
    ) -> ActionResult:
        result = self._validator.validate_type_name("transaction_type", name)
        if not result.is_valid:
            return await self._rejected(ctx.user_id, result)
        try:
            saved_id = await self._repository.save_transaction_type(ctx.user_id, name.strip(), category, type_id)
        except NotFoundError:
            return ActionResult.failed("Transaction type not found.")
        except StorageError as e:
            return ActionResult.failed(await self._storage_failed("saving the transaction type", e, ctx.user_id))

        if self._audit_logger:
            await self._audit_logger.log_document_saved(
                ctx.user_id, TRANSACTION_TYPES, saved_id, created=type_id is None
            )
        verb = "updated" if type_id else "created"
        return ActionResult.ok(f"Transaction type {verb} successfully!", [saved_id])

    async def delete_transaction_type(
        self,
        ctx: UserContext,
        type_id: str,
        confirmed: bool = False,
    ) -> ActionResult:
        return await self._delete(ctx, TRANSACTION_TYPES, type_id, confirmed, "Transaction type")

    async def save_category(
        self,
        ctx: UserContext,
        name: str,
        color: str = "#007bff",
        category_id: Optional[str] = None,
    ) -> ActionResult:
        result = self._validator.validate_type_name("category", name)
        if not result.is_valid:
            return await self._rejected(ctx.user_id, result)
        try:
            saved_id = await self._repository.save_category(ctx.user_id, name.strip(), color, category_id)
        except NotFoundError:
            return ActionResult.failed("Category not found.")
        except ValueError:
            return ActionResult.warning("Please pick a colour like #28a745.")
        except StorageError as e:
            return ActionResult.failed(await self._storage_failed("saving the category", e, ctx.user_id))

        if self._audit_logger:
            await self._audit_logger.log_document_saved(ctx.user_id, CATEGORIES, saved_id, created=category_id is None)
        return ActionResult.ok("Category saved successfully!", [saved_id])

    async def delete_category(
        self,
        ctx: UserContext,
        category_id: str,
        confirmed: bool = False,
    ) -> ActionResult:
        return await self._delete(ctx, CATEGORIES, category_id, confirmed, "Category")

    async def _delete(
        self,
        ctx: UserContext,
        collection: str,
        doc_id: str,
        confirmed: bool,
        label: str,
    ) -> ActionResult:
        if not confirmed:
            return ActionResult.warning(CONFIRMATION_REQUIRED)
        deleters = {
            ACCOUNT_TYPES: self._repository.delete_account_type,
            TRANSACTION_TYPES: self._repository.delete_transaction_type,
            CATEGORIES: self._repository.delete_category,
        }
        try:
            await deleters[collection](ctx.user_id, doc_id)
        except NotFoundError:
            return ActionResult.failed(f"{label} not found.")
        except StorageError as e:
            return ActionResult.failed(
                await self._storage_failed(f"deleting the {label.lower()}", e, ctx.user_id)
            )

        if self._audit_logger:
            await self._audit_logger.log_document_deleted(ctx.user_id, collection, doc_id)
        return ActionResult.ok(f"{label} deleted successfully!", [doc_id])

    @staticmethod
    def export_filename(today: Optional[date] = None) -> str:
        prefix = get_settings().app.export_filename_prefix
        return f"{prefix}-{(today or date.today()).isoformat()}.json"

    async def export_data(self, ctx: UserContext) -> tuple[ActionResult, Optional[str]]:
        """
        Export the user's settings, transactions and categories.

        Returns:
            (result, json_text); json_text is None on failure
        """
        try:
            bundle = await self._repository.build_export(ctx.user)
        except StorageError as e:
            return ActionResult.failed(await self._storage_failed("exporting data", e, ctx.user_id)), None

        if self._audit_logger:
            await self._audit_logger.log_data_exported(
                ctx.user_id, len(bundle.transactions), len(bundle.categories)
            )
        return ActionResult.ok("Data exported successfully!"), bundle.to_json()

    async def delete_user(
        self,
        auth: AuthService,
        confirmation: str,
        confirmed: bool = False,
    ) -> ActionResult:
        """
        Delete the signed-in user and all of their data.

        Needs the confirmation word typed exactly and confirmed=True.
        """
        user = auth.current_user
        try:
            deleted = await auth.delete_user(confirmation, confirmed)
        except DeletionNotConfirmedError as e:
            return ActionResult.warning(str(e))
        except AuthError as e:
            return ActionResult.failed(str(e))
        except StorageError as e:
            return ActionResult.failed(
                await self._storage_failed("deleting your account", e, user.uid if user else None)
            )

        if self._audit_logger and user:
            await self._audit_logger.log_user_deleted(user.uid, deleted)
        return ActionResult.ok("Account deleted successfully.")


# =============================================================================
# OVERVIEW
# =============================================================================

class OverviewFlow(_LedgerFlow):
    """
    Income, expenses, net and the latest transactions, plus the
    categorised quick-add.
    """

    async def load(self, ctx: UserContext) -> LoadResult:
        try:
            transactions = await self._repository.list_transactions(ctx.user_id)
            categories = await self._repository.list_categories(ctx.user_id)
            accounts = await self._repository.list_accounts(ctx.user_id)
        except StorageError as e:
            return LoadResult.failed(await self._storage_failed("loading the overview", e, ctx.user_id))
        return LoadResult.loaded(OverviewPage(
            summary=overview_summary(transactions, get_settings().app.overview_recent_limit),
            categories=categories,
            accounts=accounts,
        ))

    async def add_entry(self, ctx: UserContext, form: TransactionFormInput) -> ActionResult:
        """
        Record income or an expense against an account, tagged with one
        of the user's categories.
        """
        correlation_id = create_correlation_id()
        result = self._validator.validate_ledger_entry(form)
        if not result.is_valid:
            return await self._rejected(ctx.user_id, result, correlation_id)

        try:
            categories = await self._repository.list_categories(ctx.user_id)
            account = await self._repository.get_account(ctx.user_id, form.account_id)
            if account is None:
                return ActionResult.failed("Account not found.")
            if form.category_id not in {c.id for c in categories}:
                return ActionResult.failed("Category not found.")

            transaction_id = await self._repository.create_transaction(Transaction(
                user_id=ctx.user_id,
                account_id=account.id,
                direction=form.direction,
                amount=form.amount,
                description=form.description,
                transaction_date=form.transaction_date,
                category_id=form.category_id,
            ))
        except StorageError as e:
            return ActionResult.failed(
                await self._storage_failed("saving the transaction", e, ctx.user_id, correlation_id)
            )

        if self._audit_logger:
            await self._audit_logger.log_document_saved(
                ctx.user_id, TRANSACTIONS, transaction_id, created=True, correlation_id=correlation_id,
            )
        label = "Income" if form.direction == TransactionDirection.RECEIVE else "Expense"
        amount = format_currency(form.amount, ctx.currency_symbol)
        return ActionResult.ok(f"{label} of {amount} saved successfully!", [transaction_id])


# =============================================================================
# FACTORY
# =============================================================================

@dataclass
class AppComponents:
    """Everything the app needs, built once per process."""

    store: DocumentStore
    repository: LedgerRepository
    audit_logger: AuditLogger
    validator: FormValidator
    session: SessionFlow
    accounts: AccountsFlow
    transactions: TransactionsPageFlow
    settings: SettingsFlow
    overview: OverviewFlow
    backend: str

    def new_auth_service(self) -> AuthService:
        """One per browser session."""
        return AuthService(self.store, self.repository)

    def new_transaction_form(self) -> TransactionFormFlow:
        """One per opened form."""
        return TransactionFormFlow(self.repository, self.validator, self.audit_logger)


def _build_backend(backend: str) -> tuple[DocumentStore, Optional[AuditStorageInterface], str]:
    if backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.get_spreadsheet()
            return (
                GoogleSheetsDocumentStore(sheets_client),
                GoogleSheetsAuditStorage(sheets_client),
                "google_sheets",
            )
        except Exception as e:
            # Storage not configured - continue with the in-memory store
            logger.warning("storage_not_configured", backend=backend, error=str(e))
    return InMemoryDocumentStore(), InMemoryAuditStorage(), "memory"


def create_app_components(
    backend: Optional[str] = None,
    store: Optional[DocumentStore] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        backend: "memory" or "google_sheets"; defaults to the
                 STORAGE_BACKEND setting
        store: Use this store instead of building one (tests)
        audit_storage: Audit storage to pair with `store`

    Returns:
        AppComponents
    """
    if store is not None:
        chosen = "custom"
    else:
        store, audit_storage, chosen = _build_backend(
            backend or get_settings().app.storage_backend
        )

    repository = LedgerRepository(store)
    audit_logger = AuditLogger(audit_storage)
    validator = FormValidator()

    return AppComponents(
        store=store,
        repository=repository,
        audit_logger=audit_logger,
        validator=validator,
        session=SessionFlow(repository, validator, audit_logger),
        accounts=AccountsFlow(repository, validator, audit_logger),
        transactions=TransactionsPageFlow(repository, validator, audit_logger),
        settings=SettingsFlow(repository, validator, audit_logger),
        overview=OverviewFlow(repository, validator, audit_logger),
        backend=chosen,
    )
