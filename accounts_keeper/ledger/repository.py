"""
Ledger Repository

Every read and write of ledger documents goes through here.

DESIGN DECISION: The user ID is an explicit argument on every method.
The repository holds no session state, so the same instance serves any
number of users and nothing can leak between them.

Multi-document writes (cascade deletes, EMI settlement, seeding of
defaults) always go through one WriteBatch so they land all-or-nothing.
"""

from datetime import datetime
from typing import Any, Optional, Type, TypeVar

import structlog
from pydantic import ValidationError

from accounts_keeper.config import get_settings
from accounts_keeper.models.ledger import (
    Account,
    AccountType,
    AccountTypeCategory,
    Category,
    Installment,
    LedgerDocument,
    Transaction,
    TransactionDirection,
    TransactionType,
    TransactionTypeCategory,
    UserSettings,
)
from accounts_keeper.models.session import ExportBundle, UserProfile
from accounts_keeper.services.storage.interface import (
    ACCOUNT_TYPES,
    ACCOUNTS,
    CATEGORIES,
    OWNER_FIELD,
    TRANSACTION_TYPES,
    TRANSACTIONS,
    USER_SETTINGS,
    DocumentStore,
    NotFoundError,
    WriteBatch,
)


logger = structlog.get_logger(__name__)

DocumentT = TypeVar("DocumentT", bound=LedgerDocument)


def default_user_settings() -> UserSettings:
    """Settings for users who haven't picked a currency yet."""
    return UserSettings.for_currency(get_settings().app.default_currency)


# =============================================================================
# DEFAULTS - seeded for new users
# =============================================================================

DEFAULT_ACCOUNT_TYPES: list[tuple[str, AccountTypeCategory]] = [
    ("Cash", AccountTypeCategory.ASSET),
    ("Bank Account", AccountTypeCategory.ASSET),
    ("Savings Account", AccountTypeCategory.ASSET),
    ("Accounts Receivable", AccountTypeCategory.ASSET),
    ("Loan Receivable", AccountTypeCategory.ASSET),
    ("Accounts Payable", AccountTypeCategory.LIABILITY),
    ("Loan Payable", AccountTypeCategory.LIABILITY),
    ("Credit Card", AccountTypeCategory.LIABILITY),
]

DEFAULT_TRANSACTION_TYPES: dict[TransactionTypeCategory, list[str]] = {
    TransactionTypeCategory.RECEIPT: ["Savings", "Loan"],
    TransactionTypeCategory.PAYMENT: ["Credit", "Repayment"],
}

DEFAULT_CATEGORIES: list[tuple[str, str]] = [
    ("Food", "#28a745"),
    ("Transport", "#007bff"),
    ("Entertainment", "#ffc107"),
    ("Salary", "#17a2b8"),
    ("Bills", "#dc3545"),
]

# Collections holding documents owned through the userId field
USER_OWNED_COLLECTIONS = (
    ACCOUNTS,
    ACCOUNT_TYPES,
    TRANSACTION_TYPES,
    TRANSACTIONS,
    CATEGORIES,
)


def _now() -> datetime:
    return datetime.utcnow()


class LedgerRepository:
    """
    User-scoped access to the ledger collections.

    Loaders return models; documents that fail validation are skipped
    with a warning rather than failing the whole page.
    Storage errors propagate to the caller.
    """

    def __init__(self, store: DocumentStore):
        self._store = store

    @property
    def store(self) -> DocumentStore:
        return self._store

    # =========================================================================
    # INTERNALS
    # =========================================================================

    async def _load(
        self,
        collection: str,
        model: Type[DocumentT],
        user_id: str,
        **filters: Any,
    ) -> list[DocumentT]:
        documents = await self._store.query(
            collection, {OWNER_FIELD: user_id, **filters}
        )
        items = []
        for document in documents:
            try:
                items.append(model.from_document(document.id, document.data))
            except ValidationError as e:
                # Skip malformed documents
                logger.warning(
                    "malformed_document_skipped",
                    collection=collection,
                    doc_id=document.id,
                    errors=e.error_count(),
                )
        return items

    async def _get_owned(
        self,
        collection: str,
        model: Type[DocumentT],
        user_id: str,
        doc_id: str,
    ) -> Optional[DocumentT]:
        document = await self._store.get(collection, doc_id)
        if document is None or document.data.get(OWNER_FIELD) != user_id:
            return None
        try:
            return model.from_document(document.id, document.data)
        except ValidationError:
            logger.warning("malformed_document_skipped", collection=collection, doc_id=doc_id)
            return None

    async def _require_owned(self, collection: str, user_id: str, doc_id: str) -> None:
        document = await self._store.get(collection, doc_id)
        if document is None or document.data.get(OWNER_FIELD) != user_id:
            raise NotFoundError(f"{collection}/{doc_id} not found")

    async def _update_owned(
        self,
        collection: str,
        user_id: str,
        doc_id: str,
        changes: dict,
    ) -> None:
        await self._require_owned(collection, user_id, doc_id)
        await self._store.update(
            collection,
            doc_id,
            {**changes, "updatedAt": _now().isoformat()},
        )

    async def _delete_owned(self, collection: str, user_id: str, doc_id: str) -> bool:
        await self._require_owned(collection, user_id, doc_id)
        return await self._store.delete(collection, doc_id)

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    async def list_accounts(self, user_id: str) -> list[Account]:
        accounts = await self._load(ACCOUNTS, Account, user_id)
        return sorted(accounts, key=lambda a: a.name.lower())

    async def get_account(self, user_id: str, account_id: str) -> Optional[Account]:
        """Get an account, or None if it doesn't exist or isn't the user's."""
        return await self._get_owned(ACCOUNTS, Account, user_id, account_id)

    async def create_account(
        self,
        user_id: str,
        name: str,
        account_type_id: str,
        description: str = "",
    ) -> str:
        account = Account(
            user_id=user_id,
            name=name,
            account_type_id=account_type_id,
            description=description,
            created_at=_now(),
        )
        return await self._store.add(ACCOUNTS, account.to_document())

    async def update_account(
        self,
        user_id: str,
        account_id: str,
        name: str,
        account_type_id: str,
        description: str = "",
    ) -> None:
        await self._update_owned(ACCOUNTS, user_id, account_id, {
            "name": name,
            "type": account_type_id,
            "description": description,
        })

    async def delete_account(self, user_id: str, account_id: str) -> int:
        """
        Delete an account and all of its transactions in one batch.

        Returns:
            Number of transactions deleted with it

        Raises:
            NotFoundError: If the account isn't the user's
            BatchCommitError: If the batch failed (nothing was deleted)
        """
        await self._require_owned(ACCOUNTS, user_id, account_id)
        transactions = await self._store.query(
            TRANSACTIONS, {OWNER_FIELD: user_id, "accountId": account_id}
        )

        batch = self._store.batch()
        for document in transactions:
            batch.delete(TRANSACTIONS, document.id)
        batch.delete(ACCOUNTS, account_id)
        await self._store.commit(batch)

        return len(transactions)

    # =========================================================================
    # ACCOUNT TYPES
    # =========================================================================

    async def list_account_types(self, user_id: str) -> list[AccountType]:
        types = await self._load(ACCOUNT_TYPES, AccountType, user_id)
        return sorted(types, key=lambda t: t.name.lower())

    async def ensure_default_account_types(self, user_id: str) -> list[AccountType]:
        """
        Load account types, seeding the defaults if the user has none.

        The defaults are written in one batch.
        """
        types = await self.list_account_types(user_id)
        if types:
            return types

        batch = self._store.batch()
        now = _now()
        for name, category in DEFAULT_ACCOUNT_TYPES:
            seeded = AccountType(user_id=user_id, name=name, category=category, created_at=now)
            batch.set(ACCOUNT_TYPES, seeded.to_document())
        await self._store.commit(batch)
        logger.info("account_types_seeded", user_id=user_id, count=len(batch))

        return await self.list_account_types(user_id)

    async def save_account_type(
        self,
        user_id: str,
        name: str,
        category: Optional[AccountTypeCategory] = None,
        type_id: Optional[str] = None,
    ) -> str:
        """Create an account type, or update it when type_id is given."""
        if type_id:
            await self._update_owned(ACCOUNT_TYPES, user_id, type_id, {
                "name": name,
                "category": AccountTypeCategory(category).value if category else None,
            })
            return type_id
        account_type = AccountType(user_id=user_id, name=name, category=category, created_at=_now())
        return await self._store.add(ACCOUNT_TYPES, account_type.to_document())

    async def delete_account_type(self, user_id: str, type_id: str) -> bool:
        return await self._delete_owned(ACCOUNT_TYPES, user_id, type_id)

    # =========================================================================
    # TRANSACTION TYPES
    # =========================================================================

    async def list_transaction_types(
        self,
        user_id: str,
        category: Optional[TransactionTypeCategory] = None,
    ) -> list[TransactionType]:
        if category is None:
            types = await self._load(TRANSACTION_TYPES, TransactionType, user_id)
        else:
            types = await self._load(
                TRANSACTION_TYPES, TransactionType, user_id,
                category=TransactionTypeCategory(category).value,
            )
        return sorted(types, key=lambda t: (t.category.value, t.name.lower()))

    async def ensure_default_transaction_types(self, user_id: str) -> list[TransactionType]:
        """
        Load transaction types, seeding defaults for each category
        (receipt, payment) that has none. One batch for all of them.
        """
        types = await self.list_transaction_types(user_id)
        present = {t.category for t in types}

        batch = self._store.batch()
        now = _now()
        for category, names in DEFAULT_TRANSACTION_TYPES.items():
            if category in present:
                continue
            for name in names:
                seeded = TransactionType(user_id=user_id, name=name, category=category, created_at=now)
                batch.set(TRANSACTION_TYPES, seeded.to_document())

        if not len(batch):
            return types

        await self._store.commit(batch)
        logger.info("transaction_types_seeded", user_id=user_id, count=len(batch))
        return await self.list_transaction_types(user_id)

    async def save_transaction_type(
        self,
        user_id: str,
        name: str,
        category: TransactionTypeCategory,
        type_id: Optional[str] = None,
    ) -> str:
        category = TransactionTypeCategory(category)
        if type_id:
            await self._update_owned(TRANSACTION_TYPES, user_id, type_id, {
                "name": name,
                "category": category.value,
            })
            return type_id
        transaction_type = TransactionType(user_id=user_id, name=name, category=category, created_at=_now())
        return await self._store.add(TRANSACTION_TYPES, transaction_type.to_document())

    async def delete_transaction_type(self, user_id: str, type_id: str) -> bool:
        return await self._delete_owned(TRANSACTION_TYPES, user_id, type_id)

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def list_transactions(
        self,
        user_id: str,
        account_id: Optional[str] = None,
    ) -> list[Transaction]:
        """The user's transactions, newest date first."""
        if account_id:
            transactions = await self._load(TRANSACTIONS, Transaction, user_id, accountId=account_id)
        else:
            transactions = await self._load(TRANSACTIONS, Transaction, user_id)
        return sorted(transactions, key=lambda t: t.transaction_date, reverse=True)

    async def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        return await self._get_owned(TRANSACTIONS, Transaction, user_id, transaction_id)

    async def create_transaction(self, transaction: Transaction) -> str:
        """Insert a transaction. Its user_id decides the owner."""
        transaction = transaction.model_copy(update={"created_at": _now(), "id": None})
        return await self._store.add(TRANSACTIONS, transaction.to_document())

    async def update_transaction(
        self,
        user_id: str,
        transaction_id: str,
        changes: dict,
    ) -> None:
        """
        Apply a partial update (stored field names) and stamp updatedAt.

        Raises:
            NotFoundError: If the transaction isn't the user's
        """
        changes = {k: v for k, v in changes.items() if k not in ("id", OWNER_FIELD)}
        await self._update_owned(TRANSACTIONS, user_id, transaction_id, changes)

    async def delete_transaction(self, user_id: str, transaction_id: str) -> bool:
        return await self._delete_owned(TRANSACTIONS, user_id, transaction_id)

    async def save_emi_payments(
        self,
        user_id: str,
        account_id: str,
        sub_type: str,
        installments: list[Installment],
        description: str = "",
    ) -> list[str]:
        """
        Record one payment per selected installment, in one batch.

        Each payment carries the installment's due date and amount, so
        the installment reconciles as paid afterwards.

        Returns:
            IDs of the created transactions, in installment order
        """
        batch = self._store.batch()
        ids = []
        now = _now()
        for installment in installments:
            payment = Transaction(
                user_id=user_id,
                account_id=account_id,
                direction=TransactionDirection.PAY,
                sub_type=sub_type,
                amount=installment.amount,
                description=description or f"EMI Payment - {installment.date}",
                transaction_date=installment.date,
                is_emi_payment=True,
                created_at=now,
            )
            ids.append(batch.set(TRANSACTIONS, payment.to_document()))
        await self._store.commit(batch)
        return ids

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def list_categories(self, user_id: str) -> list[Category]:
        return await self._load(CATEGORIES, Category, user_id)

    def stage_default_categories(self, user_id: str, batch: WriteBatch) -> list[str]:
        """Queue the default categories onto a batch; returns their names."""
        now = _now()
        for name, color in DEFAULT_CATEGORIES:
            category = Category(user_id=user_id, name=name, color=color, created_at=now)
            batch.set(CATEGORIES, category.to_document())
        return [name for name, _ in DEFAULT_CATEGORIES]

    async def create_default_categories(self, user_id: str) -> list[str]:
        batch = self._store.batch()
        names = self.stage_default_categories(user_id, batch)
        await self._store.commit(batch)
        return names

    async def save_category(
        self,
        user_id: str,
        name: str,
        color: str = "#007bff",
        category_id: Optional[str] = None,
    ) -> str:
        if category_id:
            await self._update_owned(CATEGORIES, user_id, category_id, {"name": name, "color": color})
            return category_id
        category = Category(user_id=user_id, name=name, color=color, created_at=_now())
        return await self._store.add(CATEGORIES, category.to_document())

    async def delete_category(self, user_id: str, category_id: str) -> bool:
        return await self._delete_owned(CATEGORIES, user_id, category_id)

    # =========================================================================
    # USER SETTINGS
    # =========================================================================

    async def get_user_settings(self, user_id: str) -> UserSettings:
        """The user's settings, or the defaults (INR) if none are stored."""
        document = await self._store.get(USER_SETTINGS, user_id)
        if document is None:
            return default_user_settings()
        try:
            return UserSettings.model_validate(document.data)
        except ValidationError:
            logger.warning("malformed_settings_ignored", user_id=user_id)
            return default_user_settings()

    async def save_user_settings(self, user_id: str, settings: UserSettings) -> None:
        await self._store.set(
            USER_SETTINGS,
            user_id,
            {**settings.to_document(), "updatedAt": _now().isoformat()},
            merge=True,
        )

    # =========================================================================
    # EXPORT & DELETION
    # =========================================================================

    async def _raw_documents(self, collection: str, user_id: str) -> list[dict]:
        documents = await self._store.query(collection, {OWNER_FIELD: user_id})
        return [{"id": d.id, **d.data} for d in documents]

    async def build_export(self, user: UserProfile) -> ExportBundle:
        """
        Collect the user's own settings, transactions and categories.

        Documents are exported as stored, without model validation, so
        an entry the app can't read is still in the export.
        """
        return ExportBundle(
            user={"email": user.email, "displayName": user.display_name},
            settings=await self.get_user_settings(user.uid),
            transactions=await self._raw_documents(TRANSACTIONS, user.uid),
            categories=await self._raw_documents(CATEGORIES, user.uid),
        )

    async def stage_user_data_deletion(self, user_id: str, batch: WriteBatch) -> int:
        """
        Queue deletion of every document the user owns.

        Returns:
            Number of documents queued
        """
        count = 0
        for collection in USER_OWNED_COLLECTIONS:
            for document in await self._store.query(collection, {OWNER_FIELD: user_id}):
                batch.delete(collection, document.id)
                count += 1
        if await self._store.get(USER_SETTINGS, user_id) is not None:
            batch.delete(USER_SETTINGS, user_id)
            count += 1
        return count

    async def delete_all_user_data(self, user_id: str) -> int:
        batch = self._store.batch()
        count = await self.stage_user_data_deletion(user_id, batch)
        await self._store.commit(batch)
        return count
