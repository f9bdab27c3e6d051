"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract document-store interface.
This allows us to:
1. Swap Google Sheets for another backend later
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from storage implementation

The interface mirrors what the ledger actually needs from a document
database: equality-filtered reads, get-by-id, insert, set/merge,
partial update, delete and an atomic write batch. Nothing more.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Optional
from uuid import uuid4

from accounts_keeper.models.audit import AuditEvent


# Collection names
ACCOUNTS = "accounts"
ACCOUNT_TYPES = "account_types"
TRANSACTION_TYPES = "transaction_types"
TRANSACTIONS = "transactions"
CATEGORIES = "categories"
USER_SETTINGS = "user_settings"
USERS = "users"

# Field every user-owned document is filtered on
OWNER_FIELD = "userId"


def new_document_id() -> str:
    """Generate a document ID for a new document."""
    return uuid4().hex


class StoredDocument(NamedTuple):
    """A document as read from the store."""
    id: str
    data: dict


@dataclass
class BatchOperation:
    """One pending write in a WriteBatch."""
    kind: str  # "set" or "delete"
    collection: str
    doc_id: str
    data: Optional[dict] = None
    merge: bool = False


@dataclass
class WriteBatch:
    """
    A group of writes committed all-or-nothing.

    Build it with set()/delete(), then pass it to DocumentStore.commit().
    """
    operations: list[BatchOperation] = field(default_factory=list)

    def set(
        self,
        collection: str,
        data: dict,
        doc_id: Optional[str] = None,
        merge: bool = False,
    ) -> str:
        """Queue a set; returns the document ID (generated if not given)."""
        doc_id = doc_id or new_document_id()
        self.operations.append(
            BatchOperation("set", collection, doc_id, dict(data), merge)
        )
        return doc_id

    def delete(self, collection: str, doc_id: str) -> None:
        """Queue a delete."""
        self.operations.append(BatchOperation("delete", collection, doc_id))

    def __len__(self) -> int:
        return len(self.operations)


class DocumentStore(ABC):
    """
    Abstract interface for document storage operations.

    Any backend (Google Sheets, in-memory, ...) must implement these.
    Documents are plain dicts; the `id` is never part of the body.
    """

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[StoredDocument]:
        """
        Read documents whose fields equal every value in `filters`.

        Args:
            collection: Collection name
            filters: Field -> required value. All must match.

        Returns:
            Matching documents, in insertion order

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[StoredDocument]:
        """
        Retrieve a document by ID.

        Returns:
            The document if found, None otherwise
        """
        pass

    @abstractmethod
    async def add(self, collection: str, data: dict) -> str:
        """
        Insert a new document.

        Returns:
            The generated document ID

        Raises:
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict,
        merge: bool = False,
    ) -> None:
        """
        Create or overwrite a document with a known ID.

        With merge=True, existing fields not in `data` are kept.
        """
        pass

    @abstractmethod
    async def update(self, collection: str, doc_id: str, data: dict) -> None:
        """
        Merge `data` into an existing document.

        Raises:
            NotFoundError: If the document doesn't exist
            StorageError: If the update fails
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """
        Delete a document by ID.

        Returns:
            True if a document was deleted
        """
        pass

    @abstractmethod
    async def commit(self, batch: WriteBatch) -> None:
        """
        Apply every operation in the batch atomically.

        Raises:
            BatchCommitError: If the batch could not be applied.
                              No operation is applied in that case.
        """
        pass

    def batch(self) -> WriteBatch:
        """Start a new write batch."""
        return WriteBatch()


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Document not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class BatchCommitError(StorageError):
    """A write batch could not be applied; nothing was written."""
    pass
