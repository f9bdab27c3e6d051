"""
Storage Services Package

Provides the abstract document-store interface and its implementations.
Google Sheets is the hosted backend; the in-memory store backs tests and
local runs.
"""

from accounts_keeper.services.storage.interface import (
    ACCOUNT_TYPES,
    ACCOUNTS,
    CATEGORIES,
    OWNER_FIELD,
    TRANSACTION_TYPES,
    TRANSACTIONS,
    USER_SETTINGS,
    USERS,
    AuditStorageInterface,
    BatchCommitError,
    BatchOperation,
    ConnectionError,
    DocumentStore,
    NotFoundError,
    StorageError,
    StoredDocument,
    WriteBatch,
    new_document_id,
)
from accounts_keeper.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryDocumentStore,
)
from accounts_keeper.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
)

__all__ = [
    # Collections
    "ACCOUNT_TYPES",
    "ACCOUNTS",
    "CATEGORIES",
    "OWNER_FIELD",
    "TRANSACTION_TYPES",
    "TRANSACTIONS",
    "USER_SETTINGS",
    "USERS",
    # Interfaces
    "AuditStorageInterface",
    "BatchOperation",
    "DocumentStore",
    "StoredDocument",
    "WriteBatch",
    "new_document_id",
    # Exceptions
    "BatchCommitError",
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryDocumentStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
]
