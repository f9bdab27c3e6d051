"""
In-Memory Storage Implementation

Used for tests and for running the app locally without Google credentials.
Documents are deep-copied on the way in and out so callers can never
mutate stored state by accident.
"""

import copy
from typing import Any, Optional

from accounts_keeper.models.audit import AuditEvent
from accounts_keeper.services.storage.interface import (
    AuditStorageInterface,
    BatchCommitError,
    DocumentStore,
    NotFoundError,
    StoredDocument,
    WriteBatch,
    new_document_id,
)


def _matches(data: dict, filters: Optional[dict[str, Any]]) -> bool:
    if not filters:
        return True
    return all(data.get(key) == value for key, value in filters.items())


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed document store.

    Batches are applied to a staged copy and swapped in only when every
    operation succeeded.
    """

    def __init__(self):
        self._collections: dict[str, dict[str, dict]] = {}

    def _collection(self, name: str) -> dict[str, dict]:
        return self._collections.setdefault(name, {})

    async def query(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[StoredDocument]:
        return [
            StoredDocument(doc_id, copy.deepcopy(data))
            for doc_id, data in self._collection(collection).items()
            if _matches(data, filters)
        ]

    async def get(self, collection: str, doc_id: str) -> Optional[StoredDocument]:
        data = self._collection(collection).get(doc_id)
        if data is None:
            return None
        return StoredDocument(doc_id, copy.deepcopy(data))

    async def add(self, collection: str, data: dict) -> str:
        doc_id = new_document_id()
        self._collection(collection)[doc_id] = copy.deepcopy(data)
        return doc_id

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict,
        merge: bool = False,
    ) -> None:
        docs = self._collection(collection)
        if merge and doc_id in docs:
            docs[doc_id].update(copy.deepcopy(data))
        else:
            docs[doc_id] = copy.deepcopy(data)

    async def update(self, collection: str, doc_id: str, data: dict) -> None:
        docs = self._collection(collection)
        if doc_id not in docs:
            raise NotFoundError(f"{collection}/{doc_id} not found")
        docs[doc_id].update(copy.deepcopy(data))

    async def delete(self, collection: str, doc_id: str) -> bool:
        return self._collection(collection).pop(doc_id, None) is not None

    async def commit(self, batch: WriteBatch) -> None:
        staged = copy.deepcopy(self._collections)
        try:
            for op in batch.operations:
                docs = staged.setdefault(op.collection, {})
                if op.kind == "set":
                    if op.merge and op.doc_id in docs:
                        docs[op.doc_id].update(copy.deepcopy(op.data))
                    else:
                        docs[op.doc_id] = copy.deepcopy(op.data)
                elif op.kind == "delete":
                    docs.pop(op.doc_id, None)
                else:
                    raise ValueError(f"Unknown batch operation: {op.kind}")
        except Exception as e:
            raise BatchCommitError(f"Failed to commit batch: {e}")
        self._collections = staged

    def count(self, collection: str) -> int:
        """Number of documents in a collection (test helper)."""
        return len(self._collection(collection))


class InMemoryAuditStorage(AuditStorageInterface):
    """Audit log kept in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True
