"""
Shared fixtures.

Everything runs against the in-memory store; no network access.
"""

import pytest

from accounts_keeper.ledger import LedgerRepository
from accounts_keeper.models import Transaction
from accounts_keeper.services.storage import InMemoryAuditStorage, InMemoryDocumentStore


@pytest.fixture(autouse=True)
def fast_settings(monkeypatch):
    """Cheap bcrypt and the memory backend for every test."""
    monkeypatch.setenv("AUTH_BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("STORAGE_BACKEND", "memory")


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def repository(store):
    return LedgerRepository(store)


def make_transaction(
    txn_id="t1",
    account_id="a1",
    direction="receive",
    date="2024-01-01",
    amount="100",
    user_id="u1",
    **extra,
) -> Transaction:
    """Build a Transaction from stored field names."""
    data = {
        "userId": user_id,
        "accountId": account_id,
        "type": direction,
        "date": date,
        "amount": amount,
    }
    data.update(extra)
    return Transaction.from_document(txn_id, data)
