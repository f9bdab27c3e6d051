"""
Audit Models for Accounts Keeper

Every ledger write and every failure that changes what the user sees
produces an AuditEvent. Events are only ever appended.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    What happened.

    One event type per kind of write, plus failures.
    """
    # Authentication
    USER_SIGNED_UP = "user_signed_up"
    USER_SIGNED_IN = "user_signed_in"
    USER_SIGNED_OUT = "user_signed_out"
    PROFILE_UPDATED = "profile_updated"
    USER_DELETED = "user_deleted"

    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"

    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    EMI_PAYMENTS_SAVED = "emi_payments_saved"
    EMI_RECONCILIATION_DEGRADED = "emi_reconciliation_degraded"

    # Reference data
    DEFAULTS_SEEDED = "defaults_seeded"
    TYPE_SAVED = "type_saved"
    TYPE_DELETED = "type_deleted"
    CATEGORY_SAVED = "category_saved"
    CATEGORY_DELETED = "category_deleted"
    SETTINGS_SAVED = "settings_saved"

    # Export
    DATA_EXPORTED = "data_exported"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """How serious an event is; drives the local log level."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """One entry in the audit trail."""

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # What and how bad
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who and what
    user_id: Optional[str] = Field(
        default=None,
        description="User the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Collection of the entity (e.g., 'accounts', 'transactions')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Document ID of the entity this event relates to"
    )

    # Shared by events from one user action
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one form submission)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Flat keyword arguments for the structlog call.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Row for the audit worksheet.

        Column order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Factory methods for each audited action.

    Usage:
        event = AuditEventBuilder.account_deleted(user_id, account_id, 12)
        event = AuditEventBuilder.emi_payments_saved(user_id, account_id, ids, total)
    """

    @staticmethod
    def user_signed_up(user_id: str, email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_SIGNED_UP,
            user_id=user_id,
            entity_type="users",
            entity_id=user_id,
            description=f"User signed up: {email}",
            is_user_action=True,
        )

    @staticmethod
    def user_deleted(user_id: str, deleted_documents: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_DELETED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="users",
            entity_id=user_id,
            description=f"User and {deleted_documents} documents deleted",
            details={"deleted_documents": deleted_documents},
            is_user_action=True,
        )

    @staticmethod
    def document_saved(
        user_id: str,
        collection: str,
        doc_id: str,
        created: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        if collection == "accounts":
            event_type = AuditEventType.ACCOUNT_CREATED if created else AuditEventType.ACCOUNT_UPDATED
        elif collection == "transactions":
            event_type = AuditEventType.TRANSACTION_CREATED if created else AuditEventType.TRANSACTION_UPDATED
        elif collection == "categories":
            event_type = AuditEventType.CATEGORY_SAVED
        elif collection == "user_settings":
            event_type = AuditEventType.SETTINGS_SAVED
        else:
            event_type = AuditEventType.TYPE_SAVED
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type=collection,
            entity_id=doc_id,
            correlation_id=correlation_id,
            description=f"{'Created' if created else 'Updated'} {collection} document",
            is_user_action=True,
        )

    @staticmethod
    def document_deleted(
        user_id: str,
        collection: str,
        doc_id: str,
    ) -> AuditEvent:
        if collection == "transactions":
            event_type = AuditEventType.TRANSACTION_DELETED
        elif collection == "categories":
            event_type = AuditEventType.CATEGORY_DELETED
        else:
            event_type = AuditEventType.TYPE_DELETED
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type=collection,
            entity_id=doc_id,
            description=f"Deleted {collection} document",
            is_user_action=True,
        )

    @staticmethod
    def account_deleted(
        user_id: str,
        account_id: str,
        transaction_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="accounts",
            entity_id=account_id,
            description=f"Account deleted with {transaction_count} transactions",
            details={"transaction_count": transaction_count},
            is_user_action=True,
        )

    @staticmethod
    def emi_payments_saved(
        user_id: str,
        account_id: str,
        transaction_ids: list[str],
        total: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EMI_PAYMENTS_SAVED,
            user_id=user_id,
            entity_type="accounts",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"{len(transaction_ids)} EMI payments saved, total {total}",
            details={"transaction_ids": transaction_ids, "total": total},
            is_user_action=True,
        )

    @staticmethod
    def emi_reconciliation_degraded(
        user_id: str,
        account_id: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EMI_RECONCILIATION_DEGRADED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="accounts",
            entity_id=account_id,
            description="Unpaid installment lookup failed; showing none",
            error_message=error_message,
        )

    @staticmethod
    def defaults_seeded(
        user_id: str,
        collection: str,
        names: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEFAULTS_SEEDED,
            user_id=user_id,
            entity_type=collection,
            description=f"Seeded {len(names)} default {collection}",
            details={"names": names},
        )

    @staticmethod
    def data_exported(
        user_id: str,
        transaction_count: int,
        category_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_EXPORTED,
            user_id=user_id,
            description="User data exported",
            details={
                "transaction_count": transaction_count,
                "category_count": category_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        user_id: str,
        form: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{form} form rejected with {len(issues)} issues",
            details={"form": form, "issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
