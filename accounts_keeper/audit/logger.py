"""
Audit Logger

Every write to the ledger leaves an audit event, so a failed save or a
destructive action can be traced afterwards.

Events go to the structlog JSON log first. When an audit store is configured
they are appended there too; a failing store is reported in the local log
and never propagates to the caller. Events from one user action share a
correlation ID.
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from accounts_keeper.models.audit import AuditEvent, AuditEventBuilder
from accounts_keeper.services.storage.interface import AuditStorageInterface


# JSON lines through the stdlib logging tree
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Writes audit events to the local log and, optionally, an audit store.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Where events are appended. Without one, events only
                reach the local log.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Record one event.

        The local log entry is unconditional. Returns False only when an
        audit store is configured and the append failed.
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # the audit trail must not break the action being audited
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_user_signed_up(self, user_id: str, email: str) -> None:
        await self.log(AuditEventBuilder.user_signed_up(user_id, email))

    async def log_user_deleted(self, user_id: str, deleted_documents: int) -> None:
        await self.log(AuditEventBuilder.user_deleted(user_id, deleted_documents))

    async def log_document_saved(
        self,
        user_id: str,
        collection: str,
        doc_id: str,
        created: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a create or update of a single document."""
        event = AuditEventBuilder.document_saved(
            user_id=user_id,
            collection=collection,
            doc_id=doc_id,
            created=created,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_document_deleted(
        self,
        user_id: str,
        collection: str,
        doc_id: str,
    ) -> None:
        await self.log(AuditEventBuilder.document_deleted(user_id, collection, doc_id))

    async def log_account_deleted(
        self,
        user_id: str,
        account_id: str,
        transaction_count: int,
    ) -> None:
        """Log an account deleted together with its transactions."""
        event = AuditEventBuilder.account_deleted(
            user_id=user_id,
            account_id=account_id,
            transaction_count=transaction_count,
        )
        await self.log(event)

    async def log_emi_payments_saved(
        self,
        user_id: str,
        account_id: str,
        transaction_ids: list[str],
        total: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.emi_payments_saved(
            user_id=user_id,
            account_id=account_id,
            transaction_ids=transaction_ids,
            total=total,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_emi_reconciliation_degraded(
        self,
        user_id: str,
        account_id: str,
        error_message: str,
    ) -> None:
        """Log an unpaid-installment lookup that fell back to an empty list."""
        event = AuditEventBuilder.emi_reconciliation_degraded(
            user_id=user_id,
            account_id=account_id,
            error_message=error_message,
        )
        await self.log(event)

    async def log_defaults_seeded(
        self,
        user_id: str,
        collection: str,
        names: list[str],
    ) -> None:
        await self.log(AuditEventBuilder.defaults_seeded(user_id, collection, names))

    async def log_data_exported(
        self,
        user_id: str,
        transaction_count: int,
        category_count: int,
    ) -> None:
        event = AuditEventBuilder.data_exported(
            user_id=user_id,
            transaction_count=transaction_count,
            category_count=category_count,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        user_id: str,
        form: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a form submission rejected by validation."""
        event = AuditEventBuilder.validation_failed(
            user_id=user_id,
            form=form,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed read or write."""
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    New correlation ID for one user action, such as a form submission.

    Hand it to every audit call the action makes.
    """
    return uuid4()
