"""
Audit Logger

DESIGN DECISION: Every change to the ledger is logged.
This provides:
1. Traceability of how each balance came to be
2. Debugging capability
3. A history the user can browse

The audit logger:
- Always writes a structured local log line
- Optionally appends the event to an audit store
- Never lets a failing audit store break a ledger operation
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from tally.models.audit import AuditEvent, AuditEventBuilder
from tally.services.storage import AuditStorageInterface


# Configure structlog for local logging
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
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store, if one is configured (for the activity view)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("tally.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
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
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_person_created(
        self,
        person_id: UUID,
        name: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.person_created(
            person_id=person_id,
            name=name,
            correlation_id=correlation_id,
        ))

    def log_person_deleted(
        self,
        person_id: UUID,
        name: str,
        transactions_removed: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.person_deleted(
            person_id=person_id,
            name=name,
            transactions_removed=transactions_removed,
            correlation_id=correlation_id,
        ))

    def log_transaction_created(
        self,
        transaction_id: UUID,
        person_id: UUID,
        transaction_type: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.transaction_created(
            transaction_id=transaction_id,
            person_id=person_id,
            transaction_type=transaction_type,
            amount=amount,
            correlation_id=correlation_id,
        ))

    def log_transaction_settled(
        self,
        transaction_id: UUID,
        mode: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.transaction_settled(
            transaction_id=transaction_id,
            mode=mode,
            correlation_id=correlation_id,
        ))

    def log_transaction_deleted(
        self,
        transaction_id: UUID,
        was_completed: bool,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            was_completed=was_completed,
            correlation_id=correlation_id,
        ))

    def log_validation_failed(
        self,
        code: str,
        field: str,
        message: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.validation_failed(
            code=code,
            field=field,
            message=message,
            correlation_id=correlation_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g. deleting a person).
    Pass it through all subsequent operations.
    """
    return uuid4()
