"""
Audit Models for Tally

Every change to the ledger is logged as an audit event:
who was added, what was lent or borrowed, what was settled or deleted.
This is how the user (or a developer) reconstructs how a balance came to be.

DESIGN DECISION: Audit events are append-only. We never delete or modify them,
even when the person or transaction they describe is deleted.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # People
    PERSON_CREATED = "person_created"
    PERSON_DELETED = "person_deleted"

    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_SETTLED = "transaction_settled"
    TRANSACTION_DELETED = "transaction_deleted"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every ledger mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity ('person' or 'transaction')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g. a person and its cascaded transactions)"
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

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


DESCRIPTION_NAME_LIMIT = 100


def _clip(text: str, limit: int = DESCRIPTION_NAME_LIMIT) -> str:
    """Shorten free text interpolated into a description; details keep the full value."""
    return text if len(text) <= limit else text[: limit - 3] + "..."


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.person_created(person_id, name, correlation_id)
        event = AuditEventBuilder.transaction_settled(txn_id, "Cash", correlation_id)
    """

    @staticmethod
    def person_created(
        person_id: UUID,
        name: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_CREATED,
            entity_type="person",
            entity_id=person_id,
            correlation_id=correlation_id,
            description=f"Person added: {_clip(name)}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def person_deleted(
        person_id: UUID,
        name: str,
        transactions_removed: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSON_DELETED,
            entity_type="person",
            entity_id=person_id,
            correlation_id=correlation_id,
            description=f"Person deleted: {_clip(name)} ({transactions_removed} transactions removed)",
            details={
                "name": name,
                "transactions_removed": transactions_removed,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_created(
        transaction_id: UUID,
        person_id: UUID,
        transaction_type: str,
        amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"{transaction_type} recorded: {amount}",
            details={
                "person_id": str(person_id),
                "type": transaction_type,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_settled(
        transaction_id: UUID,
        mode: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SETTLED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction settled via {mode}",
            details={"mode": mode},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: UUID,
        was_completed: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            details={"was_completed": was_completed},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        code: str,
        field: str,
        message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Validation failed on {_clip(field)}",
            error_code=code,
            error_message=message,
            details={"field": field},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {_clip(error_type)}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
