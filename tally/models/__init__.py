"""
Data Models Package

This package contains all Pydantic models used in Tally.
All data flowing through the system must conform to these schemas.
"""

from tally.models.ledger import (
    AlreadySettledError,
    BalanceSummary,
    Contact,
    DashboardSummary,
    LedgerError,
    PaymentMode,
    Person,
    PersonBalance,
    PersonSort,
    Transaction,
    TransactionFilter,
    TransactionSort,
    TransactionType,
    person_matches_search,
    sort_people,
    sort_transactions,
)
from tally.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "AlreadySettledError",
    "BalanceSummary",
    "Contact",
    "DashboardSummary",
    "LedgerError",
    "PaymentMode",
    "Person",
    "PersonBalance",
    "PersonSort",
    "Transaction",
    "TransactionFilter",
    "TransactionSort",
    "TransactionType",
    "person_matches_search",
    "sort_people",
    "sort_transactions",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
