"""
Storage Services Package

Provides the abstract persistence interface and its implementations:
an in-memory store for tests and a SQLAlchemy store for the app.
"""

from tally.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from tally.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from tally.services.storage.sql import (
    SQLAlchemyLedgerStorage,
    create_ledger_engine,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "SQLAlchemyLedgerStorage",
    "create_ledger_engine",
]
