"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for ledger storage.
This allows us to:
1. Use a durable local database in the app
2. Use in-memory storage for testing
3. Keep ledger rules decoupled from how rows are kept

The interface is intentionally simple - we're not building a full ORM.
Records are flat pydantic models; relationships are IDs. In particular
there is no implicit cascade: deleting a person with transactions is an
explicit two-step routine (see LedgerService.delete_person) run inside
scope().
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional
from uuid import UUID

from tally.models.ledger import (
    Person,
    PersonSort,
    Transaction,
    TransactionFilter,
    TransactionSort,
)
from tally.models.audit import AuditEvent


class LedgerStorageInterface(ABC):
    """
    Abstract interface for the ledger persistence context.

    Any storage implementation must implement these methods.
    Writes take effect immediately within the current scope.
    """

    @abstractmethod
    def scope(self) -> AbstractContextManager[None]:
        """
        Group several writes into one unit.

        Either every write inside the block is kept or, if the block
        raises, none of them are. Nested scopes join the outer one.
        """
        pass

    @abstractmethod
    def insert_person(self, person: Person) -> Person:
        """
        Store a new person.

        Raises:
            DuplicateError: If a person with the same ID exists
        """
        pass

    @abstractmethod
    def get_person(self, person_id: UUID) -> Optional[Person]:
        """Retrieve a person by ID, or None."""
        pass

    @abstractmethod
    def delete_person(self, person_id: UUID) -> bool:
        """
        Delete a single person row.

        Does NOT touch transactions. Returns False if no such person.
        """
        pass

    @abstractmethod
    def list_people(
        self,
        search: Optional[str] = None,
        sort: PersonSort = PersonSort.NAME,
    ) -> list[Person]:
        """
        List people, optionally filtered by a search text.

        Args:
            search: Matches names (ignoring case) or mobiles (verbatim)
            sort: Display order
        """
        pass

    @abstractmethod
    def insert_transaction(self, transaction: Transaction) -> Transaction:
        """
        Store a new transaction.

        Raises:
            DuplicateError: If a transaction with the same ID exists
        """
        pass

    @abstractmethod
    def update_transaction(self, transaction: Transaction) -> Transaction:
        """
        Overwrite a stored transaction with the given state.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        """Retrieve a transaction by ID, or None."""
        pass

    @abstractmethod
    def delete_transaction(self, transaction_id: UUID) -> bool:
        """Delete one transaction. Returns False if no such transaction."""
        pass

    @abstractmethod
    def delete_transactions_for_person(self, person_id: UUID) -> list[Transaction]:
        """
        Delete every transaction owned by a person.

        Returns:
            The deleted records, so callers can release their images
        """
        pass

    @abstractmethod
    def list_transactions(
        self,
        filter: Optional[TransactionFilter] = None,
        sort: TransactionSort = TransactionSort.DATE_DESC,
    ) -> list[Transaction]:
        """
        List transactions matching a predicate.

        Args:
            filter: Predicate; None returns everything
            sort: Display order
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event to the log. Returns True on success."""
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for one entity, in chronological order."""
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
