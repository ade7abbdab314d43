"""
In-Memory Storage Implementation

Keeps records in dictionaries keyed by ID. Used by the tests and by the
app when no database is configured (nothing survives a restart).

Records are copied on the way in and on the way out, so callers can never
mutate stored state without going through update_transaction().
"""

from contextlib import contextmanager
from typing import Iterator, Optional
from uuid import UUID

from tally.models.audit import AuditEvent
from tally.models.ledger import (
    Person,
    PersonSort,
    Transaction,
    TransactionFilter,
    TransactionSort,
    person_matches_search,
    sort_people,
    sort_transactions,
)
from tally.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dictionary-backed ledger storage."""

    def __init__(self):
        self._people: dict[UUID, Person] = {}
        self._transactions: dict[UUID, Transaction] = {}
        self._scope_depth = 0

    @contextmanager
    def scope(self) -> Iterator[None]:
        """Snapshot on entry to the outermost scope, restore it on error."""
        if self._scope_depth:
            self._scope_depth += 1
            try:
                yield
            finally:
                self._scope_depth -= 1
            return

        people = dict(self._people)
        transactions = dict(self._transactions)
        self._scope_depth = 1
        try:
            yield
        except BaseException:
            self._people = people
            self._transactions = transactions
            raise
        finally:
            self._scope_depth = 0

    # People

    def insert_person(self, person: Person) -> Person:
        if person.id in self._people:
            raise DuplicateError(f"Person already exists: {person.id}")
        self._people[person.id] = person.model_copy(deep=True)
        return person

    def get_person(self, person_id: UUID) -> Optional[Person]:
        person = self._people.get(person_id)
        return person.model_copy(deep=True) if person else None

    def delete_person(self, person_id: UUID) -> bool:
        return self._people.pop(person_id, None) is not None

    def list_people(
        self,
        search: Optional[str] = None,
        sort: PersonSort = PersonSort.NAME,
    ) -> list[Person]:
        people = [
            p.model_copy(deep=True)
            for p in self._people.values()
            if person_matches_search(p, search)
        ]
        return sort_people(people, sort)

    # Transactions

    def insert_transaction(self, transaction: Transaction) -> Transaction:
        if transaction.id in self._transactions:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        self._transactions[transaction.id] = transaction.model_copy(deep=True)
        return transaction

    def update_transaction(self, transaction: Transaction) -> Transaction:
        if transaction.id not in self._transactions:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        self._transactions[transaction.id] = transaction.model_copy(deep=True)
        return transaction

    def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        txn = self._transactions.get(transaction_id)
        return txn.model_copy(deep=True) if txn else None

    def delete_transaction(self, transaction_id: UUID) -> bool:
        return self._transactions.pop(transaction_id, None) is not None

    def delete_transactions_for_person(self, person_id: UUID) -> list[Transaction]:
        removed = [t for t in self._transactions.values() if t.person_id == person_id]
        for txn in removed:
            del self._transactions[txn.id]
        return removed

    def list_transactions(
        self,
        filter: Optional[TransactionFilter] = None,
        sort: TransactionSort = TransactionSort.DATE_DESC,
    ) -> list[Transaction]:
        transactions = [
            t.model_copy(deep=True)
            for t in self._transactions.values()
            if filter is None or filter.matches(t)
        ]
        return sort_transactions(transactions, sort)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
