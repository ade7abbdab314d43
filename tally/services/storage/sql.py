"""
SQLAlchemy Storage Implementation

DESIGN DECISION: The durable ledger lives in a local SQLite file, accessed
through SQLAlchemy:
1. Survives app restarts with no server to run
2. Real transactions, so a cascade delete is all-or-nothing
3. The same code would run against another SQL database if ever needed

TRADEOFFS:
- Amounts are stored as decimal strings, not SQL NUMERIC. SQLite has no
  exact decimal type and would round-trip through float.
- Tables are created on first use; there are no migrations.
- People search is applied in Python so name matching ignores case the
  same way for every script, not just ASCII.

There is no ORM relationship or cascade between the tables.
Foreign keys are enforced, so a person cannot be deleted while
transactions still reference it; LedgerService removes them first.
"""

from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator, Optional
from uuid import UUID

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    String,
    Text,
    create_engine,
    delete,
    event,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    sessionmaker,
)
from sqlalchemy.pool import StaticPool

from tally.models.ledger import (
    PaymentMode,
    Person,
    PersonSort,
    Transaction,
    TransactionFilter,
    TransactionSort,
    TransactionType,
    person_matches_search,
    sort_people,
    sort_transactions,
)
from tally.services.storage.interface import (
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


class Base(DeclarativeBase):
    pass


class PersonRow(Base):
    __tablename__ = "persons"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    mobile: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    relationship: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class TransactionRow(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    person_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("persons.id"), nullable=False, index=True
    )
    amount: Mapped[str] = mapped_column(String(40), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    mode: Mapped[str] = mapped_column(String(16), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    return_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    record_image_key: Mapped[Optional[str]] = mapped_column(String(64))
    note: Mapped[Optional[str]] = mapped_column(Text)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completion_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    completion_mode: Mapped[Optional[str]] = mapped_column(String(16))
    completion_proof_image_key: Mapped[Optional[str]] = mapped_column(String(64))


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_ledger_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Build an engine for the ledger database.

    In-memory SQLite URLs get a single shared connection, otherwise every
    session would see its own empty database.
    """
    kwargs = {"echo": echo, "connect_args": {"check_same_thread": False}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **kwargs)
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


class SQLAlchemyLedgerStorage(LedgerStorageInterface):
    """
    SQL implementation of ledger storage.

    One row per person, one row per transaction. Image bytes are not
    stored here, only their blob keys.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        self._active: Optional[Session] = None
        try:
            Base.metadata.create_all(engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to initialise ledger database: {e}") from e

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "SQLAlchemyLedgerStorage":
        return cls(create_ledger_engine(database_url, echo=echo))

    @contextmanager
    def scope(self) -> Iterator[None]:
        """One database transaction for everything inside the block."""
        if self._active is not None:
            yield
            return

        try:
            with self._session_factory.begin() as session:
                self._active = session
                try:
                    yield
                finally:
                    self._active = None
        except IntegrityError as e:
            raise StorageError(f"Integrity violation: {e.orig}") from e
        except SQLAlchemyError as e:
            raise StorageError(f"Database error: {e}") from e

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """The scope's session if one is open, else a short-lived one."""
        if self._active is not None:
            yield self._active
            return

        try:
            with self._session_factory.begin() as session:
                yield session
        except IntegrityError as e:
            raise StorageError(f"Integrity violation: {e.orig}") from e
        except SQLAlchemyError as e:
            raise StorageError(f"Database error: {e}") from e

    # Row conversion

    def _person_to_row(self, person: Person) -> PersonRow:
        return PersonRow(
            id=str(person.id),
            name=person.name,
            mobile=person.mobile,
            relationship=person.relationship,
            created_at=person.created_at,
        )

    def _row_to_person(self, row: PersonRow) -> Person:
        return Person(
            id=UUID(row.id),
            name=row.name,
            mobile=row.mobile,
            relationship=row.relationship,
            created_at=row.created_at,
        )

    def _copy_transaction_to_row(self, txn: Transaction, row: TransactionRow) -> TransactionRow:
        row.person_id = str(txn.person_id) if txn.person_id else None
        row.amount = str(txn.amount)
        row.date = txn.date
        row.mode = txn.mode.value
        row.type = txn.type.value
        row.return_date = txn.return_date
        row.record_image_key = txn.record_image_key
        row.note = txn.note
        row.is_completed = txn.is_completed
        row.completion_date = txn.completion_date
        row.completion_mode = txn.completion_mode.value if txn.completion_mode else None
        row.completion_proof_image_key = txn.completion_proof_image_key
        return row

    def _row_to_transaction(self, row: TransactionRow) -> Transaction:
        return Transaction(
            id=UUID(row.id),
            person_id=UUID(row.person_id) if row.person_id else None,
            amount=Decimal(row.amount),
            date=row.date,
            mode=PaymentMode(row.mode),
            type=TransactionType(row.type),
            return_date=row.return_date,
            record_image_key=row.record_image_key,
            note=row.note,
            is_completed=row.is_completed,
            completion_date=row.completion_date,
            completion_mode=PaymentMode(row.completion_mode) if row.completion_mode else None,
            completion_proof_image_key=row.completion_proof_image_key,
        )

    # People

    def insert_person(self, person: Person) -> Person:
        with self._session() as session:
            if session.get(PersonRow, str(person.id)) is not None:
                raise DuplicateError(f"Person already exists: {person.id}")
            session.add(self._person_to_row(person))
            session.flush()
        return person

    def get_person(self, person_id: UUID) -> Optional[Person]:
        with self._session() as session:
            row = session.get(PersonRow, str(person_id))
            return self._row_to_person(row) if row else None

    def delete_person(self, person_id: UUID) -> bool:
        with self._session() as session:
            result = session.execute(
                delete(PersonRow).where(PersonRow.id == str(person_id))
            )
            return result.rowcount > 0

    def list_people(
        self,
        search: Optional[str] = None,
        sort: PersonSort = PersonSort.NAME,
    ) -> list[Person]:
        with self._session() as session:
            rows = session.scalars(select(PersonRow)).all()
            people = [self._row_to_person(row) for row in rows]
        people = [p for p in people if person_matches_search(p, search)]
        return sort_people(people, sort)

    # Transactions

    def insert_transaction(self, transaction: Transaction) -> Transaction:
        with self._session() as session:
            if session.get(TransactionRow, str(transaction.id)) is not None:
                raise DuplicateError(f"Transaction already exists: {transaction.id}")
            row = self._copy_transaction_to_row(
                transaction, TransactionRow(id=str(transaction.id))
            )
            session.add(row)
            session.flush()
        return transaction

    def update_transaction(self, transaction: Transaction) -> Transaction:
        with self._session() as session:
            row = session.get(TransactionRow, str(transaction.id))
            if row is None:
                raise NotFoundError(f"Transaction not found: {transaction.id}")
            self._copy_transaction_to_row(transaction, row)
            session.flush()
        return transaction

    def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        with self._session() as session:
            row = session.get(TransactionRow, str(transaction_id))
            return self._row_to_transaction(row) if row else None

    def delete_transaction(self, transaction_id: UUID) -> bool:
        with self._session() as session:
            result = session.execute(
                delete(TransactionRow).where(TransactionRow.id == str(transaction_id))
            )
            return result.rowcount > 0

    def delete_transactions_for_person(self, person_id: UUID) -> list[Transaction]:
        with self._session() as session:
            rows = session.scalars(
                select(TransactionRow).where(TransactionRow.person_id == str(person_id))
            ).all()
            removed = [self._row_to_transaction(row) for row in rows]
            session.execute(
                delete(TransactionRow).where(TransactionRow.person_id == str(person_id))
            )
        return removed

    def list_transactions(
        self,
        filter: Optional[TransactionFilter] = None,
        sort: TransactionSort = TransactionSort.DATE_DESC,
    ) -> list[Transaction]:
        stmt = select(TransactionRow)
        if filter is not None:
            if filter.person_id is not None:
                stmt = stmt.where(TransactionRow.person_id == str(filter.person_id))
            if filter.type is not None:
                stmt = stmt.where(TransactionRow.type == filter.type.value)
            if filter.is_completed is not None:
                stmt = stmt.where(TransactionRow.is_completed == filter.is_completed)
            if filter.mode is not None:
                stmt = stmt.where(TransactionRow.mode == filter.mode.value)
            if filter.date_from is not None:
                stmt = stmt.where(TransactionRow.date >= filter.date_from)
            if filter.date_to is not None:
                stmt = stmt.where(TransactionRow.date <= filter.date_to)

        with self._session() as session:
            rows = session.scalars(stmt).all()
            transactions = [self._row_to_transaction(row) for row in rows]
        return sort_transactions(transactions, sort)
