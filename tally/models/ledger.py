"""
Core Data Models for Tally

Two persisted record types and the query models used to read them back:
- Person: someone the user lends to or borrows from
- Transaction: a single lend or borrow, pending until settled

DESIGN DECISION: Records reference each other by ID, never by object.
A Person does not embed its transactions; they are read back from storage
with a TransactionFilter. This keeps every record a flat, serializable row.

Amounts are Decimal end to end. Binary floats drift when many small
amounts are summed, and a ledger must add up exactly.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Stored datetimes are naive UTC. Aware values are converted,
    naive ones are taken as UTC already.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class LedgerError(Exception):
    """Base exception for ledger rule violations."""
    pass


class AlreadySettledError(LedgerError):
    """Settlement was requested for a transaction that is already completed."""

    def __init__(self, transaction_id: UUID):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} is already settled")


# =============================================================================
# ENUMS
# =============================================================================

class PaymentMode(str, Enum):
    """Channel the money moved through."""
    CASH = "Cash"
    ACCOUNT = "Account"
    MFS = "MFS"  # Mobile financial service


class TransactionType(str, Enum):
    """
    Direction of money flow relative to the user.

    LEND: the user gave money and expects it back.
    BORROW: the user received money and owes it.
    """
    LEND = "Lend"
    BORROW = "Borrow"


class TransactionSort(str, Enum):
    DATE_DESC = "date_desc"
    DATE_ASC = "date_asc"
    AMOUNT_DESC = "amount_desc"


class PersonSort(str, Enum):
    NAME = "name"
    CREATED_DESC = "created_desc"


# =============================================================================
# RECORDS
# =============================================================================

class Person(BaseModel):
    """
    A contact the user tracks balances against.

    Name and mobile are required to be non-blank, but that rule belongs to
    whoever creates the person (see LedgerService.create_person). The record
    itself accepts what it is given so stored rows always load.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique person ID"
    )
    name: str = Field(
        ...,
        description="Display name"
    )
    mobile: str = Field(
        ...,
        description="Contact number, also used as a search key (not unique)"
    )
    relationship: Optional[str] = Field(
        default=None,
        description="Free-text label, e.g. 'Cousin' or 'Colleague'"
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the person was added"
    )

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class Transaction(BaseModel):
    """
    A single lend or borrow record.

    Lifecycle:
        pending (is_completed=False) --settle()--> completed

    The transition is one-way. Completion fields stay None until settle()
    fills them. Images are not stored inline; the record only holds the
    key under which the blob store keeps the bytes.
    """
    model_config = ConfigDict(validate_assignment=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    amount: Decimal = Field(
        ...,
        description="Amount of money (must be > 0, checked by the caller)"
    )
    date: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the money changed hands"
    )
    mode: PaymentMode = Field(
        default=PaymentMode.CASH,
        description="Channel used when the transaction was made"
    )
    type: TransactionType = Field(
        ...,
        description="Lend or borrow"
    )
    return_date: Optional[datetime] = Field(
        default=None,
        description="Expected repayment date"
    )
    record_image_key: Optional[str] = Field(
        default=None,
        description="Blob key of the receipt photo"
    )
    note: Optional[str] = None

    # Settlement
    is_completed: bool = False
    completion_date: Optional[datetime] = None
    completion_mode: Optional[PaymentMode] = None
    completion_proof_image_key: Optional[str] = None

    # Owner. May be unset while a form is still being filled in.
    person_id: Optional[UUID] = None

    @field_validator("date", "return_date", "completion_date")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Aware datetimes become naive UTC so every record compares and sorts."""
        return to_naive_utc(v)

    @property
    def is_pending(self) -> bool:
        """Pending transactions are the only ones that count towards balances."""
        return not self.is_completed

    def attach_to(self, person: Person) -> "Transaction":
        """Associate this transaction with exactly one person."""
        self.person_id = person.id
        return self

    def settle(
        self,
        mode: PaymentMode,
        proof_image_key: Optional[str] = None,
    ) -> "Transaction":
        """
        Mark the transaction as repaid.

        Raises:
            AlreadySettledError: if it was settled before. Completion
                fields are never overwritten.
        """
        if self.is_completed:
            raise AlreadySettledError(self.id)

        self.is_completed = True
        self.completion_date = datetime.utcnow()
        self.completion_mode = mode
        self.completion_proof_image_key = proof_image_key
        return self

    def image_keys(self) -> list[str]:
        """All blob keys this record references."""
        return [
            key
            for key in (self.record_image_key, self.completion_proof_image_key)
            if key
        ]


class Contact(BaseModel):
    """
    An entry picked from the device address book.

    Only contacts with at least one phone number can be picked,
    so mobile falls back to an empty string rather than None.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    given_name: str = ""
    family_name: str = ""
    phone_numbers: list[str] = Field(default_factory=list)

    @property
    def full_name(self) -> str:
        name = " ".join(part for part in (self.given_name, self.family_name) if part)
        return name or "Unknown"

    @property
    def mobile(self) -> str:
        return self.phone_numbers[0] if self.phone_numbers else ""


# =============================================================================
# QUERY MODELS
# =============================================================================

class TransactionFilter(BaseModel):
    """
    Predicate for reading transactions back from storage.

    Every field is optional; unset fields do not filter.
    """

    person_id: Optional[UUID] = None
    type: Optional[TransactionType] = None
    is_completed: Optional[bool] = None
    mode: Optional[PaymentMode] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    @field_validator("date_from", "date_to")
    @classmethod
    def normalize_range(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)

    @classmethod
    def pending(cls, **kwargs) -> "TransactionFilter":
        return cls(is_completed=False, **kwargs)

    def matches(self, transaction: Transaction) -> bool:
        if self.person_id is not None and transaction.person_id != self.person_id:
            return False
        if self.type is not None and transaction.type != self.type:
            return False
        if self.is_completed is not None and transaction.is_completed != self.is_completed:
            return False
        if self.mode is not None and transaction.mode != self.mode:
            return False
        if self.date_from is not None and transaction.date < self.date_from:
            return False
        if self.date_to is not None and transaction.date > self.date_to:
            return False
        return True


def sort_transactions(
    transactions: list[Transaction],
    sort: TransactionSort = TransactionSort.DATE_DESC,
) -> list[Transaction]:
    """Return a new list ordered for display."""
    if sort == TransactionSort.DATE_ASC:
        return sorted(transactions, key=lambda t: t.date)
    if sort == TransactionSort.AMOUNT_DESC:
        return sorted(transactions, key=lambda t: t.amount, reverse=True)
    return sorted(transactions, key=lambda t: t.date, reverse=True)


def sort_people(
    people: list[Person],
    sort: PersonSort = PersonSort.NAME,
) -> list[Person]:
    """Return a new list ordered for display."""
    if sort == PersonSort.CREATED_DESC:
        return sorted(people, key=lambda p: p.created_at, reverse=True)
    return sorted(people, key=lambda p: p.name.casefold())


def person_matches_search(person: Person, search: Optional[str]) -> bool:
    """
    People search: name contains the text (ignoring case),
    or mobile contains it verbatim. Blank search matches everyone.
    """
    if not search:
        return True
    return search.casefold() in person.name.casefold() or search in person.mobile


# =============================================================================
# SUMMARY MODELS (what the screens display)
# =============================================================================

class BalanceSummary(BaseModel):
    """Aggregated pending totals for one person, or for everyone."""

    total_lent: Decimal = Decimal("0")
    total_borrowed: Decimal = Decimal("0")
    net_balance: Decimal = Decimal("0")
    description: str = ""

    @property
    def is_settled(self) -> bool:
        return self.net_balance == 0


class PersonBalance(BaseModel):
    """One row of the dashboard's per-person breakdown."""

    person: Person
    net_balance: Decimal

    @property
    def to_receive(self) -> bool:
        return self.net_balance > 0


class DashboardSummary(BaseModel):
    """Everything the dashboard screen needs in one read."""

    totals: BalanceSummary
    breakdown: list[PersonBalance] = Field(default_factory=list)
    recent_pending: list[Transaction] = Field(default_factory=list)
