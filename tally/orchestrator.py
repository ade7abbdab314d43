"""
Main Orchestrator for Tally

This module ties together storage, image blobs, validation and auditing,
and defines every operation the screens can perform on the ledger:
1. People: create (by hand or from a contact), list/search, delete
2. Transactions: record a lend/borrow, settle, delete
3. Reads: transaction lists, per-person and dashboard balances

DESIGN DECISION: The orchestrator enforces the ledger rules:
- Nothing invalid is stored (validation runs here, not only in the form)
- Settlement happens at most once per transaction
- Deleting a person deletes its transactions in the same storage scope
- Every change is audited

Balances are never cached. The presentation layer calls the read methods
again after each change it makes.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from tally.audit import AuditLogger, create_correlation_id
from tally.config import get_settings
from tally.models.ledger import (
    AlreadySettledError,
    BalanceSummary,
    Contact,
    DashboardSummary,
    PaymentMode,
    Person,
    PersonSort,
    Transaction,
    TransactionFilter,
    TransactionSort,
    TransactionType,
)
from tally.queries import person_breakdown, recent_pending, summarize
from tally.services.blobs import (
    BlobStoreInterface,
    FileSystemBlobStore,
    InMemoryBlobStore,
    prepare_receipt_image,
)
from tally.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    SQLAlchemyLedgerStorage,
    StorageError,
)
from tally.validation import (
    LedgerValidationError,
    LedgerValidator,
    MissingPersonError,
)


class LedgerService:
    """
    Entry point for every ledger read and write.

    Lifecycle of a transaction:
    1. create_transaction → pending, attached to one person
    2. settle → completed (one way, at most once)
    3. delete_transaction → gone, at any stage
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        blob_store: Optional[BlobStoreInterface] = None,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        currency_symbol: Optional[str] = None,
        max_image_dimension: Optional[int] = None,
        recent_pending_limit: Optional[int] = None,
    ):
        settings = get_settings()
        self._storage = storage
        self._blob_store = blob_store or InMemoryBlobStore()
        self._validator = validator or LedgerValidator()
        self._audit_logger = audit_logger
        self._currency_symbol = currency_symbol or settings.app.currency_symbol
        self._max_image_dimension = max_image_dimension or settings.blobs.max_image_dimension
        self._max_image_bytes = settings.blobs.max_upload_size_bytes
        self._recent_pending_limit = recent_pending_limit or settings.app.recent_pending_limit

    @property
    def validator(self) -> LedgerValidator:
        return self._validator

    # =========================================================================
    # PEOPLE
    # =========================================================================

    def create_person(
        self,
        name: str,
        mobile: str,
        relationship: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Person:
        """
        Create and store a new person.

        Surrounding whitespace is trimmed from every field, and a blank
        relationship is stored as None.

        Raises:
            InvalidNameError: If name is blank
            InvalidMobileError: If mobile is blank
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            self._validator.require_person(name, mobile)
        except LedgerValidationError as e:
            self._audit_rejection(e, correlation_id)
            raise

        relationship = (relationship or "").strip()
        person = Person(
            name=name.strip(),
            mobile=mobile.strip(),
            relationship=relationship or None,
        )
        self._storage.insert_person(person)

        if self._audit_logger:
            self._audit_logger.log_person_created(
                person_id=person.id,
                name=person.name,
                correlation_id=correlation_id,
            )

        return person

    def create_person_from_contact(
        self,
        contact: Contact,
        relationship: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Person:
        """Contact-picker shortcut: name and first phone number from the address book."""
        return self.create_person(
            name=contact.full_name,
            mobile=contact.mobile,
            relationship=relationship,
            correlation_id=correlation_id,
        )

    def get_person(self, person_id: UUID) -> Optional[Person]:
        return self._storage.get_person(person_id)

    def list_people(
        self,
        search: Optional[str] = None,
        sort: PersonSort = PersonSort.NAME,
    ) -> list[Person]:
        """All people, or those whose name or mobile contains the search text."""
        search = (search or "").strip() or None
        return self._storage.list_people(search=search, sort=sort)

    def delete_person(
        self,
        person: Union[Person, UUID],
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Delete a person and, first, every transaction they own.

        Both steps run in one storage scope: if either fails,
        nothing is deleted.

        Returns:
            Number of transactions removed

        Raises:
            NotFoundError: If the person does not exist
        """
        correlation_id = correlation_id or create_correlation_id()
        person_id = person.id if isinstance(person, Person) else person

        stored = self._storage.get_person(person_id)
        if stored is None:
            raise NotFoundError(f"Person not found: {person_id}")

        with self._storage.scope():
            removed = self._storage.delete_transactions_for_person(person_id)
            self._storage.delete_person(person_id)

        for txn in removed:
            if self._audit_logger:
                self._audit_logger.log_transaction_deleted(
                    transaction_id=txn.id,
                    was_completed=txn.is_completed,
                    correlation_id=correlation_id,
                )
        if self._audit_logger:
            self._audit_logger.log_person_deleted(
                person_id=person_id,
                name=stored.name,
                transactions_removed=len(removed),
                correlation_id=correlation_id,
            )

        self._release_images([key for txn in removed for key in txn.image_keys()])
        return len(removed)

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def create_transaction(
        self,
        amount: Decimal,
        type: TransactionType,
        person: Optional[Person],
        date: Optional[datetime] = None,
        mode: PaymentMode = PaymentMode.CASH,
        return_date: Optional[datetime] = None,
        record_image: Optional[bytes] = None,
        note: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Record a pending lend or borrow with one person.

        Args:
            amount: Must be greater than zero
            type: Lend or borrow
            person: Owner of the transaction; must already be stored
            date: When the money changed hands (default: now)
            mode: Payment channel
            return_date: Expected repayment date
            record_image: Receipt photo bytes, stored out of line
            note: Free text; blank is stored as None

        Raises:
            NonPositiveAmountError: If amount <= 0
            MissingPersonError: If person is None or not stored
            InvalidImageError: If record_image is not an image
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            self._validator.require_transaction(amount, person)
            if self._storage.get_person(person.id) is None:
                raise MissingPersonError(f"Person not found: {person.id}")
        except LedgerValidationError as e:
            self._audit_rejection(e, correlation_id)
            raise

        image_key = self._store_image(record_image) if record_image else None

        note = (note or "").strip()
        transaction = Transaction(
            amount=Decimal(str(amount)),
            date=date or datetime.utcnow(),
            mode=mode,
            type=type,
            return_date=return_date,
            record_image_key=image_key,
            note=note or None,
        ).attach_to(person)

        try:
            self._storage.insert_transaction(transaction)
        except StorageError:
            self._release_images(transaction.image_keys())
            raise

        if self._audit_logger:
            self._audit_logger.log_transaction_created(
                transaction_id=transaction.id,
                person_id=person.id,
                transaction_type=transaction.type.value,
                amount=str(transaction.amount),
                correlation_id=correlation_id,
            )

        return transaction

    def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        return self._storage.get_transaction(transaction_id)

    def list_transactions(
        self,
        filter: Optional[TransactionFilter] = None,
        sort: TransactionSort = TransactionSort.DATE_DESC,
    ) -> list[Transaction]:
        return self._storage.list_transactions(filter=filter, sort=sort)

    def settle(
        self,
        transaction: Union[Transaction, UUID],
        mode: PaymentMode,
        proof_image: Optional[bytes] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Mark a transaction as repaid.

        The stored record is re-read first, so a stale copy held by the
        caller cannot hide an earlier settlement.

        Raises:
            NotFoundError: If the transaction does not exist
            AlreadySettledError: If it is already completed
        """
        correlation_id = correlation_id or create_correlation_id()
        transaction_id = (
            transaction.id if isinstance(transaction, Transaction) else transaction
        )

        stored = self._storage.get_transaction(transaction_id)
        if stored is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        if stored.is_completed:
            raise AlreadySettledError(stored.id)

        proof_key = self._store_image(proof_image) if proof_image else None
        stored.settle(mode, proof_image_key=proof_key)
        try:
            self._storage.update_transaction(stored)
        except StorageError:
            if proof_key:
                self._release_images([proof_key])
            raise

        if self._audit_logger:
            self._audit_logger.log_transaction_settled(
                transaction_id=stored.id,
                mode=mode.value,
                correlation_id=correlation_id,
            )

        return stored

    def delete_transaction(
        self,
        transaction: Union[Transaction, UUID],
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete one transaction, pending or settled.

        Returns False if it did not exist. Other records are untouched.
        """
        correlation_id = correlation_id or create_correlation_id()
        transaction_id = (
            transaction.id if isinstance(transaction, Transaction) else transaction
        )

        stored = self._storage.get_transaction(transaction_id)
        if stored is None:
            return False

        deleted = self._storage.delete_transaction(transaction_id)

        if deleted:
            if self._audit_logger:
                self._audit_logger.log_transaction_deleted(
                    transaction_id=transaction_id,
                    was_completed=stored.is_completed,
                    correlation_id=correlation_id,
                )
            self._release_images(stored.image_keys())

        return deleted

    # =========================================================================
    # BALANCES
    # =========================================================================

    def person_summary(self, person: Person) -> BalanceSummary:
        """Pending totals and balance text for one person."""
        transactions = self._storage.list_transactions(
            filter=TransactionFilter.pending(person_id=person.id)
        )
        return summarize(transactions, person, symbol=self._currency_symbol)

    def dashboard(self) -> DashboardSummary:
        """Global totals, the per-person breakdown and recent pending records."""
        pending = self._storage.list_transactions(filter=TransactionFilter.pending())
        people = self._storage.list_people()
        return DashboardSummary(
            totals=summarize(pending, symbol=self._currency_symbol),
            breakdown=person_breakdown(people, pending),
            recent_pending=recent_pending(pending, limit=self._recent_pending_limit),
        )

    # =========================================================================
    # IMAGES
    # =========================================================================

    def load_image(self, key: str) -> bytes:
        """Bytes of a receipt or settlement proof."""
        return self._blob_store.get(key)

    def _store_image(self, data: bytes) -> str:
        prepared = prepare_receipt_image(
            data,
            max_dimension=self._max_image_dimension,
            max_size_bytes=self._max_image_bytes,
        )
        return self._blob_store.put(prepared)

    def _release_images(self, keys: list[str]) -> None:
        """
        Delete blobs no remaining transaction refers to.

        Keys are content addresses, so two records can share one blob.
        """
        if not keys:
            return

        still_used = {
            key
            for txn in self._storage.list_transactions()
            for key in txn.image_keys()
        }
        for key in set(keys) - still_used:
            self._blob_store.delete(key)

    def _audit_rejection(
        self,
        error: LedgerValidationError,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            self._audit_logger.log_validation_failed(
                code=error.code,
                field=error.field,
                message=str(error),
                correlation_id=correlation_id,
            )


def create_app_components(
    use_storage: bool = True,
) -> tuple[LedgerService, AuditLogger]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to open the configured database and image
                    directory. Set to False for a throwaway in-memory ledger.

    Returns:
        (ledger_service, audit_logger)
    """
    settings = get_settings()
    audit_logger = AuditLogger(InMemoryAuditStorage())

    storage: LedgerStorageInterface
    blob_store: BlobStoreInterface
    if use_storage:
        try:
            storage = SQLAlchemyLedgerStorage.from_url(
                settings.storage.database_url,
                echo=settings.storage.echo_sql,
            )
            blob_store = FileSystemBlobStore(settings.blobs.root_dir)
        except StorageError as e:
            audit_logger.log_error(
                error_type="storage_unavailable",
                error_message=str(e),
            )
            raise
    else:
        storage = InMemoryLedgerStorage()
        blob_store = InMemoryBlobStore()

    service = LedgerService(
        storage=storage,
        blob_store=blob_store,
        audit_logger=audit_logger,
    )
    return service, audit_logger
