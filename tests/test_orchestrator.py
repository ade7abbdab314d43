"""
Integration tests for LedgerService.

Every test runs against in-memory storage, an in-memory blob store and an
audit logger backed by InMemoryAuditStorage, so audit events can be
asserted directly.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from io import BytesIO
from uuid import uuid4

from PIL import Image

from tally.audit import AuditLogger
from tally.models.audit import AuditEventType
from tally.models.ledger import (
    AlreadySettledError,
    Contact,
    PaymentMode,
    Person,
    TransactionFilter,
    TransactionType,
)
from tally.orchestrator import LedgerService, create_app_components
from tally.services.blobs import (
    BlobNotFoundError,
    InMemoryBlobStore,
    InvalidImageError,
    content_key,
    prepare_receipt_image,
)
from tally.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    NotFoundError,
    SQLAlchemyLedgerStorage,
    StorageError,
)
from tally.validation import (
    InvalidMobileError,
    InvalidNameError,
    MissingPersonError,
    NonPositiveAmountError,
)


def photo(color=(10, 120, 200)) -> bytes:
    out = BytesIO()
    Image.new("RGB", (40, 30), color=color).save(out, format="PNG")
    return out.getvalue()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def service(audit_storage, blob_store):
    return LedgerService(
        storage=InMemoryLedgerStorage(),
        blob_store=blob_store,
        audit_logger=AuditLogger(audit_storage),
        currency_symbol="৳",
    )


@pytest.fixture
def rahim(service):
    return service.create_person("Rahim", "01711000000", "Cousin")


def event_types(audit_storage):
    return [e.event_type for e in reversed(audit_storage.get_recent_events())]


class FailingWritesStorage(InMemoryLedgerStorage):
    """In-memory storage whose transaction writes fail once `failing` is set."""

    failing = True

    def insert_transaction(self, transaction):
        if self.failing:
            raise StorageError("disk full")
        return super().insert_transaction(transaction)

    def update_transaction(self, transaction):
        if self.failing:
            raise StorageError("disk full")
        return super().update_transaction(transaction)


class TestPeople:
    """Tests for creating, searching and deleting people."""

    def test_create_person_trims_input(self, service):
        person = service.create_person("  Rahim ", " 017 ", "   ")
        assert person.name == "Rahim"
        assert person.mobile == "017"
        assert person.relationship is None
        assert service.get_person(person.id) is not None

    def test_blank_name_is_rejected_and_audited(self, service, audit_storage):
        with pytest.raises(InvalidNameError):
            service.create_person("  ", "017")

        assert service.list_people() == []
        events = audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.VALIDATION_FAILED
        assert events[0].error_code == "invalid_name"

    def test_blank_mobile_is_rejected(self, service):
        with pytest.raises(InvalidMobileError):
            service.create_person("Rahim", "")

    def test_create_from_contact(self, service):
        contact = Contact(given_name="Abdul", family_name="Karim", phone_numbers=["018", "019"])
        person = service.create_person_from_contact(contact, relationship="Friend")
        assert person.name == "Abdul Karim"
        assert person.mobile == "018"
        assert person.relationship == "Friend"

    def test_create_from_nameless_contact(self, service):
        person = service.create_person_from_contact(Contact(phone_numbers=["018"]))
        assert person.name == "Unknown"

    def test_search(self, service):
        service.create_person("Rahim", "01711")
        service.create_person("Karim", "01811")
        assert [p.name for p in service.list_people(search=" im ")] == ["Karim", "Rahim"]
        assert [p.name for p in service.list_people(search="rim")] == ["Karim"]
        assert [p.name for p in service.list_people(search="018")] == ["Karim"]
        assert len(service.list_people(search="   ")) == 2

    def test_delete_person_removes_their_transactions(self, service, rahim, audit_storage):
        karim = service.create_person("Karim", "018")
        service.create_transaction(Decimal("500"), TransactionType.LEND, rahim)
        settled = service.create_transaction(Decimal("200"), TransactionType.BORROW, rahim)
        service.settle(settled, PaymentMode.CASH)
        kept = service.create_transaction(Decimal("50"), TransactionType.LEND, karim)

        removed = service.delete_person(rahim)

        assert removed == 2
        assert service.get_person(rahim.id) is None
        assert service.list_transactions(TransactionFilter(person_id=rahim.id)) == []
        assert [t.id for t in service.list_transactions()] == [kept.id]
        assert service.dashboard().totals.total_lent == Decimal("50")

        deleted = audit_storage.get_events_by_entity("person", rahim.id)[-1]
        assert deleted.event_type == AuditEventType.PERSON_DELETED
        assert deleted.details["transactions_removed"] == 2
        assert event_types(audit_storage).count(AuditEventType.TRANSACTION_DELETED) == 2

    def test_long_name_is_stored_and_audited(self, service, audit_storage):
        """Test a very long name never makes auditing fail a saved person."""
        person = service.create_person("A" * 600, "0171")

        assert service.get_person(person.id).name == "A" * 600
        created = audit_storage.get_events_by_entity("person", person.id)
        assert created[0].event_type == AuditEventType.PERSON_CREATED
        assert len(created[0].description) <= 500
        assert created[0].details["name"] == "A" * 600

        assert service.delete_person(person) == 0
        deleted = audit_storage.get_events_by_entity("person", person.id)[-1]
        assert deleted.event_type == AuditEventType.PERSON_DELETED

    def test_delete_missing_person(self, service):
        with pytest.raises(NotFoundError):
            service.delete_person(uuid4())


class TestTransactions:
    """Tests for recording and deleting lends and borrows."""

    def test_create_transaction(self, service, rahim, audit_storage):
        txn = service.create_transaction(
            amount=Decimal("1500.50"),
            type=TransactionType.LEND,
            person=rahim,
            date=datetime(2026, 10, 9),
            mode=PaymentMode.MFS,
            note="  bKash ",
        )

        assert txn.person_id == rahim.id
        assert txn.is_pending is True
        assert txn.note == "bKash"
        assert service.get_transaction(txn.id).amount == Decimal("1500.50")

        created = audit_storage.get_events_by_entity("transaction", txn.id)
        assert [e.event_type for e in created] == [AuditEventType.TRANSACTION_CREATED]
        assert created[0].details["amount"] == "1500.50"

    def test_defaults(self, service, rahim):
        txn = service.create_transaction(Decimal("1"), TransactionType.BORROW, rahim, note="  ")
        assert txn.mode == PaymentMode.CASH
        assert txn.note is None
        assert txn.date is not None
        assert txn.record_image_key is None

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10")])
    def test_non_positive_amount_is_rejected(self, service, rahim, amount):
        with pytest.raises(NonPositiveAmountError):
            service.create_transaction(amount, TransactionType.LEND, rahim)
        assert service.list_transactions() == []

    def test_float_amount_is_converted_exactly(self, service, rahim):
        txn = service.create_transaction(0.1, TransactionType.LEND, rahim)
        assert txn.amount == Decimal("0.1")
        assert service.person_summary(rahim).total_lent == Decimal("0.1")

    def test_aware_and_naive_dates_mix(self, service, rahim):
        """Test aware dates are stored as naive UTC alongside default dates."""
        dhaka = timezone(timedelta(hours=6))
        aware = service.create_transaction(
            Decimal("10"),
            TransactionType.LEND,
            rahim,
            date=datetime(2026, 1, 1, 6, 0, tzinfo=dhaka),
            return_date=datetime(2026, 2, 1, tzinfo=timezone.utc),
        )
        service.create_transaction(Decimal("20"), TransactionType.LEND, rahim)

        assert aware.date == datetime(2026, 1, 1, 0, 0)
        assert aware.return_date.tzinfo is None
        assert len(service.list_transactions()) == 2
        dashboard = service.dashboard()
        assert [t.amount for t in dashboard.recent_pending] == [Decimal("20"), Decimal("10")]

        window = service.list_transactions(
            TransactionFilter(date_to=datetime(2026, 1, 2, tzinfo=timezone.utc))
        )
        assert [t.id for t in window] == [aware.id]

    def test_failed_write_releases_receipt(self, blob_store, audit_storage):
        service = LedgerService(
            storage=FailingWritesStorage(),
            blob_store=blob_store,
            audit_logger=AuditLogger(audit_storage),
        )
        person = service.create_person("Rahim", "017")

        with pytest.raises(StorageError):
            service.create_transaction(
                Decimal("10"), TransactionType.LEND, person, record_image=photo()
            )

        assert service.list_transactions() == []
        assert not blob_store.exists(content_key(prepare_receipt_image(photo())))

    def test_person_is_required(self, service):
        with pytest.raises(MissingPersonError):
            service.create_transaction(Decimal("10"), TransactionType.LEND, None)

    def test_unsaved_person_is_rejected(self, service, audit_storage):
        stranger = Person(name="Stranger", mobile="000")
        with pytest.raises(MissingPersonError):
            service.create_transaction(Decimal("10"), TransactionType.LEND, stranger)
        assert event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    def test_receipt_is_stored_out_of_line(self, service, rahim, blob_store):
        txn = service.create_transaction(
            Decimal("10"), TransactionType.LEND, rahim, record_image=photo()
        )
        assert txn.record_image_key is not None
        assert blob_store.exists(txn.record_image_key)
        assert service.load_image(txn.record_image_key).startswith(b"\xff\xd8")

    def test_invalid_receipt_stores_nothing(self, service, rahim):
        with pytest.raises(InvalidImageError):
            service.create_transaction(
                Decimal("10"), TransactionType.LEND, rahim, record_image=b"not an image"
            )
        assert service.list_transactions() == []

    def test_delete_transaction(self, service, rahim, blob_store):
        txn = service.create_transaction(
            Decimal("10"), TransactionType.LEND, rahim, record_image=photo()
        )

        assert service.delete_transaction(txn) is True
        assert service.get_transaction(txn.id) is None
        assert not blob_store.exists(txn.record_image_key)
        assert service.delete_transaction(txn.id) is False

    def test_shared_image_survives_until_last_reference(self, service, rahim):
        first = service.create_transaction(
            Decimal("10"), TransactionType.LEND, rahim, record_image=photo()
        )
        second = service.create_transaction(
            Decimal("20"), TransactionType.LEND, rahim, record_image=photo()
        )
        assert first.record_image_key == second.record_image_key

        service.delete_transaction(first)
        assert service.load_image(second.record_image_key)

        service.delete_transaction(second)
        with pytest.raises(BlobNotFoundError):
            service.load_image(second.record_image_key)


class TestSettlement:
    """Tests for marking transactions repaid."""

    def test_settle(self, service, rahim, audit_storage):
        txn = service.create_transaction(Decimal("1000"), TransactionType.LEND, rahim)

        settled = service.settle(txn.id, PaymentMode.ACCOUNT, proof_image=photo((0, 0, 0)))

        assert settled.is_completed is True
        assert settled.completion_mode == PaymentMode.ACCOUNT
        assert settled.completion_proof_image_key is not None
        stored = service.get_transaction(txn.id)
        assert stored.is_completed is True
        assert stored.completion_date is not None
        assert AuditEventType.TRANSACTION_SETTLED in event_types(audit_storage)

    def test_settle_twice_is_rejected_without_changes(self, service, rahim):
        txn = service.create_transaction(Decimal("1000"), TransactionType.LEND, rahim)
        service.create_transaction(Decimal("400"), TransactionType.BORROW, rahim)
        first = service.settle(txn, PaymentMode.CASH)
        before = service.person_summary(rahim)

        # The caller's copy is stale; the stored record decides.
        with pytest.raises(AlreadySettledError):
            service.settle(txn, PaymentMode.MFS)

        stored = service.get_transaction(txn.id)
        assert stored.completion_mode == PaymentMode.CASH
        assert stored.completion_date == first.completion_date
        assert service.person_summary(rahim) == before

    def test_failed_settle_releases_proof(self, blob_store):
        storage = FailingWritesStorage()
        storage.failing = False
        service = LedgerService(storage=storage, blob_store=blob_store)
        person = service.create_person("Rahim", "017")
        txn = service.create_transaction(Decimal("10"), TransactionType.LEND, person)

        storage.failing = True
        with pytest.raises(StorageError):
            service.settle(txn, PaymentMode.CASH, proof_image=photo((0, 0, 0)))

        assert service.get_transaction(txn.id).is_pending is True
        assert not blob_store.exists(content_key(prepare_receipt_image(photo((0, 0, 0)))))

    def test_settle_missing(self, service):
        with pytest.raises(NotFoundError):
            service.settle(uuid4(), PaymentMode.CASH)


class TestBalances:
    """Tests for summaries read through the service."""

    def test_person_scenario(self, service, rahim):
        big = service.create_transaction(Decimal("1000"), TransactionType.LEND, rahim)
        service.create_transaction(Decimal("400"), TransactionType.BORROW, rahim)
        assert service.person_summary(rahim).net_balance == Decimal("600")

        service.settle(big, PaymentMode.CASH)

        summary = service.person_summary(rahim)
        assert summary.total_lent == Decimal("0")
        assert summary.net_balance == Decimal("-400")
        assert summary.description == "To Pay: ৳400"

    def test_new_person_is_settled(self, service, rahim):
        summary = service.person_summary(rahim)
        assert summary.net_balance == 0
        assert summary.description == "Settled"

    def test_dashboard(self, service, rahim):
        karim = service.create_person("Karim", "018")
        service.create_transaction(Decimal("500"), TransactionType.LEND, rahim)
        service.create_transaction(Decimal("300"), TransactionType.LEND, rahim)
        service.create_transaction(Decimal("1000"), TransactionType.BORROW, karim)

        dashboard = service.dashboard()

        assert dashboard.totals.total_lent == Decimal("800")
        assert dashboard.totals.total_borrowed == Decimal("1000")
        assert dashboard.totals.net_balance == Decimal("-200")
        assert dashboard.totals.description == "You owe this amount"
        assert [row.person.name for row in dashboard.breakdown] == ["Karim", "Rahim"]
        assert len(dashboard.recent_pending) == 3

    def test_empty_dashboard(self, service):
        dashboard = service.dashboard()
        assert dashboard.totals.net_balance == 0
        assert dashboard.totals.description == "All settled"
        assert dashboard.breakdown == []
        assert dashboard.recent_pending == []


class TestAppComponents:
    """Tests for the application factory."""

    def test_in_memory_components(self):
        service, audit_logger = create_app_components(use_storage=False)
        person = service.create_person("Rahim", "017")
        assert service.get_person(person.id) is not None
        assert audit_logger.storage.get_recent_events()[0].entity_id == person.id

    def test_durable_components(self, monkeypatch, tmp_path):
        from tally.config import get_settings

        monkeypatch.setenv("TALLY_STORAGE_DATABASE_URL", f"sqlite:///{tmp_path / 'tally.db'}")
        monkeypatch.setenv("TALLY_BLOBS_ROOT_DIR", str(tmp_path / "receipts"))
        get_settings.cache_clear()
        try:
            service, _ = create_app_components(use_storage=True)
            person = service.create_person("Rahim", "017")
            service.create_transaction(
                Decimal("10"), TransactionType.LEND, person, record_image=photo()
            )

            reopened = SQLAlchemyLedgerStorage.from_url(f"sqlite:///{tmp_path / 'tally.db'}")
            assert reopened.get_person(person.id) is not None
            assert any((tmp_path / "receipts").rglob("*"))
        finally:
            get_settings.cache_clear()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
