"""
Tests for balance aggregation.

All functions under test are pure, so these build transaction lists
directly and never touch storage.
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from tally.models.ledger import PaymentMode, Person, Transaction, TransactionType
from tally.queries import (
    balance_description,
    dashboard_description,
    net_balance,
    person_breakdown,
    recent_pending,
    summarize,
    total_borrowed,
    total_lent,
)


def lend(person, amount, **kwargs):
    return Transaction(amount=Decimal(amount), type=TransactionType.LEND, **kwargs).attach_to(person)


def borrow(person, amount, **kwargs):
    return Transaction(amount=Decimal(amount), type=TransactionType.BORROW, **kwargs).attach_to(person)


@pytest.fixture
def alice():
    return Person(name="Alice", mobile="01700000001")


@pytest.fixture
def bob():
    return Person(name="Bob", mobile="01700000002")


class TestTotals:
    """Tests for total_lent / total_borrowed / net_balance."""

    def test_only_pending_lends_count(self, alice):
        """Test completed and borrow records are excluded from total_lent."""
        settled = lend(alice, "700")
        settled.settle(PaymentMode.CASH)
        transactions = [lend(alice, "100"), lend(alice, "50.25"), borrow(alice, "40"), settled]

        assert total_lent(transactions, alice) == Decimal("150.25")
        assert total_borrowed(transactions, alice) == Decimal("40")

    def test_totals_are_scoped_to_person(self, alice, bob):
        """Test another person's records do not leak into a person's totals."""
        transactions = [lend(alice, "100"), lend(bob, "900"), borrow(bob, "10")]

        assert total_lent(transactions, alice) == Decimal("100")
        assert total_borrowed(transactions, alice) == Decimal("0")
        assert total_lent(transactions) == Decimal("1000")
        assert total_borrowed(transactions) == Decimal("10")

    def test_net_is_lent_minus_borrowed(self, alice):
        transactions = [lend(alice, "0.1"), lend(alice, "0.2"), borrow(alice, "0.3")]
        assert net_balance(transactions, alice) == Decimal("0")
        assert net_balance(transactions, alice) == (
            total_lent(transactions, alice) - total_borrowed(transactions, alice)
        )

    def test_no_transactions_is_zero(self, alice):
        assert total_lent([], alice) == 0
        assert total_borrowed([], alice) == 0
        assert net_balance([], alice) == 0
        assert net_balance([]) == 0


class TestDescriptions:
    """Tests for balance text."""

    def test_to_receive(self):
        assert balance_description(Decimal("800")) == "To Receive: ৳800"

    def test_to_pay_shows_absolute_amount(self):
        assert balance_description(Decimal("-400")) == "To Pay: ৳400"

    def test_settled(self):
        assert balance_description(Decimal("0")) == "Settled"

    def test_custom_symbol(self):
        assert balance_description(Decimal("1500"), symbol="$") == "To Receive: $1,500"

    def test_dashboard_captions(self):
        assert dashboard_description(Decimal("1")) == "You are owed this amount"
        assert dashboard_description(Decimal("-1")) == "You owe this amount"
        assert dashboard_description(Decimal("0")) == "All settled"


class TestScenarios:
    """End-to-end balance scenarios for a single person."""

    def test_two_lends(self, alice):
        """500 + 300 lent, nothing borrowed."""
        summary = summarize([lend(alice, "500"), lend(alice, "300")], alice)
        assert summary.total_lent == Decimal("800")
        assert summary.total_borrowed == Decimal("0")
        assert summary.net_balance == Decimal("800")
        assert summary.description == "To Receive: ৳800"

    def test_lend_and_borrow_then_settle(self, alice):
        """1000 lent and 400 borrowed, then the 1000 is repaid in cash."""
        big = lend(alice, "1000")
        transactions = [big, borrow(alice, "400")]

        assert summarize(transactions, alice).net_balance == Decimal("600")

        big.settle(PaymentMode.CASH)
        summary = summarize(transactions, alice)
        assert summary.total_lent == Decimal("0")
        assert summary.total_borrowed == Decimal("400")
        assert summary.net_balance == Decimal("-400")
        assert summary.description == "To Pay: ৳400"

    def test_no_transactions(self, alice):
        summary = summarize([], alice)
        assert summary.total_lent == 0
        assert summary.total_borrowed == 0
        assert summary.net_balance == 0
        assert summary.description == "Settled"
        assert summary.is_settled is True

    def test_global_summary_uses_dashboard_caption(self, alice, bob):
        summary = summarize([lend(alice, "100"), borrow(bob, "300")])
        assert summary.net_balance == Decimal("-200")
        assert summary.description == "You owe this amount"


class TestBreakdown:
    """Tests for the dashboard's per-person rows."""

    def test_settled_people_are_left_out(self, alice, bob):
        transactions = [lend(alice, "100"), borrow(alice, "100"), lend(bob, "5")]
        rows = person_breakdown([alice, bob], transactions)
        assert [row.person.name for row in rows] == ["Bob"]

    def test_ordered_by_absolute_balance(self, alice, bob):
        transactions = [lend(alice, "100"), borrow(bob, "300")]
        rows = person_breakdown([alice, bob], transactions)
        assert [row.person.name for row in rows] == ["Bob", "Alice"]
        assert rows[0].to_receive is False
        assert rows[1].to_receive is True


class TestRecentPending:
    """Tests for the dashboard's recent pending list."""

    def test_newest_first_and_limited(self, alice):
        now = datetime(2026, 10, 19)
        transactions = [lend(alice, str(i + 1), date=now - timedelta(days=i)) for i in range(7)]

        recent = recent_pending(transactions, limit=5)

        assert len(recent) == 5
        assert recent[0].amount == Decimal("1")
        assert recent[-1].amount == Decimal("5")

    def test_skips_settled_and_unattached(self, alice):
        settled = lend(alice, "1")
        settled.settle(PaymentMode.CASH)
        loose = Transaction(amount=Decimal("2"), type=TransactionType.LEND)
        kept = lend(alice, "3")

        assert recent_pending([settled, loose, kept]) == [kept]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
