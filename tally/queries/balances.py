"""
Balance Aggregation

DESIGN DECISION: Balances are never stored. They are recomputed from the
transaction list on every read, so they cannot drift out of sync with the
records they summarize.

Only PENDING transactions count. Once a transaction is settled it drops out
of every total, for the person and for the dashboard alike.

Sign convention for net balance:
    > 0  the person owes the user ("to receive")
    < 0  the user owes the person ("to pay")
    == 0 nothing outstanding ("settled")

Every function here is pure: it reads the sequence it is given and
returns a new value.
"""

from decimal import Decimal
from typing import Iterable, Optional, Sequence

from tally.formatting import DEFAULT_CURRENCY_SYMBOL, format_currency
from tally.models.ledger import (
    BalanceSummary,
    Person,
    PersonBalance,
    Transaction,
    TransactionType,
)

ZERO = Decimal("0")


def _pending_amounts(
    transactions: Iterable[Transaction],
    transaction_type: TransactionType,
    person: Optional[Person],
) -> Iterable[Decimal]:
    for txn in transactions:
        if txn.is_completed or txn.type != transaction_type:
            continue
        if person is not None and txn.person_id != person.id:
            continue
        yield txn.amount


def total_lent(
    transactions: Iterable[Transaction],
    person: Optional[Person] = None,
) -> Decimal:
    """Sum of pending Lend amounts, for one person or (person=None) everyone."""
    return sum(_pending_amounts(transactions, TransactionType.LEND, person), ZERO)


def total_borrowed(
    transactions: Iterable[Transaction],
    person: Optional[Person] = None,
) -> Decimal:
    """Sum of pending Borrow amounts, for one person or (person=None) everyone."""
    return sum(_pending_amounts(transactions, TransactionType.BORROW, person), ZERO)


def net_balance(
    transactions: Sequence[Transaction],
    person: Optional[Person] = None,
) -> Decimal:
    """total_lent - total_borrowed over the same scope."""
    return total_lent(transactions, person) - total_borrowed(transactions, person)


def balance_description(
    net: Decimal,
    symbol: str = DEFAULT_CURRENCY_SYMBOL,
) -> str:
    """Text shown next to a person's name."""
    if net > 0:
        return f"To Receive: {format_currency(net, symbol)}"
    elif net < 0:
        return f"To Pay: {format_currency(abs(net), symbol)}"
    return "Settled"


def dashboard_description(net: Decimal) -> str:
    """Caption under the dashboard's net balance figure."""
    if net > 0:
        return "You are owed this amount"
    elif net < 0:
        return "You owe this amount"
    return "All settled"


def summarize(
    transactions: Sequence[Transaction],
    person: Optional[Person] = None,
    symbol: str = DEFAULT_CURRENCY_SYMBOL,
) -> BalanceSummary:
    """
    All totals for one scope in a single pass over the caller's list.

    With a person the description is the per-person text
    ("To Receive: ..."); without one it is the dashboard caption.
    """
    lent = total_lent(transactions, person)
    borrowed = total_borrowed(transactions, person)
    net = lent - borrowed
    description = (
        balance_description(net, symbol) if person is not None
        else dashboard_description(net)
    )
    return BalanceSummary(
        total_lent=lent,
        total_borrowed=borrowed,
        net_balance=net,
        description=description,
    )


def person_breakdown(
    people: Iterable[Person],
    transactions: Sequence[Transaction],
) -> list[PersonBalance]:
    """
    People who still have something outstanding,
    largest absolute balance first.
    """
    rows = []
    for person in people:
        net = net_balance(transactions, person)
        if net != 0:
            rows.append(PersonBalance(person=person, net_balance=net))
    rows.sort(key=lambda row: abs(row.net_balance), reverse=True)
    return rows


def recent_pending(
    transactions: Iterable[Transaction],
    limit: int = 5,
) -> list[Transaction]:
    """Newest pending transactions attached to someone."""
    pending = [t for t in transactions if t.is_pending and t.person_id is not None]
    pending.sort(key=lambda t: t.date, reverse=True)
    return pending[:limit]
