"""Balance queries package."""

from tally.queries.balances import (
    balance_description,
    dashboard_description,
    net_balance,
    person_breakdown,
    recent_pending,
    summarize,
    total_borrowed,
    total_lent,
)

__all__ = [
    "balance_description",
    "dashboard_description",
    "net_balance",
    "person_breakdown",
    "recent_pending",
    "summarize",
    "total_borrowed",
    "total_lent",
]
