"""
Tally - Source Package

A personal lend/borrow ledger: record money lent to or borrowed from
people, settle it when repaid, and see who owes whom at a glance.

DESIGN PRINCIPLES:
1. Balances are derived, never stored
2. Nothing invalid reaches storage
3. Settlement is one-way
4. Every change is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
