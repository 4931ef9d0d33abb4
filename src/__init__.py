"""
Household Ledger - Source Package

Monthly bookkeeping for a household: recurring installments and bills,
daily and one-off expenses, budgets, and a payment ledger, usable with
or without a connection to the remote store.

DESIGN PRINCIPLES:
1. The local copy is always usable; the remote store is the record
2. Offline changes are queued and replayed in order
3. Storage problems degrade to cached data, never to a crash
4. Every write is auditable
5. Storage backends are swappable
"""

__version__ = "1.0.0"
__author__ = "Household Ledger Team"
