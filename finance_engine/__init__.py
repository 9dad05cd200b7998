"""
Finance Engine - Transaction Ingestion & Reconciliation

Turns heterogeneous financial documents (monthly ledger workbooks, CSV
exports, extracted invoices and card statements) into a normalized set of
transactions.

DESIGN PRINCIPLES:
1. Parse → Reconcile → Human confirms → Persist in one batch
2. Row-level failures become diagnostics, never silent drops
3. No partial writes
4. Every import step is auditable
5. Storage and extraction are swappable collaborators
"""

__version__ = "1.0.0"
