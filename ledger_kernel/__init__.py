"""
Ledger Kernel - membership accounting core

An append-only double-entry ledger with:
- Idempotent posting keyed on the business document number
- Balanced multi-line transactions validated against the chart of accounts
- Pluggable posting guardrails
- Reports derived from the immutable transaction log
- Locked month-end / year-end snapshots
"""

__version__ = "0.1.0"
