"""Utility helpers for the ledger kernel."""

from ledger_kernel.utils.idempotency import (
    IdempotencyCache,
    derived_doc_no,
    parse_derived_doc_no,
)

__all__ = ["IdempotencyCache", "derived_doc_no", "parse_derived_doc_no"]
