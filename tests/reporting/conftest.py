"""
Reporting-specific test fixtures.

Provides:
- ``two_document_ledger``: an invoice of 1200.00 and a 100.00 credit note
  for member M-1, committed
- ``cn_lines``: the contra income / AR pair of a credit note
"""

from datetime import date

import pytest

from ledger_kernel.domain.dtos import LineSpec


@pytest.fixture
def cn_lines():
    def _make(member_id="M-1", amount="100.00", bucket="current"):
        return [
            LineSpec.debit("4900", amount, adj_sub_type="discount"),
            LineSpec.credit("1400", amount, member_id=member_id, period_bucket=bucket),
        ]

    return _make


@pytest.fixture
def two_document_ledger(post, invoice_lines, cn_lines):
    """T1 Invoice 2025-01-15 AR 1200 / income 1200; T2 CreditNote 2025-02-01 contra 100 / AR 100."""
    t1 = post("INV-1", "Invoice", date(2025, 1, 15), invoice_lines("M-1", "1200.00"))
    t2 = post("CN-1", "CreditNote", date(2025, 2, 1), cn_lines("M-1", "100.00"))
    return t1, t2
