"""
Tests for the membership ledger service.

Validates:
- Invoices with the pro-rata credit for a mid-year join
- Category changes (upgrade, downgrade, change on 1 January)
- Receipts, processor fees and money held against applications
- Claiming application credit, write-offs and settlements
- Processor payment notices
- Commit-per-transaction behaviour and replay of whole operations
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from ledger_kernel.domain.values import LineSide
from ledger_kernel.exceptions import (
    InvalidAdjustmentError,
    InvalidJournalError,
)
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.journal_poster import WriteStatus
from ledger_modules.membership import CategoryTerms, PaymentNotice

GENERAL = CategoryTerms("General All Grades", "4000", Decimal("365.00"))
LECTURING = CategoryTerms("Lecturing", "4060", Decimal("730.00"))


def _lines_by_code(result):
    return {(l.account_code, l.side): l for l in result.transaction.lines}


# =============================================================================
# Invoices and credit notes
# =============================================================================


class TestInvoice:
    def test_full_year_invoice(self, membership):
        (result,) = membership.invoice(
            "M-1", "INV-1", date(2025, 1, 10), "365.00", "General All Grades"
        )
        txn = result.transaction
        assert txn.doc_type == "Invoice"
        assert txn.memo == "Subscription 2025 – General All Grades"
        lines = _lines_by_code(result)
        ar = lines[("1400", LineSide.DEBIT)]
        assert (ar.amount, ar.member_id, ar.period_bucket) == (Decimal("365.00"), "M-1", "current")
        income = lines[("4000", LineSide.CREDIT)]
        assert (income.revenue_sub_type, income.category_name) == ("fee", "General All Grades")

    def test_mid_year_join_posts_prorata_credit(self, membership):
        invoice, credit = membership.invoice(
            "M-1", "INV-1", date(2025, 7, 1), "365.00", "General All Grades",
            join_date=date(2025, 7, 1),
        )
        assert invoice.transaction.total_debit == Decimal("365.00")
        assert credit.doc_no == "INV-1-PRORATA"
        assert credit.transaction.doc_type == "CreditNote"
        contra = _lines_by_code(credit)[("4900", LineSide.DEBIT)]
        assert contra.amount == Decimal("181.00")
        assert contra.adj_sub_type == "prorata"
        assert _lines_by_code(credit)[("1400", LineSide.CREDIT)].member_id == "M-1"

    def test_join_on_first_day_has_no_credit(self, membership):
        results = membership.invoice(
            "M-1", "INV-1", date(2025, 1, 1), "365.00", "General All Grades",
            join_date=date(2025, 1, 1),
        )
        assert len(results) == 1

    def test_income_code_from_category(self, membership):
        (result,) = membership.invoice("M-1", "INV-1", date(2025, 1, 10), "100.00", "Lecturing")
        assert ("4060", LineSide.CREDIT) in _lines_by_code(result)

    def test_explicit_income_code_wins(self, membership):
        (result,) = membership.invoice(
            "M-1", "INV-1", date(2025, 1, 10), "100.00", "Lecturing", income_code="4090"
        )
        assert ("4090", LineSide.CREDIT) in _lines_by_code(result)

    def test_unknown_category_rejected(self, membership):
        with pytest.raises(InvalidJournalError):
            membership.invoice("M-1", "INV-1", date(2025, 1, 10), "100.00", "Honorary")

    def test_replay_posts_nothing(self, membership, publisher):
        args = ("M-1", "INV-1", date(2025, 7, 1), "365.00", "General All Grades")
        membership.invoice(*args, join_date=date(2025, 7, 1))
        replay = membership.invoice(*args, join_date=date(2025, 7, 1))

        assert [r.status for r in replay] == [WriteStatus.ALREADY_EXISTS] * 2
        assert len(publisher.events) == 2


class TestCreditNoteAndWriteOff:
    def test_credit_note(self, membership):
        result = membership.credit_note("M-1", "CN-1", date(2025, 2, 1), "25.00")
        contra = _lines_by_code(result)[("4900", LineSide.DEBIT)]
        assert (contra.amount, contra.adj_sub_type) == (Decimal("25.00"), "discount")

    def test_unknown_adjustment_rejected(self, membership):
        with pytest.raises(InvalidAdjustmentError) as exc_info:
            membership.credit_note("M-1", "CN-1", date(2025, 2, 1), "25.00", adj_sub_type="bogus")
        assert "discount" in exc_info.value.allowed

    def test_write_off(self, membership):
        result = membership.write_off("M-1", "WO-1", date(2025, 11, 30), "40.00", period_bucket="arrears")
        lines = _lines_by_code(result)
        assert lines[("5200", LineSide.DEBIT)].adj_sub_type == "writeoff"
        ar = lines[("1400", LineSide.CREDIT)]
        assert (ar.amount, ar.period_bucket) == (Decimal("40.00"), "arrears")
        assert result.transaction.doc_type == "WriteOff"


# =============================================================================
# Category changes
# =============================================================================


class TestChangeCategory:
    def test_upgrade_mid_year(self, membership):
        results = membership.change_category(
            "M-1", "CHG-1", date(2025, 7, 1), date(2025, 7, 1), GENERAL, LECTURING
        )
        assert [r.doc_no for r in results] == ["CHG-1-INVNEW", "CHG-1-COLD", "CHG-1-CNEW"]

        invoice, credit_old, credit_new = results
        assert _lines_by_code(invoice)[("4060", LineSide.CREDIT)].amount == Decimal("730.00")

        old = _lines_by_code(credit_old)[("4900", LineSide.DEBIT)]
        assert (old.amount, old.adj_sub_type, old.category_name) == (
            Decimal("184.00"), "fee-increase-credit", "General All Grades",
        )
        new = _lines_by_code(credit_new)[("4900", LineSide.DEBIT)]
        assert (new.amount, new.adj_sub_type, new.category_name) == (
            Decimal("362.00"), "prorata", "Lecturing",
        )

    def test_downgrade_uses_downgrade_adjustment(self, membership):
        _, credit_old, credit_new = membership.change_category(
            "M-1", "CHG-1", date(2025, 7, 1), date(2025, 7, 1), LECTURING, GENERAL
        )
        old = _lines_by_code(credit_old)[("4900", LineSide.DEBIT)]
        assert (old.amount, old.adj_sub_type) == (Decimal("368.00"), "downgrade")
        assert credit_new.transaction.total_debit == Decimal("181.00")

    def test_change_on_first_day_skips_pre_change_credit(self, membership):
        results = membership.change_category(
            "M-1", "CHG-1", date(2025, 1, 1), date(2025, 1, 1), GENERAL, LECTURING
        )
        assert [r.doc_no for r in results] == ["CHG-1-INVNEW", "CHG-1-COLD"]
        assert results[1].transaction.total_debit == Decimal("365.00")

    def test_member_owes_new_fee_for_remaining_days(self, membership, reporting):
        membership.invoice("M-1", "INV-1", date(2025, 1, 1), "365.00", "General All Grades")
        membership.change_category(
            "M-1", "CHG-1", date(2025, 7, 1), date(2025, 7, 1), GENERAL, LECTURING
        )
        # 181 days at 365 plus 184 days at 730
        report = reporting.members_balances_as_of(date(2025, 12, 31))
        assert report.member("M-1").ar == Decimal("549.00")


# =============================================================================
# Money in
# =============================================================================


class TestReceipt:
    def test_member_receipt(self, membership):
        result = membership.receipt("R-1", date(2025, 2, 1), "120.00", "1210", member_id="M-1")
        lines = _lines_by_code(result)
        assert lines[("1210", LineSide.DEBIT)].amount == Decimal("120.00")
        poa = lines[("2020", LineSide.CREDIT)]
        assert (poa.member_id, poa.application_id) == ("M-1", None)
        assert result.transaction.memo == "Receipt"

    def test_processor_fees_booked_out_of_clearing(self, membership):
        result = membership.receipt(
            "R-1", date(2025, 2, 1), "100.00", "1220", member_id="M-1", processor="stripe"
        )
        txn = result.transaction
        assert len(txn.lines) == 5
        lines = _lines_by_code(result)
        assert lines[("5100", LineSide.DEBIT)].amount == Decimal("1.65")
        assert lines[("1160", LineSide.DEBIT)].amount == Decimal("0.38")
        assert lines[("1220", LineSide.CREDIT)].amount == Decimal("2.03")
        assert txn.total_debit == txn.total_credit == Decimal("102.03")

    def test_application_receipt(self, membership):
        result = membership.receipt("R-1", date(2025, 2, 1), "80.00", "1220", application_id="A-1")
        poa = _lines_by_code(result)[("2020", LineSide.CREDIT)]
        assert (poa.member_id, poa.application_id) == (None, "A-1")
        assert result.transaction.memo == "Receipt (app A-1)"

    def test_member_identity_required(self, membership):
        with pytest.raises(InvalidJournalError):
            membership.receipt("R-1", date(2025, 2, 1), "80.00", "1220")

    def test_non_clearing_account_rejected(self, membership):
        with pytest.raises(InvalidJournalError):
            membership.receipt("R-1", date(2025, 2, 1), "80.00", "1200", member_id="M-1")

    def test_unknown_processor_rejected(self, membership):
        with pytest.raises(InvalidJournalError):
            membership.receipt(
                "R-1", date(2025, 2, 1), "80.00", "1220", member_id="M-1", processor="acme"
            )


class TestClaimApplicationCredit:
    def test_moves_credit_to_member(self, membership):
        membership.receipt("R-1", date(2025, 1, 5), "80.00", "1220", application_id="A-1")
        result = membership.claim_application_credit("A-1", "M-1", "CLM-1", date(2025, 1, 20), "80.00")

        txn = result.transaction
        assert txn.doc_type == "Claim"
        assert txn.memo == "Claim app credit A-1 → M-1"
        debit, credit = txn.lines
        assert (debit.account_code, debit.side, debit.application_id) == ("2020", LineSide.DEBIT, "A-1")
        assert (credit.account_code, credit.side, credit.member_id) == ("2020", LineSide.CREDIT, "M-1")

    @pytest.mark.parametrize("amount", ["0", "-5.00"])
    def test_amount_must_be_positive(self, membership, amount):
        with pytest.raises(InvalidJournalError):
            membership.claim_application_credit("A-1", "M-1", "CLM-1", date(2025, 1, 20), amount)


class TestSettle:
    def test_settlement_reaches_bank(self, membership):
        result = membership.settle("SET-1", date(2025, 2, 3), "500.00", "1240")
        lines = _lines_by_code(result)
        assert result.transaction.doc_type == "Settlement"
        assert lines[("1200", LineSide.DEBIT)].amount == Decimal("500.00")
        assert lines[("1240", LineSide.CREDIT)].amount == Decimal("500.00")
        assert result.transaction.memo == "Settlement from 1240"

    def test_non_clearing_source_rejected(self, membership):
        with pytest.raises(InvalidJournalError):
            membership.settle("SET-1", date(2025, 2, 3), "500.00", "1100")


class TestPaymentNotice:
    def test_succeeded_notice_posts_receipt(self, membership):
        notice = PaymentNotice("pi_123", 10000, "eur", "succeeded", received_on=date(2025, 5, 5))
        result = membership.apply_payment_notice(notice, member_id="M-1")

        assert result.doc_no == "PAY-pi_123"
        assert result.transaction.date == date(2025, 5, 5)
        assert _lines_by_code(result)[("1220", LineSide.DEBIT)].amount == Decimal("100.00")
        assert _lines_by_code(result)[("5100", LineSide.DEBIT)].amount == Decimal("1.65")

    def test_date_defaults_to_clock(self, membership):
        notice = PaymentNotice("pi_9", 2500, "eur", "succeeded")
        result = membership.apply_payment_notice(notice, application_id="A-3")
        assert result.transaction.date == date(2025, 6, 30)

    def test_other_status_ignored(self, membership, session, captured_logs):
        notice = PaymentNotice("pi_1", 10000, "eur", "processing")
        assert membership.apply_payment_notice(notice, member_id="M-1") is None
        assert JournalSelector(session).find_by_doc_no("PAY-pi_1") is None
        assert any(r["message"] == "payment_notice_ignored" for r in captured_logs())

    def test_repeated_notice_replays(self, membership):
        notice = PaymentNotice("pi_123", 10000, "eur", "succeeded", received_on=date(2025, 5, 5))
        first = membership.apply_payment_notice(notice, member_id="M-1")
        second = membership.apply_payment_notice(notice, member_id="M-1")
        assert second.status == WriteStatus.ALREADY_EXISTS
        assert second.transaction == first.transaction

    @pytest.mark.parametrize("amount", [10.5, -1, True])
    def test_amount_must_be_minor_units(self, amount):
        with pytest.raises(ValueError):
            PaymentNotice("pi_1", amount, "eur", "succeeded")


# =============================================================================
# Transaction boundary
# =============================================================================


class TestCommitBehaviour:
    def test_posted_transactions_visible_to_other_sessions(self, membership, session_factory):
        membership.invoice(
            "M-1", "INV-1", date(2025, 7, 1), "365.00", "General All Grades",
            join_date=date(2025, 7, 1),
        )
        other = session_factory()
        try:
            selector = JournalSelector(other)
            assert selector.find_by_doc_no("INV-1") is not None
            assert selector.find_by_doc_no("INV-1-PRORATA") is not None
        finally:
            other.close()

    def test_failure_rolls_back_and_session_stays_usable(self, membership):
        with pytest.raises(InvalidJournalError):
            membership.credit_note("M-1", "CN-1", date(2025, 2, 1), "-5.00")
        result = membership.receipt("R-1", date(2025, 2, 1), "5.00", "1220", member_id="M-1")
        assert result.is_new

    def test_events_follow_commit(self, membership, publisher):
        (result,) = membership.invoice("M-1", "INV-1", date(2025, 1, 10), "100.00", "Lecturing")
        assert result.event_published
        assert [e.data["doc_no"] for e in publisher.events] == ["INV-1"]

    def test_failed_commit_publishes_nothing(self, membership, session, publisher, monkeypatch):
        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(session, "commit", failing_commit)
        with pytest.raises(OperationalError):
            membership.credit_note("M-1", "CN-1", date(2025, 2, 1), "25.00")
        monkeypatch.undo()

        assert publisher.events == []
        assert JournalSelector(session).find_by_doc_no("CN-1") is None
