"""
Concurrent posting of the same document.

Verifies:
- A duplicate insert that loses the doc_no race is reported as
  ALREADY_EXISTS with the winner's transaction, never as an error
- Two sessions posting the same doc_no concurrently produce one row
- Concurrent posts of different doc_nos all land
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date

from sqlalchemy import func, select

from ledger_config import build_journal_poster
from ledger_kernel.models.journal import JournalTransaction
from ledger_kernel.services.journal_poster import WriteStatus

POSTING_DATE = date(2025, 3, 1)


class TestLostInsertRace:
    def test_integrity_error_becomes_already_exists(self, poster, session, invoice_lines, captured_logs):
        """The lookup misses a row committed by another writer; the insert then collides."""
        first = poster.post_balanced_journal(POSTING_DATE, "Invoice", "INV-9", "", invoice_lines())
        session.commit()

        real_lookup = poster._get_existing
        calls = []

        def stale_lookup(doc_no):
            calls.append(doc_no)
            if len(calls) == 1:
                return None
            return real_lookup(doc_no)

        poster._get_existing = stale_lookup
        second = poster.post_balanced_journal(POSTING_DATE, "Invoice", "INV-9", "", invoice_lines())
        session.commit()

        assert calls == ["INV-9", "INV-9"]
        assert second.status == WriteStatus.ALREADY_EXISTS
        assert second.transaction == first.transaction
        assert session.scalar(select(func.count()).select_from(JournalTransaction)) == 1
        assert any(r["message"] == "concurrent_insert_conflict" for r in captured_logs())

    def test_session_usable_after_lost_race(self, poster, session, invoice_lines):
        poster.post_balanced_journal(POSTING_DATE, "Invoice", "INV-9", "", invoice_lines())
        session.commit()

        real_lookup = poster._get_existing
        lookups = iter([lambda doc_no: None])
        poster._get_existing = lambda doc_no: next(lookups, real_lookup)(doc_no)
        poster.post_balanced_journal(POSTING_DATE, "Invoice", "INV-9", "", invoice_lines())

        result = poster.post_balanced_journal(POSTING_DATE, "Invoice", "INV-10", "", invoice_lines())
        session.commit()
        assert result.is_new


class TestTwoSessions:
    def test_same_doc_no_from_two_threads(self, session_factory, ledger_config, invoice_lines):
        barrier = threading.Barrier(2)

        def post_once():
            s = session_factory()
            try:
                p = build_journal_poster(s, ledger_config)
                barrier.wait(timeout=10)
                result = p.post_balanced_journal(
                    POSTING_DATE, "Invoice", "INV-RACE", "", invoice_lines("M-7", "250.00")
                )
                s.commit()
                return result
            finally:
                s.close()

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = [f.result() for f in [pool.submit(post_once) for _ in range(2)]]

        statuses = sorted(r.status.value for r in results)
        assert statuses == [WriteStatus.ALREADY_EXISTS.value, WriteStatus.WRITTEN.value]
        assert results[0].transaction == results[1].transaction

        check = session_factory()
        try:
            count = check.scalar(
                select(func.count())
                .select_from(JournalTransaction)
                .where(JournalTransaction.doc_no == "INV-RACE")
            )
        finally:
            check.close()
        assert count == 1

    def test_distinct_doc_nos_all_written(self, session_factory, ledger_config, invoice_lines):
        def post_one(n):
            s = session_factory()
            try:
                p = build_journal_poster(s, ledger_config)
                result = p.post_balanced_journal(
                    POSTING_DATE, "Invoice", f"INV-{n}", "", invoice_lines(f"M-{n}")
                )
                s.commit()
                return result
            finally:
                s.close()

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(post_one, range(8)))

        assert all(r.is_new for r in results)
        assert len({r.transaction.id for r in results}) == 8
