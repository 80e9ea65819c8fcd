"""
Pytest fixtures for the membership ledger test suite.

Provides:
- Structured logging configured once per run, LogContext cleared per test
- A file-backed SQLite database per test, tables created and the default
  chart of accounts seeded
- DeterministicClock, InMemoryEventPublisher and wired services

A file (not :memory:) database is used so that concurrent sessions in
worker threads see each other's committed rows.
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO

import pytest

from ledger_config import build_journal_poster, get_active_config, seed_chart_of_accounts
from ledger_kernel.db.engine import (
    create_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.services.event_publisher import InMemoryEventPublisher
from ledger_modules.membership import MembershipLedgerService
from ledger_modules.reporting import ReportingConfig, ReportingService


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, poster):
            poster.post_balanced_journal(...)
            logs = captured_logs()
            assert any(r["message"] == "journal_posted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Configuration and database
# =============================================================================


@pytest.fixture
def ledger_config():
    """The default configuration set."""
    return get_active_config("default")


@pytest.fixture
def policy(ledger_config):
    return ledger_config.policy


@pytest.fixture
def db_engine(tmp_path, ledger_config):
    """A fresh SQLite database with tables and the chart of accounts."""
    engine = init_engine_from_url(f"sqlite:///{tmp_path / 'ledger.db'}", busy_timeout=10.0)
    create_tables()
    with session_scope() as session:
        seed_chart_of_accounts(session, ledger_config)
    yield engine
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture
def session(db_engine):
    """
    A session on the test database.

    Tests commit what they want other sessions (reports, worker threads) to
    see.  Anything left uncommitted is rolled back.
    """
    s = get_session()
    yield s
    s.rollback()
    s.close()


# =============================================================================
# Time, events and services
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2025, 6, 30, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def publisher():
    return InMemoryEventPublisher()


@pytest.fixture
def poster(session, ledger_config, clock, publisher):
    return build_journal_poster(session, ledger_config, clock=clock, publisher=publisher)


@pytest.fixture
def membership(session, ledger_config, clock, poster):
    return MembershipLedgerService(session, ledger_config, clock=clock, poster=poster)


@pytest.fixture
def reporting(session_factory, policy, clock):
    return ReportingService(
        session_factory, policy, clock=clock, config=ReportingConfig(max_workers=4)
    )


# =============================================================================
# Line helpers
# =============================================================================


@pytest.fixture
def invoice_lines():
    """
    Build the AR debit / income credit pair of a member invoice.

    Usage::

        lines = invoice_lines("M-1", "1200.00")
    """

    def _make(member_id="M-1", amount="100.00", income_code="4000", bucket="current"):
        return [
            LineSpec.debit("1400", amount, member_id=member_id, period_bucket=bucket),
            LineSpec.credit(income_code, amount, revenue_sub_type="fee"),
        ]

    return _make


@pytest.fixture
def post(poster, session):
    """
    Post and commit one journal.

    Usage::

        post("INV-1", "Invoice", date(2025, 1, 15), lines)
    """

    def _post(doc_no, doc_type, posting_date, lines, memo="test"):
        result = poster.post_balanced_journal(posting_date, doc_type, doc_no, memo, lines)
        session.commit()
        return result

    return _post
