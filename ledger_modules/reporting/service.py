"""
Reporting Module Service (``ledger_modules.reporting.service``).

Responsibility
--------------
Derives the ledger reports -- trial balance, income statement, member
balances and clearing reconciliation -- from the immutable journal by
bridging ``LedgerSelector`` aggregates to the pure builders in
``statements.py``, and locks month-end / year-end period reports into
snapshots through ``SnapshotService``.

Architecture position
---------------------
**Modules layer** -- thin glue.  Constructor: ``session_factory`` +
``policy`` + ``clock`` + ``config``.  Every aggregate runs in its own
short-lived read session, so the parts of a period report can run as
concurrent tasks with no shared state; they are joined before the report
is composed.

Invariants enforced
-------------------
* Read-only for the journal.  The only write is the snapshot row.
* Reads see whatever is committed at call time (read committed).
* A locked snapshot is returned verbatim; it is never recomputed.
* All monetary amounts use ``Decimal`` -- NEVER ``float``.

Failure modes
-------------
* Storage failures (``SQLAlchemyError``) surface as the retryable
  ``ReportComputationError``, distinct from validation errors.
* ``InvalidRangeError`` for an inverted range, ``InvalidPeriodError`` for a
  malformed month or year label, before any query runs.

Audit relevance
---------------
Structured log events for every report (type, range, duration) and for
every snapshot request.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import date
from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_config.schema import LedgerPolicy
from ledger_kernel.db.engine import READ_ONLY_EXECUTION_OPTIONS
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import DateRange
from ledger_kernel.exceptions import ReportComputationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.report_snapshot import SnapshotType
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.snapshot_service import (
    SnapshotRecord,
    SnapshotResult,
    SnapshotService,
)
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    ClearingReconciliationReport,
    IncomeStatementReport,
    MembersBalanceReport,
    PeriodReport,
    ReportMetadata,
    ReportType,
    TrialBalanceReport,
)
from ledger_modules.reporting.periods import PeriodRange, month_range, year_range
from ledger_modules.reporting.statements import (
    build_clearing_reconciliation,
    build_income_statement,
    build_trial_balance,
    fold_member_balances,
)

logger = get_logger("modules.reporting.service")

T = TypeVar("T")


def _check_range(start: date | None, end: date | None) -> None:
    if start is not None and end is not None:
        DateRange(start, end)


class ReportingService:
    """
    Ledger report generation service.

    Contract
    --------
    * Every public report method returns a typed, frozen report object with
      ``to_dict()``.
    * ``month_end`` / ``year_end`` return a ``SnapshotResult``; ``created``
      tells whether this call computed it.

    Guarantees
    ----------
    * Report figures are recomputed from the journal on every call; there is
      no balance cache to go stale.
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT post journal entries.
    * Does NOT refresh a snapshot once locked.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        policy: LedgerPolicy,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
    ):
        self._session_factory = session_factory
        self._policy = policy
        self._clock = clock or SystemClock()
        self._config = config or ReportingConfig.with_defaults()

        logger.info(
            "reporting_service_initialized",
            extra={"max_workers": self._config.max_workers},
        )

    # =========================================================================
    # Internal helpers
    # =========================================================================

    @contextmanager
    def _read_session(self, report_type: ReportType) -> Iterator[Session]:
        """A read-only session whose storage errors become ReportComputationError."""
        session = self._session_factory()
        try:
            session.connection(execution_options=READ_ONLY_EXECUTION_OPTIONS)
            yield session
        except SQLAlchemyError as exc:
            logger.error(
                "report_computation_failed",
                extra={"report_type": report_type.value, "error": str(exc)},
            )
            raise ReportComputationError(report_type.value, str(exc)) from exc
        finally:
            session.close()

    def _run(self, report_type: ReportType, build: Callable[[Session], T]) -> T:
        with self._read_session(report_type) as session:
            return build(session)

    def _metadata(
        self,
        report_type: ReportType,
        start: date | None,
        end: date | None,
        label: str | None = None,
    ) -> ReportMetadata:
        return ReportMetadata(
            report_type=report_type,
            generated_at=self._clock.now().isoformat(),
            period_start=start,
            period_end=end,
            label=label,
        )

    def _build_trial_balance(
        self, session: Session, start: date | None, end: date | None, label: str | None
    ) -> TrialBalanceReport:
        rows = LedgerSelector(session).trial_balance(start, end)
        return build_trial_balance(
            rows, self._metadata(ReportType.TRIAL_BALANCE, start, end, label)
        )

    def _build_income_statement(
        self, session: Session, start: date | None, end: date | None, label: str | None
    ) -> IncomeStatementReport:
        rows = LedgerSelector(session).trial_balance(start, end)
        return build_income_statement(
            rows, self._metadata(ReportType.INCOME_STATEMENT, start, end, label)
        )

    def _build_members(
        self, session: Session, as_of: date, label: str | None
    ) -> MembersBalanceReport:
        roles = self._policy.roles
        rows = LedgerSelector(session).member_tracked_balances(
            as_of, (roles.accounts_receivable, roles.payment_on_account)
        )
        return fold_member_balances(
            rows,
            ar_code=roles.accounts_receivable,
            poa_code=roles.payment_on_account,
            application_prefix=self._policy.application_prefix,
            as_of=as_of,
            metadata=self._metadata(ReportType.MEMBERS_BALANCES, None, as_of, label),
        )

    def _build_clearing(
        self, session: Session, start: date | None, end: date | None, label: str | None
    ) -> ClearingReconciliationReport:
        codes = self._policy.clearing_codes
        rows = LedgerSelector(session).clearing_movement(start, end, codes)
        names = {a.code: a.description for a in AccountSelector(session).find_accounts_by_code(codes)}
        return build_clearing_reconciliation(
            rows, names, self._metadata(ReportType.CLEARING_RECONCILIATION, start, end, label)
        )

    def _timed(self, report_type: ReportType, start, end, fn: Callable[[], T]) -> T:
        t0 = time.monotonic()
        result = fn()
        logger.info(
            "report_generated",
            extra={
                "report_type": report_type.value,
                "period_start": start,
                "period_end": end,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        return result

    # =========================================================================
    # Reports
    # =========================================================================

    def trial_balance(
        self, start: date | None, end: date | None, label: str | None = None
    ) -> TrialBalanceReport:
        """Per-account debit, credit and net for transactions dated in [start, end]."""
        _check_range(start, end)
        return self._timed(
            ReportType.TRIAL_BALANCE, start, end,
            lambda: self._run(
                ReportType.TRIAL_BALANCE,
                lambda s: self._build_trial_balance(s, start, end, label),
            ),
        )

    def income_statement(
        self, start: date | None, end: date | None, label: str | None = None
    ) -> IncomeStatementReport:
        """Income, contra income, expenses and profit for [start, end]."""
        _check_range(start, end)
        return self._timed(
            ReportType.INCOME_STATEMENT, start, end,
            lambda: self._run(
                ReportType.INCOME_STATEMENT,
                lambda s: self._build_income_statement(s, start, end, label),
            ),
        )

    def members_balances_as_of(self, as_of: date) -> MembersBalanceReport:
        """Every member's receivable, credit held and net position at ``as_of``."""
        return self._timed(
            ReportType.MEMBERS_BALANCES, None, as_of,
            lambda: self._run(
                ReportType.MEMBERS_BALANCES,
                lambda s: self._build_members(s, as_of, None),
            ),
        )

    def clearing_reconciliation(
        self, start: date | None, end: date | None, label: str | None = None
    ) -> ClearingReconciliationReport:
        """Net movement on each clearing account in [start, end]."""
        _check_range(start, end)
        return self._timed(
            ReportType.CLEARING_RECONCILIATION, start, end,
            lambda: self._run(
                ReportType.CLEARING_RECONCILIATION,
                lambda s: self._build_clearing(s, start, end, label),
            ),
        )

    def period_report(self, date_range: DateRange, label: str | None = None) -> PeriodReport:
        """
        All four reports for one period, computed as concurrent tasks.

        Member balances are taken as of the last day of the range.
        """
        start, end = date_range.start, date_range.end
        tasks: dict[str, tuple[ReportType, Callable[[Session], Any]]] = {
            "trial_balance": (
                ReportType.TRIAL_BALANCE,
                lambda s: self._build_trial_balance(s, start, end, label),
            ),
            "income_statement": (
                ReportType.INCOME_STATEMENT,
                lambda s: self._build_income_statement(s, start, end, label),
            ),
            "members": (
                ReportType.MEMBERS_BALANCES,
                lambda s: self._build_members(s, end, label),
            ),
            "clearing": (
                ReportType.CLEARING_RECONCILIATION,
                lambda s: self._build_clearing(s, start, end, label),
            ),
        }

        def compose() -> PeriodReport:
            with ThreadPoolExecutor(max_workers=self._config.max_workers) as pool:
                futures = {
                    name: pool.submit(self._run, report_type, build)
                    for name, (report_type, build) in tasks.items()
                }
                parts = {name: future.result() for name, future in futures.items()}
            return PeriodReport(
                metadata=self._metadata(ReportType.PERIOD_REPORT, start, end, label),
                **parts,
            )

        return self._timed(ReportType.PERIOD_REPORT, start, end, compose)

    # =========================================================================
    # Locked period snapshots
    # =========================================================================

    def _snapshot(
        self,
        snapshot_type: SnapshotType,
        period: PeriodRange,
        locked_by: str | None,
        notes: str | None,
    ) -> SnapshotResult:
        session = self._session_factory()
        try:
            result = SnapshotService(session, self._clock).get_or_compute_snapshot(
                snapshot_type,
                period.label,
                period,
                compute_fn=lambda: self.period_report(period, period.label).to_dict(),
                locked_by=locked_by or self._config.default_locked_by,
                notes=notes,
            )
            session.commit()
            return result
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(
                "report_computation_failed",
                extra={"report_type": snapshot_type.value, "label": period.label, "error": str(exc)},
            )
            raise ReportComputationError(snapshot_type.value, str(exc)) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def month_end(
        self, period: str, locked_by: str | None = None, notes: str | None = None
    ) -> SnapshotResult:
        """Locked period report for a ``YYYY-MM`` month."""
        return self._snapshot(SnapshotType.MONTH_END, month_range(period), locked_by, notes)

    def year_end(
        self, year: int | str, locked_by: str | None = None, notes: str | None = None
    ) -> SnapshotResult:
        """Locked period report for a calendar year."""
        return self._snapshot(SnapshotType.YEAR_END, year_range(year), locked_by, notes)

    def find_snapshot(self, snapshot_type: SnapshotType | str, label: str) -> SnapshotRecord | None:
        """The locked snapshot for (type, label), or None."""
        with self._read_session(ReportType.PERIOD_REPORT) as session:
            return SnapshotService(session, self._clock).find_snapshot(snapshot_type, label)
