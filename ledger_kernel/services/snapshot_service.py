"""
SnapshotService -- compute-once cache for period reports.

Responsibility:
    ``get_or_compute_snapshot`` returns the locked snapshot for a
    (type, label) pair, computing and storing it on first request only.
    Later requests return the stored payload verbatim even when the ledger
    has changed since (for example after a backdated posting).  Locked
    snapshots are history.

Architecture position:
    Kernel > Services.  The compute function is supplied by the caller
    (normally ``ReportingService``); this service only owns the
    ReportSnapshot lifecycle.

Invariants enforced:
    - At most one snapshot per (report_type, label), enforced by the
      uq_report_snapshot_type_label constraint.
    - Concurrent first requests: the losing insert's IntegrityError is
      converted into AlreadyExists(winner) after a re-fetch, never surfaced.
    - Snapshots are never updated.

Failure modes:
    - Exceptions raised by ``compute_fn`` propagate unchanged; nothing is
      stored.
"""

import copy
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    AlreadyExists,
    DateRange,
    Inserted,
    InsertResult,
    WriteStatus,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.report_snapshot import ReportSnapshot, SnapshotType
from ledger_kernel.services.base import BaseService

logger = get_logger("services.snapshot_service")


@dataclass(frozen=True)
class SnapshotRecord:
    """Read model of a stored snapshot.  ``data`` is a private copy of the payload."""

    id: UUID
    report_type: str
    label: str
    range_start: date
    range_end: date
    data: dict[str, Any]
    locked_by: str | None
    notes: str | None
    generated_at: datetime

    @classmethod
    def from_model(cls, model: ReportSnapshot) -> "SnapshotRecord":
        return cls(
            id=model.id,
            report_type=str(getattr(model.report_type, "value", model.report_type)),
            label=model.label,
            range_start=model.range_start,
            range_end=model.range_end,
            data=copy.deepcopy(model.data),
            locked_by=model.locked_by,
            notes=model.notes,
            generated_at=model.generated_at,
        )


@dataclass(frozen=True)
class SnapshotResult:
    status: WriteStatus
    snapshot: SnapshotRecord

    @property
    def created(self) -> bool:
        return self.status == WriteStatus.WRITTEN


class SnapshotService(BaseService[ReportSnapshot]):
    """Owns ReportSnapshot creation and lookup."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def find_snapshot(self, snapshot_type: SnapshotType | str, label: str) -> SnapshotRecord | None:
        model = self._get_existing(SnapshotType(snapshot_type), label)
        return SnapshotRecord.from_model(model) if model is not None else None

    def get_or_compute_snapshot(
        self,
        snapshot_type: SnapshotType | str,
        label: str,
        date_range: DateRange,
        compute_fn: Callable[[], dict[str, Any]],
        locked_by: str | None = None,
        notes: str | None = None,
    ) -> SnapshotResult:
        """
        Return the snapshot for (type, label), computing it if absent.

        ``compute_fn`` is only called when no snapshot exists yet.  Its
        result must be JSON-serializable.
        """
        snapshot_type = SnapshotType(snapshot_type)
        existing = self._get_existing(snapshot_type, label)
        if existing is not None:
            logger.info(
                "snapshot_reused",
                extra={"report_type": snapshot_type.value, "label": label},
            )
            return SnapshotResult(WriteStatus.ALREADY_EXISTS, SnapshotRecord.from_model(existing))

        logger.info(
            "snapshot_compute_started",
            extra={"report_type": snapshot_type.value, "label": label,
                   "range_start": date_range.start, "range_end": date_range.end},
        )
        data = compute_fn()

        outcome = self._insert(
            ReportSnapshot(
                report_type=snapshot_type.value,
                label=label,
                range_start=date_range.start,
                range_end=date_range.end,
                data=copy.deepcopy(data),
                locked_by=locked_by,
                notes=notes,
                generated_at=self._clock.now(),
            )
        )
        if isinstance(outcome, AlreadyExists):
            return SnapshotResult(WriteStatus.ALREADY_EXISTS, outcome.record)

        logger.info(
            "snapshot_created",
            extra={"report_type": snapshot_type.value, "label": label, "locked_by": locked_by},
        )
        return SnapshotResult(WriteStatus.WRITTEN, outcome.record)

    def _get_existing(self, snapshot_type: SnapshotType, label: str) -> ReportSnapshot | None:
        return self.session.scalars(
            select(ReportSnapshot).where(
                ReportSnapshot.report_type == snapshot_type.value,
                ReportSnapshot.label == label,
            )
        ).first()

    def _insert(self, model: ReportSnapshot) -> InsertResult[SnapshotRecord]:
        try:
            with self.session.begin_nested():
                self.session.add(model)
                self.session.flush()
        except IntegrityError:
            logger.warning("concurrent_insert_conflict", extra={"table": "report_snapshots"})
            winner = self._get_existing(SnapshotType(model.report_type), model.label)
            if winner is None:
                raise
            return AlreadyExists(SnapshotRecord.from_model(winner))
        return Inserted(SnapshotRecord.from_model(model))
