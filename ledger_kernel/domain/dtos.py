"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that flow through the posting
    pipeline:

        LineSpec (caller input)
          -> EnrichedLine (posting engine only; carries the CoA metadata and
             the display label)
          -> StoredLine (persisted shape; raw account code, no label)
          -> PostedTransaction (read model returned to callers)

    The EnrichedLine -> StoredLine step is an explicit mapping function
    (``to_stored_line``).  The label is never stripped by field deletion;
    it simply does not exist on StoredLine.

    Also defines the tagged insert result (``Inserted`` / ``AlreadyExists``)
    returned by every idempotent insert in the kernel.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    ``from_model`` class methods are boundary converters invoked from the
    service and selector layers only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar, Union
from uuid import UUID

from ledger_kernel.domain.values import LineSide, PeriodBucket, to_decimal
from ledger_kernel.exceptions import InvalidRangeError

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account as AccountModel
    from ledger_kernel.models.journal import (
        JournalLine as JournalLineModel,
        JournalTransaction as JournalTransactionModel,
    )


# ---------------------------------------------------------------------------
# Chart of accounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountInfo:
    """Read-only view of a chart of accounts entry."""

    code: str
    description: str
    account_type: str
    is_cash: bool = False
    is_clearing: bool = False
    is_member_tracked: bool = False
    is_revenue: bool = False
    is_contra_revenue: bool = False

    @property
    def label(self) -> str:
        return f"{self.code} ({self.description})"

    @classmethod
    def from_model(cls, model: AccountModel) -> AccountInfo:
        return cls(
            code=model.code,
            description=model.description,
            account_type=str(getattr(model.account_type, "value", model.account_type)),
            is_cash=model.is_cash,
            is_clearing=model.is_clearing,
            is_member_tracked=model.is_member_tracked,
            is_revenue=model.is_revenue,
            is_contra_revenue=model.is_contra_revenue,
        )


# ---------------------------------------------------------------------------
# Posting pipeline
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineSpec:
    """
    A journal line as supplied by the caller.

    Contract:
        Carries an account code (not an ID), a side and an amount.  Amounts
        are normalized to ``Decimal`` on construction; sign and account
        validity are checked by the posting engine so that failures surface
        as typed ledger errors.
    """

    account_code: str
    side: LineSide
    amount: Decimal
    member_id: str | None = None
    application_id: str | None = None
    period_bucket: PeriodBucket | None = None
    revenue_sub_type: str | None = None
    adj_sub_type: str | None = None
    category_name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        object.__setattr__(self, "side", LineSide(self.side))
        if self.period_bucket is not None:
            object.__setattr__(self, "period_bucket", PeriodBucket(self.period_bucket))

    @classmethod
    def debit(cls, account_code: str, amount: Decimal | int | str, **kwargs: Any) -> LineSpec:
        return cls(account_code=account_code, side=LineSide.DEBIT, amount=amount, **kwargs)

    @classmethod
    def credit(cls, account_code: str, amount: Decimal | int | str, **kwargs: Any) -> LineSpec:
        return cls(account_code=account_code, side=LineSide.CREDIT, amount=amount, **kwargs)


@dataclass(frozen=True)
class EnrichedLine:
    """
    A LineSpec resolved against the chart of accounts.

    Used only inside the posting engine: guardrails read ``account`` and
    log records read ``label``.  Never persisted.
    """

    line_seq: int
    spec: LineSpec
    account: AccountInfo
    amount: Decimal

    @property
    def account_code(self) -> str:
        return self.spec.account_code

    @property
    def side(self) -> LineSide:
        return self.spec.side

    @property
    def label(self) -> str:
        return self.account.label

    @property
    def has_member_identity(self) -> bool:
        return bool(self.spec.member_id or self.spec.application_id)


@dataclass(frozen=True)
class StoredLine:
    """The persisted shape of a journal line."""

    line_seq: int
    account_code: str
    side: LineSide
    amount: Decimal
    member_id: str | None = None
    application_id: str | None = None
    period_bucket: PeriodBucket | None = None
    revenue_sub_type: str | None = None
    adj_sub_type: str | None = None
    category_name: str | None = None


def to_stored_line(line: EnrichedLine) -> StoredLine:
    """Map an enriched working line to its persisted shape."""
    spec = line.spec
    return StoredLine(
        line_seq=line.line_seq,
        account_code=spec.account_code,
        side=spec.side,
        amount=line.amount,
        member_id=spec.member_id,
        application_id=spec.application_id,
        period_bucket=spec.period_bucket,
        revenue_sub_type=spec.revenue_sub_type,
        adj_sub_type=spec.adj_sub_type,
        category_name=spec.category_name,
    )


# ---------------------------------------------------------------------------
# Read model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PostedLine:
    """A persisted journal line."""

    line_seq: int
    account_code: str
    side: LineSide
    amount: Decimal
    member_id: str | None = None
    application_id: str | None = None
    period_bucket: str | None = None
    revenue_sub_type: str | None = None
    adj_sub_type: str | None = None
    category_name: str | None = None

    @classmethod
    def from_model(cls, model: JournalLineModel) -> PostedLine:
        return cls(
            line_seq=model.line_seq,
            account_code=model.account_code,
            side=LineSide(model.side),
            amount=to_decimal(model.amount),
            member_id=model.member_id,
            application_id=model.application_id,
            period_bucket=model.period_bucket,
            revenue_sub_type=model.revenue_sub_type,
            adj_sub_type=model.adj_sub_type,
            category_name=model.category_name,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_code": self.account_code,
            "side": self.side.value,
            "amount": str(self.amount),
            "member_id": self.member_id,
            "application_id": self.application_id,
            "period_bucket": self.period_bucket,
            "revenue_sub_type": self.revenue_sub_type,
            "adj_sub_type": self.adj_sub_type,
            "category_name": self.category_name,
        }


@dataclass(frozen=True)
class PostedTransaction:
    """
    A persisted journal transaction.

    Equal transactions compare equal, so two posts of the same doc_no return
    equal values.
    """

    id: UUID
    date: date
    doc_type: str
    doc_no: str
    memo: str
    lines: tuple[PostedLine, ...]
    created_at: datetime | None = field(default=None, compare=False)

    @property
    def total_debit(self) -> Decimal:
        return sum(
            (l.amount for l in self.lines if l.side == LineSide.DEBIT), Decimal("0.00")
        )

    @property
    def total_credit(self) -> Decimal:
        return sum(
            (l.amount for l in self.lines if l.side == LineSide.CREDIT), Decimal("0.00")
        )

    @classmethod
    def from_model(cls, model: JournalTransactionModel) -> PostedTransaction:
        return cls(
            id=model.id,
            date=model.date,
            doc_type=model.doc_type,
            doc_no=model.doc_no,
            memo=model.memo,
            lines=tuple(PostedLine.from_model(l) for l in model.lines),
            created_at=model.created_at,
        )


# ---------------------------------------------------------------------------
# Tagged insert result
# ---------------------------------------------------------------------------

T = TypeVar("T")


@dataclass(frozen=True)
class Inserted(Generic[T]):
    """The insert wrote a new row."""

    record: T


@dataclass(frozen=True)
class AlreadyExists(Generic[T]):
    """A row with the same natural key was already present (or won the race)."""

    record: T


InsertResult = Union[Inserted[T], AlreadyExists[T]]


class WriteStatus(str, Enum):
    """Outcome of an idempotent write."""

    WRITTEN = "written"
    ALREADY_EXISTS = "already_exists"


# ---------------------------------------------------------------------------
# Date ranges
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DateRange:
    """An inclusive calendar date range."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise InvalidRangeError(self.start, self.end)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end
