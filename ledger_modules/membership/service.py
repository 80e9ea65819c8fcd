"""
Membership Ledger Service (``ledger_modules.membership.service``).

Responsibility
--------------
Turns membership business events into balanced journal line sets and
posts them through ``JournalPoster``:

    invoice                   Dr AR            / Cr category income
      + pro-rata credit       Dr contra income / Cr AR        (<doc_no>-PRORATA)
    credit_note               Dr contra income / Cr AR
    receipt                   Dr clearing      / Cr payment on account
      + processor fees        Dr fee, Dr fee VAT / Cr clearing
    claim_application_credit  Dr POA (application) / Cr POA (member)
    write_off                 Dr write-off     / Cr AR
    change_category           -INVNEW, -COLD, -CNEW
    settle                    Dr bank          / Cr clearing  (Settlement)
    apply_payment_notice      receipt for a succeeded processor payment

Architecture position
---------------------
**Modules layer** -- thin glue.  Account codes come from the active
``LedgerConfigSet``; amounts from ``ledger_engines``; every invariant is
enforced by the kernel poster.

Invariants enforced
-------------------
* Each posted transaction has its own doc_no.  Multi-transaction operations
  derive follow-up numbers from the caller's base number, so retrying the
  whole operation replays the pieces already written.
* Transaction boundary: with ``auto_commit`` (the default) the service
  commits after every posted transaction and rolls back on failure, so a
  failure part way through leaves the earlier transactions durable and
  balanced.  ``journal.created`` events reach the publisher on that
  commit; a posting that is rolled back is never announced.

Failure modes
-------------
* Kernel posting errors propagate unchanged (UnknownAccountError,
  UnbalancedJournalError, GuardrailViolationError, ...).
* Caller input that cannot form a journal (no member identity, an account
  that is not a configured clearing account, an unknown processor or
  category) raises ``InvalidJournalError`` before anything is posted.
* ``InvalidAdjustmentError`` for an adjustment type outside the policy.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Sequence

from sqlalchemy.orm import Session

from ledger_config import LedgerConfigSet, build_journal_poster
from ledger_engines import (
    fee_breakdown,
    prorata_for_period,
    prorata_from_date_to_year_end,
    year_bounds,
)
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.values import DocType, PeriodBucket, round2, to_decimal
from ledger_kernel.exceptions import InvalidAdjustmentError, InvalidJournalError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.event_publisher import EventPublisher
from ledger_kernel.services.journal_poster import JournalPoster, PostingResult
from ledger_kernel.utils.idempotency import derived_doc_no
from ledger_modules.membership.models import CategoryTerms, PaymentNotice

logger = get_logger("modules.membership.service")

PRORATA_SUFFIX = "PRORATA"
INVOICE_NEW_SUFFIX = "INVNEW"
CREDIT_OLD_SUFFIX = "COLD"
CREDIT_NEW_SUFFIX = "CNEW"


class MembershipLedgerService:
    """
    Posts membership documents to the ledger.

    Contract
    --------
    * Every method returns the PostingResult of each transaction it posted
      (a list for multi-transaction operations).
    * Replaying an operation with the same doc_no returns ALREADY_EXISTS
      results and posts nothing.

    Non-goals
    ---------
    * Does NOT look up invoices to match receipts against; receipts land on
      payment on account and allocation is a reporting concern.
    * Does NOT discover amounts from the ledger.  Every amount, including the
      credit moved by ``claim_application_credit``, is supplied by the caller.
    """

    def __init__(
        self,
        session: Session,
        config: LedgerConfigSet,
        clock: Clock | None = None,
        publisher: EventPublisher | None = None,
        poster: JournalPoster | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._config = config
        self._policy = config.policy
        self._clock = clock or SystemClock()
        self._poster = poster or build_journal_poster(
            session, config, clock=self._clock, publisher=publisher
        )
        self._auto_commit = auto_commit

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _post(
        self,
        posting_date: date,
        doc_type: DocType,
        doc_no: str,
        memo: str,
        lines: Sequence[LineSpec],
    ) -> PostingResult:
        try:
            result = self._poster.post_balanced_journal(
                posting_date, doc_type.value, doc_no, memo, lines
            )
            if self._auto_commit:
                self._session.commit()
                logger.info(
                    "membership_posting_committed",
                    extra={"doc_no": doc_no, "status": result.status.value},
                )
            return result
        except Exception:
            if self._auto_commit:
                self._session.rollback()
            raise

    def _ar_line(
        self, side: str, amount: Decimal, member_id: str, bucket: PeriodBucket | str
    ) -> LineSpec:
        return LineSpec(
            account_code=self._policy.roles.accounts_receivable,
            side=side,
            amount=amount,
            member_id=member_id,
            period_bucket=bucket,
        )

    def _contra_credit(
        self,
        posting_date: date,
        doc_type: DocType,
        doc_no: str,
        memo: str,
        member_id: str,
        amount: Decimal,
        adj_sub_type: str,
        category_name: str | None,
        period_bucket: PeriodBucket | str,
    ) -> PostingResult:
        """Dr contra income / Cr AR."""
        lines = [
            LineSpec.debit(
                self._policy.roles.contra_income,
                amount,
                adj_sub_type=adj_sub_type,
                category_name=category_name,
            ),
            self._ar_line("credit", amount, member_id, period_bucket),
        ]
        return self._post(posting_date, doc_type, doc_no, memo, lines)

    def _check_adjustment(self, adj_sub_type: str) -> None:
        if adj_sub_type not in self._policy.adjustment_types:
            raise InvalidAdjustmentError(adj_sub_type, self._policy.adjustment_types)

    def _check_clearing(self, code: str, doc_no: str) -> None:
        if code not in self._policy.clearing_codes:
            raise InvalidJournalError(f"{code} is not a clearing account", doc_no)

    def _income_code_for(self, category_name: str, doc_no: str) -> str:
        category = self._policy.category(category_name)
        if category is None:
            raise InvalidJournalError(f"unknown membership category {category_name!r}", doc_no)
        return category.income_code

    # =========================================================================
    # Invoices and credit notes
    # =========================================================================

    def invoice(
        self,
        member_id: str,
        doc_no: str,
        date: date,
        annual_fee: Decimal | int | str,
        category_name: str,
        income_code: str | None = None,
        period_bucket: PeriodBucket | str = PeriodBucket.CURRENT,
        join_date: date | None = None,
    ) -> list[PostingResult]:
        """
        Invoice the full annual fee, then credit the days before ``join_date``.

        The pro-rata credit note (``<doc_no>-PRORATA``) is posted only when a
        join date is given and the reduction is positive.  ``income_code``
        defaults to the category's configured income account.
        """
        annual_fee = round2(annual_fee)
        income_code = income_code or self._income_code_for(category_name, doc_no)

        logger.info(
            "membership_invoice_started",
            extra={
                "doc_no": doc_no,
                "member_id": member_id,
                "annual_fee": annual_fee,
                "join_date": join_date,
            },
        )

        results = [
            self._post(
                date,
                DocType.INVOICE,
                doc_no,
                f"Subscription {date.year} – {category_name}",
                [
                    self._ar_line("debit", annual_fee, member_id, period_bucket),
                    LineSpec.credit(
                        income_code,
                        annual_fee,
                        revenue_sub_type="fee",
                        category_name=category_name,
                    ),
                ],
            )
        ]

        if join_date is not None:
            _, year_end = year_bounds(join_date)
            due = prorata_from_date_to_year_end(annual_fee, join_date)
            reduction = round2(annual_fee - due)
            if reduction > 0:
                results.append(
                    self._contra_credit(
                        date,
                        DocType.CREDIT_NOTE,
                        derived_doc_no(doc_no, PRORATA_SUFFIX),
                        f"Credit note – Pro-rata ({category_name}) "
                        f"{join_date.isoformat()} to {year_end.isoformat()}",
                        member_id,
                        reduction,
                        "prorata",
                        category_name,
                        period_bucket,
                    )
                )
        return results

    def credit_note(
        self,
        member_id: str,
        doc_no: str,
        date: date,
        amount: Decimal | int | str,
        adj_sub_type: str = "discount",
        category_name: str | None = None,
        period_bucket: PeriodBucket | str = PeriodBucket.CURRENT,
    ) -> PostingResult:
        """Reduce a member's receivable against contra income."""
        self._check_adjustment(adj_sub_type)
        return self._contra_credit(
            date,
            DocType.CREDIT_NOTE,
            doc_no,
            f"Credit note – {category_name or adj_sub_type}",
            member_id,
            to_decimal(amount),
            adj_sub_type,
            category_name,
            period_bucket,
        )

    def write_off(
        self,
        member_id: str,
        doc_no: str,
        date: date,
        amount: Decimal | int | str,
        period_bucket: PeriodBucket | str = PeriodBucket.CURRENT,
    ) -> PostingResult:
        """Expense an uncollectable receivable."""
        amount = to_decimal(amount)
        return self._post(
            date,
            DocType.WRITE_OFF,
            doc_no,
            "Bad debt write-off",
            [
                LineSpec.debit(self._policy.roles.write_off, amount, adj_sub_type="writeoff"),
                self._ar_line("credit", amount, member_id, period_bucket),
            ],
        )

    def change_category(
        self,
        member_id: str,
        doc_no_base: str,
        date: date,
        change_date: date,
        old: CategoryTerms,
        new: CategoryTerms,
        period_bucket: PeriodBucket | str = PeriodBucket.CURRENT,
    ) -> list[PostingResult]:
        """
        Move a member to a new category part way through the year.

        Posts, in order:
            -INVNEW  full-year invoice for the new category
            -COLD    credit of the old fee for [change_date, 31 Dec]
            -CNEW    credit of the new fee for [1 Jan, change_date - 1]

        The net effect bills the old category up to the change and the new
        one after it.  Credit notes are skipped when they round to zero; the
        -CNEW credit is skipped entirely for a change on 1 January.
        """
        year_start, year_end = year_bounds(change_date)
        is_upgrade = to_decimal(new.annual_fee) > to_decimal(old.annual_fee)

        logger.info(
            "membership_category_change_started",
            extra={
                "doc_no": doc_no_base,
                "member_id": member_id,
                "old_category": old.name,
                "new_category": new.name,
                "change_date": change_date,
                "is_upgrade": is_upgrade,
            },
        )

        new_fee = round2(new.annual_fee)
        results = [
            self._post(
                date,
                DocType.INVOICE,
                derived_doc_no(doc_no_base, INVOICE_NEW_SUFFIX),
                f"Subscription {year_start.year} – {new.name}",
                [
                    self._ar_line("debit", new_fee, member_id, period_bucket),
                    LineSpec.credit(
                        new.income_code,
                        new_fee,
                        revenue_sub_type="fee",
                        category_name=new.name,
                    ),
                ],
            )
        ]

        credit_old = prorata_for_period(old.annual_fee, change_date, year_end)
        if credit_old > 0:
            results.append(
                self._contra_credit(
                    date,
                    DocType.CREDIT_NOTE,
                    derived_doc_no(doc_no_base, CREDIT_OLD_SUFFIX),
                    f"Credit note – Unused period ({old.name}) "
                    f"{change_date.isoformat()} to {year_end.isoformat()}",
                    member_id,
                    credit_old,
                    "fee-increase-credit" if is_upgrade else "downgrade",
                    old.name,
                    period_bucket,
                )
            )

        if change_date > year_start:
            day_before = change_date - timedelta(days=1)
            credit_new = prorata_for_period(new.annual_fee, year_start, day_before)
            if credit_new > 0:
                results.append(
                    self._contra_credit(
                        date,
                        DocType.CREDIT_NOTE,
                        derived_doc_no(doc_no_base, CREDIT_NEW_SUFFIX),
                        f"Credit note – Pre-change portion ({new.name}) "
                        f"{year_start.isoformat()} to {day_before.isoformat()}",
                        member_id,
                        credit_new,
                        "prorata",
                        new.name,
                        period_bucket,
                    )
                )
        return results

    # =========================================================================
    # Money in
    # =========================================================================

    def receipt(
        self,
        doc_no: str,
        date: date,
        amount: Decimal | int | str,
        clearing_code: str,
        member_id: str | None = None,
        application_id: str | None = None,
        period_bucket: PeriodBucket | str = PeriodBucket.CURRENT,
        processor: str | None = None,
    ) -> PostingResult:
        """
        Record money received into a clearing account as payment on account.

        Money received before a member exists is held against the
        application id.  With a ``processor``, its fee and the VAT on that fee
        are booked out of the same clearing account.
        """
        if not member_id and not application_id:
            raise InvalidJournalError("member_id or application_id is required", doc_no)
        self._check_clearing(clearing_code, doc_no)
        amount = to_decimal(amount)

        lines = [
            LineSpec.debit(clearing_code, amount),
            LineSpec.credit(
                self._policy.roles.payment_on_account,
                amount,
                member_id=member_id,
                application_id=None if member_id else application_id,
                period_bucket=period_bucket,
            ),
        ]

        if processor is not None:
            schedule = self._policy.processors.get(processor)
            if schedule is None:
                raise InvalidJournalError(f"unknown payment processor {processor!r}", doc_no)
            fees = fee_breakdown(
                amount, schedule.percentage, schedule.fixed_fee, schedule.vat_rate
            )
            if not fees.is_zero:
                lines += [
                    LineSpec.debit(self._policy.roles.processing_fee, fees.fee_no_vat),
                    LineSpec.debit(self._policy.roles.processing_fee_vat, fees.fee_vat),
                    LineSpec.credit(clearing_code, fees.fee_total),
                ]

        memo = f"Receipt (app {application_id})" if application_id and not member_id else "Receipt"
        return self._post(date, DocType.RECEIPT, doc_no, memo, lines)

    def claim_application_credit(
        self,
        application_id: str,
        member_id: str,
        doc_no: str,
        date: date,
        amount: Decimal | int | str,
        period_bucket: PeriodBucket | str = PeriodBucket.CURRENT,
    ) -> PostingResult:
        """Move ``amount`` of payment on account from an application to its member."""
        if not application_id or not member_id:
            raise InvalidJournalError("application_id and member_id are required", doc_no)
        amount = to_decimal(amount)
        if amount <= 0:
            raise InvalidJournalError("claim amount must be positive", doc_no)

        poa = self._policy.roles.payment_on_account
        return self._post(
            date,
            DocType.CLAIM,
            doc_no,
            f"Claim app credit {application_id} → {member_id}",
            [
                LineSpec.debit(
                    poa, amount, application_id=application_id, period_bucket=period_bucket
                ),
                LineSpec.credit(poa, amount, member_id=member_id, period_bucket=period_bucket),
            ],
        )

    def settle(
        self,
        doc_no: str,
        date: date,
        amount: Decimal | int | str,
        source_clearing_code: str,
        memo: str | None = None,
    ) -> PostingResult:
        """Move a settled batch from a clearing account to the bank."""
        self._check_clearing(source_clearing_code, doc_no)
        amount = to_decimal(amount)
        return self._post(
            date,
            DocType.SETTLEMENT,
            doc_no,
            memo or f"Settlement from {source_clearing_code}",
            [
                LineSpec.debit(self._policy.roles.bank, amount),
                LineSpec.credit(source_clearing_code, amount),
            ],
        )

    def apply_payment_notice(
        self,
        notice: PaymentNotice,
        doc_no: str | None = None,
        member_id: str | None = None,
        application_id: str | None = None,
        period_bucket: PeriodBucket | str = PeriodBucket.CURRENT,
    ) -> PostingResult | None:
        """
        Post the receipt for a processor payment once it has succeeded.

        Returns None (and posts nothing) for any other status.  ``doc_no``
        defaults to ``PAY-<payment_intent_id>`` so repeated notices for the
        same intent replay instead of double counting.
        """
        if not notice.succeeded:
            logger.info(
                "payment_notice_ignored",
                extra={"payment_intent_id": notice.payment_intent_id, "status": notice.status},
            )
            return None

        doc_no = doc_no or f"PAY-{notice.payment_intent_id}"
        schedule = self._policy.processors.get(notice.processor)
        if schedule is None:
            raise InvalidJournalError(f"unknown payment processor {notice.processor!r}", doc_no)
        clearing_code = self._policy.clearing_code_for(schedule.clearing)

        return self.receipt(
            doc_no=doc_no,
            date=notice.received_on or self._clock.today(),
            amount=notice.major_amount,
            clearing_code=clearing_code,
            member_id=member_id,
            application_id=application_id,
            period_bucket=period_bucket,
            processor=notice.processor,
        )
