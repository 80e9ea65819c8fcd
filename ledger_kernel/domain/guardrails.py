"""
Guardrails -- posting policy rules evaluated before any write.

Responsibility:
    A guardrail inspects the enriched lines of a candidate transaction and
    raises a typed PostingError when the transaction shape is not allowed.
    Rules are evaluated in order; the first failure aborts the post.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Evaluated by
    JournalPoster after the balance check and before the idempotency lookup.

Invariants enforced:
    - Only Settlement documents may touch the bank account
      (BankSettlementOnlyRule).
    - Lines on member-tracked accounts carry a member identity (member_id or
      application_id) and a period bucket (MemberContextRule).

Extending:
    Subclass ``Guardrail`` and pass the list to JournalPoster, usually by
    appending to ``default_guardrails(...)``.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

from ledger_kernel.domain.dtos import EnrichedLine
from ledger_kernel.domain.values import DocType
from ledger_kernel.exceptions import GuardrailViolationError, MissingMemberContextError


@dataclass(frozen=True)
class GuardrailContext:
    """What a rule gets to see."""

    doc_type: str
    doc_no: str
    lines: tuple[EnrichedLine, ...]


class Guardrail(ABC):
    """A single posting policy rule."""

    name: str = "guardrail"

    @abstractmethod
    def check(self, context: GuardrailContext) -> None:
        """Raise a PostingError subclass if the transaction is rejected."""
        ...


class BankSettlementOnlyRule(Guardrail):
    """Money reaches the bank account only through settlements."""

    name = "bank_settlement_only"

    def __init__(
        self,
        bank_account_code: str,
        settlement_doc_type: str = DocType.SETTLEMENT.value,
    ):
        self.bank_account_code = bank_account_code
        self.settlement_doc_type = settlement_doc_type

    def check(self, context: GuardrailContext) -> None:
        if context.doc_type == self.settlement_doc_type:
            return
        if any(line.account_code == self.bank_account_code for line in context.lines):
            raise GuardrailViolationError(
                rule=self.name,
                reason=(
                    f"only {self.settlement_doc_type} documents may post to "
                    f"{self.bank_account_code}"
                ),
                account_code=self.bank_account_code,
            )


class MemberContextRule(Guardrail):
    """Member-tracked lines must be attributable to a member and a bucket."""

    name = "member_context"

    def check(self, context: GuardrailContext) -> None:
        for line in context.lines:
            if not line.account.is_member_tracked:
                continue
            missing = []
            if not line.has_member_identity:
                missing.append("member_id")
            if line.spec.period_bucket is None:
                missing.append("period_bucket")
            if missing:
                raise MissingMemberContextError(line.account_code, missing)


def default_guardrails(bank_account_code: str) -> list[Guardrail]:
    """The two rules every ledger runs with."""
    return [BankSettlementOnlyRule(bank_account_code), MemberContextRule()]


def evaluate_guardrails(
    guardrails: Sequence[Guardrail], context: GuardrailContext
) -> None:
    for rule in guardrails:
        rule.check(context)
