"""
Typed exception hierarchy for the ledger kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP handlers, message consumers, batch jobs) need to tell a bad
request apart from a storage outage without parsing message strings:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        poster.post_balanced_journal(...)
    except Exception as e:
        if "Unknown account" in str(e):  # FRAGILE
            ...

Example - RIGHT way:
    try:
        poster.post_balanced_journal(...)
    except UnknownAccountError as e:
        api_response(code=e.code, accounts=e.account_codes)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- PostingError
    |   +-- UnknownAccountError
    |   +-- UnbalancedJournalError
    |   +-- InvalidJournalError
    |   +-- GuardrailViolationError
    |   +-- MissingMemberContextError
    |
    +-- ProrataError
    |   +-- InvalidRangeError
    |   +-- CrossYearPeriodError
    |
    +-- InvalidPeriodError
    +-- InvalidAdjustmentError
    +-- ConfigurationError
    +-- ReportComputationError   (retryable)
    +-- IdempotencyKeyError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category   | Code                       | When Raised
-----------|----------------------------|------------------------------------------
Posting    | UNKNOWN_ACCOUNT            | Line references a code absent from the CoA
           | UNBALANCED_JOURNAL         | Debits != Credits at 2dp
           | INVALID_JOURNAL            | <2 lines, negative amount, bad direction
           | GUARDRAIL_VIOLATION        | Policy rule rejects the transaction shape
           | MISSING_MEMBER_CONTEXT     | Member-tracked line lacks member/bucket
-----------|----------------------------|------------------------------------------
Pro-rata   | INVALID_RANGE              | to_date < from_date
           | CROSS_YEAR_PERIOD          | Range spans two calendar years
-----------|----------------------------|------------------------------------------
Reporting  | INVALID_PERIOD             | Malformed month / year label
           | REPORT_COMPUTATION_FAILED  | Storage failure while aggregating
-----------|----------------------------|------------------------------------------
Other      | INVALID_ADJUSTMENT         | Unknown credit-note adjustment type
           | CONFIGURATION_ERROR        | Malformed or missing configuration
           | INVALID_IDEMPOTENCY_KEY    | Request key outside the 8..128 bound

===============================================================================
RETRY SEMANTICS
===============================================================================

Validation errors are never retried: the caller must fix the input.
``ReportComputationError`` wraps infrastructure failures and sets
``retryable = True``.  A duplicate document number is NOT an error at all;
the posting engine resolves it to the existing transaction.
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"
    retryable: bool = False


# Posting exceptions


class PostingError(LedgerKernelError):
    """Base exception for journal posting errors."""

    code: str = "POSTING_ERROR"


class UnknownAccountError(PostingError):
    """One or more lines reference an account code missing from the CoA."""

    code: str = "UNKNOWN_ACCOUNT"

    def __init__(self, account_codes: list[str]):
        self.account_codes = sorted(account_codes)
        super().__init__(f"Unknown account(s): {', '.join(self.account_codes)}")


class UnbalancedJournalError(PostingError):
    """Debit and credit totals differ after 2dp rounding."""

    code: str = "UNBALANCED_JOURNAL"

    def __init__(self, debit_total, credit_total, doc_no: str | None = None):
        self.debit_total = debit_total
        self.credit_total = credit_total
        self.doc_no = doc_no
        super().__init__(
            f"Unbalanced journal: debits {debit_total} vs credits {credit_total}"
        )


class InvalidJournalError(PostingError):
    """Transaction shape is malformed (too few lines, negative amounts...)."""

    code: str = "INVALID_JOURNAL"

    def __init__(self, reason: str, doc_no: str | None = None):
        self.reason = reason
        self.doc_no = doc_no
        prefix = f"Invalid journal {doc_no}" if doc_no else "Invalid journal"
        super().__init__(f"{prefix}: {reason}")


class GuardrailViolationError(PostingError):
    """A posting policy rule rejected the transaction."""

    code: str = "GUARDRAIL_VIOLATION"

    def __init__(self, rule: str, reason: str, account_code: str | None = None):
        self.rule = rule
        self.reason = reason
        self.account_code = account_code
        super().__init__(f"Guardrail '{rule}' violated: {reason}")


class MissingMemberContextError(PostingError):
    """A member-tracked line lacks a member identity or period bucket."""

    code: str = "MISSING_MEMBER_CONTEXT"

    def __init__(self, account_code: str, missing: list[str]):
        self.account_code = account_code
        self.missing = missing
        super().__init__(
            f"{' and '.join(missing)} required on member-tracked account {account_code}"
        )


# Pro-rata exceptions


class ProrataError(LedgerKernelError):
    """Base exception for pro-rata day-count errors."""

    code: str = "PRORATA_ERROR"


class InvalidRangeError(ProrataError):
    """Date range is inverted."""

    code: str = "INVALID_RANGE"

    def __init__(self, from_date, to_date):
        self.from_date = from_date
        self.to_date = to_date
        super().__init__(f"Invalid range: {to_date} is before {from_date}")


class CrossYearPeriodError(ProrataError):
    """Pro-rata period spans more than one calendar year."""

    code: str = "CROSS_YEAR_PERIOD"

    def __init__(self, from_date, to_date):
        self.from_date = from_date
        self.to_date = to_date
        super().__init__(
            f"Pro-rata period {from_date}..{to_date} crosses a year boundary"
        )


# Reporting / period exceptions


class InvalidPeriodError(LedgerKernelError):
    """Period label could not be parsed."""

    code: str = "INVALID_PERIOD"

    def __init__(self, value, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid period {value!r}: {reason}")


class ReportComputationError(LedgerKernelError):
    """
    Report could not be computed because of an infrastructure failure.

    Distinct from validation errors: the same request may succeed on retry.
    """

    code: str = "REPORT_COMPUTATION_FAILED"
    retryable: bool = True

    def __init__(self, report: str, cause: str):
        self.report = report
        self.cause = cause
        super().__init__(f"Failed to compute {report}: {cause}")


# Miscellaneous


class InvalidAdjustmentError(LedgerKernelError):
    """Credit-note adjustment sub-type is not recognised."""

    code: str = "INVALID_ADJUSTMENT"

    def __init__(self, adj_sub_type: str, allowed: tuple[str, ...]):
        self.adj_sub_type = adj_sub_type
        self.allowed = allowed
        super().__init__(
            f"Invalid adjustment type {adj_sub_type!r}; expected one of {', '.join(allowed)}"
        )


class ConfigurationError(LedgerKernelError):
    """Ledger configuration is missing or malformed."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Configuration error in {source}: {reason}")


class IdempotencyKeyError(LedgerKernelError):
    """Request idempotency key is outside the accepted length bounds."""

    code: str = "INVALID_IDEMPOTENCY_KEY"

    def __init__(self, key_length: int, min_length: int, max_length: int):
        self.key_length = key_length
        self.min_length = min_length
        self.max_length = max_length
        super().__init__(
            f"Idempotency key length {key_length} outside {min_length}..{max_length}"
        )
