"""
Values -- money rounding and the small enumerations shared by every layer.

Responsibility:
    Decimal-only money helpers (``to_decimal``, ``round2``) and the line
    direction / period bucket / document type vocabularies.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Imported by models,
    engines and services alike.

Invariants enforced:
    - Money is always ``Decimal``.  Floats are converted through ``str`` so
      that ``0.1`` becomes ``Decimal("0.1")`` and not its binary expansion.
    - Rounding is ROUND_HALF_UP to 2 decimal places.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """
    Convert a numeric input to Decimal without float artefacts.

    Raises:
        ValueError: if the value is not numeric or not finite.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"Not a monetary amount: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return result


def round2(value: Decimal | int | float | str) -> Decimal:
    """Round half-up to 2 decimal places."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class LineSide(str, Enum):
    """Debit or credit side of a journal line."""

    DEBIT = "debit"
    CREDIT = "credit"


class PeriodBucket(str, Enum):
    """Coarse aging classification for member-tracked lines."""

    ARREARS = "arrears"
    CURRENT = "current"
    ADVANCE = "advance"


class DocType(str, Enum):
    """
    Document types posted by the membership operations.

    The posting engine accepts any string; these are the ones it knows the
    meaning of.
    """

    INVOICE = "Invoice"
    CREDIT_NOTE = "CreditNote"
    RECEIPT = "Receipt"
    WRITE_OFF = "WriteOff"
    CLAIM = "Claim"
    SETTLEMENT = "Settlement"
