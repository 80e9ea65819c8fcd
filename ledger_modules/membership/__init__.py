"""Membership accounting operations."""

from ledger_modules.membership.models import CategoryTerms, PaymentNotice
from ledger_modules.membership.service import MembershipLedgerService

__all__ = ["CategoryTerms", "MembershipLedgerService", "PaymentNotice"]
