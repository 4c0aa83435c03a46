from .user import User, UserRole
from .company import Company
from .credit_balance import CreditBalance
from .credit_ledger import CreditLedgerEntry, LedgerReason
from .invitation import AssessmentInvitation, InvitationStatus

__all__ = [
    "User",
    "UserRole",
    "Company",
    "CreditBalance",
    "CreditLedgerEntry",
    "LedgerReason",
    "AssessmentInvitation",
    "InvitationStatus",
]
