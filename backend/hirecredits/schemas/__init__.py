from .credits import (
    BalanceAuditResponse,
    CreditAdjustmentCreate,
    CreditBalanceResponse,
    CreditHistoryResponse,
    CreditLedgerEntryResponse,
    CreditTotals,
)
from .invitation import (
    CandidateInvitationResponse,
    InvitationCreate,
    InvitationExpire,
    InvitationListResponse,
    InvitationResponse,
)

__all__ = [
    "BalanceAuditResponse",
    "CreditAdjustmentCreate",
    "CreditBalanceResponse",
    "CreditHistoryResponse",
    "CreditLedgerEntryResponse",
    "CreditTotals",
    "CandidateInvitationResponse",
    "InvitationCreate",
    "InvitationExpire",
    "InvitationListResponse",
    "InvitationResponse",
]
