from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class CreditLedgerEntryResponse(BaseModel):
    id: int
    amount: int
    balance_after: int
    reason: str
    related_invitation_id: Optional[int] = None
    external_ref: Optional[str] = None
    note: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class CreditTotals(BaseModel):
    purchased: int = 0
    consumed: int = 0
    refunded: int = 0
    adjusted: int = 0


class CreditBalanceResponse(BaseModel):
    company_id: int
    credits_balance: int
    totals: CreditTotals
    packs: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    updated_at: Optional[datetime] = None


class CreditHistoryResponse(BaseModel):
    company_id: int
    limit: int
    entries: List[CreditLedgerEntryResponse]


class CreditAdjustmentCreate(BaseModel):
    company_id: int = Field(gt=0)
    amount: int
    note: str = Field(min_length=3, max_length=500)

    @field_validator("amount")
    @classmethod
    def _non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("amount must not be zero")
        return value


class BalanceAuditResponse(BaseModel):
    company_id: int
    balance: int
    ledger_sum: int
    entry_count: int
    consistent: bool
