"""Billing: credit balance, ledger history, manual adjustments and audit."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...components.credits import ledger
from ...components.credits.packs import credit_pack_catalog
from ...deps import require_admin, require_billing_access
from ...models.credit_ledger import CreditLedgerEntry, LedgerReason
from ...models.user import User
from ...platform.database import get_db
from ...schemas.credits import (
    BalanceAuditResponse,
    CreditAdjustmentCreate,
    CreditBalanceResponse,
    CreditHistoryResponse,
    CreditLedgerEntryResponse,
    CreditTotals,
)
from ...shared.utils import ensure_utc

router = APIRouter(prefix="/billing", tags=["Billing"])


def _serialize_ledger_entry(entry: CreditLedgerEntry) -> CreditLedgerEntryResponse:
    return CreditLedgerEntryResponse(
        id=entry.id,
        amount=entry.amount,
        balance_after=entry.balance_after,
        reason=getattr(entry.reason, "value", entry.reason),
        related_invitation_id=entry.related_invitation_id,
        external_ref=entry.external_ref,
        note=entry.note,
        metadata=entry.entry_metadata or {},
        created_at=ensure_utc(entry.created_at),
    )


def _target_company_id(current_user: User, company_id: Optional[int]) -> int:
    """Recruiters read their own company; admins may pass ``company_id``."""
    if company_id is None or company_id == current_user.company_id:
        if current_user.company_id is None:
            raise HTTPException(status_code=400, detail="company_id is required")
        return current_user.company_id
    if not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Cannot read another company's credits")
    return company_id


@router.get("/credits", response_model=CreditBalanceResponse)
def get_credits(
    company_id: Optional[int] = Query(default=None, gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_billing_access),
):
    target = _target_company_id(current_user, company_id)
    balance = ledger.get_balance(db, target)
    totals = ledger.ledger_totals(db, target)
    return CreditBalanceResponse(
        company_id=target,
        credits_balance=int(balance.balance or 0),
        totals=CreditTotals(
            purchased=totals[LedgerReason.PURCHASE.value],
            consumed=-totals[LedgerReason.INVITE_CONSUMED.value],
            refunded=totals[LedgerReason.INVITE_REFUNDED.value],
            adjusted=totals[LedgerReason.ADJUSTMENT.value],
        ),
        packs=credit_pack_catalog(),
        updated_at=ensure_utc(balance.updated_at or balance.created_at),
    )


@router.get("/credits/history", response_model=CreditHistoryResponse)
def get_credit_history(
    limit: Optional[int] = Query(default=None),
    company_id: Optional[int] = Query(default=None, gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_billing_access),
):
    target = _target_company_id(current_user, company_id)
    effective_limit = ledger.clamp_history_limit(limit)
    entries = ledger.get_history(db, target, effective_limit)
    return CreditHistoryResponse(
        company_id=target,
        limit=effective_limit,
        entries=[_serialize_ledger_entry(e) for e in entries],
    )


@router.post("/credits/adjustments", response_model=CreditLedgerEntryResponse, status_code=201)
def create_credit_adjustment(
    data: CreditAdjustmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    try:
        entry = ledger.adjust(
            db,
            data.company_id,
            data.amount,
            note=data.note.strip(),
            user_id=current_user.id,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(entry)
    return _serialize_ledger_entry(entry)


@router.get("/credits/audit", response_model=BalanceAuditResponse)
def audit_credits(
    company_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    audit = ledger.audit_balance(db, company_id)
    return BalanceAuditResponse(
        company_id=audit.company_id,
        balance=audit.balance,
        ledger_sum=audit.ledger_sum,
        entry_count=audit.entry_count,
        consistent=audit.consistent,
    )
