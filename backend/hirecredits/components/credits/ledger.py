"""Credit ledger: a materialized per-company balance plus an append-only history.

Every balance change goes through ``_apply_delta``: one conditional
``UPDATE credit_balances`` and the matching ledger insert, both inside the
caller's transaction. Nothing else writes ``CreditBalance.balance``.

Functions flush but never commit; the caller owns the transaction boundary.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from sqlalchemy import func, update
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session

from ...models.credit_balance import CreditBalance
from ...models.credit_ledger import CreditLedgerEntry, LedgerReason
from ...platform.config import settings
from ...shared.errors import InsufficientCredits, NotFound, TransientStoreError

logger = logging.getLogger("hirecredits.credits")


@contextmanager
def store_errors() -> Iterator[None]:
    """Translate connection-level database failures into ``TransientStoreError``."""
    try:
        yield
    except OperationalError as exc:
        raise TransientStoreError() from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            raise TransientStoreError() from exc
        raise


def clamp_history_limit(limit: int | None) -> int:
    maximum = int(settings.CREDIT_HISTORY_MAX_LIMIT)
    if limit is None:
        return min(int(settings.CREDIT_HISTORY_DEFAULT_LIMIT), maximum)
    return max(1, min(int(limit), maximum))


def provision_balance(db: Session, company_id: int) -> CreditBalance:
    """Create the zero balance row for a new company (no-op if it exists)."""
    existing = db.query(CreditBalance).filter(CreditBalance.company_id == company_id).first()
    if existing:
        return existing
    row = CreditBalance(company_id=company_id, balance=0)
    db.add(row)
    db.flush()
    return row


def get_balance(db: Session, company_id: int) -> CreditBalance:
    with store_errors():
        row = (
            db.query(CreditBalance)
            .populate_existing()
            .filter(CreditBalance.company_id == company_id)
            .first()
        )
    if row is None:
        raise NotFound(f"No credit balance for company {company_id}")
    return row


def get_history(db: Session, company_id: int, limit: int | None = None) -> list[CreditLedgerEntry]:
    """Most recent entries first; ``limit`` is clamped to the configured maximum."""
    get_balance(db, company_id)
    with store_errors():
        return (
            db.query(CreditLedgerEntry)
            .filter(CreditLedgerEntry.company_id == company_id)
            .order_by(CreditLedgerEntry.created_at.desc(), CreditLedgerEntry.id.desc())
            .limit(clamp_history_limit(limit))
            .all()
        )


def _find_invitation_entry(
    db: Session, invitation_id: int | None, reason: LedgerReason
) -> CreditLedgerEntry | None:
    if invitation_id is None:
        return None
    return (
        db.query(CreditLedgerEntry)
        .filter(
            CreditLedgerEntry.related_invitation_id == invitation_id,
            CreditLedgerEntry.reason == reason,
        )
        .first()
    )


def _find_external_entry(db: Session, external_ref: str | None) -> CreditLedgerEntry | None:
    if not external_ref:
        return None
    return (
        db.query(CreditLedgerEntry)
        .filter(CreditLedgerEntry.external_ref == external_ref)
        .first()
    )


def _apply_delta(
    db: Session,
    *,
    company_id: int,
    delta: int,
    reason: LedgerReason,
    related_invitation_id: int | None = None,
    external_ref: str | None = None,
    note: str | None = None,
    metadata: dict[str, Any] | None = None,
    user_id: int | None = None,
) -> CreditLedgerEntry:
    if delta == 0:
        raise ValueError("Ledger entries must change the balance")

    stmt = update(CreditBalance).where(CreditBalance.company_id == company_id)
    if delta < 0:
        # Conditional decrement: concurrent debits near zero cannot both pass.
        stmt = stmt.where(CreditBalance.balance >= -delta)
    stmt = stmt.values(
        balance=CreditBalance.balance + delta,
        updated_at=func.now(),
    ).execution_options(synchronize_session=False)

    with store_errors():
        result = db.execute(stmt)
        if result.rowcount == 0:
            current = (
                db.query(CreditBalance.balance)
                .filter(CreditBalance.company_id == company_id)
                .scalar()
            )
            if current is None:
                raise NotFound(f"No credit balance for company {company_id}")
            raise InsufficientCredits(balance=int(current), required=-delta)

        balance_after = (
            db.query(CreditBalance.balance)
            .filter(CreditBalance.company_id == company_id)
            .scalar()
        )
        entry = CreditLedgerEntry(
            company_id=company_id,
            amount=int(delta),
            balance_after=int(balance_after),
            reason=reason,
            related_invitation_id=related_invitation_id,
            external_ref=external_ref,
            note=note,
            entry_metadata=metadata or {},
            created_by_user_id=user_id,
        )
        db.add(entry)
        db.flush()
    return entry


def debit(
    db: Session,
    company_id: int,
    amount: int,
    related_invitation_id: int,
) -> tuple[CreditLedgerEntry, bool]:
    """Consume credits for an invitation. At most once per invitation.

    Returns ``(entry, created)``; a retry for an invitation that was already
    charged returns the original entry with ``created=False``.
    """
    if amount <= 0:
        raise ValueError("Debit amount must be positive")
    with store_errors():
        existing = _find_invitation_entry(db, related_invitation_id, LedgerReason.INVITE_CONSUMED)
    if existing:
        logger.info(
            "Invitation already charged, skipping debit",
            extra={"invitation_id": related_invitation_id, "company_id": company_id},
        )
        return existing, False

    entry = _apply_delta(
        db,
        company_id=company_id,
        delta=-int(amount),
        reason=LedgerReason.INVITE_CONSUMED,
        related_invitation_id=related_invitation_id,
    )
    logger.info(
        "Debited %s credit(s), balance_after=%s",
        amount,
        entry.balance_after,
        extra={"invitation_id": related_invitation_id, "company_id": company_id},
    )
    return entry, True


def credit(
    db: Session,
    company_id: int,
    amount: int,
    *,
    reason: LedgerReason,
    related_invitation_id: int | None = None,
    external_ref: str | None = None,
    note: str | None = None,
    metadata: dict[str, Any] | None = None,
    user_id: int | None = None,
) -> tuple[CreditLedgerEntry, bool]:
    """Add credits (purchases, refunds, positive adjustments).

    Purchases are idempotent by ``external_ref``; refunds by invitation.
    """
    if amount <= 0:
        raise ValueError("Credit amount must be positive")
    if reason == LedgerReason.INVITE_CONSUMED:
        raise ValueError("INVITE_CONSUMED entries are written by debit()")

    with store_errors():
        existing = _find_external_entry(db, external_ref)
        if existing is None and reason == LedgerReason.INVITE_REFUNDED:
            existing = _find_invitation_entry(db, related_invitation_id, LedgerReason.INVITE_REFUNDED)
    if existing:
        return existing, False

    entry = _apply_delta(
        db,
        company_id=company_id,
        delta=int(amount),
        reason=reason,
        related_invitation_id=related_invitation_id,
        external_ref=external_ref,
        note=note,
        metadata=metadata,
        user_id=user_id,
    )
    logger.info(
        "Credited %s credit(s) reason=%s balance_after=%s",
        amount,
        reason.value,
        entry.balance_after,
        extra={"invitation_id": related_invitation_id, "company_id": company_id},
    )
    return entry, True


def adjust(
    db: Session,
    company_id: int,
    amount: int,
    *,
    note: str,
    user_id: int | None = None,
) -> CreditLedgerEntry:
    """Manual correction. Negative adjustments still cannot overdraw the balance."""
    entry = _apply_delta(
        db,
        company_id=company_id,
        delta=int(amount),
        reason=LedgerReason.ADJUSTMENT,
        note=note,
        user_id=user_id,
    )
    logger.warning(
        "Manual credit adjustment of %s by user_id=%s: %s",
        amount,
        user_id,
        note,
        extra={"company_id": company_id},
    )
    return entry


def ledger_totals(db: Session, company_id: int) -> dict[str, int]:
    with store_errors():
        rows = (
            db.query(CreditLedgerEntry.reason, func.coalesce(func.sum(CreditLedgerEntry.amount), 0))
            .filter(CreditLedgerEntry.company_id == company_id)
            .group_by(CreditLedgerEntry.reason)
            .all()
        )
    totals = {reason.value: 0 for reason in LedgerReason}
    for reason, total in rows:
        key = reason.value if isinstance(reason, LedgerReason) else str(reason)
        totals[key] = int(total or 0)
    return totals


@dataclass
class BalanceAudit:
    company_id: int
    balance: int
    ledger_sum: int
    entry_count: int

    @property
    def consistent(self) -> bool:
        return self.balance == self.ledger_sum


def audit_balance(db: Session, company_id: int) -> BalanceAudit:
    """Compare the materialized balance with the sum of ledger entries."""
    row = get_balance(db, company_id)
    with store_errors():
        ledger_sum, entry_count = (
            db.query(
                func.coalesce(func.sum(CreditLedgerEntry.amount), 0),
                func.count(CreditLedgerEntry.id),
            )
            .filter(CreditLedgerEntry.company_id == company_id)
            .one()
        )
    audit = BalanceAudit(
        company_id=company_id,
        balance=int(row.balance or 0),
        ledger_sum=int(ledger_sum or 0),
        entry_count=int(entry_count or 0),
    )
    if not audit.consistent:
        logger.error(
            "Credit balance drift: balance=%s ledger_sum=%s",
            audit.balance,
            audit.ledger_sum,
            extra={"company_id": company_id},
        )
    return audit
