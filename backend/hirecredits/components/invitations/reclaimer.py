"""Refund credits of invitations that expired without being completed.

The eligibility query is the only record of outstanding work: an invitation
that fails to refund stays PENDING and is picked up again on the next run,
and a refunded one is never selected twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models.credit_ledger import LedgerReason
from ...models.invitation import AssessmentInvitation, InvitationStatus
from ...shared.utils import ensure_utc, utcnow
from ..credits import ledger
from ..credits.ledger import store_errors

logger = logging.getLogger("hirecredits.reclaimer")


@dataclass
class ReclaimFailure:
    invitation_id: int
    error: str


@dataclass
class ReclaimSummary:
    refunded_count: int = 0
    skipped_count: int = 0
    total_credits_refunded: int = 0
    failures: list[ReclaimFailure] = field(default_factory=list)
    error: str | None = None

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "refundedCount": self.refunded_count,
            "failedCount": self.failed_count,
            "skippedCount": self.skipped_count,
            "totalCreditsRefunded": self.total_credits_refunded,
            "failures": [
                {"invitationId": f.invitation_id, "error": f.error} for f in self.failures
            ],
        }
        if self.error:
            payload["error"] = self.error
        return payload


def eligible_invitation_ids(db: Session, now: datetime) -> list[int]:
    with store_errors():
        rows = (
            db.query(AssessmentInvitation.id)
            .filter(
                AssessmentInvitation.status == InvitationStatus.PENDING,
                AssessmentInvitation.credit_debited.is_(True),
                AssessmentInvitation.expires_at < now,
            )
            .order_by(AssessmentInvitation.expires_at.asc(), AssessmentInvitation.id.asc())
            .all()
        )
    return [row[0] for row in rows]


def refund_invitation(db: Session, invitation_id: int, now: datetime) -> int:
    """Refund one invitation in the session's transaction.

    Returns the refunded amount, or 0 when the invitation is no longer
    PENDING (completed or refunded concurrently).
    """
    invitation = (
        db.query(AssessmentInvitation)
        .filter(AssessmentInvitation.id == invitation_id)
        .first()
    )
    if invitation is None or invitation.status != InvitationStatus.PENDING:
        return 0

    expires_at = ensure_utc(invitation.expires_at)
    if expires_at is None or expires_at >= now or not invitation.credit_debited:
        return 0
    amount = int(invitation.credit_amount or 0)
    if amount <= 0:
        return 0

    result = db.execute(
        update(AssessmentInvitation)
        .where(
            AssessmentInvitation.id == invitation_id,
            AssessmentInvitation.status == InvitationStatus.PENDING,
        )
        .values(status=InvitationStatus.REFUNDED, refunded_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return 0

    ledger.credit(
        db,
        invitation.company_id,
        amount,
        reason=LedgerReason.INVITE_REFUNDED,
        related_invitation_id=invitation.id,
        note="Auto-refund: assessment not completed before the deadline",
        metadata={"expires_at": expires_at.isoformat(), "refunded_at": now.isoformat()},
    )
    return amount


def refund_expired_invitations(
    session_factory: Callable[[], Session],
    now: datetime | None = None,
) -> ReclaimSummary:
    """Run one reclaim pass. Never raises; failures are reported in the summary."""
    now = ensure_utc(now) or utcnow()
    summary = ReclaimSummary()

    try:
        db = session_factory()
        try:
            invitation_ids = eligible_invitation_ids(db, now)
        finally:
            db.close()
    except Exception as exc:
        logger.exception("Reclaim job could not load eligible invitations")
        summary.error = f"{type(exc).__name__}: {exc}"
        return summary

    logger.info("Reclaim job found %d expired pending invitation(s)", len(invitation_ids))

    for invitation_id in invitation_ids:
        db = session_factory()
        try:
            with store_errors():
                refunded = refund_invitation(db, invitation_id, now)
                db.commit()
            if refunded:
                summary.refunded_count += 1
                summary.total_credits_refunded += refunded
                logger.info(
                    "Refunded %d credit(s)", refunded, extra={"invitation_id": invitation_id}
                )
            else:
                summary.skipped_count += 1
        except Exception as exc:
            db.rollback()
            summary.failures.append(
                ReclaimFailure(invitation_id=invitation_id, error=f"{type(exc).__name__}: {exc}")
            )
            logger.exception("Refund failed", extra={"invitation_id": invitation_id})
        finally:
            db.close()

    logger.info(
        "Reclaim job completed: %d refunded, %d skipped, %d failed, %d credit(s) returned",
        summary.refunded_count,
        summary.skipped_count,
        summary.failed_count,
        summary.total_credits_refunded,
    )
    return summary
