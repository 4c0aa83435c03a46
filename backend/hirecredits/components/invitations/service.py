"""Assessment invitation lifecycle.

States: PENDING -> COMPLETED | REFUNDED | EXPIRED. Every transition is a
conditional ``UPDATE ... WHERE status = 'PENDING'``; when it touches zero
rows another transition already won and the call is a no-op.

Unlike the ledger helpers, these functions own their transaction and commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from ...models.invitation import AssessmentInvitation, InvitationStatus
from ...models.user import User, UserRole
from ...platform.config import settings
from ...shared.errors import InvalidStateTransition, NotFound
from ...shared.utils import new_invitation_token, utcnow
from ..credits import ledger
from ..credits.ledger import store_errors

logger = logging.getLogger("hirecredits.invitations")


@dataclass(frozen=True)
class CandidateRef:
    """A registered candidate (``candidate_id``) or an email for someone without an account."""

    candidate_id: Optional[int] = None
    email: Optional[str] = None

    def __post_init__(self):
        if self.candidate_id is None and not (self.email or "").strip():
            raise ValueError("candidate_id or email is required")


def resolve_time_limit_days(value: int | None) -> int:
    if value is None:
        return int(settings.INVITE_DEFAULT_TIME_LIMIT_DAYS)
    days = int(value)
    if days < 1 or days > int(settings.INVITE_MAX_TIME_LIMIT_DAYS):
        raise ValueError(
            f"time_limit_days must be between 1 and {settings.INVITE_MAX_TIME_LIMIT_DAYS}"
        )
    return days


def _resolve_candidate(db: Session, ref: CandidateRef) -> tuple[int | None, str | None]:
    if ref.candidate_id is not None:
        user = db.query(User).filter(User.id == ref.candidate_id).first()
        if not user or user.role != UserRole.CANDIDATE.value:
            raise NotFound("Candidate not found")
        return user.id, (user.email or "").lower() or None

    email = (ref.email or "").strip().lower()
    user = (
        db.query(User)
        .filter(func.lower(User.email) == email, User.role == UserRole.CANDIDATE.value)
        .first()
    )
    return (user.id if user else None), email


def _find_reusable_invitation(
    db: Session,
    *,
    company_id: int,
    job_id: str,
    template_id: str,
    candidate_id: int | None,
    candidate_email: str | None,
    now: datetime,
) -> AssessmentInvitation | None:
    candidate_filters = []
    if candidate_id is not None:
        candidate_filters.append(AssessmentInvitation.candidate_id == candidate_id)
    if candidate_email:
        candidate_filters.append(AssessmentInvitation.candidate_email == candidate_email)
    return (
        db.query(AssessmentInvitation)
        .filter(
            AssessmentInvitation.company_id == company_id,
            AssessmentInvitation.job_id == job_id,
            AssessmentInvitation.template_id == template_id,
            AssessmentInvitation.status == InvitationStatus.PENDING,
            AssessmentInvitation.expires_at > now,
            or_(*candidate_filters),
        )
        .order_by(AssessmentInvitation.created_at.desc(), AssessmentInvitation.id.desc())
        .first()
    )


def create_invitation(
    db: Session,
    *,
    job_id: str,
    template_id: str,
    candidate: CandidateRef,
    company_id: int,
    time_limit_days: int | None = None,
    invited_by_user_id: int | None = None,
    now: datetime | None = None,
) -> tuple[AssessmentInvitation, bool]:
    """Create a PENDING invitation and debit its credit in one transaction.

    Returns ``(invitation, created)``. An active invitation for the same job,
    template and candidate is returned as-is without a second debit. On
    ``InsufficientCredits`` nothing is persisted.
    """
    now = now or utcnow()
    days = resolve_time_limit_days(time_limit_days)
    job_id = str(job_id).strip()
    template_id = str(template_id).strip()

    try:
        ledger.get_balance(db, company_id)
        with store_errors():
            candidate_id, candidate_email = _resolve_candidate(db, candidate)
            existing = _find_reusable_invitation(
                db,
                company_id=company_id,
                job_id=job_id,
                template_id=template_id,
                candidate_id=candidate_id,
                candidate_email=candidate_email,
                now=now,
            )
        if existing:
            logger.info(
                "Reusing active invitation",
                extra={"invitation_id": existing.id, "company_id": company_id},
            )
            return existing, False

        amount = int(settings.INVITE_CREDIT_COST)
        invitation = AssessmentInvitation(
            company_id=company_id,
            job_id=job_id,
            template_id=template_id,
            candidate_id=candidate_id,
            candidate_email=candidate_email,
            invited_by_user_id=invited_by_user_id,
            token=new_invitation_token(),
            status=InvitationStatus.PENDING,
            credit_debited=False,
            credit_amount=amount,
            expires_at=now + timedelta(days=days),
        )
        db.add(invitation)
        with store_errors():
            db.flush()
        ledger.debit(db, company_id, amount, invitation.id)
        invitation.credit_debited = True
        with store_errors():
            db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(invitation)
    logger.info(
        "Invitation created job_id=%s template_id=%s expires_at=%s",
        job_id,
        template_id,
        invitation.expires_at,
        extra={"invitation_id": invitation.id, "company_id": company_id},
    )
    return invitation, True


def get_invitation(db: Session, invitation_id: int, company_id: int | None = None) -> AssessmentInvitation:
    with store_errors():
        q = db.query(AssessmentInvitation).filter(AssessmentInvitation.id == invitation_id)
        if company_id is not None:
            q = q.filter(AssessmentInvitation.company_id == company_id)
        invitation = q.first()
    if invitation is None:
        raise NotFound("Invitation not found")
    return invitation


def get_invitation_by_token(db: Session, token: str) -> AssessmentInvitation:
    with store_errors():
        invitation = (
            db.query(AssessmentInvitation)
            .filter(AssessmentInvitation.token == str(token or ""))
            .first()
        )
    if invitation is None:
        raise NotFound("Invitation not found")
    return invitation


def _transition_from_pending(db: Session, invitation_id: int, target: InvitationStatus, **values) -> bool:
    stmt = (
        update(AssessmentInvitation)
        .where(
            AssessmentInvitation.id == invitation_id,
            AssessmentInvitation.status == InvitationStatus.PENDING,
        )
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    try:
        with store_errors():
            result = db.execute(stmt)
            db.commit()
    except Exception:
        db.rollback()
        raise
    return result.rowcount == 1


def _complete(db: Session, invitation: AssessmentInvitation, now: datetime | None) -> AssessmentInvitation:
    if invitation.status == InvitationStatus.COMPLETED:
        logger.info("Invitation already completed", extra={"invitation_id": invitation.id})
        return invitation
    if invitation.status != InvitationStatus.PENDING:
        logger.warning(
            "Rejected completion of %s invitation",
            invitation.status.value,
            extra={"invitation_id": invitation.id},
        )
        raise InvalidStateTransition(current=invitation.status.value, target=InvitationStatus.COMPLETED.value)

    won = _transition_from_pending(
        db, invitation.id, InvitationStatus.COMPLETED, completed_at=now or utcnow()
    )
    db.refresh(invitation)
    if not won:
        logger.warning(
            "Completion lost race, invitation is now %s",
            invitation.status.value,
            extra={"invitation_id": invitation.id},
        )
    else:
        logger.info("Invitation completed", extra={"invitation_id": invitation.id, "company_id": invitation.company_id})
    return invitation


def complete_invitation(db: Session, invitation_id: int, now: datetime | None = None) -> AssessmentInvitation:
    """PENDING -> COMPLETED. A repeated call on a completed invitation is a no-op."""
    return _complete(db, get_invitation(db, invitation_id), now)


def complete_invitation_by_token(db: Session, token: str, now: datetime | None = None) -> AssessmentInvitation:
    return _complete(db, get_invitation_by_token(db, token), now)


def mark_expired_no_refund(
    db: Session,
    invitation_id: int,
    *,
    note: str | None = None,
    company_id: int | None = None,
    now: datetime | None = None,
) -> AssessmentInvitation:
    """Forfeit a pending invitation: PENDING -> EXPIRED, the credit stays consumed."""
    invitation = get_invitation(db, invitation_id, company_id=company_id)
    if invitation.status != InvitationStatus.PENDING:
        raise InvalidStateTransition(current=invitation.status.value, target=InvitationStatus.EXPIRED.value)

    won = _transition_from_pending(
        db,
        invitation.id,
        InvitationStatus.EXPIRED,
        expired_at=now or utcnow(),
        status_note=(note or "").strip()[:500] or None,
    )
    db.refresh(invitation)
    if won:
        logger.warning("Invitation forfeited without refund", extra={"invitation_id": invitation.id, "company_id": invitation.company_id})
    else:
        logger.warning(
            "Forfeit lost race, invitation is now %s",
            invitation.status.value,
            extra={"invitation_id": invitation.id},
        )
    return invitation


def list_invitations(
    db: Session,
    company_id: int,
    *,
    status: InvitationStatus | None = None,
    job_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[AssessmentInvitation], int]:
    with store_errors():
        q = db.query(AssessmentInvitation).filter(AssessmentInvitation.company_id == company_id)
        if status is not None:
            q = q.filter(AssessmentInvitation.status == status)
        if job_id:
            q = q.filter(AssessmentInvitation.job_id == job_id)
        total = q.count()
        items = (
            q.order_by(AssessmentInvitation.created_at.desc(), AssessmentInvitation.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
    return items, total


def list_for_candidate(db: Session, user: User) -> list[AssessmentInvitation]:
    email = (user.email or "").lower()
    with store_errors():
        return (
            db.query(AssessmentInvitation)
            .filter(
                or_(
                    AssessmentInvitation.candidate_id == user.id,
                    AssessmentInvitation.candidate_email == email,
                )
            )
            .order_by(AssessmentInvitation.created_at.desc(), AssessmentInvitation.id.desc())
            .all()
        )


def find_expiring_invitations(
    db: Session,
    *,
    within_hours: int | None = None,
    now: datetime | None = None,
) -> list[AssessmentInvitation]:
    """Pending invitations whose deadline falls inside the reminder window."""
    now = now or utcnow()
    window = int(within_hours if within_hours is not None else settings.INVITE_REMINDER_WINDOW_HOURS)
    with store_errors():
        return (
            db.query(AssessmentInvitation)
            .filter(
                AssessmentInvitation.status == InvitationStatus.PENDING,
                AssessmentInvitation.expires_at > now,
                AssessmentInvitation.expires_at <= now + timedelta(hours=window),
            )
            .order_by(AssessmentInvitation.expires_at.asc())
            .all()
        )
