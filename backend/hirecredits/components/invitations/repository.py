"""Invitation serialization helpers."""

from __future__ import annotations

from urllib.parse import urlencode

from ...models.invitation import AssessmentInvitation
from ...platform.config import settings
from ...schemas.invitation import CandidateInvitationResponse, InvitationResponse
from ...shared.utils import ensure_utc


def build_invite_url(invitation: AssessmentInvitation) -> str:
    base = (settings.FRONTEND_URL or "").rstrip("/")
    query = urlencode({"token": invitation.token})
    return f"{base}/assessments/{invitation.template_id}?{query}"


def _status_value(invitation: AssessmentInvitation) -> str:
    return getattr(invitation.status, "value", invitation.status)


def invitation_to_response(
    invitation: AssessmentInvitation, *, include_invite_url: bool = True
) -> InvitationResponse:
    return InvitationResponse(
        id=invitation.id,
        company_id=invitation.company_id,
        job_id=invitation.job_id,
        template_id=invitation.template_id,
        candidate_id=invitation.candidate_id,
        candidate_email=invitation.candidate_email,
        status=_status_value(invitation),
        credit_debited=bool(invitation.credit_debited),
        credit_amount=int(invitation.credit_amount or 0),
        status_note=invitation.status_note,
        created_at=ensure_utc(invitation.created_at),
        expires_at=ensure_utc(invitation.expires_at),
        completed_at=ensure_utc(invitation.completed_at),
        refunded_at=ensure_utc(invitation.refunded_at),
        expired_at=ensure_utc(invitation.expired_at),
        invite_url=build_invite_url(invitation) if include_invite_url else None,
    )


def invitation_to_candidate_response(invitation: AssessmentInvitation) -> CandidateInvitationResponse:
    return CandidateInvitationResponse(
        id=invitation.id,
        job_id=invitation.job_id,
        template_id=invitation.template_id,
        status=_status_value(invitation),
        expires_at=ensure_utc(invitation.expires_at),
        completed_at=ensure_utc(invitation.completed_at),
    )

