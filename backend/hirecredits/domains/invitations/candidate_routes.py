"""Candidate-facing invitation routes.

Candidates never see ledger or state-machine details: every failure is
reported with the same retry message and the cause is only logged.
"""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...components.invitations import service as invitation_service
from ...components.invitations.repository import invitation_to_candidate_response
from ...deps import require_candidate
from ...models.invitation import AssessmentInvitation
from ...models.user import User
from ...platform.database import get_db
from ...schemas.invitation import CandidateInvitationResponse
from ...shared.errors import CreditsError, NotFound

router = APIRouter(prefix="/candidate/invitations", tags=["Candidate"])
logger = logging.getLogger("hirecredits.candidate")

SUBMIT_FAILED_MESSAGE = "Could not submit the assessment, please try again."


def _owned_by(invitation: AssessmentInvitation, user: User) -> bool:
    if invitation.candidate_id is not None:
        return invitation.candidate_id == user.id
    return (invitation.candidate_email or "") == (user.email or "").lower()


def _submit_failed(exc: Exception, invitation_ref) -> HTTPException:
    status_code = exc.status_code if isinstance(exc, CreditsError) else 500
    logger.warning(
        "Assessment submission failed for invitation %s: %s: %s",
        invitation_ref,
        type(exc).__name__,
        exc,
    )
    return HTTPException(status_code=status_code, detail=SUBMIT_FAILED_MESSAGE)


@router.get("", response_model=List[CandidateInvitationResponse])
def list_my_invitations(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_candidate),
):
    return [invitation_to_candidate_response(inv) for inv in invitation_service.list_for_candidate(db, current_user)]


@router.post("/{invitation_id}/complete", response_model=CandidateInvitationResponse)
def complete_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_candidate),
):
    try:
        invitation = invitation_service.get_invitation(db, invitation_id)
        if not _owned_by(invitation, current_user):
            raise NotFound("Invitation not found")
        invitation = invitation_service.complete_invitation(db, invitation.id)
    except Exception as exc:
        raise _submit_failed(exc, invitation_id) from exc
    return invitation_to_candidate_response(invitation)


@router.post("/token/{token}/complete", response_model=CandidateInvitationResponse)
def complete_invitation_by_token(token: str, db: Session = Depends(get_db)):
    """Completion for candidates without an account, authenticated by the invite token."""
    try:
        invitation = invitation_service.complete_invitation_by_token(db, token)
    except Exception as exc:
        raise _submit_failed(exc, "token") from exc
    return invitation_to_candidate_response(invitation)
