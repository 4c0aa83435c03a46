from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from ...components.invitations import service as invitation_service
from ...components.invitations.repository import invitation_to_response
from ...deps import get_current_user, require_recruiter
from ...models.invitation import InvitationStatus
from ...models.user import User
from ...platform.database import get_db
from ...schemas.invitation import (
    InvitationCreate,
    InvitationExpire,
    InvitationListResponse,
    InvitationResponse,
)
from ...shared.errors import CreditsError

router = APIRouter(prefix="/invitations", tags=["Invitations"])
logger = logging.getLogger("hirecredits.invitations")


@router.post("", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
def create_invitation(
    data: InvitationCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_recruiter),
):
    """Invite a candidate to an assessment and consume one credit.

    A repeat request for an invitation that is still active returns it with 200.
    """
    try:
        candidate = invitation_service.CandidateRef(
            candidate_id=data.candidate_id,
            email=str(data.candidate_email) if data.candidate_email else None,
        )
        invitation, created = invitation_service.create_invitation(
            db,
            job_id=data.job_id,
            template_id=data.template_id,
            candidate=candidate,
            company_id=current_user.company_id,
            time_limit_days=data.time_limit_days,
            invited_by_user_id=current_user.id,
        )
    except CreditsError:
        raise
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Failed to create invitation", extra={"company_id": current_user.company_id})
        raise HTTPException(status_code=500, detail="Failed to create invitation") from exc

    if not created:
        response.status_code = status.HTTP_200_OK
    return invitation_to_response(invitation)


@router.get("", response_model=InvitationListResponse)
def list_invitations(
    status_filter: Optional[InvitationStatus] = Query(default=None, alias="status"),
    job_id: Optional[str] = Query(default=None, max_length=64),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_recruiter),
):
    items, total = invitation_service.list_invitations(
        db,
        current_user.company_id,
        status=status_filter,
        job_id=job_id,
        limit=limit,
        offset=offset,
    )
    return InvitationListResponse(
        items=[invitation_to_response(inv) for inv in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{invitation_id}", response_model=InvitationResponse)
def get_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_recruiter),
):
    invitation = invitation_service.get_invitation(db, invitation_id, company_id=current_user.company_id)
    return invitation_to_response(invitation)


@router.post("/{invitation_id}/expire", response_model=InvitationResponse)
def expire_invitation(
    invitation_id: int,
    data: Optional[InvitationExpire] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Withdraw a pending invitation. The consumed credit is not returned."""
    if current_user.is_admin:
        scope_company_id = None
    elif current_user.is_recruiter and current_user.company_id is not None:
        scope_company_id = current_user.company_id
    else:
        raise HTTPException(status_code=403, detail="Recruiter access required")

    invitation = invitation_service.mark_expired_no_refund(
        db,
        invitation_id,
        note=data.note if data else None,
        company_id=scope_company_id,
    )
    return invitation_to_response(invitation)
