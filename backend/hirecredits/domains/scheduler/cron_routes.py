"""Scheduler entry points for batch jobs."""

from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from ...components.invitations.reclaimer import ReclaimSummary, refund_expired_invitations
from ...deps import require_admin
from ...models.user import User
from ...platform.config import settings
from ...platform.database import get_session_factory
from ...shared.utils import utcnow

router = APIRouter(prefix="/cron", tags=["Cron"])
logger = logging.getLogger("hirecredits.cron")


def _is_authorized_scheduler(request: Request) -> bool:
    secret = (settings.CRON_SECRET or "").strip()
    auth_header = request.headers.get("Authorization", "")
    if secret and auth_header.startswith("Bearer "):
        if hmac.compare_digest(auth_header[len("Bearer "):].strip(), secret):
            return True
    if settings.CRON_TRUST_PLATFORM_HEADER and settings.CRON_TRUSTED_HEADER:
        if request.headers.get(settings.CRON_TRUSTED_HEADER):
            return True
    return False


def _summary_response(summary: ReclaimSummary, trigger: str) -> JSONResponse:
    payload = summary.as_dict()
    payload["timestamp"] = utcnow().isoformat()
    payload["trigger"] = trigger
    return JSONResponse(status_code=200 if summary.ok else 500, content=payload)


@router.get("/refund-uncompleted")
def refund_uncompleted_scheduled(
    request: Request,
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Daily reclaim run triggered by the platform scheduler."""
    if not _is_authorized_scheduler(request):
        logger.warning("Rejected unauthorized cron call from %s", request.client.host if request.client else "unknown")
        raise HTTPException(status_code=401, detail="Unauthorized")
    summary = refund_expired_invitations(session_factory)
    return _summary_response(summary, "scheduler")


@router.post("/refund-uncompleted")
def refund_uncompleted_manual(
    session_factory: sessionmaker = Depends(get_session_factory),
    current_user: User = Depends(require_admin),
):
    """Manual reclaim run, e.g. after an outage."""
    logger.info("Manual reclaim run requested by user_id=%s", current_user.id)
    summary = refund_expired_invitations(session_factory)
    return _summary_response(summary, "manual")
