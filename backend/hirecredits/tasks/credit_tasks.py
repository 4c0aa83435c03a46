import logging
from .celery_app import celery_app

logger = logging.getLogger("hirecredits.tasks")


@celery_app.task(name="hirecredits.tasks.credit_tasks.refund_uncompleted_invitations")
def refund_uncompleted_invitations():
    """Periodic task: return credits of invitations not completed before their deadline."""
    from ..components.invitations.reclaimer import refund_expired_invitations
    from ..platform.database import SessionLocal

    summary = refund_expired_invitations(SessionLocal)
    if not summary.ok:
        logger.error("Refund task aborted: %s", summary.error)
    return summary.as_dict()


@celery_app.task(name="hirecredits.tasks.credit_tasks.scan_expiring_invitations")
def scan_expiring_invitations(within_hours: int | None = None):
    """Periodic task: list pending invitations about to lapse so reminders can go out.

    Delivery is handled by the notification service; this task only selects and logs.
    """
    from ..components.invitations.service import find_expiring_invitations
    from ..platform.database import SessionLocal

    db = SessionLocal()
    try:
        invitations = find_expiring_invitations(db, within_hours=within_hours)
        for invitation in invitations:
            logger.info(
                "Invitation expires at %s without completion",
                invitation.expires_at,
                extra={"invitation_id": invitation.id, "company_id": invitation.company_id},
            )
        return {"status": "ok", "count": len(invitations), "invitation_ids": [inv.id for inv in invitations]}
    except Exception:
        logger.exception("Expiry reminder scan failed")
        db.rollback()
        raise
    finally:
        db.close()
