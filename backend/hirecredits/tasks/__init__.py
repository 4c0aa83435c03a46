from .celery_app import celery_app
from .credit_tasks import refund_uncompleted_invitations, scan_expiring_invitations

__all__ = [
    "celery_app",
    "refund_uncompleted_invitations",
    "scan_expiring_invitations",
]
