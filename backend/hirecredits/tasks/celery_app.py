from celery import Celery
from celery.schedules import crontab
from ..platform.config import settings

celery_app = Celery(
    "hirecredits",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "refund-uncompleted-invitations-daily": {
            "task": "hirecredits.tasks.credit_tasks.refund_uncompleted_invitations",
            "schedule": crontab(hour=2, minute=0),
        },
        "invitation-expiry-reminders-daily": {
            "task": "hirecredits.tasks.credit_tasks.scan_expiring_invitations",
            "schedule": crontab(hour=9, minute=0),
        },
    },
)

# Auto-discover tasks
celery_app.autodiscover_tasks(["hirecredits.tasks"])
