"""
Celery Application Configuration
"""

from celery import Celery
from celery.schedules import crontab

from ..api.config import get_settings

settings = get_settings()

app = Celery(
    "sayso",
    broker=settings.celery_broker_url or settings.redis_url,
    backend=settings.celery_result_backend or settings.redis_url,
    include=[
        "sayso.tasks.maintenance",
    ],
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=10 * 60,
    task_soft_time_limit=8 * 60,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)

app.conf.beat_schedule = {
    # Expired claim documents (daily at 3 AM)
    "cleanup-claim-documents-daily": {
        "task": "tasks.cleanup_claim_documents",
        "schedule": crontab(hour=3, minute=0),
    },
    # Stale OTP rows (hourly)
    "purge-stale-otps-hourly": {
        "task": "tasks.purge_stale_otps",
        "schedule": crontab(minute=15),
    },
}

if __name__ == "__main__":
    app.start()
