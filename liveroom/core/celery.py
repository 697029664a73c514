# liveroom/core/celery.py
from celery import Celery

from liveroom.core.config import settings

celery_app = Celery(
    "liveroom_tasks",
    broker=settings.BROKER_URL,
    backend=settings.REDIS_URL,
    include=[
        "liveroom.tasks.vote_retry",
    ],
)


def init_celery():
    celery_app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        worker_proc_alive_timeout=30,
        worker_send_task_events=True,
        broker_connection_retry_on_startup=True,
        task_track_started=True,
    )


async def check_connection() -> bool:
    try:
        with celery_app.connection_or_acquire() as conn:
            conn.ensure_connection(max_retries=1)
            return True
    except Exception:
        return False


celery_app.conf.beat_schedule = {
    "retry-failed-votes": {
        "task": "liveroom.tasks.vote_retry.retry_failed_votes_task",
        "schedule": float(settings.VOTE_RETRY_INTERVAL_SECONDS),
    },
}
