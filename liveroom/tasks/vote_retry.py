# liveroom/tasks/vote_retry.py
from asgiref.sync import async_to_sync

from liveroom.core import database
from liveroom.core.celery import celery_app
from liveroom.core.redis import RedisManager
from liveroom.domains.votes.service import vote_service
from liveroom.shared.utils.logger import get_logger

logger = get_logger(__name__)


async def _release_connections():
    # every task run gets a fresh event loop; pooled connections must not outlive it
    await database.engine.dispose()
    await RedisManager.close()


async def _retry_failed_votes_async() -> dict:
    try:
        summary = await vote_service.retry_failed_votes()
        return summary.model_dump()
    finally:
        await _release_connections()


@celery_app.task
def retry_failed_votes_task() -> dict:
    """Periodic sweep over queued vote writes; failures stay inside the worker."""
    try:
        return async_to_sync(_retry_failed_votes_async)()
    except Exception as e:
        logger.error(f"Vote retry sweep failed: {e}")
        return {"error": str(e)}
