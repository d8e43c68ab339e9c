"""Celery app: paging queue, transcript write-back and periodic cleanup."""

import asyncio
import logging

from celery import Celery, Task
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from radiocap.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Create Celery app
celery_app = Celery(
    "radiocap_worker",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,  # Ack after task completes
    task_reject_on_worker_lost=True,
    task_default_queue="default",
    task_routes={
        settings.page_task_name: {"queue": settings.page_queue},
        "radiocap.worker.apply_transcript": {"queue": "default"},
    },
    beat_schedule={
        "purge-expired-translations": {
            "task": "radiocap.worker.purge_expired_translations",
            "schedule": 600.0,  # Every 10 minutes
        },
    },
)


class BaseTask(Task):
    """Base task with retry configuration."""

    autoretry_for = (Exception,)
    retry_backoff = True
    retry_backoff_max = 600
    retry_jitter = True
    max_retries = 3


def run_in_session(work):
    """
    Run an async unit of work against the database from a sync task.

    Each call gets a fresh event loop, so it also gets its own unpooled
    engine; pooled connections cannot cross event loops.
    """

    async def runner():
        engine = create_async_engine(settings.database_url, poolclass=NullPool)
        try:
            session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
            async with session_maker() as db:
                result = await work(db)
                await db.commit()
                return result
        finally:
            await engine.dispose()

    return asyncio.run(runner())


@celery_app.task(bind=True, base=BaseTask, name="radiocap.worker.apply_transcript")
def apply_transcript(self, file_key: str, transcript: str) -> dict:
    """
    Store a finished transcript for a recording.

    Called by the transcription completion handler with the object key the
    job was submitted for. If that recording was removed as a duplicate in
    the meantime, the write is redirected to the surviving recording.
    """
    from radiocap.services.recording_service import recording_service

    async def do_apply(db):
        recording = await recording_service.apply_transcript(db, file_key, transcript)
        return recording.key if recording else None

    target_key = run_in_session(do_apply)
    if target_key is None:
        logger.warning(f"No recording left for transcript of {file_key}")
    return {"file_key": file_key, "stored_on": target_key}


@celery_app.task(name="radiocap.worker.purge_expired_translations")
def purge_expired_translations():
    """Periodic task removing key translations past their TTL."""
    from radiocap.services.recording_service import recording_service

    removed = run_in_session(recording_service.purge_expired_translations)
    logger.info(f"Purged {removed} expired key translations")
    return removed
