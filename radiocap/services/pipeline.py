"""Processing of bucket notifications for uploaded recordings."""

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from radiocap.config import Settings, get_settings
from radiocap.db.models import CallRecording
from radiocap.services.deletion import DeletionHandler
from radiocap.services.dispatcher import (
    DispatchConfig,
    DispatchError,
    DispatchOutcome,
    TriggerDispatcher,
)
from radiocap.services.metrics import MetricsService
from radiocap.services.normalizer import DtrMetadata, MetadataNormalizer, NormalizerConfig
from radiocap.services.paging import PageQueue
from radiocap.services.recording_service import RecordingService, recording_service
from radiocap.services.resolver import DuplicateResolver, Resolution, ResolverConfig
from radiocap.services.storage import StorageService
from radiocap.services.transcriber import TranscriptionService
from radiocap.services.usage import UsageIndexService, usage_service

logger = logging.getLogger(__name__)

MAX_INSERT_ATTEMPTS = 3


def now_ms() -> int:
    return int(time.time() * 1000)


class EventAction(str, enum.Enum):
    """What a bucket notification means for the pipeline."""

    CREATED = "created"
    DELETED = "deleted"
    IGNORED = "ignored"


@dataclass
class StorageEvent:
    """One record of a bucket notification."""

    action: EventAction
    bucket: str
    key: str


@dataclass
class CreationOutcome:
    recording: CallRecording
    resolution: Resolution
    stored_new: bool
    dispatch: Optional[DispatchOutcome] = None


@dataclass
class BatchSummary:
    received: int = 0
    succeeded: int = 0
    failed: int = 0


class CaptureEventHandler:
    """
    Runs the creation and deletion pipelines for bucket notifications.

    Each record of a batch is processed concurrently with its own database
    session. A failing record is logged and counted but never affects its
    siblings.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        storage: StorageService,
        metrics: MetricsService,
        normalizer: MetadataNormalizer,
        recordings: RecordingService,
        resolver: DuplicateResolver,
        usage: UsageIndexService,
        dispatcher: TriggerDispatcher,
        deletion: DeletionHandler,
        clock: Callable[[], int] = now_ms,
    ):
        self.session_maker = session_maker
        self.storage = storage
        self.metrics = metrics
        self.normalizer = normalizer
        self.recordings = recordings
        self.resolver = resolver
        self.usage = usage
        self.dispatcher = dispatcher
        self.deletion = deletion
        self.clock = clock

    async def handle_batch(self, events: list[StorageEvent]) -> BatchSummary:
        """Process every record of a notification; never raises for a record."""
        results = await asyncio.gather(*[self.handle_event(event) for event in events])
        summary = BatchSummary(
            received=len(events),
            succeeded=sum(1 for ok in results if ok),
            failed=sum(1 for ok in results if not ok),
        )
        if summary.failed:
            logger.warning(f"{summary.failed} of {summary.received} records failed")
        return summary

    async def handle_event(self, event: StorageEvent) -> bool:
        """Process one record. Returns False if it failed."""
        try:
            if event.action == EventAction.CREATED:
                await self.handle_created(event.bucket, event.key)
            elif event.action == EventAction.DELETED:
                await self.handle_deleted(event.bucket, event.key)
            else:
                logger.debug(f"Ignoring event for {event.key}")
            return True
        except Exception:
            logger.exception(f"Failed to process {event.action.value} event for s3://{event.bucket}/{event.key}")
            await asyncio.to_thread(self.metrics.error, "Thrown exception")
            return False

    async def _store_candidate(
        self, db: AsyncSession, candidate: CallRecording
    ) -> tuple[CallRecording, bool]:
        """
        Insert the candidate row, or reuse the row already stored for its key.

        Returns:
            Tuple of (stored row, whether it was newly inserted)
        """
        for _ in range(MAX_INSERT_ATTEMPTS):
            existing = await self.recordings.get_by_key(db, candidate.key)
            if existing is not None:
                logger.info(f"{candidate.key} already stored, reusing added={existing.added}")
                return existing, False

            db.add(candidate)
            try:
                await db.commit()
                return candidate, True
            except IntegrityError:
                # Another key took this (talkgroup, added) or a redelivery won the race
                await db.rollback()
                candidate.added += 1

        raise RuntimeError(f"Could not store {candidate.key} after {MAX_INSERT_ATTEMPTS} attempts")

    async def handle_created(self, bucket: str, key: str) -> CreationOutcome:
        """Normalize, store, de-duplicate and trigger downstream work for an upload."""
        raw = await asyncio.to_thread(self.storage.get_metadata, bucket, key)
        upload = self.normalizer.normalize(key, raw, self.clock())

        await asyncio.to_thread(self.metrics.call, f"create{upload.kind.upper()}")
        if isinstance(upload.metadata, DtrMetadata) and upload.metadata.tower:
            await asyncio.to_thread(
                self.metrics.upload, upload.metadata.tower, upload.upload_latency
            )

        async with self.session_maker() as db:
            recording, stored_new = await self._store_candidate(db, upload.recording)
            resolution = await self.resolver.resolve(
                db, recording, bucket, multi_site=upload.metadata.multi_site
            )

            outcome = CreationOutcome(
                recording=recording, resolution=resolution, stored_new=stored_new
            )
            if resolution.early_exit:
                await db.commit()
                logger.info(f"Duplicate {key}: no transcript or page owed by this event")
                return outcome

            if await self.recordings.claim_usage(db, recording):
                await self.usage.mark_in_use(db, recording.talkgroup, recording.sources or [])
            await db.commit()

        try:
            outcome.dispatch = await self.dispatcher.dispatch(
                recording, bucket, page_allowed=resolution.page_allowed
            )
        except DispatchError as e:
            outcome.dispatch = e.outcome
            if resolution.page_allowed and not e.outcome.paged:
                await self._release_page(recording)
            raise
        return outcome

    async def _release_page(self, recording: CallRecording):
        """Give the page claim back so a redelivered event can page."""
        async with self.session_maker() as db:
            await self.recordings.release_page(db, recording)
            await db.commit()
        logger.warning(f"Page for {recording.key} was not published, claim released")

    async def handle_deleted(self, bucket: str, key: str) -> bool:
        """Remove the row for a deleted object. Unknown keys are a no-op."""
        await asyncio.to_thread(self.metrics.call, "delete")
        async with self.session_maker() as db:
            removed = await self.deletion.handle(db, key)
            await db.commit()
        return removed


def build_event_handler(
    settings: Optional[Settings] = None,
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
) -> CaptureEventHandler:
    """Wire the pipeline with real AWS-backed collaborators."""
    settings = settings or get_settings()
    if session_maker is None:
        from radiocap.db.session import async_session_maker

        session_maker = async_session_maker

    storage = StorageService(settings)
    metrics = MetricsService(settings)
    return CaptureEventHandler(
        session_maker=session_maker,
        storage=storage,
        metrics=metrics,
        normalizer=MetadataNormalizer(NormalizerConfig.from_settings(settings)),
        recordings=recording_service,
        resolver=DuplicateResolver(
            ResolverConfig.from_settings(settings),
            recording_service,
            usage_service,
            storage,
            metrics,
        ),
        usage=usage_service,
        dispatcher=TriggerDispatcher(
            DispatchConfig.from_settings(settings),
            TranscriptionService(settings),
            PageQueue(settings),
        ),
        deletion=DeletionHandler(recording_service, usage_service),
    )


@lru_cache
def get_event_handler() -> CaptureEventHandler:
    """Cached pipeline instance (FastAPI dependency)."""
    return build_event_handler()
