"""Duplicate resolution for recordings captured by more than one site.

Sites upload independently, so one transmission may arrive as several
objects a few seconds apart. After each insert the resolver looks for rows
on the same talkgroup with the same emergency/tone classification whose
capture windows overlap, keeps the longest capture (earliest insert wins a
tie) and removes the rest. No locks are taken: every handler re-reads the
table, the tie-break is deterministic, page_sent and usage_counted are
claimed with conditional updates, and deletes report the flags of the rows
they actually removed, so racing handlers converge on one survivor, one page
and balanced usage counts.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from radiocap.config import Settings
from radiocap.db.models import UNKNOWN_TALKGROUP, CallRecording
from radiocap.services.metrics import MetricsService
from radiocap.services.recording_service import RecordingService
from radiocap.services.storage import StorageService
from radiocap.services.usage import UsageIndexService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolverConfig:
    select_window: float = 60  # Superset scan, seconds each way
    overlap_buffer: float = 1  # Tolerance for a genuine overlap, seconds
    translation_ttl: int = 600  # Lifetime of a KeyTranslation row, seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResolverConfig":
        return cls(
            select_window=settings.duplicate_select_window,
            overlap_buffer=settings.duplicate_overlap_buffer,
            translation_ttl=settings.translation_ttl_seconds,
        )


@dataclass
class Resolution:
    """What duplicate resolution decided for one candidate."""

    survivor: CallRecording
    losers: list[CallRecording] = field(default_factory=list)
    keeping_current: bool = True
    page_allowed: bool = False
    early_exit: bool = False

    @property
    def is_duplicate(self) -> bool:
        return bool(self.losers)


def overlaps(row: CallRecording, candidate: CallRecording, buffer: float) -> bool:
    """Whether row's capture window touches the candidate's (symmetric test)."""
    if row.start_time is None or row.end_time is None:
        return False
    start = candidate.start_time
    end = candidate.end_time
    starts_inside = start - buffer <= row.start_time <= end + buffer
    covers_start = row.start_time - buffer <= start and row.end_time + buffer >= start
    return starts_inside or covers_start


def survivor_sort_key(recording: CallRecording) -> tuple[float, int]:
    """Ascending order puts the survivor last: longest, then earliest added."""
    return (recording.len or 0, -recording.added)


class DuplicateResolver:
    """Picks one survivor among overlapping captures of a transmission."""

    def __init__(
        self,
        config: ResolverConfig,
        recordings: RecordingService,
        usage: UsageIndexService,
        storage: StorageService,
        metrics: MetricsService,
    ):
        self.config = config
        self.recordings = recordings
        self.usage = usage
        self.storage = storage
        self.metrics = metrics

    async def find_group(
        self, db: AsyncSession, candidate: CallRecording, multi_site: bool = True
    ) -> list[CallRecording]:
        """
        Rows that capture the same transmission as the candidate, including
        the candidate itself.

        Single-site uploads are never grouped: two overlapping recordings from
        the one receiver are two transmissions.
        """
        if (
            not multi_site
            or candidate.talkgroup == UNKNOWN_TALKGROUP
            or candidate.start_time is None
            or candidate.end_time is None
        ):
            return [candidate]

        rows = await self.recordings.find_overlap_candidates(
            db,
            talkgroup=candidate.talkgroup,
            emergency=candidate.emergency,
            tone=candidate.tone,
            start_from=candidate.start_time - self.config.select_window,
            start_to=candidate.end_time + self.config.select_window,
        )
        group = [r for r in rows if overlaps(r, candidate, self.config.overlap_buffer)]
        if not any(r.key == candidate.key for r in group):
            group.append(candidate)
        return group

    async def _delete_blobs(self, bucket: str, keys: list[str]):
        await asyncio.gather(
            *[asyncio.to_thread(self.storage.delete_object, bucket, key) for key in keys]
        )

    async def resolve(
        self,
        db: AsyncSession,
        candidate: CallRecording,
        bucket: str,
        now: Optional[float] = None,
        multi_site: bool = True,
    ) -> Resolution:
        """
        Resolve duplicates for a freshly stored candidate.

        Args:
            db: Database session (caller commits)
            candidate: The row just stored for this event
            bucket: Bucket holding the candidate and its duplicates
            now: Current time in seconds, for translation expiry
            multi_site: Whether the upload format is captured by several sites

        Returns:
            Resolution describing the survivor and which actions remain owed
        """
        owes_transcript = candidate.emergency == 1 or bool(candidate.tone)
        group = await self.find_group(db, candidate, multi_site)

        if len(group) <= 1:
            page_allowed = False
            if candidate.tone:
                page_allowed = await self.recordings.claim_page(db, candidate)
            return Resolution(
                survivor=candidate,
                keeping_current=True,
                page_allowed=page_allowed,
                early_exit=False,
            )

        ordered = sorted(group, key=survivor_sort_key)
        survivor = ordered[-1]
        losers = ordered[:-1]
        keeping_current = survivor.key == candidate.key

        log = logger.warning if candidate.tone else logger.info
        log(
            f"Duplicate group on talkgroup {candidate.talkgroup}: keeping {survivor.key}, "
            f"removing {[r.key for r in losers]} (current={candidate.key})"
        )
        await asyncio.to_thread(self.metrics.event, "duplicate call")

        # Flags are taken from the deleted rows, not the overlap read, which
        # a concurrent handler may have changed since.
        removed = await self.recordings.delete_recordings(db, losers)
        for row in removed:
            if row.usage_counted:
                await self.usage.release(db, row.talkgroup, row.sources or [])
        await self._delete_blobs(bucket, [r.key for r in losers if r.key != survivor.key])

        if keeping_current and survivor.transcript is None:
            transcript = next((r.transcript for r in losers if r.transcript), None)
            if transcript is not None:
                await self.recordings.set_transcript(db, survivor, transcript)

        if owes_transcript and not keeping_current and survivor.transcript is None:
            await self.recordings.put_translations(
                db,
                [r.key for r in losers if r.key != survivor.key],
                survivor.key,
                self.config.translation_ttl,
                now=now if now is not None else time.time(),
            )

        page_allowed = False
        if candidate.tone and keeping_current:
            already_paged = any(r.page_sent for r in losers) or any(row.page_sent for row in removed)
            if not already_paged:
                page_allowed = await self.recordings.claim_page(db, survivor)

        return Resolution(
            survivor=survivor,
            losers=losers,
            keeping_current=keeping_current,
            page_allowed=page_allowed,
            early_exit=not keeping_current or not owes_transcript,
        )
