"""Call recording table operations."""

import logging
import time
from typing import Optional, Sequence

from sqlalchemy import Row, and_, delete, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from radiocap.db.models import CallRecording, KeyTranslation

logger = logging.getLogger(__name__)

EMPTY_TRANSCRIPT = "No voices detected"
MAX_TRANSLATION_HOPS = 10


def dialect_insert(db: AsyncSession):
    """Return the dialect-specific insert() that supports ON CONFLICT."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite.insert
    return postgresql.insert


class RecordingService:
    """Service for reading and mutating call recordings and key translations."""

    async def get_by_key(self, db: AsyncSession, key: str) -> Optional[CallRecording]:
        """Look up a recording by its object key."""
        result = await db.execute(select(CallRecording).where(CallRecording.key == key))
        return result.scalar_one_or_none()

    async def find_overlap_candidates(
        self,
        db: AsyncSession,
        talkgroup: int,
        emergency: int,
        tone: bool,
        start_from: float,
        start_to: float,
    ) -> list[CallRecording]:
        """
        Rows on a talkgroup with the same classification whose start time
        falls in [start_from, start_to].
        """
        result = await db.execute(
            select(CallRecording)
            .where(
                CallRecording.talkgroup == talkgroup,
                CallRecording.start_time.between(start_from, start_to),
                CallRecording.emergency == emergency,
                CallRecording.tone == tone,
            )
            .order_by(CallRecording.start_time)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def delete_recordings(
        self, db: AsyncSession, recordings: Sequence[CallRecording]
    ) -> list[Row]:
        """
        Delete rows by primary key. Rows already gone are ignored.

        Returns:
            One row (key, talkgroup, sources, page_sent, usage_counted) per
            recording this call actually removed, read at deletion time
        """
        if not recordings:
            return []
        result = await db.execute(
            delete(CallRecording)
            .where(
                or_(
                    *[
                        and_(
                            CallRecording.talkgroup == r.talkgroup,
                            CallRecording.added == r.added,
                        )
                        for r in recordings
                    ]
                )
            )
            .returning(
                CallRecording.key,
                CallRecording.talkgroup,
                CallRecording.sources,
                CallRecording.page_sent,
                CallRecording.usage_counted,
            )
            .execution_options(synchronize_session=False)
        )
        return list(result.all())

    async def set_transcript(self, db: AsyncSession, recording: CallRecording, transcript: str):
        await db.execute(
            update(CallRecording)
            .where(
                CallRecording.talkgroup == recording.talkgroup,
                CallRecording.added == recording.added,
            )
            .values(transcript=transcript)
            .execution_options(synchronize_session=False)
        )
        set_committed_value(recording, "transcript", transcript)

    async def claim_page(self, db: AsyncSession, recording: CallRecording) -> bool:
        """
        Mark a recording as paged unless it already is.

        Returns:
            True if this call set the flag (and so owns sending the page)
        """
        result = await db.execute(
            update(CallRecording)
            .where(
                CallRecording.talkgroup == recording.talkgroup,
                CallRecording.added == recording.added,
                CallRecording.page_sent.is_not(True),
            )
            .values(page_sent=True)
            .execution_options(synchronize_session=False)
        )
        claimed = result.rowcount == 1
        if claimed:
            set_committed_value(recording, "page_sent", True)
        return claimed

    async def release_page(self, db: AsyncSession, recording: CallRecording):
        """Undo claim_page when the page could not be published."""
        await db.execute(
            update(CallRecording)
            .where(
                CallRecording.talkgroup == recording.talkgroup,
                CallRecording.added == recording.added,
                CallRecording.page_sent.is_(True),
            )
            .values(page_sent=None)
            .execution_options(synchronize_session=False)
        )
        set_committed_value(recording, "page_sent", None)

    async def claim_usage(self, db: AsyncSession, recording: CallRecording) -> bool:
        """
        Mark a recording as counted in the usage index unless it already is
        or has been deleted.

        Returns:
            True if this call set the flag (and so owns the increment)
        """
        result = await db.execute(
            update(CallRecording)
            .where(
                CallRecording.talkgroup == recording.talkgroup,
                CallRecording.added == recording.added,
                CallRecording.usage_counted.is_not(True),
            )
            .values(usage_counted=True)
            .execution_options(synchronize_session=False)
        )
        claimed = result.rowcount == 1
        if claimed:
            set_committed_value(recording, "usage_counted", True)
        return claimed

    async def put_translations(
        self,
        db: AsyncSession,
        old_keys: Sequence[str],
        new_key: str,
        ttl_seconds: int,
        now: Optional[float] = None,
    ):
        """Point each superseded key at the surviving key until the TTL passes."""
        if not old_keys:
            return
        expires_at = int((now if now is not None else time.time()) + ttl_seconds)
        insert = dialect_insert(db)
        for old_key in old_keys:
            stmt = insert(KeyTranslation).values(
                key=old_key, new_key=new_key, expires_at=expires_at
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[KeyTranslation.key],
                set_={"new_key": new_key, "expires_at": expires_at},
            )
            await db.execute(stmt)

    async def resolve_key(
        self,
        db: AsyncSession,
        key: str,
        now: Optional[float] = None,
    ) -> Optional[CallRecording]:
        """
        Find the recording a key refers to, following translations left
        behind by duplicate resolution.

        Returns:
            The surviving CallRecording, or None if the chain dead-ends
        """
        if now is None:
            now = time.time()
        current: Optional[str] = key
        hops = 0
        while current is not None and hops <= MAX_TRANSLATION_HOPS:
            recording = await self.get_by_key(db, current)
            if recording is not None:
                return recording

            result = await db.execute(
                select(KeyTranslation).where(
                    KeyTranslation.key == current,
                    KeyTranslation.expires_at > now,
                )
            )
            translation = result.scalar_one_or_none()
            current = translation.new_key if translation else None
            hops += 1

        logger.info(f"No recording found for key {key} after {hops} lookups")
        return None

    async def apply_transcript(
        self,
        db: AsyncSession,
        key: str,
        transcript: str,
        now: Optional[float] = None,
    ) -> Optional[CallRecording]:
        """Write a finished transcript to whichever row now owns the key."""
        recording = await self.resolve_key(db, key, now)
        if recording is None:
            return None
        text = transcript.strip() or EMPTY_TRANSCRIPT
        await self.set_transcript(db, recording, text)
        if recording.key != key:
            logger.info(f"Transcript for {key} redirected to {recording.key}")
        return recording

    async def purge_expired_translations(
        self, db: AsyncSession, now: Optional[float] = None
    ) -> int:
        """Delete expired translations. Returns the number removed."""
        if now is None:
            now = time.time()
        result = await db.execute(
            delete(KeyTranslation).where(KeyTranslation.expires_at <= now)
        )
        return result.rowcount or 0


# Singleton instance
recording_service = RecordingService()
