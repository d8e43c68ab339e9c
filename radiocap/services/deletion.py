"""Handling of recordings removed from object storage."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from radiocap.services.recording_service import RecordingService
from radiocap.services.usage import UsageIndexService

logger = logging.getLogger(__name__)


class DeletionHandler:
    """Removes the row for a deleted object and releases its usage."""

    def __init__(self, recordings: RecordingService, usage: UsageIndexService):
        self.recordings = recordings
        self.usage = usage

    async def handle(self, db: AsyncSession, key: str) -> bool:
        """
        Reverse the creation of a recording.

        Deletion events also arrive for duplicates that resolution already
        removed, so a missing row is not an error.

        Returns:
            True if a row was removed
        """
        recording = await self.recordings.get_by_key(db, key)
        if recording is None:
            logger.info(f"Delete for {key}: no matching recording")
            return False

        removed = await self.recordings.delete_recordings(db, [recording])
        if not removed:
            logger.info(f"Delete for {key}: already removed by another handler")
            return False
        if removed[0].usage_counted:
            await self.usage.release(db, recording.talkgroup, recording.sources or [])
        logger.info(f"Deleted recording {key} (talkgroup {recording.talkgroup})")
        return True

