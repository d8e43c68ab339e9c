"""Denormalized "in use" index for talkgroups and radios."""

import logging
from typing import Iterable

from sqlalchemy import case, update
from sqlalchemy.ext.asyncio import AsyncSession

from radiocap.db.models import RadioUsage, TalkgroupUsage
from radiocap.services.recording_service import dialect_insert

logger = logging.getLogger(__name__)


class UsageIndexService:
    """Keeps in_use flags and reference counts in step with recordings."""

    async def _increment(self, db: AsyncSession, model, id_column, ident: int):
        insert = dialect_insert(db)
        stmt = insert(model).values({id_column.key: ident, "in_use": "Y", "count": 1})
        stmt = stmt.on_conflict_do_update(
            index_elements=[id_column],
            set_={"in_use": "Y", "count": model.count + 1},
        )
        await db.execute(stmt)

    async def _decrement(self, db: AsyncSession, model, id_column, ident: int):
        await db.execute(
            update(model)
            .where(id_column == ident)
            .values(
                count=case((model.count > 0, model.count - 1), else_=0),
                in_use=case((model.count > 1, "Y"), else_="N"),
            )
            .execution_options(synchronize_session=False)
        )

    async def mark_in_use(self, db: AsyncSession, talkgroup: int, radio_ids: Iterable[int] = ()):
        """Count a new recording against its talkgroup and contributing radios."""
        await self._increment(db, TalkgroupUsage, TalkgroupUsage.talkgroup, talkgroup)
        for radio_id in sorted(set(radio_ids)):
            await self._increment(db, RadioUsage, RadioUsage.radio_id, radio_id)

    async def release(self, db: AsyncSession, talkgroup: int, radio_ids: Iterable[int] = ()):
        """Undo mark_in_use for a removed recording. Counts never go below zero."""
        await self._decrement(db, TalkgroupUsage, TalkgroupUsage.talkgroup, talkgroup)
        for radio_id in sorted(set(radio_ids)):
            await self._decrement(db, RadioUsage, RadioUsage.radio_id, radio_id)
        logger.debug(f"Released usage for talkgroup {talkgroup}")


# Singleton instance
usage_service = UsageIndexService()
