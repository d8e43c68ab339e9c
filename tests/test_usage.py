"""Tests for the talkgroup and radio usage index."""

import pytest
from sqlalchemy import select

from radiocap.db.models import RadioUsage, TalkgroupUsage


async def talkgroup_usage(db, talkgroup):
    result = await db.execute(
        select(TalkgroupUsage)
        .where(TalkgroupUsage.talkgroup == talkgroup)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def radio_usage(db):
    result = await db.execute(
        select(RadioUsage).order_by(RadioUsage.radio_id).execution_options(populate_existing=True)
    )
    return [(r.radio_id, r.in_use, r.count) for r in result.scalars().all()]


@pytest.mark.asyncio
async def test_mark_and_release_counts(db_session, usage):
    await usage.mark_in_use(db_session, 8332, [101, 102])
    await usage.mark_in_use(db_session, 8332, [101])
    await db_session.commit()

    row = await talkgroup_usage(db_session, 8332)
    assert (row.in_use, row.count) == ("Y", 2)
    assert await radio_usage(db_session) == [(101, "Y", 2), (102, "Y", 1)]

    await usage.release(db_session, 8332, [101, 102])
    await db_session.commit()

    row = await talkgroup_usage(db_session, 8332)
    assert (row.in_use, row.count) == ("Y", 1)
    assert await radio_usage(db_session) == [(101, "Y", 1), (102, "N", 0)]


@pytest.mark.asyncio
async def test_release_never_goes_negative(db_session, usage):
    await usage.mark_in_use(db_session, 8332)
    await usage.release(db_session, 8332)
    await usage.release(db_session, 8332)
    await db_session.commit()

    row = await talkgroup_usage(db_session, 8332)
    assert (row.in_use, row.count) == ("N", 0)


@pytest.mark.asyncio
async def test_release_unknown_talkgroup_creates_nothing(db_session, usage):
    await usage.release(db_session, 9999, [5])
    await db_session.commit()

    assert await talkgroup_usage(db_session, 9999) is None
    assert await radio_usage(db_session) == []


@pytest.mark.asyncio
async def test_repeated_radio_ids_count_once(db_session, usage):
    await usage.mark_in_use(db_session, 8332, [7, 7, 7])
    await db_session.commit()

    assert await radio_usage(db_session) == [(7, "Y", 1)]
