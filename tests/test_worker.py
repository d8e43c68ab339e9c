"""Tests for Celery tasks, run synchronously."""

import asyncio
import time

import pytest
from conftest import add_recording
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from radiocap import worker
from radiocap.db.session import Base
from radiocap.services.recording_service import EMPTY_TRANSCRIPT, RecordingService


@pytest.fixture
def worker_db(tmp_path, monkeypatch) -> str:
    url = f"sqlite+aiosqlite:///{tmp_path / 'worker.db'}"
    monkeypatch.setattr(worker.settings, "database_url", url)
    return url


def seed(url, work):
    async def runner():
        engine = create_async_engine(url)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with async_sessionmaker(engine, expire_on_commit=False)() as db:
            await work(db)
            await db.commit()
        await engine.dispose()

    asyncio.run(runner())


def test_apply_transcript_follows_translation(worker_db):
    async def work(db):
        await add_recording(db, key="survivor.m4a")
        await RecordingService().put_translations(db, ["loser.m4a"], "survivor.m4a", ttl_seconds=600)

    seed(worker_db, work)

    result = worker.apply_transcript("loser.m4a", "")

    assert result == {"file_key": "loser.m4a", "stored_on": "survivor.m4a"}

    async def check(db):
        recording = await RecordingService().get_by_key(db, "survivor.m4a")
        assert recording.transcript == EMPTY_TRANSCRIPT

    seed(worker_db, check)


def test_purge_expired_translations_task(worker_db):
    async def work(db):
        service = RecordingService()
        await service.put_translations(db, ["old.m4a"], "x.m4a", ttl_seconds=600, now=time.time() - 3600)
        await service.put_translations(db, ["new.m4a"], "x.m4a", ttl_seconds=600)

    seed(worker_db, work)

    assert worker.purge_expired_translations() == 1
