"""Pytest configuration and fixtures."""

import itertools
import json
import os
from typing import AsyncGenerator, Optional

# Settings are read once at import time; point them at test resources first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("METRICS_ENABLED", "false")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from radiocap.db import models  # noqa: F401
from radiocap.db.models import CallRecording
from radiocap.db.session import Base
from radiocap.main import app
from radiocap.services.deletion import DeletionHandler
from radiocap.services.dispatcher import DispatchConfig, TriggerDispatcher
from radiocap.services.normalizer import MetadataNormalizer, NormalizerConfig, VhfSite
from radiocap.services.pipeline import CaptureEventHandler, get_event_handler
from radiocap.services.recording_service import RecordingService
from radiocap.services.resolver import DuplicateResolver, ResolverConfig
from radiocap.services.usage import UsageIndexService

BUCKET = "capture-audio"
START_ADDED = 1_745_367_700_000


# ============== Fakes for AWS-backed collaborators ==============


class FakeStorage:
    """In-memory bucket holding object metadata."""

    def __init__(self):
        self.objects: dict[tuple[str, str], dict[str, str]] = {}
        self.deleted: list[str] = []

    def put(self, key: str, metadata: dict[str, str], bucket: str = BUCKET):
        self.objects[(bucket, key)] = metadata

    def get_metadata(self, bucket: str, key: str) -> dict[str, str]:
        if (bucket, key) not in self.objects:
            raise KeyError(f"NoSuchKey: {key}")
        return dict(self.objects[(bucket, key)])

    def delete_object(self, bucket: str, key: str):
        self.deleted.append(key)
        self.objects.pop((bucket, key), None)

    def health_check(self, bucket: Optional[str] = None) -> bool:
        return True


class FakeMetrics:
    def __init__(self):
        self.calls: list[str] = []
        self.events: list[str] = []
        self.errors: list[str] = []
        self.uploads: list[tuple[str, Optional[float]]] = []

    def call(self, action: str):
        self.calls.append(action)

    def event(self, event: str):
        self.events.append(event)

    def error(self, error_type: str):
        self.errors.append(error_type)

    def upload(self, tower: str, latency_sec: Optional[float]):
        self.uploads.append((tower, latency_sec))


class FakeTranscriber:
    def __init__(self, failures: int = 0):
        self.requests = []
        self.failures = failures

    def start_job(self, request, language_code="en-US", vocabulary_name=None, max_speaker_labels=5) -> str:
        self.requests.append(request)
        if self.failures:
            self.failures -= 1
            raise RuntimeError("StartTranscriptionJob throttled")
        return f"{request.talkgroup}-{len(self.requests)}"


class FakePageQueue:
    def __init__(self, failures: int = 0):
        self.messages: list[dict] = []
        self.failures = failures

    def publish(self, message: dict) -> str:
        if self.failures:
            self.failures -= 1
            raise ConnectionError("broker unavailable")
        self.messages.append(message)
        return f"task-{len(self.messages)}"


# ============== Metadata builders ==============


def dtr_key(talkgroup: int, start: int, call: int) -> str:
    return f"audio/dtr/{talkgroup}-{start}_851475000.0-call_{call}.m4a"


def dtr_metadata(
    talkgroup: int = 8332,
    start: float = 10,
    stop: float = 15,
    length: float = 7,
    tone: bool = False,
    emergency: bool = False,
    tower: str = "Saguache",
    sources: Optional[list[int]] = None,
) -> dict[str, str]:
    """Object metadata as a DTR site uploads it (all strings)."""
    metadata = {
        "talkgroup_num": str(talkgroup),
        "start_time": str(start),
        "stop_time": str(stop),
        "call_length": str(length),
        "freq": "851475000",
        "emergency": "1" if emergency else "0",
        "tone": "true" if tone else "false",
        "source": tower,
    }
    if sources:
        metadata["source_list"] = json.dumps(
            [{"pos": i, "src": src} for i, src in enumerate(sources)]
        )
    return metadata


# ============== Database fixtures ==============


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a fresh SQLite database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_maker() as session:
        yield session
        await session.rollback()


async def add_recording(db: AsyncSession, **fields) -> CallRecording:
    """Insert a recording row directly, with sensible defaults."""
    defaults = dict(
        talkgroup=8332,
        added=START_ADDED,
        start_time=100.0,
        end_time=110.0,
        len=10.0,
        freq=851475000,
        emergency=0,
        tone=False,
        tower="Saguache",
    )
    defaults.update(fields)
    defaults.setdefault("key", dtr_key(defaults["talkgroup"], int(defaults["start_time"] or 0), defaults["added"]))
    defaults.setdefault("tone_index", "y" if defaults["tone"] else "n")
    recording = CallRecording(**defaults)
    db.add(recording)
    await db.commit()
    return recording


# ============== Pipeline fixtures ==============


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def metrics() -> FakeMetrics:
    return FakeMetrics()


@pytest.fixture
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def page_queue() -> FakePageQueue:
    return FakePageQueue()


@pytest.fixture
def recordings() -> RecordingService:
    return RecordingService()


@pytest.fixture
def usage() -> UsageIndexService:
    return UsageIndexService()


@pytest.fixture
def resolver(recordings, usage, storage, metrics) -> DuplicateResolver:
    return DuplicateResolver(ResolverConfig(), recordings, usage, storage, metrics)


@pytest.fixture
def dispatcher(transcriber, page_queue) -> TriggerDispatcher:
    return TriggerDispatcher(
        DispatchConfig(cost_centers={8332: "Crestone", 18331: "Baca"}),
        transcriber,
        page_queue,
    )


@pytest.fixture
def normalizer() -> MetadataNormalizer:
    return MetadataNormalizer(
        NormalizerConfig(
            vhf_sites={
                "BG_FIRE_VHF": VhfSite(talkgroup=18331, freq=154445000),
                "SAG_FIRE_VHF": VhfSite(talkgroup=18332, freq=154190000),
            }
        )
    )


@pytest.fixture
def handler(
    session_maker, storage, metrics, normalizer, recordings, resolver, usage, dispatcher
) -> CaptureEventHandler:
    """Pipeline wired to a real database and fake AWS services."""
    clock = itertools.count(START_ADDED, 1000)
    return CaptureEventHandler(
        session_maker=session_maker,
        storage=storage,
        metrics=metrics,
        normalizer=normalizer,
        recordings=recordings,
        resolver=resolver,
        usage=usage,
        dispatcher=dispatcher,
        deletion=DeletionHandler(recordings, usage),
        clock=lambda: next(clock),
    )


@pytest_asyncio.fixture
async def client(handler: CaptureEventHandler) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""
    app.dependency_overrides[get_event_handler] = lambda: handler

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
