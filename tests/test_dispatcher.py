"""Tests for transcription and paging triggers."""

import pytest
from conftest import BUCKET

from radiocap.db.models import CallRecording
from radiocap.services.dispatcher import DispatchError
from radiocap.services.paging import build_page_message
from radiocap.services.transcriber import TranscriptionRequest, build_job_name

KEY = "audio/dtr/8332-1745367697_851475000.0-call_227155.m4a"
FILE_ID = "8332-1745367697_851475000.0-call_227155.m4a"


def make_recording(**fields) -> CallRecording:
    defaults = dict(key=KEY, talkgroup=8332, added=1, len=7.0, emergency=0, tone=False)
    defaults.update(fields)
    return CallRecording(**defaults)


@pytest.mark.asyncio
async def test_routine_traffic_triggers_nothing(dispatcher, transcriber, page_queue):
    outcome = await dispatcher.dispatch(make_recording(), BUCKET, page_allowed=True)

    assert outcome.transcription_job is None
    assert outcome.paged is False
    assert transcriber.requests == []
    assert page_queue.messages == []


@pytest.mark.asyncio
async def test_emergency_is_transcribed_without_page(dispatcher, transcriber, page_queue):
    outcome = await dispatcher.dispatch(make_recording(emergency=1), BUCKET, page_allowed=True)

    assert outcome.transcription_job is not None
    assert outcome.paged is False
    assert page_queue.messages == []

    request = transcriber.requests[0]
    assert request.media_uri == f"s3://{BUCKET}/{KEY}"
    assert request.tags == {
        "Talkgroup": "8332",
        "File": FILE_ID,
        "FileKey": KEY,
        "IsPage": "n",
        "Length": "7",
        "CostCenter": "Crestone",
    }


@pytest.mark.asyncio
async def test_tone_pages_when_allowed(dispatcher, transcriber, page_queue):
    outcome = await dispatcher.dispatch(make_recording(tone=True), BUCKET, page_allowed=True)

    assert outcome.paged is True
    assert transcriber.requests[0].tags["IsPage"] == "y"
    assert page_queue.messages == [
        {"action": "page", "talkgroup": 8332, "key": FILE_ID, "len": 7.0, "isTest": False}
    ]


@pytest.mark.asyncio
async def test_tone_without_permission_is_transcript_only(dispatcher, transcriber, page_queue):
    outcome = await dispatcher.dispatch(make_recording(tone=True), BUCKET, page_allowed=False)

    assert outcome.transcription_job is not None
    assert outcome.paged is False
    assert page_queue.messages == []


@pytest.mark.asyncio
async def test_failed_transcription_still_pages(dispatcher, transcriber, page_queue):
    transcriber.failures = 1

    with pytest.raises(DispatchError) as exc_info:
        await dispatcher.dispatch(make_recording(tone=True), BUCKET, page_allowed=True)

    assert exc_info.value.outcome.paged is True
    assert exc_info.value.outcome.transcription_job is None
    assert "RuntimeError" in str(exc_info.value)
    assert len(page_queue.messages) == 1


@pytest.mark.asyncio
async def test_failed_page_is_reported_after_transcription(dispatcher, transcriber, page_queue):
    page_queue.failures = 1

    with pytest.raises(DispatchError) as exc_info:
        await dispatcher.dispatch(make_recording(tone=True), BUCKET, page_allowed=True)

    assert exc_info.value.outcome.paged is False
    assert exc_info.value.outcome.transcription_job is not None
    assert len(exc_info.value.errors) == 1

def test_request_tags_skip_unknown_values():
    request = TranscriptionRequest(
        talkgroup=-1, bucket=BUCKET, key="audio/x.mp3", file_id="x.mp3", is_page=False
    )

    assert "Length" not in request.tags
    assert "CostCenter" not in request.tags


def test_job_name_format():
    assert build_job_name(8332, now_ms=1745367697000) == "8332-1745367697000"


def test_page_message_format():
    assert build_page_message(18331, "BG.mp3", 15.0, is_test=True) == {
        "action": "page",
        "talkgroup": 18331,
        "key": "BG.mp3",
        "len": 15.0,
        "isTest": True,
    }
