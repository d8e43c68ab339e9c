"""Downstream triggers: transcription jobs and paging notifications."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional

from radiocap.config import Settings
from radiocap.db.models import CallRecording
from radiocap.services.normalizer import file_identifier
from radiocap.services.paging import PageQueue, build_page_message
from radiocap.services.transcriber import TranscriptionRequest, TranscriptionService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchConfig:
    """Static settings injected into the dispatcher."""

    language_code: str = "en-US"
    vocabulary_name: Optional[str] = None
    max_speaker_labels: int = 5
    cost_centers: Mapping[int, str] = field(default_factory=dict)
    is_test: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "DispatchConfig":
        return cls(
            language_code=settings.transcribe_language_code,
            vocabulary_name=settings.transcribe_vocabulary_name,
            max_speaker_labels=settings.transcribe_max_speaker_labels,
            cost_centers=dict(settings.cost_centers),
        )


@dataclass
class DispatchOutcome:
    transcription_job: Optional[str] = None
    paged: bool = False


class DispatchError(Exception):
    """One or both downstream requests failed; carries what did go out."""

    def __init__(self, outcome: DispatchOutcome, errors: list[Exception]):
        super().__init__("; ".join(f"{type(e).__name__}: {e}" for e in errors))
        self.outcome = outcome
        self.errors = errors


class TriggerDispatcher:
    """Requests transcription and paging for a stored recording."""

    def __init__(
        self,
        config: DispatchConfig,
        transcriber: TranscriptionService,
        page_queue: PageQueue,
    ):
        self.config = config
        self.transcriber = transcriber
        self.page_queue = page_queue

    @staticmethod
    def wants_transcript(recording: CallRecording) -> bool:
        return recording.emergency == 1 or bool(recording.tone)

    def transcription_request(self, recording: CallRecording, bucket: str) -> TranscriptionRequest:
        return TranscriptionRequest(
            talkgroup=recording.talkgroup,
            bucket=bucket,
            key=recording.key,
            file_id=file_identifier(recording.key),
            is_page=bool(recording.tone),
            length=recording.len,
            cost_center=self.config.cost_centers.get(recording.talkgroup),
        )

    async def dispatch(
        self,
        recording: CallRecording,
        bucket: str,
        page_allowed: bool,
    ) -> DispatchOutcome:
        """
        Fire whatever downstream work the recording still needs.

        Transcription is requested for emergency and paging traffic. A page
        is published only for tone recordings that duplicate resolution
        allowed to page; otherwise only the transcript is requested. The two
        requests are independent: a failed transcription never holds back
        the page.

        Raises:
            DispatchError: If either request failed, after both were attempted
        """
        outcome = DispatchOutcome()
        if not self.wants_transcript(recording):
            return outcome

        request = self.transcription_request(recording, bucket)

        async def transcribe():
            outcome.transcription_job = await asyncio.to_thread(
                self.transcriber.start_job,
                request,
                self.config.language_code,
                self.config.vocabulary_name,
                self.config.max_speaker_labels,
            )

        async def page():
            message = build_page_message(
                recording.talkgroup,
                request.file_id,
                recording.len,
                is_test=self.config.is_test,
            )
            await asyncio.to_thread(self.page_queue.publish, message)
            outcome.paged = True

        steps = [transcribe()]
        if recording.tone and page_allowed:
            steps.append(page())
        else:
            logger.debug(f"Transcript only for {recording.key}")

        results = await asyncio.gather(*steps, return_exceptions=True)
        errors = [r for r in results if isinstance(r, Exception)]
        if errors:
            raise DispatchError(outcome, errors)
        return outcome
