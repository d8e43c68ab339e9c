"""Speech-to-text job submission (AWS Transcribe)."""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import boto3

from radiocap.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class TranscriptionRequest:
    """A transcription job to submit for one recording."""

    talkgroup: int
    bucket: str
    key: str
    file_id: str
    is_page: bool
    length: Optional[float] = None
    cost_center: Optional[str] = None

    @property
    def media_uri(self) -> str:
        return f"s3://{self.bucket}/{self.key}"

    @property
    def tags(self) -> dict[str, str]:
        tags = {
            "Talkgroup": str(self.talkgroup),
            "File": self.file_id,
            "FileKey": self.key,
            "IsPage": "y" if self.is_page else "n",
        }
        if self.length is not None:
            tags["Length"] = f"{self.length:g}"
        if self.cost_center is not None:
            tags["CostCenter"] = self.cost_center
        return tags


def build_job_name(talkgroup: int, now_ms: Optional[int] = None) -> str:
    """Job names are "<talkgroup>-<epoch ms>"; the completion handler parses them."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{talkgroup}-{now_ms}"


class TranscriptionService:
    """Submits recordings to AWS Transcribe; results arrive asynchronously."""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()
        self._client = None

    @property
    def client(self):
        """Lazy initialization of Transcribe client."""
        if self._client is None:
            self._client = boto3.client("transcribe", region_name=self._settings.aws_region)
        return self._client

    def start_job(
        self,
        request: TranscriptionRequest,
        language_code: str = "en-US",
        vocabulary_name: Optional[str] = None,
        max_speaker_labels: int = 5,
    ) -> str:
        """
        Start a transcription job.

        Returns:
            The generated job name
        """
        job_name = build_job_name(request.talkgroup)
        job_settings = {
            "MaxSpeakerLabels": max_speaker_labels,
            "ShowSpeakerLabels": True,
        }
        if vocabulary_name:
            job_settings["VocabularyName"] = vocabulary_name

        self.client.start_transcription_job(
            TranscriptionJobName=job_name,
            LanguageCode=language_code,
            Media={"MediaFileUri": request.media_uri},
            Settings=job_settings,
            Tags=[{"Key": k, "Value": v} for k, v in request.tags.items()],
        )
        logger.info(f"Started transcription job {job_name} for {request.key}")
        return job_name
