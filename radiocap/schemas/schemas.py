"""Pydantic schemas for request/response validation."""

from typing import Optional
from urllib.parse import unquote_plus

from pydantic import BaseModel, ConfigDict, Field

from radiocap.services.pipeline import EventAction, StorageEvent


# ============== Bucket Notification Schemas ==============


class S3Bucket(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str


class S3Object(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str
    size: Optional[int] = None


class S3Entity(BaseModel):
    model_config = ConfigDict(extra="ignore")

    bucket: S3Bucket
    object: S3Object


class NotificationRecord(BaseModel):
    """One record of an S3/MinIO bucket notification."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    event_name: str = Field(..., alias="eventName")
    s3: S3Entity

    @property
    def action(self) -> EventAction:
        if "ObjectCreated" in self.event_name:
            return EventAction.CREATED
        if "ObjectRemoved" in self.event_name:
            return EventAction.DELETED
        return EventAction.IGNORED

    def to_event(self) -> StorageEvent:
        # Keys in notifications are URL-encoded
        return StorageEvent(
            action=self.action,
            bucket=self.s3.bucket.name,
            key=unquote_plus(self.s3.object.key),
        )


class BucketNotification(BaseModel):
    """Bucket notification payload (S3 event format)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    records: list[NotificationRecord] = Field(default_factory=list, alias="Records")

    def to_events(self) -> list[StorageEvent]:
        return [record.to_event() for record in self.records]


class BatchResultResponse(BaseModel):
    """Outcome of processing one notification."""

    received: int
    succeeded: int
    failed: int


# ============== Health & Misc Schemas ==============


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    redis: str
    storage: str


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: Optional[str] = None
