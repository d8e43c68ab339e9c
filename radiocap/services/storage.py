"""Object storage service for uploaded recordings."""

import logging
from typing import Optional

import boto3
from botocore.config import Config

from radiocap.config import Settings, get_settings

logger = logging.getLogger(__name__)


class StorageService:
    """Service for reading and removing recordings in object storage (S3/MinIO)."""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()
        self._client = None

    @property
    def client(self):
        """Lazy initialization of S3 client."""
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=self._settings.s3_endpoint_url,
                region_name=self._settings.aws_region,
                aws_access_key_id=self._settings.s3_access_key,
                aws_secret_access_key=self._settings.s3_secret_key,
                config=Config(signature_version="s3v4"),
            )
        return self._client

    def get_metadata(self, bucket: str, key: str) -> dict[str, str]:
        """
        Fetch the user metadata attached to an uploaded object.

        Returns the metadata map exactly as the receiving site supplied it
        (all values are strings).
        """
        response = self.client.head_object(Bucket=bucket, Key=key)
        return dict(response.get("Metadata") or {})

    def delete_object(self, bucket: str, key: str):
        """Delete a single object."""
        self.client.delete_object(Bucket=bucket, Key=key)
        logger.info(f"Deleted s3://{bucket}/{key}")

    def health_check(self, bucket: Optional[str] = None) -> bool:
        """Check if storage is accessible."""
        try:
            if bucket:
                self.client.head_bucket(Bucket=bucket)
            else:
                self.client.list_buckets()
            return True
        except Exception:
            return False
