"""CloudWatch metrics for call volume, errors and upload latency."""

import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from radiocap.config import Settings, get_settings

logger = logging.getLogger(__name__)

METRIC_SOURCE = "S3"


class MetricsService:
    """Thin wrapper around CloudWatch PutMetricData.

    Metrics are best effort: a failed put is logged and never propagates
    into the pipeline that emitted it.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()
        self._client = None

    @property
    def client(self):
        """Lazy initialization of CloudWatch client."""
        if self._client is None:
            self._client = boto3.client("cloudwatch", region_name=self._settings.aws_region)
        return self._client

    def _put(self, namespace: str, metric_data: list[dict]):
        if not self._settings.metrics_enabled:
            return
        try:
            self.client.put_metric_data(Namespace=namespace, MetricData=metric_data)
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"Failed to put metrics to {namespace}: {e}")

    def increment(self, name: str, **dimensions: str):
        """Add one to a counter, e.g. increment("Call", action="delete")."""
        self._put(
            self._settings.metrics_namespace,
            [
                {
                    "MetricName": name,
                    "Dimensions": [
                        {"Name": dim_name, "Value": str(value)}
                        for dim_name, value in dimensions.items()
                    ],
                    "Unit": "Count",
                    "Value": 1,
                }
            ],
        )

    def call(self, action: str):
        """Count a created or deleted recording."""
        self.increment("Call", source=METRIC_SOURCE, action=action)

    def event(self, event: str):
        self.increment("Event", source=METRIC_SOURCE, type="dtr", event=event)

    def error(self, error_type: str):
        self.increment("Error", source=METRIC_SOURCE, type=error_type)

    def upload(self, tower: str, latency_sec: Optional[float]):
        """Record one upload from a tower and, when known, how late it arrived."""
        metric_data = [
            {
                "MetricName": "Upload",
                "Dimensions": [{"Name": "Tower", "Value": tower}],
                "Unit": "Count",
                "Value": 1,
            }
        ]
        if latency_sec is not None:
            metric_data.append(
                {
                    "MetricName": "UploadTime",
                    "Dimensions": [{"Name": "Tower", "Value": tower}],
                    "Unit": "Seconds",
                    "Value": latency_sec,
                }
            )
        self._put(self._settings.upload_metrics_namespace, metric_data)
