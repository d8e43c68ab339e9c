"""Outbound paging queue."""

import logging
from typing import Optional

from radiocap.config import Settings, get_settings

logger = logging.getLogger(__name__)


def build_page_message(talkgroup: int, file_id: str, length: Optional[float], is_test: bool = False) -> dict:
    """Message consumed by the notification gateway."""
    return {
        "action": "page",
        "talkgroup": talkgroup,
        "key": file_id,
        "len": length,
        "isTest": is_test,
    }


class PageQueue:
    """Publishes paging messages for the external notification worker."""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()

    def publish(self, message: dict) -> str:
        """
        Send one paging message to the paging queue.

        Returns:
            The Celery task id of the queued message
        """
        from radiocap.worker import celery_app

        result = celery_app.send_task(
            self._settings.page_task_name,
            args=[message],
            queue=self._settings.page_queue,
        )
        logger.info(f"Queued page for talkgroup {message['talkgroup']} ({message['key']})")
        return result.id
