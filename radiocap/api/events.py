"""Bucket notification ingress."""

import logging

from fastapi import APIRouter, Depends, status

from radiocap.auth.security import verify_notification_token
from radiocap.schemas.schemas import BatchResultResponse, BucketNotification
from radiocap.services.pipeline import CaptureEventHandler, get_event_handler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/events", tags=["Events"])


@router.post(
    "/storage",
    response_model=BatchResultResponse,
    status_code=status.HTTP_200_OK,
    summary="Receive a bucket notification",
    description="Process object created/removed notifications for uploaded recordings.",
    dependencies=[Depends(verify_notification_token)],
)
async def receive_storage_event(
    notification: BucketNotification,
    handler: CaptureEventHandler = Depends(get_event_handler),
):
    """
    Process every record of a bucket notification.

    Always answers 200 once the batch has been attempted: failed records are
    logged and counted, and redelivery of the same notification is safe.
    """
    events = notification.to_events()
    logger.info(f"Received notification with {len(events)} record(s)")

    summary = await handler.handle_batch(events)

    return BatchResultResponse(
        received=summary.received,
        succeeded=summary.succeeded,
        failed=summary.failed,
    )
