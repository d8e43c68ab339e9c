"""Authentication for inbound bucket notifications."""

import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

from radiocap.config import get_settings


def token_matches(expected: str, provided: Optional[str]) -> bool:
    """Compare a presented token (bare or "Bearer <token>") in constant time."""
    if not provided:
        return False
    if provided.startswith("Bearer "):
        provided = provided[7:]
    return secrets.compare_digest(provided.encode(), expected.encode())


async def verify_notification_token(
    authorization: Optional[str] = Header(None),
):
    """
    Require the configured shared secret on notification webhooks.

    When no token is configured the endpoint is open (e.g. behind a private
    network with MinIO posting directly).
    """
    expected = get_settings().events_auth_token
    if not expected:
        return
    if not token_matches(expected, authorization):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing notification token",
        )
