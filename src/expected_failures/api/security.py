import hashlib
import hmac
import logging
import time

from fastapi import Header, HTTPException

from ..utils import settings

logger = logging.getLogger(__name__)

MAX_CLOCK_SKEW_SECONDS = 60


def verify_token(token: str, x_timestamp: str, x_signature: str) -> None:
    """
    Checks the shared API token and an HMAC-SHA256 of the request timestamp
    signed with it. Requests older than a minute are rejected.
    """
    if not token or not hmac.compare_digest(
        token.encode(), settings.API_TOKEN.encode()
    ):
        raise HTTPException(status_code=403, detail="Invalid token")

    try:
        ts = int(x_timestamp)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Invalid timestamp")

    if abs(time.time() - ts) > MAX_CLOCK_SKEW_SECONDS:
        raise HTTPException(status_code=400, detail="Request expired")

    expected_sig = hmac.new(
        token.encode(), x_timestamp.encode(), hashlib.sha256
    ).hexdigest()

    if not x_signature or not hmac.compare_digest(
        expected_sig.encode(), x_signature.encode()
    ):
        logger.warning("API request signature mismatch")
        raise HTTPException(status_code=403, detail="Invalid signature")


class AuthHeader:
    """Dependency enforcing token auth when API_TOKEN is configured."""

    def __init__(
        self,
        token: str = Header(None),
        x_timestamp: str = Header(None),
        x_signature: str = Header(None),
    ):
        if settings.API_TOKEN:
            verify_token(token, x_timestamp, x_signature)
