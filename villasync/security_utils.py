"""
Security Utilities
Signed tokens for public calendar feed links
"""

import logging
from typing import Any, Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .config import FEED_TOKEN_MAX_AGE_SECONDS, FEED_TOKEN_SECRET

logger = logging.getLogger(__name__)

FEED_TOKEN_SALT = "ical-feed"


def generate_timed_token(data: dict[str, Any], salt: str = FEED_TOKEN_SALT) -> str:
    """Sign a small payload into a URL-safe token using itsdangerous"""
    serializer = URLSafeTimedSerializer(FEED_TOKEN_SECRET)
    return serializer.dumps(data, salt=salt)


def verify_timed_token(
    token: str, max_age: Optional[int] = None, salt: str = FEED_TOKEN_SALT
) -> Optional[dict[str, Any]]:
    """
    Verify and decode a timed token

    Args:
        token: The token to verify
        max_age: Maximum age in seconds (None accepts any age)

    Returns:
        Decoded data if valid, None if invalid or expired
    """
    serializer = URLSafeTimedSerializer(FEED_TOKEN_SECRET)
    try:
        return serializer.loads(token, salt=salt, max_age=max_age)
    except SignatureExpired:
        logger.warning("Feed token expired")
        return None
    except BadSignature:
        logger.warning("Invalid feed token signature")
        return None


def generate_feed_token(villa_id: int) -> str:
    return generate_timed_token({"villa_id": villa_id})


def verify_feed_token(token: str, villa_id: int) -> bool:
    """True when the token was issued for this villa"""
    data = verify_timed_token(token, max_age=FEED_TOKEN_MAX_AGE_SECONDS or None)
    return bool(data) and data.get("villa_id") == villa_id
