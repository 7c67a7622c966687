"""
Secure streaming tokens
Signed, time-limited credentials bound to one video and one user
"""
import time
import uuid
import logging
from datetime import datetime
from typing import Dict, Any, Optional
from jose import jwt, JWTError, ExpiredSignatureError

from core.config import settings

logger = logging.getLogger(__name__)

# Token purposes. A token only opens the endpoint it was issued for.
PURPOSE_STREAM = "stream"
PURPOSE_DOWNLOAD = "download"
PURPOSE_RESUME = "resume"


class StreamTokenError(Exception):
    """Raised when a streaming token cannot be accepted"""
    pass


def generate_streaming_token(
    video_id: int,
    user_id: int,
    purpose: str = PURPOSE_STREAM,
    expires_in: Optional[int] = None,
    **claims: Any
) -> str:
    """
    Issue a signed token for one video and one user

    Args:
        video_id: Video the token grants access to
        user_id: User the token was issued to
        purpose: stream, download or resume
        expires_in: Lifetime in seconds (default STREAM_TOKEN_TTL_SECONDS)
        claims: Extra claims such as formatId or watermarked

    Returns:
        HS256-signed JWT
    """
    now = int(time.time())
    lifetime = settings.STREAM_TOKEN_TTL_SECONDS if expires_in is None else expires_in

    payload = {
        "videoId": video_id,
        "userId": user_id,
        "typ": purpose,
        "iat": now,
        "exp": now + lifetime,
        "jti": uuid.uuid4().hex,
    }
    payload.update(claims)

    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_streaming_token(token: str, purpose: str = PURPOSE_STREAM) -> Dict[str, Any]:
    """
    Validate a token and return its payload

    Raises:
        StreamTokenError: "Invalid token format", "Invalid token signature",
            "Token expired" or "Invalid token type"
    """
    try:
        jwt.get_unverified_claims(token)
    except JWTError:
        raise StreamTokenError("Invalid token format")

    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise StreamTokenError("Token expired")
    except JWTError:
        raise StreamTokenError("Invalid token signature")

    if payload.get("typ") != purpose:
        raise StreamTokenError("Invalid token type")

    if "videoId" not in payload or "userId" not in payload:
        raise StreamTokenError("Invalid token format")

    return payload


def watermark_text(username: str, when: Optional[datetime] = None) -> str:
    """Text overlaid on watermarked streams"""
    when = when or datetime.utcnow()
    return f"TheVideoPool.com - {username} - {when.strftime('%Y-%m-%d')}"
