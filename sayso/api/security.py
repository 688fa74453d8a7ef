"""
Token handling.

Access tokens are HS256 JWTs issued by the hosted auth provider; the API only
verifies them. ``create_access_token`` mints compatible tokens for local
development and tests.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union
from uuid import UUID

import jwt

from .config import get_settings

logger = logging.getLogger(__name__)


def create_access_token(
    user_id: Union[UUID, str],
    email: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed access token for ``user_id``."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expires = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))

    payload: Dict[str, Any] = {"sub": str(user_id), "iat": now, "exp": expires}
    if email:
        payload["email"] = email
    if settings.auth_jwt_audience:
        payload["aud"] = settings.auth_jwt_audience

    return jwt.encode(payload, settings.auth_jwt_secret, algorithm=settings.auth_jwt_algorithm)


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify and decode an access token.

    Returns:
        Token payload, or None if the token is invalid or expired
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience,
            options={"verify_aud": settings.auth_jwt_audience is not None},
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Access token expired")
        return None
    except jwt.PyJWTError as e:
        logger.debug(f"Invalid access token: {e}")
        return None
