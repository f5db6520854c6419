"""
Bearer-token issuing and verification.

Tokens are HS256 JWTs carrying the user's id and email. Mutating place
routes depend on ``require_caller``; pre-flight (OPTIONS) requests pass
through without identity.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Request

from places_api.config import Settings
from places_api.dependencies import get_app_settings
from places_api.errors import AuthError

logger = logging.getLogger(__name__)

AUTH_FAILED_MESSAGE = "Authentication failed!"


def issue_token(user_id: str, email: str, settings: Settings) -> str:
    expires_at = datetime.now(timezone.utc) + timedelta(
        seconds=settings.token_ttl_seconds
    )
    payload = {"userId": user_id, "email": email, "exp": expires_at}
    return jwt.encode(payload, settings.jwt_key, algorithm=settings.jwt_algorithm)


def verify_request(
    method: str, authorization: Optional[str], settings: Settings
) -> Optional[str]:
    """
    Return the caller's user id for a request, or None for pre-flight requests.

    Raises:
        AuthError: If the Authorization header is absent or malformed, or the
            token fails signature/expiry checks.
    """
    if method.upper() == "OPTIONS":
        return None

    if not authorization:
        raise AuthError(AUTH_FAILED_MESSAGE)
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise AuthError(AUTH_FAILED_MESSAGE)

    try:
        decoded = jwt.decode(
            token, settings.jwt_key, algorithms=[settings.jwt_algorithm]
        )
    except jwt.PyJWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise AuthError(AUTH_FAILED_MESSAGE) from exc

    user_id = decoded.get("userId")
    if not user_id:
        raise AuthError(AUTH_FAILED_MESSAGE)
    return user_id


def require_caller(
    request: Request, settings: Settings = Depends(get_app_settings)
) -> Optional[str]:
    user_id = verify_request(
        request.method, request.headers.get("Authorization"), settings
    )
    if user_id is not None:
        request.state.user_data = {"userId": user_id}
    return user_id
