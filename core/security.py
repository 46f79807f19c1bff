"""
Security utilities: session tokens and PII masking for logs.

Session tokens are short JWTs (PyJWT) whose `sid` claim names a record in
the `sessions` collection. The token only proves which session is meant;
the session record decides who the actor is and in which role.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Set

import jwt

from core.config import settings
from core.errors import AuthRequired

logger = logging.getLogger("security")


# PII fields that should be masked in logs
PII_FIELDS: Set[str] = {
    "email", "adminemail", "phone", "phonenumber",
    "firstname", "lastname", "fullname", "name", "adminname", "applicantname",
    "first_name", "last_name", "full_name",
    "address", "dateofbirth", "dob",
    "resume", "resumeurl",
}


def mask_pii(data: Any, depth: int = 0) -> Any:
    """
    Recursively mask PII fields in data structures.

    Args:
        data: Data to mask (dict, list, or primitive)
        depth: Current recursion depth (max 10)

    Returns:
        Data with PII fields masked
    """
    if depth > 10:
        return "[MAX_DEPTH]"

    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if str(key).lower() in PII_FIELDS:
                if isinstance(value, str) and len(value) > 0:
                    # Partial masking: show first char and length indicator
                    masked[key] = f"{value[0]}***[{len(value)}]"
                else:
                    masked[key] = "[MASKED]"
            else:
                masked[key] = mask_pii(value, depth + 1)
        return masked
    elif isinstance(data, list):
        return [mask_pii(item, depth + 1) for item in data[:5]]  # Limit list items
    else:
        return data


def create_session_token(
    user_id: str,
    session_id: str,
    expires_minutes: Optional[int] = None,
) -> str:
    """Issue a signed bearer token for a persisted session record."""
    now = datetime.now(timezone.utc)
    expires = now + timedelta(minutes=expires_minutes or settings.session_token_expire_minutes)
    payload = {
        "sub": user_id,
        "sid": session_id,
        "iat": now,
        "exp": expires,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_session_token(token: str) -> dict[str, Any]:
    """
    Verify a bearer token and return its claims.

    Raises:
        AuthRequired: Expired, malformed or wrongly signed token
    """
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "sid", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthRequired("Session token has expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Rejected session token: {e}")
        raise AuthRequired("Invalid session token")
    return claims


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Token part of an `Authorization: Bearer <token>` header, or None."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
