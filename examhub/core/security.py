"""
JWT helpers for bearer authentication.

Tokens are issued by the identity service; this module only needs to verify
them. create_access_token exists for tests and local tooling.
"""
import uuid
from datetime import timedelta
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from examhub.core.config import settings
from examhub.core.datetime_utils import utc_now


def create_access_token(
    data: Dict[str, Any], expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a signed access token.

    Args:
        data: Claims to encode (typically user_id)
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT string
    """
    to_encode = data.copy()
    now = utc_now()
    expire = now + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update(
        {"exp": expire, "iat": now, "type": "access", "jti": str(uuid.uuid4())}
    )
    return jwt.encode(
        to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and verify a JWT. Returns None if the token is invalid or expired."""
    try:
        return jwt.decode(
            token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        return None


def verify_token_type(payload: Dict[str, Any], expected_type: str) -> bool:
    return payload.get("type") == expected_type
