"""
FastAPI authentication dependencies.

Resolves the bearer token to a User row. Whether that user may act on a
given plan or execution is decided by the services, not here.
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from examhub.core.error_responses import ErrorMessages, raise_unauthorized
from examhub.core.security import decode_token, verify_token_type
from examhub.models import User, get_db

# Missing credentials are reported as 401 by get_current_user, not by HTTPBearer
security = HTTPBearer(auto_error=False)


def _user_id_from_token(token: str) -> int:
    """
    Decode and validate an access token, returning the user_id claim.

    Raises:
        HTTPException: 401 if the token is invalid, of the wrong type or
            missing user_id
    """
    payload = decode_token(token)
    if payload is None:
        raise_unauthorized(ErrorMessages.INVALID_TOKEN)

    if not verify_token_type(payload, "access"):
        raise_unauthorized(ErrorMessages.INVALID_TOKEN_TYPE)

    user_id = payload.get("user_id")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise_unauthorized(ErrorMessages.INVALID_TOKEN_PAYLOAD)

    return user_id


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Get the authenticated user from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing or invalid, or the user
            no longer exists
    """
    if credentials is None:
        raise_unauthorized(ErrorMessages.INVALID_TOKEN)

    user_id = _user_id_from_token(credentials.credentials)
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise_unauthorized(ErrorMessages.USER_NOT_FOUND_AUTH)
    return user
