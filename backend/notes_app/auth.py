"""Authentication helpers and FastAPI security dependency.

This module provides utilities to decode session JWTs and a FastAPI
dependency `get_current_user` that validates the bearer token against
the stored session and returns the corresponding `User` instance.

Token verification raises HTTPExceptions on failure so it can be used
directly inside route dependencies.
"""

from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from . import models
from .config import settings
from .database import get_session
from .services import TOKEN_TYPE, SessionService

bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
    """Decode and verify a session JWT.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure, including tokens of another type.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail='Invalid token')
    if payload.get('type') != TOKEN_TYPE or not payload.get('userId'):
        raise HTTPException(status_code=401, detail='Invalid token')
    return payload


def bearer_token(credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme)) -> Optional[str]:
    """Return the raw bearer token, or `None` when the header is absent."""
    if credentials is None or credentials.scheme.lower() != 'bearer':
        return None
    return credentials.credentials


def get_current_user(token: Optional[str] = Depends(bearer_token),
                     db: Session = Depends(get_session)) -> models.User:
    """FastAPI dependency that returns the authenticated user.

    The token must verify, carry the session type and match an active,
    unexpired session whose user is still active. Anything else is a 401.
    """
    if not token:
        raise HTTPException(status_code=401, detail='Unauthorized')
    payload = decode_token(token)
    user = SessionService(db).resolve(token, payload['userId'])
    if user is None:
        raise HTTPException(status_code=401, detail='Session expired')
    return user
