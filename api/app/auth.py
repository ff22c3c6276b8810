# auth.py

"""Bearer-token authentication for staff routes.

Tokens are HS256 JWTs carrying ``sub``, ``role`` and ``restaurant_id``.
Issuing tokens (login, PIN, refresh) belongs to an external identity
service; :func:`create_access_token` exists for tests and local tooling.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel

from config import get_settings

from .domain.errors import Forbidden
from .domain.roles import Actor, Role
from .utils.clock import utcnow

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


class User(BaseModel):
    """Authenticated staff member resolved from a bearer token."""

    username: str
    role: Role
    restaurant_id: str

    @property
    def actor(self) -> Actor:
        return Actor(id=self.username, role=self.role)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign ``data`` with an ``exp`` claim; used by tests and local tooling."""
    settings = get_settings()
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {**data, "exp": utcnow() + lifetime}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> User:
    """Return the staff member a token was issued to.

    Raises :class:`ValueError` for a bad signature, an expired token or
    missing claims.
    """
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as exc:
        raise ValueError(str(exc)) from exc
    missing = [c for c in ("sub", "role", "restaurant_id") if not claims.get(c)]
    if missing:
        raise ValueError(f"token lacks {', '.join(missing)}")
    return User(
        username=claims["sub"], role=claims["role"], restaurant_id=claims["restaurant_id"]
    )


def get_current_user(request: Request, token: str = Depends(oauth2_scheme)) -> User:
    try:
        user = decode_token(token)
    except ValueError as exc:
        logger.info("rejected bearer token: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    request.state.user_id = user.username
    return user


def role_required(*roles: Role):
    """Dependency factory enforcing one of ``roles`` within the path's restaurant."""

    allowed = set(roles)

    def dependency(restaurant_id: str, user: User = Depends(get_current_user)) -> User:
        if user.restaurant_id != restaurant_id:
            logger.warning(
                "cross-restaurant access denied user=%s token=%s path=%s",
                user.username,
                user.restaurant_id,
                restaurant_id,
            )
            raise Forbidden("Token is not valid for this restaurant")
        if allowed and user.role not in allowed:
            raise Forbidden(f"Role {user.role.value} may not perform this action")
        return user

    return dependency
