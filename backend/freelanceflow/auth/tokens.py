from __future__ import annotations

import time
from dataclasses import dataclass

from jose import JWTError, jwt

from ..repositories.users_repo import get_user_raw
from ..settings import settings


class TokenAuthError(Exception):
    def __init__(self, message: str = "Invalid token", *, status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class Identity:
    id: str
    role: str
    email: str | None = None
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _secret() -> str:
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET is not set")
    return settings.jwt_secret


def issue_access_token(user_id: str, *, expires_in_minutes: int | None = None) -> str:
    """HS256 token for `user_id`. Used by scripts and tests; end-user login lives elsewhere."""
    now = int(time.time())
    ttl = int(expires_in_minutes if expires_in_minutes is not None else settings.jwt_expire_minutes)
    claims = {"sub": str(user_id), "iat": now, "exp": now + ttl * 60}
    return jwt.encode(claims, _secret(), algorithm=settings.jwt_algorithm)


def verify_bearer_token(token: str) -> str:
    """Validate signature and expiry; returns the user id from `sub`."""
    if not token:
        raise TokenAuthError("No token provided")
    try:
        claims = jwt.decode(token, _secret(), algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise TokenAuthError("Invalid token") from e

    sub = str(claims.get("sub") or "").strip()
    if not sub:
        raise TokenAuthError("Invalid token")
    return sub


def authenticate(token: str) -> Identity:
    user_id = verify_bearer_token(token)
    user = get_user_raw(user_id)
    if not user:
        raise TokenAuthError("Invalid token")
    if user.get("isActive") is False:
        raise TokenAuthError("Account is deactivated")

    return Identity(
        id=user_id,
        role=str(user.get("role") or ""),
        email=user.get("email"),
        name=user.get("name"),
    )
