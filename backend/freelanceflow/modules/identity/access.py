from __future__ import annotations

from typing import Callable

from fastapi import Request

from ...auth.tokens import Identity
from ...errors import forbidden, unauthorized
from .roles import has_any_role


def optional_user(request: Request) -> Identity | None:
    """Identity resolved by the auth middleware, if any (public routes may have none)."""
    user = getattr(getattr(request, "state", None), "user", None)
    return user if isinstance(user, Identity) else None


def current_user(request: Request) -> Identity:
    user = optional_user(request)
    if not user:
        raise unauthorized()
    return user


def require_role(*roles: str, message: str = "Forbidden") -> Callable[[Request], Identity]:
    """FastAPI dependency factory: the caller must hold one of `roles`."""

    def _dep(request: Request) -> Identity:
        user = current_user(request)
        if not has_any_role(user.role, roles):
            raise forbidden(message)
        return user

    return _dep
