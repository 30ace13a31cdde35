from __future__ import annotations

from typing import Any

ROLE_CLIENT = "client"
ROLE_FREELANCER = "freelancer"
ROLE_ADMIN = "admin"

ROLES = (ROLE_CLIENT, ROLE_FREELANCER, ROLE_ADMIN)


def normalize_role(value: Any) -> str | None:
    """Canonical lower-case role, or None when the value is not a known role."""
    s = str(value or "").strip().lower()
    return s if s in ROLES else None


def has_any_role(role: Any, allowed: tuple[str, ...] | list[str]) -> bool:
    r = normalize_role(role)
    return r is not None and r in allowed
