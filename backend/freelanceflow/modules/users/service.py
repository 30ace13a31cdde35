from __future__ import annotations

from typing import Any

from ...auth.tokens import Identity
from ...errors import forbidden, not_found, validation
from ...observability.logging import get_logger
from ...repositories import users_repo
from ...shared.pagination import PageParams, get_path, paginate, sort_items
from ..identity.roles import ROLE_FREELANCER

log = get_logger("users")

SEARCH_FIELDS = ("name", "email", "profile.title", "profile.bio")


def _csv(value: str | None) -> list[str]:
    return [s.strip() for s in str(value or "").split(",") if s.strip()]


def _as_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def sort_users(items: list[dict[str, Any]], sort: str | None) -> list[dict[str, Any]]:
    """`best` ranks by rating, then earnings, then newest; anything else is a field sort."""
    s = str(sort or "best").strip() or "best"
    if s != "best":
        return sort_items(items, s)
    # Stable sorts applied from the least to the most significant key.
    out = sort_items(items, "-createdAt")
    out = sort_items(out, "-earnings.total")
    return sort_items(out, "-ratings.average")


def filter_users(
    items: list[dict[str, Any]],
    *,
    role: str | None = None,
    q: str | None = None,
    skills: str | None = None,
    min_rate: Any = None,
    max_rate: Any = None,
    location: str | None = None,
    availability: str | None = None,
) -> list[dict[str, Any]]:
    needle = str(q or "").strip().lower()
    wanted = set(_csv(skills))
    lo = _as_float(min_rate)
    hi = _as_float(max_rate)
    loc = str(location or "").strip().lower()

    out: list[dict[str, Any]] = []
    for it in items:
        profile = it.get("profile") if isinstance(it.get("profile"), dict) else {}
        if role and it.get("role") != role:
            continue
        if needle and not any(needle in str(get_path(it, f) or "").lower() for f in SEARCH_FIELDS):
            continue
        if wanted and not wanted & set(profile.get("skills") or []):
            continue
        if lo is not None or hi is not None:
            rate = _as_float(profile.get("hourlyRate"))
            if rate is None or (lo is not None and rate < lo) or (hi is not None and rate > hi):
                continue
        if availability and profile.get("availability") != availability:
            continue
        if loc and loc not in str(profile.get("location") or "").lower():
            continue
        out.append(it)
    return out


def list_users(
    *,
    params: PageParams,
    sort: str | None = None,
    **filters: Any,
) -> tuple[list[dict[str, Any]], dict[str, int]]:
    items = sort_users(filter_users(users_repo.list_users_raw(), **filters), sort)
    window, pagination = paginate(items, params)
    return [u for u in (users_repo.normalize_user_for_api(it) for it in window) if u], pagination


def get_user(user_id: str, *, public: bool = False) -> dict[str, Any]:
    user = users_repo.get_user_by_id(user_id, public=public)
    if not user:
        raise not_found("User not found")
    return user


def update_own_profile(user: Identity, updates: dict[str, Any]) -> dict[str, Any]:
    updated = users_repo.update_profile(user.id, updates)
    if not updated:
        raise not_found("User not found")
    log.info("profile_updated", user_id=user.id, fields=sorted(updates))
    return updated


def update_avatar(user: Identity, avatar: str | None) -> dict[str, Any]:
    url = str(avatar or "").strip()
    if not url:
        raise validation("Avatar URL is required", [{"param": "avatar", "msg": "Avatar URL is required"}])
    updated = users_repo.set_avatar(user.id, url)
    if not updated:
        raise not_found("User not found")
    return updated


def _freelancer_profile(user: Identity, action: str) -> dict[str, Any]:
    raw = users_repo.get_user_raw(user.id)
    if not raw:
        raise not_found("User not found")
    if raw.get("role") != ROLE_FREELANCER:
        raise forbidden(f"Only freelancers can {action}")
    return raw.get("profile") if isinstance(raw.get("profile"), dict) else {}


def add_skill(user: Identity, skill: str) -> dict[str, Any]:
    name = str(skill or "").strip()
    if not name:
        raise validation("Valid skill name is required", [{"param": "skill", "msg": "Skill is required"}])

    skills = list(_freelancer_profile(user, "add skills").get("skills") or [])
    if any(str(s).lower() == name.lower() for s in skills):
        raise validation("Skill already exists", [{"param": "skill", "msg": "Skill already exists"}])

    skills.append(name)
    updated = users_repo.set_profile_field(user.id, "skills", skills) or {}
    return {"skills": skills, "user": updated}


def remove_skill(user: Identity, skill: str) -> dict[str, Any]:
    skills = list(_freelancer_profile(user, "remove skills").get("skills") or [])
    if not skills:
        raise validation("No skills to remove")

    target = str(skill or "").lower()
    skills = [s for s in skills if str(s).lower() != target]
    updated = users_repo.set_profile_field(user.id, "skills", skills) or {}
    return {"skills": skills, "user": updated}


def add_portfolio_item(user: Identity, item: dict[str, Any]) -> dict[str, Any]:
    portfolio = list(_freelancer_profile(user, "add portfolio items").get("portfolio") or [])
    portfolio.append(
        {
            "title": str(item.get("title") or "").strip(),
            "description": str(item.get("description") or "").strip(),
            "imageUrl": item.get("imageUrl") or None,
            "projectUrl": item.get("projectUrl") or None,
            "technologies": list(item.get("technologies") or []),
        }
    )
    updated = users_repo.set_profile_field(user.id, "portfolio", portfolio) or {}
    return {"portfolio": portfolio, "user": updated}


def remove_portfolio_item(user: Identity, index: int) -> dict[str, Any]:
    portfolio = list(_freelancer_profile(user, "remove portfolio items").get("portfolio") or [])
    if index < 0 or index >= len(portfolio):
        raise not_found("Portfolio item not found")
    portfolio.pop(index)
    updated = users_repo.set_profile_field(user.id, "portfolio", portfolio) or {}
    return {"portfolio": portfolio, "user": updated}
