from __future__ import annotations

import re
from typing import Any

from ...auth.tokens import Identity
from ...errors import conflict, forbidden, not_found, validation
from ...observability.logging import get_logger
from ...repositories import projects_repo, users_repo
from ...repositories.items import now_iso
from ...shared.pagination import PageParams, paginate, sort_items
from ..identity.roles import ROLE_ADMIN, ROLE_CLIENT, ROLE_FREELANCER, has_any_role
from ..notifications.notifier import emit_safely, user_room

log = get_logger("projects")

SEARCH_FIELDS = ("title", "description", "skills", "tags")


def split_skills(value: str | None) -> list[str]:
    """CSV or whitespace separated skills."""
    return [s for s in re.split(r"[,\s]+", str(value or "")) if s.strip()]


def matches_query(project: dict[str, Any], q: str) -> bool:
    needle = q.strip().lower()
    if not needle:
        return True
    for field in SEARCH_FIELDS:
        v = project.get(field)
        values = v if isinstance(v, list) else [v]
        if any(needle in str(x or "").lower() for x in values):
            return True
    return False


def _with_people(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    ids: set[str] = set()
    for it in items:
        for f in ("client", "freelancer"):
            if it.get(f):
                ids.add(str(it[f]))
    users = users_repo.get_users_by_ids(ids)

    out: list[dict[str, Any]] = []
    for it in items:
        norm = projects_repo.normalize_project_for_api(it)
        if not norm:
            continue
        for f in ("client", "freelancer"):
            uid = str(it.get(f) or "")
            if uid:
                norm[f] = users_repo.user_summary(users.get(uid), with_email=True) or uid
        out.append(norm)
    return out


def filter_projects(
    items: list[dict[str, Any]],
    user: Identity | None,
    *,
    q: str | None = None,
    category: str | None = None,
    skills: str | None = None,
    status: str | None = None,
    mine: str | None = None,
) -> list[dict[str, Any]]:
    """
    Visibility scope plus filters.

    Anonymous callers only ever see open projects. Signed-in callers get
    their own (mine=client) or assigned (mine=freelancer) projects, and with
    no filter at all fall back to the open browse list.
    """
    q = str(q or "").strip()
    category = str(category or "").strip()
    status = str(status or "").strip()
    wanted_skills = {s.lower() for s in split_skills(skills)}

    if user is None:
        status = "open"
    elif mine in ("client", "freelancer"):
        field = "client" if mine == "client" else "freelancer"
        items = [it for it in items if str(it.get(field) or "") == user.id]
    elif not q and not category and not wanted_skills and not status:
        status = "open"

    out: list[dict[str, Any]] = []
    for it in items:
        if status and it.get("status") != status:
            continue
        if category and it.get("category") != category:
            continue
        if wanted_skills and not wanted_skills & {str(s).lower() for s in (it.get("skills") or [])}:
            continue
        if q and not matches_query(it, q):
            continue
        out.append(it)
    return out


def list_projects(
    user: Identity | None,
    *,
    params: PageParams,
    sort: str | None = None,
    **filters: Any,
) -> tuple[list[dict[str, Any]], dict[str, int]]:
    if user is not None and filters.get("mine") == "client":
        source = projects_repo.list_projects_by_client(user.id)
    else:
        source = projects_repo.list_projects_raw()
    items = sort_items(filter_projects(source, user, **filters), sort)
    window, pagination = paginate(items, params)
    return _with_people(window), pagination


def can_view(user: Identity | None, project: dict[str, Any]) -> bool:
    if project.get("status") == "open":
        return True
    if user is None:
        return False
    if user.role == ROLE_ADMIN:
        return True
    return user.id in (str(project.get("client") or ""), str(project.get("freelancer") or ""))


def get_for_viewer(user: Identity | None, project_id: str) -> dict[str, Any]:
    project = projects_repo.get_project_raw(project_id)
    if not project:
        raise not_found("Project not found")
    if not can_view(user, project):
        raise forbidden("Forbidden")
    return _with_people([project])[0]


def _load_owned(user: Identity, project_id: str, message: str = "Forbidden") -> dict[str, Any]:
    project = projects_repo.get_project_raw(project_id)
    if not project:
        raise not_found("Project not found")
    if user.role != ROLE_ADMIN and str(project.get("client")) != user.id:
        raise forbidden(message)
    return project


def create_project(user: Identity, data: dict[str, Any]) -> dict[str, Any]:
    if not has_any_role(user.role, (ROLE_CLIENT, ROLE_ADMIN)):
        raise forbidden("Forbidden")
    payload = dict(data or {})
    requested_client = payload.pop("client", None)
    client_id = str(requested_client) if user.role == ROLE_ADMIN and requested_client else user.id

    project = projects_repo.create_project(client_id=client_id, data=payload)
    log.info("project_created", project_id=project.get("_id"), client_id=client_id)
    return project


def update_project(user: Identity, project_id: str, data: dict[str, Any]) -> dict[str, Any]:
    existing = _load_owned(user, project_id)
    updates = dict(data or {})
    if user.role != ROLE_ADMIN:
        updates.pop("client", None)
    if not updates:
        return get_for_viewer(user, project_id)

    clear = updates.get("status") in projects_repo.UNASSIGNED_STATUSES and bool(existing.get("freelancer"))
    projects_repo.update_project(project_id, updates, clear_freelancer=clear)
    log.info("project_updated", project_id=project_id, fields=sorted(updates), cleared_freelancer=clear)
    return get_for_viewer(user, project_id)


def delete_project(user: Identity, project_id: str) -> str:
    _load_owned(user, project_id)
    projects_repo.delete_project(project_id)
    log.info("project_deleted", project_id=project_id)
    return project_id


def invite_freelancer(user: Identity, project_id: str, freelancer_id: str, note: str | None = None) -> dict[str, Any]:
    fid = str(freelancer_id or "").strip()
    if not fid:
        raise validation("Invalid freelancer id", [{"param": "freelancerId", "msg": "Freelancer id is required"}])

    project = _load_owned(user, project_id, "Forbidden: not your project")
    if project.get("status") != "open":
        raise validation("You can only invite freelancers to open projects")

    freelancer = users_repo.get_user_raw(fid)
    if not freelancer:
        raise not_found("Freelancer not found")
    if freelancer.get("role") != ROLE_FREELANCER:
        raise validation("Selected user is not a freelancer")

    invites = list(project.get("invitedFreelancers") or [])
    if any(str(i.get("user")) == fid for i in invites if isinstance(i, dict)):
        raise conflict("Freelancer already invited to this project")

    invite = {"user": fid, "note": str(note).strip() if note else "", "invitedAt": now_iso()}
    invites.append(invite)
    projects_repo.set_invited_freelancers(project_id, invites)

    emit_safely(
        user_room(fid),
        "project:invited",
        {"projectId": project_id, "projectTitle": project.get("title"), "note": invite["note"]},
    )
    log.info("freelancer_invited", project_id=project_id, freelancer_id=fid)
    return {"projectId": project_id, "invited": invite}


def categories_with_counts() -> list[dict[str, Any]]:
    counts = {c: 0 for c in projects_repo.CATEGORIES}
    for it in projects_repo.list_projects_raw():
        c = it.get("category")
        if c in counts:
            counts[c] += 1
    return [{"category": c, "count": n} for c, n in counts.items()]
