from __future__ import annotations

from typing import Any

from ...auth.tokens import Identity
from ...errors import forbidden, not_found, validation
from ...repositories import projects_repo, proposals_repo, users_repo
from ...shared.pagination import PageParams, paginate, sort_items
from ..identity.roles import ROLE_ADMIN, ROLE_CLIENT, ROLE_FREELANCER, has_any_role

STATUS_BUCKETS = ("pending", "accepted", "rejected", "withdrawn")


def _project_summary(project_id: str, project: dict[str, Any] | None) -> dict[str, Any] | str:
    if not project:
        return project_id
    return {
        "_id": project_id,
        "title": project.get("title"),
        "budget": project.get("budget"),
        "timeline": project.get("timeline"),
        "client": project.get("client"),
        "status": project.get("status"),
        "freelancer": project.get("freelancer"),
    }


def attach_summaries(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Replace project/freelancer ids with small summaries (one lookup per distinct id)."""
    project_cache: dict[str, dict[str, Any] | None] = {}
    for it in items:
        pid = str(it.get("project") or "")
        if pid and pid not in project_cache:
            project_cache[pid] = projects_repo.get_project_raw(pid)

    users = users_repo.get_users_by_ids(str(it.get("freelancer") or "") for it in items)

    out: list[dict[str, Any]] = []
    for it in items:
        norm = proposals_repo.normalize_proposal_for_api(it)
        if not norm:
            continue
        pid = str(it.get("project") or "")
        fid = str(it.get("freelancer") or "")
        norm["project"] = _project_summary(pid, project_cache.get(pid))
        norm["freelancer"] = users_repo.user_summary(users.get(fid), with_profile=True) or fid
        out.append(norm)
    return out


def scoped_proposals(user: Identity, *, project: str | None = None, status: str | None = None) -> list[dict[str, Any]]:
    """
    Raw proposals the caller may see.

    admin sees everything; a client sees proposals on projects they own
    (an explicit project filter must be theirs); anyone else sees only
    their own proposals.
    """
    project = str(project or "").strip() or None
    status = str(status or "").strip() or None

    if user.role == ROLE_ADMIN:
        items = proposals_repo.list_by_project_raw(project) if project else proposals_repo.list_all_raw()
    elif user.role == ROLE_CLIENT:
        if project:
            owned = projects_repo.get_project_raw(project)
            if not owned or str(owned.get("client")) != user.id:
                raise forbidden("Forbidden: not your project")
            items = proposals_repo.list_by_project_raw(project)
        else:
            items = []
            for p in projects_repo.list_projects_by_client(user.id):
                items.extend(proposals_repo.list_by_project_raw(str(p.get("projectId"))))
    else:
        items = proposals_repo.list_by_freelancer_raw(user.id)
        if project:
            items = [it for it in items if str(it.get("project")) == project]

    if status:
        items = [it for it in items if it.get("status") == status]
    return items


def list_proposals(
    user: Identity,
    *,
    params: PageParams,
    project: str | None = None,
    status: str | None = None,
    sort: str | None = None,
) -> tuple[list[dict[str, Any]], dict[str, int]]:
    items = sort_items(scoped_proposals(user, project=project, status=status), sort)
    window, pagination = paginate(items, params)
    return attach_summaries(window), pagination


def get_for_viewer(user: Identity, proposal_id: str) -> dict[str, Any]:
    proposal = proposals_repo.get_proposal_raw(proposal_id)
    if not proposal:
        raise not_found("Proposal not found")

    project = projects_repo.get_project_raw(str(proposal.get("project") or ""))
    if user.role != ROLE_ADMIN:
        is_owner = str(proposal.get("freelancer")) == user.id
        is_client = bool(project) and str(project.get("client")) == user.id
        if not is_owner and not is_client:
            raise forbidden("Forbidden")

    return attach_summaries([proposal])[0]


def mine_for_project(user: Identity, project: str | None) -> dict[str, Any] | None:
    if user.role != ROLE_FREELANCER:
        raise forbidden("Only freelancers can access this")
    pid = str(project or "").strip()
    if not pid:
        raise validation("Valid project id is required", [{"param": "project", "msg": "Project is required"}])
    return proposals_repo.normalize_proposal_for_api(proposals_repo.get_for_project_and_freelancer(pid, user.id))


def stats_for_my_projects(user: Identity) -> dict[str, Any]:
    """Per-project proposal counts by status for the caller's own projects."""
    if not has_any_role(user.role, (ROLE_CLIENT, ROLE_ADMIN)):
        raise forbidden("Forbidden")

    projects = projects_repo.list_projects_by_client(user.id)
    if not projects:
        return {"stats": [], "projects": []}

    stats: list[dict[str, Any]] = []
    for p in projects:
        pid = str(p.get("projectId"))
        rows = proposals_repo.list_by_project_raw(pid)
        if not rows:
            continue
        entry: dict[str, Any] = {"projectId": pid, "title": p.get("title") or "Untitled", "total": 0}
        entry.update({b: 0 for b in STATUS_BUCKETS})
        for r in rows:
            st = str(r.get("status") or "pending")
            entry[st] = int(entry.get(st) or 0) + 1
            entry["total"] += 1
        stats.append(entry)

    return {
        "stats": stats,
        "projects": [{"id": str(p.get("projectId")), "title": p.get("title")} for p in projects],
    }
