from __future__ import annotations

import math
from typing import Any

from ...auth.tokens import Identity
from ...db.dynamodb.errors import DdbConflict
from ...db.dynamodb.table import get_main_table
from ...errors import ApiError, conflict, forbidden, not_found, validation
from ...observability.logging import get_logger
from ...repositories import projects_repo, proposals_repo
from ...repositories.items import now_iso
from ..identity.roles import ROLE_ADMIN, ROLE_CLIENT, ROLE_FREELANCER, has_any_role
from ..notifications.notifier import emit_safely, user_room

log = get_logger("proposal_workflow")

# Single authority for proposal status changes. Re-applying accepted/rejected
# refreshes the response. Withdrawal is reachable from every state; nothing
# leaves withdrawn, and a rejected proposal is never accepted again.
TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"accepted", "rejected", "withdrawn"}),
    "accepted": frozenset({"accepted", "rejected", "withdrawn"}),
    "rejected": frozenset({"rejected", "withdrawn"}),
    "withdrawn": frozenset({"withdrawn"}),
}

CLIENT_DECISIONS = ("accepted", "rejected")


def can_transition(current: str | None, new: str) -> bool:
    return new in TRANSITIONS.get(str(current or "pending"), frozenset())


def assert_transition(current: str | None, new: str) -> None:
    if not can_transition(current, new):
        raise conflict(
            f"Cannot change proposal status from {current} to {new}",
            errors=[{"param": "status", "msg": f"Transition {current} -> {new} is not allowed"}],
        )


def _valid_bid(value: Any) -> bool:
    try:
        bid = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(bid) and bid >= 1


def submit_proposal(
    user: Identity,
    *,
    project_id: str,
    cover_letter: str,
    bid_amount: float,
    timeline: str,
    milestones: list[dict[str, Any]] | None = None,
    attachments: list[dict[str, Any]] | None = None,
    questions: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    if user.role != ROLE_FREELANCER:
        raise forbidden("Only freelancers can submit proposals")

    cover = str(cover_letter or "").strip()
    tl = str(timeline or "").strip()
    if not str(project_id or "").strip():
        raise validation("Valid project id is required", [{"param": "project", "msg": "Project is required"}])
    if not cover:
        raise validation("Cover letter is required", [{"param": "coverLetter", "msg": "Cover letter is required"}])
    if not _valid_bid(bid_amount):
        raise validation("Bid amount must be at least 1", [{"param": "bidAmount", "msg": "Bid amount must be at least 1"}])
    if not tl:
        raise validation("Timeline is required", [{"param": "timeline", "msg": "Timeline is required"}])

    # Any project status accepts submissions.
    project = projects_repo.get_project_raw(project_id)
    if not project:
        raise not_found("Project not found")

    try:
        proposal = proposals_repo.create_proposal(
            project_id=project_id,
            freelancer_id=user.id,
            cover_letter=cover,
            bid_amount=bid_amount,
            timeline=tl,
            milestones=milestones,
            attachments=attachments,
            questions=questions,
        )
    except DdbConflict:
        raise conflict(
            "Duplicate proposal",
            errors=[{"param": "project", "msg": "You have already applied to this project"}],
        )

    try:
        projects_repo.increment_proposal_count(project_id)
    except Exception as e:
        log.warning("proposal_count_increment_failed", project_id=project_id, error=str(e))

    log.info("proposal_submitted", proposal_id=proposal.get("_id"), project_id=project_id, freelancer_id=user.id)
    return proposal


def _load_proposal(proposal_id: str) -> dict[str, Any]:
    proposal = proposals_repo.get_proposal_raw(proposal_id)
    if not proposal:
        raise not_found("Proposal not found")
    return proposal


def _concurrent_update() -> ApiError:
    return conflict("Proposal was updated by another request; reload and try again")


def set_status(
    user: Identity,
    proposal_id: str,
    status: str,
    client_response: str | None = None,
) -> dict[str, Any]:
    """
    Client decision on a proposal.

    accepted: the proposal and the project assignment (freelancer, in-progress)
    commit in one transaction. Later accepts overwrite earlier assignments.

    rejected after accepted: the project is reopened only while it is still
    assigned to this proposal's freelancer, via a conditional update.
    """
    if not has_any_role(user.role, (ROLE_CLIENT, ROLE_ADMIN)):
        raise forbidden("Only clients or admins can update status")
    if status not in CLIENT_DECISIONS:
        raise validation("Status must be accepted or rejected", [{"param": "status", "msg": "Invalid status"}])

    proposal = _load_proposal(proposal_id)
    project_id = str(proposal.get("project") or "")
    project = projects_repo.get_project_raw(project_id)

    if not user.is_admin:
        if not project or str(project.get("client")) != user.id:
            raise forbidden("Forbidden: not your project")

    prev_status = str(proposal.get("status") or "pending")
    assert_transition(prev_status, status)

    fields: dict[str, Any] = {"status": status, "respondedAt": now_iso()}
    response_text = str(client_response).strip() if client_response else ""
    if response_text:
        fields["clientResponse"] = response_text

    freelancer_id = str(proposal.get("freelancer") or "")
    reverted = False
    try:
        if status == "accepted" and project:
            t = get_main_table()
            t.transact_write(
                updates=[
                    proposals_repo.status_tx_item(proposal_id, fields, expected_status=prev_status),
                    projects_repo.assign_freelancer_tx_item(project_id, freelancer_id),
                ]
            )
        else:
            proposals_repo.update_status(proposal_id, fields, expected_status=prev_status)
    except DdbConflict:
        raise _concurrent_update()

    if status == "rejected" and prev_status == "accepted" and project:
        current = projects_repo.get_project_raw(project_id)
        if current and str(current.get("freelancer") or "") == freelancer_id:
            try:
                projects_repo.reopen_if_assigned_to(project_id, freelancer_id)
                reverted = True
            except DdbConflict:
                # Reassigned between the read and the write; leave the newer assignment alone.
                reverted = False

    updated = _load_proposal(proposal_id)
    project_title = (project or {}).get("title")
    emit_safely(
        user_room(freelancer_id),
        "proposal:status-updated",
        {
            "proposalId": proposal_id,
            "status": updated.get("status"),
            "clientResponse": updated.get("clientResponse") or None,
            "projectId": project_id,
            "projectTitle": project_title,
            "revertedToOpen": reverted,
        },
    )
    if project and project.get("client"):
        emit_safely(
            user_room(str(project.get("client"))),
            "proposal:status-updated:client",
            {
                "proposalId": proposal_id,
                "status": updated.get("status"),
                "clientResponse": updated.get("clientResponse") or None,
                "projectId": project_id,
                "projectTitle": project_title,
                "revertedToOpen": reverted,
            },
        )

    log.info(
        "proposal_status_updated",
        proposal_id=proposal_id,
        project_id=project_id,
        previous_status=prev_status,
        status=status,
        reverted_to_open=reverted,
    )

    out = proposals_repo.normalize_proposal_for_api(updated) or {}
    latest_project = projects_repo.get_project_raw(project_id) if project else None
    if latest_project:
        out["project"] = {
            "_id": project_id,
            "client": latest_project.get("client"),
            "title": latest_project.get("title"),
            "status": latest_project.get("status"),
            "freelancer": latest_project.get("freelancer"),
        }
    return out


def withdraw(user: Identity, proposal_id: str) -> dict[str, Any]:
    """Freelancer pulls a proposal. The project is never touched, even after acceptance."""
    if not has_any_role(user.role, (ROLE_FREELANCER, ROLE_ADMIN)):
        raise forbidden("Only freelancers or admins can withdraw")

    proposal = _load_proposal(proposal_id)
    if not user.is_admin and str(proposal.get("freelancer")) != user.id:
        raise forbidden("Forbidden: not your proposal")

    prev_status = str(proposal.get("status") or "pending")
    assert_transition(prev_status, "withdrawn")

    try:
        updated = proposals_repo.update_status(proposal_id, {"status": "withdrawn"}, expected_status=prev_status)
    except DdbConflict:
        raise _concurrent_update()

    log.info("proposal_withdrawn", proposal_id=proposal_id, previous_status=prev_status)
    return proposals_repo.normalize_proposal_for_api(updated) or {}


def delete(user: Identity, proposal_id: str) -> str:
    proposal = _load_proposal(proposal_id)
    if not user.is_admin and str(proposal.get("freelancer")) != user.id:
        raise forbidden("Forbidden")

    proposals_repo.delete_proposal(proposal)
    log.info("proposal_deleted", proposal_id=proposal_id)
    return proposal_id
