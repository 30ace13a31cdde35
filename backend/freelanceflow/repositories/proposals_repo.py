from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Key

from ..db.dynamodb.table import get_main_table
from .items import new_id, now_iso, set_expression, strip_keys, type_pk
from .projects_repo import project_key

PROPOSAL_STATUSES = ("pending", "accepted", "rejected", "withdrawn")


def proposal_key(proposal_id: str) -> dict[str, str]:
    pid = str(proposal_id or "").strip()
    if not pid:
        raise ValueError("proposal_id is required")
    return {"pk": f"PROPOSAL#{pid}", "sk": "PROFILE"}


def applicant_guard_key(project_id: str, freelancer_id: str) -> dict[str, str]:
    # One guard item per (project, freelancer); its conditional put enforces uniqueness.
    return {"pk": project_key(project_id)["pk"], "sk": f"APPLICANT#{freelancer_id}"}


def freelancer_pk(freelancer_id: str) -> str:
    return f"FREELANCER#{freelancer_id}"


def normalize_proposal_for_api(item: dict[str, Any] | None) -> dict[str, Any] | None:
    if not item:
        return None
    out = strip_keys(item)
    out["_id"] = item.get("proposalId")
    out.pop("proposalId", None)
    return out


def create_proposal(
    *,
    project_id: str,
    freelancer_id: str,
    cover_letter: str,
    bid_amount: float,
    timeline: str,
    milestones: list[dict[str, Any]] | None = None,
    attachments: list[dict[str, Any]] | None = None,
    questions: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """
    Write a pending proposal plus its applicant guard item atomically.

    Raises DdbConflict when the freelancer already applied to the project.
    """
    proposal_id = new_id()
    now = now_iso()

    item: dict[str, Any] = {
        **proposal_key(proposal_id),
        "entityType": "Proposal",
        "proposalId": proposal_id,
        "project": str(project_id),
        "freelancer": str(freelancer_id),
        "coverLetter": cover_letter,
        "bidAmount": bid_amount,
        "timeline": timeline,
        "milestones": list(milestones or []),
        "attachments": list(attachments or []),
        "questions": list(questions or []),
        "status": "pending",
        "clientResponse": None,
        "respondedAt": None,
        "createdAt": now,
        "updatedAt": now,
        "gsi1pk": type_pk("PROPOSAL"),
        "gsi1sk": f"{now}#{proposal_id}",
        "gsi2pk": freelancer_pk(str(freelancer_id)),
        "gsi2sk": f"{now}#{proposal_id}",
    }

    guard = {
        **applicant_guard_key(project_id, freelancer_id),
        "entityType": "ProposalApplicant",
        "proposalId": proposal_id,
        "project": str(project_id),
        "freelancer": str(freelancer_id),
        "createdAt": now,
    }

    t = get_main_table()
    t.transact_write(
        puts=[
            t.tx_put(item=item, condition_expression="attribute_not_exists(pk)"),
            t.tx_put(item=guard, condition_expression="attribute_not_exists(pk)"),
        ]
    )
    return normalize_proposal_for_api(item) or {}


def get_proposal_raw(proposal_id: str) -> dict[str, Any] | None:
    pid = str(proposal_id or "").strip()
    if not pid:
        return None
    return get_main_table().get_item(key=proposal_key(pid))


def get_for_project_and_freelancer(project_id: str, freelancer_id: str) -> dict[str, Any] | None:
    guard = get_main_table().get_item(key=applicant_guard_key(project_id, freelancer_id))
    if not guard:
        return None
    return get_proposal_raw(str(guard.get("proposalId") or ""))


def list_all_raw() -> list[dict[str, Any]]:
    return get_main_table().query_all(
        index_name="GSI1",
        key_condition_expression=Key("gsi1pk").eq(type_pk("PROPOSAL")),
        scan_index_forward=False,
    )


def list_by_freelancer_raw(freelancer_id: str) -> list[dict[str, Any]]:
    return get_main_table().query_all(
        index_name="GSI2",
        key_condition_expression=Key("gsi2pk").eq(freelancer_pk(str(freelancer_id))),
        scan_index_forward=False,
    )


def list_by_project_raw(project_id: str) -> list[dict[str, Any]]:
    """Resolve a project's proposals through its applicant guard items."""
    t = get_main_table()
    guards = t.query_all(
        key_condition_expression=Key("pk").eq(project_key(project_id)["pk"]) & Key("sk").begins_with("APPLICANT#"),
        scan_index_forward=True,
    )
    out: list[dict[str, Any]] = []
    for g in guards:
        it = get_proposal_raw(str(g.get("proposalId") or ""))
        if it:
            out.append(it)
    return out


def _status_update_parts(fields: dict[str, Any], expected_status: str | None):
    expr, names, values = set_expression({**fields, "updatedAt": now_iso()})
    cond = "attribute_exists(pk)"
    if expected_status:
        names["#st"] = "status"
        values[":expected"] = expected_status
        cond = "#st = :expected"
    return expr, names, values, cond


def update_status(proposal_id: str, fields: dict[str, Any], *, expected_status: str | None = None) -> dict[str, Any] | None:
    """
    Write status fields, guarded on the status the caller last read so two
    concurrent transitions cannot both apply. Raises DdbConflict on mismatch.
    """
    expr, names, values, cond = _status_update_parts(fields, expected_status)
    return get_main_table().update_item(
        key=proposal_key(proposal_id),
        update_expression=expr,
        expression_attribute_names=names,
        expression_attribute_values=values,
        condition_expression=cond,
        return_values="ALL_NEW",
    )


def status_tx_item(proposal_id: str, fields: dict[str, Any], *, expected_status: str | None = None) -> dict[str, Any]:
    expr, names, values, cond = _status_update_parts(fields, expected_status)
    return get_main_table().tx_update(
        key=proposal_key(proposal_id),
        update_expression=expr,
        expression_attribute_names=names,
        expression_attribute_values=values,
        condition_expression=cond,
    )


def delete_proposal(proposal: dict[str, Any]) -> None:
    """Hard delete the proposal and its applicant guard item together."""
    pid = str(proposal.get("proposalId") or proposal.get("_id") or "")
    t = get_main_table()
    t.transact_write(
        deletes=[
            t.tx_delete(key=proposal_key(pid)),
            t.tx_delete(key=applicant_guard_key(str(proposal.get("project")), str(proposal.get("freelancer")))),
        ]
    )
