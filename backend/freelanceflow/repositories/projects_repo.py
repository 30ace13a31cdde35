from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Key

from ..db.dynamodb.table import get_main_table
from .items import new_id, now_iso, set_expression, strip_keys, type_pk

CATEGORIES = (
    "web-development",
    "mobile-development",
    "ui-ux-design",
    "graphic-design",
    "content-writing",
    "digital-marketing",
    "data-science",
    "devops",
    "blockchain",
    "ai-ml",
    "consulting",
    "other",
)

PROJECT_STATUSES = ("draft", "open", "in-progress", "completed", "cancelled", "dispute")

# Statuses that cannot carry an assigned freelancer.
UNASSIGNED_STATUSES = ("draft", "open")


def project_key(project_id: str) -> dict[str, str]:
    pid = str(project_id or "").strip()
    if not pid:
        raise ValueError("project_id is required")
    return {"pk": f"PROJECT#{pid}", "sk": "PROFILE"}


def client_pk(client_id: str) -> str:
    return f"CLIENT#{client_id}"


def budget_display(budget: dict[str, Any] | None) -> str | None:
    if not isinstance(budget, dict):
        return None
    if budget.get("type") == "fixed":
        return f"${_fmt_amount(budget.get('amount'))}"
    rate = budget.get("hourlyRate") if isinstance(budget.get("hourlyRate"), dict) else {}
    return f"${_fmt_amount(rate.get('min'))}-${_fmt_amount(rate.get('max'))}/hr"


def _fmt_amount(v: Any) -> str:
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def normalize_project_for_api(item: dict[str, Any] | None) -> dict[str, Any] | None:
    if not item:
        return None
    out = strip_keys(item)
    out["_id"] = item.get("projectId")
    out.pop("projectId", None)
    out["budgetDisplay"] = budget_display(item.get("budget"))
    return out


def get_project_raw(project_id: str) -> dict[str, Any] | None:
    pid = str(project_id or "").strip()
    if not pid:
        return None
    return get_main_table().get_item(key=project_key(pid))


def list_projects_raw() -> list[dict[str, Any]]:
    return get_main_table().query_all(
        index_name="GSI1",
        key_condition_expression=Key("gsi1pk").eq(type_pk("PROJECT")),
        scan_index_forward=False,
    )


def list_projects_by_client(client_id: str) -> list[dict[str, Any]]:
    cid = str(client_id or "").strip()
    if not cid:
        return []
    return get_main_table().query_all(
        index_name="GSI2",
        key_condition_expression=Key("gsi2pk").eq(client_pk(cid)),
        scan_index_forward=False,
    )


def create_project(*, client_id: str, data: dict[str, Any]) -> dict[str, Any]:
    project_id = new_id()
    now = now_iso()

    item: dict[str, Any] = {
        "status": "open",
        "priority": "medium",
        "requirements": [],
        "deliverables": [],
        "tags": [],
        "isRemote": True,
        "isUrgent": False,
        "featured": False,
        **{k: v for k, v in (data or {}).items() if v is not None},
        **project_key(project_id),
        "entityType": "Project",
        "projectId": project_id,
        "client": str(client_id),
        "freelancer": None,
        "invitedFreelancers": [],
        "proposalCount": 0,
        "viewCount": 0,
        "createdAt": now,
        "updatedAt": now,
        "gsi1pk": type_pk("PROJECT"),
        "gsi1sk": f"{now}#{project_id}",
        "gsi2pk": client_pk(str(client_id)),
        "gsi2sk": f"{now}#{project_id}",
    }

    get_main_table().put_item(item=item, condition_expression="attribute_not_exists(pk)")
    return normalize_project_for_api(item) or {}


def update_project(project_id: str, fields: dict[str, Any], *, clear_freelancer: bool = False) -> dict[str, Any] | None:
    """
    Apply a partial update; None values are ignored. Changing `client` also
    moves the item to the new owner's GSI2 partition.
    """
    updates = {k: v for k, v in (fields or {}).items() if v is not None}
    if clear_freelancer:
        updates["freelancer"] = None
    if "client" in updates:
        updates["client"] = str(updates["client"])
        updates["gsi2pk"] = client_pk(updates["client"])
    updates["updatedAt"] = now_iso()

    expr, names, values = set_expression(updates)
    item = get_main_table().update_item(
        key=project_key(project_id),
        update_expression=expr,
        expression_attribute_names=names,
        expression_attribute_values=values,
        condition_expression="attribute_exists(pk)",
        return_values="ALL_NEW",
    )
    return normalize_project_for_api(item)


def delete_project(project_id: str) -> None:
    get_main_table().delete_item(key=project_key(project_id))


def increment_proposal_count(project_id: str) -> None:
    get_main_table().update_item(
        key=project_key(project_id),
        update_expression="ADD proposalCount :one",
        expression_attribute_names=None,
        expression_attribute_values={":one": 1},
        condition_expression="attribute_exists(pk)",
        return_values="NONE",
    )


def assign_freelancer_tx_item(project_id: str, freelancer_id: str) -> dict[str, Any]:
    """Transaction entry marking the project in-progress and assigned to `freelancer_id`."""
    expr, names, values = set_expression(
        {"freelancer": str(freelancer_id), "status": "in-progress", "updatedAt": now_iso()}
    )
    return get_main_table().tx_update(
        key=project_key(project_id),
        update_expression=expr,
        expression_attribute_names=names,
        expression_attribute_values=values,
        condition_expression="attribute_exists(pk)",
    )


def reopen_if_assigned_to(project_id: str, freelancer_id: str) -> dict[str, Any] | None:
    """
    Clear the assignment and reopen the project, but only while it is still
    assigned to `freelancer_id`. Raises DdbConflict otherwise.
    """
    expr, names, values = set_expression({"freelancer": None, "status": "open", "updatedAt": now_iso()})
    names["#f"] = "freelancer"
    values[":fid"] = str(freelancer_id)
    item = get_main_table().update_item(
        key=project_key(project_id),
        update_expression=expr,
        expression_attribute_names=names,
        expression_attribute_values=values,
        condition_expression="#f = :fid",
        return_values="ALL_NEW",
    )
    return normalize_project_for_api(item)


def set_invited_freelancers(project_id: str, invites: list[dict[str, Any]]) -> dict[str, Any] | None:
    return update_project(project_id, {"invitedFreelancers": list(invites)})
