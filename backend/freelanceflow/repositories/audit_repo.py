from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Key

from ..db.dynamodb.table import get_main_table
from .items import new_id, now_iso, strip_keys


def audit_pk(day: str) -> str:
    return f"AUDIT#{day}"


def put_entry(
    *,
    actor_id: str,
    action: str,
    target_type: str,
    target_id: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    now = now_iso()
    entry_id = new_id()
    item: dict[str, Any] = {
        "pk": audit_pk(now[:10]),
        "sk": f"{now}#{entry_id}",
        "entityType": "AuditEntry",
        "entryId": entry_id,
        "actor": str(actor_id),
        "action": str(action),
        "targetType": str(target_type),
        "targetId": str(target_id),
        "details": details if isinstance(details, dict) else {},
        "createdAt": now,
    }
    get_main_table().put_item(item=item)
    return strip_keys(item)


def list_entries_for_day(day: str) -> list[dict[str, Any]]:
    """`day` is a UTC date in yyyy-mm-dd form; newest first."""
    items = get_main_table().query_all(
        key_condition_expression=Key("pk").eq(audit_pk(day)),
        scan_index_forward=False,
    )
    return [strip_keys(it) for it in items]
