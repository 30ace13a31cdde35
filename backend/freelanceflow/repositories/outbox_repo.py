from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any

from boto3.dynamodb.conditions import Key

from ..db.dynamodb.errors import DdbConflict
from ..db.dynamodb.table import get_main_table
from .items import new_id, now_iso

PENDING_PK = "OUTBOX#PENDING"
PROCESSING_PK = "OUTBOX#PROCESSING"


def outbox_key(event_id: str) -> dict[str, str]:
    eid = str(event_id or "").strip()
    if not eid:
        raise ValueError("event_id is required")
    return {"pk": f"OUTBOX#{eid}", "sk": "PROFILE"}


def _public(item: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in item.items() if k not in ("pk", "sk")}


def enqueue_event(
    *,
    event_type: str,
    payload: dict[str, Any],
    room: str | None = None,
    dedupe_key: str | None = None,
) -> dict[str, Any]:
    """
    Store a notification for an async relay to deliver.

    When `dedupe_key` is provided it becomes the event id, so retried
    enqueues collapse onto the first one.
    """
    et = str(event_type or "").strip()
    if not et:
        raise ValueError("event_type is required")
    eid = str(dedupe_key or "").strip() or ("evt_" + new_id()[:18])

    now = now_iso()
    item: dict[str, Any] = {
        **outbox_key(eid),
        "entityType": "OutboxEvent",
        "eventId": eid,
        "eventType": et,
        "room": room,
        "status": "pending",
        "attempts": 0,
        "maxAttempts": 8,
        "nextAttemptAt": now,
        "createdAt": now,
        "updatedAt": now,
        "payload": payload if isinstance(payload, dict) else {},
        "gsi1pk": PENDING_PK,
        "gsi1sk": f"{now}#{eid}",
    }
    t = get_main_table()
    try:
        t.put_item(item=item, condition_expression="attribute_not_exists(pk)")
    except DdbConflict:
        existing = t.get_item(key=outbox_key(eid)) or {}
        return _public(existing)
    return _public(item)


def list_pending(*, limit: int = 50) -> list[dict[str, Any]]:
    pg = get_main_table().query_page(
        index_name="GSI1",
        key_condition_expression=Key("gsi1pk").eq(PENDING_PK),
        scan_index_forward=True,
        limit=max(1, min(200, int(limit or 50))),
    )
    return pg.items or []


def claim_event(*, event_id: str) -> dict[str, Any] | None:
    """Move an event from pending to processing; DdbConflict if someone else claimed it."""
    now = now_iso()
    return get_main_table().update_item(
        key=outbox_key(event_id),
        update_expression="SET #s = :s, lockedAt = :l, updatedAt = :u, gsi1pk = :gpk",
        expression_attribute_names={"#s": "status"},
        expression_attribute_values={
            ":s": "processing",
            ":l": now,
            ":u": now,
            ":gpk": PROCESSING_PK,
            ":pending": "pending",
        },
        condition_expression="#s = :pending",
        return_values="ALL_NEW",
    )


def mark_done(*, event_id: str) -> dict[str, Any] | None:
    return get_main_table().update_item(
        key=outbox_key(event_id),
        update_expression="SET #s = :s, updatedAt = :u REMOVE gsi1pk, gsi1sk",
        expression_attribute_names={"#s": "status"},
        expression_attribute_values={":s": "done", ":u": now_iso()},
        return_values="ALL_NEW",
    )


def mark_retry(*, event_id: str, error: str) -> dict[str, Any] | None:
    """Put a processing event back to pending with exponential backoff, or fail it for good."""
    t = get_main_table()
    raw = t.get_item(key=outbox_key(event_id)) or {}
    attempts = int(raw.get("attempts") or 0) + 1
    max_attempts = int(raw.get("maxAttempts") or 8)
    now = now_iso()

    if attempts >= max_attempts:
        return t.update_item(
            key=outbox_key(event_id),
            update_expression="SET #s = :s, attempts = :a, lastError = :e, updatedAt = :u REMOVE gsi1pk, gsi1sk",
            expression_attribute_names={"#s": "status"},
            expression_attribute_values={":s": "failed", ":a": attempts, ":e": str(error or "")[:800], ":u": now},
            return_values="ALL_NEW",
        )

    # capped at 5 minutes
    delay_s = min(300, int(2 ** min(10, attempts)))
    next_at = datetime.fromtimestamp(time.time() + delay_s, tz=timezone.utc).isoformat().replace("+00:00", "Z")
    return t.update_item(
        key=outbox_key(event_id),
        update_expression=(
            "SET #s = :s, attempts = :a, lastError = :e, nextAttemptAt = :n, "
            "updatedAt = :u, gsi1pk = :gpk, gsi1sk = :gsk"
        ),
        expression_attribute_names={"#s": "status"},
        expression_attribute_values={
            ":s": "pending",
            ":a": attempts,
            ":e": str(error or "")[:800],
            ":n": next_at,
            ":u": now,
            ":gpk": PENDING_PK,
            ":gsk": f"{next_at}#{event_id}",
        },
        return_values="ALL_NEW",
    )
