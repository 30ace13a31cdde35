from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

KEY_ATTRS = ("pk", "sk", "gsi1pk", "gsi1sk", "gsi2pk", "gsi2sk", "entityType")


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def type_pk(t: str) -> str:
    return f"TYPE#{t}"


def new_id() -> str:
    return uuid.uuid4().hex


def strip_keys(item: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in item.items() if k not in KEY_ATTRS}


def set_expression(fields: dict[str, Any], *, remove: list[str] | None = None) -> tuple[str, dict[str, str], dict[str, Any]]:
    """
    Build `SET #k1 = :v1, ... [REMOVE #r1, ...]` with placeholder names for every
    attribute (several of ours are DynamoDB reserved words, e.g. status, timeline).
    """
    names: dict[str, str] = {}
    values: dict[str, Any] = {}
    parts: list[str] = []
    for i, (k, v) in enumerate(fields.items(), start=1):
        names[f"#k{i}"] = k
        values[f":v{i}"] = v
        parts.append(f"#k{i} = :v{i}")

    expr = "SET " + ", ".join(parts) if parts else ""
    if remove:
        rparts: list[str] = []
        for j, k in enumerate(remove, start=1):
            names[f"#r{j}"] = k
            rparts.append(f"#r{j}")
        expr = (expr + " " if expr else "") + "REMOVE " + ", ".join(rparts)
    return expr, names, values
