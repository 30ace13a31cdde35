from __future__ import annotations

from typing import Any

from ..db.dynamodb.table import get_main_table
from .items import now_iso, strip_keys

SETTINGS_KEY = {"pk": "SETTINGS#platform", "sk": "PROFILE"}


def default_platform_settings() -> dict[str, Any]:
    return {
        "platformName": "FreelanceFlow",
        "maintenanceMode": False,
        "allowRegistrations": True,
        "serviceFeePercent": 10,
        "minProjectBudget": 5,
        "maxProposalsPerProject": 100,
        "supportEmail": "support@freelanceflow.local",
        "updatedAt": None,
        "updatedBy": None,
    }


SETTINGS_FIELDS = frozenset(k for k in default_platform_settings() if k not in ("updatedAt", "updatedBy"))


def get_platform_settings() -> dict[str, Any]:
    """Stored settings layered over the defaults; nothing is written on read."""
    stored = get_main_table().get_item(key=SETTINGS_KEY) or {}
    out = default_platform_settings()
    out.update({k: v for k, v in strip_keys(stored).items() if k in out})
    return out


def update_platform_settings(updates: dict[str, Any], *, updated_by: str | None = None) -> dict[str, Any]:
    """Merge known keys into the stored record. Unknown keys are ignored."""
    current = get_platform_settings()
    for k, v in (updates or {}).items():
        if k in SETTINGS_FIELDS and v is not None:
            current[k] = v
    current["updatedAt"] = now_iso()
    current["updatedBy"] = updated_by

    get_main_table().put_item(item={**SETTINGS_KEY, "entityType": "PlatformSettings", **current})
    return current
