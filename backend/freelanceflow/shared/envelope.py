from __future__ import annotations

from typing import Any


def envelope(message: str, data: Any = None, *, pagination: dict[str, int] | None = None) -> dict[str, Any]:
    """Success body shared by every route: {message, data, pagination?}."""
    out: dict[str, Any] = {"message": message, "data": data if data is not None else {}}
    if pagination is not None:
        out["pagination"] = pagination
    return out
