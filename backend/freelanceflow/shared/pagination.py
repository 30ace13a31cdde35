from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable

MAX_LIMIT = 100


@dataclass(frozen=True, slots=True)
class PageParams:
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def build_pagination(page: Any = None, limit: Any = None, *, default_limit: int = 20) -> PageParams:
    """Clamp page to >= 1 and limit to 1..MAX_LIMIT; junk input falls back to defaults."""
    p = max(1, _as_int(page) or 1)
    lim = min(MAX_LIMIT, max(1, _as_int(limit) or default_limit))
    return PageParams(page=p, limit=lim)


def get_path(item: dict[str, Any], path: str) -> Any:
    cur: Any = item
    for part in path.split("."):
        if not isinstance(cur, dict):
            return None
        cur = cur.get(part)
    return cur


def sort_items(items: Iterable[dict[str, Any]], sort: str | None, *, default: str = "-createdAt") -> list[dict[str, Any]]:
    """
    Sort documents by a Mongo-style sort string: "field" ascending, "-field" descending.
    Dotted paths address nested attributes. Missing values always sort last.
    """
    sort_key = str(sort or "").strip() or default
    descending = sort_key.startswith("-")
    field = sort_key.lstrip("-+") or default.lstrip("-")

    present: list[dict[str, Any]] = []
    missing: list[dict[str, Any]] = []
    for it in items:
        (missing if get_path(it, field) is None else present).append(it)

    def _key(it: dict[str, Any]):
        v = get_path(it, field)
        # Mixed types compare by their string form rather than raising.
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return (0, v, "")
        return (1, 0, str(v))

    present.sort(key=_key, reverse=descending)
    return present + missing


def paginate(items: list[dict[str, Any]], params: PageParams) -> tuple[list[dict[str, Any]], dict[str, int]]:
    total = len(items)
    window = items[params.skip : params.skip + params.limit]
    return window, {
        "page": params.page,
        "limit": params.limit,
        "total": total,
        "totalPages": math.ceil(total / params.limit) if params.limit else 0,
    }
