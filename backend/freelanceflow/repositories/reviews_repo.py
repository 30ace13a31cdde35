from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Key

from ..db.dynamodb.table import get_main_table
from .items import new_id, now_iso, strip_keys
from .projects_repo import project_key


def review_key(project_id: str, reviewer_id: str, reviewee_id: str) -> dict[str, str]:
    return {"pk": project_key(project_id)["pk"], "sk": f"REVIEW#{reviewer_id}#{reviewee_id}"}


def reviewee_pk(user_id: str) -> str:
    return f"REVIEWEE#{user_id}"


def normalize_review_for_api(item: dict[str, Any] | None) -> dict[str, Any] | None:
    if not item:
        return None
    out = strip_keys(item)
    out["_id"] = item.get("reviewId")
    out.pop("reviewId", None)
    return out


def create_review(
    *,
    project_id: str,
    reviewer_id: str,
    reviewee_id: str,
    rating: int,
    headline: str | None = None,
    comment: str | None = None,
) -> dict[str, Any]:
    """Raises DdbConflict when this reviewer already reviewed this reviewee on the project."""
    review_id = new_id()
    now = now_iso()
    item: dict[str, Any] = {
        **review_key(project_id, reviewer_id, reviewee_id),
        "entityType": "Review",
        "reviewId": review_id,
        "project": str(project_id),
        "reviewer": str(reviewer_id),
        "reviewee": str(reviewee_id),
        "rating": int(rating),
        "headline": headline,
        "comment": comment,
        "createdAt": now,
        "updatedAt": now,
        "gsi2pk": reviewee_pk(str(reviewee_id)),
        "gsi2sk": f"{now}#{review_id}",
    }
    get_main_table().put_item(item=item, condition_expression="attribute_not_exists(pk)")
    return normalize_review_for_api(item) or {}


def list_reviews_for_user(user_id: str) -> list[dict[str, Any]]:
    items = get_main_table().query_all(
        index_name="GSI2",
        key_condition_expression=Key("gsi2pk").eq(reviewee_pk(str(user_id))),
        scan_index_forward=False,
    )
    return [r for r in (normalize_review_for_api(it) for it in items) if r]
