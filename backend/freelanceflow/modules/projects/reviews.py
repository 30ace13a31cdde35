from __future__ import annotations

from typing import Any

from ...auth.tokens import Identity
from ...db.dynamodb.errors import DdbConflict
from ...errors import conflict, forbidden, not_found, validation
from ...observability.logging import get_logger
from ...repositories import projects_repo, reviews_repo, users_repo

log = get_logger("reviews")


def reviewee_for(user: Identity, project: dict[str, Any]) -> str:
    """The other participant of the project, from the reviewer's side."""
    client_id = str(project.get("client") or "")
    freelancer_id = str(project.get("freelancer") or "")
    if user.id == client_id and freelancer_id:
        return freelancer_id
    if user.id == freelancer_id and client_id:
        return client_id
    raise forbidden("Only project participants can leave a review")


def create_review(
    user: Identity,
    project_id: str,
    *,
    rating: int,
    headline: str | None = None,
    comment: str | None = None,
) -> dict[str, Any]:
    project = projects_repo.get_project_raw(project_id)
    if not project:
        raise not_found("Project not found")
    if project.get("status") != "completed":
        raise validation("Reviews can only be left on completed projects")

    reviewee_id = reviewee_for(user, project)
    try:
        review = reviews_repo.create_review(
            project_id=project_id,
            reviewer_id=user.id,
            reviewee_id=reviewee_id,
            rating=rating,
            headline=(headline or "").strip() or None,
            comment=(comment or "").strip() or None,
        )
    except DdbConflict:
        raise conflict(
            "Review already submitted",
            errors=[{"param": "project", "msg": "You have already reviewed this user for this project"}],
        )

    try:
        users_repo.apply_rating(reviewee_id, rating)
    except Exception as e:
        log.warning("rating_update_failed", reviewee_id=reviewee_id, error=str(e))

    log.info("review_created", project_id=project_id, reviewer_id=user.id, reviewee_id=reviewee_id)
    return review


def list_for_user(user_id: str) -> list[dict[str, Any]]:
    if not users_repo.get_user_raw(user_id):
        raise not_found("User not found")
    return reviews_repo.list_reviews_for_user(user_id)
