from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field, FiniteFloat, field_validator, model_validator

from ..auth.tokens import Identity
from ..modules.identity.access import current_user, optional_user
from ..modules.projects import reviews, service
from ..shared.envelope import envelope
from ..shared.pagination import build_pagination

router = APIRouter(tags=["projects"])

Category = Literal[
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
]
Duration = Literal["less-than-1-month", "1-3-months", "3-6-months", "more-than-6-months"]


class HourlyRate(BaseModel):
    min: FiniteFloat
    max: FiniteFloat


class Budget(BaseModel):
    type: Literal["fixed", "hourly"]
    amount: FiniteFloat | None = None
    hourlyRate: HourlyRate | None = None

    @model_validator(mode="after")
    def _check_shape(self):
        if self.type == "fixed":
            if self.amount is None or self.amount < 5:
                raise ValueError("Fixed budget must be at least $5")
            self.hourlyRate = None
        else:
            if self.hourlyRate is None or self.hourlyRate.min < 5:
                raise ValueError("Minimum hourly rate must be at least $5")
            if self.hourlyRate.max <= self.hourlyRate.min:
                raise ValueError("Maximum hourly rate must be greater than minimum")
            self.amount = None
        return self


class Timeline(BaseModel):
    duration: Duration
    startDate: str | None = None
    endDate: str | None = None


class ProjectFields(BaseModel):
    title: str | None = Field(default=None, min_length=10, max_length=100)
    description: str | None = Field(default=None, min_length=50, max_length=5000)
    category: Category | None = None
    subcategory: str | None = Field(default=None, max_length=100)
    skills: list[str] | None = None
    budget: Budget | None = None
    timeline: Timeline | None = None
    experienceLevel: Literal["entry", "intermediate", "expert"] | None = None
    projectSize: Literal["small", "medium", "large"] | None = None
    status: Literal["draft", "open", "in-progress", "completed", "cancelled", "dispute"] | None = None
    priority: Literal["low", "medium", "high", "urgent"] | None = None
    requirements: list[str] | None = None
    deliverables: list[str] | None = None
    tags: list[str] | None = None
    location: str | None = Field(default=None, max_length=100)
    isRemote: bool | None = None
    isUrgent: bool | None = None
    featured: bool | None = None
    applicationDeadline: datetime | None = None
    client: str | None = None

    @field_validator("title", "description", "location", mode="before")
    @classmethod
    def _strip(cls, v: Any):
        return v.strip() if isinstance(v, str) else v

    @field_validator("skills")
    @classmethod
    def _skills(cls, v: list[str] | None):
        if v is None:
            return v
        cleaned = [s.strip() for s in v if isinstance(s, str) and s.strip()]
        if not cleaned:
            raise ValueError("At least one skill is required")
        return cleaned

    @field_validator("applicationDeadline")
    @classmethod
    def _future(cls, v: datetime | None):
        if v is None:
            return v
        aware = v if v.tzinfo else v.replace(tzinfo=timezone.utc)
        if aware <= datetime.now(timezone.utc):
            raise ValueError("Application deadline must be in the future")
        return aware

    def to_document(self) -> dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        if self.applicationDeadline is not None:
            data["applicationDeadline"] = self.applicationDeadline.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
        return data


class ProjectCreateRequest(ProjectFields):
    title: str = Field(..., min_length=10, max_length=100)
    description: str = Field(..., min_length=50, max_length=5000)
    category: Category
    skills: list[str]
    budget: Budget
    timeline: Timeline
    experienceLevel: Literal["entry", "intermediate", "expert"]
    projectSize: Literal["small", "medium", "large"]


class InviteRequest(BaseModel):
    freelancerId: str | None = None
    note: str | None = Field(default=None, max_length=1000)


class ReviewRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    headline: str | None = Field(default=None, max_length=120)
    comment: str | None = Field(default=None, max_length=2000)


def _browse(
    request: Request,
    q: str | None,
    category: str | None,
    skills: str | None,
    status: str | None,
    mine: str | None,
    sort: str | None,
    page: str | None,
    limit: str | None,
):
    params = build_pagination(page, limit)
    items, pagination = service.list_projects(
        optional_user(request),
        params=params,
        sort=sort,
        q=q,
        category=category,
        skills=skills,
        status=status,
        mine=mine,
    )
    return envelope("OK", {"projects": items}, pagination=pagination)


@router.get("")
def list_projects(
    request: Request,
    q: str | None = None,
    category: str | None = None,
    skills: str | None = None,
    status: str | None = None,
    mine: str | None = None,
    sort: str | None = None,
    page: str | None = None,
    limit: str | None = None,
):
    return _browse(request, q, category, skills, status, mine, sort, page, limit)


@router.get("/browse")
def browse_projects(
    request: Request,
    q: str | None = None,
    category: str | None = None,
    skills: str | None = None,
    status: str | None = None,
    mine: str | None = None,
    sort: str | None = None,
    page: str | None = None,
    limit: str | None = None,
):
    return _browse(request, q, category, skills, status, mine, sort, page, limit)


@router.get("/categories")
def list_categories():
    return envelope("OK", {"categories": service.categories_with_counts()})


@router.get("/{project_id}")
def get_project(project_id: str, request: Request):
    return envelope("OK", {"project": service.get_for_viewer(optional_user(request), project_id)})


@router.post("", status_code=201)
def create_project(body: ProjectCreateRequest, user: Identity = Depends(current_user)):
    return envelope("Project created", {"project": service.create_project(user, body.to_document())})


@router.put("/{project_id}")
def update_project(project_id: str, body: ProjectFields, user: Identity = Depends(current_user)):
    return envelope("Project updated", {"project": service.update_project(user, project_id, body.to_document())})


@router.delete("/{project_id}")
def delete_project(project_id: str, user: Identity = Depends(current_user)):
    return envelope("Project deleted", {"id": service.delete_project(user, project_id)})


@router.post("/{project_id}/invite", status_code=201)
def invite_freelancer(project_id: str, body: InviteRequest, user: Identity = Depends(current_user)):
    return envelope("Invite sent", service.invite_freelancer(user, project_id, str(body.freelancerId or ""), body.note))


@router.post("/{project_id}/reviews", status_code=201)
def create_review(project_id: str, body: ReviewRequest, user: Identity = Depends(current_user)):
    review = reviews.create_review(user, project_id, rating=body.rating, headline=body.headline, comment=body.comment)
    return envelope("Review submitted", {"review": review})


