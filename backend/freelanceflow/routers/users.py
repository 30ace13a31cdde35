from __future__ import annotations

import re
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, FiniteFloat, field_validator

from ..auth.tokens import Identity
from ..modules.identity.access import current_user
from ..modules.projects import reviews
from ..modules.users import service
from ..shared.envelope import envelope
from ..shared.pagination import build_pagination

router = APIRouter(tags=["users"])

_PHONE_RE = re.compile(r"^[+]?[\d\s().-]{6,}$")
_URL_RE = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)


class Language(BaseModel):
    language: str
    proficiency: Literal["basic", "intermediate", "advanced", "native"] | None = None


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str | None = Field(default=None, max_length=100)
    bio: str | None = Field(default=None, max_length=1000)
    hourlyRate: FiniteFloat | None = Field(default=None, ge=1)
    availability: Literal["available", "busy", "unavailable"] | None = None
    company: str | None = Field(default=None, max_length=100)
    website: str | None = None
    companySize: Literal["1-10", "11-50", "51-200", "201-500", "500+"] | None = None
    industry: str | None = Field(default=None, max_length=100)
    location: str | None = Field(default=None, max_length=100)
    timezone: str | None = Field(default=None, max_length=64)
    phone: str | None = None
    languages: list[Language] | None = None

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: str | None):
        if v is None:
            return v
        v = v.strip()
        if not _PHONE_RE.match(v):
            raise ValueError("Please provide a valid phone number")
        return v

    @field_validator("website")
    @classmethod
    def _website(cls, v: str | None):
        if v is None:
            return v
        v = v.strip()
        if not _URL_RE.match(v):
            raise ValueError("Please provide a valid website URL")
        return v


class UserUpdateRequest(BaseModel):
    # Unknown keys (password, role, earnings, ...) are dropped here and again
    # by the repository.
    model_config = ConfigDict(extra="ignore")

    name: str | None = Field(default=None, min_length=2, max_length=50)
    avatar: str | None = None
    profile: ProfileUpdate | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class AvatarRequest(BaseModel):
    avatar: str | None = None


class SkillRequest(BaseModel):
    skill: str | None = None


class PortfolioItemRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    imageUrl: str | None = None
    projectUrl: str | None = None
    technologies: list[str] = Field(default_factory=list)


@router.get("")
def list_users(
    role: str | None = None,
    q: str | None = None,
    skills: str | None = None,
    minRate: str | None = None,
    maxRate: str | None = None,
    location: str | None = None,
    availability: str | None = None,
    sort: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    _user: Identity = Depends(current_user),
):
    params = build_pagination(page, limit, default_limit=12)
    items, pagination = service.list_users(
        params=params,
        sort=sort,
        role=role,
        q=q,
        skills=skills,
        min_rate=minRate,
        max_rate=maxRate,
        location=location,
        availability=availability,
    )
    return envelope("OK", {"users": items}, pagination=pagination)


@router.get("/profile")
def get_profile(user: Identity = Depends(current_user)):
    return envelope("OK", {"user": service.get_user(user.id)})


@router.put("/profile")
def update_profile(body: UserUpdateRequest, user: Identity = Depends(current_user)):
    updates = body.model_dump(exclude_none=True)
    return envelope("Profile updated successfully", {"user": service.update_own_profile(user, updates)})


@router.put("/avatar")
def update_avatar(body: AvatarRequest, user: Identity = Depends(current_user)):
    return envelope("Avatar updated successfully", {"user": service.update_avatar(user, body.avatar)})


@router.post("/skills")
def add_skill(body: SkillRequest, user: Identity = Depends(current_user)):
    return envelope("Skill added successfully", service.add_skill(user, str(body.skill or "")))


@router.delete("/skills/{skill}")
def remove_skill(skill: str, user: Identity = Depends(current_user)):
    return envelope("Skill removed successfully", service.remove_skill(user, skill))


@router.post("/portfolio", status_code=201)
def add_portfolio_item(body: PortfolioItemRequest, user: Identity = Depends(current_user)):
    return envelope("Portfolio item added", service.add_portfolio_item(user, body.model_dump()))


@router.delete("/portfolio/{index}")
def remove_portfolio_item(index: int, user: Identity = Depends(current_user)):
    return envelope("Portfolio item removed", service.remove_portfolio_item(user, index))


@router.get("/public/{user_id}")
def get_public_profile(user_id: str):
    return envelope("OK", {"user": service.get_user(user_id, public=True)})


@router.get("/{user_id}/reviews")
def list_user_reviews(user_id: str, _user: Identity = Depends(current_user)):
    return envelope("OK", {"reviews": reviews.list_for_user(user_id)})


@router.get("/{user_id}")
def get_user(user_id: str, _user: Identity = Depends(current_user)):
    return envelope("OK", {"user": service.get_user(user_id)})
