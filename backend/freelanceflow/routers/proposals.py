from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, FiniteFloat

from ..auth.tokens import Identity
from ..modules.identity.access import current_user
from ..modules.proposals import listing, workflow
from ..shared.envelope import envelope
from ..shared.pagination import build_pagination

router = APIRouter(tags=["proposals"])


class Milestone(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    amount: FiniteFloat = Field(..., ge=0)
    dueDate: str | None = None


class Attachment(BaseModel):
    name: str = Field(..., min_length=1, max_length=300)
    url: str = Field(..., min_length=1, max_length=2000)
    size: int | None = Field(default=None, ge=0)


class Question(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=1000)
    answer: str | None = Field(default=None, max_length=5000)


class ProposalCreateRequest(BaseModel):
    # Presence and range checks for these live in the workflow so the
    # messages stay specific ("Cover letter is required", ...).
    project: str | None = None
    coverLetter: str | None = Field(default=None, max_length=10000)
    bidAmount: FiniteFloat | None = None
    timeline: str | None = Field(default=None, max_length=500)
    milestones: list[Milestone] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)
    questions: list[Question] = Field(default_factory=list)


class ProposalStatusRequest(BaseModel):
    status: str | None = None
    clientResponse: str | None = Field(default=None, max_length=5000)


def _dump(items: list[BaseModel]) -> list[dict[str, Any]]:
    return [i.model_dump(exclude_none=True) for i in items]


@router.post("", status_code=201)
def create_proposal(body: ProposalCreateRequest, user: Identity = Depends(current_user)):
    proposal = workflow.submit_proposal(
        user,
        project_id=str(body.project or ""),
        cover_letter=str(body.coverLetter or ""),
        bid_amount=body.bidAmount if body.bidAmount is not None else 0,
        timeline=str(body.timeline or ""),
        milestones=_dump(body.milestones),
        attachments=_dump(body.attachments),
        questions=_dump(body.questions),
    )
    return envelope("Proposal submitted successfully", {"proposal": proposal})


def _list_impl(
    user: Identity,
    project: str | None,
    status: str | None,
    page: str | None,
    limit: str | None,
    sort: str | None,
):
    params = build_pagination(page, limit)
    items, pagination = listing.list_proposals(user, params=params, project=project, status=status, sort=sort)
    return envelope("OK", {"proposals": items}, pagination=pagination)


@router.get("")
def list_proposals(
    project: str | None = None,
    status: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    sort: str | None = None,
    user: Identity = Depends(current_user),
):
    return _list_impl(user, project, status, page, limit, sort)


@router.get("/mine")
def list_my_proposals(
    project: str | None = None,
    status: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    sort: str | None = None,
    user: Identity = Depends(current_user),
):
    return _list_impl(user, project, status, page, limit, sort)


@router.get("/mine-one")
def my_proposal_for_project(project: str | None = None, user: Identity = Depends(current_user)):
    return envelope("OK", {"proposal": listing.mine_for_project(user, project)})


@router.get("/stats/my-projects")
def my_project_stats(user: Identity = Depends(current_user)):
    return envelope("OK", listing.stats_for_my_projects(user))


@router.get("/{proposal_id}")
def get_proposal(proposal_id: str, user: Identity = Depends(current_user)):
    return envelope("OK", {"proposal": listing.get_for_viewer(user, proposal_id)})


@router.patch("/{proposal_id}/status")
def update_proposal_status(proposal_id: str, body: ProposalStatusRequest, user: Identity = Depends(current_user)):
    proposal = workflow.set_status(user, proposal_id, str(body.status or ""), body.clientResponse)
    return envelope("Status updated", {"proposal": proposal})


@router.patch("/{proposal_id}/withdraw")
def withdraw_proposal(proposal_id: str, user: Identity = Depends(current_user)):
    return envelope("Proposal withdrawn", {"proposal": workflow.withdraw(user, proposal_id)})


@router.delete("/{proposal_id}")
def delete_proposal(proposal_id: str, user: Identity = Depends(current_user)):
    return envelope("Proposal deleted", {"id": workflow.delete(user, proposal_id)})
