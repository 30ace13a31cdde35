from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from ..auth.tokens import Identity
from ..errors import validation
from ..modules.admin import aggregation, moderation
from ..modules.identity.access import current_user, require_role
from ..modules.identity.roles import ROLE_ADMIN
from ..shared.envelope import envelope
from ..shared.pagination import build_pagination

router = APIRouter(
    tags=["admin"],
    dependencies=[Depends(require_role(ROLE_ADMIN, message="Admin access required"))],
)


def _parse_bool(value: str | None) -> bool | None:
    if value is None or str(value).strip() == "":
        return None
    v = str(value).strip().lower()
    if v in ("true", "1", "yes"):
        return True
    if v in ("false", "0", "no"):
        return False
    raise validation("Invalid isActive", [{"param": "isActive", "msg": "isActive must be true or false"}])


def _required(body: dict[str, Any] | None, field: str) -> Any:
    if not isinstance(body, dict) or body.get(field) is None:
        raise validation(f"{field} is required", [{"param": field, "msg": f"{field} is required"}])
    return body[field]


@router.get("/overview")
def overview():
    return envelope("OK", aggregation.overview())


@router.get("/users")
def list_users(
    role: str | None = None,
    q: str | None = None,
    isActive: str | None = None,
    page: str | None = None,
    limit: str | None = None,
):
    items, pagination = moderation.list_users(
        params=build_pagination(page, limit),
        role=role,
        q=q,
        is_active=_parse_bool(isActive),
    )
    return envelope("OK", {"users": items}, pagination=pagination)


@router.patch("/users/{user_id}/role")
def set_user_role(user_id: str, body: dict[str, Any] | None = Body(default=None), admin: Identity = Depends(current_user)):
    user = moderation.set_user_role(admin, user_id, str(_required(body, "role")))
    return envelope("User role updated", {"user": user})


@router.patch("/users/{user_id}/status")
def set_user_status(user_id: str, body: dict[str, Any] | None = Body(default=None), admin: Identity = Depends(current_user)):
    raw = _required(body, "isActive")
    is_active = raw if isinstance(raw, bool) else _parse_bool(str(raw))
    user = moderation.set_user_status(admin, user_id, bool(is_active))
    return envelope("User status updated", {"user": user})


@router.get("/projects")
def list_projects(
    status: str | None = None,
    q: str | None = None,
    page: str | None = None,
    limit: str | None = None,
):
    items, pagination = moderation.list_projects(params=build_pagination(page, limit), status=status, q=q)
    return envelope("OK", {"projects": items}, pagination=pagination)


@router.patch("/projects/{project_id}/status")
def set_project_status(project_id: str, body: dict[str, Any] | None = Body(default=None), admin: Identity = Depends(current_user)):
    project = moderation.set_project_status(admin, project_id, str(_required(body, "status")))
    return envelope("Project status updated", {"project": project})


@router.get("/finance/summary")
def finance_summary():
    return envelope("OK", aggregation.finance_summary())


@router.get("/finance/invoices")
def list_invoices(status: str | None = None, page: str | None = None, limit: str | None = None):
    items, pagination = moderation.list_invoices(params=build_pagination(page, limit), status=status)
    return envelope("OK", {"invoices": items}, pagination=pagination)


@router.patch("/finance/invoices/{payment_id}/status")
def set_invoice_status(payment_id: str, body: dict[str, Any] | None = Body(default=None), admin: Identity = Depends(current_user)):
    invoice = moderation.set_invoice_status(admin, payment_id, str(_required(body, "status")))
    return envelope("Invoice status updated", {"invoice": invoice})


@router.get("/finance/payouts")
def list_payouts(status: str | None = None, page: str | None = None, limit: str | None = None):
    items, pagination = moderation.list_payouts(params=build_pagination(page, limit), status=status)
    return envelope("OK", {"payouts": items}, pagination=pagination)


@router.patch("/finance/payouts/{payout_id}/status")
def set_payout_status(payout_id: str, body: dict[str, Any] | None = Body(default=None), admin: Identity = Depends(current_user)):
    payout = moderation.set_payout_status(admin, payout_id, str(_required(body, "status")))
    return envelope("Payout status updated", {"payout": payout})


@router.get("/settings")
def get_settings():
    return envelope("OK", {"settings": moderation.get_settings()})


@router.patch("/settings")
def update_settings(body: dict[str, Any] | None = Body(default=None), admin: Identity = Depends(current_user)):
    return envelope("Settings updated", {"settings": moderation.update_settings(admin, body or {})})


@router.get("/health")
def system_health():
    return envelope("OK", moderation.system_health())


@router.get("/audit")
def list_audit_entries(day: str | None = None):
    return envelope("OK", {"entries": moderation.list_audit_entries(day)})
