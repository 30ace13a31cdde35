from __future__ import annotations

import time
from datetime import date, datetime, timezone
from typing import Any

from ...auth.tokens import Identity
from ...db.dynamodb.table import get_main_table
from ...errors import not_found, validation
from ...observability.logging import get_logger
from ...repositories import audit_repo, platform_settings_repo, projects_repo, users_repo
from ...repositories.finance_repo import PAYMENT_STATUSES, PAYOUT_STATUSES
from ...settings import settings
from ...shared.pagination import PageParams, paginate, sort_items
from ..finance.audit import record_safely
from ..finance.ledger import FinanceLedger, get_finance_ledger
from ..identity.roles import ROLES, normalize_role
from ..projects.service import matches_query

log = get_logger("admin")

_STARTED_AT = time.time()


def list_users(
    *,
    params: PageParams,
    role: str | None = None,
    q: str | None = None,
    is_active: bool | None = None,
) -> tuple[list[dict[str, Any]], dict[str, int]]:
    needle = str(q or "").strip().lower()
    items = []
    for it in users_repo.list_users_raw():
        if role and it.get("role") != role:
            continue
        if is_active is not None and (it.get("isActive") is not False) != is_active:
            continue
        if needle and needle not in f"{it.get('name') or ''} {it.get('email') or ''}".lower():
            continue
        items.append(it)
    window, pagination = paginate(sort_items(items, "-createdAt"), params)
    return [u for u in (users_repo.normalize_user_for_api(it) for it in window) if u], pagination


def set_user_role(admin: Identity, user_id: str, role: str) -> dict[str, Any]:
    canon = normalize_role(role)
    if not canon:
        raise validation("Invalid role", [{"param": "role", "msg": f"Role must be one of: {', '.join(ROLES)}"}])
    existing = users_repo.get_user_raw(user_id)
    if not existing:
        raise not_found("User not found")

    updated = users_repo.set_role(user_id, canon) or {}
    record_safely(
        actor_id=admin.id,
        action="user.role.update",
        target_type="user",
        target_id=user_id,
        details={"from": existing.get("role"), "to": canon},
    )
    log.info("admin_user_role_updated", user_id=user_id, role=canon)
    return updated


def set_user_status(admin: Identity, user_id: str, is_active: bool) -> dict[str, Any]:
    existing = users_repo.get_user_raw(user_id)
    if not existing:
        raise not_found("User not found")

    updated = users_repo.set_active(user_id, is_active) or {}
    record_safely(
        actor_id=admin.id,
        action="user.status.update",
        target_type="user",
        target_id=user_id,
        details={"isActive": bool(is_active)},
    )
    log.info("admin_user_status_updated", user_id=user_id, is_active=bool(is_active))
    return updated


def list_projects(
    *,
    params: PageParams,
    status: str | None = None,
    q: str | None = None,
) -> tuple[list[dict[str, Any]], dict[str, int]]:
    items = [
        it
        for it in projects_repo.list_projects_raw()
        if (not status or it.get("status") == status) and (not q or matches_query(it, q))
    ]
    window, pagination = paginate(sort_items(items, "-createdAt"), params)

    people = users_repo.get_users_by_ids(
        str(it.get(f)) for it in window for f in ("client", "freelancer") if it.get(f)
    )
    out: list[dict[str, Any]] = []
    for it in window:
        norm = projects_repo.normalize_project_for_api(it) or {}
        for f in ("client", "freelancer"):
            uid = str(it.get(f) or "")
            norm[f] = users_repo.user_summary(people.get(uid), with_email=True) if uid else None
        out.append(norm)
    return out, pagination


def set_project_status(admin: Identity, project_id: str, status: str) -> dict[str, Any]:
    if status not in projects_repo.PROJECT_STATUSES:
        raise validation(
            "Invalid status",
            [{"param": "status", "msg": f"Status must be one of: {', '.join(projects_repo.PROJECT_STATUSES)}"}],
        )
    existing = projects_repo.get_project_raw(project_id)
    if not existing:
        raise not_found("Project not found")

    clear = status in projects_repo.UNASSIGNED_STATUSES and bool(existing.get("freelancer"))
    updated = projects_repo.update_project(project_id, {"status": status}, clear_freelancer=clear) or {}
    record_safely(
        actor_id=admin.id,
        action="project.status.update",
        target_type="project",
        target_id=project_id,
        details={"from": existing.get("status"), "to": status, "clearedFreelancer": clear},
    )
    log.info("admin_project_status_updated", project_id=project_id, status=status)
    return updated


def _status_page(rows: list[dict[str, Any]], params: PageParams, status: str | None):
    if status:
        rows = [r for r in rows if r.get("status") == status]
    return paginate(sort_items(rows, "-createdAt"), params)


def list_invoices(*, params: PageParams, status: str | None = None, ledger: FinanceLedger | None = None):
    return _status_page((ledger or get_finance_ledger()).list_payments(), params, status)


def list_payouts(*, params: PageParams, status: str | None = None, ledger: FinanceLedger | None = None):
    return _status_page((ledger or get_finance_ledger()).list_payouts(), params, status)


def set_invoice_status(admin: Identity, payment_id: str, status: str, *, ledger: FinanceLedger | None = None) -> dict[str, Any]:
    if status not in PAYMENT_STATUSES:
        raise validation("Invalid status", [{"param": "status", "msg": f"Status must be one of: {', '.join(PAYMENT_STATUSES)}"}])
    updated = (ledger or get_finance_ledger()).set_payment_status(payment_id, status)
    if not updated:
        raise not_found("Invoice not found")
    record_safely(actor_id=admin.id, action="payment.status.update", target_type="payment", target_id=payment_id, details={"to": status})
    return updated


def set_payout_status(admin: Identity, payout_id: str, status: str, *, ledger: FinanceLedger | None = None) -> dict[str, Any]:
    if status not in PAYOUT_STATUSES:
        raise validation("Invalid status", [{"param": "status", "msg": f"Status must be one of: {', '.join(PAYOUT_STATUSES)}"}])
    updated = (ledger or get_finance_ledger()).set_payout_status(payout_id, status)
    if not updated:
        raise not_found("Payout not found")
    record_safely(actor_id=admin.id, action="payout.status.update", target_type="payout", target_id=payout_id, details={"to": status})
    return updated


def get_settings() -> dict[str, Any]:
    return platform_settings_repo.get_platform_settings()


def update_settings(admin: Identity, updates: dict[str, Any]) -> dict[str, Any]:
    known = {k: v for k, v in (updates or {}).items() if k in platform_settings_repo.SETTINGS_FIELDS}
    saved = platform_settings_repo.update_platform_settings(known, updated_by=admin.id)
    record_safely(
        actor_id=admin.id,
        action="settings.update",
        target_type="settings",
        target_id="platform",
        details={"keys": sorted(known)},
    )
    return saved


def system_health() -> dict[str, Any]:
    storage: dict[str, Any] = {"ok": False, "table": settings.ddb_table_name}
    try:
        desc = get_main_table().describe()
        storage["ok"] = True
        storage["status"] = desc.get("TableStatus")
    except Exception as e:
        storage["error"] = type(e).__name__
        log.warning("admin_health_storage_unreachable", error=str(e))

    return {
        "ok": bool(storage["ok"]),
        "environment": settings.normalized_environment,
        "uptimeSeconds": int(time.time() - _STARTED_AT),
        "storage": storage,
        "backends": {
            "notifications": settings.notifications_backend,
            "finance": settings.finance_backend,
            "audit": settings.audit_backend,
        },
    }


def list_audit_entries(day: str | None = None) -> list[dict[str, Any]]:
    d = str(day or "").strip() or datetime.now(timezone.utc).date().isoformat()
    try:
        date.fromisoformat(d)
    except ValueError:
        raise validation("Invalid day", [{"param": "day", "msg": "day must be a yyyy-mm-dd date"}])
    return audit_repo.list_entries_for_day(d)
