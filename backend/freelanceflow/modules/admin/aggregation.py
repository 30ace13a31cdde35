from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable

from ...repositories import projects_repo, proposals_repo, users_repo
from ..finance.ledger import FinanceLedger, get_finance_ledger, sums_by_status
from ..identity.roles import ROLES

TREND_DAYS = 7


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _day_of(ts: Any) -> str | None:
    s = str(ts or "").strip()
    if len(s) < 10:
        return None
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.date().isoformat()


def daily_trend(items: Iterable[dict[str, Any]], *, today: date, days: int = TREND_DAYS) -> list[dict[str, Any]]:
    """
    Creation counts per UTC calendar day for the last `days` days, today
    included, oldest first. Days without items are present with count 0.
    """
    window = [(today - timedelta(days=offset)).isoformat() for offset in range(days - 1, -1, -1)]
    counts: Counter[str] = Counter()
    wanted = set(window)
    for it in items:
        d = _day_of(it.get("createdAt"))
        if d in wanted:
            counts[d] += 1
    return [{"date": d, "count": counts.get(d, 0)} for d in window]


def count_by(items: Iterable[dict[str, Any]], field: str, keys: Iterable[str] = ()) -> dict[str, int]:
    out: dict[str, int] = {k: 0 for k in keys}
    for it in items:
        k = str(it.get(field) or "unknown")
        out[k] = out.get(k, 0) + 1
    return out


def overview(*, ledger: FinanceLedger | None = None, today: date | None = None) -> dict[str, Any]:
    ledger = ledger or get_finance_ledger()
    users = users_repo.list_users_raw()
    projects = projects_repo.list_projects_raw()
    proposals = proposals_repo.list_all_raw()
    payments = ledger.list_payments()
    payouts = ledger.list_payouts()

    return {
        "users": {
            "total": len(users),
            "active": sum(1 for u in users if u.get("isActive") is not False),
            "byRole": count_by(users, "role", ROLES),
        },
        "projects": {
            "total": len(projects),
            "byStatus": count_by(projects, "status", projects_repo.PROJECT_STATUSES),
        },
        "proposals": {
            "total": len(proposals),
            "byStatus": count_by(proposals, "status", proposals_repo.PROPOSAL_STATUSES),
        },
        "finance": {
            "enabled": ledger.enabled,
            "payments": sums_by_status(payments),
            "payouts": sums_by_status(payouts),
        },
        "trend": {"projectsLast7Days": daily_trend(projects, today=today or utc_today())},
    }


def finance_summary(*, ledger: FinanceLedger | None = None) -> dict[str, Any]:
    ledger = ledger or get_finance_ledger()
    payments = ledger.list_payments()
    payouts = ledger.list_payouts()
    gross = sum(float(p.get("amount") or 0) for p in payments if p.get("status") == "succeeded")
    refunded = sum(float(p.get("amount") or 0) for p in payments if p.get("status") == "refunded")
    paid_out = sum(float(p.get("amount") or 0) for p in payouts if p.get("status") == "paid")
    return {
        "enabled": ledger.enabled,
        "payments": sums_by_status(payments),
        "payouts": sums_by_status(payouts),
        "totals": {
            "gross": round(gross, 2),
            "refunded": round(refunded, 2),
            "paidOut": round(paid_out, 2),
            "net": round(gross - refunded - paid_out, 2),
        },
    }
