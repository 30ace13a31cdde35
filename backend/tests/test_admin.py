from __future__ import annotations

from datetime import date

import pytest

from freelanceflow.errors import ApiError, ErrorKind
from freelanceflow.modules.admin import aggregation, moderation
from freelanceflow.modules.finance.ledger import NullFinanceLedger, sums_by_status
from freelanceflow.repositories import audit_repo, finance_repo, platform_settings_repo, projects_repo, users_repo
from freelanceflow.shared.pagination import build_pagination


def test_daily_trend_is_seven_ascending_days_ending_today():
    today = date(2024, 3, 10)
    items = [
        {"createdAt": "2024-03-10T08:00:00Z"},
        {"createdAt": "2024-03-10T23:59:59.999999Z"},
        {"createdAt": "2024-03-04T00:00:00+00:00"},
        {"createdAt": "2024-03-03T23:59:59Z"},
        {"createdAt": "not a date"},
        {},
    ]

    trend = aggregation.daily_trend(items, today=today)

    assert [t["date"] for t in trend] == [f"2024-03-{d:02d}" for d in range(4, 11)]
    assert trend[0]["count"] == 1
    assert trend[-1]["count"] == 2
    assert sum(t["count"] for t in trend) == 3


def test_daily_trend_with_no_items_is_zero_filled():
    trend = aggregation.daily_trend([], today=date(2024, 1, 2))
    assert len(trend) == 7
    assert trend[0]["date"] == "2023-12-27"
    assert all(t["count"] == 0 for t in trend)


def test_overview_counts(make_user, make_project):
    client = make_user("client")
    make_user("freelancer")
    make_project(client)
    make_project(client, status="completed")
    finance_repo.create_payment(project_id="p", payer_id=client.id, payee_id="f", amount=120.5, payment_type="escrow", status="succeeded")

    out = aggregation.overview()

    assert out["users"]["total"] == 2
    assert out["users"]["active"] == 2
    assert out["users"]["byRole"] == {"client": 1, "freelancer": 1, "admin": 0}
    assert out["projects"]["byStatus"]["open"] == 1
    assert out["projects"]["byStatus"]["completed"] == 1
    assert out["proposals"]["total"] == 0
    assert out["finance"]["payments"] == {"succeeded": {"count": 1, "amount": 120.5}}
    trend = out["trend"]["projectsLast7Days"]
    assert len(trend) == 7
    assert trend[-1]["count"] == 2


def test_finance_summary_with_null_ledger_is_empty():
    out = aggregation.finance_summary(ledger=NullFinanceLedger())
    assert out["enabled"] is False
    assert out["totals"] == {"gross": 0, "refunded": 0, "paidOut": 0, "net": 0}


def test_finance_summary_totals(make_user):
    client = make_user("client")
    finance_repo.create_payment(project_id="p1", payer_id=client.id, payee_id="f", amount=300, payment_type="escrow", status="succeeded")
    finance_repo.create_payment(project_id="p2", payer_id=client.id, payee_id="f", amount=50, payment_type="refund", status="refunded")
    payout = finance_repo.create_payout(payee_id="f", amount=200)
    finance_repo.set_payout_status(payout["_id"], "paid")

    out = aggregation.finance_summary()

    assert out["totals"] == {"gross": 300, "refunded": 50, "paidOut": 200, "net": 50}


def test_sums_by_status_rounds_amounts():
    rows = [{"status": "paid", "amount": 10.25}, {"status": "paid", "amount": "5"}, {"status": "failed", "amount": None}]
    assert sums_by_status(rows) == {"paid": {"count": 2, "amount": 15.25}, "failed": {"count": 1, "amount": 0}}


def test_user_moderation_is_audited(make_user, table):
    admin = make_user("admin")
    target = make_user("freelancer")

    updated = moderation.set_user_role(admin, target.id, "CLIENT")
    assert updated["role"] == "client"

    moderation.set_user_status(admin, target.id, False)
    assert users_repo.get_user_raw(target.id)["isActive"] is False

    actions = sorted(e["action"] for e in table.entities("AuditEntry"))
    assert actions == ["user.role.update", "user.status.update"]
    assert {e["actor"] for e in table.entities("AuditEntry")} == {admin.id}

    today = table.entities("AuditEntry")[0]["createdAt"][:10]
    assert len(moderation.list_audit_entries(today)) == 2


def test_user_moderation_rejects_bad_input(make_user):
    admin = make_user("admin")
    target = make_user("freelancer")

    with pytest.raises(ApiError) as ei:
        moderation.set_user_role(admin, target.id, "superuser")
    assert ei.value.kind == ErrorKind.VALIDATION

    with pytest.raises(ApiError) as ei:
        moderation.set_user_status(admin, "missing", True)
    assert ei.value.kind == ErrorKind.NOT_FOUND

    with pytest.raises(ApiError) as ei:
        moderation.list_audit_entries("yesterday")
    assert ei.value.kind == ErrorKind.VALIDATION


def test_list_users_filters(make_user):
    admin = make_user("admin")
    f = make_user("freelancer", name="Grace Hopper")
    make_user("client")
    moderation.set_user_status(admin, f.id, False)

    items, pagination = moderation.list_users(params=build_pagination(1, 10), role="freelancer", q="grace")
    assert [u["_id"] for u in items] == [f.id]
    assert pagination["total"] == 1

    active, _ = moderation.list_users(params=build_pagination(1, 10), is_active=True)
    assert f.id not in {u["_id"] for u in active}


def test_admin_project_status_clears_freelancer_when_reopened(make_user, make_project):
    admin = make_user("admin")
    client = make_user("client")
    freelancer = make_user("freelancer")
    project = make_project(client, status="in-progress")
    projects_repo.update_project(project["_id"], {"freelancer": freelancer.id})

    with pytest.raises(ApiError):
        moderation.set_project_status(admin, project["_id"], "archived")

    out = moderation.set_project_status(admin, project["_id"], "open")

    assert out["status"] == "open"
    assert projects_repo.get_project_raw(project["_id"])["freelancer"] is None


def test_admin_project_listing_has_canonical_people(make_user, make_project):
    client = make_user("client", name="Ada")
    make_project(client)

    items, _ = moderation.list_projects(params=build_pagination(1, 10))

    assert items[0]["client"]["name"] == "Ada"
    assert items[0]["freelancer"] is None


def test_invoice_and_payout_status(make_user):
    admin = make_user("admin")
    payment = finance_repo.create_payment(project_id="p", payer_id="c", payee_id="f", amount=10, payment_type="milestone")
    payout = finance_repo.create_payout(payee_id="f", amount=10)

    assert moderation.set_invoice_status(admin, payment["_id"], "succeeded")["status"] == "succeeded"
    assert moderation.set_payout_status(admin, payout["_id"], "processing")["status"] == "processing"

    items, _ = moderation.list_invoices(params=build_pagination(1, 10), status="succeeded")
    assert [i["_id"] for i in items] == [payment["_id"]]

    with pytest.raises(ApiError) as ei:
        moderation.set_invoice_status(admin, payment["_id"], "lost")
    assert ei.value.kind == ErrorKind.VALIDATION

    with pytest.raises(ApiError) as ei:
        moderation.set_payout_status(admin, "x", "paid", ledger=NullFinanceLedger())
    assert ei.value.kind == ErrorKind.NOT_FOUND


def test_platform_settings_defaults_are_pure():
    a = platform_settings_repo.default_platform_settings()
    a["platformName"] = "changed"
    assert platform_settings_repo.default_platform_settings()["platformName"] == "FreelanceFlow"


def test_platform_settings_persist_known_keys_only(make_user, table):
    admin = make_user("admin")
    assert moderation.get_settings()["updatedAt"] is None

    saved = moderation.update_settings(admin, {"serviceFeePercent": 12, "bogus": True})

    assert saved["serviceFeePercent"] == 12
    assert saved["updatedBy"] == admin.id
    assert "bogus" not in saved
    stored = table.get_item(key=platform_settings_repo.SETTINGS_KEY)
    assert stored["serviceFeePercent"] == 12
    assert "bogus" not in stored
    assert moderation.get_settings()["serviceFeePercent"] == 12


def test_system_health_reports_storage_and_backends():
    out = moderation.system_health()
    assert out["ok"] is True
    assert out["storage"]["status"] == "ACTIVE"
    assert out["environment"] == "test"
    assert set(out["backends"]) == {"notifications", "finance", "audit"}


def test_audit_entries_for_day_are_newest_first(table):
    audit_repo.put_entry(actor_id="a", action="one", target_type="t", target_id="1")
    audit_repo.put_entry(actor_id="a", action="two", target_type="t", target_id="2")
    day = table.entities("AuditEntry")[0]["createdAt"][:10]

    entries = audit_repo.list_entries_for_day(day)

    assert [e["action"] for e in entries] == ["two", "one"]
