from __future__ import annotations

import pytest

from freelanceflow.errors import ApiError, ErrorKind
from freelanceflow.modules.users import service
from freelanceflow.repositories import users_repo
from freelanceflow.shared.pagination import build_pagination


def test_best_sort_ranks_rating_then_earnings_then_newest():
    items = [
        {"_id": "a", "createdAt": "2024-01-01", "ratings": {"average": 4.5}, "earnings": {"total": 10}},
        {"_id": "b", "createdAt": "2024-01-02", "ratings": {"average": 4.9}, "earnings": {"total": 0}},
        {"_id": "c", "createdAt": "2024-01-03", "ratings": {"average": 4.5}, "earnings": {"total": 500}},
        {"_id": "d", "createdAt": "2024-01-04", "ratings": {"average": 4.5}, "earnings": {"total": 10}},
    ]
    assert [u["_id"] for u in service.sort_users(items, "best")] == ["b", "c", "d", "a"]
    assert [u["_id"] for u in service.sort_users(items, "createdAt")] == ["a", "b", "c", "d"]


def test_filter_users():
    items = [
        {"role": "freelancer", "name": "Ann", "profile": {"skills": ["go"], "hourlyRate": 40, "location": "Berlin", "availability": "available"}},
        {"role": "freelancer", "name": "Bo", "profile": {"skills": ["rust"], "hourlyRate": 90, "location": "Paris", "availability": "busy"}},
        {"role": "client", "name": "Cy", "profile": {}},
    ]
    assert [u["name"] for u in service.filter_users(items, role="freelancer", min_rate="50")] == ["Bo"]
    assert [u["name"] for u in service.filter_users(items, skills="go,python")] == ["Ann"]
    assert [u["name"] for u in service.filter_users(items, location="ber")] == ["Ann"]
    assert [u["name"] for u in service.filter_users(items, availability="busy")] == ["Bo"]
    assert [u["name"] for u in service.filter_users(items, q="cy")] == ["Cy"]
    assert service.filter_users(items, max_rate="10") == []


def test_list_users_defaults_to_twelve_per_page(make_user):
    for _ in range(14):
        make_user("freelancer")
    items, pagination = service.list_users(params=build_pagination(None, None, default_limit=12), role="freelancer")
    assert len(items) == 12
    assert pagination["totalPages"] == 2


def test_profile_update_merges_and_protects_fields(make_user):
    user = make_user("freelancer", profile={"bio": "Old bio", "hourlyRate": 30})

    out = service.update_own_profile(
        user,
        {"name": "New Name", "role": "admin", "email": "x@y.z", "ratings": {"average": 5}, "profile": {"bio": "New bio"}},
    )

    assert out["name"] == "New Name"
    assert out["role"] == "freelancer"
    assert out["email"] == user.email
    assert out["profile"]["bio"] == "New bio"
    assert out["profile"]["hourlyRate"] == 30
    assert out["ratings"]["count"] == 0


def test_public_profile_hides_private_fields(make_user):
    user = make_user("freelancer")
    public = service.get_user(user.id, public=True)
    assert "email" not in public
    assert "earnings" not in public
    assert "profileCompleteness" in public

    with pytest.raises(ApiError) as ei:
        service.get_user("missing")
    assert ei.value.kind == ErrorKind.NOT_FOUND


def test_skills_are_freelancer_only_and_case_insensitive(make_user):
    freelancer = make_user("freelancer")
    client = make_user("client")

    assert service.add_skill(freelancer, " Python ")["skills"] == ["Python"]
    with pytest.raises(ApiError) as ei:
        service.add_skill(freelancer, "python")
    assert ei.value.message == "Skill already exists"

    with pytest.raises(ApiError) as ei:
        service.add_skill(client, "python")
    assert ei.value.kind == ErrorKind.FORBIDDEN

    assert service.remove_skill(freelancer, "PYTHON")["skills"] == []
    with pytest.raises(ApiError):
        service.remove_skill(freelancer, "python")


def test_portfolio_and_avatar(make_user):
    freelancer = make_user("freelancer")

    out = service.add_portfolio_item(freelancer, {"title": "Shop", "technologies": ["vue"]})
    assert out["portfolio"][0]["title"] == "Shop"

    with pytest.raises(ApiError) as ei:
        service.remove_portfolio_item(freelancer, 3)
    assert ei.value.kind == ErrorKind.NOT_FOUND
    with pytest.raises(ApiError) as ei:
        service.remove_portfolio_item(freelancer, -1)
    assert ei.value.kind == ErrorKind.NOT_FOUND
    assert service.remove_portfolio_item(freelancer, 0)["portfolio"] == []

    with pytest.raises(ApiError) as ei:
        service.update_avatar(freelancer, "  ")
    assert ei.value.message == "Avatar URL is required"
    assert service.update_avatar(freelancer, "https://cdn.example.com/a.png")["avatar"] == "https://cdn.example.com/a.png"


def test_email_is_unique(make_user, table):
    from freelanceflow.db.dynamodb.errors import DdbConflict

    user = make_user("client")
    with pytest.raises(DdbConflict):
        users_repo.create_user(name="Dup", email=user.email.upper(), role="client")
    assert users_repo.get_user_id_by_email(user.email) == user.id


def test_user_routes(api, make_user, auth_headers):
    freelancer = make_user("freelancer")
    h = auth_headers(freelancer)

    r = api.put("/api/users/profile", headers=h, json={"profile": {"website": "not a url"}})
    assert r.status_code == 400
    assert r.json()["errors"][0]["msg"] == "Please provide a valid website URL"

    r = api.put("/api/users/profile", headers=h, json={"name": "Ann Lee", "profile": {"hourlyRate": 55}})
    assert r.status_code == 200
    assert r.json()["data"]["user"]["profile"]["hourlyRate"] == 55

    assert api.post("/api/users/skills", headers=h, json={"skill": "Go"}).status_code == 200
    assert api.post("/api/users/skills", headers=h, json={"skill": "go"}).status_code == 400
    assert api.delete("/api/users/skills/GO", headers=h).json()["data"]["skills"] == []

    r = api.get(f"/api/users/public/{freelancer.id}")
    assert r.status_code == 200
    assert "email" not in r.json()["data"]["user"]

    assert api.get(f"/api/users/{freelancer.id}").status_code == 401
    r = api.get(f"/api/users/{freelancer.id}", headers=h)
    assert r.json()["data"]["user"]["email"] == freelancer.email

    r = api.get("/api/users?role=freelancer", headers=h)
    assert r.json()["pagination"]["limit"] == 12
