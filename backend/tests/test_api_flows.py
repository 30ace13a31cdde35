from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from freelanceflow.repositories import projects_repo


def _project_body(**over):
    body = {
        "title": "Build a customer support dashboard",
        "description": "We need a dashboard that aggregates support tickets and shows response times per agent.",
        "category": "web-development",
        "skills": ["react", "python"],
        "budget": {"type": "hourly", "hourlyRate": {"min": 20, "max": 45}},
        "timeline": {"duration": "1-3-months"},
        "experienceLevel": "intermediate",
        "projectSize": "medium",
    }
    body.update(over)
    return body


def _submit(api, headers, project_id, bid=100):
    return api.post(
        "/api/proposals",
        headers=headers,
        json={"project": project_id, "coverLetter": "I can deliver this.", "bidAmount": bid, "timeline": "2 weeks"},
    )


@pytest.fixture
def people(make_user, auth_headers):
    c = make_user("client")
    f = make_user("freelancer")
    f2 = make_user("freelancer")
    return {
        "c": c,
        "f": f,
        "f2": f2,
        "hc": auth_headers(c),
        "hf": auth_headers(f),
        "hf2": auth_headers(f2),
    }


def test_full_proposal_lifecycle(api, people):
    r = api.post("/api/projects", headers=people["hc"], json=_project_body())
    assert r.status_code == 201
    project = r.json()["data"]["project"]
    assert project["budgetDisplay"] == "$20-$45/hr"
    pid = project["_id"]

    # 1. submit
    r = _submit(api, people["hf"], pid)
    assert r.status_code == 201
    assert r.json()["message"] == "Proposal submitted successfully"
    proposal = r.json()["data"]["proposal"]
    assert proposal["status"] == "pending"
    assert projects_repo.get_project_raw(pid)["proposalCount"] == 1

    r = _submit(api, people["hf"], pid, bid=80)
    assert r.status_code == 409

    # 2. accept
    r = api.patch(f"/api/proposals/{proposal['_id']}/status", headers=people["hc"], json={"status": "accepted"})
    assert r.status_code == 200
    assert r.json()["data"]["proposal"]["project"]["freelancer"] == people["f"].id
    stored = projects_repo.get_project_raw(pid)
    assert (stored["freelancer"], stored["status"]) == (people["f"].id, "in-progress")

    # 3. second acceptance wins; rejecting the stale one leaves it alone
    r = _submit(api, people["hf2"], pid)
    second = r.json()["data"]["proposal"]
    api.patch(f"/api/proposals/{second['_id']}/status", headers=people["hc"], json={"status": "accepted"})
    r = api.patch(f"/api/proposals/{proposal['_id']}/status", headers=people["hc"], json={"status": "rejected"})
    assert r.status_code == 200
    stored = projects_repo.get_project_raw(pid)
    assert (stored["freelancer"], stored["status"]) == (people["f2"].id, "in-progress")

    # rejected is terminal
    r = api.patch(f"/api/proposals/{proposal['_id']}/status", headers=people["hc"], json={"status": "accepted"})
    assert r.status_code == 409


def test_anonymous_project_listing_is_open_only(api, people, make_project):
    make_project(people["c"])
    make_project(people["c"], status="completed")
    make_project(people["c"], status="draft")

    r = api.get("/api/projects?status=anything")
    assert r.status_code == 200
    projects = r.json()["data"]["projects"]
    assert len(projects) == 1
    assert all(p["status"] == "open" for p in projects)

    r = api.get("/api/projects/browse?status=completed")
    assert [p["status"] for p in r.json()["data"]["projects"]] == ["open"]


def test_stranger_cannot_read_proposal(api, people, make_user, auth_headers, make_project):
    project = make_project(people["c"])
    proposal = _submit(api, people["hf"], project["_id"]).json()["data"]["proposal"]
    stranger = make_user("freelancer")

    r = api.get(f"/api/proposals/{proposal['_id']}", headers=auth_headers(stranger))
    assert r.status_code == 403

    r = api.get(f"/api/proposals/{proposal['_id']}", headers=people["hc"])
    assert r.status_code == 200
    assert r.json()["data"]["proposal"]["project"]["_id"] == project["_id"]


def test_listing_routes_and_pagination(api, people, make_project):
    projects = [make_project(people["c"], title=f"Project number {i:02d}") for i in range(12)]
    for p in projects:
        _submit(api, people["hf"], p["_id"])

    r = api.get("/api/proposals/mine?page=2&limit=10&sort=createdAt", headers=people["hf"])
    body = r.json()
    assert r.status_code == 200
    assert body["pagination"] == {"page": 2, "limit": 10, "total": 12, "totalPages": 2}
    assert len(body["data"]["proposals"]) == 2

    r = api.get("/api/proposals", headers=people["hf2"])
    assert r.json()["pagination"]["total"] == 0

    r = api.get(f"/api/proposals/mine-one?project={projects[0]['_id']}", headers=people["hf"])
    assert r.json()["data"]["proposal"]["project"] == projects[0]["_id"]

    r = api.get("/api/proposals/stats/my-projects", headers=people["hc"])
    assert len(r.json()["data"]["stats"]) == 12


def test_withdraw_and_delete_routes(api, people, make_project):
    project = make_project(people["c"])
    proposal = _submit(api, people["hf"], project["_id"]).json()["data"]["proposal"]

    r = api.patch(f"/api/proposals/{proposal['_id']}/withdraw", headers=people["hf2"])
    assert r.status_code == 403

    r = api.patch(f"/api/proposals/{proposal['_id']}/withdraw", headers=people["hf"])
    assert r.status_code == 200
    assert r.json()["data"]["proposal"]["status"] == "withdrawn"

    r = api.delete(f"/api/proposals/{proposal['_id']}", headers=people["hf"])
    assert r.status_code == 200
    assert r.json()["data"] == {"id": proposal["_id"]}

    r = api.get(f"/api/proposals/{proposal['_id']}", headers=people["hf"])
    assert r.status_code == 404


def test_project_validation_messages(api, people):
    past = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    cases = [
        ({"category": "gardening"}, "category"),
        ({"skills": []}, "skills"),
        ({"budget": {"type": "hourly", "hourlyRate": {"min": 30, "max": 10}}}, "budget"),
        ({"timeline": {"duration": "forever"}}, "timeline.duration"),
        ({"applicationDeadline": past}, "applicationDeadline"),
        ({"description": "too short"}, "description"),
    ]
    for override, param in cases:
        r = api.post("/api/projects", headers=people["hc"], json=_project_body(**override))
        assert r.status_code == 400, override
        assert param in {e["param"] for e in r.json()["errors"]}, override

    r = api.post("/api/projects", headers=people["hc"], json=_project_body(skills=[]))
    assert {e["msg"] for e in r.json()["errors"]} == {"At least one skill is required"}

    r = api.post("/api/projects", headers=people["hf"], json=_project_body())
    assert r.status_code == 403


def test_project_update_delete_and_invite(api, people):
    project = api.post("/api/projects", headers=people["hc"], json=_project_body()).json()["data"]["project"]
    pid = project["_id"]

    r = api.put(f"/api/projects/{pid}", headers=people["hc"], json={"priority": "urgent", "title": "Dashboard for support"})
    assert r.status_code == 200
    assert r.json()["data"]["project"]["priority"] == "urgent"

    r = api.put(f"/api/projects/{pid}", headers=people["hf"], json={"priority": "low"})
    assert r.status_code == 403

    r = api.post(f"/api/projects/{pid}/invite", headers=people["hc"], json={"freelancerId": people["f"].id, "note": "hi"})
    assert r.status_code == 201
    r = api.post(f"/api/projects/{pid}/invite", headers=people["hc"], json={"freelancerId": people["f"].id})
    assert r.status_code == 409

    r = api.get(f"/api/projects/{pid}")
    assert r.status_code == 200
    assert r.json()["data"]["project"]["client"]["_id"] == people["c"].id

    r = api.delete(f"/api/projects/{pid}", headers=people["hc"])
    assert r.status_code == 200
    assert api.get(f"/api/projects/{pid}").status_code == 404


def test_categories_are_public(api):
    r = api.get("/api/projects/categories")
    assert r.status_code == 200
    assert len(r.json()["data"]["categories"]) == 12


def test_review_route(api, people, make_project):
    project = make_project(people["c"], status="completed")
    projects_repo.update_project(project["_id"], {"freelancer": people["f"].id})

    r = api.post(f"/api/projects/{project['_id']}/reviews", headers=people["hc"], json={"rating": 5, "headline": "Superb"})
    assert r.status_code == 201

    r = api.post(f"/api/projects/{project['_id']}/reviews", headers=people["hc"], json={"rating": 6})
    assert r.status_code == 400

    r = api.get(f"/api/users/{people['f'].id}/reviews", headers=people["hc"])
    assert [rv["headline"] for rv in r.json()["data"]["reviews"]] == ["Superb"]


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_amounts_are_validation_errors(api, people, make_project, literal):
    project = make_project(people["c"])
    headers = {**people["hf"], "Content-Type": "application/json"}

    body = (
        '{"project": "%s", "coverLetter": "I can deliver this.", "bidAmount": %s, "timeline": "2 weeks"}'
        % (project["_id"], literal)
    )
    r = api.post("/api/proposals", headers=headers, content=body)
    assert r.status_code == 400
    assert "bidAmount" in {e["param"] for e in r.json()["errors"]}
    assert projects_repo.get_project_raw(project["_id"])["proposalCount"] == 0

    body = (
        '{"project": "%s", "coverLetter": "x", "bidAmount": 50, "timeline": "1w", '
        '"milestones": [{"title": "Kickoff", "amount": %s}]}'
    ) % (project["_id"], literal)
    r = api.post("/api/proposals", headers=headers, content=body)
    assert r.status_code == 400

    client_headers = {**people["hc"], "Content-Type": "application/json"}
    r = api.put(
        f"/api/projects/{project['_id']}",
        headers=client_headers,
        content='{"budget": {"type": "fixed", "amount": %s}}' % literal,
    )
    assert r.status_code == 400
    assert "budget.amount" in {e["param"] for e in r.json()["errors"]}
