from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

import pytest

# Ensure `backend/` is on sys.path so `import freelanceflow.*` works in tests.
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))

# Settings are read once at import time.
os.environ.setdefault("NODE_ENV", "test")
os.environ.setdefault("DDB_TABLE_NAME", "freelanceflow-test")
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production")
os.environ.setdefault("NOTIFICATIONS_BACKEND", "none")
os.environ.setdefault("FINANCE_BACKEND", "dynamodb")
os.environ.setdefault("AUDIT_BACKEND", "dynamodb")

from fastapi.testclient import TestClient  # noqa: E402

from freelanceflow.auth.tokens import Identity, issue_access_token  # noqa: E402
from freelanceflow.modules.notifications.notifier import set_notifier  # noqa: E402
from freelanceflow.repositories import projects_repo, users_repo  # noqa: E402

from fakes import FakeTable, RecordingNotifier  # noqa: E402

TABLE_USERS = (
    "freelanceflow.repositories.users_repo",
    "freelanceflow.repositories.projects_repo",
    "freelanceflow.repositories.proposals_repo",
    "freelanceflow.repositories.reviews_repo",
    "freelanceflow.repositories.outbox_repo",
    "freelanceflow.repositories.platform_settings_repo",
    "freelanceflow.repositories.finance_repo",
    "freelanceflow.repositories.audit_repo",
    "freelanceflow.modules.proposals.workflow",
    "freelanceflow.modules.admin.moderation",
)


@pytest.fixture(autouse=True)
def table(monkeypatch) -> FakeTable:
    fake = FakeTable()
    for mod in TABLE_USERS:
        monkeypatch.setattr(f"{mod}.get_main_table", lambda: fake)
    return fake


@pytest.fixture(autouse=True)
def notifier():
    rec = RecordingNotifier()
    set_notifier(rec)
    yield rec
    set_notifier(None)


@pytest.fixture
def make_user():
    counter = {"n": 0}

    def _make(role: str = "freelancer", *, name: str | None = None, **extra: Any) -> Identity:
        counter["n"] += 1
        n = counter["n"]
        created = users_repo.create_user(
            name=name or f"{role.title()} {n}",
            email=f"{role}{n}@example.com",
            role=role,
            profile=extra.pop("profile", None),
        )
        if extra:
            users_repo.update_profile(created["_id"], extra)
        return Identity(id=created["_id"], role=role, email=created["email"], name=created["name"])

    return _make


@pytest.fixture
def make_project():
    def _make(client: Identity, **data: Any) -> dict[str, Any]:
        doc = {
            "title": "Build a marketing website",
            "description": "A responsive marketing site with a blog, contact form and CMS integration.",
            "category": "web-development",
            "skills": ["python", "react"],
            "budget": {"type": "fixed", "amount": 500},
            "timeline": {"duration": "1-3-months"},
            "experienceLevel": "intermediate",
            "projectSize": "medium",
            **data,
        }
        return projects_repo.create_project(client_id=client.id, data=doc)

    return _make


@pytest.fixture
def api() -> TestClient:
    from freelanceflow.main import create_app

    return TestClient(create_app())


@pytest.fixture
def auth_headers():
    def _headers(user: Identity) -> dict[str, str]:
        return {"Authorization": f"Bearer {issue_access_token(user.id)}"}

    return _headers
