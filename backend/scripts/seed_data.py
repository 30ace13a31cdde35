#!/usr/bin/env python3
"""
Seed demo users, projects and proposals.

Usage:
    python scripts/seed_data.py [--proposals N]

Prints a bearer token per seeded user so the API can be exercised right away.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from freelanceflow.auth.tokens import Identity, issue_access_token  # noqa: E402
from freelanceflow.db.dynamodb.errors import DdbConflict  # noqa: E402
from freelanceflow.modules.proposals import workflow  # noqa: E402
from freelanceflow.observability.logging import configure_logging, get_logger  # noqa: E402
from freelanceflow.repositories import projects_repo, users_repo  # noqa: E402
from freelanceflow.settings import settings  # noqa: E402

log = get_logger("seed_data")

USERS = [
    {"name": "Platform Admin", "email": "admin@freelanceflow.local", "role": "admin"},
    {"name": "Acme Robotics", "email": "client@freelanceflow.local", "role": "client", "profile": {"company": "Acme Robotics"}},
    {
        "name": "Dana Developer",
        "email": "dana@freelanceflow.local",
        "role": "freelancer",
        "profile": {"skills": ["python", "react"], "hourlyRate": 65, "bio": "Full-stack engineer."},
    },
    {
        "name": "Sam Designer",
        "email": "sam@freelanceflow.local",
        "role": "freelancer",
        "profile": {"skills": ["figma", "ui-ux"], "hourlyRate": 50, "bio": "Product designer."},
    },
]

PROJECTS = [
    {
        "title": "Inventory dashboard for warehouse robots",
        "description": "Build a web dashboard that shows robot positions, battery levels and pick rates in real time.",
        "category": "web-development",
        "skills": ["python", "react"],
        "budget": {"type": "fixed", "amount": 4000},
        "timeline": {"duration": "1-3-months"},
        "experienceLevel": "expert",
        "projectSize": "large",
    },
    {
        "title": "Refresh the marketing site design",
        "description": "Redesign the landing page and three product pages with a consistent component library in Figma.",
        "category": "ui-ux-design",
        "skills": ["figma"],
        "budget": {"type": "hourly", "hourlyRate": {"min": 40, "max": 70}},
        "timeline": {"duration": "less-than-1-month"},
        "experienceLevel": "intermediate",
        "projectSize": "medium",
    },
]


def _user(seed: dict) -> Identity:
    existing = users_repo.get_user_id_by_email(seed["email"])
    if existing:
        raw = users_repo.get_user_raw(existing) or {}
        return Identity(id=existing, role=str(raw.get("role")), email=seed["email"], name=raw.get("name"))
    created = users_repo.create_user(
        name=seed["name"],
        email=seed["email"],
        role=seed["role"],
        profile=seed.get("profile"),
        is_verified=True,
    )
    log.info("seed_user_created", user_id=created["_id"], role=seed["role"])
    return Identity(id=created["_id"], role=seed["role"], email=seed["email"], name=seed["name"])


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed demo data")
    parser.add_argument("--proposals", type=int, default=2, help="freelancers that apply to each project")
    args = parser.parse_args()

    configure_logging(level=settings.log_level)

    people = [_user(u) for u in USERS]
    client = next(p for p in people if p.role == "client")
    freelancers = [p for p in people if p.role == "freelancer"]

    for doc in PROJECTS:
        project = projects_repo.create_project(client_id=client.id, data=doc)
        for f in freelancers[: max(0, args.proposals)]:
            try:
                workflow.submit_proposal(
                    f,
                    project_id=project["_id"],
                    cover_letter=f"Hi, I'm {f.name} and this is right in my wheelhouse.",
                    bid_amount=500,
                    timeline="4 weeks",
                )
            except DdbConflict:
                log.info("seed_proposal_exists", project_id=project["_id"], freelancer_id=f.id)

    for p in people:
        print(f"{p.role:<10} {p.email:<30} {issue_access_token(p.id)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
