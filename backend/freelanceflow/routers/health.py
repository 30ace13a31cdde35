from __future__ import annotations

from fastapi import APIRouter

from ..settings import settings

router = APIRouter()


@router.get("/", tags=["health"])
def root():
    return {
        "message": "FreelanceFlow API",
        "version": "1.0.0",
        "status": "running",
        "port": settings.port,
        "environment": settings.normalized_environment,
        "dynamodb": "configured" if settings.ddb_table_name else "missing",
        "endpoints": [
            "GET /api/projects",
            "POST /api/projects",
            "GET /api/proposals",
            "POST /api/proposals",
            "PATCH /api/proposals/:id/status",
            "GET /api/users",
            "GET /api/admin/overview",
        ],
    }


@router.get("/api/__health", tags=["health"])
def health():
    return {"ok": True, "environment": settings.normalized_environment}
