from __future__ import annotations

LOCAL_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
)


def build_allowed_origins(*, frontend_url: str | None, frontend_urls: str | None, include_local: bool = True) -> list[str]:
    """Explicit origin allowlist: FRONTEND_URL plus the comma separated FRONTEND_URLS."""
    allowed: set[str] = set(LOCAL_ORIGINS) if include_local else set()

    for v in (frontend_url, frontend_urls):
        if not v:
            continue
        for origin in (s.strip().rstrip("/") for s in str(v).split(",")):
            if origin:
                allowed.add(origin)

    return sorted(allowed)
