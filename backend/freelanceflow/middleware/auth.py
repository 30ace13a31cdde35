from __future__ import annotations

import re

from fastapi import HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..auth.tokens import TokenAuthError, authenticate
from ..observability.logging import get_logger
from ..problem_details import problem_response

# (method, pattern) pairs reachable without a bearer token. A valid token
# on these routes still resolves an identity.
_PUBLIC_ROUTES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("GET", re.compile(r"^/api/__health$")),
    ("GET", re.compile(r"^/api/projects$")),
    ("GET", re.compile(r"^/api/projects/browse$")),
    ("GET", re.compile(r"^/api/projects/categories$")),
    ("GET", re.compile(r"^/api/projects/[^/]+$")),
    ("GET", re.compile(r"^/api/users/public/[^/]+$")),
)


def is_public_path(path: str, method: str = "GET") -> bool:
    if path == "/":
        return True
    m = method.upper()
    if m == "HEAD":
        m = "GET"
    return any(m == meth and rx.match(path) for meth, rx in _PUBLIC_ROUTES)


def _bearer(request: Request) -> str | None:
    auth = request.headers.get("authorization")
    if not auth:
        return None
    parts = str(auth).split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


async def require_auth(request: Request):
    path = request.url.path

    # CORS preflight is answered by CORSMiddleware.
    if request.method.upper() == "OPTIONS":
        return
    if not path.startswith("/api/"):
        return

    public = is_public_path(path, request.method)
    token = _bearer(request)

    if not token:
        if public:
            return
        has_header = bool(request.headers.get("authorization"))
        raise HTTPException(status_code=401, detail="Invalid token" if has_header else "No token provided")

    try:
        request.state.user = authenticate(token)
    except TokenAuthError as e:
        if public:
            return
        raise HTTPException(status_code=e.status_code, detail=str(e))


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Resolves the bearer token into `request.state.user`.

    Added before CORSMiddleware so CORS wraps auth failures as well.
    """

    async def dispatch(self, request: Request, call_next):
        log = get_logger("auth_middleware")
        try:
            await require_auth(request)
        except HTTPException as exc:
            log.info("auth_middleware_denied", status_code=exc.status_code, path=request.url.path)
            return problem_response(
                request=request,
                status_code=exc.status_code,
                message=str(exc.detail) if isinstance(exc.detail, str) else None,
            )
        except Exception:
            log.exception("auth_middleware_error", path=request.url.path)
            return problem_response(request=request, status_code=500)
        return await call_next(request)
