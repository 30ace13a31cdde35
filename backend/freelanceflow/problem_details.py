from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import ORJSONResponse

from .settings import get_settings

PROBLEM_JSON = "application/problem+json"

_TITLES: dict[int, str] = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Unprocessable Entity",
    503: "Service Unavailable",
}


def _default_title(status_code: int) -> str:
    if status_code in _TITLES:
        return _TITLES[status_code]
    return "Internal Server Error" if status_code >= 500 else "Error"


def _request_id(request: Request) -> str | None:
    rid = getattr(getattr(request, "state", None), "request_id", None)
    if rid:
        return str(rid)
    hdr = request.headers.get("x-request-id")
    return str(hdr) if hdr else None


def problem_payload(
    *,
    request: Request,
    status_code: int,
    message: str | None = None,
    title: str | None = None,
    errors: list[dict[str, Any]] | None = None,
    extensions: dict[str, Any] | None = None,
) -> dict[str, Any]:
    title_out = title or _default_title(int(status_code))
    payload: dict[str, Any] = {
        "message": str(message) if message else title_out,
        "status": int(status_code),
        "title": title_out,
    }

    inst = str(getattr(request.url, "path", "") or "")
    if inst:
        payload["instance"] = inst

    rid = _request_id(request)
    if rid:
        payload["requestId"] = rid

    if errors:
        payload["errors"] = errors

    if extensions:
        # Keep extension members in one namespace to avoid collisions.
        payload["extensions"] = extensions

    return payload


def problem_response(
    *,
    request: Request,
    status_code: int,
    message: str | None = None,
    title: str | None = None,
    errors: list[dict[str, Any]] | None = None,
    extensions: dict[str, Any] | None = None,
) -> ORJSONResponse:
    settings = get_settings()

    # Never leak internal details in production for server errors.
    safe_message = message
    safe_extensions = extensions
    if int(status_code) >= 500 and settings.is_production:
        safe_message = None
        safe_extensions = None

    return ORJSONResponse(
        status_code=int(status_code),
        content=problem_payload(
            request=request,
            status_code=int(status_code),
            message=safe_message,
            title=title,
            errors=errors,
            extensions=safe_extensions,
        ),
        media_type=PROBLEM_JSON,
    )
