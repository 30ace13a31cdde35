from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from .db.dynamodb.errors import DdbError
from .errors import ApiError
from .middleware import AccessLogMiddleware, AuthMiddleware, NormalizePathMiddleware, RequestContextMiddleware
from .middleware.cors import build_allowed_origins
from .observability.logging import configure_logging, get_logger
from .problem_details import problem_response
from .routers.admin import router as admin_router
from .routers.health import router as health_router
from .routers.projects import router as projects_router
from .routers.proposals import router as proposals_router
from .routers.users import router as users_router
from .settings import settings


def create_app() -> FastAPI:
    configure_logging(level=settings.log_level, json_logs=not settings.is_development)
    log = get_logger("startup")

    app = FastAPI(
        title="FreelanceFlow API",
        version="1.0.0",
        default_response_class=ORJSONResponse,
        redirect_slashes=False,
    )

    allowed_origins = build_allowed_origins(
        frontend_url=settings.frontend_url,
        frontend_urls=settings.frontend_urls,
        include_local=not settings.is_production,
    )

    log.info("app_starting", settings=settings.to_log_safe_dict())

    # Middlewares (order matters; last added is outermost)
    # Auth runs inside CORS so auth failures still get CORS headers.
    app.add_middleware(AuthMiddleware)
    app.add_middleware(AccessLogMiddleware, exclude_paths={"/", "/api/__health"})
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Request-Id"],
        expose_headers=["X-Request-Id"],
        max_age=3000,
    )
    app.add_middleware(RequestContextMiddleware)
    # Outermost: path rewrite must happen before routing and auth matching.
    app.add_middleware(NormalizePathMiddleware)

    app.add_exception_handler(ApiError, _api_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(DdbError, _ddb_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)

    app.include_router(health_router)
    app.include_router(proposals_router, prefix="/api/proposals")
    app.include_router(projects_router, prefix="/api/projects")
    app.include_router(users_router, prefix="/api/users")
    app.include_router(admin_router, prefix="/api/admin")

    return app


def _api_error_handler(request: Request, exc: ApiError) -> Response:
    return problem_response(
        request=request,
        status_code=exc.status_code,
        message=exc.message,
        errors=exc.errors,
    )


def _ddb_error_handler(request: Request, exc: DdbError) -> Response:
    status_code = exc.http_status
    extensions = {k: v for k, v in exc.log_fields().items() if v is not None}

    if status_code >= 500:
        get_logger("storage").error("storage_error", message=str(exc), **extensions)

    # In production, problem_response already suppresses 5xx detail.
    return problem_response(
        request=request,
        status_code=status_code,
        title=exc.http_title,
        message=str(exc),
        extensions=extensions,
    )


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    status_code = int(getattr(exc, "status_code", 500) or 500)
    detail = getattr(exc, "detail", None)
    message = detail if isinstance(detail, str) and detail.strip() else None

    if status_code == 404:
        # Starlette's default 404 detail is "Not Found".
        if not message or message == "Not Found":
            message = "Route not found"

    return problem_response(request=request, status_code=status_code, message=message)


def _validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    errors: list[dict[str, object]] = []
    for e in exc.errors():
        loc = e.get("loc") or ()
        param = ".".join(str(x) for x in loc if x not in ("body", "query", "path"))
        msg = str(e.get("msg") or "Invalid value")
        # pydantic prefixes messages raised from validators.
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, ") :]
        errors.append({"param": param, "msg": msg})
    return problem_response(
        request=request,
        status_code=400,
        message="Validation failed",
        errors=errors,
    )


def _unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    rid = getattr(getattr(request, "state", None), "request_id", None)
    user = getattr(getattr(request, "state", None), "user", None)
    get_logger("unhandled").error(
        "unhandled_exception",
        request_id=str(rid) if rid else None,
        http_method=str(getattr(request, "method", "") or "").upper() or None,
        path=str(getattr(getattr(request, "url", None), "path", "") or ""),
        user_id=getattr(user, "id", None),
        exc_info=exc,
    )
    return problem_response(
        request=request,
        status_code=500,
        message=str(exc) if exc else None,
    )


app = create_app()
