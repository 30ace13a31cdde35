from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    INTERNAL = "internal"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


class ApiError(Exception):
    """Business-rule violation carrying an error kind and optional field errors.

    Raised from services and routers; rendered by a single exception handler in
    `main.create_app`.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        errors: list[dict[str, Any]] | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.errors = errors

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND.get(self.kind, 500)

    def __str__(self) -> str:
        return self.message


def unauthorized(message: str = "Unauthorized") -> ApiError:
    return ApiError(ErrorKind.UNAUTHORIZED, message)


def forbidden(message: str = "Forbidden") -> ApiError:
    return ApiError(ErrorKind.FORBIDDEN, message)


def not_found(message: str = "Not found") -> ApiError:
    return ApiError(ErrorKind.NOT_FOUND, message)


def validation(message: str, errors: list[dict[str, Any]] | None = None) -> ApiError:
    return ApiError(ErrorKind.VALIDATION, message, errors=errors)


def conflict(message: str, errors: list[dict[str, Any]] | None = None) -> ApiError:
    return ApiError(ErrorKind.CONFLICT, message, errors=errors)
