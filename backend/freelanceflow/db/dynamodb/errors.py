from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass(slots=True)
class DdbError(Exception):
    """
    Storage failure raised by `ddb_call`.

    Each subclass names the HTTP status and title it renders as, so the app's
    exception handler needs no isinstance ladder.
    """

    http_status: ClassVar[int] = 500
    http_title: ClassVar[str] = "Storage Error"

    message: str
    operation: str | None = None
    table_name: str | None = None
    key: dict[str, Any] | None = None
    aws_request_id: str | None = None
    retryable: bool = False
    cause: Exception | None = None

    def __str__(self) -> str:
        return self.message

    def log_fields(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "operation": self.operation,
            "table": self.table_name,
            "key": self.key,
            "awsRequestId": self.aws_request_id,
            "retryable": bool(self.retryable),
        }


@dataclass(slots=True)
class DdbConflict(DdbError):
    """A condition expression failed: duplicate key, stale status, lost race."""

    http_status: ClassVar[int] = 409
    http_title: ClassVar[str] = "Conflict"


@dataclass(slots=True)
class DdbValidation(DdbError):
    http_status: ClassVar[int] = 400
    http_title: ClassVar[str] = "Bad Request"


@dataclass(slots=True)
class DdbThrottled(DdbError):
    http_status: ClassVar[int] = 503
    http_title: ClassVar[str] = "Service Unavailable"


@dataclass(slots=True)
class DdbUnavailable(DdbError):
    http_status: ClassVar[int] = 503
    http_title: ClassVar[str] = "Service Unavailable"


@dataclass(slots=True)
class DdbInternal(DdbError):
    pass
