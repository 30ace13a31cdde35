from __future__ import annotations

from typing import Any, Protocol

from ...observability.logging import get_logger
from ...repositories import audit_repo
from ...settings import settings

log = get_logger("audit")


class AuditLog(Protocol):
    def record(
        self,
        *,
        actor_id: str,
        action: str,
        target_type: str,
        target_id: str,
        details: dict[str, Any] | None = None,
    ) -> None: ...


class DynamoAuditLog:
    def record(
        self,
        *,
        actor_id: str,
        action: str,
        target_type: str,
        target_id: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        audit_repo.put_entry(
            actor_id=actor_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            details=details,
        )


class NullAuditLog:
    """Drops entries. Selected with AUDIT_BACKEND=none."""

    def record(
        self,
        *,
        actor_id: str,
        action: str,
        target_type: str,
        target_id: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        return None


def get_audit_log() -> AuditLog:
    if str(settings.audit_backend or "").strip().lower() == "none":
        return NullAuditLog()
    return DynamoAuditLog()


def record_safely(**kwargs: Any) -> None:
    """Audit writes must not fail the moderation action they describe."""
    try:
        get_audit_log().record(**kwargs)
    except Exception as e:
        log.warning("audit_record_failed", action=kwargs.get("action"), error=str(e))
