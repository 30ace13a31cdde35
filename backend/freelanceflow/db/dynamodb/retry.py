from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from botocore.exceptions import BotoCoreError, ClientError

from ...observability.logging import get_logger
from .errors import (
    DdbConflict,
    DdbError,
    DdbInternal,
    DdbThrottled,
    DdbUnavailable,
    DdbValidation,
)

T = TypeVar("T")

log = get_logger("ddb")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 6
    base_delay_s: float = 0.05
    max_delay_s: float = 1.5

    def delay(self, attempt: int) -> float:
        """Full-jitter exponential backoff for the given 1-based attempt."""
        ceiling = min(self.max_delay_s, self.base_delay_s * (2 ** max(0, attempt - 1)))
        return random.random() * ceiling


# error code -> (error class, message, retryable)
_CODE_TABLE: dict[str, tuple[type[DdbError], str, bool]] = {
    "ConditionalCheckFailedException": (DdbConflict, "Conditional check failed", False),
    "ValidationException": (DdbValidation, "Request validation failed", False),
    "ParamValidationError": (DdbValidation, "Request validation failed", False),
    "AccessDeniedException": (DdbUnavailable, "Table unavailable or access denied", False),
    "UnrecognizedClientException": (DdbUnavailable, "Table unavailable or access denied", False),
    "ResourceNotFoundException": (DdbUnavailable, "Table unavailable or access denied", False),
    "ProvisionedThroughputExceededException": (DdbThrottled, "Request throttled", True),
    "ThrottlingException": (DdbThrottled, "Request throttled", True),
    "RequestLimitExceeded": (DdbThrottled, "Request throttled", True),
    "InternalServerError": (DdbThrottled, "Storage temporarily unavailable", True),
    "ServiceUnavailable": (DdbThrottled, "Storage temporarily unavailable", True),
    "TransactionConflictException": (DdbThrottled, "Transaction contention", True),
}


def _cancellation_codes(e: ClientError) -> list[str]:
    reasons = (e.response or {}).get("CancellationReasons") or []
    return [str((r or {}).get("Code") or "") for r in reasons]


def _classify_client_error(e: ClientError) -> tuple[type[DdbError], str, bool]:
    code = str((e.response or {}).get("Error", {}).get("Code") or "")

    if code == "TransactionCanceledException":
        reasons = _cancellation_codes(e)
        # One of our own conditions failed: the write lost a race or a guard item exists.
        if "ConditionalCheckFailed" in reasons:
            return DdbConflict, "Transaction condition failed", False
        if "TransactionConflict" in reasons or "TransactionConflictException" in reasons:
            return DdbThrottled, "Transaction contention", True
        return DdbInternal, "Transaction cancelled", False

    return _CODE_TABLE.get(code) or (DdbInternal, f"Storage request failed ({code or 'ClientError'})", False)


def to_ddb_error(
    exc: Exception,
    *,
    operation: str,
    table_name: str | None = None,
    key: dict[str, Any] | None = None,
) -> DdbError:
    """Translate a boto3/botocore exception into the DdbError hierarchy."""
    if isinstance(exc, DdbError):
        return exc

    aws_request_id: str | None = None
    if isinstance(exc, ClientError):
        cls, message, retryable = _classify_client_error(exc)
        aws_request_id = (exc.response or {}).get("ResponseMetadata", {}).get("RequestId")
    elif isinstance(exc, BotoCoreError):
        cls, message, retryable = DdbUnavailable, "Storage client error", True
    else:
        cls, message, retryable = DdbInternal, "Unexpected storage error", False

    return cls(
        message=message,
        operation=operation,
        table_name=table_name,
        key=key,
        aws_request_id=aws_request_id,
        retryable=retryable,
        cause=exc,
    )


def ddb_call(
    operation: str,
    fn: Callable[[], T],
    *,
    table_name: str | None = None,
    key: dict[str, Any] | None = None,
    retry_policy: RetryPolicy | None = None,
) -> T:
    """
    Run one DynamoDB call, retrying transient failures.

    Conflicts and validation errors are raised on the first attempt.
    """
    policy = retry_policy or RetryPolicy()
    attempts = max(1, int(policy.max_attempts))

    attempt = 1
    while True:
        try:
            return fn()
        except Exception as e:  # noqa: BLE001
            mapped = to_ddb_error(e, operation=operation, table_name=table_name, key=key)
            if not mapped.retryable or attempt >= attempts:
                raise mapped from e
            log.info(
                "ddb_retry",
                operation=operation,
                attempt=attempt,
                error=type(mapped).__name__,
                aws_request_id=mapped.aws_request_id,
            )
            time.sleep(policy.delay(attempt))
            attempt += 1
