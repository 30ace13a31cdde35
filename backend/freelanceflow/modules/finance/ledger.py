from __future__ import annotations

from typing import Any, Protocol

from ...repositories import finance_repo
from ...settings import settings


class FinanceLedger(Protocol):
    """Read-mostly payment bookkeeping consumed by the admin finance views."""

    enabled: bool

    def list_payments(self) -> list[dict[str, Any]]: ...

    def list_payouts(self) -> list[dict[str, Any]]: ...

    def set_payment_status(self, payment_id: str, status: str) -> dict[str, Any] | None: ...

    def set_payout_status(self, payout_id: str, status: str) -> dict[str, Any] | None: ...


class DynamoFinanceLedger:
    enabled = True

    def list_payments(self) -> list[dict[str, Any]]:
        return [p for p in (finance_repo.normalize_payment_for_api(it) for it in finance_repo.list_payments_raw()) if p]

    def list_payouts(self) -> list[dict[str, Any]]:
        return [p for p in (finance_repo.normalize_payout_for_api(it) for it in finance_repo.list_payouts_raw()) if p]

    def set_payment_status(self, payment_id: str, status: str) -> dict[str, Any] | None:
        return finance_repo.set_payment_status(payment_id, status)

    def set_payout_status(self, payout_id: str, status: str) -> dict[str, Any] | None:
        return finance_repo.set_payout_status(payout_id, status)


class NullFinanceLedger:
    """
    Ledger for deployments without payment bookkeeping: lists are empty and
    status changes find nothing to update.
    """

    enabled = False

    def list_payments(self) -> list[dict[str, Any]]:
        return []

    def list_payouts(self) -> list[dict[str, Any]]:
        return []

    def set_payment_status(self, payment_id: str, status: str) -> dict[str, Any] | None:
        return None

    def set_payout_status(self, payout_id: str, status: str) -> dict[str, Any] | None:
        return None


def get_finance_ledger() -> FinanceLedger:
    if str(settings.finance_backend or "").strip().lower() == "none":
        return NullFinanceLedger()
    return DynamoFinanceLedger()


def sums_by_status(rows: list[dict[str, Any]]) -> dict[str, dict[str, float | int]]:
    """{status: {count, amount}} over payment or payout rows."""
    out: dict[str, dict[str, float | int]] = {}
    for r in rows:
        st = str(r.get("status") or "unknown")
        bucket = out.setdefault(st, {"count": 0, "amount": 0})
        bucket["count"] += 1
        try:
            bucket["amount"] += float(r.get("amount") or 0)
        except (TypeError, ValueError):
            continue
    for bucket in out.values():
        amt = float(bucket["amount"])
        bucket["amount"] = int(amt) if amt.is_integer() else round(amt, 2)
    return out
