from __future__ import annotations

from typing import Any

from boto3.dynamodb.conditions import Key

from ..db.dynamodb.table import get_main_table
from .items import new_id, now_iso, set_expression, strip_keys, type_pk

PAYMENT_TYPES = ("milestone", "escrow", "release", "refund")
PAYMENT_STATUSES = ("pending", "requires_action", "succeeded", "failed", "refunded")
PAYOUT_STATUSES = ("pending", "processing", "paid", "failed", "cancelled")


def payment_key(payment_id: str) -> dict[str, str]:
    return {"pk": f"PAYMENT#{payment_id}", "sk": "PROFILE"}


def payout_key(payout_id: str) -> dict[str, str]:
    return {"pk": f"PAYOUT#{payout_id}", "sk": "PROFILE"}


def _normalize(item: dict[str, Any] | None, id_attr: str) -> dict[str, Any] | None:
    if not item:
        return None
    out = strip_keys(item)
    out["_id"] = item.get(id_attr)
    out.pop(id_attr, None)
    return out


def normalize_payment_for_api(item: dict[str, Any] | None) -> dict[str, Any] | None:
    return _normalize(item, "paymentId")


def normalize_payout_for_api(item: dict[str, Any] | None) -> dict[str, Any] | None:
    return _normalize(item, "payoutId")


def create_payment(
    *,
    project_id: str,
    payer_id: str,
    payee_id: str,
    amount: float,
    payment_type: str,
    currency: str = "USD",
    milestone_id: str | None = None,
    status: str = "pending",
) -> dict[str, Any]:
    if payment_type not in PAYMENT_TYPES:
        raise ValueError(f"unknown payment type: {payment_type}")
    payment_id = new_id()
    now = now_iso()
    item: dict[str, Any] = {
        **payment_key(payment_id),
        "entityType": "Payment",
        "paymentId": payment_id,
        "project": str(project_id),
        "payer": str(payer_id),
        "payee": str(payee_id),
        "amount": amount,
        "currency": str(currency or "USD").upper(),
        "type": payment_type,
        "milestoneId": milestone_id,
        "provider": "stripe",
        "stripePaymentIntentId": None,
        "stripeChargeId": None,
        "stripeRefundId": None,
        "status": status,
        "failureReason": None,
        "createdAt": now,
        "updatedAt": now,
        "gsi1pk": type_pk("PAYMENT"),
        "gsi1sk": f"{now}#{payment_id}",
    }
    get_main_table().put_item(item=item, condition_expression="attribute_not_exists(pk)")
    return normalize_payment_for_api(item) or {}


def create_payout(*, payee_id: str, amount: float, currency: str = "USD", method: str = "bank_transfer") -> dict[str, Any]:
    payout_id = new_id()
    now = now_iso()
    item: dict[str, Any] = {
        **payout_key(payout_id),
        "entityType": "Payout",
        "payoutId": payout_id,
        "payee": str(payee_id),
        "amount": amount,
        "currency": str(currency or "USD").upper(),
        "method": method,
        "status": "pending",
        "createdAt": now,
        "updatedAt": now,
        "gsi1pk": type_pk("PAYOUT"),
        "gsi1sk": f"{now}#{payout_id}",
    }
    get_main_table().put_item(item=item, condition_expression="attribute_not_exists(pk)")
    return normalize_payout_for_api(item) or {}


def list_payments_raw() -> list[dict[str, Any]]:
    return get_main_table().query_all(
        index_name="GSI1",
        key_condition_expression=Key("gsi1pk").eq(type_pk("PAYMENT")),
        scan_index_forward=False,
    )


def list_payouts_raw() -> list[dict[str, Any]]:
    return get_main_table().query_all(
        index_name="GSI1",
        key_condition_expression=Key("gsi1pk").eq(type_pk("PAYOUT")),
        scan_index_forward=False,
    )


def _set_status(key: dict[str, str], status: str, extra: dict[str, Any] | None = None) -> dict[str, Any] | None:
    expr, names, values = set_expression({"status": status, **(extra or {}), "updatedAt": now_iso()})
    return get_main_table().update_item(
        key=key,
        update_expression=expr,
        expression_attribute_names=names,
        expression_attribute_values=values,
        condition_expression="attribute_exists(pk)",
        return_values="ALL_NEW",
    )


def set_payment_status(payment_id: str, status: str, *, failure_reason: str | None = None) -> dict[str, Any] | None:
    extra = {"failureReason": failure_reason} if failure_reason else None
    return normalize_payment_for_api(_set_status(payment_key(payment_id), status, extra))


def set_payout_status(payout_id: str, status: str) -> dict[str, Any] | None:
    return normalize_payout_for_api(_set_status(payout_key(payout_id), status))
