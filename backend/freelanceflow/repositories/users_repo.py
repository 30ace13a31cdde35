from __future__ import annotations

from typing import Any, Iterable

from boto3.dynamodb.conditions import Key

from ..db.dynamodb.table import get_main_table
from .items import new_id, now_iso, set_expression, strip_keys, type_pk

# Fields a user may never change through self-service profile updates.
PROTECTED_FIELDS = ("password", "passwordHash", "email", "role", "earnings", "ratings", "isActive", "isVerified")

# Fields hidden from the public profile view.
PRIVATE_FIELDS = ("email", "earnings", "passwordHash", "emailVerificationToken", "passwordResetToken")


def user_key(user_id: str) -> dict[str, str]:
    uid = str(user_id or "").strip()
    if not uid:
        raise ValueError("user_id is required")
    return {"pk": f"USER#{uid}", "sk": "PROFILE"}


def email_index_key(email: str) -> dict[str, str]:
    em = str(email or "").strip().lower()
    if not em or "@" not in em:
        raise ValueError("email is required")
    return {"pk": f"USER_EMAIL#{em}", "sk": "USER"}


def profile_completeness(user: dict[str, Any]) -> int:
    profile = user.get("profile") if isinstance(user.get("profile"), dict) else {}
    score = 30
    if user.get("avatar"):
        score += 10
    if profile.get("bio"):
        score += 10
    if profile.get("location"):
        score += 10

    role = user.get("role")
    if role == "freelancer":
        if profile.get("skills"):
            score += 20
        if profile.get("hourlyRate"):
            score += 10
        if profile.get("portfolio"):
            score += 10
    elif role == "client":
        if profile.get("company"):
            score += 20
        if profile.get("industry"):
            score += 10
        if profile.get("companySize"):
            score += 10

    return min(score, 100)


def normalize_user_for_api(item: dict[str, Any] | None, *, public: bool = False) -> dict[str, Any] | None:
    if not item:
        return None
    out = strip_keys(item)
    out["_id"] = item.get("userId")
    out.pop("userId", None)
    out.pop("passwordHash", None)
    if public:
        for k in PRIVATE_FIELDS:
            out.pop(k, None)
    out["profileCompleteness"] = profile_completeness(item)
    return out


def user_summary(item: dict[str, Any] | None, *, with_email: bool = False, with_profile: bool = False) -> dict[str, Any] | None:
    if not item:
        return None
    out: dict[str, Any] = {"_id": item.get("userId"), "name": item.get("name")}
    if with_email:
        out["email"] = item.get("email")
    if with_profile:
        out["profile"] = item.get("profile") or {}
    return out


def get_user_raw(user_id: str) -> dict[str, Any] | None:
    uid = str(user_id or "").strip()
    if not uid:
        return None
    return get_main_table().get_item(key=user_key(uid))


def get_user_by_id(user_id: str, *, public: bool = False) -> dict[str, Any] | None:
    return normalize_user_for_api(get_user_raw(user_id), public=public)


def get_users_by_ids(user_ids: Iterable[str]) -> dict[str, dict[str, Any]]:
    """Fetch several users, keyed by id. Missing users are simply absent."""
    out: dict[str, dict[str, Any]] = {}
    for uid in sorted({str(u) for u in user_ids if u}):
        it = get_user_raw(uid)
        if it:
            out[uid] = it
    return out


def get_user_id_by_email(email: str) -> str | None:
    em = str(email or "").strip().lower()
    if not em or "@" not in em:
        return None
    it = get_main_table().get_item(key=email_index_key(em))
    uid = str((it or {}).get("userId") or "").strip()
    return uid or None


def list_users_raw() -> list[dict[str, Any]]:
    return get_main_table().query_all(
        index_name="GSI1",
        key_condition_expression=Key("gsi1pk").eq(type_pk("USER")),
        scan_index_forward=False,
    )


def create_user(
    *,
    name: str,
    email: str,
    role: str,
    profile: dict[str, Any] | None = None,
    avatar: str | None = None,
    is_verified: bool = False,
    password_hash: str | None = None,
) -> dict[str, Any]:
    """
    Create a user and its email index item in one transaction.

    Raises DdbConflict when the email is already registered.
    """
    user_id = new_id()
    em = str(email or "").strip().lower()
    now = now_iso()

    item: dict[str, Any] = {
        **user_key(user_id),
        "entityType": "User",
        "userId": user_id,
        "name": str(name or "").strip(),
        "email": em,
        "role": role,
        "avatar": avatar,
        "profile": {"skills": [], "portfolio": [], "availability": "available", **(profile or {})},
        "ratings": {"average": 0, "count": 0},
        "earnings": {"total": 0, "pending": 0, "available": 0},
        "isVerified": bool(is_verified),
        "isActive": True,
        "lastActive": now,
        "createdAt": now,
        "updatedAt": now,
        "gsi1pk": type_pk("USER"),
        "gsi1sk": f"{now}#{user_id}",
    }
    if password_hash:
        item["passwordHash"] = password_hash

    index_item = {
        **email_index_key(em),
        "entityType": "UserEmailIndex",
        "email": em,
        "userId": user_id,
        "createdAt": now,
    }

    t = get_main_table()
    t.transact_write(
        puts=[
            t.tx_put(item=item, condition_expression="attribute_not_exists(pk)"),
            t.tx_put(item=index_item, condition_expression="attribute_not_exists(pk)"),
        ]
    )
    return normalize_user_for_api(item) or {}


def _update_fields(user_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
    fields = {**fields, "updatedAt": now_iso()}
    expr, names, values = set_expression(fields)
    return get_main_table().update_item(
        key=user_key(user_id),
        update_expression=expr,
        expression_attribute_names=names,
        expression_attribute_values=values,
        condition_expression="attribute_exists(pk)",
        return_values="ALL_NEW",
    )


def update_profile(user_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
    """
    Self-service profile update. Protected fields are dropped and the nested
    `profile` object is merged into the stored one rather than replaced.
    """
    existing = get_user_raw(user_id)
    if not existing:
        return None

    data = {k: v for k, v in (updates or {}).items() if k not in PROTECTED_FIELDS and v is not None}
    if isinstance(data.get("profile"), dict):
        merged = dict(existing.get("profile") or {})
        merged.update({k: v for k, v in data["profile"].items() if v is not None})
        data["profile"] = merged

    if not data:
        return normalize_user_for_api(existing)
    return normalize_user_for_api(_update_fields(user_id, data))


def set_profile_field(user_id: str, field: str, value: Any) -> dict[str, Any] | None:
    existing = get_user_raw(user_id)
    if not existing:
        return None
    profile = dict(existing.get("profile") or {})
    profile[field] = value
    return normalize_user_for_api(_update_fields(user_id, {"profile": profile}))


def set_avatar(user_id: str, avatar: str) -> dict[str, Any] | None:
    return normalize_user_for_api(_update_fields(user_id, {"avatar": avatar}))


def set_role(user_id: str, role: str) -> dict[str, Any] | None:
    return normalize_user_for_api(_update_fields(user_id, {"role": role}))


def set_active(user_id: str, is_active: bool) -> dict[str, Any] | None:
    return normalize_user_for_api(_update_fields(user_id, {"isActive": bool(is_active)}))


def apply_rating(user_id: str, rating: int | float) -> dict[str, Any] | None:
    existing = get_user_raw(user_id)
    if not existing:
        return None
    ratings = existing.get("ratings") if isinstance(existing.get("ratings"), dict) else {}
    count = int(ratings.get("count") or 0)
    average = float(ratings.get("average") or 0)
    new_count = count + 1
    new_average = round((average * count + float(rating)) / new_count, 2)
    return normalize_user_for_api(
        _update_fields(user_id, {"ratings": {"average": new_average, "count": new_count}})
    )
