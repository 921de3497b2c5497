"""User documents from ``users``, ``login_history`` and ``user_plans``."""

from __future__ import annotations

import dataclasses
from typing import Any, Sequence

from ..config import Defaults
from ..idmap import IdentifierMapper
from .common import Document, Row, flag, full_name, text, to_datetime, to_timestamp

USER_STATUS = {"blocked": "suspended"}


@dataclasses.dataclass
class UserDocument(Document):
    id: str
    email: str
    email_verified: bool
    phone: str
    phone_verified: bool
    display_name: str
    first_name: str
    last_name: str
    photo_url: str
    address: dict[str, str]
    status: str
    role: str
    profile_complete: bool
    auth_providers: list[str]
    active_subscription_id: str | None
    active_plan_id: str | None
    last_login_at: str | None
    login_count: int
    created_at: str
    activated_at: str | None
    suspended_at: str | None
    legacy_id: Any


def _latest_login(logins: Sequence[Row]) -> str | None:
    dates = [d for d in (to_datetime(row.get("date_login")) for row in logins) if d]
    return max(dates).isoformat() if dates else None


def _active_plan(user_plans: Sequence[Row]) -> Row | None:
    active = [row for row in user_plans if flag(row.get("status"))]
    if not active:
        return None
    return max(active, key=lambda row: text(row.get("plan_activate_date")))


def user_status(row: Row, default: str) -> str:
    raw = text(row.get("user_status"), default).lower()
    return USER_STATUS.get(raw, raw)


def build_user(
    row: Row,
    ids: IdentifierMapper,
    defaults: Defaults,
    *,
    logins: Sequence[Row] = (),
    user_plans: Sequence[Row] = (),
) -> UserDocument:
    plan = _active_plan(user_plans)
    providers = ["password"]
    if row.get("fb_uid"):
        providers.append("facebook")
    if row.get("ga_uid"):
        providers.append("google")

    return UserDocument(
        id=ids.get_or_create("users", row["id"]),
        email=text(row.get("email")).strip().lower(),
        email_verified=flag(row.get("is_email_verified")),
        phone=text(row.get("mobile")),
        phone_verified=flag(row.get("is_mobile_verified")),
        display_name=full_name(row),
        first_name=text(row.get("f_name")),
        last_name=text(row.get("l_name")),
        photo_url=text(row.get("profile_image")),
        address={
            "line": text(row.get("address")),
            "city": text(row.get("city_name")),
            "state": text(row.get("state")),
            "pincode": text(row.get("pincode")),
            "country": text(row.get("country"), defaults.country),
        },
        status=user_status(row, defaults.status),
        role="admin" if text(row.get("user_role")).lower() == "admin" else "user",
        profile_complete=flag(row.get("signup_complete")),
        auth_providers=providers,
        active_subscription_id=ids.get_or_create("subscriptions", plan["id"]) if plan else None,
        active_plan_id=ids.get_or_create("plans", plan.get("plan_id")) if plan else None,
        last_login_at=_latest_login(logins),
        login_count=len(logins),
        created_at=to_timestamp(row.get("joining_date"), defaults.created_at),
        activated_at=to_timestamp(row.get("activate_date")),
        suspended_at=to_timestamp(row.get("block_date")),
        legacy_id=row["id"],
    )
