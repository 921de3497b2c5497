"""Subscription documents from ``user_plans``."""

from __future__ import annotations

import dataclasses
import datetime
from typing import Any

from dateutil.relativedelta import relativedelta

from ..config import Defaults
from ..idmap import IdentifierMapper
from .common import Document, Row, duration_text, flag, number, parse_amount, text, to_datetime


@dataclasses.dataclass
class SubscriptionDocument(Document):
    id: str
    user_id: str | None
    plan_id: str | None
    plan_name: str
    plan_type: str
    status: str
    is_active: bool
    start_date: str
    end_date: str | None
    renewal_date: str | None
    amount: float
    currency: str
    duration: str
    usage: dict[str, Any]
    listing: dict[str, Any]
    legacy_id: Any


def subscription_window(
    start: datetime.datetime, plan: Row | None
) -> datetime.datetime | None:
    if not plan:
        return None
    months = int(number(plan.get("duration_months")))
    if months <= 0:
        return None
    return start + relativedelta(months=months)


def subscription_status(active: bool, end: datetime.datetime | None, now: datetime.datetime) -> str:
    if not active:
        return "cancelled"
    if end is not None and now > end:
        return "expired"
    return "active"


def build_subscription(
    row: Row,
    ids: IdentifierMapper,
    defaults: Defaults,
    *,
    plans: dict[Any, Row],
    now: datetime.datetime | None = None,
) -> SubscriptionDocument:
    now = now or datetime.datetime.now(datetime.timezone.utc)
    plan = plans.get(row.get("plan_id"))
    start = to_datetime(row.get("plan_activate_date")) or to_datetime(defaults.created_at)
    end = subscription_window(start, plan)
    status = subscription_status(flag(row.get("status")), end, now)
    running = status == "active"

    return SubscriptionDocument(
        id=ids.get_or_create("subscriptions", row["id"]),
        user_id=ids.get_or_create("users", row.get("user_id")),
        plan_id=ids.get_or_create("plans", row.get("plan_id")),
        plan_name=text(plan.get("name")) if plan else "",
        plan_type=text(plan.get("plan_type")) if plan else "",
        status=status,
        is_active=running,
        start_date=start.isoformat(),
        end_date=end.isoformat() if end else None,
        renewal_date=end.isoformat() if end and running else None,
        amount=parse_amount(plan.get("amount")) if plan else 0.0,
        currency=defaults.currency,
        duration=duration_text(plan.get("duration_months")) if plan else "",
        usage={
            "revealedCount": int(number(row.get("revealed_count"))),
            "respondCount": int(number(row.get("respond_count"))),
        },
        listing={
            "id": ids.get("listings", row.get("type_id")),
            "name": text(row.get("type_name")),
        },
        legacy_id=row["id"],
    )
