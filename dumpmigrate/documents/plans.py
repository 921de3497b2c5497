"""Subscription plan documents from ``plans`` and ``plan_features``."""

from __future__ import annotations

import dataclasses
from typing import Any, Sequence

from ..config import Defaults
from ..idmap import IdentifierMapper
from .common import Document, Row, duration_text, flag, number, parse_amount, text

PLAN_TYPES = ("premium", "standard", "free", "business")

BILLING_CYCLES = {1: "monthly", 3: "quarterly", 6: "biannual"}


@dataclasses.dataclass
class PlanDocument(Document):
    id: str
    name: str
    type: str
    price: float
    currency: str
    duration_months: int
    duration: str
    billing_cycle: str
    price_per_month: float
    features: list[str]
    limits: dict[str, Any]
    status: str
    legacy_id: Any


def plan_type(value: Any) -> str:
    raw = text(value).strip().lower()
    return raw if raw in PLAN_TYPES else "basic"


def billing_cycle(months: int) -> str:
    return BILLING_CYCLES.get(months, "annual")


def build_plan(
    row: Row,
    ids: IdentifierMapper,
    defaults: Defaults,
    *,
    features: Sequence[Row] = (),
) -> PlanDocument:
    price = parse_amount(row.get("amount"))
    months = max(1, int(number(row.get("duration_months"), 1)))
    return PlanDocument(
        id=ids.get_or_create("plans", row["id"]),
        name=text(row.get("name")),
        type=plan_type(row.get("plan_type")),
        price=price,
        currency=defaults.currency,
        duration_months=months,
        duration=duration_text(months),
        billing_cycle=billing_cycle(months),
        price_per_month=round(price / months, 2),
        features=[text(f.get("features_name")) for f in features if f.get("features_name")],
        limits={
            "revealLimit": int(number(row.get("reveal_limit"))),
            "sendLimit": int(number(row.get("send_limit"))),
            "showStats": flag(row.get("show_stats")),
            "promotionPriority": int(number(row.get("promotion_priority"))),
        },
        status="active" if flag(row.get("status")) else "inactive",
        legacy_id=row["id"],
    )
