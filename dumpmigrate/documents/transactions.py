"""Transaction documents from ``invoice`` rows merged with ``payment`` rows.

An invoice and a payment describe the same transaction when the invoice
``order_id`` equals the payment ``txnid``. Payments without a matching
invoice become transactions of their own.
"""

from __future__ import annotations

import dataclasses
import re
from typing import Any, Sequence

from ..config import Defaults
from ..idmap import IdentifierMapper
from .common import Document, Row, full_name, number, text, to_timestamp

STATUS_MAP = {
    "completed": "completed",
    "success": "completed",
    "successful": "completed",
    "failed": "failed",
    "failure": "failed",
    "refunded": "refunded",
}

TYPE_KEYWORDS = (
    (("subscription", "plan"), "subscription"),
    (("connect", "message"), "connect_purchase"),
    (("refund",), "refund"),
    (("promotion", "feature"), "listing_promotion"),
)

LISTING_TYPE_KEYWORDS = (
    ("business", "business"),
    ("franchise", "franchise"),
    ("investor", "investor"),
    ("startup", "startup"),
    ("digital", "digital_asset"),
)

CARD_FIELDS = ("card_no", "cardno", "card_number", "cardnumber")
UPI_FIELDS = ("upi_id", "upiid", "vpa")


def merge_transaction_sources(
    invoices: Sequence[Row], payments: Sequence[Row]
) -> list[Row]:
    """Attach each payment to its invoice, or turn it into a standalone row."""
    merged = [{**invoice, "source": "invoice", "payment_data": None} for invoice in invoices]
    by_order: dict[Any, int] = {}
    for index, row in enumerate(merged):
        if row.get("order_id"):
            by_order[row["order_id"]] = index

    for payment in payments:
        txnid = payment.get("txnid")
        if txnid and txnid in by_order:
            merged[by_order[txnid]]["payment_data"] = payment
            continue
        merged.append(
            {
                # Payment ids share no namespace with invoice ids.
                "id": f"payment_{payment.get('id')}",
                "user_id": 0,
                "type_id": 0,
                "order_id": txnid or f"payment_{payment.get('id')}",
                "user_plan_id": 0,
                "transaction_id": text(payment.get("payuMoneyId")),
                "type": "payment",
                "amount": payment.get("amount"),
                "date_time": payment.get("order_date"),
                "payment_status": payment.get("status"),
                "source": "payment",
                "payment_data": payment,
            }
        )
    return merged


def transaction_status(value: Any) -> str:
    if value is None or value == "":
        return "pending"
    return STATUS_MAP.get(str(value).strip().lower(), "pending")


def transaction_type(row: Row, user_plan: Row | None) -> str:
    raw = row.get("type")
    if isinstance(raw, str):
        lowered = raw.lower()
        for keywords, kind in TYPE_KEYWORDS:
            if any(k in lowered for k in keywords):
                return kind
    if row.get("user_plan_id") and user_plan:
        return "subscription"
    if row.get("source") == "payment":
        return "payment"
    return "subscription"


def listing_type(type_name: Any) -> str:
    lowered = text(type_name).lower()
    for keyword, kind in LISTING_TYPE_KEYWORDS:
        if keyword in lowered:
            return kind
    return ""


def card_last_four(payment: Row | None) -> str:
    if not payment or not payment.get("mode"):
        return ""
    for field in CARD_FIELDS:
        value = payment.get(field)
        if isinstance(value, str):
            digits = re.sub(r"\D", "", value)
            if len(digits) >= 4:
                return digits[-4:]
    return ""


def upi_id(payment: Row | None) -> str:
    if not payment or not payment.get("mode"):
        return ""
    for field in UPI_FIELDS:
        value = payment.get(field)
        if isinstance(value, str) and value:
            return value
    return ""


@dataclasses.dataclass
class TransactionDocument(Document):
    id: str
    user_id: str | None
    type: str
    amount: int | float
    currency: str
    status: str
    source: str
    subscription: dict[str, Any]
    listing: dict[str, Any]
    payment: dict[str, Any]
    billing_info: dict[str, Any]
    created_at: str
    completed_at: str | None
    refunded_at: str | None
    legacy_id: Any


def build_transaction(
    row: Row,
    ids: IdentifierMapper,
    defaults: Defaults,
    *,
    users: dict[Any, Row],
    user_plans: dict[Any, Row],
    plans: dict[Any, Row],
) -> TransactionDocument:
    payment = row.get("payment_data") or {}
    user = users.get(row.get("user_id"))
    user_plan = user_plans.get(row.get("user_plan_id"))
    plan = plans.get(user_plan.get("plan_id")) if user_plan else None
    status = transaction_status(row.get("payment_status"))
    created_at = to_timestamp(
        row.get("date_time") or payment.get("order_date"), defaults.created_at
    )

    return TransactionDocument(
        id=ids.get_or_create("transactions", row["id"]),
        user_id=ids.get("users", row.get("user_id")),
        type=transaction_type(row, user_plan),
        amount=number(row.get("amount")),
        currency=defaults.currency,
        status=status,
        source=text(row.get("source"), "invoice"),
        subscription={
            "id": ids.get("subscriptions", row.get("user_plan_id")),
            "planId": ids.get("plans", user_plan.get("plan_id")) if user_plan else None,
            "planName": text(plan.get("name")) if plan else "",
            "planType": text(plan.get("plan_type")) if plan else "",
        },
        listing={
            "id": ids.get("listings", row.get("type_id")),
            "name": text(row.get("type_name")),
            "type": listing_type(row.get("type_name")),
        },
        payment={
            "method": text(payment.get("mode"), "online"),
            "gatewayTransactionId": text(row.get("transaction_id"))
            or text(payment.get("payuMoneyId")),
            "invoiceId": text(row.get("order_id")),
            "cardLastFour": card_last_four(payment),
            "upiId": upi_id(payment),
        },
        billing_info={
            "name": full_name(user),
            "email": text(user.get("email")) if user else text(payment.get("email")),
            "phone": text(user.get("mobile")) if user else "",
            "address": {
                "line1": text(user.get("address")) if user else "",
                "city": text(user.get("city_name")) if user else "",
                "state": text(user.get("state")) if user else "",
                "postalCode": text(user.get("pincode")) if user else "",
                "country": defaults.country,
            },
        },
        created_at=created_at,
        completed_at=created_at if status == "completed" else None,
        refunded_at=created_at if status == "refunded" else None,
        legacy_id=row["id"],
    )
