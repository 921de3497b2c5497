import datetime

import pytest

from dumpmigrate.config import Defaults
from dumpmigrate.documents import (
    ListingLookups,
    build_business,
    build_chatroom,
    build_franchise,
    build_investor,
    build_message,
    build_plan,
    build_review,
    build_subscription,
    build_transaction,
    build_user,
    merge_transaction_sources,
    register_references,
)
from dumpmigrate.documents.common import number, parse_amount, to_timestamp
from dumpmigrate.documents.listings import listing_status
from dumpmigrate.documents.messaging import file_kind
from dumpmigrate.documents.transactions import listing_type, transaction_status

DEFAULTS = Defaults()

REFERENCE_TABLES = {
    "cities": [{"id": 4, "name": "Pune", "state_id": 2}],
    "states": [{"id": 2, "name": "Maharashtra"}],
    "industries": [{"id": 1, "name": "Food"}],
    "sub_industries": [{"id": 8, "name": "Cafe", "industry_id": 1}],
    "business_media": [
        {"id": 1, "business_id": 5, "type": "image", "url": "a.jpg"},
        {"id": 2, "business_id": 5, "type": "video", "url": "v.mp4"},
    ],
    "franchise_formats": [
        {"id": 1, "franchise_id": 6, "invest_min": "5,00,000", "invest_max": "10,00,000", "brand_fee": "1,00,000"},
        {"id": 2, "franchise_id": 6, "invest_min": "2,00,000", "invest_max": "4,00,000", "brand_fee": "50,000"},
    ],
    "franchise_locations": [{"id": 1, "franchise_id": 6, "city_id": 4}],
    "investor_sub_industries": [{"id": 1, "investor_id": 7, "sub_industry_id": 8}],
}


def test_timestamps():
    assert to_timestamp("2023-05-01 10:00:00") == "2023-05-01T10:00:00+00:00"
    assert to_timestamp("0000-00-00 00:00:00", "fallback") == "fallback"
    assert to_timestamp(None, "fallback") == "fallback"
    assert to_timestamp("not a date", "fallback") == "fallback"


def test_parse_amount():
    assert parse_amount("Rs. 1,499") == 1499.0
    assert parse_amount("999.50") == 999.5
    assert parse_amount(None) == 0.0
    assert parse_amount("free") == 0.0


def test_number_rejects_non_finite_values():
    assert number("1e999") == 0
    assert number(float("inf"), 5) == 5
    assert number("nan") == 0
    assert number("12") == 12
    assert number("2.5") == 2.5


def test_build_user(mapper):
    row = {
        "id": 1,
        "email": " Asha@Example.com ",
        "is_email_verified": 1,
        "f_name": "Asha",
        "l_name": "Rao",
        "user_status": "Blocked",
        "user_role": "admin",
        "fb_uid": "fb-1",
        "joining_date": "2023-05-01 10:00:00",
    }
    logins = [{"date_login": "2024-01-02 00:00:00"}, {"date_login": "2024-03-01 08:00:00"}]
    plans = [{"id": 9, "user_id": 1, "plan_id": 2, "status": 1, "plan_activate_date": "2024-01-01"}]

    doc = build_user(row, mapper, DEFAULTS, logins=logins, user_plans=plans)
    assert doc.id == mapper.get("users", 1)
    assert doc.email == "asha@example.com"
    assert doc.display_name == "Asha Rao"
    assert doc.status == "suspended"
    assert doc.role == "admin"
    assert doc.auth_providers == ["password", "facebook"]
    assert doc.last_login_at == "2024-03-01T08:00:00+00:00"
    assert doc.login_count == 2
    assert doc.active_plan_id == mapper.get("plans", 2)
    assert doc.active_subscription_id == mapper.get("subscriptions", 9)

    data = doc.to_dict()
    assert data["displayName"] == "Asha Rao"
    assert data["emailVerified"] is True
    assert data["address"]["country"] == "India"
    assert data["legacyId"] == 1


def test_build_user_defaults(mapper):
    doc = build_user({"id": 2}, mapper, DEFAULTS)
    assert doc.created_at == DEFAULTS.created_at
    assert doc.status == "active"
    assert doc.active_plan_id is None
    assert doc.last_login_at is None


def test_build_plan(mapper):
    row = {"id": 2, "name": "Gold", "plan_type": "Premium", "amount": "Rs. 1,499", "duration_months": 3, "status": 1}
    features = [{"plan_id": 2, "features_name": "Unlimited reveals"}]
    doc = build_plan(row, mapper, DEFAULTS, features=features)
    assert doc.type == "premium"
    assert doc.price == 1499.0
    assert doc.billing_cycle == "quarterly"
    assert doc.duration == "3 months"
    assert doc.price_per_month == pytest.approx(499.67)
    assert doc.features == ["Unlimited reveals"]
    assert doc.status == "active"


def test_plan_type_falls_back_to_basic(mapper):
    doc = build_plan({"id": 3, "plan_type": "gold", "duration_months": 12}, mapper, DEFAULTS)
    assert doc.type == "basic"
    assert doc.billing_cycle == "annual"
    assert doc.duration == "12 months"


@pytest.mark.parametrize(
    "value, expected",
    [(1, "active"), (0, "inactive"), ("Pending", "pending"), ("removed", "deleted"), ("odd", "active"), (None, "active")],
)
def test_listing_status(value, expected):
    assert listing_status(value) == expected


def test_build_business(mapper):
    register_references(mapper, REFERENCE_TABLES)
    lookups = ListingLookups.from_tables(REFERENCE_TABLES)
    row = {
        "id": 5,
        "company_name": "Chai Point",
        "city_id": 4,
        "sub_industry_id": 8,
        "user_id": 1,
        "status": "active",
        "is_premium": 1,
        "annual_sales": "12,00,000",
        "date_posted": "2023-02-01",
    }
    doc = build_business(row, mapper, DEFAULTS, lookups)
    assert doc.id == mapper.get("businesses", 5)
    assert doc.id == mapper.get("listings", 5)
    assert doc.type == "business"
    assert doc.location["city"] == "Pune"
    assert doc.location["state"] == "Maharashtra"
    assert doc.location["cityId"] == mapper.get("cities", 4)
    assert doc.industry["industry"] == "Food"
    assert doc.industry["subIndustryId"] == mapper.get("sub_industries", 8)
    assert doc.media["images"] == [{"id": 1, "url": "a.jpg"}]
    assert doc.media["videos"] == [{"id": 2, "url": "v.mp4"}]
    assert doc.owner_id == mapper.get("users", 1)
    assert doc.is_premium is True
    assert doc.details["annualSales"] == 1200000.0
    assert doc.updated_at == doc.created_at == "2023-02-01T00:00:00+00:00"


def test_build_franchise(mapper):
    register_references(mapper, REFERENCE_TABLES)
    lookups = ListingLookups.from_tables(REFERENCE_TABLES)
    doc = build_franchise({"id": 6, "brand_name": "Dosa Co", "headquarter_city_id": 4}, mapper, DEFAULTS, lookups)
    assert doc.type == "franchise"
    assert doc.details["investment"]["min"] == 200000.0
    assert doc.details["investment"]["max"] == 1000000.0
    assert doc.details["investment"]["brandFee"] == 50000.0
    assert doc.details["expansionCityIds"] == [mapper.get("cities", 4)]


def test_build_investor(mapper):
    register_references(mapper, REFERENCE_TABLES)
    lookups = ListingLookups.from_tables(REFERENCE_TABLES)
    doc = build_investor({"id": 7, "full_name": "Ravi", "investment_min": "10 lakh"}, mapper, DEFAULTS, lookups)
    assert doc.type == "investor"
    assert doc.title == "Ravi"
    assert doc.details["subIndustryIds"] == [mapper.get("sub_industries", 8)]
    assert doc.details["investment"]["min"] == 10.0
    assert doc.location["cityId"] is None


def test_build_review(mapper):
    listing = mapper.get_or_create("businesses", 5)
    doc = build_review({"id": 1, "article_id": 5, "message": "Great", "status": 1}, mapper, DEFAULTS)
    assert doc.listing_id == listing
    assert doc.status == "live"
    assert doc.is_public is True
    assert doc.author_name == "Anonymous"

    pending = build_review({"id": 2, "article_id": 99, "status": 0}, mapper, DEFAULTS)
    assert pending.status == "pending"
    assert pending.listing_id is None


PLANS = {2: {"id": 2, "name": "Gold", "plan_type": "premium", "amount": "1,499", "duration_months": 3}}


def test_build_subscription_active(mapper):
    row = {"id": 9, "user_id": 1, "plan_id": 2, "status": 1, "plan_activate_date": "2024-01-15"}
    now = datetime.datetime(2024, 2, 1, tzinfo=datetime.timezone.utc)
    doc = build_subscription(row, mapper, DEFAULTS, plans=PLANS, now=now)
    assert doc.status == "active"
    assert doc.is_active is True
    assert doc.start_date == "2024-01-15T00:00:00+00:00"
    assert doc.end_date == "2024-04-15T00:00:00+00:00"
    assert doc.renewal_date == doc.end_date
    assert doc.amount == 1499.0
    assert doc.duration == "3 months"


def test_build_subscription_expired_and_cancelled(mapper):
    now = datetime.datetime(2025, 1, 1, tzinfo=datetime.timezone.utc)
    row = {"id": 9, "user_id": 1, "plan_id": 2, "status": 1, "plan_activate_date": "2024-01-15"}
    assert build_subscription(row, mapper, DEFAULTS, plans=PLANS, now=now).status == "expired"
    row["status"] = 0
    cancelled = build_subscription(row, mapper, DEFAULTS, plans=PLANS, now=now)
    assert cancelled.status == "cancelled"
    assert cancelled.renewal_date is None


def test_merge_transaction_sources():
    invoices = [{"id": 1, "order_id": "ORD1", "amount": "500"}]
    payments = [
        {"id": 7, "txnid": "ORD1", "mode": "CC"},
        {"id": 8, "txnid": "", "amount": "250", "status": "failure", "order_date": "2024-02-01"},
    ]
    merged = merge_transaction_sources(invoices, payments)
    assert len(merged) == 2
    assert merged[0]["payment_data"]["id"] == 7
    assert merged[1]["id"] == "payment_8"
    assert merged[1]["order_id"] == "payment_8"
    assert merged[1]["source"] == "payment"
    assert merged[1]["user_id"] == 0


@pytest.mark.parametrize(
    "value, expected",
    [("Success", "completed"), ("successful", "completed"), ("FAILURE", "failed"), ("refunded", "refunded"), ("", "pending"), ("queued", "pending")],
)
def test_transaction_status(value, expected):
    assert transaction_status(value) == expected


def test_build_transaction(mapper):
    user_id = mapper.get_or_create("users", 3)
    invoices = [
        {
            "id": 1,
            "order_id": "ORD1",
            "user_id": 3,
            "user_plan_id": 9,
            "type": "Plan purchase",
            "amount": "500",
            "payment_status": "Success",
            "type_name": "Franchise listing",
            "date_time": "2024-01-10 12:00:00",
        }
    ]
    payments = [
        {"id": 7, "txnid": "ORD1", "mode": "CC", "card_no": "4111 1111 1111 1234"},
        {"id": 8, "txnid": "", "amount": "250", "status": "failure", "order_date": "2024-02-01"},
    ]
    merged = merge_transaction_sources(invoices, payments)
    users = {3: {"id": 3, "f_name": "Mina", "l_name": "K", "email": "mina@example.com"}}
    user_plans = {9: {"id": 9, "plan_id": 2}}

    first = build_transaction(merged[0], mapper, DEFAULTS, users=users, user_plans=user_plans, plans=PLANS)
    assert first.user_id == user_id
    assert first.type == "subscription"
    assert first.status == "completed"
    assert first.amount == 500
    assert first.completed_at == "2024-01-10T12:00:00+00:00"
    assert first.payment["cardLastFour"] == "1234"
    assert first.subscription["planName"] == "Gold"
    assert first.listing["type"] == "franchise"
    assert first.billing_info["name"] == "Mina K"

    second = build_transaction(merged[1], mapper, DEFAULTS, users=users, user_plans=user_plans, plans=PLANS)
    assert second.type == "payment"
    assert second.status == "failed"
    assert second.user_id is None
    assert second.id == mapper.get("transactions", "payment_8")
    assert second.id != first.id


def test_listing_type_keywords():
    assert listing_type("Business for sale") == "business"
    assert listing_type("Digital asset") == "digital_asset"
    assert listing_type(None) == ""


def test_build_chatroom(mapper):
    owner = mapper.get_or_create("users", 1)
    partner = mapper.get_or_create("users", 2)
    listing = mapper.get_or_create("franchise", 6)
    users = {1: {"id": 1, "full_name": "Owner"}, 2: {"id": 2, "f_name": "Par", "l_name": "Tner"}}
    row = {"id": 11, "chat_owner": 1, "chat_partner": 2, "status": 2, "type_id": 6, "type_name": "Dosa Co"}

    doc = build_chatroom(row, mapper, DEFAULTS, users=users)
    assert doc.participants == [owner, partner]
    assert [p["name"] for p in doc.participant_details] == ["Owner", "Par Tner"]
    assert doc.status == "blocked"
    assert doc.is_deleted is True
    assert doc.listing["id"] == listing
    assert doc.updated_at == DEFAULTS.updated_at

    row["status"] = 0
    assert build_chatroom(row, mapper, DEFAULTS, users=users).status == "archived"
    row["status"] = 1
    assert build_chatroom(row, mapper, DEFAULTS, users=users).status == "active"


@pytest.mark.parametrize(
    "name, expected",
    [("photo.JPG", "image"), ("cv.pdf", "document"), ("clip.mov", "video"), ("archive.zip", "file"), ("noext", "file")],
)
def test_file_kind(name, expected):
    assert file_kind(name) == expected


def test_build_message(mapper):
    chatroom = mapper.get_or_create("chatrooms", 11)
    sender = mapper.get_or_create("users", 1)
    chat_files = {3: {"id": 3, "ext": "pdf", "path": "/files/x", "filename": "", "size": "2048"}}
    row = {"id": 50, "chat_id": 11, "sender": 1, "recipient": 2, "msg_text": "hi", "msg_file": 3, "msg_status": 0, "msg_date": "2024-01-01 09:00:00"}

    doc = build_message(row, mapper, DEFAULTS, chat_files=chat_files)
    assert doc.chatroom_id == chatroom
    assert doc.sender_id == sender
    assert doc.recipient_id is None
    assert doc.type == "document"
    assert doc.attachment["size"] == 2048
    assert doc.read is True
    assert doc.read_at == doc.sent_at == "2024-01-01T09:00:00+00:00"

    row.update(msg_file=None, msg_status=2)
    deleted = build_message(row, mapper, DEFAULTS, chat_files=chat_files)
    assert deleted.type == "text"
    assert deleted.is_deleted is True
    assert deleted.read is False
