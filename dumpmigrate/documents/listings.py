"""Listing documents.

Businesses, franchises and investors all land in the ``listings``
collection. Each source keeps its own identifier namespace; the mapper
mirrors those identifiers into ``listings`` so reviews and chatrooms can
point at a listing without knowing which kind it is.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Mapping, Sequence

from ..config import Defaults
from ..idmap import IdentifierMapper
from .common import Document, Row, flag, group_by, index_by, number, parse_amount, text, to_timestamp

LISTING_STATUS = {
    "active": "active",
    "enabled": "active",
    "1": "active",
    "inactive": "inactive",
    "disabled": "inactive",
    "0": "inactive",
    "pending": "pending",
    "awaiting": "pending",
    "deleted": "deleted",
    "removed": "deleted",
}

# Tables whose rows are referenced by listings but are not documents themselves.
REFERENCE_TABLES = ("industries", "sub_industries", "cities", "states")


def listing_status(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return "active"
    if isinstance(value, (int, float)):
        return "active" if value == 1 else "inactive"
    return LISTING_STATUS.get(str(value).strip().lower(), "active")


def _name(row: Row | None, *keys: str) -> str:
    if not row:
        return ""
    for key in keys + ("name",):
        if row.get(key):
            return str(row[key])
    return ""


@dataclasses.dataclass
class ListingLookups:
    """Related rows indexed once per run."""

    cities: dict[Any, Row] = dataclasses.field(default_factory=dict)
    states: dict[Any, Row] = dataclasses.field(default_factory=dict)
    industries: dict[Any, Row] = dataclasses.field(default_factory=dict)
    sub_industries: dict[Any, Row] = dataclasses.field(default_factory=dict)
    business_media: dict[Any, list[Row]] = dataclasses.field(default_factory=dict)
    franchise_media: dict[Any, list[Row]] = dataclasses.field(default_factory=dict)
    franchise_formats: dict[Any, list[Row]] = dataclasses.field(default_factory=dict)
    franchise_locations: dict[Any, list[Row]] = dataclasses.field(default_factory=dict)
    investor_sub_industries: dict[Any, list[Row]] = dataclasses.field(default_factory=dict)
    investor_locations: dict[Any, list[Row]] = dataclasses.field(default_factory=dict)

    @classmethod
    def from_tables(cls, tables: Mapping[str, Sequence[Row]]) -> "ListingLookups":
        return cls(
            cities=index_by(tables.get("cities", ())),
            states=index_by(tables.get("states", ())),
            industries=index_by(tables.get("industries", ())),
            sub_industries=index_by(tables.get("sub_industries", ())),
            business_media=group_by(tables.get("business_media", ()), "business_id"),
            franchise_media=group_by(tables.get("franchise_media", ()), "franchise_id"),
            franchise_formats=group_by(tables.get("franchise_formats", ()), "franchise_id"),
            franchise_locations=group_by(tables.get("franchise_locations", ()), "franchise_id"),
            investor_sub_industries=group_by(
                tables.get("investor_sub_industries", ()), "investor_id"
            ),
            investor_locations=group_by(
                tables.get("investor_location_preference", ()), "investor_id"
            ),
        )

    def location(self, ids: IdentifierMapper, city_id: Any, **extra: str) -> dict[str, Any]:
        city = self.cities.get(city_id)
        state_id = city.get("state_id") if city else None
        return {
            "cityId": ids.get_or_create("cities", city_id),
            "city": _name(city, "city_name"),
            "stateId": ids.get_or_create("states", state_id),
            "state": _name(self.states.get(state_id), "state_name"),
            **extra,
        }

    def industry(self, ids: IdentifierMapper, sub_industry_id: Any) -> dict[str, Any]:
        sub = self.sub_industries.get(sub_industry_id)
        industry_id = sub.get("industry_id") if sub else None
        return {
            "industryId": ids.get_or_create("industries", industry_id),
            "industry": _name(self.industries.get(industry_id), "industry_name"),
            "subIndustryId": ids.get_or_create("sub_industries", sub_industry_id),
            "subIndustry": _name(sub, "sub_industry_name"),
        }


def register_references(
    ids: IdentifierMapper, tables: Mapping[str, Sequence[Row]]
) -> int:
    """Assign identifiers to every reference row before the listing passes run."""
    count = 0
    for table in REFERENCE_TABLES:
        for row in tables.get(table, ()):
            if ids.get_or_create(table, row.get("id")) is not None:
                count += 1
    return count


def _media(rows: Sequence[Row]) -> dict[str, list[dict[str, Any]]]:
    images, videos = [], []
    for row in rows:
        item = {"id": row.get("id"), "url": text(row.get("url"))}
        if text(row.get("type")).lower() == "video":
            videos.append(item)
        else:
            images.append(item)
    return {"images": images, "videos": videos}


@dataclasses.dataclass
class ListingDocument(Document):
    id: str
    type: str
    title: str
    slug: str
    description: str
    headline: str
    cover_image: str
    media: dict[str, Any]
    location: dict[str, Any]
    industry: dict[str, Any]
    owner_id: str | None
    contact: dict[str, str]
    status: str
    is_premium: bool
    is_hot: bool
    page_order: int
    details: dict[str, Any]
    created_at: str
    updated_at: str
    legacy_id: Any
    legacy_type: str


def build_business(
    row: Row, ids: IdentifierMapper, defaults: Defaults, lookups: ListingLookups
) -> ListingDocument:
    created_at = to_timestamp(row.get("date_posted"), defaults.created_at)
    return ListingDocument(
        id=ids.get_or_create("businesses", row["id"]),
        type="business",
        title=text(row.get("company_name")),
        slug=text(row.get("slug")),
        description=text(row.get("introduction")),
        headline=text(row.get("headline")),
        cover_image=text(row.get("cover_image")),
        media=_media(lookups.business_media.get(row["id"], ())),
        location=lookups.location(
            ids,
            row.get("city_id"),
            address=text(row.get("address")),
            pincode=text(row.get("pincode")),
        ),
        industry=lookups.industry(ids, row.get("sub_industry_id")),
        owner_id=ids.get_or_create("users", row.get("user_id")),
        contact={
            "name": text(row.get("contact_user_name")),
            "email": text(row.get("contact_user_email")),
            "phone": text(row.get("contact_user_mobile")),
            "designation": text(row.get("contact_user_designation")),
            "website": text(row.get("website")),
        },
        status=listing_status(row.get("status")),
        is_premium=flag(row.get("is_premium")),
        is_hot=flag(row.get("is_hot")),
        page_order=int(number(row.get("page_order"))),
        details={
            "businessType": text(row.get("business_type")),
            "entityType": text(row.get("entity_type")),
            "establishedYear": int(number(row.get("establish_year"))),
            "employeeCount": text(row.get("employee_count")),
            "annualSales": parse_amount(row.get("annual_sales")),
            "hash": text(row.get("hash")),
        },
        created_at=created_at,
        updated_at=to_timestamp(row.get("date_updated"), created_at),
        legacy_id=row["id"],
        legacy_type="businesses",
    )


def _investment_range(formats: Sequence[Row]) -> dict[str, float]:
    minimums = [parse_amount(f.get("invest_min")) for f in formats]
    maximums = [parse_amount(f.get("invest_max")) for f in formats]
    fees = [parse_amount(f.get("brand_fee")) for f in formats]
    return {
        "min": min(minimums) if minimums else 0.0,
        "max": max(maximums) if maximums else 0.0,
        "brandFee": min(fees) if fees else 0.0,
    }


def build_franchise(
    row: Row, ids: IdentifierMapper, defaults: Defaults, lookups: ListingLookups
) -> ListingDocument:
    created_at = to_timestamp(row.get("date_created"), defaults.created_at)
    formats = lookups.franchise_formats.get(row["id"], ())
    locations = lookups.franchise_locations.get(row["id"], ())
    return ListingDocument(
        id=ids.get_or_create("franchise", row["id"]),
        type="franchise",
        title=text(row.get("brand_name")),
        slug=text(row.get("slug")),
        description=text(row.get("summary")),
        headline=text(row.get("headline")),
        cover_image=text(row.get("cover_image")),
        media=_media(lookups.franchise_media.get(row["id"], ())),
        location=lookups.location(ids, row.get("headquarter_city_id")),
        industry=lookups.industry(ids, row.get("sub_industry_id")),
        owner_id=ids.get_or_create("users", row.get("user_id")),
        contact={},
        status=listing_status(row.get("status")),
        is_premium=flag(row.get("is_premium")),
        is_hot=flag(row.get("is_hot")),
        page_order=int(number(row.get("page_order"))),
        details={
            "franchiseType": text(row.get("type")),
            "totalOutlets": int(number(row.get("total_outlets"))),
            "totalFranchises": int(number(row.get("total_franchise"))),
            "establishedYear": int(number(row.get("establish_year"))),
            "investment": {**_investment_range(formats), "currency": defaults.currency},
            "expansionCityIds": ids.map_ids(
                "cities", [loc.get("city_id") for loc in locations]
            ),
        },
        created_at=created_at,
        updated_at=to_timestamp(row.get("date_updated"), created_at),
        legacy_id=row["id"],
        legacy_type="franchise",
    )


def build_investor(
    row: Row, ids: IdentifierMapper, defaults: Defaults, lookups: ListingLookups
) -> ListingDocument:
    created_at = to_timestamp(row.get("date_created"), defaults.created_at)
    sub_industries = lookups.investor_sub_industries.get(row["id"], ())
    locations = lookups.investor_locations.get(row["id"], ())
    return ListingDocument(
        id=ids.get_or_create("investors", row["id"]),
        type="investor",
        title=text(row.get("full_name")),
        slug=text(row.get("slug")),
        description=text(row.get("about")),
        headline=text(row.get("headline")),
        cover_image=text(row.get("cover_image")),
        media={"images": [], "videos": []},
        location=lookups.location(ids, row.get("city_id")),
        industry=lookups.industry(ids, None),
        owner_id=ids.get_or_create("users", row.get("user_id")),
        contact={},
        status=listing_status(row.get("status")),
        is_premium=flag(row.get("is_premium")),
        is_hot=flag(row.get("is_hot")),
        page_order=int(number(row.get("page_order"))),
        details={
            "investment": {
                "min": parse_amount(row.get("investment_min")),
                "max": parse_amount(row.get("investment_max")),
                "stake": text(row.get("investment_stake")),
                "currency": defaults.currency,
            },
            "preference": text(row.get("investor_preference")),
            "factors": text(row.get("factors")),
            "subIndustryIds": ids.map_ids(
                "sub_industries", [s.get("sub_industry_id") for s in sub_industries]
            ),
            "preferredCityIds": ids.map_ids(
                "cities", [loc.get("city_id") for loc in locations]
            ),
        },
        created_at=created_at,
        updated_at=to_timestamp(row.get("date_updated"), created_at),
        legacy_id=row["id"],
        legacy_type="investors",
    )


LISTING_BUILDERS = {
    "businesses": build_business,
    "franchise": build_franchise,
    "investors": build_investor,
}
