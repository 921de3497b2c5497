"""Review documents from listing ``comments``."""

from __future__ import annotations

import dataclasses
from typing import Any

from ..config import Defaults
from ..idmap import IdentifierMapper
from .common import Document, Row, flag, text, to_timestamp


@dataclasses.dataclass
class ReviewDocument(Document):
    id: str
    listing_id: str | None
    user_id: str | None
    rating: int
    text: str
    author_name: str
    is_public: bool
    status: str
    created_at: str
    legacy_id: Any


def build_review(row: Row, ids: IdentifierMapper, defaults: Defaults) -> ReviewDocument:
    # Comments reference listings without saying which kind.
    live = flag(row.get("status"))
    return ReviewDocument(
        id=ids.get_or_create("reviews", row["id"]),
        listing_id=ids.get("listings", row.get("article_id")),
        user_id=None,
        rating=0,
        text=text(row.get("message")),
        author_name=text(row.get("name"), "Anonymous"),
        is_public=live,
        status="live" if live else "pending",
        created_at=to_timestamp(row.get("doc"), defaults.created_at),
        legacy_id=row["id"],
    )
