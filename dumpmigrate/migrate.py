"""Run the collection migrations over a parsed dump."""

from __future__ import annotations

import dataclasses
import datetime
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, Mapping, Sequence

from . import MigrationError
from .batch import BatchError, BatchResult, process_batch
from .config import MigrationConfig
from .documents import (
    LISTING_BUILDERS,
    ListingLookups,
    build_chatroom,
    build_message,
    build_plan,
    build_review,
    build_subscription,
    build_transaction,
    build_user,
    merge_transaction_sources,
    register_references,
)
from .documents.common import Row, group_by, index_by
from .idmap import IdentifierMapper
from .sink import DocumentOperation, DocumentSink

LOGGER = logging.getLogger(__name__)

# Later collections resolve references created by earlier ones.
MIGRATION_ORDER = (
    "users",
    "plans",
    "listings",
    "reviews",
    "subscriptions",
    "transactions",
    "chatrooms",
    "messages",
)

REQUIRED_TABLES = {
    "users": ("users", "login_history", "user_plans"),
    "plans": ("plans", "plan_features"),
    "listings": (
        "industries",
        "sub_industries",
        "cities",
        "states",
        "businesses",
        "business_media",
        "franchise",
        "franchise_media",
        "franchise_formats",
        "franchise_locations",
        "investors",
        "investor_sub_industries",
        "investor_location_preference",
    ),
    "reviews": ("comments",),
    "subscriptions": ("user_plans", "plans"),
    "transactions": ("invoice", "payment", "users", "user_plans", "plans"),
    "chatrooms": ("userchat", "users"),
    "messages": ("userchat_msg", "chat_files"),
}


@dataclasses.dataclass
class CollectionReport:
    collection: str
    source_rows: int = 0
    processed: int = 0
    documents: int = 0
    written: int = 0
    errors: list[BatchError] = dataclasses.field(default_factory=list)
    failure: str | None = None

    @property
    def error_count(self) -> int:
        return len(self.errors) + (1 if self.failure else 0)


@dataclasses.dataclass
class MigrationReport:
    dry_run: bool
    started_at: str = dataclasses.field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc).isoformat()
    )
    collections: dict[str, CollectionReport] = dataclasses.field(default_factory=dict)
    mappings: int = 0

    @property
    def total_errors(self) -> int:
        return sum(c.error_count for c in self.collections.values())

    @property
    def failed_collections(self) -> list[str]:
        return [name for name, c in self.collections.items() if c.failure]

    @property
    def total_documents(self) -> int:
        return sum(c.documents for c in self.collections.values())


def report_to_dict(report: MigrationReport) -> dict[str, Any]:
    return {
        "dry_run": report.dry_run,
        "started_at": report.started_at,
        "mappings": report.mappings,
        "total_documents": report.total_documents,
        "total_errors": report.total_errors,
        "collections": {
            name: {
                "source_rows": c.source_rows,
                "processed": c.processed,
                "documents": c.documents,
                "written": c.written,
                "errors": [dataclasses.asdict(e) for e in c.errors],
                "failure": c.failure,
            }
            for name, c in report.collections.items()
        },
    }


class Migration:
    """One migration run: parsed tables, a shared mapper and an optional sink."""

    def __init__(
        self,
        tables: Mapping[str, Sequence[Row]],
        ids: IdentifierMapper,
        config: MigrationConfig,
        *,
        sink: DocumentSink | None = None,
        dry_run: bool = False,
        limit: int | None = None,
        progress=None,
        now: datetime.datetime | None = None,
    ):
        self.tables = tables
        self.ids = ids
        self.config = config
        self.defaults = config.defaults
        self.sink = sink
        self.dry_run = dry_run
        self.limit = limit
        self.progress = progress
        self.now = now

    def rows(self, table: str) -> list[Row]:
        rows = self.tables.get(table)
        if rows is None:
            LOGGER.warning("Table %s was not parsed, treating it as empty", table)
            return []
        return list(rows)

    def _limited(self, rows: list[Row]) -> list[Row]:
        if self.limit is not None and self.limit >= 0:
            return rows[: self.limit]
        return rows

    def _run(
        self,
        collection: str,
        rows: list[Row],
        build: Callable[[Row], Any],
        *,
        label: str | None = None,
    ) -> BatchResult:
        def transform(row: Row) -> DocumentOperation:
            document = build(row)
            if document.id is None:
                raise ValueError(f"{collection} row has no usable source id")
            return DocumentOperation(collection, document.id, document.to_dict())

        return process_batch(
            self._limited(rows),
            transform,
            collection=collection,
            sink=self.sink,
            batch_size=self.config.batch_size(collection),
            dry_run=self.dry_run,
            progress=self.progress,
            label=label,
        )

    def migrate_users(self) -> BatchResult:
        logins = group_by(self.rows("login_history"), "user_id")
        user_plans = group_by(self.rows("user_plans"), "user_id")
        return self._run(
            "users",
            self.rows("users"),
            lambda row: build_user(
                row,
                self.ids,
                self.defaults,
                logins=logins.get(row.get("id"), ()),
                user_plans=user_plans.get(row.get("id"), ()),
            ),
        )

    def migrate_plans(self) -> BatchResult:
        features = group_by(self.rows("plan_features"), "plan_id")
        return self._run(
            "plans",
            self.rows("plans"),
            lambda row: build_plan(
                row, self.ids, self.defaults, features=features.get(row.get("id"), ())
            ),
        )

    def migrate_listings(self) -> BatchResult:
        registered = register_references(self.ids, self.tables)
        LOGGER.info("Registered %d reference identifiers for listings", registered)
        lookups = ListingLookups.from_tables(self.tables)

        def run_source(source: str) -> BatchResult:
            build = functools.partial(
                LISTING_BUILDERS[source], ids=self.ids, defaults=self.defaults, lookups=lookups
            )
            return self._run(
                "listings", self.rows(source), build, label=f"Migrating listings ({source})"
            )

        result = BatchResult()
        with ThreadPoolExecutor(max_workers=len(LISTING_BUILDERS)) as executor:
            for partial in executor.map(run_source, LISTING_BUILDERS):
                result = result.merge(partial)
        return result

    def migrate_reviews(self) -> BatchResult:
        return self._run(
            "reviews",
            self.rows("comments"),
            lambda row: build_review(row, self.ids, self.defaults),
        )

    def migrate_subscriptions(self) -> BatchResult:
        plans = index_by(self.rows("plans"))
        return self._run(
            "subscriptions",
            self.rows("user_plans"),
            lambda row: build_subscription(
                row, self.ids, self.defaults, plans=plans, now=self.now
            ),
        )

    def migrate_transactions(self) -> BatchResult:
        users = index_by(self.rows("users"))
        user_plans = index_by(self.rows("user_plans"))
        plans = index_by(self.rows("plans"))
        merged = merge_transaction_sources(self.rows("invoice"), self.rows("payment"))
        return self._run(
            "transactions",
            merged,
            lambda row: build_transaction(
                row, self.ids, self.defaults, users=users, user_plans=user_plans, plans=plans
            ),
        )

    def migrate_chatrooms(self) -> BatchResult:
        users = index_by(self.rows("users"))
        return self._run(
            "chatrooms",
            self.rows("userchat"),
            lambda row: build_chatroom(row, self.ids, self.defaults, users=users),
        )

    def migrate_messages(self) -> BatchResult:
        chat_files = index_by(self.rows("chat_files"))
        return self._run(
            "messages",
            self.rows("userchat_msg"),
            lambda row: build_message(row, self.ids, self.defaults, chat_files=chat_files),
        )

    def source_count(self, collection: str) -> int:
        if collection == "listings":
            return sum(len(self.rows(source)) for source in LISTING_BUILDERS)
        if collection == "transactions":
            return len(self.rows("invoice")) + len(self.rows("payment"))
        return len(self.rows(REQUIRED_TABLES[collection][0]))

    def run(self, collections: Iterable[str] | None = None) -> MigrationReport:
        selected = select_collections(collections)
        report = MigrationReport(dry_run=self.dry_run)
        for collection in selected:
            LOGGER.info("Starting %s migration", collection)
            try:
                result: BatchResult = getattr(self, f"migrate_{collection}")()
            except Exception as exc:
                # A failed collection is reported; later collections still run.
                LOGGER.exception("%s migration failed", collection)
                report.collections[collection] = CollectionReport(
                    collection=collection,
                    source_rows=self.source_count(collection),
                    failure=f"{type(exc).__name__}: {exc}",
                )
                continue
            report.collections[collection] = CollectionReport(
                collection=collection,
                source_rows=self.source_count(collection),
                processed=result.processed,
                documents=len(result.operations),
                written=result.written,
                errors=list(result.errors),
            )
        report.mappings = len(self.ids)
        return report


def select_collections(collections: Iterable[str] | None) -> list[str]:
    """Return *collections* in dependency order; ``None`` selects them all."""
    if collections is None:
        return list(MIGRATION_ORDER)
    requested = set(collections)
    unknown = requested - set(MIGRATION_ORDER)
    if unknown:
        raise MigrationError(f"Unknown collection(s): {', '.join(sorted(unknown))}")
    return [c for c in MIGRATION_ORDER if c in requested]


def required_tables(collections: Iterable[str]) -> list[str]:
    """Source tables needed by *collections*, without duplicates."""
    seen: dict[str, None] = {}
    for collection in collections:
        for table in REQUIRED_TABLES[collection]:
            seen.setdefault(table)
    return list(seen)


def run_migration(
    tables: Mapping[str, Sequence[Row]],
    ids: IdentifierMapper,
    sink: DocumentSink | None = None,
    *,
    collections: Iterable[str] | None = None,
    dry_run: bool = False,
    limit: int | None = None,
    config: MigrationConfig | None = None,
    progress=None,
    now: datetime.datetime | None = None,
) -> MigrationReport:
    migration = Migration(
        tables,
        ids,
        config or MigrationConfig(),
        sink=sink,
        dry_run=dry_run,
        limit=limit,
        progress=progress,
        now=now,
    )
    return migration.run(collections)
