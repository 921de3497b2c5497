"""Migration settings: defaults, an optional JSON file, then environment."""

from __future__ import annotations

import dataclasses
import json
import os
import uuid
from typing import Any, Mapping

from . import ConfigError
from .idmap import DEFAULT_NAMESPACE, LISTING_ALIASES

ENV_PREFIX = "DUMPMIGRATE_"

DEFAULT_TABLES = (
    "users",
    "login_history",
    "plans",
    "plan_features",
    "cities",
    "states",
    "industries",
    "sub_industries",
    "businesses",
    "business_media",
    "franchise",
    "franchise_media",
    "franchise_formats",
    "franchise_locations",
    "investors",
    "investor_sub_industries",
    "investor_location_preference",
    "comments",
    "user_plans",
    "invoice",
    "payment",
    "userchat",
    "userchat_msg",
    "chat_files",
)

DEFAULT_BATCH_SIZES = {
    "users": 500,
    "plans": 500,
    "listings": 200,
    "reviews": 500,
    "subscriptions": 500,
    "transactions": 500,
    "chatrooms": 500,
    "messages": 1000,
}


@dataclasses.dataclass(frozen=True)
class Defaults:
    created_at: str = "2024-01-01T00:00:00+00:00"
    updated_at: str = "2024-01-01T00:00:00+00:00"
    status: str = "active"
    country: str = "India"
    currency: str = "INR"


@dataclasses.dataclass
class MigrationConfig:
    tables: tuple[str, ...] = DEFAULT_TABLES
    listing_aliases: frozenset[str] = LISTING_ALIASES
    namespace: uuid.UUID = DEFAULT_NAMESPACE
    batch_sizes: dict[str, int] = dataclasses.field(
        default_factory=lambda: dict(DEFAULT_BATCH_SIZES)
    )
    defaults: Defaults = dataclasses.field(default_factory=Defaults)
    detect_booleans: bool = False
    dump_path: str | None = None
    id_map_path: str | None = "data/id-mappings.json"
    output_dir: str = "exported-documents"
    diagnostics_path: str | None = "sql-parse-diagnostics.log"
    log_file: str | None = None

    def batch_size(self, collection: str) -> int:
        return self.batch_sizes.get(collection, 500)


_ENV_KEYS = {
    "DUMP": "dump_path",
    "ID_MAP": "id_map_path",
    "OUTPUT_DIR": "output_dir",
    "DIAGNOSTICS": "diagnostics_path",
    "LOG_FILE": "log_file",
    "NAMESPACE": "namespace",
}


def _coerce(config: MigrationConfig, key: str, value: Any) -> Any:
    if key == "namespace":
        try:
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        except ValueError as exc:
            raise ConfigError(f"Invalid namespace UUID: {value!r}") from exc
    if key == "tables":
        if not isinstance(value, (list, tuple)):
            raise ConfigError("'tables' must be a list of table names")
        return tuple(str(v) for v in value)
    if key == "listing_aliases":
        if not isinstance(value, (list, tuple, set, frozenset)):
            raise ConfigError("'listing_aliases' must be a list of entity types")
        return frozenset(str(v) for v in value)
    if key == "batch_sizes":
        if not isinstance(value, Mapping):
            raise ConfigError("'batch_sizes' must be an object")
        merged = dict(config.batch_sizes)
        merged.update({str(k): int(v) for k, v in value.items()})
        return merged
    if key == "defaults":
        if not isinstance(value, Mapping):
            raise ConfigError("'defaults' must be an object")
        try:
            return dataclasses.replace(config.defaults, **value)
        except TypeError as exc:
            raise ConfigError(f"Invalid defaults: {exc}") from exc
    if key == "detect_booleans":
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    return value


def apply_overrides(config: MigrationConfig, values: Mapping[str, Any]) -> MigrationConfig:
    known = {f.name for f in dataclasses.fields(MigrationConfig)}
    changes: dict[str, Any] = {}
    for key, value in values.items():
        if key not in known:
            raise ConfigError(f"Unknown configuration key: {key}")
        changes[key] = _coerce(config, key, value)
    return dataclasses.replace(config, **changes)


def load_config(
    path: str | None = None, env: Mapping[str, str] | None = None
) -> MigrationConfig:
    """Build the configuration from defaults, *path* and ``DUMPMIGRATE_*`` variables."""
    config = MigrationConfig()

    if path is not None:
        try:
            with open(path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, ValueError) as exc:
            raise ConfigError(f"Cannot read configuration {path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise ConfigError(f"Configuration {path} must be a JSON object")
        config = apply_overrides(config, payload)

    env = os.environ if env is None else env
    from_env = {
        field: env[ENV_PREFIX + suffix]
        for suffix, field in _ENV_KEYS.items()
        if env.get(ENV_PREFIX + suffix)
    }
    if env.get(ENV_PREFIX + "DETECT_BOOLEANS"):
        from_env["detect_booleans"] = env[ENV_PREFIX + "DETECT_BOOLEANS"]
    if from_env:
        config = apply_overrides(config, from_env)
    return config
