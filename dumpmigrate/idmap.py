"""Stable identifiers for source rows.

Every (entity type, source id) pair maps to a name-based UUID derived from
a fixed namespace, so independent runs and independent processes agree on
the identifier of any row without coordinating. The mapper is an ordinary
object: build one per run and hand it to every transform that needs it.
"""

from __future__ import annotations

import datetime
import json
import logging
import os
import threading
import uuid
from typing import Any, Iterable

from . import MappingFileError

LOGGER = logging.getLogger(__name__)

DEFAULT_NAMESPACE = uuid.UUID("6f1c8d2e-5a7b-4c3d-9e0f-1a2b3c4d5e6f")

CONSOLIDATED = "listings"
LISTING_ALIASES = frozenset({"businesses", "franchise", "investors"})

SourceId = Any


def normalize_source_id(source_id: SourceId) -> str | None:
    """Return the mapping key for *source_id*, or ``None`` for "no reference".

    ``None``, empty strings and every spelling of zero are not references.
    """
    if source_id is None or isinstance(source_id, bool):
        return None
    if isinstance(source_id, float):
        if source_id != source_id or source_id == 0:
            return None
        if source_id.is_integer():
            return str(int(source_id))
        return repr(source_id)
    if isinstance(source_id, int):
        return None if source_id == 0 else str(source_id)

    key = str(source_id).strip()
    if not key:
        return None
    try:
        if float(key) == 0:
            return None
    except ValueError:
        pass
    return key


class IdentifierMapper:
    """Thread-safe, append-mostly table of stable identifiers."""

    def __init__(
        self,
        namespace: uuid.UUID | str = DEFAULT_NAMESPACE,
        *,
        aliases: Iterable[str] = LISTING_ALIASES,
        consolidated: str = CONSOLIDATED,
    ):
        self.namespace = namespace if isinstance(namespace, uuid.UUID) else uuid.UUID(namespace)
        self.aliases = frozenset(aliases)
        self.consolidated = consolidated
        self._forward: dict[str, dict[str, str]] = {}
        self._reverse: dict[str, tuple[str, str]] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(m) for m in self._forward.values())

    def __repr__(self) -> str:
        return f"IdentifierMapper(namespace={str(self.namespace)!r}, mappings={len(self)})"

    def derive(self, entity_type: str, key: str) -> str:
        """The identifier *entity_type*/*key* gets when nothing is pinned."""
        return str(uuid.uuid5(self.namespace, f"{entity_type}:{key}"))

    def _store(self, entity_type: str, key: str, stable_id: str) -> None:
        self._forward.setdefault(entity_type, {})[key] = stable_id
        self._reverse.setdefault(stable_id, (entity_type, key))

    def _mirror(self, entity_type: str, key: str, stable_id: str, *, overwrite: bool) -> None:
        if entity_type not in self.aliases:
            return
        # Mirror entries stay out of the reverse index; it points at the origin table.
        consolidated = self._forward.setdefault(self.consolidated, {})
        if overwrite or key not in consolidated:
            consolidated[key] = stable_id

    def get_or_create(self, entity_type: str, source_id: SourceId) -> str | None:
        """Return the identifier for the pair, creating it on first use."""
        key = normalize_source_id(source_id)
        if key is None:
            return None

        # Check-then-create must be atomic per key: concurrent first requests
        # for the same pair all observe one identifier.
        with self._lock:
            existing = self._forward.get(entity_type, {}).get(key)
            if existing is not None:
                return existing
            stable_id = self.derive(entity_type, key)
            self._store(entity_type, key, stable_id)
            self._mirror(entity_type, key, stable_id, overwrite=False)
            return stable_id

    def get(self, entity_type: str, source_id: SourceId) -> str | None:
        """Look up an identifier without creating one."""
        key = normalize_source_id(source_id)
        if key is None:
            return None
        with self._lock:
            found = self._forward.get(entity_type, {}).get(key)
            if found is None and entity_type in self.aliases:
                found = self._forward.get(self.consolidated, {}).get(key)
            return found

    def set(self, entity_type: str, source_id: SourceId, stable_id: str) -> None:
        """Pin *stable_id* for the pair, replacing any existing mapping."""
        key = normalize_source_id(source_id)
        if key is None:
            return
        stable_id = str(stable_id)
        with self._lock:
            previous = self._forward.get(entity_type, {}).get(key)
            if previous is not None and self._reverse.get(previous) == (entity_type, key):
                del self._reverse[previous]
            self._forward.setdefault(entity_type, {})[key] = stable_id
            self._reverse[stable_id] = (entity_type, key)
            self._mirror(entity_type, key, stable_id, overwrite=True)

    def map_ids(self, entity_type: str, source_ids: Iterable[SourceId] | None) -> list[str]:
        """Resolve many source ids, dropping the ones without a mapping."""
        if not source_ids:
            return []
        resolved = (self.get(entity_type, sid) for sid in source_ids)
        return [stable_id for stable_id in resolved if stable_id is not None]

    def new_id(self) -> str:
        """A fresh identifier that is not recorded anywhere."""
        return str(uuid.uuid4())

    def reverse(self, stable_id: str) -> tuple[str, str] | None:
        with self._lock:
            return self._reverse.get(stable_id)

    def entity_mappings(self, entity_type: str) -> dict[str, str]:
        with self._lock:
            return dict(self._forward.get(entity_type, {}))

    def all_mappings(self) -> dict[str, dict[str, str]]:
        with self._lock:
            return {entity: dict(m) for entity, m in self._forward.items()}

    def count(self, entity_type: str | None = None) -> int:
        if entity_type is None:
            return len(self)
        with self._lock:
            return len(self._forward.get(entity_type, {}))

    def to_dict(self) -> dict[str, Any]:
        mappings = self.all_mappings()
        return {
            "metadata": {
                "last_updated": datetime.datetime.now(datetime.timezone.utc).isoformat(),
                "total_mappings": sum(len(m) for m in mappings.values()),
                "namespace": str(self.namespace),
            },
            "mappings": mappings,
        }

    def persist(self, path: str) -> None:
        """Write the forward table and a metadata block as JSON."""
        payload = json.dumps(self.to_dict(), ensure_ascii=False, indent=2, sort_keys=True)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(payload)
            f.write("\n")
        os.replace(tmp_path, path)
        LOGGER.info("Saved %d identifier mappings to %s", len(self), path)

    def load(self, path: str) -> int:
        """Merge mappings persisted at *path* into this mapper.

        Entries already present in memory win over persisted ones. The
        reverse index is rebuilt from the merged forward table. Returns
        the number of entries added; a missing file adds nothing.
        """
        if not os.path.exists(path):
            LOGGER.info("No identifier map at %s, starting empty", path)
            return 0
        try:
            with open(path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, ValueError) as exc:
            raise MappingFileError(f"Cannot read identifier map {path}: {exc}") from exc

        mappings = _mappings_from_payload(payload, path)
        added = 0
        conflicts = 0
        with self._lock:
            for entity_type, entries in mappings.items():
                table = self._forward.setdefault(entity_type, {})
                for key, stable_id in entries.items():
                    current = table.get(key)
                    if current is None:
                        table[key] = stable_id
                        added += 1
                    elif current != stable_id:
                        conflicts += 1
            self._rebuild_reverse()

        if conflicts:
            LOGGER.warning(
                "%d persisted mappings in %s differ from in-memory ones and were ignored",
                conflicts,
                path,
            )
        LOGGER.info("Loaded %d identifier mappings from %s", added, path)
        return added

    def _rebuild_reverse(self) -> None:
        self._reverse = {}
        # Origin namespaces first so an aliased identifier points at the
        # table it was created for rather than the consolidated mirror.
        ordered = sorted(self._forward.items(), key=lambda item: item[0] == self.consolidated)
        for entity_type, entries in ordered:
            for key, stable_id in entries.items():
                self._reverse.setdefault(stable_id, (entity_type, key))


def _mappings_from_payload(payload: Any, path: str) -> dict[str, dict[str, str]]:
    if not isinstance(payload, dict):
        raise MappingFileError(f"Identifier map {path} is not a JSON object")
    # Older files hold the bare forward table without a metadata block.
    mappings = payload.get("mappings", payload) if "metadata" in payload else payload
    if not isinstance(mappings, dict):
        raise MappingFileError(f"Identifier map {path} has no mappings object")

    result: dict[str, dict[str, str]] = {}
    for entity_type, entries in mappings.items():
        if not isinstance(entries, dict):
            raise MappingFileError(
                f"Identifier map {path}: entries for '{entity_type}' are not an object"
            )
        result[str(entity_type)] = {
            str(k): str(v) for k, v in entries.items() if v is not None
        }
    return result
