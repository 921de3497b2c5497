"""Destinations for transformed documents."""

from __future__ import annotations

import dataclasses
import json
import os
import threading
from typing import Any, Sequence

# Largest batch the document store accepts, with some headroom.
BATCH_LIMIT = 490


@dataclasses.dataclass(frozen=True)
class DocumentOperation:
    collection: str
    doc_id: str
    data: dict[str, Any]


class DocumentSink:
    """Writes batches of document operations."""

    def write_batch(self, operations: Sequence[DocumentOperation]) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class JsonlSink(DocumentSink):
    """Appends each document as one JSON line to ``<collection>.jsonl``."""

    def __init__(self, output_dir: str):
        self.output_dir = output_dir
        self.written: dict[str, int] = {}
        self._lock = threading.Lock()
        os.makedirs(output_dir, exist_ok=True)

    def path_for(self, collection: str) -> str:
        return os.path.join(self.output_dir, f"{collection}.jsonl")

    def write_batch(self, operations: Sequence[DocumentOperation]) -> None:
        for start in range(0, len(operations), BATCH_LIMIT):
            self._write_chunk(operations[start : start + BATCH_LIMIT])

    def _write_chunk(self, operations: Sequence[DocumentOperation]) -> None:
        by_collection: dict[str, list[DocumentOperation]] = {}
        for op in operations:
            by_collection.setdefault(op.collection, []).append(op)

        with self._lock:
            for collection, ops in by_collection.items():
                with open(self.path_for(collection), "a", encoding="utf-8") as f:
                    for op in ops:
                        line = json.dumps(
                            {"id": op.doc_id, "data": op.data},
                            ensure_ascii=False,
                            sort_keys=True,
                        )
                        f.write(line)
                        f.write("\n")
                self.written[collection] = self.written.get(collection, 0) + len(ops)
