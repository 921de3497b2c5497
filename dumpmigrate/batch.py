"""Run a transform over source rows and write the results in batches."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable, Sequence

from .sink import DocumentOperation, DocumentSink

LOGGER = logging.getLogger(__name__)

Transform = Callable[[dict[str, Any]], "DocumentOperation | None"]


@dataclasses.dataclass(frozen=True)
class BatchError:
    item_id: Any
    error: str


@dataclasses.dataclass
class BatchResult:
    processed: int = 0
    written: int = 0
    errors: list[BatchError] = dataclasses.field(default_factory=list)
    operations: list[DocumentOperation] = dataclasses.field(default_factory=list)

    def merge(self, other: "BatchResult") -> "BatchResult":
        return BatchResult(
            processed=self.processed + other.processed,
            written=self.written + other.written,
            errors=self.errors + other.errors,
            operations=self.operations + other.operations,
        )


def process_batch(
    items: Sequence[dict[str, Any]],
    transform: Transform,
    *,
    collection: str,
    sink: DocumentSink | None = None,
    batch_size: int = 500,
    dry_run: bool = False,
    progress=None,
    label: str | None = None,
) -> BatchResult:
    """Transform *items* one by one and hand each batch to *sink*.

    A failing item is recorded in the result and skipped. A failing batch
    write is recorded against every document in that batch.
    """
    result = BatchResult()
    if not items:
        LOGGER.warning("No items to process for %s", collection)
        return result

    task_id = None
    if progress is not None:
        task_id = progress.add_task(label or f"Migrating {collection}", total=len(items))

    batch_size = max(1, batch_size)
    for start in range(0, len(items), batch_size):
        batch_ops: list[DocumentOperation] = []
        for item in items[start : start + batch_size]:
            try:
                op = transform(item)
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                LOGGER.error("Error processing %s item %s: %s", collection, item.get("id"), exc)
                result.errors.append(BatchError(item.get("id"), f"{type(exc).__name__}: {exc}"))
            else:
                if op is not None:
                    batch_ops.append(op)
                result.processed += 1
            if progress is not None and task_id is not None:
                progress.advance(task_id)

        result.operations.extend(batch_ops)
        if not batch_ops or dry_run or sink is None:
            continue
        try:
            sink.write_batch(batch_ops)
        except OSError as exc:
            LOGGER.error("Error writing %s batch: %s", collection, exc)
            result.errors.extend(BatchError(op.doc_id, str(exc)) for op in batch_ops)
        else:
            result.written += len(batch_ops)

    LOGGER.info(
        "Processed %d/%d %s items, generated %d documents, encountered %d errors",
        result.processed,
        len(items),
        collection,
        len(result.operations),
        len(result.errors),
    )
    return result
