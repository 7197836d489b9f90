"""DataVault housekeeping jobs."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import structlog

from concierge.retrieval.embedder import Embedder, EmbeddingError
from concierge.retrieval.vector_store import VectorStore
from concierge.types import ClassifiedIntent, VectorRecord, date_to_numeric

logger = structlog.get_logger(__name__)


async def load_records(
    vector_store: VectorStore,
    embedder: Embedder,
    records: Iterable[dict[str, Any]],
    *,
    batch_size: int = 64,
) -> int:
    """Embed `{"id", "text", **metadata}` records and upsert them.

    The text is kept in the `text` metadata field. `start_date_numeric` and
    `end_date_numeric` are derived from `start_date`/`end_date` when absent.
    Returns the number of records written.

    Raises:
        ValueError: a record has no `id` or no `text`.
        EmbeddingError: the provider returned the wrong number of vectors.
    """
    prepared = [_prepare(record) for record in records]
    written = 0
    for start in range(0, len(prepared), batch_size):
        batch = prepared[start : start + batch_size]
        vectors = await embedder.embed_documents([metadata["text"] for _, metadata in batch])
        if len(vectors) != len(batch) or any(not vector for vector in vectors):
            raise EmbeddingError("Failed to generate embeddings for DataVault records.")
        await vector_store.upsert(
            [
                VectorRecord(record_id=record_id, values=list(vector), metadata=metadata)
                for (record_id, metadata), vector in zip(batch, vectors, strict=True)
            ]
        )
        written += len(batch)
    logger.info("datavault_records_loaded", written=written, store=vector_store.name)
    return written


def _prepare(record: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    if not isinstance(record, dict):
        raise ValueError(f"DataVault record must be an object: {record!r}")
    record_id = record.get("id")
    text = record.get("text")
    if not isinstance(record_id, str) or not record_id:
        raise ValueError(f"DataVault record without an id: {record!r}")
    if not isinstance(text, str) or not text.strip():
        raise ValueError(f"DataVault record {record_id!r} has no text")

    metadata = {key: value for key, value in record.items() if key != "id" and value is not None}
    for field in ("start_date", "end_date"):
        value = metadata.get(field)
        numeric = date_to_numeric(value) if isinstance(value, str) else None
        if numeric is not None:
            metadata.setdefault(f"{field}_numeric", numeric)
    return record_id, metadata


async def prune_expired_events(vector_store: VectorStore, today: str) -> int:
    """Delete Event records whose end date is before `today` (ISO date).

    Records without a numeric end date are kept.
    """
    today_numeric = date_to_numeric(today)
    if today_numeric is None:
        raise ValueError(f"Invalid ISO date: {today!r}")

    deleted = await vector_store.delete_many(
        {
            "type": {"$eq": ClassifiedIntent.EVENT.value},
            "end_date_numeric": {"$lt": today_numeric},
        }
    )
    logger.info("expired_events_pruned", deleted=deleted, today=today, store=vector_store.name)
    return deleted
