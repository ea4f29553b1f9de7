# src/services/result_enricher.py

"""Derive display-ready price and stock from raw product records.

Everything here is pure: no I/O, no mutation of the inputs, and no
failure mode.  Malformed numeric fields fall back to ``0``.
"""

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from src.models.product import (
    Batch,
    EnrichedProduct,
    ProductRecord,
    to_amount,
)

# Batches without a timestamp sort before every dated batch
_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def latest_batch(batches: Sequence[Batch]) -> Batch | None:
    """Return the most recently created batch.

    Ties on ``created_at`` go to the batch that comes first in input
    order.  Returns ``None`` for an empty sequence.
    """
    best: Batch | None = None
    best_at = _EARLIEST
    for batch in batches:
        created = batch.created_at or _EARLIEST
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        if best is None or created > best_at:
            best, best_at = batch, created
    return best


def resolve_latest_retail_price(batches: Sequence[Batch]) -> float:
    """Retail price of the newest batch, ``0.0`` without batches."""
    batch = latest_batch(batches)
    return to_amount(batch.retail_price) if batch is not None else 0.0


def resolve_total_quantity(total_quantity: float | None) -> float:
    """Default a missing or invalid stock aggregate to ``0.0``."""
    return to_amount(total_quantity)


def enrich_one(record: ProductRecord | Mapping[str, Any]) -> EnrichedProduct:
    """Enrich a single record (raw mappings are normalised first)."""
    if not isinstance(record, ProductRecord):
        record = ProductRecord.from_raw(record)
    return EnrichedProduct(
        id=record.id,
        name=record.name,
        sku=record.sku,
        category=record.category,
        brand=record.brand,
        batches=list(record.batches),
        sale_units=list(record.sale_units),
        total_quantity=resolve_total_quantity(record.total_quantity),
        latest_retail_price=resolve_latest_retail_price(record.batches),
    )


def enrich(
    records: Iterable[ProductRecord | Mapping[str, Any]],
) -> list[EnrichedProduct]:
    """Enrich every record, preserving input order and duplicates."""
    return [enrich_one(r) for r in records]
