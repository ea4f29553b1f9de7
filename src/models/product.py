# src/models/product.py

"""Product data models shared by both search paths.

Raw records arrive as plain mappings from two backing stores that do not
agree on field names: the remote index keys products by ``_id``, the
local cache by ``product_id``.  ``ProductRecord.from_raw`` is the single
place where both shapes are folded into one canonical record.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

# Identity field names, in lookup order
ID_FIELDS: tuple[str, ...] = ("id", "_id", "product_id")


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    """Return the first present, non-None value among *keys*."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def to_amount(value: Any) -> float:
    """Coerce a raw numeric field to a finite, non-negative float.

    Anything that is not a usable number becomes ``0.0``.
    """
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def to_optional_amount(value: Any) -> float | None:
    """Like :func:`to_amount` but keeps ``None`` for unusable values."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a batch timestamp into an aware UTC datetime.

    Accepts ``datetime`` objects, ISO-8601 strings (date-only and
    ``Z``-suffixed forms included) and epoch milliseconds.  Naive
    values are taken as UTC.  Returns ``None`` when unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    parsed: datetime | None = None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_text(value: Any) -> str | None:
    """Render an optional text field, mapping blanks to ``None``."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        # Populated references (e.g. {"_id": ..., "name": "Pfizer"})
        value = value.get("name")
        if value is None:
            return None
    text = str(value).strip()
    return text or None


def normalize_id(raw: Mapping[str, Any]) -> str:
    """Return the canonical identity of a raw record ("" if absent)."""
    value = _pick(raw, *ID_FIELDS)
    return "" if value is None else str(value)


@dataclass
class Batch:
    """A single inbound stock lot with its own pricing and expiry."""

    retail_price: float = 0.0
    purchase_price: float = 0.0
    quantity: float = 0.0
    created_at: datetime | None = None
    batch_number: str | None = None
    exp_date: str | None = None
    batch_id: str | None = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "Batch":
        """Build a batch from a camelCase or snake_case mapping."""
        exp = _pick(raw, "expDate", "exp_date", "expiryDate")
        batch_id = _pick(raw, "id", "_id", "batch_id")
        return cls(
            retail_price=to_amount(
                _pick(raw, "retailPrice", "retail_price")
            ),
            purchase_price=to_amount(
                _pick(raw, "purchasePrice", "purchase_price")
            ),
            quantity=to_amount(raw.get("quantity")),
            created_at=parse_timestamp(
                _pick(raw, "createdAt", "created_at")
            ),
            batch_number=to_text(
                _pick(raw, "batchNumber", "batch_number")
            ),
            exp_date=None if exp is None else str(exp),
            batch_id=None if batch_id is None else str(batch_id),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the caller-facing camelCase shape."""
        return {
            "id": self.batch_id,
            "batchNumber": self.batch_number,
            "retailPrice": self.retail_price,
            "purchasePrice": self.purchase_price,
            "quantity": self.quantity,
            "expDate": self.exp_date,
            "createdAt": (
                self.created_at.isoformat() if self.created_at else None
            ),
        }


@dataclass
class ProductRecord:
    """A product as returned by either backing store."""

    id: str
    name: str = ""
    sku: str | None = None
    category: str | None = None
    brand: str | None = None
    batches: list[Batch] = field(default_factory=lambda: list[Batch]())
    sale_units: list[Any] = field(default_factory=lambda: list[Any]())
    total_quantity: float | None = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "ProductRecord":
        """Normalise a raw store record; never raises on bad fields."""
        raw_batches = raw.get("batches")
        batches: list[Batch] = []
        if isinstance(raw_batches, (list, tuple)):
            batches = [
                Batch.from_raw(b)
                for b in raw_batches
                if isinstance(b, Mapping)
            ]
        raw_units = _pick(raw, "saleUnits", "sale_units")
        sale_units: list[Any] = (
            list(raw_units) if isinstance(raw_units, (list, tuple)) else []
        )
        return cls(
            id=normalize_id(raw),
            name=to_text(raw.get("name")) or "",
            sku=to_text(raw.get("sku")),
            category=to_text(raw.get("category")),
            brand=to_text(raw.get("brand")),
            batches=batches,
            sale_units=sale_units,
            total_quantity=to_optional_amount(
                _pick(raw, "totalQuantity", "total_quantity")
            ),
        )


@dataclass
class EnrichedProduct:
    """A product annotated with display-ready price and stock."""

    id: str
    name: str
    sku: str | None
    category: str | None
    brand: str | None
    batches: list[Batch]
    sale_units: list[Any]
    total_quantity: float
    latest_retail_price: float

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the caller-facing camelCase shape."""
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "category": self.category,
            "brand": self.brand,
            "batches": [b.to_dict() for b in self.batches],
            "saleUnits": list(self.sale_units),
            "totalQuantity": self.total_quantity,
            "latestRetailPrice": self.latest_retail_price,
        }
