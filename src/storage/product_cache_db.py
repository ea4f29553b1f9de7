# src/storage/product_cache_db.py

"""SQLite-backed offline product cache used when the bridge is down."""

import json
import logging
import sqlite3
import threading
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, cast

from src.config.settings import Settings
from src.models.product import (
    Batch,
    normalize_id,
    to_optional_amount,
    to_text,
)
from src.services.exceptions import CacheError

logger = logging.getLogger("pharma_search.cache")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS products (
    product_id     TEXT PRIMARY KEY,
    name           TEXT NOT NULL DEFAULT '',
    sku            TEXT,
    barcode        TEXT,
    category       TEXT,
    brand          TEXT,
    sale_units     TEXT NOT NULL DEFAULT '[]',
    total_quantity REAL,
    updated_at     TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS batches (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id     TEXT    NOT NULL
                   REFERENCES products(product_id) ON DELETE CASCADE,
    position       INTEGER NOT NULL,
    batch_id       TEXT,
    batch_number   TEXT,
    retail_price   REAL    NOT NULL DEFAULT 0,
    purchase_price REAL    NOT NULL DEFAULT 0,
    quantity       REAL    NOT NULL DEFAULT 0,
    exp_date       TEXT,
    created_at     TEXT
);

CREATE INDEX IF NOT EXISTS idx_batches_product
    ON batches(product_id, position);
"""

# Columns matched by the offline text search
_SEARCH_COLUMNS: tuple[str, ...] = ("name", "sku", "barcode", "category")


def _casefold(value: Any) -> Any:
    """Unicode-aware lowercase for SQL; sqlite's own lower() is ASCII-only."""
    return value.casefold() if isinstance(value, str) else value


class ProductCacheDB:
    """Durable keyed store of product records with a text-match query.

    Records come back as raw mappings keyed by ``product_id``; the
    search layer normalises them like any other backing store.
    Every ``sqlite3`` failure surfaces as :class:`CacheError`.
    """

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.CACHE_DB_PATH
        self.path = path
        self._lock = threading.Lock()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(
                str(path), check_same_thread=False,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.create_function(
                "py_casefold", 1, _casefold, deterministic=True,
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.executescript(_SCHEMA)
        except (sqlite3.Error, OSError) as exc:
            raise CacheError(
                f"Cannot open product cache at {path}: {exc}"
            ) from exc
        logger.debug("ProductCacheDB opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    @contextmanager
    def _guard(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Serialise access and translate sqlite errors."""
        with self._lock:
            try:
                yield self._conn
            except sqlite3.Error as exc:
                self._conn.rollback()
                logger.error(
                    "Product cache %s failed: %s",
                    operation,
                    exc,
                    exc_info=True,
                )
                raise CacheError(
                    f"Product cache {operation} failed: {exc}"
                ) from exc

    # ── Searching ────────────────────────────────────────

    def search_offline(self, term: str) -> list[dict[str, Any]]:
        """Case-insensitive substring match on name, SKU, barcode, category.

        A blank term returns no records.
        """
        needle = (term or "").strip().casefold()
        if not needle:
            return []

        where = " OR ".join(
            f"instr(py_casefold(coalesce({col}, '')), ?) > 0"
            for col in _SEARCH_COLUMNS
        )
        with self._guard("search") as conn:
            rows = conn.execute(
                f"SELECT * FROM products WHERE {where} "
                "ORDER BY name COLLATE NOCASE, product_id",
                (needle,) * len(_SEARCH_COLUMNS),
            ).fetchall()
            results = [self._row_to_record(conn, r) for r in rows]

        logger.debug(
            "Offline search '%s' matched %d products", term, len(results),
        )
        return results

    def get_product(self, product_id: str) -> dict[str, Any] | None:
        """Return one cached product with its batches, or ``None``."""
        with self._guard("lookup") as conn:
            row = conn.execute(
                "SELECT * FROM products WHERE product_id = ?",
                (product_id,),
            ).fetchone()
            if row is None:
                return None
            return self._row_to_record(conn, row)

    def count(self) -> int:
        """Number of cached products."""
        with self._guard("count") as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM products"
            ).fetchone()
        return int(row[0])

    # ── Writing ──────────────────────────────────────────

    def cache_products(
        self, products: Iterable[Mapping[str, Any]],
    ) -> int:
        """Replace the whole cache with *products* (a full sync).

        Returns the number of products stored.
        """
        with self._guard("sync") as conn:
            conn.execute("DELETE FROM batches")
            conn.execute("DELETE FROM products")
            count = self._write_products(conn, products)
            conn.commit()
        logger.info("Cached %d products (full sync)", count)
        return count

    def upsert_products(
        self, products: Iterable[Mapping[str, Any]],
    ) -> int:
        """Insert or replace *products* and their batches."""
        with self._guard("upsert") as conn:
            count = self._write_products(conn, products)
            conn.commit()
        if count:
            logger.debug("Upserted %d products into cache", count)
        return count

    def remove_product(self, product_id: str) -> bool:
        """Delete a product and its batches. Returns True if it existed."""
        with self._guard("remove") as conn:
            cur = conn.execute(
                "DELETE FROM products WHERE product_id = ?",
                (product_id,),
            )
            conn.commit()
        removed = cur.rowcount > 0
        if removed:
            logger.info("Removed product %s from cache", product_id)
        return removed

    # ── Import ───────────────────────────────────────────

    def import_json_file(
        self, filepath: Path, replace: bool = True,
    ) -> int:
        """Load a JSON product export into the cache.

        Accepts a top-level list or an object with a ``products`` list.
        Returns the number of products stored.
        """
        try:
            with open(filepath, encoding="utf-8") as f:
                data: Any = json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            raise CacheError(
                f"Cannot read product export {filepath.name}: {exc}"
            ) from exc

        if isinstance(data, dict) and "products" in data:
            data = data["products"]
        if not isinstance(data, list):
            raise CacheError(
                f"Product export {filepath.name} holds no product list"
            )

        items: list[object] = cast(list[object], data)
        products: list[Mapping[str, Any]] = [
            e for e in items if isinstance(e, dict)
        ]
        if replace:
            return self.cache_products(products)
        return self.upsert_products(products)

    # ── Internals ────────────────────────────────────────

    def _write_products(
        self,
        conn: sqlite3.Connection,
        products: Iterable[Mapping[str, Any]],
    ) -> int:
        now = datetime.now().isoformat()
        count = 0
        for raw in products:
            product_id = normalize_id(raw)
            if not product_id:
                logger.debug("Skipping product without identity: %r", raw)
                continue

            raw_units = raw.get("saleUnits", raw.get("sale_units"))
            sale_units = (
                raw_units if isinstance(raw_units, (list, tuple)) else []
            )
            total = raw.get("totalQuantity", raw.get("total_quantity"))
            conn.execute(
                "INSERT INTO products (product_id, name, sku, barcode, "
                "category, brand, sale_units, total_quantity, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(product_id) DO UPDATE SET "
                "name=excluded.name, sku=excluded.sku, "
                "barcode=COALESCE(excluded.barcode, products.barcode), "
                "category=excluded.category, "
                "brand=excluded.brand, sale_units=excluded.sale_units, "
                "total_quantity=excluded.total_quantity, "
                "updated_at=excluded.updated_at",
                (
                    product_id,
                    to_text(raw.get("name")) or "",
                    to_text(raw.get("sku")),
                    to_text(raw.get("barcode")),
                    to_text(raw.get("category")),
                    to_text(raw.get("brand")),
                    json.dumps(list(sale_units), default=str),
                    to_optional_amount(total),
                    now,
                ),
            )

            conn.execute(
                "DELETE FROM batches WHERE product_id = ?", (product_id,),
            )
            raw_batches = raw.get("batches")
            if isinstance(raw_batches, (list, tuple)):
                rows = [
                    (product_id, position, *self._batch_row(b))
                    for position, b in enumerate(raw_batches)
                    if isinstance(b, Mapping)
                ]
                conn.executemany(
                    "INSERT INTO batches (product_id, position, batch_id, "
                    "batch_number, retail_price, purchase_price, quantity, "
                    "exp_date, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    rows,
                )
            count += 1
        return count

    @staticmethod
    def _batch_row(raw: Mapping[str, Any]) -> tuple[Any, ...]:
        batch = Batch.from_raw(raw)
        return (
            batch.batch_id,
            batch.batch_number,
            batch.retail_price,
            batch.purchase_price,
            batch.quantity,
            batch.exp_date,
            batch.created_at.isoformat() if batch.created_at else None,
        )

    @staticmethod
    def _row_to_record(
        conn: sqlite3.Connection, row: sqlite3.Row,
    ) -> dict[str, Any]:
        batch_rows = conn.execute(
            "SELECT * FROM batches WHERE product_id = ? ORDER BY position",
            (row["product_id"],),
        ).fetchall()
        try:
            sale_units: Any = json.loads(row["sale_units"])
        except (TypeError, ValueError):
            sale_units = []
        return {
            "product_id": row["product_id"],
            "name": row["name"],
            "sku": row["sku"],
            "barcode": row["barcode"],
            "category": row["category"],
            "brand": row["brand"],
            "saleUnits": sale_units,
            "totalQuantity": row["total_quantity"],
            "batches": [
                {
                    "id": b["batch_id"],
                    "batchNumber": b["batch_number"],
                    "retailPrice": b["retail_price"],
                    "purchasePrice": b["purchase_price"],
                    "quantity": b["quantity"],
                    "expDate": b["exp_date"],
                    "createdAt": b["created_at"],
                }
                for b in batch_rows
            ],
        }
