# tests/test_product_cache_db.py

"""Tests for the SQLite offline product cache."""

import json
import sqlite3
import tempfile
import unittest
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

from src.services.exceptions import CacheError
from src.services.result_enricher import enrich
from src.storage.product_cache_db import ProductCacheDB


def _sample_products() -> list[dict[str, Any]]:
    """Return a small product export."""
    return [
        {
            "_id": "p1",
            "name": "Amoxicillin 500mg",
            "sku": "AMX-500",
            "barcode": "8901234567890",
            "category": "Antibiotics",
            "brand": {"_id": "b1", "name": "GSK"},
            "saleUnits": [{"name": "strip", "size": 10}],
            "totalQuantity": 120,
            "batches": [
                {
                    "id": "b-1",
                    "batchNumber": "AMX-01",
                    "retailPrice": 50,
                    "purchasePrice": 40,
                    "quantity": 60,
                    "expDate": "2026-01-01",
                    "createdAt": "2024-01-01",
                },
                {
                    "id": "b-2",
                    "batchNumber": "AMX-02",
                    "retailPrice": 55,
                    "purchasePrice": 44,
                    "quantity": 60,
                    "expDate": "2026-06-01",
                    "createdAt": "2024-03-01",
                },
            ],
        },
        {
            "_id": "p2",
            "name": "Paracetamol",
            "sku": "PCM-500",
            "category": "Analgesics",
        },
        {"name": "No identity, skipped"},
    ]


class TestProductCacheDB(unittest.TestCase):
    """ProductCacheDB storage and offline search."""

    def setUp(self) -> None:
        self.tmp_dir = tempfile.mkdtemp()
        self.db = ProductCacheDB(db_path=Path(self.tmp_dir) / "cache.db")
        self.db.cache_products(_sample_products())

    def tearDown(self) -> None:
        self.db.close()

    # ── search_offline ───────────────────────────────────

    def test_blank_term_returns_nothing(self) -> None:
        """Blank terms never scan the store."""
        self.assertEqual(self.db.search_offline(""), [])
        self.assertEqual(self.db.search_offline("   "), [])

    def test_matches_name_case_insensitive(self) -> None:
        """Name matching ignores case."""
        results = self.db.search_offline("AMOX")
        self.assertEqual([r["product_id"] for r in results], ["p1"])

    def test_matches_sku_barcode_category(self) -> None:
        """SKU, barcode and category are searched too."""
        self.assertEqual(
            [r["product_id"] for r in self.db.search_offline("pcm-")],
            ["p2"],
        )
        self.assertEqual(
            [r["product_id"] for r in self.db.search_offline("8901234")],
            ["p1"],
        )
        self.assertEqual(
            [r["product_id"] for r in self.db.search_offline("analges")],
            ["p2"],
        )

    def test_non_ascii_names_match_case_insensitively(self) -> None:
        """Accented capitals fold like ASCII ones."""
        self.db.upsert_products([
            {"_id": "u1", "name": "Ämoxicillin Forte"},
            {"_id": "u2", "name": "ÉPHÉDRINE", "category": "Décongestionnant"},
        ])
        for term, expected in (
            ("Ämoxicillin", ["u1"]),
            ("ämox", ["u1"]),
            ("ÄMOX", ["u1"]),
            ("éphé", ["u2"]),
            ("DÉCONGEST", ["u2"]),
        ):
            with self.subTest(term=term):
                self.assertEqual(
                    [r["product_id"] for r in self.db.search_offline(term)],
                    expected,
                )

    def test_like_wildcards_are_literal(self) -> None:
        """Percent and underscore are not treated as wildcards."""
        self.assertEqual(self.db.search_offline("%"), [])
        self.assertEqual(self.db.search_offline("_"), [])

    def test_record_shape_uses_local_identity(self) -> None:
        """Records carry product_id and camelCase fields."""
        record = self.db.search_offline("amox")[0]
        self.assertNotIn("_id", record)
        self.assertEqual(record["brand"], "GSK")
        self.assertEqual(record["totalQuantity"], 120)
        self.assertEqual(record["saleUnits"], [{"name": "strip", "size": 10}])
        self.assertEqual(
            [b["batchNumber"] for b in record["batches"]],
            ["AMX-01", "AMX-02"],
        )

    def test_records_enrich_cleanly(self) -> None:
        """Cached records feed straight into the enricher."""
        enriched = enrich(self.db.search_offline("amox"))
        self.assertEqual(enriched[0].id, "p1")
        self.assertEqual(enriched[0].latest_retail_price, 55)
        self.assertEqual(enriched[0].total_quantity, 120)

    # ── writing ──────────────────────────────────────────

    def test_records_without_identity_skipped(self) -> None:
        """Only products with an id are stored."""
        self.assertEqual(self.db.count(), 2)

    def test_cache_products_replaces_everything(self) -> None:
        """A full sync drops products missing from the new export."""
        stored = self.db.cache_products([{"_id": "p9", "name": "Zinc"}])
        self.assertEqual(stored, 1)
        self.assertEqual(self.db.count(), 1)
        self.assertIsNone(self.db.get_product("p1"))

    def test_upsert_keeps_other_products(self) -> None:
        """Upserting replaces one product and its batches only."""
        self.db.upsert_products([{
            "_id": "p1",
            "name": "Amoxicillin 500mg",
            "totalQuantity": 10,
            "batches": [{"retailPrice": 60, "createdAt": "2024-05-01"}],
        }])
        self.assertEqual(self.db.count(), 2)
        product = self.db.get_product("p1")
        assert product is not None
        self.assertEqual(product["totalQuantity"], 10)
        self.assertEqual(len(product["batches"]), 1)
        self.assertEqual(product["batches"][0]["retailPrice"], 60)

    def test_upsert_preserves_barcode_when_absent(self) -> None:
        """Projected remote records do not wipe the stored barcode."""
        self.db.upsert_products([{"_id": "p1", "name": "Amoxicillin"}])
        product = self.db.get_product("p1")
        assert product is not None
        self.assertEqual(product["barcode"], "8901234567890")

    def test_remove_product(self) -> None:
        """Removing deletes the product and reports existence."""
        self.assertTrue(self.db.remove_product("p1"))
        self.assertFalse(self.db.remove_product("p1"))
        self.assertEqual(self.db.search_offline("amox"), [])

    def test_missing_total_quantity_stays_null(self) -> None:
        """An absent aggregate is stored as NULL, not 0."""
        product = self.db.get_product("p2")
        assert product is not None
        self.assertIsNone(product["totalQuantity"])

    # ── import ───────────────────────────────────────────

    def test_import_json_list(self) -> None:
        """A top-level JSON list is imported as a full sync."""
        path = Path(self.tmp_dir) / "export.json"
        path.write_text(
            json.dumps([{"_id": "x1", "name": "Cetirizine"}]),
            encoding="utf-8",
        )
        self.assertEqual(self.db.import_json_file(path), 1)
        self.assertEqual(self.db.count(), 1)

    def test_import_products_object(self) -> None:
        """An object with a products list is accepted."""
        path = Path(self.tmp_dir) / "export.json"
        path.write_text(
            json.dumps({"products": [{"_id": "x1"}, {"_id": "x2"}]}),
            encoding="utf-8",
        )
        self.assertEqual(
            self.db.import_json_file(path, replace=False), 2
        )
        self.assertEqual(self.db.count(), 4)

    def test_import_bad_file_raises_cache_error(self) -> None:
        """Unreadable or malformed exports raise CacheError."""
        bad = Path(self.tmp_dir) / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        with self.assertRaises(CacheError):
            self.db.import_json_file(bad)
        with self.assertRaises(CacheError):
            self.db.import_json_file(Path(self.tmp_dir) / "missing.json")
        scalar = Path(self.tmp_dir) / "scalar.json"
        scalar.write_text("42", encoding="utf-8")
        with self.assertRaises(CacheError):
            self.db.import_json_file(scalar)

    # ── failures ─────────────────────────────────────────

    def test_sqlite_errors_become_cache_errors(self) -> None:
        """Driver failures surface as CacheError."""
        broken = MagicMock()
        broken.execute.side_effect = sqlite3.OperationalError(
            "database is locked",
        )
        self.db._conn = broken
        with self.assertLogs("pharma_search.cache", "ERROR"):
            with self.assertRaises(CacheError):
                self.db.search_offline("amox")

    def test_unopenable_path_raises_cache_error(self) -> None:
        """A path that cannot hold a database raises CacheError."""
        blocker = Path(self.tmp_dir) / "blocker"
        blocker.write_text("", encoding="utf-8")
        with self.assertRaises(CacheError):
            ProductCacheDB(db_path=blocker / "cache.db")


if __name__ == "__main__":
    unittest.main()
