# tests/test_price_deduplicator.py

"""Tests for the trailing-window price deduplicator."""

import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from src.filters.price_deduplicator import PriceDeduplicator
from src.storage.catalog_db import CatalogDB

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class TestPriceDeduplicator(unittest.TestCase):
    """should_record against a real temp store."""

    def setUp(self) -> None:
        """Create a store with one market and one product."""
        self.db = CatalogDB(db_path=Path(tempfile.mkdtemp()) / "dedup.db")
        self.market = self.db.add_market(
            "Bom Preço", legal_name="Supermercado Bom Preço LTDA",
        )
        self.product = self.db.add_product("Coca 2L", barcode="789")
        self.dedup = PriceDeduplicator(self.db, clock=lambda: NOW)

    def tearDown(self) -> None:
        """Close the database."""
        self.db.close()

    def _existing(self, price: float, hours_ago: float) -> None:
        self.db.insert_price_record(
            self.product.id,
            self.market.id,
            price,
            NOW - timedelta(hours=hours_ago),
        )

    def _should(self, price: float) -> bool:
        return self.dedup.should_record(
            self.product.id, self.market.id, price, NOW,
        )

    def test_first_observation_accepted(self) -> None:
        """No prior record means record it."""
        self.assertTrue(self._should(10.0))

    def test_same_price_within_window_rejected(self) -> None:
        """10.00 seen 23h ago blocks another 10.00."""
        self._existing(10.0, hours_ago=23)
        self.assertFalse(self._should(10.0))

    def test_changed_price_within_window_accepted(self) -> None:
        """10.02 differs by more than a cent."""
        self._existing(10.0, hours_ago=23)
        self.assertTrue(self._should(10.02))

    def test_one_cent_change_is_not_a_change(self) -> None:
        """A difference of exactly one cent is within tolerance."""
        self._existing(10.0, hours_ago=1)
        self.assertFalse(self._should(10.01))

    def test_same_price_outside_window_accepted(self) -> None:
        """A 25h-old record no longer blocks the same price."""
        self._existing(10.0, hours_ago=25)
        self.assertTrue(self._should(10.0))

    def test_compares_with_most_recent_record(self) -> None:
        """The newest record in the window is the reference."""
        self._existing(10.0, hours_ago=20)
        self._existing(12.0, hours_ago=2)
        self.assertFalse(self._should(12.0))
        self.assertTrue(self._should(10.0))

    def test_non_positive_prices_rejected(self) -> None:
        """Zero and negative prices are never recorded."""
        self.assertFalse(self._should(0.0))
        self.assertFalse(self._should(-1.5))

    def test_other_market_does_not_block(self) -> None:
        """The window is per (product, market) pair."""
        other = self.db.add_market(
            "Central", legal_name="Mercado Central SA",
        )
        self._existing(10.0, hours_ago=1)
        self.assertTrue(
            self.dedup.should_record(
                self.product.id, other.id, 10.0, NOW,
            )
        )


if __name__ == "__main__":
    unittest.main()
