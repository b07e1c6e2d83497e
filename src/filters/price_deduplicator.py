# src/filters/price_deduplicator.py

"""Suppress price observations that repeat a recently recorded price."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from src.config.settings import Settings
from src.storage.catalog_db import CatalogDB

logger = logging.getLogger("price_sync.dedup")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PriceDeduplicator:
    """Decide whether a computed price deserves a new record.

    A ``(product, market)`` pair keeps at most one record per trailing
    window unless the price moved by more than the tolerance.
    Non-positive prices are treated as malformed and always rejected.
    """

    def __init__(
        self,
        store: CatalogDB,
        window: timedelta | None = None,
        tolerance: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._window = window or timedelta(
            hours=Settings.DEDUP_WINDOW_HOURS
        )
        self._tolerance = (
            Settings.PRICE_TOLERANCE if tolerance is None else tolerance
        )
        self._clock = clock

    def should_record(
        self,
        product_id: int,
        market_id: int,
        price: float,
        observed_at: datetime,
    ) -> bool:
        """Return True when *price* should be persisted."""
        if price <= 0:
            logger.debug(
                "Rejecting non-positive price %.2f (product %d, market %d)",
                price,
                product_id,
                market_id,
            )
            return False

        since = self._clock() - self._window
        existing = self._store.latest_price_since(
            product_id, market_id, since
        )
        if existing is None:
            logger.debug(
                "New price %.2f for product %d at market %d (seen %s)",
                price,
                product_id,
                market_id,
                observed_at.isoformat(),
            )
            return True

        if abs(existing.price - price) > self._tolerance:
            logger.debug(
                "Price for product %d at market %d moved %.2f -> %.2f",
                product_id,
                market_id,
                existing.price,
                price,
            )
            return True

        logger.debug(
            "Price %.2f for product %d at market %d already recorded",
            price,
            product_id,
            market_id,
        )
        return False
