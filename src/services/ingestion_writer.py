# src/services/ingestion_writer.py

"""Persist accepted price observations and tally them on the run report."""

import logging
from datetime import datetime

from src.models.market import Market
from src.models.product import Product
from src.models.run_report import RunReport
from src.storage.catalog_db import CatalogDB

logger = logging.getLogger("price_sync.writer")

SOURCE_NAME = "Nota Paraná"


def source_note(recency: str) -> str:
    """Provenance tag stored on synced records."""
    if recency:
        return f"Synced - {SOURCE_NAME} ({recency})"
    return f"Synced - {SOURCE_NAME}"


class IngestionWriter:
    """Insert one record at a time; no transaction spans sibling writes."""

    def __init__(self, store: CatalogDB, report: RunReport) -> None:
        self._store = store
        self._report = report

    def write(
        self,
        product: Product,
        market: Market,
        price: float,
        observed_at: datetime,
        note: str,
    ) -> int:
        """Insert the record, then update the report counters."""
        record_id = self._store.insert_price_record(
            product.id, market.id, price, observed_at, note,
        )
        self._report.prices_recorded += 1
        detail = self._report.detail_for(market.name)
        detail.products += 1
        detail.prices += 1
        logger.info(
            "Recorded %s at %s: %.2f (record %d)",
            product.name,
            market.name,
            price,
            record_id,
        )
        return record_id
