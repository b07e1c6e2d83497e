# src/models/price_record.py

"""Persisted price observation model."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class PriceRecord:
    """A single observed price of a product at a market.

    ``record_date`` is the time the external service observed the
    price, not the time the sync job ran.
    """

    id: int
    product_id: int
    market_id: int
    price: float
    record_date: datetime
    notes: str = ""
