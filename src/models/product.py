# src/models/product.py

"""Internal product entity as seen by the sync pipeline."""

from dataclasses import dataclass


@dataclass
class Product:
    """A catalogue product; synchronised only when it has a barcode."""

    id: int
    name: str
    barcode: str | None = None
