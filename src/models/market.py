# src/models/market.py

"""Internal market entity as seen by the sync pipeline."""

from dataclasses import dataclass


@dataclass
class Market:
    """A store the catalogue tracks prices for.

    Only markets with a ``legal_name`` take part in matching.
    """

    id: int
    name: str
    legal_name: str | None = None
    location: str | None = None

    @property
    def is_match_candidate(self) -> bool:
        """True when the market can be resolved from external data."""
        return bool(self.legal_name)
