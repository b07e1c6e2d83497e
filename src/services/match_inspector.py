# src/services/match_inspector.py

"""Dry-run view of how a barcode's offers would be matched."""

import logging
from dataclasses import dataclass, field

from src.clients.nota_parana_client import NotaParanaClient
from src.config.categories import categories_for_term
from src.config.settings import Settings
from src.filters.market_matcher import MarketMatcher, MatchEvaluation
from src.models.offer import ExternalOffer
from src.storage.catalog_db import CatalogDB

logger = logging.getLogger("price_sync.inspector")


@dataclass
class InspectionRow:
    """One offer evaluated against one market whose name matched."""

    offer: ExternalOffer
    evaluation: MatchEvaluation


@dataclass
class InspectionResult:
    """Everything a dry run found for a barcode."""

    barcode: str
    total_markets: int
    searched_categories: list[int] = field(
        default_factory=lambda: list[int]()
    )
    category: int | None = None
    offers_found: int = 0
    rows: list[InspectionRow] = field(
        default_factory=lambda: list[InspectionRow]()
    )

    @property
    def matches(self) -> list[InspectionRow]:
        """Rows the sync job would attribute a price to.

        Several markets may pass both stages for one offer; the job
        takes the first in catalogue order, so only that row is kept.
        """
        picked: list[InspectionRow] = []
        seen: set[int] = set()
        for row in self.rows:
            if not row.evaluation.would_match or id(row.offer) in seen:
                continue
            seen.add(id(row.offer))
            picked.append(row)
        return picked


class MatchInspector:
    """Explain matching decisions without writing anything.

    The category order is, in priority: the explicit *categories*, the
    food or non-food order guessed from a product name passed to
    ``inspect``, and finally the configured sync order.
    """

    def __init__(
        self,
        store: CatalogDB,
        client: NotaParanaClient,
        categories: list[int] | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._categories = (
            list(categories) if categories is not None else None
        )

    def categories_for(self, term: str | None = None) -> list[int]:
        """Category search order for an inspection."""
        if self._categories is not None:
            return list(self._categories)
        if term and term.strip():
            return categories_for_term(term)
        return list(Settings.SEARCH_CATEGORIES)

    def inspect(
        self, barcode: str, term: str | None = None,
    ) -> InspectionResult:
        """Search like the sync job does and evaluate every pair.

        Only pairs that pass the name stage are kept, which is where
        address mismatches become visible.
        """
        barcode = barcode.strip()
        if not barcode:
            raise ValueError("barcode is required")

        markets = self._store.eligible_markets()
        result = InspectionResult(
            barcode=barcode,
            total_markets=len(markets),
            searched_categories=self.categories_for(term),
        )

        for category in result.searched_categories:
            try:
                offers = self._client.search(barcode, barcode, category)
            except Exception as exc:
                logger.warning(
                    "Inspection search failed in categoria %d: %s",
                    category,
                    exc,
                )
                continue
            if not offers:
                continue

            result.category = category
            result.offers_found = len(offers)
            for offer in offers:
                for market in markets:
                    evaluation = MarketMatcher.evaluate(
                        offer.establishment, market,
                    )
                    if evaluation.name_ok:
                        result.rows.append(
                            InspectionRow(offer=offer, evaluation=evaluation)
                        )
            break

        logger.info(
            "Inspected %s: %d offer(s), %d candidate pair(s), %d match(es)",
            barcode,
            result.offers_found,
            len(result.rows),
            len(result.matches),
        )
        return result
