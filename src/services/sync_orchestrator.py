# src/services/sync_orchestrator.py

"""Drives one price synchronisation pass against the external API."""

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from src.clients.nota_parana_client import NotaParanaClient
from src.config.categories import category_label
from src.config.settings import Settings
from src.errors import StoreError
from src.filters.market_matcher import MarketMatcher
from src.filters.price_deduplicator import PriceDeduplicator
from src.models.market import Market
from src.models.offer import ExternalOffer
from src.models.product import Product
from src.models.run_report import RunReport
from src.services.ingestion_writer import IngestionWriter, source_note
from src.services.rate_limiter import FixedIntervalLimiter
from src.storage.catalog_db import CatalogDB

logger = logging.getLogger("price_sync.orchestrator")

NO_MARKETS_MESSAGE = "No market with a registered legal name found"
NO_PRODUCTS_MESSAGE = "No product with a barcode found"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PriceSyncOrchestrator:
    """Runs the search → resolve → dedup → write loop for every product.

    Everything is sequential: one product, one category, one offer at
    a time.  Blocking network and store calls are pushed to a worker
    thread so the event loop is free between them, but never more than
    one is in flight.
    """

    def __init__(
        self,
        store: CatalogDB | None = None,
        client: NotaParanaClient | None = None,
        limiter: FixedIntervalLimiter | None = None,
        categories: list[int] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.settings = Settings()
        self._store = store or CatalogDB()
        self._client = client or NotaParanaClient()
        self._limiter = limiter or FixedIntervalLimiter(
            self.settings.PRODUCT_DELAY
        )
        self._categories = list(
            categories
            if categories is not None
            else self.settings.SEARCH_CATEGORIES
        )
        self._clock = clock

    # ── Entry point ──────────────────────────────────────

    async def run(self) -> RunReport:
        """Execute one full pass and return its report.

        Raises ``SyncAlreadyRunningError`` when another run holds the
        lock.  Any other failure outside the per-category and
        per-offer guards ends the run with ``success=False``.
        """
        report = RunReport()
        try:
            run_id = await asyncio.to_thread(self._store.acquire_run_lock)
        except StoreError as exc:
            logger.critical("Price sync could not start: %s", exc)
            report.fail(str(exc))
            return report

        started = time.monotonic()
        try:
            await self._sync(report)
        except Exception as exc:
            logger.critical(
                "Price sync aborted: %s", exc, exc_info=True,
            )
            report.fail(str(exc) or type(exc).__name__)
        finally:
            report.elapsed_seconds = time.monotonic() - started
            await self._finish(run_id, report)
        return report

    async def _finish(self, run_id: int, report: RunReport) -> None:
        """Release the run lock with the final report."""
        try:
            await asyncio.to_thread(
                self._store.finish_run,
                run_id,
                report.success,
                report.prices_recorded,
                report.to_dict(),
            )
        except StoreError as exc:
            logger.error(
                "Could not release run lock %d: %s", run_id, exc,
            )

    # ── Main loop ────────────────────────────────────────

    async def _sync(self, report: RunReport) -> None:
        markets = await asyncio.to_thread(self._store.eligible_markets)
        markets = [m for m in markets if m.is_match_candidate]
        logger.info("%d market(s) with a legal name", len(markets))
        if not markets:
            report.errors.append(NO_MARKETS_MESSAGE)
            return

        products = await asyncio.to_thread(self._store.eligible_products)
        products = [p for p in products if p.barcode]
        logger.info("%d product(s) with a barcode", len(products))
        if not products:
            report.errors.append(NO_PRODUCTS_MESSAGE)
            return

        report.markets_processed = len(markets)
        report.products_processed = len(products)

        dedup = PriceDeduplicator(self._store, clock=self._clock)
        writer = IngestionWriter(self._store, report)

        for product in products:
            await self._limiter.wait()
            offers = await self._search_first_category(product, report)
            if not offers:
                report.products_not_found += 1
                logger.info(
                    "%s (%s) not found in any category",
                    product.name,
                    product.barcode,
                )
            for offer in offers:
                await self._process_offer(
                    product, offer, markets, dedup, writer, report,
                )
            self._limiter.mark()

        logger.info(
            "Sync finished: %d price(s) recorded, %d product(s) not "
            "found, %d swallowed error(s) (%d category, %d offer)",
            report.prices_recorded,
            report.products_not_found,
            report.issues.total,
            report.issues.category_errors,
            report.issues.offer_errors,
        )

    async def _search_first_category(
        self,
        product: Product,
        report: RunReport,
    ) -> list[ExternalOffer]:
        """Return offers of the first category that has any.

        Later categories are never queried once one yields offers.
        """
        barcode = product.barcode or ""
        for category in self._categories:
            skipped_before = self._client.unparseable_count
            try:
                offers = await asyncio.to_thread(
                    self._client.search, barcode, barcode, category,
                )
            except Exception as exc:
                report.issues.add_category_error(
                    f"{product.name} / categoria {category}: {exc}"
                )
                logger.debug(
                    "Search failed for %s in categoria %d: %s",
                    barcode,
                    category,
                    exc,
                    exc_info=True,
                )
                continue
            skipped = self._client.unparseable_count - skipped_before
            if skipped:
                report.issues.add_unparseable_offers(
                    skipped,
                    f"{product.name} / categoria {category}: "
                    f"{skipped} malformed offer(s)",
                )
            if offers:
                logger.info(
                    "%s: %d offer(s) in categoria %d (%s)",
                    product.name,
                    len(offers),
                    category,
                    category_label(category),
                )
                return offers
        return []

    async def _process_offer(
        self,
        product: Product,
        offer: ExternalOffer,
        markets: list[Market],
        dedup: PriceDeduplicator,
        writer: IngestionWriter,
        report: RunReport,
    ) -> None:
        """Resolve, dedup and persist one offer.

        A failure here only skips the offer; store failures are fatal
        and propagate.
        """
        try:
            market = MarketMatcher.resolve(offer, markets)
            if market is None:
                return
            price = offer.price
            accepted = await asyncio.to_thread(
                dedup.should_record,
                product.id,
                market.id,
                price,
                offer.observed_at,
            )
            if not accepted:
                return
            await asyncio.to_thread(
                writer.write,
                product,
                market,
                price,
                offer.observed_at,
                source_note(offer.recency),
            )
        except StoreError:
            raise
        except Exception as exc:
            report.issues.add_offer_error(
                f"{product.name} @ "
                f"{offer.establishment.display_name}: {exc}"
            )
            logger.debug(
                "Offer skipped for %s: %s",
                product.name,
                exc,
                exc_info=True,
            )
