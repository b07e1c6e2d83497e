# tests/test_sync_orchestrator.py

"""Tests for the price sync orchestrator."""

import json
import logging
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from src.clients.nota_parana_client import NotaParanaClient
from src.errors import StoreError, SyncAlreadyRunningError
from src.models.offer import ExternalOffer
from src.services.rate_limiter import FixedIntervalLimiter
from src.services.sync_orchestrator import (
    NO_MARKETS_MESSAGE,
    NO_PRODUCTS_MESSAGE,
    PriceSyncOrchestrator,
)
from src.storage.catalog_db import CatalogDB

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
BARCODE = "7891234567890"


def _api_offer(
    nm_emp: str = "SUPERMERCADO BOM PREÇO LTDA",
    street: str = "Rua das Flores",
    number: str = "123",
    neighborhood: str = "Centro",
    list_price: str = "4.99",
    discount: str = "0.49",
    observed_at: datetime = NOW - timedelta(hours=1),
) -> dict[str, Any]:
    """Build one element of the API's ``produtos`` array."""
    return {
        "valor_tabela": list_price,
        "valor_desconto": discount,
        "datahora": observed_at.isoformat(),
        "tempo": "há 1 hora",
        "estabelecimento": {
            "nm_emp": nm_emp,
            "nm_fan": "Bom Preço",
            "nm_logr": street,
            "nr_logr": number,
            "bairro": neighborhood,
        },
    }


class FakeClient(NotaParanaClient):
    """NotaParanaClient without HTTP, answering per category.

    A value may be a list of raw API elements, parsed exactly as the
    real client parses them, or an exception to raise.
    """

    def __init__(self, by_category: dict[int, Any] | None = None) -> None:
        self.logger = logging.getLogger("price_sync.client")
        self.unparseable_count = 0
        self.by_category = by_category or {}
        self.calls: list[tuple[str, str | None, int]] = []

    def search(
        self, term: str, gtin: str | None, category: int,
    ) -> list[ExternalOffer]:
        self.calls.append((term, gtin, category))
        value = self.by_category.get(category, [])
        if isinstance(value, Exception):
            raise value
        return self._parse_offers(value, category)

    def close(self) -> None:
        pass


class FailingInsertDB(CatalogDB):
    """Store whose price inserts always fail."""

    def insert_price_record(self, *args: Any, **kwargs: Any) -> int:
        raise StoreError("insert price record failed: disk I/O error")


class BrokenLookupDB(CatalogDB):
    """Store whose dedup lookup fails with a non-store error."""

    def latest_price_since(self, *args: Any, **kwargs: Any) -> Any:
        raise ValueError("unexpected row shape")


class CountingLimiter(FixedIntervalLimiter):
    """Zero-interval limiter that counts its calls."""

    def __init__(self) -> None:
        super().__init__(0.0)
        self.waits = 0
        self.marks = 0

    async def wait(self) -> float:
        self.waits += 1
        return await super().wait()

    def mark(self) -> None:
        self.marks += 1
        super().mark()


class OrchestratorTestCase(unittest.IsolatedAsyncioTestCase):
    """Shared store setup."""

    db_class: type[CatalogDB] = CatalogDB

    def setUp(self) -> None:
        """Create a fresh store per test."""
        self.db_path = Path(tempfile.mkdtemp()) / "sync.db"
        self.db = self.db_class(db_path=self.db_path)

    def tearDown(self) -> None:
        """Close the store."""
        self.db.close()

    def _seed(self, location: str | None = "Rua das Flores, 123 - Centro"):
        market = self.db.add_market(
            "Bom Preço",
            legal_name="Supermercado Bom Preço LTDA",
            location=location,
        )
        product = self.db.add_product("Arroz 5kg", barcode=BARCODE)
        return market, product

    def _orchestrator(
        self,
        client: FakeClient,
        categories: list[int] | None = None,
        limiter: FixedIntervalLimiter | None = None,
    ) -> PriceSyncOrchestrator:
        return PriceSyncOrchestrator(
            store=self.db,
            client=client,
            limiter=limiter or FixedIntervalLimiter(0.0),
            categories=categories if categories is not None else [55, 63, 1],
            clock=lambda: NOW,
        )


class TestPreconditions(OrchestratorTestCase):
    """Runs that stop before searching."""

    async def test_no_markets(self) -> None:
        """No eligible market means no search and zero counts."""
        self.db.add_market("Sem razão social")
        self.db.add_product("Arroz", barcode=BARCODE)
        client = FakeClient()
        report = await self._orchestrator(client).run()
        self.assertTrue(report.success)
        self.assertEqual(report.errors, [NO_MARKETS_MESSAGE])
        self.assertEqual(report.markets_processed, 0)
        self.assertEqual(report.products_processed, 0)
        self.assertEqual(client.calls, [])

    async def test_no_products(self) -> None:
        """No product with a barcode means no search."""
        self.db.add_market("M", legal_name="Mercado Alfa Beta")
        self.db.add_product("Sem código")
        client = FakeClient()
        report = await self._orchestrator(client).run()
        self.assertTrue(report.success)
        self.assertEqual(report.errors, [NO_PRODUCTS_MESSAGE])
        self.assertEqual(report.products_processed, 0)
        self.assertEqual(client.calls, [])

    async def test_products_without_barcode_never_searched(self) -> None:
        """Only barcoded products are processed."""
        self._seed()
        self.db.add_product("Granel")
        client = FakeClient()
        report = await self._orchestrator(client).run()
        self.assertEqual(report.products_processed, 1)
        self.assertTrue(all(call[0] == BARCODE for call in client.calls))


class TestCategoryIteration(OrchestratorTestCase):
    """First-match-wins across categories."""

    async def test_stops_at_first_category_with_offers(self) -> None:
        """Later categories are never queried."""
        self._seed()
        client = FakeClient({63: [_api_offer()], 1: [_api_offer()]})
        await self._orchestrator(client).run()
        self.assertEqual(
            [call[2] for call in client.calls], [55, 63],
        )
        self.assertEqual(client.calls[0], (BARCODE, BARCODE, 55))

    async def test_not_found_in_any_category(self) -> None:
        """Every category is tried and the product counted as not found."""
        self._seed()
        client = FakeClient()
        report = await self._orchestrator(client).run()
        self.assertEqual(len(client.calls), 3)
        self.assertEqual(report.products_not_found, 1)
        self.assertEqual(report.prices_recorded, 0)

    async def test_category_errors_are_swallowed(self) -> None:
        """A failing category is skipped and not reported as an error."""
        self._seed()
        client = FakeClient(
            {55: TimeoutError("timed out"), 63: [_api_offer()]}
        )
        report = await self._orchestrator(client).run()
        self.assertTrue(report.success)
        self.assertEqual(report.errors, [])
        self.assertEqual(report.prices_recorded, 1)
        self.assertEqual(report.issues.category_errors, 1)

    async def test_limiter_paces_every_product(self) -> None:
        """The limiter is consulted once per product."""
        self._seed()
        self.db.add_product("Feijão", barcode="7890000000001")
        limiter = CountingLimiter()
        await self._orchestrator(FakeClient(), limiter=limiter).run()
        self.assertEqual(limiter.waits, 2)
        self.assertEqual(limiter.marks, 2)


class TestEndToEnd(OrchestratorTestCase):
    """Full passes against a real store."""

    async def test_records_matched_price(self) -> None:
        """One matching offer yields one record with its net price."""
        market, product = self._seed()
        client = FakeClient({55: [_api_offer()]})
        report = await self._orchestrator(client).run()

        self.assertTrue(report.success)
        data = report.to_dict()
        self.assertEqual(data["mercadosProcessados"], 1)
        self.assertEqual(data["produtosProcessados"], 1)
        self.assertEqual(data["precosRegistrados"], 1)
        self.assertEqual(
            data["detalhes"],
            [{"mercado": "Bom Preço", "produtos": 1, "precos": 1}],
        )
        records = self.db.price_history(product.id, market.id)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].price, 4.50)
        self.assertEqual(
            records[0].record_date, NOW - timedelta(hours=1),
        )
        self.assertEqual(
            records[0].notes, "Synced - Nota Paraná (há 1 hora)",
        )

    async def test_rerun_is_deduplicated(self) -> None:
        """Running again with the same offer records nothing new."""
        market, product = self._seed()
        client = FakeClient({55: [_api_offer()]})
        await self._orchestrator(client).run()
        report = await self._orchestrator(client).run()
        self.assertEqual(report.prices_recorded, 0)
        self.assertEqual(report.details, [])
        self.assertEqual(len(self.db.price_history(product.id)), 1)

    async def test_price_change_is_recorded(self) -> None:
        """A new price within the window is still recorded."""
        _, product = self._seed()
        await self._orchestrator(FakeClient({55: [_api_offer()]})).run()
        changed = FakeClient({55: [_api_offer(discount="0.00")]})
        report = await self._orchestrator(changed).run()
        self.assertEqual(report.prices_recorded, 1)
        prices = [r.price for r in self.db.price_history(product.id)]
        self.assertEqual(prices, [4.50, 4.99])

    async def test_two_of_three_address_fields_accepted(self) -> None:
        """Street and number are enough when the neighborhood differs."""
        self._seed()
        client = FakeClient({55: [_api_offer(neighborhood="Batel")]})
        report = await self._orchestrator(client).run()
        self.assertEqual(report.prices_recorded, 1)

    async def test_wrong_number_still_matches(self) -> None:
        """Street and neighborhood outweigh a wrong street number."""
        self._seed(location="Rua das Flores, 123, Centro")
        client = FakeClient({55: [_api_offer(number="999")]})
        report = await self._orchestrator(client).run()
        self.assertEqual(report.prices_recorded, 1)

    async def test_later_category_without_location(self) -> None:
        """Offers from a later category are recorded for unlocated markets."""
        _, product = self._seed(location=None)
        offer = _api_offer(list_price="5.00", discount="0.50")
        client = FakeClient({3: [offer]})
        report = await self._orchestrator(client, categories=[55, 3]).run()
        self.assertEqual(report.to_dict()["precosRegistrados"], 1)
        records = self.db.price_history(product.id)
        self.assertEqual([r.price for r in records], [4.50])

    async def test_one_of_three_address_fields_rejected(self) -> None:
        """A shared street alone does not match a located market."""
        self._seed()
        client = FakeClient(
            {55: [_api_offer(number="999", neighborhood="Batel")]}
        )
        report = await self._orchestrator(client).run()
        self.assertTrue(report.success)
        self.assertEqual(report.prices_recorded, 0)

    async def test_trade_name_alone_is_not_enough(self) -> None:
        """Only one long word in common fails the name stage."""
        self._seed(location=None)
        offer = _api_offer(nm_emp="")
        client = FakeClient({55: [offer]})
        report = await self._orchestrator(client).run()
        self.assertEqual(report.prices_recorded, 0)

    async def test_unmatched_offers_are_ignored(self) -> None:
        """Offers from unknown establishments record nothing."""
        self._seed()
        client = FakeClient(
            {55: [_api_offer(nm_emp="DROGARIA QUALQUER COISA SA")]}
        )
        report = await self._orchestrator(client).run()
        self.assertTrue(report.success)
        self.assertEqual(report.prices_recorded, 0)
        self.assertEqual(report.products_not_found, 0)

    async def test_run_is_finalised_in_history(self) -> None:
        """The run lock row is closed with the report."""
        self._seed()
        report = await self._orchestrator(
            FakeClient({55: [_api_offer()]})
        ).run()
        runs = self.db.list_runs()
        self.assertEqual(len(runs), 1)
        self.assertEqual(runs[0].status, "completed")
        self.assertEqual(runs[0].prices_recorded, 1)
        self.assertIsNotNone(runs[0].finished_at)
        stored = json.loads(runs[0].report_json or "{}")
        self.assertEqual(stored["precosRegistrados"], report.prices_recorded)

    async def test_concurrent_run_refused(self) -> None:
        """A live lock makes a second run raise."""
        self._seed()
        self.db.acquire_run_lock()
        client = FakeClient({55: [_api_offer()]})
        with self.assertRaises(SyncAlreadyRunningError):
            await self._orchestrator(client).run()
        self.assertEqual(client.calls, [])


class TestMalformedOffers(OrchestratorTestCase):
    """Bad payload elements only cost themselves."""

    async def test_nan_price_skipped_before_good_offer(self) -> None:
        """A NaN price neither aborts the run nor blocks the next offer."""
        _, product = self._seed()
        client = FakeClient(
            {55: [_api_offer(list_price="NaN"), _api_offer()]}
        )
        report = await self._orchestrator(client).run()
        self.assertTrue(report.success)
        self.assertEqual(report.errors, [])
        self.assertEqual(report.prices_recorded, 1)
        self.assertEqual(report.issues.offer_errors, 1)
        prices = [r.price for r in self.db.price_history(product.id)]
        self.assertEqual(prices, [4.50])

    async def test_infinite_price_never_stored(self) -> None:
        """Infinite amounts are dropped at parse time."""
        _, product = self._seed()
        client = FakeClient({55: [_api_offer(discount="-inf")]})
        report = await self._orchestrator(client).run()
        self.assertTrue(report.success)
        self.assertEqual(report.prices_recorded, 0)
        self.assertEqual(self.db.price_history(product.id), [])

    async def test_bad_establishment_keeps_category(self) -> None:
        """A non-object estabelecimento drops one offer, not the category."""
        self._seed()
        broken = _api_offer()
        broken["estabelecimento"] = "Bom Preço"
        client = FakeClient({55: [broken, _api_offer()], 63: [_api_offer()]})
        report = await self._orchestrator(client).run()
        self.assertEqual([call[2] for call in client.calls], [55])
        self.assertEqual(report.prices_recorded, 1)
        self.assertEqual(report.issues.category_errors, 0)
        self.assertEqual(report.issues.offer_errors, 1)

    async def test_all_malformed_moves_to_next_category(self) -> None:
        """A category whose offers all fail to parse yields nothing."""
        self._seed()
        client = FakeClient(
            {55: [_api_offer(list_price="abc")], 63: [_api_offer()]}
        )
        report = await self._orchestrator(client).run()
        self.assertEqual([call[2] for call in client.calls], [55, 63])
        self.assertEqual(report.prices_recorded, 1)
        self.assertEqual(report.issues.offer_errors, 1)


class TestStoreFailure(OrchestratorTestCase):
    """Store errors abort the run."""

    db_class = FailingInsertDB

    async def test_store_error_is_fatal(self) -> None:
        """The run fails with the store's message."""
        self._seed()
        client = FakeClient({55: [_api_offer()]})
        report = await self._orchestrator(client).run()
        self.assertFalse(report.success)
        self.assertEqual(
            report.errors,
            ["insert price record failed: disk I/O error"],
        )
        self.assertEqual(self.db.list_runs()[0].status, "failed")


class TestOfferFailure(OrchestratorTestCase):
    """Non-store errors while handling an offer only skip it."""

    db_class = BrokenLookupDB

    async def test_offer_error_is_swallowed(self) -> None:
        """The run succeeds and the failure is only counted."""
        self._seed()
        client = FakeClient({55: [_api_offer(), _api_offer()]})
        report = await self._orchestrator(client).run()
        self.assertTrue(report.success)
        self.assertEqual(report.errors, [])
        self.assertEqual(report.prices_recorded, 0)
        self.assertEqual(report.issues.offer_errors, 2)


if __name__ == "__main__":
    unittest.main()
