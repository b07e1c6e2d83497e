# tests/test_run_report.py

"""Tests for the run report container."""

import unittest

from src.models.run_report import RunReport, SyncIssues


class TestRunReport(unittest.TestCase):
    """RunReport helpers and serialisation."""

    def test_defaults(self) -> None:
        """A new report is successful and empty."""
        report = RunReport()
        self.assertTrue(report.success)
        self.assertEqual(report.errors, [])
        self.assertEqual(report.details, [])

    def test_detail_for_creates_once(self) -> None:
        """Buckets are keyed by market name."""
        report = RunReport()
        first = report.detail_for("Bom Preço")
        self.assertIs(report.detail_for("Bom Preço"), first)
        report.detail_for("Central")
        self.assertEqual(len(report.details), 2)

    def test_fail_replaces_errors(self) -> None:
        """A fatal failure carries exactly its own message."""
        report = RunReport(errors=["earlier"])
        report.fail("database is locked")
        self.assertFalse(report.success)
        self.assertEqual(report.errors, ["database is locked"])

    def test_to_dict_shape(self) -> None:
        """The JSON contract uses the Portuguese keys."""
        report = RunReport(
            markets_processed=2,
            products_processed=3,
            prices_recorded=1,
            products_not_found=2,
            elapsed_seconds=4.6,
        )
        detail = report.detail_for("Bom Preço")
        detail.products = 1
        detail.prices = 1
        data = report.to_dict()
        self.assertEqual(
            data,
            {
                "success": True,
                "mercadosProcessados": 2,
                "produtosProcessados": 3,
                "precosRegistrados": 1,
                "produtosNaoEncontrados": 2,
                "tempoTotalSegundos": 5,
                "erros": [],
                "detalhes": [
                    {"mercado": "Bom Preço", "produtos": 1, "precos": 1}
                ],
            },
        )

    def test_issues_not_serialised(self) -> None:
        """Swallowed errors stay out of the public report."""
        report = RunReport()
        report.issues.add_offer_error("boom")
        self.assertEqual(report.to_dict()["erros"], [])


class TestSyncIssues(unittest.TestCase):
    """SyncIssues accumulator."""

    def test_counts(self) -> None:
        """Category and offer errors are counted separately."""
        issues = SyncIssues()
        issues.add_category_error("timeout")
        issues.add_offer_error("bad")
        issues.add_offer_error("worse")
        self.assertEqual(issues.category_errors, 1)
        self.assertEqual(issues.offer_errors, 2)
        self.assertEqual(issues.total, 3)

    def test_unparseable_offers_count_as_offer_errors(self) -> None:
        """Offers dropped by the client add to the offer error count."""
        issues = SyncIssues()
        issues.add_unparseable_offers(3, "Arroz / categoria 55: 3 malformed")
        issues.add_unparseable_offers(0, "ignored")
        self.assertEqual(issues.offer_errors, 3)
        self.assertEqual(issues.recent, ["Arroz / categoria 55: 3 malformed"])

    def test_recent_is_bounded(self) -> None:
        """Only the latest messages are kept."""
        issues = SyncIssues()
        for i in range(60):
            issues.add_offer_error(f"e{i}")
        self.assertEqual(len(issues.recent), 50)
        self.assertEqual(issues.recent[-1], "e59")
        self.assertEqual(issues.recent[0], "e10")


if __name__ == "__main__":
    unittest.main()
