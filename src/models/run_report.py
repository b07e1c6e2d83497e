# src/models/run_report.py

"""Result containers for one price sync run."""

from dataclasses import dataclass, field
from typing import Any, ClassVar


@dataclass
class MarketDetail:
    """Per-market tally of what a run recorded."""

    market: str
    products: int = 0
    prices: int = 0


@dataclass
class SyncIssues:
    """Recoverable failures a run swallowed instead of reporting.

    Per-category search failures and per-offer processing failures
    never reach ``RunReport.errors``; they are only counted here and
    written to the debug log.
    """

    category_errors: int = 0
    offer_errors: int = 0
    recent: list[str] = field(
        default_factory=lambda: list[str]()
    )

    _MAX_RECENT: ClassVar[int] = 50

    def _remember(self, message: str) -> None:
        self.recent.append(message)
        if len(self.recent) > self._MAX_RECENT:
            del self.recent[0]

    def add_category_error(self, message: str) -> None:
        """Count a failed category search."""
        self.category_errors += 1
        self._remember(message)

    def add_offer_error(self, message: str) -> None:
        """Count a failed offer."""
        self.offer_errors += 1
        self._remember(message)

    def add_unparseable_offers(self, count: int, message: str) -> None:
        """Count offers the client dropped as malformed."""
        if count <= 0:
            return
        self.offer_errors += count
        self._remember(message)

    @property
    def total(self) -> int:
        """All swallowed failures."""
        return self.category_errors + self.offer_errors


@dataclass
class RunReport:
    """Outcome of a single price sync pass."""

    success: bool = True
    markets_processed: int = 0
    products_processed: int = 0
    prices_recorded: int = 0
    products_not_found: int = 0
    elapsed_seconds: float = 0.0
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )
    details: list[MarketDetail] = field(
        default_factory=lambda: list[MarketDetail]()
    )
    issues: SyncIssues = field(default_factory=SyncIssues)

    def detail_for(self, market_name: str) -> MarketDetail:
        """Return the detail bucket for a market, creating it once."""
        for detail in self.details:
            if detail.market == market_name:
                return detail
        detail = MarketDetail(market=market_name)
        self.details.append(detail)
        return detail

    def fail(self, message: str) -> None:
        """Mark the run as fatally failed."""
        self.success = False
        self.errors = [message]

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the JSON shape callers of the sync action expect."""
        return {
            "success": self.success,
            "mercadosProcessados": self.markets_processed,
            "produtosProcessados": self.products_processed,
            "precosRegistrados": self.prices_recorded,
            "produtosNaoEncontrados": self.products_not_found,
            "tempoTotalSegundos": round(self.elapsed_seconds),
            "erros": list(self.errors),
            "detalhes": [
                {
                    "mercado": d.market,
                    "produtos": d.products,
                    "precos": d.prices,
                }
                for d in self.details
            ],
        }
