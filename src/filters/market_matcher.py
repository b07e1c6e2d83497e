# src/filters/market_matcher.py

"""Resolve external establishments to internal markets."""

import logging
from dataclasses import dataclass, field

from src.config.settings import Settings
from src.models.market import Market
from src.models.offer import Establishment, ExternalOffer

logger = logging.getLogger("price_sync.matcher")


@dataclass
class MatchEvaluation:
    """How one establishment fared against one market."""

    market: Market
    establishment_name: str
    matched_words: list[str] = field(
        default_factory=lambda: list[str]()
    )
    has_location: bool = False
    street_match: bool = False
    number_match: bool = False
    neighborhood_match: bool = False

    @property
    def name_matches(self) -> int:
        return len(self.matched_words)

    @property
    def address_matches(self) -> int:
        return sum(
            (self.street_match, self.number_match, self.neighborhood_match)
        )

    @property
    def name_ok(self) -> bool:
        return self.name_matches >= Settings.MIN_NAME_MATCHES

    @property
    def address_ok(self) -> bool:
        """Address stage result; markets without a location pass."""
        if not self.has_location:
            return True
        return self.address_matches >= Settings.MIN_ADDRESS_MATCHES

    @property
    def would_match(self) -> bool:
        return self.name_ok and self.address_ok

    def describe(self) -> str:
        """One-line summary for logs."""
        parts = [
            f"name {self.name_matches} [{', '.join(self.matched_words)}]"
        ]
        if self.has_location:
            hits = [
                label
                for label, hit in (
                    ("street", self.street_match),
                    ("number", self.number_match),
                    ("neighborhood", self.neighborhood_match),
                )
                if hit
            ]
            parts.append(
                f"address {self.address_matches} [{', '.join(hits)}]"
            )
        else:
            parts.append("address skipped")
        return " | ".join(parts)


class MarketMatcher:
    """Two-stage, first-hit matcher from establishment to market.

    Stage A compares the market's legal name with the establishment's
    name word by word; stage B, only for markets with a registered
    location, checks street, number and neighborhood against it.
    Candidates are tried in list order and the first one passing both
    stages wins.
    """

    @staticmethod
    def _tokens(text: str) -> list[str]:
        return text.lower().split()

    @staticmethod
    def matching_words(legal_name: str, establishment_name: str) -> list[str]:
        """Legal-name words that occur inside any establishment word.

        Words shorter than ``MIN_NAME_TOKEN_LENGTH`` never count.
        """
        theirs = MarketMatcher._tokens(establishment_name)
        return [
            word
            for word in MarketMatcher._tokens(legal_name)
            if len(word) >= Settings.MIN_NAME_TOKEN_LENGTH
            and any(word in token for token in theirs)
        ]

    @staticmethod
    def evaluate(
        establishment: Establishment,
        market: Market,
    ) -> MatchEvaluation:
        """Score both stages for one establishment / market pair."""
        evaluation = MatchEvaluation(
            market=market,
            establishment_name=establishment.display_name,
        )
        if not market.legal_name or not establishment.display_name:
            return evaluation

        evaluation.matched_words = MarketMatcher.matching_words(
            market.legal_name, establishment.display_name
        )
        if market.location:
            location = market.location.lower()
            street = establishment.street.lower()
            neighborhood = establishment.neighborhood.lower()
            evaluation.has_location = True
            evaluation.street_match = bool(street) and street in location
            evaluation.number_match = (
                bool(establishment.number)
                and establishment.number in location
            )
            evaluation.neighborhood_match = (
                bool(neighborhood) and neighborhood in location
            )
        return evaluation

    @staticmethod
    def resolve(
        offer: ExternalOffer,
        candidates: list[Market],
    ) -> Market | None:
        """Return the first candidate market matching *offer*, if any."""
        establishment = offer.establishment
        if not establishment.display_name:
            logger.debug("Offer without establishment name, skipping")
            return None

        for market in candidates:
            if not market.is_match_candidate:
                continue
            evaluation = MarketMatcher.evaluate(establishment, market)
            if not evaluation.name_ok:
                continue
            if not evaluation.address_ok:
                logger.debug(
                    "'%s' rejected for %s on address (%s)",
                    establishment.display_name,
                    market.name,
                    evaluation.describe(),
                )
                continue
            logger.debug(
                "'%s' at %s matched %s (%s)",
                establishment.display_name,
                establishment.address,
                market.name,
                evaluation.describe(),
            )
            return market

        logger.debug(
            "No market for '%s' at %s",
            establishment.display_name,
            establishment.address,
        )
        return None
