# src/clients/nota_parana_client.py

"""Client for the Nota Paraná "Menor Preço" price-transparency API."""

import json
import logging
from typing import Any

from curl_cffi import requests as curl_requests

from src.config.settings import Settings
from src.errors import OfferParseError
from src.models.offer import ExternalOffer


class NotaParanaClient:
    """Thin wrapper around the ``/produtos`` search endpoint.

    Searches are scoped to one category at a time.  An unusable
    response (non-2xx, non-JSON, or no ``produtos``) is reported as an
    empty list so callers can move on to the next category; timeouts
    and connection errors propagate.
    """

    SEARCH_PATH = "/produtos"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: int | None = None,
    ) -> None:
        self.logger = logging.getLogger("price_sync.client")
        self.settings = Settings()
        self.base_url = (base_url or self.settings.API_BASE_URL).rstrip("/")
        self._request_timeout: int = (
            timeout or self.settings.REQUEST_TIMEOUT
        )
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self.unparseable_count: int = 0

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

    def build_params(
        self,
        term: str,
        gtin: str | None,
        category: int,
        locale: str | None = None,
        radius: int | None = None,
        period: int | None = None,
        order: int | None = None,
        offset: int = 0,
    ) -> dict[str, str]:
        """Assemble the query string, filling defaults from Settings."""
        return {
            "local": locale or self.settings.LOCALE,
            "termo": term,
            "categoria": str(category),
            "offset": str(offset),
            "raio": str(self.settings.RADIUS if radius is None else radius),
            "data": str(
                self.settings.PERIOD_DAYS if period is None else period
            ),
            "ordem": str(self.settings.ORDER if order is None else order),
            "gtin": gtin if gtin is not None else term,
        }

    def search(
        self,
        term: str,
        gtin: str | None,
        category: int,
        locale: str | None = None,
        radius: int | None = None,
        period: int | None = None,
        order: int | None = None,
        offset: int = 0,
    ) -> list[ExternalOffer]:
        """Return the offers the API lists for *term* in *category*."""
        params = self.build_params(
            term, gtin, category, locale, radius, period, order, offset,
        )
        url = f"{self.base_url}{self.SEARCH_PATH}"
        self.logger.debug(
            "[nota_parana] GET %s termo=%s categoria=%d",
            url,
            term,
            category,
        )
        resp = self.session.get(
            url,
            params=params,
            headers=self.settings.DEFAULT_HEADERS,
            timeout=self._request_timeout,
        )

        if not 200 <= resp.status_code < 300:
            self.logger.warning(
                "[nota_parana] HTTP %d for termo=%s categoria=%d",
                resp.status_code,
                term,
                category,
            )
            return []

        try:
            data: Any = resp.json()
        except (json.JSONDecodeError, ValueError):
            self.logger.warning(
                "[nota_parana] Non-JSON body for termo=%s categoria=%d",
                term,
                category,
            )
            return []

        raw_offers = data.get("produtos") if isinstance(data, dict) else None
        if not raw_offers or not isinstance(raw_offers, list):
            self.logger.debug(
                "[nota_parana] No offers for termo=%s categoria=%d",
                term,
                category,
            )
            return []

        return self._parse_offers(raw_offers, category)

    def _parse_offers(
        self,
        raw_offers: list[Any],
        category: int,
    ) -> list[ExternalOffer]:
        """Convert payload entries, skipping malformed ones."""
        offers: list[ExternalOffer] = []
        for raw in raw_offers:
            try:
                offers.append(ExternalOffer.from_api(raw, category))
            except OfferParseError as exc:
                self.unparseable_count += 1
                self.logger.debug(
                    "[nota_parana] Skipping malformed offer: %s", exc,
                )
        self.logger.info(
            "[nota_parana] %d offer(s) in categoria=%d",
            len(offers),
            category,
        )
        return offers
