# src/models/offer.py

"""External offer models parsed from the Nota Paraná API payload."""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from src.errors import OfferParseError

# Naive API timestamps are Brasília local time (no DST since 2019)
API_TIMEZONE = timezone(timedelta(hours=-3))


def _clean(value: Any) -> str:
    """Coerce an optional API field to a stripped string."""
    if value is None:
        return ""
    return str(value).strip()


def _finite(amount: float, field_name: str) -> float:
    if not math.isfinite(amount):
        raise OfferParseError(f"{field_name}: not a finite amount")
    return amount


def parse_amount(value: Any, field_name: str) -> float:
    """Parse a monetary field that may arrive as a number or a string.

    Accepts ``"5.00"``, ``5``, and the Brazilian ``"5,00"`` form.
    Raises ``OfferParseError`` for anything else, including NaN and
    infinities.
    """
    if isinstance(value, bool):
        raise OfferParseError(f"{field_name}: unexpected boolean")
    if isinstance(value, (int, float)):
        try:
            return _finite(float(value), field_name)
        except OverflowError:
            raise OfferParseError(
                f"{field_name}: not a finite amount"
            ) from None
    text = _clean(value)
    if not text:
        raise OfferParseError(f"{field_name}: missing value")
    if "," in text and "." not in text:
        text = text.replace(",", ".")
    try:
        amount = float(text)
    except ValueError:
        raise OfferParseError(
            f"{field_name}: not a number ({text!r})"
        ) from None
    return _finite(amount, field_name)


def parse_timestamp(value: Any) -> datetime:
    """Parse the API ``datahora`` field into an aware UTC datetime."""
    text = _clean(value)
    if not text:
        raise OfferParseError("datahora: missing value")
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise OfferParseError(
            f"datahora: not an ISO timestamp ({text!r})"
        ) from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=API_TIMEZONE)
    return parsed.astimezone(timezone.utc)


@dataclass
class Establishment:
    """The retail location an offer was observed at."""

    legal_name: str = ""      # nm_emp
    trade_name: str = ""      # nm_fan
    street: str = ""          # nm_logr
    number: str = ""          # nr_logr
    neighborhood: str = ""    # bairro

    @property
    def display_name(self) -> str:
        """Legal name when present, else the trade name."""
        return self.legal_name or self.trade_name

    @property
    def address(self) -> str:
        """One-line address for logs and diagnostics."""
        street = self.street or "N/A"
        number = self.number or "S/N"
        neighborhood = self.neighborhood or "N/A"
        return f"{street}, {number} - {neighborhood}"

    @classmethod
    def from_api(cls, data: dict[str, Any] | None) -> "Establishment":
        """Build from the ``estabelecimento`` object of an API offer.

        A missing object yields an empty establishment; anything other
        than a JSON object raises ``OfferParseError``.
        """
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise OfferParseError("estabelecimento is not a JSON object")
        return cls(
            legal_name=_clean(data.get("nm_emp")),
            trade_name=_clean(data.get("nm_fan")),
            street=_clean(data.get("nm_logr")),
            number=_clean(data.get("nr_logr")),
            neighborhood=_clean(data.get("bairro")),
        )


@dataclass
class ExternalOffer:
    """One observed price for a product at an external establishment."""

    establishment: Establishment
    list_price: float
    discount: float
    observed_at: datetime
    recency: str = ""
    category: int | None = None

    @property
    def price(self) -> float:
        """Effective price paid: list price minus discount."""
        return round(self.list_price - self.discount, 2)

    @classmethod
    def from_api(
        cls,
        data: dict[str, Any],
        category: int | None = None,
    ) -> "ExternalOffer":
        """Parse one element of the API's ``produtos`` array.

        A missing discount counts as zero; a missing list price or
        timestamp raises ``OfferParseError``.
        """
        if not isinstance(data, dict):
            raise OfferParseError("offer is not a JSON object")
        raw_discount = data.get("valor_desconto")
        discount = (
            0.0
            if raw_discount in (None, "")
            else parse_amount(raw_discount, "valor_desconto")
        )
        return cls(
            establishment=Establishment.from_api(
                data.get("estabelecimento")
            ),
            list_price=parse_amount(
                data.get("valor_tabela"), "valor_tabela"
            ),
            discount=discount,
            observed_at=parse_timestamp(data.get("datahora")),
            recency=_clean(data.get("tempo")),
            category=category,
        )
