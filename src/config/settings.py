# src/config/settings.py

"""Central configuration for the price_sync job."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

from src.config.categories import search_categories_for_set

load_dotenv()


class Settings:
    """Central configuration for the price_sync job."""

    # --- External price API (Nota Paraná "Menor Preço") ---
    API_BASE_URL: str = os.getenv(
        "PRICE_SYNC_API_BASE_URL",
        "https://menorpreco.notaparana.pr.gov.br/api/v1",
    )
    LOCALE: str = os.getenv("PRICE_SYNC_LOCALE", "6gg4dpecb")  # Maringá-PR geohash
    RADIUS: int = int(os.getenv("PRICE_SYNC_RADIUS", "20"))          # km
    PERIOD_DAYS: int = int(os.getenv("PRICE_SYNC_PERIOD_DAYS", "60"))
    ORDER: int = int(os.getenv("PRICE_SYNC_ORDER", "0"))
    CATEGORY_SET: str = os.getenv("PRICE_SYNC_CATEGORY_SET", "food")
    SEARCH_CATEGORIES: list[int] = search_categories_for_set(CATEGORY_SET)

    # --- Requests / rate limiting ---
    REQUEST_TIMEOUT: int = int(
        os.getenv("PRICE_SYNC_REQUEST_TIMEOUT", "15")
    )
    PRODUCT_DELAY: float = float(
        os.getenv("PRICE_SYNC_PRODUCT_DELAY", "0.2")
    )                                   # Seconds between products

    # --- Matching ---
    MIN_NAME_MATCHES: int = 2           # Legal-name words required
    MIN_NAME_TOKEN_LENGTH: int = 4      # Shorter words never count
    MIN_ADDRESS_MATCHES: int = 2        # Of street / number / neighborhood

    # --- Deduplication ---
    DEDUP_WINDOW_HOURS: int = 24
    PRICE_TOLERANCE: float = 0.01

    # --- Run lock ---
    RUN_LOCK_TTL: float = float(
        os.getenv("PRICE_SYNC_RUN_LOCK_TTL", "21600")
    )                                   # Seconds before a lock is stale

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7",
        "sec-fetch-dest": "empty",
        "sec-fetch-mode": "cors",
        "sec-fetch-site": "same-origin",
    }

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DB_PATH: Path = Path(
        os.getenv(
            "PRICE_SYNC_DB_PATH",
            str(BASE_DIR / "data" / "price_sync.db"),
        )
    )
    LOGS_DIR: Path = BASE_DIR / "logs"
