# pricesync/config/settings.py

"""Central configuration for the price sync engine."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_csv(name: str) -> list[str]:
    """Split a comma-separated environment variable into clean items."""
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    """Central configuration for the price sync engine."""

    # --- Credentials / endpoints ---
    REEBELO_API_KEY: str = os.getenv("REEBELO_API_KEY", "")
    REEBELO_API_URL: str = "https://a.reebelo.com/sockets/offers"
    GREENGADGETS_BASE_URL: str = "https://shop.greengadgets.net.au"
    GREENGADGETS_HANDLES: list[str] = _env_csv("GREENGADGETS_HANDLES")

    # --- Scraping ---
    REQUEST_DELAY: float = 0.5          # Seconds between query keys
    PAGE_DELAY: float = 0.1             # Seconds between pages of one key
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out
    MAX_RETRIES: int = 3                # Retry count on transient failures
    RATE_LIMIT_DELAY: float = 5.0       # Fixed wait after an HTTP 429
    MAX_RATE_LIMIT_RETRIES: int = 5     # 429s tolerated on one page
    MAX_PAGES: int = 50                 # Hard stop for runaway pagination
    KEY_CONCURRENCY: int = 2            # Parallel query keys per adapter

    # --- Resilience ---
    CIRCUIT_BREAKER_THRESHOLD: int = 5  # Consecutive key failures to trip
    CIRCUIT_BREAKER_COOLDOWN: float = 30.0  # Seconds a tripped breaker holds keys

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "application/json",
        "Accept-Language": "en-AU,en;q=0.9",
    }

    # --- Normalisation ---
    REPORTING_CURRENCY: str = "AUD"
    FX_RATES: dict[str, str] = {        # Units of reporting currency per unit
        "AUD": "1",
    }

    # --- Persistence ---
    HISTORY_BATCH_SIZE: int = 500
    STORE_MAX_RETRIES: int = 3
    STORE_RETRY_BASE_DELAY: float = 1.0
    TRANSIENT_STORE_ERRORS: tuple[str, ...] = (
        "schema has changed",
        "schema cache",
        "database is locked",
    )
    REQUIRE_BULK_UPSERT: bool = (
        os.getenv("PRICESYNC_REQUIRE_BULK_UPSERT", "").lower()
        in ("1", "true", "yes")
    )

    # --- Monitoring ---
    STALE_RUN_TIMEOUT: float = 3 * 60 * 60   # Seconds a run may stay running
    HEALTH_WINDOW_HOURS: int = 24
    HEALTH_FAILURE_RATE: float = 0.5

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    VOCABULARY_PATH: Path = BASE_DIR / "pricesync" / "config" / "vocabulary.json"
    DB_PATH: Path = Path(
        os.getenv("PRICESYNC_DB_PATH", str(BASE_DIR / "data" / "pricesync.db"))
    )
    REPORTS_DIR: Path = BASE_DIR / "reports"
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Competitors (registry for future extensibility) ---
    COMPETITORS: list[dict[str, str]] = [
        {
            "id": "reebelo",
            "label": "Reebelo",
            "adapter": "pricesync.scrapers.reebelo_adapter.ReebeloAdapter",
            "normalizer": "pricesync.normalizers.reebelo.normalize_reebelo",
            "query_kind": "sku",
        },
        {
            "id": "green-gadgets",
            "label": "Green Gadgets",
            "adapter": (
                "pricesync.scrapers.greengadgets_adapter.GreenGadgetsAdapter"
            ),
            "normalizer": (
                "pricesync.normalizers.greengadgets.normalize_greengadgets"
            ),
            "query_kind": "handle",
            # Settings attribute listing keys no mapping references yet
            "extra_keys": "GREENGADGETS_HANDLES",
        },
    ]
