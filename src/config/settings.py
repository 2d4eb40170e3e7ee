# src/config/settings.py

"""Central configuration for the market_prices crawler."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str) -> bool:
    """Interpret an environment variable as a boolean switch."""
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes")


class Settings:
    """Central configuration for the market_prices crawler."""

    # --- Remote listing endpoint ---
    SEARCH_URL: str = "https://steamcommunity.com/market/search/render/"
    APP_ID: int = 730
    CURRENCY: str = "USD"
    CURRENCY_CODE: int = 1              # Steam wallet currency id for USD
    PAGE_SIZE: int = 10

    # --- Pacing ---
    REQUEST_DELAY: float = 5.0          # Seconds between page requests
    REQUEST_TIMEOUT: int = 30           # Seconds before a request times out
    MAX_RETRIES: int = 5                # Retries after the first attempt
    RETRY_BASE_DELAY: float = 5.0       # Transient backoff base (x 2^attempt)

    # --- Rate limiting ---
    RATE_LIMIT_BASE_DELAY: float = 60.0  # Rate-limit backoff base (x 2^n)
    MAX_RATE_LIMIT_RETRIES: int = 5

    # --- Run control ---
    MAX_RUNTIME: float = 90 * 60.0      # Wall-clock budget per run (secs)
    SAVE_EVERY: int = 100               # Checkpoint every N items
    FORCE_FETCH: bool = _env_flag("FORCE_FETCH")

    # --- Authenticated transport context ---
    MARKET_COOKIES: str = os.getenv("MARKET_COOKIES", "")

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "application/json",
        "Accept-Language": "en-US,en;q=0.9",
        "Referer": "https://steamcommunity.com/market/",
    }

    # --- Logging ---
    CONSOLE_LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_KEEP_RUNS: int = 20

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    STATIC_DIR: Path = BASE_DIR / "static"
    CHECKPOINT_PATH: Path = Path(
        os.getenv("CHECKPOINT_PATH", str(STATIC_DIR / "latest.json"))
    )
    LOGS_DIR: Path = BASE_DIR / "logs"
