"""Centralised settings for the ScrapeGate service.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (one level up from this package)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Domain reputation service (APIVoid)
    # ------------------------------------------------------------------
    apivoid_key: str = field(default_factory=lambda: os.environ.get("APIVOID_KEY", ""))
    apivoid_url: str = field(
        default_factory=lambda: os.environ.get(
            "APIVOID_URL", "https://api.apivoid.com/v2/parked-domain"
        )
    )
    apivoid_timeout: float = field(
        default_factory=lambda: float(os.environ.get("APIVOID_TIMEOUT", "12.0"))
    )

    # ------------------------------------------------------------------
    # Rendering proxy (ScraperAPI)
    # ------------------------------------------------------------------
    scraperapi_key: str = field(
        default_factory=lambda: os.environ.get("SCRAPERAPI_KEY", "")
    )
    scraperapi_url: str = field(
        default_factory=lambda: os.environ.get(
            "SCRAPERAPI_URL", "https://api.scraperapi.com/"
        )
    )
    scraperapi_timeout: float = field(
        default_factory=lambda: float(os.environ.get("SCRAPERAPI_TIMEOUT", "40.0"))
    )

    # ------------------------------------------------------------------
    # Headless browser
    # ------------------------------------------------------------------
    browser_executable_path: str = field(
        default_factory=lambda: os.environ.get(
            "BROWSER_EXECUTABLE_PATH", os.environ.get("PUPPETEER_EXECUTABLE_PATH", "")
        )
    )
    browser_warm_up: bool = field(
        default_factory=lambda: _env_bool("BROWSER_WARM_UP", True)
    )
    # Seconds; converted to milliseconds at the Playwright call sites.
    browser_timeout: float = 35.0
    navigation_timeout: float = 30.0
    network_idle_timeout: float = 10.0
    extraction_attempts: int = 2
    extraction_settle_delay: float = 0.6

    # ------------------------------------------------------------------
    # Pipeline / batch limits
    # ------------------------------------------------------------------
    max_urls_per_request: int = field(
        default_factory=lambda: int(os.environ.get("MAX_URLS_PER_REQUEST", "50"))
    )
    concurrency: int = field(
        default_factory=lambda: int(os.environ.get("CONCURRENCY", "2"))
    )
    per_url_timeout: float = field(
        default_factory=lambda: float(os.environ.get("PER_URL_TIMEOUT", "60.0"))
    )
    text_max_chars: int = 200_000
    title_max_chars: int = 300
    # Pages shorter than this that mention a CAPTCHA are treated as bot walls.
    min_text_chars: int = 300

    # ------------------------------------------------------------------
    # HTTP server / process
    # ------------------------------------------------------------------
    host: str = field(default_factory=lambda: os.environ.get("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.environ.get("PORT", "3002")))
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO").upper()
    )


# Module-level singleton — import this everywhere:
#   from scrapegate.config import settings
settings = Settings()


def configure_logging() -> None:
    """Install the root log handler once, at process entry."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
