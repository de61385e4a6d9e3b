"""Fallback fetch through the ScraperAPI rendering proxy.

Used when the headless render comes back as a bot wall.  The proxy returns
raw HTML, which is reduced to a title and whitespace-collapsed body text.
"""

from __future__ import annotations

import logging
import re

import httpx
from bs4 import BeautifulSoup

from scrapegate.config import settings
from scrapegate.scraper.models import FailureReason, FetchResult

logger = logging.getLogger(__name__)

_TITLE_RE = re.compile(r"<title[^>]*>([\s\S]*?)</title>", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# HTML helpers
# ---------------------------------------------------------------------------

def html_to_text(html: str) -> str:
    """Drop ``<script>``/``<style>`` blocks and all tags, collapse whitespace."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return _WHITESPACE_RE.sub(" ", soup.get_text(separator=" ")).strip()


def extract_title(html: str) -> str:
    """Return the text of the first ``<title>`` tag, or an empty string."""
    match = _TITLE_RE.search(html or "")
    if not match:
        return ""
    return html_to_text(match.group(1))[: settings.title_max_chars]


def _redact(message: str, secret: str) -> str:
    return message.replace(secret, "***") if secret else message


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def fetch_via_proxy(url: str) -> FetchResult:
    """Fetch *url* through ScraperAPI with JavaScript rendering enabled.

    Never raises.  A missing API key, a transport error or an HTTP status
    ``>= 400`` all produce a failed :class:`FetchResult` with reason
    ``scraperapi``.
    """
    api_key = settings.scraperapi_key
    if not api_key:
        return FetchResult.failed(
            FailureReason.SCRAPERAPI, "ScraperAPI key is missing (credential missing)."
        )

    try:
        async with httpx.AsyncClient(timeout=settings.scraperapi_timeout) as client:
            response = await client.get(
                settings.scraperapi_url,
                params={"api_key": api_key, "render": "true", "url": url},
            )
    except httpx.HTTPError as exc:
        message = _redact(str(exc) or type(exc).__name__, api_key)
        logger.warning("[FALLBACK] request for %s failed: %s", url, message)
        return FetchResult.failed(
            FailureReason.SCRAPERAPI, f"ScraperAPI request failed: {message}"
        )

    html = response.text or ""
    title = extract_title(html)

    if response.status_code >= 400:
        return FetchResult.failed(
            FailureReason.SCRAPERAPI,
            f"ScraperAPI HTTP {response.status_code}",
            http_status=response.status_code,
            title=title,
        )

    content = html_to_text(html)[: settings.text_max_chars]
    return FetchResult.passed(response.status_code, title, content)
