"""Headless-browser rendering with Playwright.

One Chromium process is shared by the whole service.  It is launched lazily
(or eagerly by :meth:`BrowserManager.warm_up`) behind an ``asyncio.Lock`` so
concurrent callers never launch it twice, and it is released by
:meth:`BrowserManager.close` on shutdown.

Every fetch runs in its own browser context, which is closed on every exit
path, including cancellation by an outer ``asyncio.wait_for``.
"""

from __future__ import annotations

import asyncio
import logging
import re
from contextlib import asynccontextmanager, suppress
from typing import Any, AsyncIterator, Optional

from playwright.async_api import Browser, Page, Playwright, Route, async_playwright
from playwright.async_api import Error as PlaywrightError

from scrapegate.config import settings
from scrapegate.scraper.models import FailureReason, FetchResult

logger = logging.getLogger(__name__)

_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--no-zygote",
]

# Resource types that never contribute visible text.
_BLOCKED_RESOURCE_TYPES = frozenset({"image", "font", "media", "stylesheet"})

# Raised when the frame navigates (e.g. a JS redirect) while we evaluate in it.
_TRANSIENT_ERROR_RE = re.compile(
    r"Execution context was destroyed|Cannot find context with specified id",
    re.IGNORECASE,
)

_BODY_TEXT_JS = "() => (document.body && document.body.innerText || '').trim()"


def _ms(seconds: float) -> float:
    return seconds * 1000


def is_transient_error(exc: BaseException) -> bool:
    """Return ``True`` for errors caused by a mid-flight navigation."""
    return isinstance(exc, PlaywrightError) and bool(_TRANSIENT_ERROR_RE.search(str(exc)))


async def _block_heavy_resources(route: Route) -> None:
    if route.request.resource_type in _BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


async def _wait_for_network_idle(page: Page, timeout: float) -> None:
    """Best-effort wait for network idle; never raises Playwright errors."""
    try:
        await page.wait_for_load_state("networkidle", timeout=_ms(timeout))
    except PlaywrightError:
        pass


async def extract_title_and_text(
    page: Page,
    attempts: Optional[int] = None,
    settle_delay: Optional[float] = None,
) -> tuple[str, str]:
    """Read the page title and visible body text, retrying transient errors.

    A transient error (the execution context was destroyed by a reload) is
    followed by a bounded network-idle wait and a short settle delay before
    the next attempt.  Any other error propagates immediately; when every
    attempt hits a transient error the last one is re-raised.
    """
    attempts = attempts if attempts is not None else settings.extraction_attempts
    settle_delay = settle_delay if settle_delay is not None else settings.extraction_settle_delay

    last_error: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            title = await page.title()
            text = await page.evaluate(_BODY_TEXT_JS)
            return title or "", text or ""
        except PlaywrightError as exc:
            if not is_transient_error(exc):
                raise
            last_error = exc
            logger.debug(
                "[RENDER] transient extraction error (attempt %d/%d): %s",
                attempt,
                attempts,
                exc,
            )
            if attempt < attempts:
                await _wait_for_network_idle(page, settings.network_idle_timeout)
                await asyncio.sleep(settle_delay)

    raise last_error or RuntimeError("execution_context_retries_exhausted")


# ---------------------------------------------------------------------------
# Browser manager
# ---------------------------------------------------------------------------

class BrowserManager:
    """Owns the process-wide Playwright Chromium instance."""

    def __init__(self, executable_path: Optional[str] = None) -> None:
        self._executable_path = executable_path
        self._lock = asyncio.Lock()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    def _launch_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"headless": True, "args": list(_LAUNCH_ARGS)}
        executable = self._executable_path or settings.browser_executable_path
        if executable:
            options["executable_path"] = executable
        return options

    async def get_browser(self) -> Browser:
        """Return the shared browser, launching it on first use."""
        browser = self._browser
        if browser is not None and browser.is_connected():
            return browser

        async with self._lock:
            if self._browser is None or not self._browser.is_connected():
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    **self._launch_options()
                )
                logger.info("[RENDER] Chromium launched (%s).", self._browser.version)
            return self._browser

    async def warm_up(self) -> None:
        """Launch the browser ahead of the first request; failures are logged only."""
        try:
            await self.get_browser()
        except Exception as exc:  # noqa: BLE001
            logger.warning("[RENDER] failed to pre-launch browser: %s", exc)

    async def close(self) -> None:
        """Release the browser and the Playwright driver."""
        async with self._lock:
            browser, self._browser = self._browser, None
            playwright, self._playwright = self._playwright, None
            try:
                if browser is not None:
                    await browser.close()
            finally:
                if playwright is not None:
                    await playwright.stop()
        if browser is not None:
            logger.info("[RENDER] Chromium closed.")

    @asynccontextmanager
    async def open_page(self) -> AsyncIterator[Page]:
        """Yield a page in a fresh, isolated browser context.

        The context is closed when the block exits, whether normally, by
        exception, or by task cancellation, including a cancellation that
        arrives while the context is still being created.
        """
        browser = await self.get_browser()
        creating = asyncio.ensure_future(browser.new_context())
        try:
            context = await asyncio.shield(creating)
        except asyncio.CancelledError:
            # The context may still be created after we were cancelled.
            with suppress(PlaywrightError):
                orphan = await creating
                await orphan.close()
            raise
        try:
            context.set_default_timeout(_ms(settings.browser_timeout))
            context.set_default_navigation_timeout(_ms(settings.browser_timeout))
            await context.route("**/*", _block_heavy_resources)
            page = await context.new_page()
            yield page
        finally:
            await context.close()

    async def render(self, url: str) -> FetchResult:
        """Load *url* and return its title and visible text.

        A missing response or an HTTP status ``>= 400`` on the initial
        navigation is returned as a failed result.  Navigation and extraction
        errors propagate to the caller.
        """
        async with self.open_page() as page:
            response = await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=_ms(settings.navigation_timeout),
            )
            http_status = response.status if response is not None else None

            if not http_status or http_status >= 400:
                try:
                    title = await page.title()
                except PlaywrightError:
                    title = ""
                return FetchResult.failed(
                    FailureReason.OFFLINE_ON_PUPPETEER,
                    f"HTTP {http_status or 'no_response'}",
                    http_status=http_status,
                    title=title,
                )

            await _wait_for_network_idle(page, settings.network_idle_timeout)
            title, text = await extract_title_and_text(page)

        return FetchResult.passed(http_status, title, text[: settings.text_max_chars])


# Shared instance used by the pipeline, the API lifespan and the CLI.
browser_manager = BrowserManager()
