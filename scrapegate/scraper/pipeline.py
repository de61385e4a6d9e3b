"""Per-URL scrape pipeline.

Stages, in order::

    validate → reputation check → primary render → quality check
                                                 ↘ fallback render → quality check

Each stage either hands over to the next one or finalises the task with a
failure reason owned by that stage.  :meth:`ScrapePipeline.run` never raises
for a per-URL problem; every error becomes a terminal failure on the task.

The render and fallback stages each run under their own ``per_url_timeout``
budget.  The reputation check runs outside it with its own HTTP timeout.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from scrapegate.config import settings
from scrapegate.scraper.classifier import looks_blocked
from scrapegate.scraper.fallback import fetch_via_proxy
from scrapegate.scraper.models import FailureReason, FetchResult, ReputationResult, UrlTask
from scrapegate.scraper.renderer import browser_manager
from scrapegate.scraper.reputation import check_domain
from scrapegate.scraper.urls import extract_host, normalize_url

logger = logging.getLogger(__name__)

ReputationCheck = Callable[[str], Awaitable[ReputationResult]]
Fetcher = Callable[[str], Awaitable[FetchResult]]

FALLBACK_BLOCKED_TEXT = "ScraperAPI returned CAPTCHA/short content."


class ScrapePipeline:
    """Drives one :class:`UrlTask` from validation to a terminal state.

    The external collaborators are injectable so tests (and alternative
    deployments) can swap them; by default the module-level implementations
    and the shared browser are used.
    """

    def __init__(
        self,
        *,
        reputation: Optional[ReputationCheck] = None,
        renderer: Optional[Fetcher] = None,
        fallback: Optional[Fetcher] = None,
        task_timeout: Optional[float] = None,
    ) -> None:
        self._reputation = reputation or check_domain
        self._renderer = renderer or browser_manager.render
        self._fallback = fallback or fetch_via_proxy
        self._task_timeout = task_timeout

    @property
    def task_timeout(self) -> float:
        if self._task_timeout is not None:
            return self._task_timeout
        return settings.per_url_timeout

    async def run(self, url_input: str, request_id: str = "") -> UrlTask:
        """Run the full pipeline for *url_input* and return the terminal task."""
        task = UrlTask(url_input=url_input)
        started = time.monotonic()
        try:
            await self._drive(task, request_id)
        except Exception as exc:  # noqa: BLE001
            # Safety net; stages convert their own errors before this point.
            logger.exception("[%s] [PIPELINE] unexpected error for %s", request_id, url_input)
            if not task.is_terminal:
                task.fail(FailureReason.OFFLINE_ON_PUPPETEER, str(exc) or type(exc).__name__)
        task.elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "[%s] [PIPELINE] %s → %s%s (%d ms)",
            request_id,
            url_input,
            task.status.value,
            f" ({task.failure_reason})" if task.failure_reason else "",
            task.elapsed_ms,
        )
        return task

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _drive(self, task: UrlTask, request_id: str) -> None:
        # 1) Validation
        task.normalized_url = normalize_url(task.url_input)
        if task.normalized_url is None:
            task.fail(
                FailureReason.WRONG_FORMAT,
                f"The input url `{task.url_input}` is not properly formatted.",
            )
            return

        # 2) Reputation check (host only)
        task.host = extract_host(task.normalized_url)
        if task.host is None:
            task.fail(
                FailureReason.WRONG_FORMAT,
                "Host could not be derived from the URL.",
            )
            return

        reputation = await self._check_reputation(task.host)
        if not reputation.ok:
            task.fail(reputation.reason or FailureReason.APIVOID_API_KEY, reputation.text)
            return

        # 3) Primary render, under the task timeout
        primary = await self._fetch_within(
            self._renderer, task.normalized_url, FailureReason.OFFLINE_ON_PUPPETEER
        )
        if not primary.ok:
            task.fail(FailureReason.OFFLINE_ON_PUPPETEER, primary.text or "The webpage did not load.")
            return

        # 4) Quality check
        if primary.content and not looks_blocked(primary.content, primary.title):
            task.succeed(primary.content)
            return

        # 5) Fallback render, with a fresh timeout of the same length
        logger.info(
            "[%s] [PIPELINE] CAPTCHA/short content → ScraperAPI retry: %s",
            request_id,
            task.normalized_url,
        )
        fallback = await self._fetch_within(
            self._fallback, task.normalized_url, FailureReason.SCRAPERAPI
        )
        if not fallback.ok:
            task.fail(FailureReason.SCRAPERAPI, fallback.text or "ScraperAPI failed.")
            return

        if not fallback.content or looks_blocked(fallback.content, fallback.title):
            task.fail(FailureReason.SCRAPERAPI, FALLBACK_BLOCKED_TEXT)
            return

        task.succeed(fallback.content)

    async def _check_reputation(self, host: str) -> ReputationResult:
        try:
            return await self._reputation(host)
        except Exception as exc:  # noqa: BLE001
            return ReputationResult.failed(
                FailureReason.APIVOID_API_KEY,
                f"APIVoid request failed: {str(exc) or type(exc).__name__}",
            )

    async def _fetch_within(
        self,
        fetcher: Fetcher,
        url: str,
        reason: FailureReason,
    ) -> FetchResult:
        """Run *fetcher* for at most ``task_timeout`` seconds.

        ``asyncio.wait_for`` cancels the fetch and waits for its cleanup
        (e.g. closing the browser context) before reporting the timeout.
        """
        try:
            return await asyncio.wait_for(fetcher(url), timeout=self.task_timeout)
        except asyncio.TimeoutError:
            return FetchResult.failed(reason, "timeout")
        except Exception as exc:  # noqa: BLE001
            return FetchResult.failed(reason, str(exc) or type(exc).__name__)
