"""Batch scheduler: validate, de-duplicate and fan out URLs to the pipeline."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, List, Optional, Sequence

from scrapegate.config import settings
from scrapegate.scraper.models import BatchResult, UrlTask
from scrapegate.scraper.pipeline import ScrapePipeline

logger = logging.getLogger(__name__)

MALFORMED_BATCH = "Body must be { urls: string[] }"


class BatchRejected(ValueError):
    """The batch as a whole is malformed; no URL was processed."""


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


def dedupe_urls(urls: Any, max_urls: int) -> List[str]:
    """Validate the batch shape and return unique URLs in first-seen order.

    Raises:
        BatchRejected: If *urls* is not a list/tuple of strings, or holds more
            than *max_urls* distinct entries.
    """
    if not isinstance(urls, (list, tuple)) or not all(isinstance(u, str) for u in urls):
        raise BatchRejected(MALFORMED_BATCH)

    unique = list(dict.fromkeys(urls))
    if len(unique) > max_urls:
        raise BatchRejected(f"Too many URLs; max {max_urls}.")
    return unique


async def run_batch(
    urls: Sequence[str],
    *,
    pipeline: Optional[ScrapePipeline] = None,
    max_urls: Optional[int] = None,
    concurrency: Optional[int] = None,
    request_id: Optional[str] = None,
) -> BatchResult:
    """Run the pipeline over every unique URL in *urls*.

    At most *concurrency* pipelines are in flight at once; the rest wait in
    FIFO order.  Results are written into slots indexed by position in the
    de-duplicated input, so the output order never depends on completion
    order.  Validation happens before anything is scheduled.
    """
    max_urls = max_urls if max_urls is not None else settings.max_urls_per_request
    concurrency = concurrency if concurrency is not None else settings.concurrency
    unique = dedupe_urls(urls, max_urls)

    request_id = request_id or new_request_id()
    pipeline = pipeline or ScrapePipeline()

    queue: asyncio.Queue[tuple[int, str]] = asyncio.Queue()
    for index, url in enumerate(unique):
        queue.put_nowait((index, url))
    slots: List[Optional[UrlTask]] = [None] * len(unique)

    async def worker() -> None:
        while True:
            try:
                index, url = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            slots[index] = await pipeline.run(url, request_id)

    logger.info(
        "[%s] [BATCH] %d URL(s) received, %d unique, concurrency %d.",
        request_id,
        len(urls),
        len(unique),
        concurrency,
    )
    workers = min(max(concurrency, 1), len(unique))
    await asyncio.gather(*(worker() for _ in range(workers)))

    results = [task for task in slots if task is not None]
    succeeded = sum(1 for task in results if task.scraped_text)
    logger.info(
        "[%s] [BATCH] done: %d success, %d failure.",
        request_id,
        succeeded,
        len(results) - succeeded,
    )
    return BatchResult(request_id=request_id, results=results)
