"""Scraper package — URL vetting, rendering and batch scheduling."""

from scrapegate.scraper.batch import BatchRejected, run_batch
from scrapegate.scraper.models import (
    BatchResult,
    FailureReason,
    FetchResult,
    ReputationResult,
    TaskStatus,
    UrlTask,
)
from scrapegate.scraper.pipeline import ScrapePipeline
from scrapegate.scraper.renderer import browser_manager

__all__ = [
    "run_batch",
    "BatchRejected",
    "ScrapePipeline",
    "browser_manager",
    "BatchResult",
    "FailureReason",
    "FetchResult",
    "ReputationResult",
    "TaskStatus",
    "UrlTask",
]
