"""Data models for the scrape pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional


class FailureReason(str, Enum):
    """Machine-readable failure categories, as exposed on the wire."""

    WRONG_FORMAT = "wrong_format"
    A_RECORDS_NOT_FOUND = "a_records_not_found"
    PARKED_DOMAIN = "parked_domain"
    APIVOID_API_KEY = "apivoid_api_key"
    OFFLINE_ON_PUPPETEER = "offline_on_puppeteer"
    SCRAPERAPI = "scraperapi"


class TaskStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


# ---------------------------------------------------------------------------
# Stage results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReputationResult:
    """Outcome of the domain reputation check."""

    ok: bool
    reason: Optional[FailureReason] = None
    text: str = ""

    @classmethod
    def passed(cls) -> "ReputationResult":
        return cls(ok=True)

    @classmethod
    def failed(cls, reason: FailureReason, text: str) -> "ReputationResult":
        return cls(ok=False, reason=reason, text=text)


@dataclass(frozen=True)
class FetchResult:
    """Outcome of a render or fallback-proxy fetch.

    ``content`` is only meaningful when ``ok`` is true; ``title`` and
    ``http_status`` may be populated on failures too.
    """

    ok: bool
    http_status: Optional[int] = None
    title: str = ""
    content: str = ""
    reason: Optional[FailureReason] = None
    text: str = ""

    @classmethod
    def passed(cls, http_status: int, title: str, content: str) -> "FetchResult":
        return cls(ok=True, http_status=http_status, title=title, content=content)

    @classmethod
    def failed(
        cls,
        reason: FailureReason,
        text: str,
        *,
        http_status: Optional[int] = None,
        title: str = "",
    ) -> "FetchResult":
        return cls(ok=False, http_status=http_status, title=title, reason=reason, text=text)


# ---------------------------------------------------------------------------
# Task / batch
# ---------------------------------------------------------------------------

@dataclass
class UrlTask:
    """One URL's run through the pipeline.

    A task starts ``pending`` and moves exactly once to ``success`` (with
    non-empty ``scraped_text``) or ``failure`` (with a reason and text).
    """

    url_input: str
    normalized_url: Optional[str] = None
    host: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    failure_reason: str = ""
    failure_text: str = ""
    scraped_text: str = ""
    elapsed_ms: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status is not TaskStatus.PENDING

    def _ensure_pending(self) -> None:
        if self.is_terminal:
            raise RuntimeError(
                f"Task for {self.url_input!r} is already terminal ({self.status.value})."
            )

    def succeed(self, text: str) -> None:
        self._ensure_pending()
        if not text:
            raise ValueError("A successful task must carry scraped text.")
        self.status = TaskStatus.SUCCESS
        self.scraped_text = text

    def fail(self, reason: FailureReason, text: str) -> None:
        self._ensure_pending()
        self.status = TaskStatus.FAILURE
        self.failure_reason = reason.value
        self.failure_text = text or reason.value

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the public per-URL result shape."""
        return {
            "status": self.status.value,
            "url_input": self.url_input,
            "failure_reason": self.failure_reason,
            "failure_text": self.failure_text,
            "scraped_text": self.scraped_text,
            "elapsed_ms": self.elapsed_ms,
        }


@dataclass
class BatchResult:
    """All task results for one batch, in de-duplicated input order."""

    request_id: str
    results: List[UrlTask] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "results": [task.to_dict() for task in self.results],
        }
