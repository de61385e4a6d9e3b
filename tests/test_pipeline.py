"""Tests for the per-URL scrape pipeline.

The reputation check, renderer and fallback fetcher are replaced with small
async stubs so every branch of the stage sequence can be driven directly.
"""

from __future__ import annotations

import asyncio

import respx

from scrapegate.config import settings
from scrapegate.scraper.models import FailureReason, FetchResult, ReputationResult, TaskStatus
from scrapegate.scraper.pipeline import FALLBACK_BLOCKED_TEXT, ScrapePipeline

_ARTICLE = "Grid-scale batteries are reshaping how utilities balance supply. " * 8
_CAPTCHA_STUB = "Please solve the captcha below to continue."


# ---------------------------------------------------------------------------
# Stubs
# ---------------------------------------------------------------------------

class Recorder:
    """Async callable returning a fixed result and recording its inputs."""

    def __init__(self, result):
        self.result = result
        self.calls: list[str] = []

    async def __call__(self, arg: str):
        self.calls.append(arg)
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result


def _pipeline(
    reputation=None,
    renderer=None,
    fallback=None,
    task_timeout=None,
) -> tuple[ScrapePipeline, Recorder, Recorder, Recorder]:
    reputation = reputation or Recorder(ReputationResult.passed())
    renderer = renderer or Recorder(FetchResult.passed(200, "Article", _ARTICLE))
    fallback = fallback or Recorder(FetchResult.passed(200, "Article", _ARTICLE))
    pipeline = ScrapePipeline(
        reputation=reputation,
        renderer=renderer,
        fallback=fallback,
        task_timeout=task_timeout,
    )
    return pipeline, reputation, renderer, fallback


def _assert_failure(task, reason: FailureReason) -> None:
    assert task.status is TaskStatus.FAILURE
    assert task.failure_reason == reason.value
    assert task.failure_text
    assert task.scraped_text == ""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestValidation:
    async def test_malformed_url_fails_without_external_calls(self) -> None:
        pipeline, reputation, renderer, _ = _pipeline()

        task = await pipeline.run("foobar")

        _assert_failure(task, FailureReason.WRONG_FORMAT)
        assert task.failure_text == "The input url `foobar` is not properly formatted."
        assert reputation.calls == []
        assert renderer.calls == []

    async def test_host_passed_without_scheme(self) -> None:
        pipeline, reputation, renderer, _ = _pipeline()

        task = await pipeline.run("HTTPS://Example.com/page")

        assert reputation.calls == ["example.com"]
        assert renderer.calls == ["https://example.com/page"]
        assert task.normalized_url == "https://example.com/page"
        assert task.host == "example.com"


# ---------------------------------------------------------------------------
# Reputation stage
# ---------------------------------------------------------------------------

class TestReputationStage:
    async def test_failure_maps_one_to_one(self) -> None:
        for reason in (
            FailureReason.A_RECORDS_NOT_FOUND,
            FailureReason.PARKED_DOMAIN,
            FailureReason.APIVOID_API_KEY,
            FailureReason.WRONG_FORMAT,
        ):
            pipeline, _, renderer, _ = _pipeline(
                reputation=Recorder(ReputationResult.failed(reason, f"{reason.value} text"))
            )
            task = await pipeline.run("https://example.com/")

            _assert_failure(task, reason)
            assert task.failure_text == f"{reason.value} text"
            assert renderer.calls == []

    async def test_a_records_missing_via_http(self) -> None:
        with respx.mock:
            respx.post(settings.apivoid_url).respond(200, json={"a_records_found": False})
            pipeline = ScrapePipeline(renderer=Recorder(FetchResult.passed(200, "", _ARTICLE)))
            task = await pipeline.run("https://gone.example.com/")

        _assert_failure(task, FailureReason.A_RECORDS_NOT_FOUND)

    async def test_parked_domain_via_http(self) -> None:
        with respx.mock:
            respx.post(settings.apivoid_url).respond(
                200, json={"a_records_found": True, "parked_domain": True}
            )
            pipeline = ScrapePipeline(renderer=Recorder(FetchResult.passed(200, "", _ARTICLE)))
            task = await pipeline.run("https://parked.example.com/")

        _assert_failure(task, FailureReason.PARKED_DOMAIN)

    async def test_stub_exception_becomes_key_failure(self) -> None:
        pipeline, _, _, _ = _pipeline(reputation=Recorder(RuntimeError("boom")))

        task = await pipeline.run("https://example.com/")

        _assert_failure(task, FailureReason.APIVOID_API_KEY)
        assert "boom" in task.failure_text

    async def test_failure_without_reason_defaults_to_key_failure(self) -> None:
        pipeline, _, renderer, _ = _pipeline(reputation=Recorder(ReputationResult(ok=False, text="nope")))

        task = await pipeline.run("https://example.com/")

        _assert_failure(task, FailureReason.APIVOID_API_KEY)
        assert task.failure_text == "nope"
        assert renderer.calls == []


# ---------------------------------------------------------------------------
# Render + quality stages
# ---------------------------------------------------------------------------

class TestPrimaryRender:
    async def test_clean_page_succeeds_without_fallback(self) -> None:
        pipeline, _, _, fallback = _pipeline()

        task = await pipeline.run("https://example.com/")

        assert task.status is TaskStatus.SUCCESS
        assert task.scraped_text == _ARTICLE
        assert task.failure_reason == ""
        assert task.failure_text == ""
        assert fallback.calls == []

    async def test_http_404_fails_offline(self) -> None:
        renderer = Recorder(
            FetchResult.failed(FailureReason.OFFLINE_ON_PUPPETEER, "HTTP 404", http_status=404)
        )
        pipeline, _, _, fallback = _pipeline(renderer=renderer)

        task = await pipeline.run("https://example.com/missing")

        _assert_failure(task, FailureReason.OFFLINE_ON_PUPPETEER)
        assert "404" in task.failure_text
        assert fallback.calls == []

    async def test_render_exception_fails_offline(self) -> None:
        pipeline, _, _, _ = _pipeline(renderer=Recorder(RuntimeError("net::ERR_CONNECTION_REFUSED")))

        task = await pipeline.run("https://example.com/")

        _assert_failure(task, FailureReason.OFFLINE_ON_PUPPETEER)
        assert "ERR_CONNECTION_REFUSED" in task.failure_text

    async def test_render_timeout_fails_offline_and_cancels_fetch(self) -> None:
        cancelled = asyncio.Event()

        async def slow_render(url: str) -> FetchResult:
            try:
                await asyncio.sleep(10)
            finally:
                cancelled.set()
            return FetchResult.passed(200, "", _ARTICLE)

        pipeline, _, _, _ = _pipeline(renderer=slow_render, task_timeout=0.05)

        task = await pipeline.run("https://slow.example.com/")

        _assert_failure(task, FailureReason.OFFLINE_ON_PUPPETEER)
        assert task.failure_text == "timeout"
        assert cancelled.is_set()

    async def test_reputation_stage_is_outside_deadline(self) -> None:
        async def slow_reputation(host: str) -> ReputationResult:
            await asyncio.sleep(0.1)
            return ReputationResult.passed()

        pipeline, _, _, _ = _pipeline(reputation=slow_reputation, task_timeout=0.05)

        task = await pipeline.run("https://example.com/")

        assert task.status is TaskStatus.SUCCESS


# ---------------------------------------------------------------------------
# Fallback stage
# ---------------------------------------------------------------------------

class TestFallback:
    async def test_short_captcha_page_uses_fallback_text(self) -> None:
        renderer = Recorder(FetchResult.passed(200, "Just a moment", _CAPTCHA_STUB))
        fallback = Recorder(FetchResult.passed(200, "Article", _ARTICLE))
        pipeline, _, _, _ = _pipeline(renderer=renderer, fallback=fallback)

        task = await pipeline.run("https://example.com/")

        assert fallback.calls == ["https://example.com/"]
        assert task.status is TaskStatus.SUCCESS
        assert task.scraped_text == _ARTICLE
        assert _CAPTCHA_STUB not in task.scraped_text

    async def test_strong_marker_on_long_page_uses_fallback(self) -> None:
        renderer = Recorder(FetchResult.passed(200, "Access Denied", _ARTICLE))
        pipeline, _, _, fallback = _pipeline(renderer=renderer)

        await pipeline.run("https://example.com/")

        assert len(fallback.calls) == 1

    async def test_empty_primary_text_uses_fallback(self) -> None:
        renderer = Recorder(FetchResult.passed(200, "Blank", ""))
        pipeline, _, _, fallback = _pipeline(renderer=renderer)

        task = await pipeline.run("https://example.com/")

        assert len(fallback.calls) == 1
        assert task.scraped_text == _ARTICLE

    async def test_fallback_failure(self) -> None:
        renderer = Recorder(FetchResult.passed(200, "", _CAPTCHA_STUB))
        fallback = Recorder(FetchResult.failed(FailureReason.SCRAPERAPI, "ScraperAPI HTTP 500", http_status=500))
        pipeline, _, _, _ = _pipeline(renderer=renderer, fallback=fallback)

        task = await pipeline.run("https://example.com/")

        _assert_failure(task, FailureReason.SCRAPERAPI)
        assert task.failure_text == "ScraperAPI HTTP 500"

    async def test_fallback_still_blocked(self) -> None:
        renderer = Recorder(FetchResult.passed(200, "", _CAPTCHA_STUB))
        fallback = Recorder(FetchResult.passed(200, "Attention Required! | Cloudflare", _ARTICLE))
        pipeline, _, _, _ = _pipeline(renderer=renderer, fallback=fallback)

        task = await pipeline.run("https://example.com/")

        _assert_failure(task, FailureReason.SCRAPERAPI)
        assert task.failure_text == FALLBACK_BLOCKED_TEXT

    async def test_fallback_exception(self) -> None:
        renderer = Recorder(FetchResult.passed(200, "", _CAPTCHA_STUB))
        pipeline, _, _, _ = _pipeline(renderer=renderer, fallback=Recorder(ValueError("bad html")))

        task = await pipeline.run("https://example.com/")

        _assert_failure(task, FailureReason.SCRAPERAPI)
        assert "bad html" in task.failure_text

    async def test_fallback_gets_its_own_timeout(self) -> None:
        async def slow_render(url: str) -> FetchResult:
            await asyncio.sleep(0.07)
            return FetchResult.passed(200, "", _CAPTCHA_STUB)

        async def slow_fallback(url: str) -> FetchResult:
            await asyncio.sleep(0.05)
            return FetchResult.passed(200, "Article", _ARTICLE)

        pipeline, _, _, _ = _pipeline(renderer=slow_render, fallback=slow_fallback, task_timeout=0.1)

        task = await pipeline.run("https://example.com/")

        assert task.status is TaskStatus.SUCCESS
        assert task.scraped_text == _ARTICLE

    async def test_fallback_over_its_timeout_fails_scraperapi(self) -> None:
        renderer = Recorder(FetchResult.passed(200, "", _CAPTCHA_STUB))

        async def stalled_fallback(url: str) -> FetchResult:
            await asyncio.sleep(1)
            return FetchResult.passed(200, "", _ARTICLE)

        pipeline, _, _, _ = _pipeline(renderer=renderer, fallback=stalled_fallback, task_timeout=0.05)

        task = await pipeline.run("https://example.com/")

        _assert_failure(task, FailureReason.SCRAPERAPI)
        assert task.failure_text == "timeout"

    async def test_missing_fallback_key_fails_scraperapi(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "scraperapi_key", "")
        renderer = Recorder(FetchResult.passed(200, "", _CAPTCHA_STUB))
        pipeline = ScrapePipeline(reputation=Recorder(ReputationResult.passed()), renderer=renderer)

        task = await pipeline.run("https://example.com/")

        _assert_failure(task, FailureReason.SCRAPERAPI)
        assert "credential missing" in task.failure_text


# ---------------------------------------------------------------------------
# Result shape
# ---------------------------------------------------------------------------

class TestResultShape:
    async def test_elapsed_ms_recorded(self) -> None:
        async def slow_render(url: str) -> FetchResult:
            await asyncio.sleep(0.02)
            return FetchResult.passed(200, "", _ARTICLE)

        pipeline, _, _, _ = _pipeline(renderer=slow_render)
        task = await pipeline.run("https://example.com/")

        assert task.elapsed_ms >= 15

    async def test_repeat_runs_are_identical_except_elapsed(self) -> None:
        pipeline, _, _, _ = _pipeline(
            renderer=Recorder(FetchResult.passed(200, "", _CAPTCHA_STUB))
        )

        first = (await pipeline.run("https://example.com/")).to_dict()
        second = (await pipeline.run("https://example.com/")).to_dict()
        first.pop("elapsed_ms")
        second.pop("elapsed_ms")

        assert first == second
        assert set(first) == {"status", "url_input", "failure_reason", "failure_text", "scraped_text"}
