"""Batch scrape endpoints.

Routes
------
POST /batch-scrape    Body: {"urls": ["https://...", ...]}    → run_batch
GET  /healthz         Plain-text liveness check
"""

from __future__ import annotations

from typing import Any, List

from fastapi import APIRouter, Body, HTTPException, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from scrapegate.scraper.batch import MALFORMED_BATCH, BatchRejected, run_batch

router = APIRouter()

BATCH_SCRAPE_PATH = "/batch-scrape"


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class UrlResult(BaseModel):
    status: str
    url_input: str
    failure_reason: str
    failure_text: str
    scraped_text: str
    elapsed_ms: int


class BatchScrapeResponse(BaseModel):
    request_id: str
    results: List[UrlResult]


_BODY_EXAMPLE = {"urls": ["https://example.com", "https://www.python.org"]}


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(BATCH_SCRAPE_PATH, response_model=BatchScrapeResponse)
async def batch_scrape(
    payload: Any = Body(None, examples=[_BODY_EXAMPLE]),
) -> dict[str, Any]:
    """Scrape a batch of URLs (at most 50 unique).

    Duplicate URLs are collapsed, so the response holds one entry per unique
    input URL, in first-occurrence order.  A malformed body or an oversized
    batch is rejected with HTTP 400 before any URL is processed.
    """
    urls = payload.get("urls") if isinstance(payload, dict) else None
    try:
        result = await run_batch(urls)
    except BatchRejected as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return result.to_dict()


@router.get("/healthz", response_class=PlainTextResponse)
async def healthz() -> str:
    return "ok"


async def batch_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report an unparseable /batch-scrape body as a 400 like any other bad shape."""
    if request.url.path == BATCH_SCRAPE_PATH:
        return JSONResponse(status_code=400, content={"detail": MALFORMED_BATCH})
    return await request_validation_exception_handler(request, exc)
