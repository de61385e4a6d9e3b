"""FastAPI application factory.

Lifespan
--------
On startup the app optionally pre-launches the shared headless browser so the
first batch does not pay the launch cost (a failure here is only logged).  On
shutdown the browser is always released.

Routers
-------
    /batch-scrape  — vet and scrape a batch of URLs
    /healthz       — liveness check

Interactive documentation is served at ``/docs``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from scrapegate.api.routers import scrape as scrape_router
from scrapegate.config import configure_logging, settings
from scrapegate.scraper.renderer import browser_manager


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Warm up the browser on startup and close it on shutdown."""
    if settings.browser_warm_up:
        await browser_manager.warm_up()
    try:
        yield
    finally:
        await browser_manager.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    configure_logging()
    app = FastAPI(
        title="ScrapeGate API",
        description=(
            "Checks a batch of URLs for format, domain reputation and bot walls, "
            "and returns the visible page text or a categorised failure per URL."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.include_router(scrape_router.router, tags=["scrape"])
    app.add_exception_handler(
        RequestValidationError, scrape_router.batch_validation_error_handler
    )
    return app


# Module-level instance used by uvicorn:
#   uvicorn scrapegate.api.app:app
app = create_app()
