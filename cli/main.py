"""ScrapeGate CLI — run batches locally or serve the HTTP API.

Usage:
    python cli/main.py --help
    python cli/main.py scrape https://example.com https://www.python.org
    python cli/main.py serve --port 3002
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from scrapegate.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import asyncio
import json
from typing import List, Optional

import typer

from scrapegate.config import configure_logging, settings
from scrapegate.scraper.batch import BatchRejected, run_batch
from scrapegate.scraper.models import BatchResult
from scrapegate.scraper.renderer import browser_manager

app = typer.Typer(
    name="scrapegate",
    help="ScrapeGate CLI.",
    no_args_is_help=True,
)


async def _scrape(urls: List[str]) -> BatchResult:
    """Run one batch and always release the shared browser afterwards."""
    try:
        return await run_batch(urls)
    finally:
        await browser_manager.close()


@app.command("scrape")
def scrape(
    urls: List[str] = typer.Argument(..., help="URLs to vet and scrape."),
    indent: Optional[int] = typer.Option(2, help="JSON indent (0 for compact)."),
) -> None:
    """Run the scrape pipeline over URLS and print the batch result as JSON."""
    configure_logging()
    try:
        result = asyncio.run(_scrape(urls))
    except BatchRejected as exc:
        typer.echo(f"[scrape] Rejected: {exc}", err=True)
        raise typer.Exit(2)
    typer.echo(json.dumps(result.to_dict(), indent=indent or None, ensure_ascii=False))


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (default: $HOST)."),
    port: Optional[int] = typer.Option(None, help="Listen port (default: $PORT)."),
) -> None:
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    bind_host = host or settings.host
    bind_port = port or settings.port
    typer.echo(f"[serve] ScrapeGate API listening on {bind_host}:{bind_port}")
    uvicorn.run("scrapegate.api.app:app", host=bind_host, port=bind_port)


if __name__ == "__main__":
    app()
