"""Shared fixtures.

Every test starts with both service credentials configured and the browser
warm-up disabled, so no test reaches the network or launches Chromium unless
it explicitly stubs the collaborator it exercises.
"""

from __future__ import annotations

import pytest

from scrapegate.config import settings


@pytest.fixture(autouse=True)
def _service_settings(monkeypatch):
    monkeypatch.setattr(settings, "apivoid_key", "test-apivoid-key")
    monkeypatch.setattr(settings, "apivoid_url", "https://apivoid.test/v2/parked-domain")
    monkeypatch.setattr(settings, "scraperapi_key", "test-scraperapi-key")
    monkeypatch.setattr(settings, "scraperapi_url", "https://scraperapi.test/")
    monkeypatch.setattr(settings, "browser_warm_up", False)
    monkeypatch.setattr(settings, "extraction_settle_delay", 0.0)
    monkeypatch.setattr(settings, "per_url_timeout", 60.0)
    monkeypatch.setattr(settings, "max_urls_per_request", 50)
    monkeypatch.setattr(settings, "concurrency", 2)
