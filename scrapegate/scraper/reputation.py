"""Domain reputation check against the APIVoid parked-domain endpoint.

The checker never raises: every outcome, including transport errors, is
folded into a :class:`ReputationResult`.  Error payloads are classified by an
ordered rule table (first match wins) so the policy stays in one place.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Pattern

import httpx

from scrapegate.config import settings
from scrapegate.scraper.models import FailureReason, ReputationResult

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Error classification rules, evaluated in order; first match wins.
# ---------------------------------------------------------------------------
ERROR_RULES: list[tuple[Pattern[str], FailureReason]] = [
    (re.compile(r"domain name is not valid", re.IGNORECASE), FailureReason.WRONG_FORMAT),
    (
        re.compile(r"insufficient|credit|api key|unauthorized|forbidden", re.IGNORECASE),
        FailureReason.APIVOID_API_KEY,
    ),
]

# Any APIVoid-side error that no rule recognises lands in the key/plan bucket.
DEFAULT_ERROR_REASON = FailureReason.APIVOID_API_KEY


def classify_error(message: str) -> FailureReason:
    """Map an APIVoid error message to a failure reason."""
    for pattern, reason in ERROR_RULES:
        if pattern.search(message):
            return reason
    return DEFAULT_ERROR_REASON


def _parse_body(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def classify_response(status_code: int, data: dict[str, Any]) -> ReputationResult:
    """Turn an APIVoid HTTP status and JSON body into a :class:`ReputationResult`."""
    error = data.get("error")
    if status_code >= 400 or error:
        message = str(error) if error else f"APIVoid HTTP {status_code}"
        reason = classify_error(message)
        if reason is FailureReason.WRONG_FORMAT:
            return ReputationResult.failed(
                reason, f"The input url domain is not valid for APIVoid ({message})."
            )
        return ReputationResult.failed(reason, message)

    if not data.get("a_records_found"):
        return ReputationResult.failed(
            FailureReason.A_RECORDS_NOT_FOUND,
            "The domain appeared to be offline on the APIVoid check.",
        )
    if data.get("parked_domain"):
        return ReputationResult.failed(
            FailureReason.PARKED_DOMAIN,
            "The domain appeared to be a parked domain on the APIVoid check.",
        )
    return ReputationResult.passed()


async def check_domain(host: str) -> ReputationResult:
    """Check *host* (bare hostname, no scheme) with the reputation service.

    Returns a failed result with ``apivoid_api_key`` immediately, without any
    network traffic, when no API key is configured.  Transport errors and
    timeouts are reported under the same reason.
    """
    api_key = settings.apivoid_key
    if not api_key:
        return ReputationResult.failed(
            FailureReason.APIVOID_API_KEY, "APIVoid API key is missing (credential missing)."
        )

    try:
        async with httpx.AsyncClient(timeout=settings.apivoid_timeout) as client:
            response = await client.post(
                settings.apivoid_url,
                json={"host": host},
                headers={"Content-Type": "application/json", "X-API-Key": api_key},
            )
    except httpx.HTTPError as exc:
        logger.warning("[REPUTATION] request for %s failed: %r", host, exc)
        return ReputationResult.failed(
            FailureReason.APIVOID_API_KEY, f"APIVoid request failed: {str(exc) or type(exc).__name__}"
        )

    result = classify_response(response.status_code, _parse_body(response))
    if not result.ok:
        logger.info("[REPUTATION] %s → %s", host, result.reason.value)
    return result
