"""Bot-wall / thin-content heuristic applied to every fetched page."""

from __future__ import annotations

from scrapegate.config import settings

# Phrases that only ever appear on challenge / block pages.
STRONG_MARKERS = (
    "attention required",
    "access denied",
    "cloudflare",
    "unusual traffic",
    "verify you are human",
    "bot detected",
    "press and hold",
)

# Phrases that also appear on legitimate pages (e.g. a form footer), so they
# only count when the page is short.
GENERIC_MARKERS = ("captcha", "hcaptcha", "recaptcha", "are you a robot")


def looks_blocked(text: str, title: str = "") -> bool:
    """Return ``True`` if *text* / *title* look like a bot wall or a CAPTCHA stub.

    Matching is case-insensitive over both fields.  A strong marker is enough
    on its own; a generic CAPTCHA mention only counts when the text is shorter
    than ``settings.min_text_chars``.
    """
    text = text or ""
    haystacks = (text.lower(), (title or "").lower())

    if any(marker in hay for marker in STRONG_MARKERS for hay in haystacks):
        return True

    mentions_captcha = any(marker in hay for marker in GENERIC_MARKERS for hay in haystacks)
    return mentions_captcha and len(text) < settings.min_text_chars
