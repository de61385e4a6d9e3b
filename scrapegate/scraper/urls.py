"""URL validation and host extraction."""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote, urlsplit, urlunsplit

_ALLOWED_SCHEMES = {"http", "https"}

# Reserved characters and existing %-escapes pass through unchanged.
_PATH_SAFE = "/%:@!$&'()*+,;="
_QUERY_SAFE = _PATH_SAFE + "?"


def _ascii_host(hostname: str) -> Optional[str]:
    """IDNA-encode *hostname*; IPv6 literals are returned as-is."""
    if ":" in hostname:
        return hostname
    try:
        return hostname.encode("idna").decode("ascii")
    except ValueError:
        return None


def normalize_url(raw: str) -> Optional[str]:
    """Return the canonical form of *raw*, or ``None`` if it is not a valid
    absolute ``http``/``https`` address.

    Canonicalisation lower-cases the scheme and host, converts an
    internationalised host to its ASCII (punycode) form, percent-encodes
    spaces and other unsafe characters in the path, query and fragment, and
    gives an empty path a trailing ``/``
    (``HTTPS://Bücher.de/a b`` → ``https://xn--bcher-kva.de/a%20b``).
    """
    if not isinstance(raw, str):
        return None
    candidate = raw.strip()
    if not candidate:
        return None

    try:
        parts = urlsplit(candidate)
        # Accessing .port validates it (raises ValueError when out of range).
        port = parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    if scheme not in _ALLOWED_SCHEMES or not parts.hostname:
        return None
    if any(ch.isspace() for ch in parts.netloc):
        return None

    host = _ascii_host(parts.hostname)
    if not host:
        return None

    netloc = f"[{host}]" if ":" in host else host
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"
    if port is not None:
        netloc = f"{netloc}:{port}"

    return urlunsplit(
        (
            scheme,
            netloc,
            quote(parts.path, safe=_PATH_SAFE) or "/",
            quote(parts.query, safe=_QUERY_SAFE),
            quote(parts.fragment, safe=_QUERY_SAFE),
        )
    )


def extract_host(normalized_url: str) -> Optional[str]:
    """Return the bare hostname of an already-normalised URL, or ``None``."""
    try:
        host = urlsplit(normalized_url).hostname
    except ValueError:
        return None
    return host or None
