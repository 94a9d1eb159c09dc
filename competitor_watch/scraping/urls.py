"""
URL normalization helpers for cache keys and rate-limit domains.
"""

from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

TRACKING_KEYS = {"ref", "fbclid", "gclid"}


def _is_tracking_param(key: str) -> bool:
    return key.startswith("utm_") or key in TRACKING_KEYS


def is_http_url(raw_url: str) -> bool:
    parsed = urlparse(raw_url.strip())
    return parsed.scheme.lower() in {"http", "https"} and bool(parsed.netloc)


def normalize_url(raw_url: str) -> str:
    """Conservative URL normalization used for cache keys."""
    parsed = urlparse(raw_url.strip())

    scheme = parsed.scheme.lower()
    netloc = parsed.netloc.lower()

    if ":" in netloc:
        host, port = netloc.rsplit(":", maxsplit=1)
        if (scheme == "http" and port == "80") or (scheme == "https" and port == "443"):
            netloc = host

    path = parsed.path or "/"
    if path != "/" and path.endswith("/"):
        path = path[:-1]

    filtered_query_pairs = [
        (key, value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
        if not _is_tracking_param(key)
    ]
    filtered_query_pairs.sort(key=lambda pair: pair[0])
    query = urlencode(filtered_query_pairs, doseq=True)

    return urlunparse((scheme, netloc, path, "", query, ""))


def domain_of(raw_url: str) -> str:
    """Lower-cased host used as the rate-limit key."""
    parsed = urlparse(raw_url.strip())
    return (parsed.hostname or parsed.netloc or parsed.path).lower()


def origin_of(raw_url: str) -> str:
    parsed = urlparse(raw_url.strip())
    scheme = parsed.scheme or "https"
    return f"{scheme}://{parsed.netloc}"
