"""
Pelecard Receipts - Shared Helpers
===================================
Pure utility functions with NO store or module dependencies.
"""

from datetime import datetime, timezone
from urllib.parse import urlencode


def now_utc() -> datetime:
    """Returns current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def public_base_url(request, configured: str = "") -> str:
    """
    Base URL the gateway should call back on.
    Uses BASE_URL when configured, else https://<Host header>.
    """
    if configured:
        return configured.rstrip("/")
    host = request.headers.get("X-Forwarded-Host") or request.headers.get("host", "")
    return f"https://{host}"


def with_query(url: str, **params) -> str:
    """Append query parameters to a URL (values None → empty string)."""
    query = urlencode({k: "" if v is None else str(v) for k, v in params.items()})
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{query}"
