"""Shared HTTP utilities: base URL handling and read-only guardrails."""

from museum_booking.logging import get_logger

log = get_logger(__name__)

# HTTP methods that modify server state; blocked in read-only mode.
_BLOCKED_METHODS: frozenset[str] = frozenset({"POST", "PUT", "DELETE", "PATCH"})

# Endpoints that are safe to POST even in read-only mode (they change no bookings).
WHITELISTED_PATHS: frozenset[str] = frozenset(
    {
        "/auth/login",
    }
)


def normalise_base_url(url: str) -> str:
    """Ensure the base URL has a scheme and no trailing slash.

    A bare host such as ``museum.example.com/api`` gets ``https://`` prepended.
    """
    url = url.strip()
    if url and not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    return url.rstrip("/")


def is_blocked(method: str, path: str, *, read_only: bool) -> bool:
    """Return True when a request must not leave a read-only client.

    Args:
        method: HTTP method of the request.
        path: API path relative to the base URL (e.g. ``/appointments``).
        read_only: Whether the client runs in read-only (dry-run) mode.
    """
    if not read_only or method.upper() not in _BLOCKED_METHODS:
        return False
    if path in WHITELISTED_PATHS:
        return False
    log.warning("blocked_mutating_request", method=method.upper(), path=path)
    return True
