"""Server path helpers.

The storage service returns server-relative paths only. These helpers keep
submitted values relative and derive absolute display URLs on demand.
Pure functions -- no I/O.
"""

from urllib.parse import urlsplit


def normalize_server_path(path: str) -> str:
    """Normalize a storage path to a server-relative form.

    - Windows separators become ``/``.
    - Absolute ``http(s)`` URLs are reduced to their path component.
    - A leading ``/`` is ensured.

    Examples:
        >>> normalize_server_path("uploads\\\\images\\\\a.png")
        '/uploads/images/a.png'
        >>> normalize_server_path("http://localhost:5000/uploads/a.png")
        '/uploads/a.png'
    """
    normalized = path.strip().replace("\\", "/")
    if normalized.startswith(("http://", "https://")):
        normalized = urlsplit(normalized).path
    if normalized and not normalized.startswith("/"):
        normalized = f"/{normalized}"
    return normalized


def derive_preview_url(path: str, base_url: str) -> str:
    """Build an absolute display URL for a server-relative *path*."""
    normalized = path.strip().replace("\\", "/")
    if normalized.startswith(("http://", "https://")):
        return normalized
    base = base_url.rstrip("/")
    if not normalized.startswith("/"):
        normalized = f"/{normalized}"
    return f"{base}{normalized}"


def is_local_preview(value: object) -> bool:
    """True for client-local preview data that must never be submitted."""
    return isinstance(value, str) and value.startswith(("data:", "blob:"))
