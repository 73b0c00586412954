"""Response envelope normalization.

The backend answers list requests in several shapes (a bare array,
``{items, total}`` or ``{data, count}``) and reports failures in several
shapes too. These helpers fold them into one form. Pure functions -- no I/O.
"""

from typing import Any

from pydantic import BaseModel, Field

from resource_console.errors import GENERIC_FAILURE


class ListPage(BaseModel):
    """One page of a collection, normalized from any list envelope."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0


def normalize_list_response(body: Any) -> ListPage:
    """Fold a list response body into a ``ListPage``.

    A missing or non-numeric total falls back to the number of items.
    Entries that are not records are dropped. Anything that is not a
    recognizable envelope yields an empty page.

    Examples:
        >>> normalize_list_response([{"id": 1}]).total
        1
        >>> normalize_list_response({"data": [], "count": 0}).items
        []
        >>> normalize_list_response({"items": ["a"], "total": "n/a"}).total
        0
    """
    if isinstance(body, list):
        items = _records(body)
        return ListPage(items=items, total=len(items))
    if not isinstance(body, dict):
        return ListPage()

    items = body.get("items")
    if items is None:
        items = body.get("data")
    items = _records(items) if isinstance(items, list) else []

    total = body.get("total")
    if total is None:
        total = body.get("count")
    return ListPage(items=items, total=_coerce_total(total, len(items)))


def _records(entries: list[Any]) -> list[dict[str, Any]]:
    return [entry for entry in entries if isinstance(entry, dict)]


def _coerce_total(total: Any, fallback: int) -> int:
    if isinstance(total, bool) or total is None:
        return fallback
    try:
        return max(0, int(total))
    except (TypeError, ValueError):
        return fallback


def unwrap_collection(body: Any) -> list[dict[str, Any]]:
    """Return the record list of any list envelope (option sources, child regions)."""
    return normalize_list_response(body).items


def extract_error_message(body: Any) -> str:
    """Pick the user-visible message out of an error response body.

    Order: ``message``, then the joined ``errors`` list, then a plain-string
    body, then the generic fallback.
    """
    if isinstance(body, dict):
        message = body.get("message") or body.get("Message")
        if isinstance(message, str) and message.strip():
            return message
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            return "; ".join(str(e) for e in errors)
        if isinstance(errors, dict) and errors:
            # ASP.NET model-state shape: {"Field": ["msg", ...]}
            parts: list[str] = []
            for value in errors.values():
                if isinstance(value, list):
                    parts.extend(str(v) for v in value)
                else:
                    parts.append(str(value))
            return "; ".join(parts)
    if isinstance(body, str) and body.strip():
        return body.strip()
    return GENERIC_FAILURE


def extract_upload_path(body: Any) -> str | None:
    """Return the stored file's path from an upload response (``url`` or ``path``)."""
    if not isinstance(body, dict):
        return None
    for key in ("url", "path", "Url", "Path"):
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None
