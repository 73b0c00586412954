"""Translation seam.

Labels and messages in descriptors may be literal text or translation keys.
A translator is any callable ``t(key, params) -> str | None``; an unresolved
key falls back to the literal text.
"""

from collections.abc import Callable, Mapping
from typing import Any

Translator = Callable[[str, Mapping[str, Any]], str | None]


def translate(
    translator: Translator | None,
    key: str,
    default: str | None = None,
    **params: Any,
) -> str:
    """Resolve *key* through *translator*, falling back to *default* (or the key).

    A translator that echoes the key back counts as unresolved.

    Example:
        >>> translate(None, "Department name")
        'Department name'
        >>> translate(lambda k, p: None, "resource.uploadWait", "Upload in progress")
        'Upload in progress'
    """
    fallback = default if default is not None else key
    if translator is None or not key:
        return _format(fallback, params)
    resolved = translator(key, params)
    if not resolved or resolved == key:
        return _format(fallback, params)
    return resolved


def _format(text: str, params: Mapping[str, Any]) -> str:
    if not params:
        return text
    try:
        return text.format(**params)
    except (KeyError, IndexError, ValueError):
        return text
