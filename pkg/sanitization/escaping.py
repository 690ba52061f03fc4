"""Escaping helpers for HTML text, CSV cells and URI components.

`sanitize_for_html` is safe to apply more than once: an `&` that already
starts one of the references it produces is left alone, so escaped text
comes back unchanged.
"""

from __future__ import annotations

import re
from typing import Iterable
from urllib.parse import quote_plus

_HTML_REPLACEMENTS = (
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("/", "&#x2f;"),
    ("'", "&#39;"),
)
_BARE_AMPERSAND_RE = re.compile(r"&(?!amp;|lt;|gt;|quot;|#x2f;|#39;)")
_SANITIZED_HTML_RE = re.compile(r"&lt;|&gt;|&quot;|&#x2f;|&#39;|&amp;")


def _require_text(value: object) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected str or None, got {type(value).__name__}")
    return value


def sanitize_for_html(value: str | None) -> str | None:
    """Escape text for an HTML text node."""
    if value is None:
        return None
    text = _require_text(value)
    for char, ref in _HTML_REPLACEMENTS:
        text = text.replace(char, ref)
    return _BARE_AMPERSAND_RE.sub("&amp;", text)


def sanitize_for_html_list(values: Iterable[str | None] | None) -> list[str | None] | None:
    if values is None:
        return None
    return [sanitize_for_html(v) for v in values]


def desanitize_from_html(value: str | None) -> str | None:
    """Reverse `sanitize_for_html`."""
    if value is None:
        return None
    text = _require_text(value)
    for char, ref in _HTML_REPLACEMENTS:
        text = text.replace(ref, char)
    # Last, so "&amp;lt;" comes back as "&lt;" rather than "<".
    return text.replace("&amp;", "&")


def is_sanitized_html(value: str | None) -> bool:
    return value is not None and _SANITIZED_HTML_RE.search(value) is not None


def desanitize_if_html_sanitized(value: str | None) -> str | None:
    if is_sanitized_html(value):
        return desanitize_from_html(value)
    return value


def sanitize_for_csv(value: str | None) -> str | None:
    """Quote a CSV cell, doubling embedded quotes."""
    if value is None:
        return None
    text = _require_text(value)
    return '"' + text.replace('"', '""') + '"'


def sanitize_list_for_csv(values: Iterable[str | None] | None) -> list[str | None] | None:
    if values is None:
        return None
    return [sanitize_for_csv(v) for v in values]


def sanitize_for_uri(value: str | None) -> str | None:
    """Form-encode a URI component (spaces become '+')."""
    if value is None:
        return None
    return quote_plus(_require_text(value), safe="", encoding="utf-8")
