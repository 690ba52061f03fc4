"""Normalizers for identifier and free-text form fields."""

from __future__ import annotations


def _trimmed(value: str | None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"expected str or None, got {type(value).__name__}")
    return value.strip()


def _collapsed(value: str | None) -> str | None:
    trimmed = _trimmed(value)
    if trimmed is None:
        return None
    return " ".join(trimmed.split())


def sanitize_text_field(value: str | None) -> str | None:
    """Trim surrounding whitespace."""
    return _trimmed(value)


def sanitize_google_id(value: str | None) -> str | None:
    """Trim surrounding whitespace; case and inner spaces are kept."""
    return _trimmed(value)


def sanitize_email(value: str | None) -> str | None:
    return _trimmed(value)


def sanitize_name(value: str | None) -> str | None:
    """Trim and collapse internal whitespace runs to a single space."""
    return _collapsed(value)


def sanitize_title(value: str | None) -> str | None:
    return _collapsed(value)
