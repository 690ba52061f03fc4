"""Sanitization primitives for user-supplied text and rich-text fields."""

from .escaping import (
    desanitize_from_html,
    desanitize_if_html_sanitized,
    is_sanitized_html,
    sanitize_for_csv,
    sanitize_for_html,
    sanitize_for_html_list,
    sanitize_for_uri,
    sanitize_list_for_csv,
)
from .fields import sanitize_email, sanitize_google_id, sanitize_name, sanitize_text_field, sanitize_title
from .policy import DEFAULT_POLICY, PolicyError, RichTextPolicy, load_policy
from .richtext import RichTextSanitizer, sanitize_for_rich_text
from .templating import TemplateArgumentError, populate_template

__all__ = [
    "DEFAULT_POLICY",
    "PolicyError",
    "RichTextPolicy",
    "RichTextSanitizer",
    "TemplateArgumentError",
    "desanitize_from_html",
    "desanitize_if_html_sanitized",
    "is_sanitized_html",
    "load_policy",
    "populate_template",
    "sanitize_email",
    "sanitize_for_csv",
    "sanitize_for_html",
    "sanitize_for_html_list",
    "sanitize_for_rich_text",
    "sanitize_for_uri",
    "sanitize_google_id",
    "sanitize_list_for_csv",
    "sanitize_name",
    "sanitize_text_field",
    "sanitize_title",
]
