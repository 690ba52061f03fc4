"""Placeholder substitution for message templates.

Placeholders are literal tokens such as ``{{name}}``. The template is scanned
once, so a value that happens to contain a placeholder is inserted verbatim.
"""

from __future__ import annotations

import re


class TemplateArgumentError(ValueError):
    """Raised when placeholder/value arguments do not form pairs."""
    pass


def _render_value(value: object) -> str:
    return "null" if value is None else str(value)


def populate_template(template: str, *keys_and_values: object) -> str:
    """Replace each placeholder with its paired value.

    >>> populate_template("Hello {{name}}", "{{name}}", "Ann")
    'Hello Ann'
    """
    if len(keys_and_values) % 2 != 0:
        raise TemplateArgumentError(
            f"expected placeholder/value pairs, got {len(keys_and_values)} arguments"
        )

    replacements: dict[str, str] = {}
    for idx in range(0, len(keys_and_values), 2):
        key = str(keys_and_values[idx])
        if not key:
            raise TemplateArgumentError(f"placeholder at position {idx} is empty")
        # Earlier pairs win when a placeholder is repeated.
        replacements.setdefault(key, _render_value(keys_and_values[idx + 1]))

    if not replacements:
        return template

    token_re = re.compile("|".join(re.escape(key) for key in replacements))

    def replace_token(match: re.Match[str]) -> str:
        return replacements[match.group(0)]

    return token_re.sub(replace_token, template)
