"""Rich-text sanitization.

Three stages, each usable on its own:

1. `tokenize` turns an HTML fragment into `StartTag` / `EndTag` / `Text` tokens.
2. `build_tree` matches tags with an open-element stack, applying the
   allow-list policy as it goes. Unmatched end tags are dropped, disallowed
   wrappers vanish while their children are re-parented, and drop-content
   elements (script, style, ...) lose everything inside them.
3. `serialize` writes the tree back out with every text run and attribute
   value encoded.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Iterable, Union

from .policy import DEFAULT_POLICY, VOID_ELEMENTS, RichTextPolicy

logger = logging.getLogger(__name__)

FRAGMENT_ROOT = "#fragment"

_ENCODING = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&#34;",
        "'": "&#39;",
        "=": "&#61;",
        "+": "&#43;",
        "@": "&#64;",
        "`": "&#96;",
    }
)

_URL_SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.\-]*):")
_URL_IGNORED_CHARS_RE = re.compile(r"[\x00-\x20\x7f]+")
_CSS_COMMENT_RE = re.compile(r"/\*.*?\*/", re.S)
_UNSAFE_CSS_RE = re.compile(
    r"url\s*\(|expression\s*\(|javascript:|vbscript:|@import|behavior\s*:|-moz-binding|[\\<>]",
    re.I,
)


@dataclass(frozen=True)
class StartTag:
    name: str
    attrs: tuple[tuple[str, str | None], ...] = ()
    self_closing: bool = False


@dataclass(frozen=True)
class EndTag:
    name: str


@dataclass(frozen=True)
class Text:
    data: str


Token = Union[StartTag, EndTag, Text]


@dataclass
class Element:
    name: str
    attrs: list[tuple[str, str]] = field(default_factory=list)
    children: list["Node"] = field(default_factory=list)


Node = Union[Element, Text]


@dataclass
class _OpenElement:
    name: str
    # Where children go while this entry is the innermost open element.
    parent: Element


class _Tokenizer(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.tokens: list[Token] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self.tokens.append(StartTag(tag, tuple(attrs)))

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self.tokens.append(StartTag(tag, tuple(attrs), self_closing=True))

    def handle_endtag(self, tag: str) -> None:
        self.tokens.append(EndTag(tag))

    def handle_data(self, data: str) -> None:
        if data:
            self.tokens.append(Text(data))


def tokenize(fragment: str) -> list[Token]:
    """Tokenize an HTML fragment; comments and declarations are discarded."""
    tokenizer = _Tokenizer()
    tokenizer.feed(fragment)
    tokenizer.close()
    return tokenizer.tokens


def encode(text: str) -> str:
    """Encode text for use in element content or a double-quoted attribute."""
    return text.translate(_ENCODING)


def is_allowed_url(value: str, policy: RichTextPolicy = DEFAULT_POLICY) -> bool:
    """Relative URLs pass; absolute ones need an allowed scheme."""
    compact = _URL_IGNORED_CHARS_RE.sub("", value)
    match = _URL_SCHEME_RE.match(compact)
    if not match:
        return True
    return match.group(1).lower() in policy.url_protocols


def _split_declarations(style: str) -> list[str]:
    """Split on semicolons that are not inside a quoted string."""
    declarations: list[str] = []
    quote: str | None = None
    start = 0
    for idx, char in enumerate(style):
        if quote is not None:
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char == ";":
            declarations.append(style[start:idx])
            start = idx + 1
    declarations.append(style[start:])
    return declarations


def clean_style(value: str, policy: RichTextPolicy = DEFAULT_POLICY) -> str:
    """Keep only allowed CSS declarations with harmless values."""
    kept: list[str] = []
    for declaration in _split_declarations(_CSS_COMMENT_RE.sub("", value)):
        if not declaration.strip():
            continue
        prop, sep, val = declaration.partition(":")
        prop = prop.strip().lower()
        val = " ".join(val.split())
        if not sep or not prop or not val:
            logger.debug("dropped malformed style declaration")
            continue
        if prop not in policy.style_properties or _UNSAFE_CSS_RE.search(val):
            logger.debug("dropped style property %s", prop)
            continue
        kept.append(f"{prop}:{val}")
    return ";".join(kept)


def _filter_attributes(
    tag: StartTag, policy: RichTextPolicy
) -> list[tuple[str, str]]:
    kept: list[tuple[str, str]] = []
    seen: set[str] = set()
    for name, raw_value in tag.attrs:
        # First occurrence wins, as in browsers.
        if name in seen:
            continue
        seen.add(name)
        if not policy.allows_attribute(tag.name, name):
            logger.debug("dropped attribute %s on <%s>", name, tag.name)
            continue
        value = raw_value or ""
        if name in policy.url_attributes:
            if not is_allowed_url(value, policy):
                logger.debug("dropped unsafe url in %s on <%s>", name, tag.name)
                continue
        elif name == "style":
            value = clean_style(value, policy)
            if not value:
                continue
        kept.append((name, value))
    return kept


def _has_required_attributes(name: str, attrs: list[tuple[str, str]], policy: RichTextPolicy) -> bool:
    required = policy.required_attributes.get(name)
    if not required:
        return True
    present = {attr for attr, _ in attrs}
    return required <= present


def _current_parent(root: Element, stack: list[_OpenElement]) -> Element:
    return stack[-1].parent if stack else root


def build_tree(tokens: Iterable[Token], policy: RichTextPolicy = DEFAULT_POLICY) -> Element:
    """Build an allow-listed element tree under a synthetic fragment root."""
    root = Element(FRAGMENT_ROOT)
    stack: list[_OpenElement] = []
    open_counts: Counter[str] = Counter()
    skipping: str | None = None
    skip_depth = 0

    for token in tokens:
        if skipping is not None:
            if isinstance(token, StartTag) and token.name == skipping and not token.self_closing:
                skip_depth += 1
            elif isinstance(token, EndTag) and token.name == skipping:
                skip_depth -= 1
                if skip_depth == 0:
                    skipping = None
            continue

        if isinstance(token, Text):
            _current_parent(root, stack).children.append(token)
            continue

        if isinstance(token, EndTag):
            if not open_counts[token.name]:
                logger.debug("dropped unmatched end tag </%s>", token.name)
                continue
            while True:
                entry = stack.pop()
                open_counts[entry.name] -= 1
                if entry.name == token.name:
                    break
            continue

        is_void = token.name in VOID_ELEMENTS
        if policy.drops_content(token.name):
            logger.debug("dropped <%s> with its content", token.name)
            if not is_void and not token.self_closing:
                skipping = token.name
                skip_depth = 1
            continue

        node = None
        if policy.allows_element(token.name):
            attrs = _filter_attributes(token, policy)
            if _has_required_attributes(token.name, attrs, policy):
                node = Element(token.name, attrs)
                _current_parent(root, stack).children.append(node)
            else:
                logger.debug("dropped <%s> missing required attributes", token.name)
        else:
            logger.debug("dropped disallowed element <%s>", token.name)

        if not is_void and not token.self_closing:
            parent = node if node is not None else _current_parent(root, stack)
            stack.append(_OpenElement(token.name, parent))
            open_counts[token.name] += 1

    return root


def _open_tag(element: Element) -> str:
    parts = [f"<{element.name}"]
    for name, value in element.attrs:
        parts.append(f' {name}="{encode(value)}"')
    parts.append(" />" if element.name in VOID_ELEMENTS else ">")
    return "".join(parts)


def serialize(root: Element) -> str:
    """Serialize the children of `root`; void elements use the `<x />` form."""
    out: list[str] = []
    pending: list[Node | str] = list(reversed(root.children))
    while pending:
        item = pending.pop()
        if isinstance(item, str):
            out.append(item)
        elif isinstance(item, Text):
            out.append(encode(item.data))
        else:
            out.append(_open_tag(item))
            if item.name in VOID_ELEMENTS:
                continue
            pending.append(f"</{item.name}>")
            pending.extend(reversed(item.children))
    return "".join(out)


class RichTextSanitizer:
    """Allow-list sanitizer bound to one policy."""

    def __init__(self, policy: RichTextPolicy = DEFAULT_POLICY) -> None:
        self.policy = policy

    def sanitize(self, fragment: str | None) -> str | None:
        if fragment is None:
            return None
        if not isinstance(fragment, str):
            raise TypeError(f"expected str or None, got {type(fragment).__name__}")
        if not fragment:
            return ""
        return serialize(build_tree(tokenize(fragment), self.policy))


_DEFAULT_SANITIZER = RichTextSanitizer()


def sanitize_for_rich_text(fragment: str | None) -> str | None:
    """Sanitize user-supplied rich text with the built-in allow-list.

    Returns None for None and "" for "". Never raises on malformed markup.
    """
    return _DEFAULT_SANITIZER.sanitize(fragment)
