"""Allow-list policy for rich-text sanitization.

The built-in policy is a plain data structure so it can be inspected in tests
and extended without touching the parser. Hosts that want a different policy
can load one from YAML with `load_policy`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

logger = logging.getLogger(__name__)

_HEADINGS = ("h1", "h2", "h3", "h4", "h5", "h6")
_STYLED = ("p", "span", "div", "li", "pre", "blockquote", *_HEADINGS)

DEFAULT_ELEMENTS: dict[str, frozenset[str]] = {
    "a": frozenset({"href", "target"}),
    "b": frozenset(),
    "blockquote": frozenset({"cite"}),
    "br": frozenset(),
    "caption": frozenset(),
    "code": frozenset(),
    "col": frozenset({"span", "width"}),
    "colgroup": frozenset({"span", "width"}),
    "div": frozenset(),
    "em": frozenset(),
    "font": frozenset({"color", "face", "size"}),
    "hr": frozenset(),
    "i": frozenset(),
    "img": frozenset({"src", "alt", "width", "height"}),
    "li": frozenset(),
    "ol": frozenset({"start"}),
    "p": frozenset(),
    "pre": frozenset(),
    "s": frozenset(),
    "small": frozenset(),
    "span": frozenset(),
    "strike": frozenset(),
    "strong": frozenset(),
    "sub": frozenset(),
    "sup": frozenset(),
    "table": frozenset({"border", "cellpadding", "cellspacing", "style", "width"}),
    "tbody": frozenset(),
    "td": frozenset({"colspan", "rowspan", "style", "width"}),
    "tfoot": frozenset(),
    "th": frozenset({"colspan", "rowspan", "style", "width"}),
    "thead": frozenset(),
    "tr": frozenset(),
    "u": frozenset(),
    "ul": frozenset(),
    **{h: frozenset() for h in _HEADINGS},
}
for _tag in _STYLED:
    DEFAULT_ELEMENTS[_tag] = DEFAULT_ELEMENTS[_tag] | {"style"}
del _tag

DEFAULT_GLOBAL_ATTRIBUTES = frozenset({"title"})

# Content of these elements never reaches the output, not even as text.
DEFAULT_DROP_CONTENT = frozenset(
    {
        "script",
        "style",
        "iframe",
        "object",
        "embed",
        "noscript",
        "noembed",
        "noframes",
        "textarea",
        "title",
        "template",
        "xmp",
    }
)

VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)

DEFAULT_URL_ATTRIBUTES = frozenset({"href", "src", "cite"})
DEFAULT_URL_PROTOCOLS = frozenset({"http", "https", "mailto"})

# Elements dropped (tag only) when none of their attributes survive.
DEFAULT_REQUIRED_ATTRIBUTES: dict[str, frozenset[str]] = {
    "img": frozenset({"src"}),
}

DEFAULT_STYLE_PROPERTIES = frozenset(
    {
        "background-color",
        "border",
        "border-collapse",
        "border-color",
        "border-style",
        "border-width",
        "color",
        "font-family",
        "font-size",
        "font-style",
        "font-weight",
        "height",
        "line-height",
        "list-style-type",
        "margin",
        "margin-bottom",
        "margin-left",
        "margin-right",
        "margin-top",
        "padding",
        "padding-bottom",
        "padding-left",
        "padding-right",
        "padding-top",
        "text-align",
        "text-decoration",
        "text-indent",
        "vertical-align",
        "white-space",
        "width",
    }
)


class PolicyError(RuntimeError):
    """Raised when a rich-text policy cannot be loaded or validated."""
    pass


def _require_mapping(value: Any, ctx: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise PolicyError(f"{ctx}: expected mapping")
    return value


def _require_name(value: Any, ctx: str) -> str:
    if not isinstance(value, str):
        raise PolicyError(f"{ctx}: expected string")
    s = value.strip().lower()
    if not s:
        raise PolicyError(f"{ctx}: must be non-empty")
    return s


def _require_name_set(value: Any, ctx: str, *, attributes: bool = False) -> frozenset[str]:
    if value is None:
        return frozenset()
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise PolicyError(f"{ctx}: expected list")
    names = []
    for idx, item in enumerate(value):
        name = _require_name(item, f"{ctx}[{idx}]")
        if attributes and name.startswith("on"):
            raise PolicyError(f"{ctx}[{idx}]: event handler attributes cannot be allowed")
        names.append(name)
    return frozenset(names)


def _optional_name_set(
    raw: Mapping[str, Any],
    keys: tuple[str, ...],
    default: frozenset[str],
    *,
    attributes: bool = False,
) -> frozenset[str]:
    for key in keys:
        if key in raw:
            return _require_name_set(raw[key], f"policy.{keys[0]}", attributes=attributes)
    return default


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return None


@dataclass(frozen=True)
class RichTextPolicy:
    """Which elements, attributes and style properties survive sanitization."""

    elements: Mapping[str, frozenset[str]] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_ELEMENTS))
    )
    global_attributes: frozenset[str] = DEFAULT_GLOBAL_ATTRIBUTES
    drop_content: frozenset[str] = DEFAULT_DROP_CONTENT
    url_attributes: frozenset[str] = DEFAULT_URL_ATTRIBUTES
    url_protocols: frozenset[str] = DEFAULT_URL_PROTOCOLS
    required_attributes: Mapping[str, frozenset[str]] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_REQUIRED_ATTRIBUTES))
    )
    style_properties: frozenset[str] = DEFAULT_STYLE_PROPERTIES

    def __post_init__(self) -> None:
        # Copy into read-only views so a shared policy cannot be widened later.
        for name in ("elements", "required_attributes"):
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, MappingProxyType(dict(value)))

    def __hash__(self) -> int:
        return hash(
            (
                frozenset(self.elements.items()),
                self.global_attributes,
                self.drop_content,
                self.url_attributes,
                self.url_protocols,
                frozenset(self.required_attributes.items()),
                self.style_properties,
            )
        )

    def allows_element(self, name: str) -> bool:
        return name in self.elements

    def allows_attribute(self, element: str, attribute: str) -> bool:
        """Event handlers are never allowed, whatever the mapping says."""
        if attribute.startswith("on"):
            return False
        if attribute in self.global_attributes:
            return True
        return attribute in self.elements.get(element, ())

    def drops_content(self, name: str) -> bool:
        return name in self.drop_content

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None = None) -> "RichTextPolicy":
        """Build a policy from a mapping; missing keys keep the defaults."""
        if raw is None:
            return cls()
        raw = _require_mapping(raw, "policy")

        base = cls()
        elements_raw = _pick(raw, "elements")
        elements = base.elements
        if elements_raw is not None:
            elements_map = _require_mapping(elements_raw, "policy.elements")
            if not elements_map:
                raise PolicyError("policy.elements: must be non-empty")
            elements = MappingProxyType({
                _require_name(tag, "policy.elements key"): _require_name_set(
                    attrs, f"policy.elements.{tag}", attributes=True
                )
                for tag, attrs in elements_map.items()
            })

        required = base.required_attributes
        required_raw = _pick(raw, "requiredAttributes", "required_attributes")
        if required_raw is not None:
            required_map = _require_mapping(required_raw, "policy.requiredAttributes")
            required = MappingProxyType({
                _require_name(tag, "policy.requiredAttributes key"): _require_name_set(
                    attrs, f"policy.requiredAttributes.{tag}", attributes=True
                )
                for tag, attrs in required_map.items()
            })

        protocols = _optional_name_set(raw, ("urlProtocols", "url_protocols"), base.url_protocols)

        policy = replace(
            base,
            elements=elements,
            global_attributes=_optional_name_set(
                raw, ("globalAttributes", "global_attributes"), base.global_attributes, attributes=True
            ),
            drop_content=_optional_name_set(raw, ("dropContent", "drop_content"), base.drop_content),
            url_attributes=_optional_name_set(
                raw, ("urlAttributes", "url_attributes"), base.url_attributes, attributes=True
            ),
            url_protocols=protocols,
            required_attributes=required,
            style_properties=_optional_name_set(
                raw, ("styleProperties", "style_properties"), base.style_properties
            ),
        )

        if "javascript" in policy.url_protocols:
            raise PolicyError("policy.urlProtocols: javascript is never allowed")
        overlap = policy.drop_content & set(policy.elements)
        if overlap:
            raise PolicyError(
                f"policy.dropContent: elements cannot be both allowed and dropped: {sorted(overlap)}"
            )
        return policy


DEFAULT_POLICY = RichTextPolicy()


def _load_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text())
    except FileNotFoundError:
        raise PolicyError(f"missing policy file: {path}") from None
    except yaml.YAMLError as e:
        raise PolicyError(f"invalid YAML in {path}: {e}") from e


def load_policy(path: Path) -> RichTextPolicy:
    """Load a rich-text policy from a YAML file."""
    raw = _load_yaml(Path(path))
    if raw is None:
        raw = {}
    policy = RichTextPolicy.from_dict(_require_mapping(raw, "policy"))
    logger.info(
        "loaded rich-text policy from %s: %d elements, %d url protocols",
        path,
        len(policy.elements),
        len(policy.url_protocols),
    )
    return policy
