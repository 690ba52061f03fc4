"""Tests for pkg.sanitization.policy: RichTextPolicy and load_policy."""

import logging
from pathlib import Path

import pytest

from pkg.sanitization.policy import (
    DEFAULT_POLICY,
    PolicyError,
    RichTextPolicy,
    VOID_ELEMENTS,
    load_policy,
)


def write_policy(tmp_path: Path, content: str) -> Path:
    p = tmp_path / "policy.yml"
    p.write_text(content)
    return p


class TestDefaultPolicy:
    def test_expected_elements_allowed(self):
        for tag in ("a", "h1", "h6", "hr", "img", "p", "strong", "div", "span", "table",
                    "thead", "tbody", "tr", "td", "caption", "sub", "sup", "code"):
            assert DEFAULT_POLICY.allows_element(tag), tag

    def test_dangerous_elements_not_allowed(self):
        for tag in ("script", "iframe", "input", "body", "form", "style"):
            assert not DEFAULT_POLICY.allows_element(tag), tag

    def test_attribute_mapping(self):
        assert DEFAULT_POLICY.allows_attribute("a", "href")
        assert DEFAULT_POLICY.allows_attribute("img", "src")
        assert DEFAULT_POLICY.allows_attribute("p", "style")
        assert DEFAULT_POLICY.allows_attribute("span", "style")
        assert DEFAULT_POLICY.allows_attribute("table", "cellspacing")
        assert DEFAULT_POLICY.allows_attribute("td", "colspan")
        assert not DEFAULT_POLICY.allows_attribute("a", "src")
        assert not DEFAULT_POLICY.allows_attribute("div", "class")

    def test_event_handlers_never_allowed(self):
        policy = RichTextPolicy(elements={"div": frozenset({"onclick"})})
        assert not policy.allows_attribute("div", "onclick")
        assert not DEFAULT_POLICY.allows_attribute("body", "onload")

    def test_script_and_style_drop_content(self):
        assert DEFAULT_POLICY.drops_content("script")
        assert DEFAULT_POLICY.drops_content("style")
        assert not DEFAULT_POLICY.drops_content("div")

    def test_void_elements(self):
        assert {"hr", "img", "br"} <= VOID_ELEMENTS

    def test_default_mappings_are_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_POLICY.elements["form"] = frozenset({"action"})  # type: ignore[index]
        with pytest.raises(TypeError):
            DEFAULT_POLICY.required_attributes["a"] = frozenset({"href"})  # type: ignore[index]
        assert not DEFAULT_POLICY.allows_element("form")

    def test_policy_is_hashable(self):
        assert hash(DEFAULT_POLICY) == hash(RichTextPolicy())

    def test_constructor_copies_caller_mapping(self):
        elements = {"p": frozenset()}
        policy = RichTextPolicy(elements=elements)
        elements["form"] = frozenset()
        assert not policy.allows_element("form")
        with pytest.raises(TypeError):
            policy.elements["form"] = frozenset()  # type: ignore[index]


class TestFromDict:
    def test_none_and_empty_use_defaults(self):
        assert RichTextPolicy.from_dict(None) == DEFAULT_POLICY
        assert RichTextPolicy.from_dict({}) == DEFAULT_POLICY

    def test_camel_and_snake_case_keys(self):
        camel = RichTextPolicy.from_dict({"urlProtocols": ["https"]})
        snake = RichTextPolicy.from_dict({"url_protocols": ["HTTPS"]})
        assert camel.url_protocols == frozenset({"https"})
        assert snake.url_protocols == frozenset({"https"})

    def test_elements_replace_defaults(self):
        policy = RichTextPolicy.from_dict({"elements": {"P": ["Style"], "br": None}})
        assert dict(policy.elements) == {"p": frozenset({"style"}), "br": frozenset()}
        assert policy.global_attributes == DEFAULT_POLICY.global_attributes
        with pytest.raises(TypeError):
            policy.elements["form"] = frozenset()  # type: ignore[index]

    def test_rejects_non_mapping(self):
        with pytest.raises(PolicyError, match="policy: expected mapping"):
            RichTextPolicy.from_dict(["p"])  # type: ignore[arg-type]

    def test_rejects_empty_elements(self):
        with pytest.raises(PolicyError, match="must be non-empty"):
            RichTextPolicy.from_dict({"elements": {}})

    def test_rejects_event_handler_attribute(self):
        with pytest.raises(PolicyError, match="event handler"):
            RichTextPolicy.from_dict({"elements": {"div": ["onclick"]}})
        with pytest.raises(PolicyError, match="event handler"):
            RichTextPolicy.from_dict({"globalAttributes": ["onload"]})

    def test_rejects_javascript_protocol(self):
        with pytest.raises(PolicyError, match="javascript"):
            RichTextPolicy.from_dict({"urlProtocols": ["https", "javascript"]})

    def test_rejects_allowed_and_dropped_element(self):
        with pytest.raises(PolicyError, match="both allowed and dropped"):
            RichTextPolicy.from_dict({"elements": {"p": [], "script": []}})

    def test_rejects_non_list_attribute_set(self):
        with pytest.raises(PolicyError, match=r"policy.elements.a: expected list"):
            RichTextPolicy.from_dict({"elements": {"a": "href"}})


class TestLoadPolicy:
    def test_minimal_yaml(self, tmp_path):
        path = write_policy(tmp_path, """
elements:
  p: [style]
  a: [href]
urlProtocols: [https]
""")
        policy = load_policy(path)
        assert policy.allows_element("p")
        assert not policy.allows_element("div")
        assert policy.allows_attribute("a", "href")
        assert policy.url_protocols == frozenset({"https"})
        assert policy.drop_content == DEFAULT_POLICY.drop_content

    def test_empty_file_gives_defaults(self, tmp_path):
        assert load_policy(write_policy(tmp_path, "")) == DEFAULT_POLICY

    def test_missing_file(self, tmp_path):
        with pytest.raises(PolicyError, match="missing policy file"):
            load_policy(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path):
        path = write_policy(tmp_path, "elements: [unclosed\n")
        with pytest.raises(PolicyError, match="invalid YAML"):
            load_policy(path)

    def test_top_level_list_rejected(self, tmp_path):
        path = write_policy(tmp_path, "- p\n- a\n")
        with pytest.raises(PolicyError, match="expected mapping"):
            load_policy(path)

    def test_logs_loaded_policy(self, tmp_path, caplog):
        path = write_policy(tmp_path, "elements:\n  p: []\n")
        with caplog.at_level(logging.INFO, logger="pkg.sanitization.policy"):
            load_policy(path)
        assert "1 elements" in caplog.text
