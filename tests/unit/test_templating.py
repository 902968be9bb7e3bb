"""Tests for the template resolver."""
import json

import pytest

from workflow_engine.templating import (
    MISSING,
    coerce_value,
    extract_references,
    get_nested_value,
    references_variable,
    render,
    resolve,
    resolve_data,
)


@pytest.fixture
def context():
    return {
        "trigger": {"name": "Root"},
        "variables": {
            "trigger": {"name": "Ava", "id": "42"},
            "contact": {
                "email": "ava@example.com",
                "tags": ["vip", "beta"],
                "address": {"city": "Lisbon"},
                "score": 7,
                "active": True,
                "note": None,
            },
        },
        "apiKey": "root-only",
    }


class TestLookup:
    """Test dot-path lookup."""

    def test_nested_value(self, context):
        assert get_nested_value(context["variables"], "contact.address.city") == "Lisbon"

    def test_list_index(self, context):
        assert get_nested_value(context["variables"], "contact.tags.1") == "beta"

    def test_missing_mid_path_returns_missing(self, context):
        assert get_nested_value(context["variables"], "contact.email.domain") is MISSING
        assert get_nested_value(context["variables"], "nobody.email") is MISSING

    def test_explicit_null_is_not_missing(self, context):
        assert get_nested_value(context["variables"], "contact.note") is None


class TestResolve:
    """Test resolve()."""

    def test_plain_substitution(self, context):
        assert resolve("Hello {{trigger.name}}", context) == "Hello Ava"

    def test_whitespace_inside_braces(self, context):
        assert resolve("Hi {{  contact.email  }}!", context) == "Hi ava@example.com!"

    def test_variables_shadow_root(self, context):
        assert resolve("{{trigger.name}}", context) == "Ava"

    def test_falls_back_to_root(self, context):
        assert resolve("{{apiKey}}", context) == "root-only"

    def test_missing_becomes_empty_string(self, context):
        assert resolve("Hello {{nobody.name}}!", context) == "Hello !"

    def test_null_becomes_empty_string(self, context):
        assert resolve("[{{contact.note}}]", context) == "[]"

    def test_json_keyword(self, context):
        result = resolve('{"tags": {{json contact.tags}}}', context)
        assert result == {"tags": ["vip", "beta"]}

    def test_json_keyword_missing_is_null(self, context):
        assert resolve("{{json nobody}}", context) == "null"

    def test_json_keyword_string(self, context):
        assert resolve("{{json contact.email}}", context) == "\"ava@example.com\""

    def test_json_round_trip(self, context):
        value = {"a": [1, 2.5, {"b": None}], "c": "text", "d": False}
        context["variables"]["payload"] = value
        rendered = render("{{json payload}}", context)
        assert json.loads(rendered) == value

    def test_numeric_coercion(self, context):
        assert resolve("{{trigger.id}}", context) == 42
        assert resolve("3.5", context) == 3.5
        assert resolve("{{contact.score}}", context) == 7

    def test_boolean_coercion(self, context):
        assert resolve("{{contact.active}}", context) is True
        assert resolve("false", context) is False

    def test_boolean_requires_exact_literal(self, context):
        assert resolve("True", context) == "True"
        assert resolve(" true", context) == " true"

    def test_object_text_renders_as_json(self, context):
        assert resolve("{{contact.address}}", context) == {"city": "Lisbon"}

    def test_invalid_json_shape_kept_as_string(self, context):
        assert resolve("{not json}", context) == "{not json}"

    def test_non_finite_numbers_stay_strings(self, context):
        assert resolve("NaN", context) == "NaN"
        assert resolve("Infinity", context) == "Infinity"

    def test_empty_string_stays_string(self, context):
        assert resolve("", context) == ""
        assert resolve("{{nobody}}", context) == ""

    def test_non_string_template_returned_unchanged(self, context):
        assert resolve(5, context) == 5
        assert resolve(None, context) is None

    @pytest.mark.parametrize(
        "template",
        ["{{", "}}", "{{}}", "{{ . }}", "{{a..b}}", "{{json}}", "{{trigger.name.x.y}}"],
    )
    def test_never_raises(self, template):
        resolve(template, {})
        resolve(template, {"variables": "not a dict"})

    def test_oversized_integer_stays_string(self):
        digits = "9" * 5000
        ctx = {"variables": {"trigger": {"code": digits}}}

        assert resolve("{{trigger.code}}", ctx) == digits

    def test_deeply_nested_value(self):
        nested = []
        for _ in range(5000):
            nested = [nested]
        ctx = {"variables": {"x": nested}}

        assert resolve("{{json x}}", ctx) == "null"
        assert resolve("{{x}}", ctx) == "null"

    def test_deeply_nested_json_text_stays_string(self):
        text = "[" * 5000 + "]" * 5000
        assert coerce_value(text) == text


class TestCoerceValue:
    """Test coercion order."""

    def test_json_before_number(self):
        assert coerce_value("[1]") == [1]

    def test_number_before_boolean(self):
        assert coerce_value("1") == 1

    def test_plain_string(self):
        assert coerce_value("hello") == "hello"


class TestResolveData:
    """Test nested resolution."""

    def test_resolves_nested_structures(self, context):
        data = {
            "to": "{{contact.email}}",
            "items": ["{{trigger.id}}", {"city": "{{contact.address.city}}"}],
            "fixed": 10,
        }
        assert resolve_data(data, context) == {
            "to": "ava@example.com",
            "items": [42, {"city": "Lisbon"}],
            "fixed": 10,
        }


class TestReferences:
    """Test reference extraction."""

    def test_extract_references(self):
        template = "{{contact.email}} and {{ json deal.amount }}"
        assert extract_references(template) == ["contact.email", "deal.amount"]

    def test_references_variable_matches_whole_name(self):
        assert references_variable("{{contact.email}}", "contact")
        assert references_variable("{{contact}}", "contact")
        assert not references_variable("{{contactList.0}}", "contact")
