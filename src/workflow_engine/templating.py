"""
Template Resolver - ``{{path.to.value}}`` expressions over a run context.

Resolution is deliberately soft: a missing variable becomes an empty string
(or ``null`` under the ``json`` keyword) and nothing in this module raises
for any template/context pair.

After substitution the result is coerced, in this order:
JSON object/array -> finite number -> ``true``/``false`` -> plain string.
This lets one text-templating mechanism populate typed node configuration
(numbers, booleans, nested JSON) without a separate expression language.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Dict, List, Mapping, Union

TEMPLATE_PATTERN = re.compile(r"\{\{(.+?)\}\}")
JSON_KEYWORD = "json "

_INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")
_FLOAT_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

JSONValue = Union[str, int, float, bool, None, Dict[str, Any], List[Any]]


class _Missing:
    """Marker for a path that does not exist (distinct from an explicit null)."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


def get_nested_value(obj: Any, path: str) -> Any:
    """
    Walk ``path`` (dot separated) through nested dicts/lists.

    Returns MISSING as soon as a non-container is met mid-path.
    """
    current = obj
    for key in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(key, MISSING)
        elif isinstance(current, (list, tuple)) and key.isdigit():
            index = int(key)
            current = current[index] if index < len(current) else MISSING
        else:
            return MISSING
        if current is MISSING:
            return MISSING
    return current


def lookup(path: str, context: Mapping[str, Any]) -> Any:
    """Look ``path`` up in ``context["variables"]``, falling back to the root."""
    variables = context.get("variables") if isinstance(context, Mapping) else None
    value = get_nested_value(variables, path)
    if value is MISSING:
        value = get_nested_value(context, path)
    return value


def to_text(value: Any) -> str:
    """String form of a looked-up value (missing/None become empty)."""
    if value is MISSING or value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list, tuple)):
        return to_json(value)
    try:
        return str(value)
    except Exception:
        return ""


def to_json(value: Any) -> str:
    """Compact JSON for the ``json`` keyword; missing values become null."""
    if value is MISSING:
        value = None
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
    except (TypeError, ValueError, RecursionError):
        # circular or too deeply nested structures, non-string keys
        return "null"


def _substitute(template: str, context: Mapping[str, Any]) -> str:
    def replace(match: re.Match) -> str:
        expr = match.group(1).strip()
        if expr.startswith(JSON_KEYWORD):
            return to_json(lookup(expr[len(JSON_KEYWORD):].strip(), context))
        return to_text(lookup(expr, context))

    return TEMPLATE_PATTERN.sub(replace, template)


def coerce_value(text: str) -> JSONValue:
    """
    Best-effort typing of a substituted string.

    Order: JSON object/array, finite number, boolean literal, string.
    """
    stripped = text.strip()

    if (stripped.startswith("{") and stripped.endswith("}")) or (
        stripped.startswith("[") and stripped.endswith("]")
    ):
        try:
            return json.loads(stripped)
        except (ValueError, RecursionError):
            return text

    if stripped:
        if _INTEGER_PATTERN.match(stripped):
            try:
                return int(stripped)
            except ValueError:
                # past the int conversion limit; the float path yields inf
                pass
        if _FLOAT_PATTERN.match(stripped):
            number = float(stripped)
            if math.isfinite(number):
                return number

    if text == "true":
        return True
    if text == "false":
        return False

    return text


def render(template: Any, context: Mapping[str, Any]) -> str:
    """Substitute placeholders and return text, without type coercion."""
    if template is None:
        return ""
    if not isinstance(template, str):
        return to_text(template)
    return _substitute(template, context)


def resolve(template: Any, context: Mapping[str, Any]) -> JSONValue:
    """
    Resolve a template against a run context.

    Non-string inputs are returned unchanged (already-typed configuration).
    """
    if not isinstance(template, str):
        return template
    return coerce_value(_substitute(template, context))


def resolve_data(value: Any, context: Mapping[str, Any]) -> Any:
    """Resolve every string inside a nested dict/list structure."""
    if isinstance(value, str):
        return resolve(value, context)
    if isinstance(value, list):
        return [resolve_data(item, context) for item in value]
    if isinstance(value, dict):
        return {key: resolve_data(item, context) for key, item in value.items()}
    return value


def extract_references(template: Any) -> List[str]:
    """Dot paths referenced by a template's placeholders."""
    if not isinstance(template, str):
        return []
    paths = []
    for match in TEMPLATE_PATTERN.finditer(template):
        expr = match.group(1).strip()
        if expr.startswith(JSON_KEYWORD):
            expr = expr[len(JSON_KEYWORD):].strip()
        if expr:
            paths.append(expr)
    return paths


def references_variable(template: Any, variable_name: str) -> bool:
    """Does the template read ``variable_name`` (or a path below it)?"""
    return any(
        path == variable_name or path.startswith(f"{variable_name}.")
        for path in extract_references(template)
    )


__all__ = [
    "MISSING",
    "coerce_value",
    "extract_references",
    "get_nested_value",
    "lookup",
    "references_variable",
    "render",
    "resolve",
    "resolve_data",
    "to_json",
    "to_text",
]
