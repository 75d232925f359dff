# src/nodeflow/engine/fields.py
"""Field Validator: one value against its schema, in the context of its siblings.

Pure functions, no side effects. The checks run in order:

1. Visibility - an inactive field (display conditions unmet) is always
   valid, whatever stale value it holds
2. Required - None, "", [] or {} on a required field is MissingRequiredField
3. Expressions - a value holding a ``{{ ... }}`` span is resolved at run
   time, so only JSON fields check it now (with spans replaced by a
   placeholder)
4. Type and constraint rules per declared field type
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Callable, Iterable, Mapping
from datetime import date, datetime
from typing import Any
from urllib.parse import urlsplit

from nodeflow.contracts import ErrorKind, FieldResult, FieldSchema, FieldType
from nodeflow.engine.expressions import contains_expression, render, substitute_spans

# Stand-in for an expression span when checking JSON syntax; valid both as a
# bare JSON value and inside a JSON string.
JSON_PLACEHOLDER = "null"

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# =============================================================================
# Visibility
# =============================================================================


def _values_equal(actual: Any, expected: Any) -> bool:
    # True == 1 in Python, but a boolean condition must not match a number
    if isinstance(actual, bool) != isinstance(expected, bool):
        return False
    return bool(actual == expected)


def _condition_matches(actual: Any, allowed: list[Any]) -> bool:
    if isinstance(actual, list):
        return any(_values_equal(a, e) for a in actual for e in allowed)
    return any(_values_equal(actual, e) for e in allowed)


def is_field_active(schema: FieldSchema, sibling_config: Mapping[str, Any]) -> bool:
    """Whether a field is currently relevant given its siblings' values.

    Every ``show`` constraint must match (the sibling holds one of the
    allowed values) and no ``hide`` constraint may match.
    """
    options = schema.display_options
    if options is None:
        return True
    for other, allowed in options.show.items():
        if not _condition_matches(sibling_config.get(other), allowed):
            return False
    for other, hidden in options.hide.items():
        if _condition_matches(sibling_config.get(other), hidden):
            return False
    return True


def visible_fields(fields: Iterable[FieldSchema], config: Mapping[str, Any]) -> list[FieldSchema]:
    """Fields a configuration panel should currently render, in schema order."""
    return [f for f in fields if is_field_active(f, config)]


def with_defaults(fields: Iterable[FieldSchema], config: Mapping[str, Any]) -> dict[str, Any]:
    """Config overlaid on schema defaults, for evaluating display conditions."""
    effective = {f.name: f.default for f in fields if f.default is not None}
    effective.update(config)
    return effective


def is_empty(value: Any) -> bool:
    return value is None or value == ""


def has_content(value: Any) -> bool:
    """Non-empty, counting an empty list or mapping as unfilled."""
    if is_empty(value):
        return False
    if isinstance(value, list | Mapping):
        return bool(value)
    return True


# =============================================================================
# Type checks
# =============================================================================


def _format_bound(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


def _check_number(schema: FieldSchema, value: Any) -> FieldResult:
    if isinstance(value, bool):
        return FieldResult.fail(ErrorKind.INVALID_FIELD_TYPE, f"{schema.label} must be a number")
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        # float() also takes digit separators like "1_000"
        if "_" in value:
            return FieldResult.fail(ErrorKind.INVALID_FIELD_TYPE, f"{schema.label} must be a number")
        try:
            number = float(value.strip())
        except ValueError:
            return FieldResult.fail(ErrorKind.INVALID_FIELD_TYPE, f"{schema.label} must be a number")
    else:
        return FieldResult.fail(ErrorKind.INVALID_FIELD_TYPE, f"{schema.label} must be a number")

    if not math.isfinite(number):
        return FieldResult.fail(ErrorKind.INVALID_FIELD_TYPE, f"{schema.label} must be a finite number")
    if schema.min is not None and number < schema.min:
        return FieldResult.fail(ErrorKind.OUT_OF_RANGE, f"{schema.label} must be at least {_format_bound(schema.min)}")
    if schema.max is not None and number > schema.max:
        return FieldResult.fail(ErrorKind.OUT_OF_RANGE, f"{schema.label} must be at most {_format_bound(schema.max)}")
    return FieldResult.ok()


def _check_boolean(schema: FieldSchema, value: Any) -> FieldResult:
    if isinstance(value, bool) or value in ("true", "false"):
        return FieldResult.ok()
    return FieldResult.fail(ErrorKind.INVALID_FIELD_TYPE, f"{schema.label} must be true or false")


def _is_enumerated(schema: FieldSchema, value: Any) -> bool:
    return any(_values_equal(value, allowed) for allowed in schema.option_values)


def _check_options(schema: FieldSchema, value: Any) -> FieldResult:
    # Options loaded at run time are not in the catalog; nothing to check against
    if schema.allow_custom or not schema.options or _is_enumerated(schema, value):
        return FieldResult.ok()
    allowed = ", ".join(str(v) for v in schema.option_values)
    return FieldResult.fail(ErrorKind.INVALID_FIELD_TYPE, f"{schema.label} must be one of: {allowed}")


def _check_multi_options(schema: FieldSchema, value: Any) -> FieldResult:
    if not isinstance(value, list):
        return FieldResult.fail(ErrorKind.INVALID_FIELD_TYPE, f"{schema.label} must be a list of options")
    if schema.allow_custom or not schema.options:
        return FieldResult.ok()
    invalid = [v for v in value if not _is_enumerated(schema, v)]
    if invalid:
        shown = ", ".join(str(v) for v in invalid)
        return FieldResult.fail(ErrorKind.INVALID_FIELD_TYPE, f"{schema.label} contains invalid option(s): {shown}")
    return FieldResult.ok()


def _check_json(schema: FieldSchema, value: Any) -> FieldResult:
    if not isinstance(value, str):
        # Already structured data (or a JSON scalar)
        return FieldResult.ok()
    try:
        json.loads(substitute_spans(value, JSON_PLACEHOLDER))
    except json.JSONDecodeError as e:
        return FieldResult.fail(ErrorKind.INVALID_FIELD_TYPE, f"{schema.label} must be valid JSON ({e.msg})")
    return FieldResult.ok()


def _check_datetime(schema: FieldSchema, value: Any) -> FieldResult:
    if isinstance(value, datetime | date):
        return FieldResult.ok()
    if isinstance(value, str):
        try:
            datetime.fromisoformat(value.strip())
        except ValueError:
            pass
        else:
            return FieldResult.ok()
    return FieldResult.fail(ErrorKind.INVALID_FIELD_TYPE, f"{schema.label} must be a valid date and time")


def _check_text(schema: FieldSchema, value: Any) -> FieldResult:
    if isinstance(value, Mapping | list):
        return FieldResult.fail(ErrorKind.INVALID_FIELD_TYPE, f"{schema.label} must be text")
    text = render(value)
    if schema.min_length is not None and len(text) < schema.min_length:
        return FieldResult.fail(
            ErrorKind.OUT_OF_RANGE, f"{schema.label} must be at least {schema.min_length} characters"
        )
    if schema.max_length is not None and len(text) > schema.max_length:
        return FieldResult.fail(
            ErrorKind.OUT_OF_RANGE, f"{schema.label} must be at most {schema.max_length} characters"
        )
    if schema.pattern is not None and re.search(schema.pattern, text) is None:
        return FieldResult.fail(ErrorKind.INVALID_FIELD_TYPE, f"{schema.label} does not match the expected format")
    return FieldResult.ok()


def _check_email(schema: FieldSchema, value: Any) -> FieldResult:
    if not isinstance(value, str) or not _EMAIL_PATTERN.match(value.strip()):
        return FieldResult.fail(ErrorKind.INVALID_FIELD_TYPE, f"{schema.label} must be a valid email address")
    return _check_text(schema, value)


def _check_url(schema: FieldSchema, value: Any) -> FieldResult:
    if isinstance(value, str):
        parts = urlsplit(value.strip())
        if parts.scheme in ("http", "https") and parts.netloc:
            return _check_text(schema, value)
    return FieldResult.fail(ErrorKind.INVALID_FIELD_TYPE, f"{schema.label} must be a valid http(s) URL")


def _check_collection(schema: FieldSchema, value: Any) -> FieldResult:
    if isinstance(value, Mapping | list):
        return FieldResult.ok()
    return FieldResult.fail(ErrorKind.INVALID_FIELD_TYPE, f"{schema.label} must be a collection of values")


_TYPE_CHECKS: dict[FieldType, Callable[[FieldSchema, Any], FieldResult]] = {
    FieldType.STRING: _check_text,
    FieldType.TEXT: _check_text,
    FieldType.SECRET: _check_text,
    FieldType.COLOR: _check_text,
    FieldType.NUMBER: _check_number,
    FieldType.BOOLEAN: _check_boolean,
    FieldType.OPTIONS: _check_options,
    FieldType.MULTI_OPTIONS: _check_multi_options,
    FieldType.JSON: _check_json,
    FieldType.DATE_TIME: _check_datetime,
    FieldType.EMAIL: _check_email,
    FieldType.URL: _check_url,
    FieldType.COLLECTION: _check_collection,
    FieldType.FIXED_COLLECTION: _check_collection,
    # resourceLocator / resourceMapper values are shaped by the app; no generic check
}


def validate_field(schema: FieldSchema, value: Any, sibling_config: Mapping[str, Any]) -> FieldResult:
    """Validate one field value.

    Args:
        schema: The field's declaration
        value: Current value (None when the key is absent from config)
        sibling_config: The node's config, used for display conditions

    Returns:
        FieldResult; valid for inactive fields regardless of value.
    """
    if not is_field_active(schema, sibling_config):
        return FieldResult.ok()
    if schema.required and not has_content(value):
        if isinstance(value, list):
            return FieldResult.fail(ErrorKind.MISSING_REQUIRED_FIELD, f"{schema.label} requires at least one item")
        return FieldResult.fail(ErrorKind.MISSING_REQUIRED_FIELD, f"{schema.label} is required")
    if is_empty(value):
        return FieldResult.ok()
    if schema.type != FieldType.JSON and contains_expression(value):
        return FieldResult.ok()
    check = _TYPE_CHECKS.get(schema.type)
    if check is None:
        return FieldResult.ok()
    return check(schema, value)
