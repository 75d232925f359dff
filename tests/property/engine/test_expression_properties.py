# tests/property/engine/test_expression_properties.py
"""Property-based tests for expression resolution.

- Text without ``{{`` is returned unchanged
- A lone path expression returns the stored value itself, not its text
- Resolution never mutates the data context
- Unresolved spans keep their raw text in preview mode
"""

from __future__ import annotations

import copy
from typing import Any

from hypothesis import given
from hypothesis import strategies as st

from nodeflow.engine.expressions import UNRESOLVED, DataContext, resolve, resolve_detailed
from tests.property.settings import STANDARD_SETTINGS

keys = st.text(alphabet="abcdefghijklmnopqrstuvwxyz_", min_size=1, max_size=8)
scalars = st.one_of(
    st.booleans(),
    st.integers(min_value=-(10**6), max_value=10**6),
    st.text(max_size=15),
)
values = st.recursive(
    scalars,
    lambda children: st.one_of(st.lists(children, max_size=3), st.dictionaries(keys, children, max_size=3)),
    max_leaves=6,
)
plain_text = st.text(max_size=40).filter(lambda s: "{{" not in s)
# a trailing "{" would join the span opener into "{{{"
prefixes = plain_text.filter(lambda s: not s.endswith("{"))


@given(text=plain_text)
@STANDARD_SETTINGS
def test_plain_text_is_unchanged(text: str) -> None:
    assert resolve(text, DataContext()) == text


@given(payload=st.dictionaries(keys, values, min_size=1, max_size=4), data=st.data())
@STANDARD_SETTINGS
def test_lone_expression_returns_stored_value(payload: dict[str, Any], data: st.DataObject) -> None:
    key = data.draw(st.sampled_from(sorted(payload)))
    context = DataContext(trigger={"json": payload})
    assert resolve(f"{{{{ $json.{key} }}}}", context) == payload[key]


@given(payload=st.dictionaries(keys, values, max_size=4), key=keys)
@STANDARD_SETTINGS
def test_resolution_does_not_mutate_context(payload: dict[str, Any], key: str) -> None:
    context = DataContext(trigger={"json": payload}, nodes={"n1": {"body": payload}})
    before = copy.deepcopy(payload)
    resolve(f"x {{{{ $json.{key} }}}} {{{{ nodes.n1.body.{key} }}}}", context)
    assert payload == before


@given(payload=st.dictionaries(keys, values, max_size=3), key=keys, prefix=prefixes)
@STANDARD_SETTINGS
def test_missing_keys_keep_raw_text(payload: dict[str, Any], key: str, prefix: str) -> None:
    missing = f"missing_{key}"
    span = f"{{{{ $json.{missing} }}}}"
    resolution = resolve_detailed(prefix + span, DataContext(trigger={"json": payload}))
    if prefix:
        assert resolution.value == prefix + span
    else:
        assert resolution.value is UNRESOLVED
    assert resolution.unresolved == (span,)
