# tests/fixtures/factories.py
"""Test-only builders for nodes, fields and flows.

Usage:
    from tests.fixtures.factories import make_action, make_flow, make_trigger

    flow = make_flow(
        [make_trigger(triggerType="manual"), make_action("a")],
        [("trigger", "a")],
    )
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from nodeflow.contracts import Connection, FieldSchema, FieldSet, Flow, Node, NodeType


def make_trigger(node_id: str = "trigger", *, app_id: str | None = None, **config: Any) -> Node:
    """A trigger node; pass triggerType=... to configure it."""
    return Node(id=node_id, type=NodeType.TRIGGER, name=node_id, app_id=app_id, config=config)


def make_action(node_id: str, action_id: str | None = "send", *, app_id: str | None = None, **config: Any) -> Node:
    return Node(id=node_id, type=NodeType.ACTION, name=node_id, app_id=app_id, action_id=action_id, config=config)


def make_node(node_id: str, node_type: NodeType, **config: Any) -> Node:
    return Node(id=node_id, type=node_type, name=node_id, config=config)


def make_field(name: str, field_type: str = "string", **attrs: Any) -> FieldSchema:
    """FieldSchema from catalog-style (camelCase) attributes."""
    return FieldSchema.model_validate({"name": name, "type": field_type, **attrs})


def make_field_set(*fields: FieldSchema) -> FieldSet:
    return FieldSet.from_lists(list(fields), [])


def make_flow(nodes: list[Node], edges: list[tuple[str, str]] | None = None, **flow_attrs: Any) -> Flow:
    """Flow with one bottom-handle connection per (source, target) pair."""
    connections = [
        Connection(id=f"c_{source}_{target}", source=source, target=target) for source, target in edges or []
    ]
    return Flow(nodes=nodes, connections=connections, **flow_attrs)


def fixed_lookup(field_set: FieldSet) -> Callable[[Node], FieldSet]:
    """Schema lookup returning the same fields for every node."""

    def lookup(node: Node) -> FieldSet:
        return field_set

    return lookup
