# src/nodeflow/engine/nodes.py
"""Node Config Validator: derive a node's status from its fields.

Composes the Field Validator over every field the schema lookup returns
for a node, then applies the rules each node type carries regardless of
catalog data. All failing fields are collected, not just the first.

Status derivation:
    RUNNING / SUCCESS  kept as-is (owned by the execution runner)
    ERROR              a populated value failed a type or range check, or
                       the node's schema could not be found
    INCOMPLETE         something required is missing
    CONFIGURED         otherwise
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TypeAlias

from nodeflow.contracts import (
    BRANCHING_NODE_TYPES,
    EMPTY_FIELD_SET,
    RUNNER_STATUSES,
    ErrorKind,
    FieldError,
    FieldSet,
    Node,
    NodePanel,
    NodeStatus,
    NodeType,
    NodeValidationResult,
    SchemaNotFoundError,
    TriggerType,
)
from nodeflow.engine.fields import has_content, is_empty, validate_field, visible_fields, with_defaults

SchemaLookup: TypeAlias = Callable[[Node], FieldSet]

# Config keys that define the outgoing branches of a condition or router node
BRANCH_FIELDS: tuple[str, ...] = ("conditions", "rules", "routes", "branches")

_TRIGGER_TYPES = tuple(t.value for t in TriggerType)

_FAILURE_KINDS = frozenset({ErrorKind.INVALID_FIELD_TYPE, ErrorKind.OUT_OF_RANGE, ErrorKind.SCHEMA_NOT_FOUND})


def no_schema(node: Node) -> FieldSet:
    """Schema lookup for callers without a catalog: only node-type rules apply."""
    return EMPTY_FIELD_SET


def _node_type_errors(node: Node) -> list[FieldError]:
    errors: list[FieldError] = []
    if node.type == NodeType.TRIGGER:
        trigger_type = node.config.get("triggerType")
        if is_empty(trigger_type):
            errors.append(
                FieldError("triggerType", ErrorKind.MISSING_REQUIRED_FIELD, "Trigger type must be selected")
            )
        elif trigger_type not in _TRIGGER_TYPES:
            errors.append(
                FieldError(
                    "triggerType",
                    ErrorKind.INVALID_FIELD_TYPE,
                    f"Trigger type must be one of: {', '.join(_TRIGGER_TYPES)}",
                )
            )
    elif node.type == NodeType.ACTION:
        if not node.action_id:
            errors.append(FieldError("actionId", ErrorKind.MISSING_REQUIRED_FIELD, "An action must be selected"))
    elif node.type in BRANCHING_NODE_TYPES:
        if not any(has_content(node.config.get(key)) for key in BRANCH_FIELDS):
            errors.append(
                FieldError(BRANCH_FIELDS[0], ErrorKind.MISSING_REQUIRED_FIELD, "At least one branch must be defined")
            )
    return errors


def _lookup(node: Node, schema_lookup: SchemaLookup) -> tuple[FieldSet, FieldError | None]:
    try:
        return schema_lookup(node), None
    except SchemaNotFoundError as e:
        return EMPTY_FIELD_SET, FieldError(node.app_id or node.type.value, ErrorKind.SCHEMA_NOT_FOUND, str(e))


def _derive_status(node: Node, errors: Iterable[FieldError]) -> NodeStatus:
    if node.status in RUNNER_STATUSES:
        return node.status
    kinds = {e.kind for e in errors}
    if kinds & _FAILURE_KINDS:
        return NodeStatus.ERROR
    if ErrorKind.MISSING_REQUIRED_FIELD in kinds:
        return NodeStatus.INCOMPLETE
    return NodeStatus.CONFIGURED


def validate_node(node: Node, schema_lookup: SchemaLookup = no_schema) -> NodeValidationResult:
    """Validate a node's config against its schema and node-type rules.

    Never raises for validation failures. A schema lookup failure is
    reported in the result as SchemaNotFound (status ERROR) so that
    validating other nodes can continue.

    Args:
        node: Node to validate
        schema_lookup: Returns the node's required/optional fields; may raise
            SchemaNotFoundError (e.g. SchemaRegistry.lookup_fields)

    Returns:
        NodeValidationResult with the derived status and every failing field
    """
    errors = _node_type_errors(node)
    field_set, lookup_error = _lookup(node, schema_lookup)
    if lookup_error is not None:
        errors.append(lookup_error)

    fields = field_set.all_fields
    siblings = with_defaults(fields, node.config)
    for schema in fields:
        result = validate_field(schema, node.config.get(schema.name), siblings)
        if not result.valid:
            assert result.error_kind is not None and result.message is not None
            errors.append(FieldError(schema.name, result.error_kind, result.message))

    return NodeValidationResult(node_id=node.id, status=_derive_status(node, errors), errors=errors)


def describe_node(node: Node, schema_lookup: SchemaLookup = no_schema) -> NodePanel:
    """Everything a configuration panel needs to render one node."""
    result = validate_node(node, schema_lookup)
    field_set, _ = _lookup(node, schema_lookup)
    fields = field_set.all_fields
    shown = visible_fields(fields, with_defaults(fields, node.config))
    active = [f.name for f in shown if f.required or not is_empty(node.config.get(f.name))]
    return NodePanel(
        node_id=node.id,
        status=result.status,
        errors=result.errors,
        active_fields=active,
        visible_fields=shown,
    )
