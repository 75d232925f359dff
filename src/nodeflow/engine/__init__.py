# src/nodeflow/engine/__init__.py
"""Editing engine: validation, expression resolution and undoable state.

This module provides the behavior layered over the flow model:
- validate_field / validate_node: per-field and per-node configuration checks
- validate_workflow: whole-flow checks and readiness staging
- resolve / interpolate: ``{{ ... }}`` expression resolution against a DataContext
- FlowStateManager: command-based mutation with undo/redo and selection

Example:
    from nodeflow.core import SchemaRegistry
    from nodeflow.engine import FlowStateManager

    registry = SchemaRegistry.default()
    manager = FlowStateManager()
    ...
    result = manager.validate(registry.lookup_fields)
    if result.can_execute:
        ...
"""

from nodeflow.engine.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from nodeflow.engine.commands import (
    DELETE,
    AddConnection,
    AddNode,
    Command,
    CompoundCommand,
    MoveNode,
    RemoveConnection,
    RemoveNode,
    UpdateNode,
    UpdateNodeConfig,
)
from nodeflow.engine.expressions import (
    UNRESOLVED,
    DataContext,
    PathExpression,
    PathRef,
    Resolution,
    contains_expression,
    extract_references,
    interpolate,
    parse_expression,
    parse_template,
    referenced_nodes,
    render,
    resolve,
    resolve_detailed,
)
from nodeflow.engine.fields import (
    has_content,
    is_empty,
    is_field_active,
    validate_field,
    visible_fields,
)
from nodeflow.engine.nodes import (
    SchemaLookup,
    describe_node,
    no_schema,
    validate_node,
)
from nodeflow.engine.state import FlowStateManager
from nodeflow.engine.workflow import (
    check_activation,
    summarize,
    validate_workflow,
)

__all__ = [
    "DEFAULT_CLOCK",
    "DELETE",
    "UNRESOLVED",
    "AddConnection",
    "AddNode",
    "Clock",
    "Command",
    "CompoundCommand",
    "DataContext",
    "FlowStateManager",
    "MockClock",
    "MoveNode",
    "PathExpression",
    "PathRef",
    "RemoveConnection",
    "RemoveNode",
    "Resolution",
    "SchemaLookup",
    "SystemClock",
    "UpdateNode",
    "UpdateNodeConfig",
    "check_activation",
    "contains_expression",
    "describe_node",
    "extract_references",
    "has_content",
    "interpolate",
    "is_empty",
    "is_field_active",
    "no_schema",
    "parse_expression",
    "parse_template",
    "referenced_nodes",
    "render",
    "resolve",
    "resolve_detailed",
    "summarize",
    "validate_field",
    "validate_node",
    "validate_workflow",
]
