"""Shared contracts for cross-boundary data types.

Every model, enum and result record that crosses between the graph model,
the validators, the resolver and the state manager is defined here.

This package is a LEAF MODULE with no outbound dependencies to core/engine.
Settings are NOT re-exported here - import them from nodeflow.core.config.

Import patterns:
    from nodeflow.contracts import Flow, Node, NodeType, WorkflowValidationResult
"""

from nodeflow.contracts.enums import (
    BRANCHING_NODE_TYPES,
    LOGIC_NODE_TYPES,
    RUNNER_STATUSES,
    ErrorKind,
    FieldType,
    NodeStatus,
    NodeType,
    Severity,
    SourceHandle,
    Stage,
    TriggerType,
)
from nodeflow.contracts.errors import (
    CommandError,
    ConnectionNotFoundError,
    DuplicateNodeError,
    ExpressionSyntaxError,
    InvalidConnectionError,
    NodeNotFoundError,
    SchemaNotFoundError,
)
from nodeflow.contracts.flow import (
    ConfigMap,
    Connection,
    Flow,
    Node,
    Position,
    new_connection_id,
    new_node_id,
)
from nodeflow.contracts.results import (
    ActivationDecision,
    FieldError,
    FieldResult,
    NodePanel,
    NodeValidationResult,
    WorkflowIssue,
    WorkflowSummary,
    WorkflowValidationResult,
)
from nodeflow.contracts.schema import (
    EMPTY_FIELD_SET,
    AppSchema,
    DisplayOptions,
    FieldOption,
    FieldSchema,
    FieldSet,
    NodeTypeSchema,
    Operation,
    Resource,
)

__all__ = [
    "BRANCHING_NODE_TYPES",
    "EMPTY_FIELD_SET",
    "LOGIC_NODE_TYPES",
    "RUNNER_STATUSES",
    "ActivationDecision",
    "AppSchema",
    "CommandError",
    "ConfigMap",
    "Connection",
    "ConnectionNotFoundError",
    "DisplayOptions",
    "DuplicateNodeError",
    "ErrorKind",
    "ExpressionSyntaxError",
    "FieldError",
    "FieldOption",
    "FieldResult",
    "FieldSchema",
    "FieldSet",
    "FieldType",
    "Flow",
    "InvalidConnectionError",
    "Node",
    "NodeNotFoundError",
    "NodePanel",
    "NodeStatus",
    "NodeType",
    "NodeTypeSchema",
    "NodeValidationResult",
    "Operation",
    "Position",
    "Resource",
    "SchemaNotFoundError",
    "Severity",
    "SourceHandle",
    "Stage",
    "TriggerType",
    "WorkflowIssue",
    "WorkflowSummary",
    "WorkflowValidationResult",
    "new_connection_id",
    "new_node_id",
]
