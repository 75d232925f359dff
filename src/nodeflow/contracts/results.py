"""Result records produced by the field, node and workflow validators.

All results are plain frozen dataclasses: pure data, comparable by value, so
running a validator twice on an unchanged input yields equal results.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from nodeflow.contracts.enums import ErrorKind, NodeStatus, Severity, Stage
from nodeflow.contracts.schema import FieldSchema


@dataclass(frozen=True, slots=True)
class FieldResult:
    """Outcome of validating one field value."""

    valid: bool
    error_kind: ErrorKind | None = None
    message: str | None = None

    @classmethod
    def ok(cls) -> FieldResult:
        return cls(valid=True)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> FieldResult:
        return cls(valid=False, error_kind=kind, message=message)


@dataclass(frozen=True, slots=True)
class FieldError:
    """A failed field, as reported inside a node result."""

    field: str
    kind: ErrorKind
    message: str


@dataclass(frozen=True, slots=True)
class NodeValidationResult:
    """Derived status of one node and every field problem found."""

    node_id: str
    status: NodeStatus
    errors: list[FieldError] = field(default_factory=list)

    @property
    def is_configured(self) -> bool:
        return self.status == NodeStatus.CONFIGURED

    @property
    def missing_fields(self) -> list[str]:
        return [e.field for e in self.errors if e.kind == ErrorKind.MISSING_REQUIRED_FIELD]

    @property
    def schema_missing(self) -> bool:
        return any(e.kind == ErrorKind.SCHEMA_NOT_FOUND for e in self.errors)


@dataclass(frozen=True, slots=True)
class NodePanel:
    """What a configuration panel needs to render one node.

    visible_fields: every field whose display conditions currently pass
    active_fields: names of visible fields that are required or populated
    """

    node_id: str
    status: NodeStatus
    errors: list[FieldError]
    active_fields: list[str]
    visible_fields: list[FieldSchema]

    def errors_for(self, field_name: str) -> list[FieldError]:
        return [e for e in self.errors if e.field == field_name]


@dataclass(frozen=True, slots=True)
class WorkflowIssue:
    """One workflow-level problem with the nodes it concerns."""

    kind: ErrorKind
    severity: Severity
    message: str
    node_ids: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class WorkflowSummary:
    """Node and connection counts of a flow."""

    total_nodes: int
    trigger_nodes: int
    action_nodes: int
    logic_nodes: int
    ai_nodes: int
    connections: int


@dataclass(frozen=True, slots=True)
class WorkflowValidationResult:
    """Whole-workflow verdict.

    is_valid: zero errors (warnings alone do not invalidate)
    can_execute: stage is READY
    """

    is_valid: bool
    can_execute: bool
    errors: list[str]
    warnings: list[str]
    stage: Stage
    issues: list[WorkflowIssue] = field(default_factory=list)
    summary: WorkflowSummary | None = None

    def issues_of(self, kind: ErrorKind) -> list[WorkflowIssue]:
        return [i for i in self.issues if i.kind == kind]


@dataclass(frozen=True, slots=True)
class ActivationDecision:
    """Whether a runner may activate a flow, and why not if refused."""

    allowed: bool
    reason: str | None = None
    validation: WorkflowValidationResult | None = None
