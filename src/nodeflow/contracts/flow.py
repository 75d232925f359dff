"""Workflow data model: nodes, connections and the flow aggregate.

Node and Connection are frozen. Every change produces a new instance, so a
history entry holding a node can never see later edits to it. Flow itself is
a mutable container owned by FlowGraph; nothing outside nodeflow.core.graph
should touch its lists directly.

Serialized field names are camelCase (appId, sourceHandle, ...) to match the
persisted layout; Python attribute names are snake_case.
"""

from __future__ import annotations

from typing import Any, TypeAlias
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from nodeflow.contracts.enums import NodeStatus, NodeType, SourceHandle

ConfigMap: TypeAlias = dict[str, Any]

_NAMED_HANDLES = frozenset(h.value for h in SourceHandle)


def new_node_id() -> str:
    """Generate an opaque node id."""
    return f"node_{uuid4().hex[:12]}"


def new_connection_id() -> str:
    """Generate an opaque connection id."""
    return f"conn_{uuid4().hex[:12]}"


class Position(BaseModel):
    """Canvas coordinates of a node."""

    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0

    def offset(self, dx: float, dy: float) -> Position:
        return Position(x=self.x + dx, y=self.y + dy)


class Node(BaseModel):
    """A vertex in the workflow graph.

    ``status`` is only trusted for RUNNING and SUCCESS, which the execution
    runner records. Every other status is re-derived by the node validator.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=new_node_id, min_length=1)
    type: NodeType
    name: str = ""
    app_id: str | None = None
    trigger_id: str | None = None
    action_id: str | None = None
    config: ConfigMap = Field(default_factory=dict)
    position: Position = Field(default_factory=Position)
    status: NodeStatus = NodeStatus.INCOMPLETE

    @property
    def label(self) -> str:
        """Display name, falling back to the id."""
        return self.name or self.id

    @property
    def operation_id(self) -> str | None:
        """The catalog operation selected for this node, if any."""
        if self.type == NodeType.TRIGGER:
            return self.trigger_id
        return self.action_id


class Connection(BaseModel):
    """A directed edge ``(source, source_handle) -> target``."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=new_connection_id, min_length=1)
    source: str = Field(min_length=1)
    target: str = Field(min_length=1)
    source_handle: str = SourceHandle.BOTTOM.value

    @field_validator("source_handle")
    @classmethod
    def _validate_handle(cls, v: str) -> str:
        if v in _NAMED_HANDLES or (v.isascii() and v.isdigit()):
            return v
        raise ValueError(f"source handle must be one of {sorted(_NAMED_HANDLES)} or a non-negative integer, got {v!r}")

    @property
    def endpoints(self) -> tuple[str, str, str]:
        return (self.source, self.source_handle, self.target)


class Flow(BaseModel):
    """The workflow aggregate.

    Owns its nodes and connections exclusively. Loading a persisted flow
    checks id uniqueness and that every connection endpoint exists; the
    remaining connection rules are enforced by FlowGraph.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = "Untitled workflow"
    active: bool = False
    nodes: list[Node] = Field(default_factory=list)
    connections: list[Connection] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_references(self) -> Flow:
        node_ids = [n.id for n in self.nodes]
        if len(node_ids) != len(set(node_ids)):
            raise ValueError("node ids must be unique")
        connection_ids = [c.id for c in self.connections]
        if len(connection_ids) != len(set(connection_ids)):
            raise ValueError("connection ids must be unique")
        known = set(node_ids)
        for conn in self.connections:
            missing = [end for end in (conn.source, conn.target) if end not in known]
            if missing:
                raise ValueError(f"connection {conn.id!r} references unknown node(s): {', '.join(missing)}")
        return self

    # === Read helpers ===

    def get_node(self, node_id: str) -> Node | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def has_node(self, node_id: str) -> bool:
        return self.get_node(node_id) is not None

    def get_connection(self, connection_id: str) -> Connection | None:
        for conn in self.connections:
            if conn.id == connection_id:
                return conn
        return None

    def nodes_of_type(self, node_type: NodeType) -> list[Node]:
        return [n for n in self.nodes if n.type == node_type]

    def outgoing(self, node_id: str) -> list[Connection]:
        """Outgoing edges of a node, in insertion order."""
        return [c for c in self.connections if c.source == node_id]

    def incoming(self, node_id: str) -> list[Connection]:
        return [c for c in self.connections if c.target == node_id]

    def connections_touching(self, node_id: str) -> list[Connection]:
        return [c for c in self.connections if node_id in (c.source, c.target)]

    def find_node_by_name(self, name: str) -> Node | None:
        for node in self.nodes:
            if node.name == name:
                return node
        return None

    # === Persistence ===

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted JSON layout."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Flow:
        return cls.model_validate(data)
