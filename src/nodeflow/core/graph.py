# src/nodeflow/core/graph.py
"""FlowGraph: structural mutation and traversal over a Flow.

This is the single enforcement point for graph invariants. Every mutation
validates first and only then touches the flow's lists, so a rejected
operation leaves the flow exactly as it was and a caller can never observe
a half-applied change:

- connection endpoints reference existing nodes
- a trigger is never a connection target
- an error-handler never connects out of its bottom handle
- no self-connections and no duplicate (source, handle, target) edges
- control edges stay acyclic

Removing a node cascades to every connection touching it in one step.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import NoReturn

import networkx as nx
from networkx import MultiDiGraph

from nodeflow.contracts import (
    Connection,
    ConnectionNotFoundError,
    DuplicateNodeError,
    Flow,
    InvalidConnectionError,
    Node,
    NodeNotFoundError,
    NodeType,
    SourceHandle,
)
from nodeflow.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RemovedNode:
    """Everything a node removal took out of the flow, with original positions.

    ``connections`` pairs each severed connection with its index in the
    connection list before removal, ascending, so re-inserting them in order
    restores the list exactly.
    """

    node: Node
    index: int
    connections: tuple[tuple[int, Connection], ...]


class FlowGraph:
    """Owns one Flow and applies structural changes to it.

    Construction copies the given flow and re-adds its connections one by
    one, so a persisted flow that breaks a connection rule is rejected with
    InvalidConnectionError instead of being loaded.
    """

    def __init__(self, flow: Flow | None = None) -> None:
        source = flow if flow is not None else Flow()
        nodes = [n.model_copy(deep=True) for n in source.nodes]
        self._flow = Flow(name=source.name, active=source.active, nodes=nodes)
        for conn in source.connections:
            self.add_connection(conn)

    @classmethod
    def view(cls, flow: Flow) -> FlowGraph:
        """Wrap a flow for read-only queries without copying or re-validating it."""
        graph = cls.__new__(cls)
        graph._flow = flow
        return graph

    @property
    def flow(self) -> Flow:
        """The live flow. Callers must treat it as read-only."""
        return self._flow

    @property
    def node_count(self) -> int:
        return len(self._flow.nodes)

    @property
    def edge_count(self) -> int:
        return len(self._flow.connections)

    def has_node(self, node_id: str) -> bool:
        return self._flow.has_node(node_id)

    def get_node(self, node_id: str) -> Node:
        """Return a node by id.

        Raises:
            NodeNotFoundError: If no node has that id
        """
        node = self._flow.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def index_of(self, node_id: str) -> int:
        for i, node in enumerate(self._flow.nodes):
            if node.id == node_id:
                return i
        raise NodeNotFoundError(node_id)

    def get_connection(self, connection_id: str) -> Connection:
        conn = self._flow.get_connection(connection_id)
        if conn is None:
            raise ConnectionNotFoundError(connection_id)
        return conn

    # === Node mutations ===

    def add_node(self, node: Node) -> None:
        """Append a node.

        Raises:
            DuplicateNodeError: If a node with the same id exists
        """
        self.insert_node(node, len(self._flow.nodes))

    def insert_node(self, node: Node, index: int) -> None:
        if self._flow.has_node(node.id):
            raise DuplicateNodeError(f"Node {node.id!r} already exists")
        self._flow.nodes.insert(index, node)

    def replace_node(self, node: Node) -> Node:
        """Swap in a new version of an existing node, keeping its position.

        Returns:
            The node that was replaced.
        """
        index = self.index_of(node.id)
        previous = self._flow.nodes[index]
        self._flow.nodes[index] = node
        return previous

    def remove_node(self, node_id: str) -> RemovedNode:
        """Remove a node and every connection referencing it, atomically.

        Raises:
            NodeNotFoundError: If no node has that id
        """
        index = self.index_of(node_id)
        node = self._flow.nodes[index]
        severed = tuple((i, c) for i, c in enumerate(self._flow.connections) if node_id in (c.source, c.target))
        severed_ids = {c.id for _, c in severed}

        remaining_nodes = [n for n in self._flow.nodes if n.id != node_id]
        remaining_connections = [c for c in self._flow.connections if c.id not in severed_ids]
        self._flow.nodes = remaining_nodes
        self._flow.connections = remaining_connections
        return RemovedNode(node=node, index=index, connections=severed)

    def restore_node(self, removed: RemovedNode) -> None:
        """Undo remove_node(): put the node and its connections back in place."""
        if self._flow.has_node(removed.node.id):
            raise DuplicateNodeError(f"Node {removed.node.id!r} already exists")
        nodes = list(self._flow.nodes)
        nodes.insert(removed.index, removed.node)
        connections = list(self._flow.connections)
        for index, conn in removed.connections:
            connections.insert(index, conn)
        self._flow.nodes = nodes
        self._flow.connections = connections

    # === Connection mutations ===

    def validate_connection(self, conn: Connection) -> None:
        """Check a prospective connection against every graph invariant.

        Raises:
            InvalidConnectionError: With a machine-readable ``reason``
        """
        source = self._flow.get_node(conn.source)
        target = self._flow.get_node(conn.target)
        if source is None:
            self._reject(conn, "unknown_source", f"Source node {conn.source!r} does not exist")
        if target is None:
            self._reject(conn, "unknown_target", f"Target node {conn.target!r} does not exist")
        if conn.source == conn.target:
            self._reject(conn, "self_connection", "A node cannot connect to itself")
        if target.type == NodeType.TRIGGER:
            self._reject(conn, "target_is_trigger", f"Trigger node {target.label!r} cannot have incoming connections")
        if source.type == NodeType.ERROR_HANDLER and conn.source_handle == SourceHandle.BOTTOM:
            self._reject(
                conn,
                "error_handler_bottom",
                f"Error handler {source.label!r} cannot connect from its bottom handle",
            )
        if self._flow.get_connection(conn.id) is not None:
            self._reject(conn, "duplicate_id", f"Connection id {conn.id!r} already exists")
        if any(c.endpoints == conn.endpoints for c in self._flow.connections):
            self._reject(conn, "duplicate", "Connection already exists")
        if self.would_create_cycle(conn.source, conn.target):
            self._reject(conn, "cycle", f"Connecting {source.label!r} to {target.label!r} would create a cycle")

    def can_connect(self, conn: Connection) -> bool:
        try:
            self.validate_connection(conn)
        except InvalidConnectionError:
            return False
        return True

    def add_connection(self, conn: Connection) -> None:
        self.insert_connection(conn, len(self._flow.connections))

    def insert_connection(self, conn: Connection, index: int) -> None:
        self.validate_connection(conn)
        self._flow.connections.insert(index, conn)

    def remove_connection(self, connection_id: str) -> tuple[int, Connection]:
        """Remove a connection.

        Returns:
            (index, connection) as it was before removal.

        Raises:
            ConnectionNotFoundError: If no connection has that id
        """
        for index, conn in enumerate(self._flow.connections):
            if conn.id == connection_id:
                del self._flow.connections[index]
                return index, conn
        raise ConnectionNotFoundError(connection_id)

    def _reject(self, conn: Connection, reason: str, message: str) -> NoReturn:
        logger.info(
            "connection_rejected",
            reason=reason,
            source=conn.source,
            target=conn.target,
            handle=conn.source_handle,
        )
        raise InvalidConnectionError(message, reason=reason)

    # === Traversal ===

    def to_networkx(self) -> MultiDiGraph[str]:
        """Build a NetworkX view of the flow.

        Edges are keyed by connection id and carry the source handle, so
        parallel edges from different handles are kept.
        """
        graph: MultiDiGraph[str] = nx.MultiDiGraph()
        for node in self._flow.nodes:
            graph.add_node(node.id, type=node.type)
        for conn in self._flow.connections:
            graph.add_edge(conn.source, conn.target, key=conn.id, handle=conn.source_handle)
        return graph

    def would_create_cycle(self, source_id: str, target_id: str) -> bool:
        """Whether an edge source -> target would close a cycle."""
        if source_id == target_id:
            return True
        graph = self.to_networkx()
        if not graph.has_node(target_id) or not graph.has_node(source_id):
            return False
        return bool(nx.has_path(graph, target_id, source_id))

    def reachable_from(self, node_id: str) -> Iterator[str]:
        """Lazily yield node ids downstream of a node, breadth-first.

        The start node itself is not yielded. Each call returns a fresh
        iterator over a snapshot of the current edges, so traversal can be
        restarted and is unaffected by later mutations.

        Raises:
            NodeNotFoundError: If the start node does not exist (raised
                immediately, not on first iteration)
        """
        if not self._flow.has_node(node_id):
            raise NodeNotFoundError(node_id)
        return (target for _, target in nx.bfs_edges(self.to_networkx(), node_id))

    def reachable_from_triggers(self) -> set[str]:
        """Every node reachable from at least one trigger, triggers included."""
        reached: set[str] = set()
        for trigger in self._flow.nodes_of_type(NodeType.TRIGGER):
            if trigger.id in reached:
                continue
            reached.add(trigger.id)
            reached.update(self.reachable_from(trigger.id))
        return reached
