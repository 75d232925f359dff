# src/nodeflow/engine/state.py
"""Flow State Manager: the single owner of an editable flow.

All structural changes go through apply() as Commands, which gives:

- a linear history: apply() clears the redo branch
- bounded memory: the oldest entries are dropped past ``history_limit``
- gestures: ``with manager.batch("Drag"):`` records one entry for many edits
- atomicity: a failed command, or an exception inside a batch, leaves the
  flow exactly as it was

Selection is UI state and lives outside the history; ids that stop
existing (after a delete, undo or redo) are dropped from it.

Example:
    manager = FlowStateManager()
    trigger = manager.create_node(NodeType.TRIGGER, config={"triggerType": "manual"})
    action = manager.create_node(NodeType.ACTION, action_id="send_message")
    manager.connect(trigger.id, action.id)

    manager.undo()  # removes the connection
    manager.redo()  # puts it back
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from nodeflow.contracts import (
    CommandError,
    Connection,
    Flow,
    Node,
    NodeNotFoundError,
    NodePanel,
    NodeStatus,
    NodeType,
    Position,
    SourceHandle,
    WorkflowValidationResult,
    new_connection_id,
    new_node_id,
)
from nodeflow.core.config import DEFAULT_SETTINGS, EditorSettings, ValidationSettings
from nodeflow.core.graph import FlowGraph
from nodeflow.core.logging import get_logger
from nodeflow.engine.commands import (
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
from nodeflow.engine.nodes import SchemaLookup, describe_node, no_schema
from nodeflow.engine.workflow import validate_workflow

logger = get_logger(__name__)


class FlowStateManager:
    """Mutation API over one flow, with undo/redo and selection tracking."""

    def __init__(self, flow: Flow | None = None, *, settings: EditorSettings | None = None) -> None:
        self._settings = settings or DEFAULT_SETTINGS.editor
        self._graph = FlowGraph(flow)
        self._past: list[Command] = []
        self._future: list[Command] = []
        self._pending: list[Command] | None = None
        self._selected_nodes: set[str] = set()
        self._selected_connections: set[str] = set()

    # === Read accessors ===

    @property
    def flow(self) -> Flow:
        """A deep copy of the current flow, safe to inspect or keep."""
        return self._graph.flow.model_copy(deep=True)

    @property
    def node_count(self) -> int:
        return self._graph.node_count

    @property
    def connection_count(self) -> int:
        return self._graph.edge_count

    def get_node(self, node_id: str) -> Node:
        """A deep copy of the current version of a node."""
        return self._graph.get_node(node_id).model_copy(deep=True)

    def has_node(self, node_id: str) -> bool:
        return self._graph.has_node(node_id)

    def reachable_from(self, node_id: str) -> Iterator[str]:
        return self._graph.reachable_from(node_id)

    @property
    def selection(self) -> frozenset[str]:
        """Selected node ids."""
        return frozenset(self._selected_nodes)

    @property
    def selected_connections(self) -> frozenset[str]:
        return frozenset(self._selected_connections)

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    @property
    def history(self) -> list[str]:
        """Labels of undoable entries, oldest first."""
        return [c.label for c in self._past]

    # === History ===

    def apply(self, command: Command) -> None:
        """Execute a command and record it.

        Raises whatever the command raises (e.g. InvalidConnectionError);
        in that case nothing is recorded and the flow is unchanged.
        """
        command.apply(self._graph)
        if self._pending is not None:
            self._pending.append(command)
        else:
            self._record(command)
        self._prune_selection()
        logger.debug("command_applied", command=command.label, batched=self._pending is not None)

    def _record(self, command: Command) -> None:
        self._past.append(command)
        self._future.clear()
        overflow = len(self._past) - self._settings.history_limit
        if overflow > 0:
            del self._past[:overflow]
            logger.debug("history_trimmed", dropped=overflow, limit=self._settings.history_limit)

    def undo(self) -> bool:
        """Revert the most recent entry. Returns False when there is none.

        Raises:
            CommandError: If called inside an open batch
        """
        if self._pending is not None:
            raise CommandError("Cannot undo while a batch is open")
        if not self._past:
            return False
        command = self._past.pop()
        command.revert(self._graph)
        self._future.append(command)
        self._prune_selection()
        logger.debug("command_undone", command=command.label)
        return True

    def redo(self) -> bool:
        """Re-apply the most recently undone entry. Returns False when there is none.

        Raises:
            CommandError: If called inside an open batch
        """
        if self._pending is not None:
            raise CommandError("Cannot redo while a batch is open")
        if not self._future:
            return False
        command = self._future.pop()
        command.apply(self._graph)
        self._past.append(command)
        self._prune_selection()
        logger.debug("command_redone", command=command.label)
        return True

    @contextmanager
    def batch(self, label: str = "Batch edit") -> Iterator[FlowStateManager]:
        """Group every command applied inside the block into one history entry.

        If the block raises, every command it applied is reverted and the
        exception propagates. Nested batches join the outermost one.
        """
        if self._pending is not None:
            yield self
            return

        self._pending = []
        try:
            yield self
        except Exception:
            applied, self._pending = self._pending, None
            for command in reversed(applied):
                command.revert(self._graph)
            self._prune_selection()
            raise
        applied, self._pending = self._pending, None
        if applied:
            self._record(CompoundCommand(applied, label=label))

    def clear_history(self) -> None:
        self._past.clear()
        self._future.clear()

    # === Node operations ===

    def _snap(self, position: Position) -> Position:
        grid = self._settings.grid_size
        if not grid:
            return position
        return Position(x=round(position.x / grid) * grid, y=round(position.y / grid) * grid)

    def add_node(self, node: Node) -> Node:
        self.apply(AddNode(node))
        return self.get_node(node.id)

    def create_node(
        self,
        node_type: NodeType | str,
        *,
        name: str = "",
        app_id: str | None = None,
        trigger_id: str | None = None,
        action_id: str | None = None,
        config: dict[str, Any] | None = None,
        position: Position | None = None,
    ) -> Node:
        """Create a node with an empty (or given) config and add it."""
        node = Node(
            id=new_node_id(),
            type=NodeType(node_type),
            name=name,
            app_id=app_id,
            trigger_id=trigger_id,
            action_id=action_id,
            config=dict(config or {}),
            position=self._snap(position or Position()),
        )
        self.apply(AddNode(node, label=f"Add {node.type.value}"))
        return self.get_node(node.id)

    def delete_nodes(self, node_ids: Iterable[str]) -> None:
        """Delete nodes and every connection touching them as one entry.

        Raises:
            NodeNotFoundError: If any id is unknown (nothing is deleted)
        """
        ids = list(dict.fromkeys(node_ids))
        for node_id in ids:
            if not self._graph.has_node(node_id):
                raise NodeNotFoundError(node_id)
        if not ids:
            return
        if len(ids) == 1:
            self.apply(RemoveNode(ids[0]))
        else:
            self.apply(CompoundCommand([RemoveNode(i) for i in ids], label=f"Delete {len(ids)} nodes"))

    def delete_node(self, node_id: str) -> None:
        self.delete_nodes([node_id])

    def delete_selection(self) -> None:
        """Delete selected connections and nodes as one entry."""
        node_ids = [n.id for n in self._graph.flow.nodes if n.id in self._selected_nodes]
        # Connections severed by a node removal must not also be removed explicitly
        severed = {c.id for n in node_ids for c in self._graph.flow.connections_touching(n)}
        commands: list[Command] = [
            RemoveConnection(c) for c in sorted(self._selected_connections) if c not in severed
        ]
        commands.extend(RemoveNode(n) for n in node_ids)
        if commands:
            self.apply(CompoundCommand(commands, label="Delete selection"))

    def update_config(self, node_id: str, key: str, value: Any) -> None:
        """Set one config value; pass commands.DELETE to remove the key."""
        self.apply(UpdateNodeConfig(node_id, key=key, value=value))

    def update_node(self, node_id: str, **changes: Any) -> None:
        self.apply(UpdateNode(node_id, changes=changes))

    def move_node(self, node_id: str, x: float, y: float) -> None:
        self.apply(MoveNode(node_id, position=self._snap(Position(x=x, y=y))))

    def move_nodes(self, moves: Iterable[tuple[str, float, float]]) -> None:
        """Move several nodes as one entry."""
        commands = [MoveNode(node_id, position=self._snap(Position(x=x, y=y))) for node_id, x, y in moves]
        if commands:
            self.apply(CompoundCommand(commands, label=f"Move {len(commands)} nodes"))

    def duplicate_nodes(self, node_ids: Iterable[str]) -> list[Node]:
        """Copy nodes, offset on the canvas, keeping connections among them.

        Copies start INCOMPLETE and become the new selection.

        Raises:
            NodeNotFoundError: If any id is unknown
        """
        originals = [self._graph.get_node(i) for i in dict.fromkeys(node_ids)]
        offset = self._settings.duplicate_offset
        id_map = {n.id: new_node_id() for n in originals}
        copies = [
            n.model_copy(
                update={
                    "id": id_map[n.id],
                    "config": dict(n.config),
                    "position": n.position.offset(offset, offset),
                    "status": NodeStatus.INCOMPLETE,
                }
            )
            for n in originals
        ]
        links = [
            Connection(
                id=new_connection_id(),
                source=id_map[c.source],
                target=id_map[c.target],
                source_handle=c.source_handle,
            )
            for c in self._graph.flow.connections
            if c.source in id_map and c.target in id_map
        ]
        if not copies:
            return []
        commands: list[Command] = [AddNode(n) for n in copies]
        commands.extend(AddConnection(c) for c in links)
        self.apply(CompoundCommand(commands, label=f"Duplicate {len(copies)} node(s)"))
        self._selected_nodes = {n.id for n in copies}
        self._selected_connections.clear()
        return [self.get_node(n.id) for n in copies]

    def duplicate_node(self, node_id: str) -> Node:
        return self.duplicate_nodes([node_id])[0]

    # === Connection operations ===

    def connect(self, source_id: str, target_id: str, source_handle: str = SourceHandle.BOTTOM.value) -> Connection:
        """Connect two nodes.

        Raises:
            InvalidConnectionError: If the connection breaks a graph rule
        """
        conn = Connection(source=source_id, target=target_id, source_handle=source_handle)
        self.apply(AddConnection(conn))
        return conn

    def disconnect(self, connection_id: str) -> None:
        self.apply(RemoveConnection(connection_id))

    def can_connect(self, source_id: str, target_id: str, source_handle: str = SourceHandle.BOTTOM.value) -> bool:
        conn = Connection(source=source_id, target=target_id, source_handle=source_handle)
        return self._graph.can_connect(conn)

    # === Whole-flow operations ===

    def load_flow(self, flow: Flow) -> None:
        """Replace the flow, dropping history and selection.

        Raises:
            InvalidConnectionError: If the flow breaks a connection rule
                (the current flow is kept)
        """
        self._graph = FlowGraph(flow)
        self.clear_history()
        self.clear_selection()
        logger.info("flow_loaded", nodes=self._graph.node_count, connections=self._graph.edge_count)

    def clear(self) -> None:
        """Remove every node and connection as one undoable entry."""
        node_ids = [n.id for n in self._graph.flow.nodes]
        if node_ids:
            self.apply(CompoundCommand([RemoveNode(i) for i in node_ids], label="Clear workflow"))

    # === Selection (not recorded in history) ===

    def select(self, node_id: str, *, additive: bool = False) -> None:
        if not self._graph.has_node(node_id):
            raise NodeNotFoundError(node_id)
        if not additive:
            self._selected_nodes.clear()
            self._selected_connections.clear()
        self._selected_nodes.add(node_id)

    def select_nodes(self, node_ids: Iterable[str]) -> None:
        ids = set(node_ids)
        missing = sorted(ids - {n.id for n in self._graph.flow.nodes})
        if missing:
            raise NodeNotFoundError(missing[0])
        self._selected_nodes = ids
        self._selected_connections.clear()

    def toggle(self, node_id: str) -> None:
        if node_id in self._selected_nodes:
            self._selected_nodes.discard(node_id)
        else:
            self.select(node_id, additive=True)

    def select_connection(self, connection_id: str, *, additive: bool = False) -> None:
        self._graph.get_connection(connection_id)
        if not additive:
            self._selected_nodes.clear()
            self._selected_connections.clear()
        self._selected_connections.add(connection_id)

    def select_all(self) -> None:
        self._selected_nodes = {n.id for n in self._graph.flow.nodes}

    def clear_selection(self) -> None:
        self._selected_nodes.clear()
        self._selected_connections.clear()

    def _prune_selection(self) -> None:
        flow = self._graph.flow
        self._selected_nodes &= {n.id for n in flow.nodes}
        self._selected_connections &= {c.id for c in flow.connections}

    # === Validation views ===

    def panel(self, node_id: str, schema_lookup: SchemaLookup = no_schema) -> NodePanel:
        """Status, errors and fields for a node's configuration panel."""
        return describe_node(self._graph.get_node(node_id), schema_lookup)

    def validate(
        self,
        schema_lookup: SchemaLookup = no_schema,
        settings: ValidationSettings | None = None,
    ) -> WorkflowValidationResult:
        return validate_workflow(self._graph.flow, schema_lookup=schema_lookup, settings=settings)
