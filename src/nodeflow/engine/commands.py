# src/nodeflow/engine/commands.py
"""Invertible mutations of a FlowGraph, the unit of undo/redo.

Each command captures what it needs to invert itself when applied: a
removal remembers the node, its connections and their original list
positions, and an update remembers the node version it replaced. Reverting
restores the flow to a state structurally equal to the one before apply().

Every command is atomic. It either applies fully or raises with the graph
untouched. CompoundCommand extends this to a sequence by reverting the
children it already applied before re-raising.

Commands must be reverted in LIFO order relative to other commands on the
same graph; FlowStateManager guarantees this.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Final

from nodeflow.contracts import CommandError, Connection, Node, Position
from nodeflow.core.graph import FlowGraph, RemovedNode


class _Delete:
    """Marker value: UpdateNodeConfig with this value removes the key."""

    def __repr__(self) -> str:
        return "DELETE"

    def __copy__(self) -> _Delete:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Delete:
        return self


DELETE: Final = _Delete()

# Node attributes that UpdateNode may change. ``id`` and ``type`` are fixed
# for a node's lifetime; ``status`` belongs to the runner.
UPDATABLE_NODE_FIELDS = frozenset({"name", "app_id", "trigger_id", "action_id", "config", "position"})


class Command(ABC):
    """An invertible unit of mutation."""

    label: str = "Edit"

    @abstractmethod
    def apply(self, graph: FlowGraph) -> None:
        """Perform the mutation, capturing what revert() needs."""

    @abstractmethod
    def revert(self, graph: FlowGraph) -> None:
        """Undo the most recent apply().

        Raises:
            CommandError: If the command was never applied
        """


def _require(captured: Any, command: Command) -> None:
    if captured is None:
        raise CommandError(f"Cannot revert {type(command).__name__} before it has been applied")


@dataclass
class AddNode(Command):
    node: Node
    label: str = "Add node"

    def __post_init__(self) -> None:
        self.node = self.node.model_copy(deep=True)

    def apply(self, graph: FlowGraph) -> None:
        graph.add_node(self.node.model_copy(deep=True))

    def revert(self, graph: FlowGraph) -> None:
        graph.remove_node(self.node.id)


@dataclass
class RemoveNode(Command):
    """Remove a node together with every connection touching it."""

    node_id: str
    label: str = "Delete node"
    _removed: RemovedNode | None = field(default=None, init=False, repr=False)

    def apply(self, graph: FlowGraph) -> None:
        self._removed = graph.remove_node(self.node_id)

    def revert(self, graph: FlowGraph) -> None:
        _require(self._removed, self)
        assert self._removed is not None
        graph.restore_node(self._removed)


@dataclass
class AddConnection(Command):
    connection: Connection
    label: str = "Connect nodes"

    def apply(self, graph: FlowGraph) -> None:
        graph.add_connection(self.connection)

    def revert(self, graph: FlowGraph) -> None:
        graph.remove_connection(self.connection.id)


@dataclass
class RemoveConnection(Command):
    connection_id: str
    label: str = "Delete connection"
    _removed: tuple[int, Connection] | None = field(default=None, init=False, repr=False)

    def apply(self, graph: FlowGraph) -> None:
        self._removed = graph.remove_connection(self.connection_id)

    def revert(self, graph: FlowGraph) -> None:
        _require(self._removed, self)
        assert self._removed is not None
        index, conn = self._removed
        graph.insert_connection(conn, index)


@dataclass
class _ReplaceNode(Command):
    """Base for commands that swap in a modified copy of one node."""

    node_id: str
    _previous: Node | None = field(default=None, init=False, repr=False)

    @abstractmethod
    def _changes(self, node: Node) -> dict[str, Any]:
        """Attribute updates to apply to the current version of the node."""

    def apply(self, graph: FlowGraph) -> None:
        current = graph.get_node(self.node_id)
        updated = current.model_copy(update=copy.deepcopy(self._changes(current)), deep=True)
        self._previous = graph.replace_node(updated)

    def revert(self, graph: FlowGraph) -> None:
        _require(self._previous, self)
        assert self._previous is not None
        graph.replace_node(self._previous)


@dataclass
class UpdateNodeConfig(_ReplaceNode):
    """Set one config key, or remove it when ``value`` is DELETE."""

    key: str = ""
    value: Any = None
    label: str = "Update configuration"

    def __post_init__(self) -> None:
        if not self.key:
            raise CommandError("UpdateNodeConfig requires a config key")
        self.value = copy.deepcopy(self.value)

    def _changes(self, node: Node) -> dict[str, Any]:
        config = dict(node.config)
        if self.value is DELETE:
            config.pop(self.key, None)
        else:
            config[self.key] = self.value
        return {"config": config}


@dataclass
class UpdateNode(_ReplaceNode):
    """Change node attributes such as name or the selected app/action."""

    changes: Mapping[str, Any] = field(default_factory=dict)
    label: str = "Update node"

    def __post_init__(self) -> None:
        unknown = set(self.changes) - UPDATABLE_NODE_FIELDS
        if unknown:
            raise CommandError(f"UpdateNode cannot change: {', '.join(sorted(unknown))}")
        if not self.changes:
            raise CommandError("UpdateNode requires at least one change")
        self.changes = copy.deepcopy(dict(self.changes))

    def _changes(self, node: Node) -> dict[str, Any]:
        return dict(self.changes)


@dataclass
class MoveNode(_ReplaceNode):
    position: Position = field(default_factory=Position)
    label: str = "Move node"

    def _changes(self, node: Node) -> dict[str, Any]:
        return {"position": self.position}


@dataclass
class CompoundCommand(Command):
    """Several commands applied and undone as one history entry."""

    commands: Sequence[Command] = ()
    label: str = "Batch edit"

    def __post_init__(self) -> None:
        self.commands = tuple(self.commands)

    def apply(self, graph: FlowGraph) -> None:
        applied: list[Command] = []
        try:
            for command in self.commands:
                command.apply(graph)
                applied.append(command)
        except Exception:
            for command in reversed(applied):
                command.revert(graph)
            raise

    def revert(self, graph: FlowGraph) -> None:
        for command in reversed(self.commands):
            command.revert(graph)
