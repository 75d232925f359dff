"""Exceptions raised at subsystem boundaries.

Validation problems are never raised: they are collected as data in
FieldResult, NodeValidationResult and WorkflowValidationResult. The classes
here cover structural violations (rejected before a mutation is applied),
catalog lookups that cannot be satisfied, malformed expressions, and
programmer errors in command usage.
"""

from __future__ import annotations

from nodeflow.contracts.enums import ErrorKind


class InvalidConnectionError(ValueError):
    """Raised when a connection would violate a graph invariant.

    The graph is left untouched when this is raised.
    """

    kind = ErrorKind.INVALID_CONNECTION

    def __init__(self, message: str, *, reason: str) -> None:
        super().__init__(message)
        self.reason = reason


class DuplicateNodeError(ValueError):
    """Raised when adding a node whose id already exists in the flow."""


class NodeNotFoundError(KeyError):
    """Raised when a node id does not exist in the flow."""

    def __init__(self, node_id: str) -> None:
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"Node not found: {self.node_id!r}"


class ConnectionNotFoundError(KeyError):
    """Raised when a connection id does not exist in the flow."""

    def __init__(self, connection_id: str) -> None:
        super().__init__(connection_id)
        self.connection_id = connection_id

    def __str__(self) -> str:
        return f"Connection not found: {self.connection_id!r}"


class SchemaNotFoundError(LookupError):
    """Raised when a node references an app or operation missing from the catalog."""

    kind = ErrorKind.SCHEMA_NOT_FOUND

    def __init__(self, message: str, *, app_id: str | None = None, operation_id: str | None = None) -> None:
        super().__init__(message)
        self.app_id = app_id
        self.operation_id = operation_id


class ExpressionSyntaxError(ValueError):
    """Raised when a {{ ... }} expression cannot be tokenized or parsed."""

    def __init__(self, message: str, *, expression: str, position: int) -> None:
        super().__init__(f"{message} at position {position} in {expression!r}")
        self.expression = expression
        self.position = position


class CommandError(RuntimeError):
    """Raised on misuse of a command, e.g. reverting one that was never applied."""
