# src/nodeflow/core/__init__.py
"""Core infrastructure: Logging, Configuration, Schema Registry, Flow Graph."""

from nodeflow.core.logging import (
    configure_logging,
    get_logger,
)
from nodeflow.core.config import (
    DEFAULT_SETTINGS,
    EditorSettings,
    LoggingSettings,
    NodeflowSettings,
    ValidationSettings,
    load_settings,
)
from nodeflow.core.graph import (
    FlowGraph,
    RemovedNode,
)
from nodeflow.core.registry import SchemaRegistry

__all__ = [
    "DEFAULT_SETTINGS",
    "EditorSettings",
    "FlowGraph",
    "LoggingSettings",
    "NodeflowSettings",
    "RemovedNode",
    "SchemaRegistry",
    "ValidationSettings",
    "configure_logging",
    "get_logger",
    "load_settings",
]
