# src/nodeflow/core/registry.py
"""Schema Registry: read-only access to the app/operation catalog.

The catalog maps ``(app_id, resource_id, operation_id)`` to field
definitions. It is static data: the registry parses it through the pydantic
models in nodeflow.contracts.schema and never checks the catalog's own
internal consistency beyond that.

Catalog layout (YAML or dict):

    apps:
      - id: gmail
        name: Gmail
        resources:
          - id: message
            operations:
              - id: send_message
                fields: [...]
                optionalFields: [...]
    nodeTypes:
      delay:
        fields: [...]
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from importlib.resources import files
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from nodeflow.contracts import (
    EMPTY_FIELD_SET,
    AppSchema,
    FieldSet,
    Node,
    NodeType,
    NodeTypeSchema,
    Operation,
    Resource,
    SchemaNotFoundError,
)
from nodeflow.core.logging import get_logger

logger = get_logger(__name__)

BUILTIN_CATALOG = "builtin.yaml"


class SchemaRegistry:
    """In-memory catalog of app schemas and logic node-type schemas.

    Apps keep catalog order for listing and search results. Registering an
    app whose id already exists replaces the earlier entry in place.
    """

    def __init__(
        self,
        apps: Iterable[AppSchema] = (),
        node_types: Mapping[str, NodeTypeSchema] | None = None,
    ) -> None:
        self._apps: dict[str, AppSchema] = {}
        for app in apps:
            self._apps[app.id] = app
        self._node_types: dict[str, NodeTypeSchema] = dict(node_types or {})

    # === Construction ===

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> SchemaRegistry:
        """Build a registry from a parsed catalog document.

        Raises:
            pydantic.ValidationError: If an entry does not fit the catalog models
        """
        apps = [AppSchema.model_validate(entry) for entry in data.get("apps") or []]
        node_types = {str(k): NodeTypeSchema.model_validate(v or {}) for k, v in (data.get("nodeTypes") or {}).items()}
        unknown = set(node_types) - {t.value for t in NodeType}
        if unknown:
            raise ValueError(f"Catalog declares fields for unknown node type(s): {', '.join(sorted(unknown))}")
        return cls(apps, node_types)

    @classmethod
    def from_yaml(cls, *paths: Path) -> SchemaRegistry:
        """Load and layer one or more catalog files, later files winning.

        Raises:
            FileNotFoundError: If a catalog file doesn't exist
            yaml.YAMLError: If a file is not valid YAML
        """
        registry = cls()
        for path in paths:
            with path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            registry.merge(cls.from_mapping(data))
            logger.info("catalog_loaded", path=str(path), apps=len(data.get("apps") or []))
        return registry

    @classmethod
    def default(cls, extra_paths: Iterable[Path] = ()) -> SchemaRegistry:
        """Registry holding the packaged built-in catalog plus any extra files."""
        text = files("nodeflow.core").joinpath("catalog", BUILTIN_CATALOG).read_text(encoding="utf-8")
        registry = cls.from_mapping(yaml.safe_load(text))
        extra = list(extra_paths)
        if extra:
            registry.merge(cls.from_yaml(*extra))
        return registry

    def merge(self, other: SchemaRegistry) -> None:
        """Layer another registry on top of this one."""
        for app in other._apps.values():
            self._apps[app.id] = app
        self._node_types.update(other._node_types)

    # === Catalog queries ===

    @property
    def apps(self) -> Mapping[str, AppSchema]:
        return MappingProxyType(self._apps)

    def __len__(self) -> int:
        return len(self._apps)

    def __contains__(self, app_id: object) -> bool:
        return app_id in self._apps

    def get_app(self, app_id: str) -> AppSchema | None:
        return self._apps.get(app_id)

    def get_resource(self, app_id: str, resource_id: str) -> Resource | None:
        """Find a resource by id or value."""
        app = self._apps.get(app_id)
        if app is None:
            return None
        for resource in app.resources:
            if resource.matches(resource_id):
                return resource
        return None

    def get_operation(self, app_id: str, resource_id: str, operation_id: str) -> Operation | None:
        """Find an operation by id or value within one resource."""
        resource = self.get_resource(app_id, resource_id)
        if resource is None:
            return None
        for operation in resource.operations:
            if operation.matches(operation_id):
                return operation
        return None

    def find_operation(self, app_id: str, operation_id: str, resource_id: str | None = None) -> Operation | None:
        """Find an operation when the resource may be unknown.

        With a resource id this is get_operation(); without one, every
        resource of the app is searched in catalog order.
        """
        if resource_id is not None:
            return self.get_operation(app_id, resource_id, operation_id)
        app = self._apps.get(app_id)
        if app is None:
            return None
        for resource in app.resources:
            for operation in resource.operations:
                if operation.matches(operation_id):
                    return operation
        return None

    def search_apps(self, query: str) -> list[AppSchema]:
        """Case-insensitive substring search over name, description and groups."""
        needle = query.lower()
        return [
            app
            for app in self._apps.values()
            if needle in app.name.lower() or needle in app.description.lower() or any(needle in g.lower() for g in app.group)
        ]

    def apps_in_group(self, group: str) -> list[AppSchema]:
        wanted = group.lower()
        return [app for app in self._apps.values() if any(g.lower() == wanted for g in app.group)]

    def groups(self) -> list[str]:
        return sorted({g for app in self._apps.values() for g in app.group})

    # === Field lookup for nodes ===

    def node_type_fields(self, node_type: NodeType | str) -> FieldSet:
        """Fields of an app-less node type; empty when the catalog has none."""
        schema = self._node_types.get(str(node_type))
        if schema is None:
            return EMPTY_FIELD_SET
        return FieldSet.from_lists(schema.fields, schema.optional_fields)

    def lookup_fields(self, node: Node) -> FieldSet:
        """Required/optional field definitions governing a node.

        Resolution order:
        - no app: the node type's built-in fields
        - app but no operation selected yet: no app fields
        - app and operation: the operation's fields, searched within
          ``config["resource"]`` when set, otherwise across all resources

        Raises:
            SchemaNotFoundError: If the app, or the selected operation, is not in the catalog
        """
        if node.app_id is None:
            return self.node_type_fields(node.type)

        if node.app_id not in self._apps:
            raise SchemaNotFoundError(f"Unknown app {node.app_id!r}", app_id=node.app_id)

        operation_id = node.operation_id
        if not operation_id:
            return EMPTY_FIELD_SET

        resource_id = node.config.get("resource")
        operation = self.find_operation(
            node.app_id,
            operation_id,
            resource_id if isinstance(resource_id, str) and resource_id else None,
        )
        if operation is None:
            raise SchemaNotFoundError(
                f"App {node.app_id!r} has no operation {operation_id!r}",
                app_id=node.app_id,
                operation_id=operation_id,
            )
        return FieldSet.from_lists(operation.fields, operation.optional_fields)
