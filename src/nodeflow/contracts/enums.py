"""All node kinds, statuses, and error kinds used across subsystem boundaries.

Values are the wire strings used in persisted flows and schema catalogs, so
StrEnum members compare equal to the raw strings read from JSON or YAML.
"""

from enum import StrEnum


class NodeType(StrEnum):
    """Type of node in the workflow graph."""

    TRIGGER = "trigger"
    ACTION = "action"
    CONDITION = "condition"
    DELAY = "delay"
    LOOP = "loop"
    ROUTER = "router"
    ERROR_HANDLER = "error-handler"
    AI_AGENT = "ai-agent"
    AI_MEMORY = "ai-memory"
    AI_TOOL = "ai-tool"


# Node types that decide between outgoing branches
BRANCHING_NODE_TYPES = frozenset({NodeType.CONDITION, NodeType.ROUTER})

# Node types counted as "logic" in workflow summaries
LOGIC_NODE_TYPES = frozenset(
    {
        NodeType.CONDITION,
        NodeType.DELAY,
        NodeType.LOOP,
        NodeType.ROUTER,
        NodeType.ERROR_HANDLER,
    }
)


class NodeStatus(StrEnum):
    """Status of a node.

    INCOMPLETE, CONFIGURED and ERROR are derived by the node validator.
    RUNNING and SUCCESS are recorded by the execution runner only.
    """

    INCOMPLETE = "incomplete"
    CONFIGURED = "configured"
    ERROR = "error"
    RUNNING = "running"
    SUCCESS = "success"


# Statuses owned by the runner; validation never overwrites them
RUNNER_STATUSES = frozenset({NodeStatus.RUNNING, NodeStatus.SUCCESS})


class TriggerType(StrEnum):
    """How a trigger node starts a workflow run.

    Stored in node config (config.triggerType).
    """

    WEBHOOK = "webhook"
    POLL = "poll"
    SCHEDULE = "schedule"
    EMAIL = "email"
    MANUAL = "manual"


class FieldType(StrEnum):
    """Declared type of a configurable field in the schema catalog."""

    STRING = "string"
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OPTIONS = "options"
    MULTI_OPTIONS = "multiOptions"
    JSON = "json"
    DATE_TIME = "dateTime"
    COLOR = "color"
    FIXED_COLLECTION = "fixedCollection"
    COLLECTION = "collection"
    RESOURCE_LOCATOR = "resourceLocator"
    RESOURCE_MAPPER = "resourceMapper"
    EMAIL = "email"
    URL = "url"
    SECRET = "secret"


class ErrorKind(StrEnum):
    """Kind of a validation problem.

    Kinds, not exceptions: every one of these travels as data inside a
    validation result. Only InvalidConnection also has an exception form,
    raised at the graph boundary.
    """

    MISSING_REQUIRED_FIELD = "MissingRequiredField"
    INVALID_FIELD_TYPE = "InvalidFieldType"
    OUT_OF_RANGE = "OutOfRange"
    UNRESOLVED_EXPRESSION = "UnresolvedExpression"
    SCHEMA_NOT_FOUND = "SchemaNotFound"
    INVALID_CONNECTION = "InvalidConnection"
    MISSING_TRIGGER = "MissingTrigger"
    UNCONFIGURED_TRIGGER = "UnconfiguredTrigger"
    MISSING_AUTHENTICATION = "MissingAuthentication"
    ORPHANED_ACTION = "OrphanedAction"
    INCOMPLETE_NODE = "IncompleteNode"
    UNCONFIGURED_ACTION = "UnconfiguredAction"
    INVALID_NODE = "InvalidNode"


class Severity(StrEnum):
    """Whether a workflow issue blocks activation."""

    ERROR = "error"
    WARNING = "warning"


class Stage(StrEnum):
    """Coarse readiness of a workflow.

    SETUP: no usable trigger yet
    CONFIGURE: trigger selected, remaining configuration outstanding
    READY: zero errors and zero warnings, may be activated
    """

    SETUP = "setup"
    CONFIGURE = "configure"
    READY = "ready"


class SourceHandle(StrEnum):
    """Named connection handles.

    Router nodes may also use numeric handles ("0", "1", ...), which are
    plain strings and not members of this enum.
    """

    TOP = "top"
    BOTTOM = "bottom"
    TRUE = "true"
    FALSE = "false"
