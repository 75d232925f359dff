# src/nodeflow/engine/workflow.py
"""Flow Validator: whole-workflow checks and execution-readiness staging.

Checks run in a fixed order:

1. Trigger presence       - none: stop at SETUP with a single error
2. Trigger configuration  - any trigger without a trigger type: stop at SETUP
   (from here on the stage is at least CONFIGURE)
3. Trigger authentication - apps on the needs-auth list must carry a credential
4. Orphaned actions       - actions no trigger reaches (warning)
5. Action configuration   - actions without a selected action (error)
6. Per-node status        - incomplete nodes (warning), invalid nodes (error)

The stage is READY only with zero errors and zero warnings.

Pure: the flow is only read. Callers re-run it after every mutation.
"""

from __future__ import annotations

from nodeflow.contracts import (
    LOGIC_NODE_TYPES,
    ActivationDecision,
    ErrorKind,
    Flow,
    NodeStatus,
    NodeType,
    Severity,
    Stage,
    WorkflowIssue,
    WorkflowSummary,
    WorkflowValidationResult,
)
from nodeflow.core.config import DEFAULT_SETTINGS, ValidationSettings
from nodeflow.core.graph import FlowGraph
from nodeflow.core.logging import get_logger
from nodeflow.engine.fields import is_empty
from nodeflow.engine.nodes import SchemaLookup, no_schema, validate_node

logger = get_logger(__name__)

_AI_NODE_TYPES = frozenset({NodeType.AI_AGENT, NodeType.AI_MEMORY, NodeType.AI_TOOL})


def summarize(flow: Flow) -> WorkflowSummary:
    """Node and connection counts."""
    types = [n.type for n in flow.nodes]
    return WorkflowSummary(
        total_nodes=len(types),
        trigger_nodes=sum(1 for t in types if t == NodeType.TRIGGER),
        action_nodes=sum(1 for t in types if t == NodeType.ACTION),
        logic_nodes=sum(1 for t in types if t in LOGIC_NODE_TYPES),
        ai_nodes=sum(1 for t in types if t in _AI_NODE_TYPES),
        connections=len(flow.connections),
    )


def _build_result(issues: list[WorkflowIssue], stage: Stage, summary: WorkflowSummary) -> WorkflowValidationResult:
    errors = [i.message for i in issues if i.severity == Severity.ERROR]
    warnings = [i.message for i in issues if i.severity == Severity.WARNING]
    if stage == Stage.CONFIGURE and not errors and not warnings:
        stage = Stage.READY
    logger.debug(
        "workflow_validated",
        stage=stage.value,
        errors=len(errors),
        warnings=len(warnings),
        nodes=summary.total_nodes,
    )
    return WorkflowValidationResult(
        is_valid=not errors,
        can_execute=stage == Stage.READY,
        errors=errors,
        warnings=warnings,
        stage=stage,
        issues=issues,
        summary=summary,
    )


def _issue(kind: ErrorKind, severity: Severity, message: str, node_ids: list[str]) -> WorkflowIssue:
    return WorkflowIssue(kind=kind, severity=severity, message=message, node_ids=tuple(node_ids))


def validate_workflow(
    flow: Flow,
    *,
    schema_lookup: SchemaLookup = no_schema,
    settings: ValidationSettings | None = None,
) -> WorkflowValidationResult:
    """Validate a whole workflow and work out its readiness stage.

    Args:
        flow: Flow to inspect (never mutated)
        schema_lookup: Field lookup for per-node validation; without one,
            only node-type rules decide node status
        settings: Validation policy (needs-auth apps, credential keys)

    Returns:
        WorkflowValidationResult; ``errors``/``warnings`` hold the messages
        and ``issues`` the same findings with kinds and node ids.
    """
    policy = settings or DEFAULT_SETTINGS.validation
    summary = summarize(flow)
    triggers = flow.nodes_of_type(NodeType.TRIGGER)

    if not triggers:
        issue = _issue(ErrorKind.MISSING_TRIGGER, Severity.ERROR, "Workflow must start with a trigger node", [])
        return _build_result([issue], Stage.SETUP, summary)

    untyped = [t.id for t in triggers if is_empty(t.config.get("triggerType"))]
    if untyped:
        issue = _issue(
            ErrorKind.UNCONFIGURED_TRIGGER,
            Severity.ERROR,
            f"{len(untyped)} trigger(s) need trigger type selection",
            untyped,
        )
        return _build_result([issue], Stage.SETUP, summary)

    issues: list[WorkflowIssue] = []

    unauthenticated = [
        t.id
        for t in triggers
        if t.app_id in policy.auth_required_apps and all(is_empty(t.config.get(k)) for k in policy.auth_config_keys)
    ]
    if unauthenticated:
        issues.append(
            _issue(
                ErrorKind.MISSING_AUTHENTICATION,
                Severity.ERROR,
                f"{len(unauthenticated)} trigger(s) need authentication",
                unauthenticated,
            )
        )

    actions = flow.nodes_of_type(NodeType.ACTION)
    reached = FlowGraph.view(flow).reachable_from_triggers()
    orphaned = [a.id for a in actions if a.id not in reached]
    if orphaned:
        issues.append(
            _issue(
                ErrorKind.ORPHANED_ACTION,
                Severity.WARNING,
                f"{len(orphaned)} action(s) not connected to workflow",
                orphaned,
            )
        )

    unselected = [a.id for a in actions if not a.action_id]
    if unselected:
        issues.append(
            _issue(
                ErrorKind.UNCONFIGURED_ACTION,
                Severity.ERROR,
                f"{len(unselected)} action(s) need configuration",
                unselected,
            )
        )

    results = [validate_node(node, schema_lookup) for node in flow.nodes]
    invalid = [r.node_id for r in results if r.status == NodeStatus.ERROR]
    if invalid:
        issues.append(
            _issue(
                ErrorKind.INVALID_NODE,
                Severity.ERROR,
                f"{len(invalid)} node(s) have invalid configuration",
                invalid,
            )
        )
    incomplete = [r.node_id for r in results if r.status == NodeStatus.INCOMPLETE]
    if incomplete:
        issues.append(
            _issue(
                ErrorKind.INCOMPLETE_NODE,
                Severity.WARNING,
                f"{len(incomplete)} node(s) have incomplete configuration",
                incomplete,
            )
        )

    return _build_result(issues, Stage.CONFIGURE, summary)


def check_activation(
    flow: Flow,
    *,
    schema_lookup: SchemaLookup = no_schema,
    settings: ValidationSettings | None = None,
) -> ActivationDecision:
    """Decide whether a runner may activate a flow.

    Activation is refused unless the workflow can execute; the reason is
    the first blocking error, or the first warning when there are none.
    """
    result = validate_workflow(flow, schema_lookup=schema_lookup, settings=settings)
    if result.can_execute:
        return ActivationDecision(allowed=True, validation=result)
    reason = (result.errors or result.warnings or ["Workflow is not ready"])[0]
    logger.info("activation_refused", reason=reason, stage=result.stage.value)
    return ActivationDecision(allowed=False, reason=reason, validation=result)
