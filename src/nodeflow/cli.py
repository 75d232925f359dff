# src/nodeflow/cli.py
"""nodeflow Command Line Interface.

Entry point for the nodeflow CLI tool.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

import typer
import yaml
from pydantic import ValidationError

from nodeflow import __version__
from nodeflow.contracts import ExpressionSyntaxError, Flow, InvalidConnectionError, WorkflowValidationResult
from nodeflow.core.config import DEFAULT_SETTINGS, NodeflowSettings, load_settings
from nodeflow.core.graph import FlowGraph
from nodeflow.core.registry import SchemaRegistry
from nodeflow.engine.expressions import UNRESOLVED, DataContext, render, resolve_detailed
from nodeflow.engine.workflow import validate_workflow

__all__ = [
    "app",
]

app = typer.Typer(
    name="nodeflow",
    help="nodeflow: schema-driven workflow validation and expression tooling.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"nodeflow version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)  # Don't override existing env vars


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,  # We handle existence check ourselves for better error message
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """nodeflow: schema-driven workflow validation and expression tooling."""
    from nodeflow.core.logging import configure_logging

    ctx.obj = {"verbose": verbose, "json_logs": json_logs}
    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


def _format_validation_error(
    title: str,
    message: str,
    hint: str | None = None,
    details: list[str] | None = None,
) -> None:
    """Display a formatted validation error with optional hint and details."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console(stderr=True)

    content = Text()
    content.append(message, style="white")

    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")

    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    panel = Panel(
        content,
        title=f"[red bold]❌ {title}[/]",
        border_style="red",
        padding=(0, 1),
    )
    console.print(panel)


def _validation_details(error: ValidationError) -> list[str]:
    details = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"])
        details.append(f"{loc}: {item['msg']}" if loc else item["msg"])
    return details


def _read_document(path: Path) -> Any:
    """Parse a JSON or YAML file (chosen by suffix; YAML otherwise)."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def _load_document_or_exit(path: Path, what: str) -> Any:
    try:
        return _read_document(path)
    except FileNotFoundError:
        _format_validation_error(
            title="File Not Found",
            message=f"{what.capitalize()} file does not exist: {path}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        _format_validation_error(
            title="Parse Error",
            message=f"Failed to parse {path.name}",
            details=[str(e)],
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(1) from None


def _load_settings_or_exit(ctx: typer.Context, settings_path: Path | None) -> NodeflowSettings:
    """Load settings (env + optional file) and re-apply their logging section."""
    from nodeflow.core.logging import configure_logging

    try:
        settings = load_settings(settings_path)
    except FileNotFoundError:
        _format_validation_error(
            title="File Not Found",
            message=f"Settings file does not exist: {settings_path}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except ValidationError as e:
        _format_validation_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name if settings_path else 'environment'}",
            details=_validation_details(e),
            hint="Check field names, types, and required values.",
        )
        raise typer.Exit(1) from None

    flags = ctx.obj or {}
    if settings.logging != DEFAULT_SETTINGS.logging:
        configure_logging(
            json_output=flags.get("json_logs", False) or settings.logging.json_output,
            level="DEBUG" if flags.get("verbose") else settings.logging.level,
        )
    return settings


def _load_registry_or_exit(settings: NodeflowSettings, catalogs: list[Path]) -> SchemaRegistry:
    try:
        return SchemaRegistry.default([*settings.catalog_paths, *catalogs])
    except FileNotFoundError as e:
        _format_validation_error(
            title="File Not Found",
            message=f"Catalog file does not exist: {e.filename}",
            hint="Check --catalog paths and catalog_paths in settings.",
        )
        raise typer.Exit(1) from None
    except yaml.YAMLError as e:
        _format_validation_error(title="Catalog Parse Error", message=str(e))
        raise typer.Exit(1) from None
    except ValidationError as e:
        _format_validation_error(
            title="Catalog Validation Failed",
            message="A catalog entry does not match the schema format",
            details=_validation_details(e),
        )
        raise typer.Exit(1) from None
    except ValueError as e:
        _format_validation_error(title="Catalog Error", message=str(e))
        raise typer.Exit(1) from None


def _result_to_dict(result: WorkflowValidationResult) -> dict[str, Any]:
    summary = result.summary
    return {
        "stage": result.stage.value,
        "isValid": result.is_valid,
        "canExecute": result.can_execute,
        "errors": list(result.errors),
        "warnings": list(result.warnings),
        "issues": [
            {
                "kind": issue.kind.value,
                "severity": issue.severity.value,
                "message": issue.message,
                "nodeIds": list(issue.node_ids),
            }
            for issue in result.issues
        ],
        "summary": None
        if summary is None
        else {
            "totalNodes": summary.total_nodes,
            "triggerNodes": summary.trigger_nodes,
            "actionNodes": summary.action_nodes,
            "logicNodes": summary.logic_nodes,
            "aiNodes": summary.ai_nodes,
            "connections": summary.connections,
        },
    }


@app.command()
def validate(
    ctx: typer.Context,
    flow_file: Path = typer.Argument(
        ...,
        help="Workflow file (JSON or YAML).",
    ),
    catalog: list[Path] = typer.Option(
        [],
        "--catalog",
        "-c",
        help="Extra schema catalog YAML (repeatable).",
    ),
    settings: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    output_format: Literal["text", "json"] = typer.Option(
        "text",
        "--format",
        "-f",
        help="Output format: 'text' (human-readable) or 'json' (structured JSON).",
    ),
) -> None:
    """Validate a workflow and report its readiness stage.

    Exits with status 1 unless the workflow can execute.
    """
    config = _load_settings_or_exit(ctx, settings)
    data = _load_document_or_exit(flow_file, "workflow")

    try:
        flow = Flow.model_validate(data or {})
        FlowGraph(flow)
    except ValidationError as e:
        _format_validation_error(
            title="Workflow Format Error",
            message=f"Invalid workflow in {flow_file.name}",
            details=_validation_details(e),
            hint="Check node types, ids and connection endpoints.",
        )
        raise typer.Exit(1) from None
    except InvalidConnectionError as e:
        _format_validation_error(
            title="Invalid Connection",
            message=str(e),
            details=[f"reason: {e.reason}"],
            hint="Triggers cannot be targets; error handlers cannot connect from their bottom handle.",
        )
        raise typer.Exit(1) from None

    from nodeflow.core.logging import flow_context

    registry = _load_registry_or_exit(config, catalog)
    with flow_context(flow.name, source=str(flow_file)):
        result = validate_workflow(flow, schema_lookup=registry.lookup_fields, settings=config.validation)

    if output_format == "json":
        typer.echo(json.dumps(_result_to_dict(result), indent=2))
    else:
        marker = "✅" if result.can_execute else "❌"
        typer.echo(f"{marker} {flow.name}: stage {result.stage.value}")
        if result.summary is not None:
            s = result.summary
            typer.echo(
                f"  Nodes: {s.total_nodes} ({s.trigger_nodes} trigger, {s.action_nodes} action, "
                f"{s.logic_nodes} logic, {s.ai_nodes} ai), connections: {s.connections}"
            )
        for message in result.errors:
            typer.secho(f"  error: {message}", fg=typer.colors.RED)
        for message in result.warnings:
            typer.secho(f"  warning: {message}", fg=typer.colors.YELLOW)

    if not result.can_execute:
        raise typer.Exit(1)


def _build_context(data: Any) -> DataContext:
    """DataContext from a context file; ``env`` defaults to the process environment."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("context file must contain a mapping")
    return DataContext(
        trigger=data.get("trigger"),
        nodes=data.get("nodes") or {},
        env=data["env"] if "env" in data else dict(os.environ),
        input=data["input"] if "input" in data else UNRESOLVED,
        variables=data.get("variables") or {},
        execution_id=data.get("executionId"),
        workflow_id=data.get("workflowId"),
        node_names=data.get("nodeNames") or {},
    )


@app.command()
def resolve(
    template: str = typer.Argument(..., help="Field value, e.g. 'Hi {{ $json.name }}'."),
    context_file: Path | None = typer.Option(
        None,
        "--context",
        "-x",
        help="JSON/YAML file with trigger, nodes, env, variables, input, nodeNames.",
    ),
) -> None:
    """Resolve a template against sample data (edit-time preview)."""
    data = _load_document_or_exit(context_file, "context") if context_file is not None else None
    try:
        context = _build_context(data)
        resolution = resolve_detailed(template, context)
    except ExpressionSyntaxError as e:
        _format_validation_error(
            title="Expression Syntax Error",
            message=str(e),
            hint="Expressions look like {{ $json.field }} or {{ $node[\"Step\"].json.field }}.",
        )
        raise typer.Exit(1) from None
    except ValueError as e:
        _format_validation_error(title="Context Error", message=str(e))
        raise typer.Exit(1) from None

    value = template if resolution.value is UNRESOLVED else resolution.value
    typer.echo(render(value))
    for raw in resolution.unresolved:
        typer.secho(f"unresolved: {raw}", fg=typer.colors.YELLOW, err=True)


@app.command()
def apps(
    ctx: typer.Context,
    query: str = typer.Argument("", help="Case-insensitive search text (empty lists every app)."),
    group: str | None = typer.Option(None, "--group", "-g", help="Only apps in this group."),
    catalog: list[Path] = typer.Option(
        [],
        "--catalog",
        "-c",
        help="Extra schema catalog YAML (repeatable).",
    ),
    settings: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Search the schema catalog."""
    config = _load_settings_or_exit(ctx, settings)
    registry = _load_registry_or_exit(config, catalog)

    found = registry.search_apps(query)
    if group is not None:
        wanted = {a.id for a in registry.apps_in_group(group)}
        found = [a for a in found if a.id in wanted]

    if not found:
        typer.echo("No matching apps.")
        return
    for app_schema in found:
        operations = sum(len(r.operations) for r in app_schema.resources)
        groups = ", ".join(app_schema.group)
        typer.echo(f"{app_schema.id:<16} {app_schema.name:<20} {operations} operation(s)  [{groups}]")


if __name__ == "__main__":
    app()
