"""Tests for nodeflow validate command."""

import json
from pathlib import Path
from typing import Any

import pytest
import yaml
from typer.testing import CliRunner

from nodeflow.cli import app

runner = CliRunner()


def _ready_flow() -> dict[str, Any]:
    return {
        "name": "Order sync",
        "nodes": [
            {"id": "t", "type": "trigger", "name": "Start", "config": {"triggerType": "manual"}},
            {
                "id": "a",
                "type": "action",
                "name": "Fetch orders",
                "appId": "http",
                "actionId": "send_request",
                "config": {"method": "GET", "url": "https://api.example.com/orders"},
            },
        ],
        "connections": [{"id": "c1", "source": "t", "target": "a"}],
    }


class TestValidateCommand:
    """Tests for validate command."""

    @pytest.fixture
    def ready_flow(self, tmp_path: Path) -> Path:
        flow_file = tmp_path / "ready.yaml"
        flow_file.write_text(yaml.dump(_ready_flow()))
        return flow_file

    @pytest.fixture
    def orphan_flow(self, tmp_path: Path) -> Path:
        flow = _ready_flow()
        flow["connections"] = []
        flow_file = tmp_path / "orphan.json"
        flow_file.write_text(json.dumps(flow))
        return flow_file

    def test_ready_flow_passes(self, ready_flow: Path) -> None:
        result = runner.invoke(app, ["validate", str(ready_flow)])

        assert result.exit_code == 0, result.output
        assert "Order sync: stage ready" in result.output
        assert "Nodes: 2 (1 trigger, 1 action, 0 logic, 0 ai), connections: 1" in result.output

    def test_orphaned_action_fails(self, orphan_flow: Path) -> None:
        result = runner.invoke(app, ["validate", str(orphan_flow)])

        assert result.exit_code == 1
        assert "stage configure" in result.output
        assert "warning: 1 action(s) not connected to workflow" in result.output

    def test_missing_required_field_is_reported(self, tmp_path: Path) -> None:
        flow = _ready_flow()
        del flow["nodes"][1]["config"]["url"]
        flow_file = tmp_path / "incomplete.yaml"
        flow_file.write_text(yaml.dump(flow))

        result = runner.invoke(app, ["validate", str(flow_file)])

        assert result.exit_code == 1
        assert "warning: 1 node(s) have incomplete configuration" in result.output

    def test_json_output(self, orphan_flow: Path) -> None:
        result = runner.invoke(app, ["validate", str(orphan_flow), "--format", "json"])

        assert result.exit_code == 1
        payload = json.loads(result.stdout)
        assert payload["stage"] == "configure"
        assert payload["isValid"] is True
        assert payload["canExecute"] is False
        assert payload["issues"] == [
            {
                "kind": "OrphanedAction",
                "severity": "warning",
                "message": "1 action(s) not connected to workflow",
                "nodeIds": ["a"],
            }
        ]
        assert payload["summary"]["totalNodes"] == 2

    def test_empty_file_is_an_empty_flow(self, tmp_path: Path) -> None:
        flow_file = tmp_path / "empty.yaml"
        flow_file.write_text("")

        result = runner.invoke(app, ["validate", str(flow_file)])

        assert result.exit_code == 1
        assert "stage setup" in result.output
        assert "error: Workflow must start with a trigger node" in result.output

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["validate", str(tmp_path / "nope.yaml")])

        assert result.exit_code == 1
        assert "File Not Found" in result.output

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        flow_file = tmp_path / "broken.yaml"
        flow_file.write_text("nodes:\n  - id: t\n    config: [unclosed")

        result = runner.invoke(app, ["validate", str(flow_file)])

        assert result.exit_code == 1
        assert "Parse Error" in result.output

    def test_unknown_node_type(self, tmp_path: Path) -> None:
        flow = _ready_flow()
        flow["nodes"][0]["type"] = "teleporter"
        flow_file = tmp_path / "bad_type.yaml"
        flow_file.write_text(yaml.dump(flow))

        result = runner.invoke(app, ["validate", str(flow_file)])

        assert result.exit_code == 1
        assert "Workflow Format Error" in result.output

    def test_connection_into_trigger(self, tmp_path: Path) -> None:
        flow = _ready_flow()
        flow["connections"] = [{"id": "c1", "source": "a", "target": "t"}]
        flow_file = tmp_path / "reversed.yaml"
        flow_file.write_text(yaml.dump(flow))

        result = runner.invoke(app, ["validate", str(flow_file)])

        assert result.exit_code == 1
        assert "Invalid Connection" in result.output
        assert "target_is_trigger" in result.output


class TestValidateWithCatalogAndSettings:
    @pytest.fixture
    def acme_catalog(self, tmp_path: Path) -> Path:
        catalog = {
            "apps": [
                {
                    "id": "acme",
                    "name": "Acme CRM",
                    "group": ["crm"],
                    "resources": [
                        {
                            "id": "contact",
                            "name": "Contact",
                            "operations": [
                                {
                                    "id": "create",
                                    "name": "Create Contact",
                                    "fields": [{"name": "email", "type": "email", "required": True}],
                                }
                            ],
                        }
                    ],
                }
            ]
        }
        path = tmp_path / "acme.yaml"
        path.write_text(yaml.dump(catalog))
        return path

    def _acme_flow(self, tmp_path: Path, email: str) -> Path:
        flow = _ready_flow()
        flow["nodes"][1] = {
            "id": "a",
            "type": "action",
            "appId": "acme",
            "actionId": "create",
            "config": {"email": email},
        }
        path = tmp_path / "acme_flow.yaml"
        path.write_text(yaml.dump(flow))
        return path

    def test_unknown_app_without_catalog(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["validate", str(self._acme_flow(tmp_path, "a@b.co"))])

        assert result.exit_code == 1
        assert "error: 1 node(s) have invalid configuration" in result.output

    def test_extra_catalog(self, tmp_path: Path, acme_catalog: Path) -> None:
        flow_file = self._acme_flow(tmp_path, "a@b.co")

        result = runner.invoke(app, ["validate", str(flow_file), "--catalog", str(acme_catalog)])

        assert result.exit_code == 0, result.output

    def test_extra_catalog_field_rules_apply(self, tmp_path: Path, acme_catalog: Path) -> None:
        flow_file = self._acme_flow(tmp_path, "not-an-email")

        result = runner.invoke(app, ["validate", str(flow_file), "-c", str(acme_catalog)])

        assert result.exit_code == 1
        assert "error: 1 node(s) have invalid configuration" in result.output

    def test_missing_catalog(self, tmp_path: Path) -> None:
        flow_file = tmp_path / "ready.yaml"
        flow_file.write_text(yaml.dump(_ready_flow()))

        result = runner.invoke(app, ["validate", str(flow_file), "-c", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        assert "File Not Found" in result.output

    def test_settings_auth_policy(self, tmp_path: Path) -> None:
        flow = _ready_flow()
        flow["nodes"][0]["appId"] = "webhook"
        flow["nodes"][0]["config"] = {"triggerType": "webhook"}
        flow_file = tmp_path / "webhook.yaml"
        flow_file.write_text(yaml.dump(flow))
        settings_file = tmp_path / "settings.yaml"
        settings_file.write_text(yaml.dump({"validation": {"auth_required_apps": ["webhook"]}}))

        assert runner.invoke(app, ["validate", str(flow_file)]).exit_code == 0
        result = runner.invoke(app, ["validate", str(flow_file), "--settings", str(settings_file)])

        assert result.exit_code == 1
        assert "error: 1 trigger(s) need authentication" in result.output

    def test_invalid_settings(self, tmp_path: Path) -> None:
        flow_file = tmp_path / "ready.yaml"
        flow_file.write_text(yaml.dump(_ready_flow()))
        settings_file = tmp_path / "settings.yaml"
        settings_file.write_text(yaml.dump({"editor": {"history_limit": 0}}))

        result = runner.invoke(app, ["validate", str(flow_file), "-s", str(settings_file)])

        assert result.exit_code == 1
        assert "Configuration Validation Failed" in result.output
