"""End-to-end tests for the ``infralayer`` command line against the local backend."""

import json
from pathlib import Path

import pytest

from infralayer.cli.main import build_parser, run
from infralayer.core.errors import ExitCode
from infralayer.state.store import LocalStateStore

CONFIG = """
variables:
  region:
    type: string
    default: us-central1

resources:
  - type: network
    name: main
    attributes:
      region: ${var.region}
  - type: database
    name: main
    attributes:
      tier: standard
      network_id: ${network.main.id}

outputs:
  network_id:
    value: ${network.main.id}
  db_id:
    value: ${database.main.id}
    sensitive: true
"""

COMMON = ["--config", "main.infra.yaml", "--state", "state.json", "--backend-dir", "cloud"]


def cli(*args: str) -> int:
    command, *rest = args
    return run([command, *COMMON, "--backend", "local", *rest])


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Configuration in the current directory; prompts disabled."""
    monkeypatch.setenv("CI", "true")
    (tmp_path / "main.infra.yaml").write_text(CONFIG)
    return tmp_path


def stored_documents(root: Path) -> list:
    return sorted(str(p.relative_to(root)) for p in root.rglob("*.json"))


class TestParser:
    def test_terraform_style_flags(self):
        args = build_parser().parse_args(["apply", "plan.json", "-auto-approve"])

        assert args.plan_file == "plan.json"
        assert args.auto_approve is True
        assert args.refresh is True

    def test_no_command_prints_help(self, capsys):
        assert run([]) == 0
        assert "usage: infralayer" in capsys.readouterr().out


class TestValidate:
    def test_valid_configuration(self, workspace, capsys):
        assert cli("validate", "--verbose") == ExitCode.SUCCESS

        out = capsys.readouterr().out
        assert "Apply order" in out
        assert "2 resource(s)" in out

    def test_cycle_is_configuration_error(self, workspace, capsys):
        (workspace / "main.infra.yaml").write_text(
            """
resources:
  - type: vm
    name: a
    attributes: {peer: "${vm.b.id}"}
  - type: vm
    name: b
    attributes: {peer: "${vm.a.id}"}
"""
        )

        assert cli("validate") == ExitCode.CONFIG_ERROR
        assert "cycle" in capsys.readouterr().out

    def test_missing_configuration(self, tmp_path):
        assert run(["validate", "--config", "absent.yaml"]) == ExitCode.CONFIG_ERROR


class TestPlanApply:
    """Tests for the plan / apply / output / destroy workflow."""

    def test_apply_then_plan_has_no_changes(self, workspace, capsys):
        assert cli("plan") == ExitCode.SUCCESS
        assert "2 to create" in capsys.readouterr().out

        assert cli("apply", "-auto-approve") == ExitCode.SUCCESS
        assert stored_documents(workspace / "cloud") == [
            "database/main.json",
            "network/main.json",
        ]

        capsys.readouterr()
        assert cli("plan") == ExitCode.NO_CHANGES
        assert "No changes" in capsys.readouterr().out

    def test_apply_references_resolved_from_created_resources(self, workspace):
        assert cli("apply", "-auto-approve") == ExitCode.SUCCESS

        network = json.loads((workspace / "cloud" / "network" / "main.json").read_text())
        database = json.loads((workspace / "cloud" / "database" / "main.json").read_text())
        assert database["network_id"] == network["id"]

    def test_apply_without_approval_is_declined(self, workspace, capsys):
        assert cli("apply") == ExitCode.BLOCKED

        assert "declined" in capsys.readouterr().out
        assert not (workspace / "cloud").exists()

    def test_saved_plan_applied(self, workspace):
        assert cli("plan", "-out", "plan.json") == ExitCode.SUCCESS
        assert cli("apply", "plan.json") == ExitCode.SUCCESS

        assert cli("plan") == ExitCode.NO_CHANGES

    def test_stale_saved_plan_refused(self, workspace, capsys):
        assert cli("plan", "-out", "plan.json") == ExitCode.SUCCESS
        assert cli("apply", "-auto-approve") == ExitCode.SUCCESS
        capsys.readouterr()

        assert cli("apply", "plan.json") == ExitCode.CONFIG_ERROR
        assert "stale" in capsys.readouterr().out

    def test_configuration_change_planned_as_update(self, workspace, capsys):
        assert cli("apply", "-auto-approve") == ExitCode.SUCCESS
        config = workspace / "main.infra.yaml"
        config.write_text(config.read_text().replace("tier: standard", "tier: premium"))
        capsys.readouterr()

        assert cli("plan") == ExitCode.SUCCESS

        out = capsys.readouterr().out
        assert "1 to update" in out
        assert "database.main" in out

    def test_out_of_band_change_detected_as_drift(self, workspace, capsys):
        assert cli("apply", "-auto-approve") == ExitCode.SUCCESS
        document = workspace / "cloud" / "network" / "main.json"
        attributes = json.loads(document.read_text())
        attributes["region"] = "europe-west1"
        document.write_text(json.dumps(attributes))
        capsys.readouterr()

        assert cli("plan") == ExitCode.SUCCESS

        out = capsys.readouterr().out
        assert "Drift detected" in out
        assert "1 to update" in out

    def test_destroy_removes_everything(self, workspace):
        assert cli("apply", "-auto-approve") == ExitCode.SUCCESS

        assert cli("destroy", "-auto-approve") == ExitCode.SUCCESS

        store = LocalStateStore(workspace / "state.json")
        assert store.snapshot() == {}
        assert store.outputs() == {}
        assert stored_documents(workspace / "cloud") == []


class TestOutput:
    @pytest.fixture
    def applied(self, workspace, capsys):
        assert cli("apply", "-auto-approve") == ExitCode.SUCCESS
        capsys.readouterr()
        return LocalStateStore(workspace / "state.json").outputs()

    def test_listing_masks_sensitive_values(self, applied, capsys):
        assert cli("output") == ExitCode.SUCCESS

        out = capsys.readouterr().out
        assert "<sensitive>" in out
        assert applied["db_id"].value not in out
        assert applied["network_id"].value in out

    def test_named_output_reveals_value(self, applied, capsys):
        assert cli("output", "db_id") == ExitCode.SUCCESS

        assert capsys.readouterr().out.strip() == applied["db_id"].value

    def test_json(self, applied, capsys):
        assert cli("output", "-json") == ExitCode.SUCCESS

        assert json.loads(capsys.readouterr().out) == {
            "db_id": {"value": applied["db_id"].value, "sensitive": True},
            "network_id": {"value": applied["network_id"].value, "sensitive": False},
        }

    def test_unknown_output(self, applied):
        assert cli("output", "nope") == ExitCode.CONFIG_ERROR

    def test_no_outputs_yet(self, workspace, capsys):
        assert cli("output") == ExitCode.SUCCESS
        assert "No outputs recorded" in capsys.readouterr().out


class TestInit:
    def test_init_writes_starter_config_and_state(self, tmp_path):
        assert cli("init") == ExitCode.SUCCESS

        assert (tmp_path / "main.infra.yaml").exists()
        assert json.loads((tmp_path / "state.json").read_text())["resources"] == []
        assert cli("validate") == ExitCode.SUCCESS

    def test_init_keeps_existing_config(self, workspace):
        assert cli("init") == ExitCode.SUCCESS

        assert (workspace / "main.infra.yaml").read_text() == CONFIG
