"""Tests for the command line entry point."""

import json
import logging

import pytest
from click.testing import CliRunner

from stepwise.config import Settings
from stepwise.main import build_registry, cli


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.setenv("STEPWISE_CONFIG_DIR", str(tmp_path / "no-config"))
    monkeypatch.delenv("STEPWISE_CONFIG", raising=False)
    # Plan execution never calls the model; the local provider needs no API key
    monkeypatch.setenv("STEPWISE_LLM__PROVIDER", "local")
    yield CliRunner()
    # The CLI installs a handler on the runner's temporary stderr
    logging.getLogger().handlers.clear()


def _write_plan(tmp_path, steps):
    path = tmp_path / "plan.json"
    path.write_text(json.dumps({"goal": "demo", "steps": steps}))
    return str(path)


class TestValidateCommand:
    def test_valid_plan_lists_ready_steps(self, runner, tmp_path):
        plan_file = _write_plan(tmp_path, [
            {"id": "step_1", "description": "List files", "tool": "list_dir", "dependencies": []},
            {"id": "step_2", "description": "Read file", "tool": "view_file", "dependencies": ["step_1"]},
        ])
        result = runner.invoke(cli, ["validate", plan_file])
        assert result.exit_code == 0
        assert "Plan OK: 2 step(s)" in result.output
        assert "ready: step_1 (list_dir) List files" in result.output
        assert "step_2" not in result.output

    def test_cycle_exits_nonzero(self, runner, tmp_path):
        plan_file = _write_plan(tmp_path, [
            {"id": "a", "tool": "list_dir", "dependencies": ["b"]},
            {"id": "b", "tool": "list_dir", "dependencies": ["a"]},
        ])
        result = runner.invoke(cli, ["validate", plan_file])
        assert result.exit_code == 1


class TestExecuteCommand:
    def test_executes_filesystem_plan(self, runner, tmp_path):
        (tmp_path / "notes.txt").write_text("hello")
        plan_file = _write_plan(tmp_path, [
            {"id": "read", "tool": "view_file", "arguments": {"path": "notes.txt"}},
            {"id": "copy", "tool": "write_file", "dependencies": ["read"],
             "arguments": {"path": "copy.txt", "content": "hello again"}},
        ])
        result = runner.invoke(cli, ["execute", plan_file, "--root", str(tmp_path)])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "copy.txt").read_text() == "hello again"

    def test_failed_step_exits_two(self, runner, tmp_path):
        plan_file = _write_plan(tmp_path, [
            {"id": "read", "tool": "view_file", "arguments": {"path": "missing.txt"}},
        ])
        result = runner.invoke(cli, ["execute", plan_file, "--root", str(tmp_path)])
        assert result.exit_code == 2


class TestPlanFileErrors:
    @pytest.mark.parametrize("command", ["validate", "execute"])
    def test_malformed_json_exits_one(self, runner, tmp_path, command):
        path = tmp_path / "plan.json"
        path.write_text("{not json")
        result = runner.invoke(cli, [command, str(path)])
        assert result.exit_code == 1
        assert "Invalid plan file" in result.output
        assert not isinstance(result.exception, ValueError)

    def test_step_without_id_exits_one(self, runner, tmp_path):
        plan_file = _write_plan(tmp_path, [{"tool": "list_dir"}])
        result = runner.invoke(cli, ["validate", plan_file])
        assert result.exit_code == 1
        assert "Invalid plan file" in result.output

    def test_misshapen_arguments_exit_one(self, runner, tmp_path):
        plan_file = _write_plan(tmp_path, [{"id": "a", "tool": "list_dir", "arguments": ["."]}])
        result = runner.invoke(cli, ["validate", plan_file])
        assert result.exit_code == 1


class TestBuildRegistry:
    def test_includes_search(self, tmp_path):
        registry = build_registry(Settings(), tmp_path)
        assert registry.names() == ["search", "view_file", "list_dir", "write_file", "run_command"]

    async def test_search_scans_root(self, tmp_path):
        (tmp_path / "auth.py").write_text("def login(user):\n    return True\n")
        registry = build_registry(Settings(), tmp_path)
        result = await registry.get("search").execute(query="login")
        assert "Symbol: login (function)" in result.output
        assert "File: auth.py" in result.output
