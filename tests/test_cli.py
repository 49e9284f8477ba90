"""Tests for the mdnotes command line interface."""

import json

import pytest
from click.testing import CliRunner
from rich.console import Console

from mdnotes import cli


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    # Keep table cells on one line regardless of the test terminal
    monkeypatch.setattr(cli, "console", Console(width=200))


@pytest.fixture
def invoke(tmp_path):
    runner = CliRunner()
    env = {"MDNOTES_DATA_DIR": str(tmp_path / "data")}

    def _invoke(*args: str):
        return runner.invoke(cli.main, list(args), env=env)

    return _invoke


def installed_table(tmp_path) -> list[dict]:
    storage = json.loads((tmp_path / "data" / "storage.json").read_text(encoding="utf-8"))
    return json.loads(storage["installed_plugins"])


def test_list_without_plugins(invoke):
    result = invoke("list")

    assert result.exit_code == 0
    assert "No plugins installed." in result.output


def test_install_persists_across_runs(invoke, tmp_path):
    result = invoke("install", "ai-assistant")

    assert result.exit_code == 0, result.output
    assert "Installed ai-assistant: completed (state: active)" in result.output

    records = installed_table(tmp_path)
    assert [record["manifest"]["id"] for record in records] == ["ai-assistant"]
    assert records[0]["enabled"] is True

    result = invoke("list")
    assert result.exit_code == 0
    assert "AI Writing Assistant" in result.output
    assert "active" in result.output


def test_install_unknown_package(invoke):
    result = invoke("install", "git-sync")

    assert result.exit_code == 1
    assert "No plugin package named 'git-sync'" in result.output


def test_install_twice(invoke):
    invoke("install", "ai-assistant")

    result = invoke("install", "ai-assistant")

    assert result.exit_code == 1
    assert "already installed" in result.output


def test_disable_and_enable(invoke, tmp_path):
    invoke("install", "ai-assistant")

    result = invoke("disable", "ai-assistant")
    assert result.exit_code == 0
    assert "Disabled ai-assistant: completed (state: inactive)" in result.output
    assert installed_table(tmp_path)[0]["enabled"] is False

    result = invoke("contributions")
    assert "ai-assistant:ai-complete" not in result.output

    result = invoke("enable", "ai-assistant")
    assert result.exit_code == 0
    assert "Enabled ai-assistant: completed (state: active)" in result.output
    assert installed_table(tmp_path)[0]["enabled"] is True


def test_uninstall(invoke, tmp_path):
    invoke("install", "ai-assistant")

    result = invoke("uninstall", "ai-assistant")

    assert result.exit_code == 0
    assert "Uninstalled ai-assistant" in result.output
    assert installed_table(tmp_path) == []


def test_uninstall_unknown_plugin(invoke):
    result = invoke("uninstall", "ghost")

    assert result.exit_code == 1
    assert "Plugin 'ghost' is not installed" in result.output


def test_search_marks_installed(invoke):
    invoke("install", "ai-assistant")

    result = invoke("search", "translate")

    assert result.exit_code == 0
    assert "ai-assistant" in result.output
    assert "1.0.0" in result.output
    assert "git-sync" not in result.output


def test_search_without_matches(invoke):
    result = invoke("search", "spreadsheet")

    assert "No plugins match 'spreadsheet'." in result.output


def test_contributions(invoke):
    invoke("install", "ai-assistant")

    result = invoke("contributions")

    assert result.exit_code == 0
    for full_id in (
        "ai-assistant:ai-complete",
        "ai-assistant:ai-translate",
        "ai-assistant:ai-grammar",
        "ai-assistant:ai-translate-selection",
    ):
        assert full_id in result.output
    assert result.output.index("ai-assistant:ai-complete") < result.output.index(
        "ai-assistant:ai-grammar"
    )


def test_run_action_against_note(invoke, tmp_path):
    note = tmp_path / "groceries.md"
    note.write_text("# Groceries\n\nmilk, eggs", encoding="utf-8")
    invoke("install", "ai-assistant")

    result = invoke("--note", str(note), "run", "ai-assistant:ai-improve-selection")

    assert result.exit_code == 0, result.output
    assert "Select some text first" in result.output
    assert note.read_text(encoding="utf-8") == "# Groceries\n\nmilk, eggs"


def test_run_unknown_contribution(invoke):
    result = invoke("run", "ai-assistant:missing")

    assert result.exit_code == 1
    assert "did not complete" in result.output
