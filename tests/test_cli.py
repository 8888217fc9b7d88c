from __future__ import annotations

import pytest
from typer.testing import CliRunner

from rust_mentor.cli import app

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "paths:\n"
        f"  state_file: {tmp_path / 'data' / 'state.json'}\n"
        f"  handle_file: {tmp_path / 'data' / 'handles.json'}\n"
        f"  export_dir: {tmp_path / 'exports'}\n"
        f"  logs_dir: {tmp_path / 'logs'}\n",
        encoding="utf-8",
    )
    return path


def test_dashboard_lists_default_curriculum(config_file):
    result = runner.invoke(app, ["dashboard", "--config", str(config_file)])
    assert result.exit_code == 0
    assert "Beginner" in result.output
    assert "Understanding Ownership" in result.output


def test_missing_config_exits_with_error(tmp_path):
    result = runner.invoke(app, ["dashboard", "--config", str(tmp_path / "nope.yaml")])
    assert result.exit_code == 1
    assert "Configuration error" in result.output


def test_language_toggle_persists(config_file):
    assert "Language: zh" in runner.invoke(app, ["language", "--config", str(config_file)]).output
    result = runner.invoke(app, ["dashboard", "--config", str(config_file)])
    assert "理解所有权" in result.output


def test_config_rejects_unknown_provider(config_file):
    result = runner.invoke(app, ["config", "--provider", "skynet", "--config", str(config_file)])
    assert result.exit_code != 0


def test_config_switches_provider(config_file):
    result = runner.invoke(app, ["config", "--provider", "claude", "--config", str(config_file)])
    assert result.exit_code == 0
    assert "Provider: claude" in result.output
    assert "(from environment)" in result.output


def test_sync_folder_push_without_folder_fails(config_file):
    result = runner.invoke(app, ["sync-folder", "--push", "--config", str(config_file)])
    assert result.exit_code == 1
    assert "No sync folder" in result.output


def test_artifacts_empty(config_file):
    result = runner.invoke(app, ["artifacts", "--config", str(config_file)])
    assert result.exit_code == 0
    assert "No artifacts yet." in result.output
