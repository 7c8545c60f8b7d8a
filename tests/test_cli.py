"""
Tests for the paranoid CLI.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from paranoid_toolkit.cli import cli, describe_types
from paranoid_toolkit.config import ParanoidConfig, set_config
from paranoid_toolkit.soft_delete import get_registry


@pytest.fixture
def runner():
    """Create a CLI runner."""
    return CliRunner()


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_cli_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Paranoid Python Toolkit" in result.output

    def test_cli_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "version" in result.output.lower()

    def test_cli_no_command(self, runner):
        result = runner.invoke(cli, [])
        assert result.exit_code == 0
        assert "Paranoid Python Toolkit" in result.output


class TestConfigCommands:
    """Test configuration-related commands."""

    def test_config_show(self, runner):
        result = runner.invoke(cli, ["config", "show"])
        assert result.exit_code == 0
        assert "default_column" in result.output

    def test_config_show_json(self, runner):
        set_config(ParanoidConfig(recovery_window_seconds=45))

        result = runner.invoke(cli, ["config", "show", "--format", "json"])

        assert result.exit_code == 0
        assert json.loads(result.output)["recovery_window_seconds"] == 45

    def test_config_show_yaml(self, runner):
        result = runner.invoke(cli, ["config", "show", "--format", "yaml"])
        assert result.exit_code == 0
        assert "default_column: deleted_at" in result.output

    def test_config_validate(self, runner):
        result = runner.invoke(cli, ["config", "validate"])
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output

    def test_config_validate_warnings(self, runner):
        set_config(
            ParanoidConfig(recovery_window_seconds=0, install_default_scope=False)
        )

        result = runner.invoke(cli, ["config", "validate"])

        assert result.exit_code == 0
        assert "Recovery window is zero" in result.output
        assert "Default scope disabled" in result.output

    @patch("paranoid_toolkit.cli.get_config")
    def test_config_validate_invalid(self, mock_get_config, runner):
        mock_get_config.side_effect = ValueError("bad recovery window")

        result = runner.invoke(cli, ["config", "validate"])

        assert result.exit_code == 1
        assert "validation failed" in result.output


class TestTypesCommand:
    """Test listing registered types."""

    def test_types_json(self, runner):
        result = runner.invoke(cli, ["types", "tests.models", "--format", "json"])

        assert result.exit_code == 0
        types = {item["type"]: item for item in json.loads(result.output)}
        assert types["Account"]["column_type"] == "boolean"
        assert types["Ticket"]["deleted_value"] == "gone"
        assert {d["name"] for d in types["Post"]["dependencies"]} == {
            "comments",
            "tags",
        }
        assert types["Gallery"]["dependencies"][0]["kind"] == "polymorphic"

    def test_types_table(self, runner):
        result = runner.invoke(cli, ["types", "tests.models"])
        assert result.exit_code == 0
        assert "Paranoid Types" in result.output

    def test_types_unknown_module(self, runner):
        result = runner.invoke(cli, ["types", "no_such_models_module"])
        assert result.exit_code == 1
        assert "Error importing" in result.output

    def test_describe_types(self):
        summary = describe_types(get_registry())
        post = next(item for item in summary if item["type"] == "Post")
        assert post["recovery_window_seconds"] == 120
        assert post["recursive"] is True
