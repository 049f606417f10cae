"""Tests for the Moodle MCP CLI."""

import json

import pytest
from click.testing import CliRunner

from moodle_mcp import cli
from moodle_mcp.cli import main
from moodle_mcp.config import Config
from conftest import FakeMoodle, make_client


class TestCLI:
    @pytest.fixture
    def runner(self):
        return CliRunner()

    @pytest.fixture
    def configured(self, monkeypatch):
        monkeypatch.setattr(Config, "MOODLE_URL", "https://moodle.test")
        monkeypatch.setattr(Config, "MOODLE_USERNAME", "student")
        monkeypatch.setattr(Config, "MOODLE_PASSWORD", "secret")

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_init(self, runner, tmp_data_dir):
        result = runner.invoke(main, ["init"])
        assert result.exit_code == 0
        assert "Moodle MCP initialized" in result.output
        content = (tmp_data_dir / "config.env").read_text()
        assert "MOODLE_URL" in content

    def test_init_preserves_existing_config(self, runner, tmp_data_dir):
        config_env = tmp_data_dir / "config.env"
        config_env.write_text("MOODLE_URL=https://mine.test\n")

        result = runner.invoke(main, ["init"])
        assert result.exit_code == 0
        assert config_env.read_text() == "MOODLE_URL=https://mine.test\n"

    def test_mcp_config(self, runner):
        result = runner.invoke(main, ["mcp-config"])
        assert result.exit_code == 0
        snippet = result.output[result.output.index("{"):result.output.rindex("}") + 1]
        server = json.loads(snippet)["mcpServers"]["moodle"]
        assert server["args"][-1] == "server"
        assert "MOODLE_URL" in server["env"]

    def test_server_refuses_without_config(self, runner, monkeypatch):
        monkeypatch.setattr(Config, "MOODLE_URL", "")
        monkeypatch.setattr(Config, "MOODLE_USERNAME", "")
        monkeypatch.setattr(Config, "MOODLE_PASSWORD", "")
        result = runner.invoke(main, ["server"])
        assert result.exit_code == 1
        assert "MOODLE_URL" in result.output

    def test_check(self, runner, configured, monkeypatch):
        fake = FakeMoodle()
        monkeypatch.setattr(
            "moodle_mcp.moodle.client.MoodleClient",
            lambda settings: make_client(fake, settings),
        )
        result = runner.invoke(main, ["check"])
        assert result.exit_code == 0, result.output
        assert "Sam Student" in result.output
        assert "Enrolled courses: 3" in result.output
        assert "[3] Chemistry (CHEM)" in result.output

    def test_check_bad_password(self, runner, configured, monkeypatch):
        monkeypatch.setattr(Config, "MOODLE_PASSWORD", "wrong")
        fake = FakeMoodle()
        monkeypatch.setattr(
            "moodle_mcp.moodle.client.MoodleClient",
            lambda settings: make_client(fake, settings),
        )
        result = runner.invoke(main, ["check"])
        assert result.exit_code == 1
        assert "invalidlogin" in result.output
