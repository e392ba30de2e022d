"""
Unit tests for tradestats.cli.commands.analyze.

Tests cover:
- Trade file loading (JSON list, YAML mapping, invalid shapes)
- CLI option overrides of file settings
- Table and JSON output
- Error handling and exit codes

All runs use --sync so no worker process is spawned.
"""

import json
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from tradestats.cli.commands.analyze import analyze_command, load_trades_file
from tradestats.cli.main import main
from tradestats.system import LoggerFactory


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Run every command away from any project config file."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("TRADESTATS_CONFIG", raising=False)
    yield
    LoggerFactory.reset()


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def trades_json(tmp_path, ten_trades):
    path = tmp_path / "trades.json"
    path.write_text(json.dumps(ten_trades))
    return path


@pytest.fixture
def trades_yaml(tmp_path, ten_trades):
    path = tmp_path / "journal.yaml"
    path.write_text(yaml.safe_dump({"trades": ten_trades, "settings": {"mcRuns": 200, "seed": 11}}))
    return path


class TestLoadTradesFile:
    def test_json_list(self, trades_json):
        trades, settings = load_trades_file(trades_json)

        assert len(trades) == 10
        assert settings == {}

    def test_yaml_mapping(self, trades_yaml):
        trades, settings = load_trades_file(trades_yaml)

        assert len(trades) == 10
        assert settings == {"mcRuns": 200, "seed": 11}

    def test_mapping_without_trades(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("settings:\n  mcRuns: 5\n")

        trades, settings = load_trades_file(path)

        assert trades == []
        assert settings == {"mcRuns": 5}

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("[{")

        with pytest.raises(ValueError, match="Cannot parse"):
            load_trades_file(path)

    @pytest.mark.parametrize("content", ["just text\n", "trades: 5\n"])
    def test_wrong_shape(self, tmp_path, content):
        path = tmp_path / "bad.yaml"
        path.write_text(content)

        with pytest.raises(ValueError, match="must contain a list"):
            load_trades_file(path)

    def test_settings_must_be_mapping(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("trades: []\nsettings: [1, 2]\n")

        with pytest.raises(ValueError, match="must be a mapping"):
            load_trades_file(path)


class TestAnalyzeCommand:
    def test_prints_report(self, cli_runner, trades_json):
        # Act
        result = cli_runner.invoke(analyze_command, [str(trades_json), "--sync"])

        # Assert
        assert result.exit_code == 0, result.output
        assert "Performance Summary" in result.output
        assert "By Day of Week" in result.output
        assert "By Playbook" in result.output
        assert "sync mode" in result.output

    def test_json_output(self, cli_runner, trades_json):
        result = cli_runner.invoke(analyze_command, [str(trades_json), "--sync", "--json"])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["trade_count"] == 10
        assert payload["total_pnl"] == 1570
        assert payload["risk"]["runs"] == 0

    def test_file_settings_are_used(self, cli_runner, trades_yaml):
        result = cli_runner.invoke(analyze_command, [str(trades_yaml), "--sync", "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["risk"]["runs"] == 200

    def test_options_override_file_settings(self, cli_runner, trades_yaml):
        result = cli_runner.invoke(analyze_command, [str(trades_yaml), "--sync", "--json", "--mc-runs", "50"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["risk"]["runs"] == 50

    def test_seed_makes_output_reproducible(self, cli_runner, trades_json):
        args = [str(trades_json), "--sync", "--json", "--mc-runs", "300", "--seed", "7"]

        first = json.loads(cli_runner.invoke(analyze_command, args).stdout)
        second = json.loads(cli_runner.invoke(analyze_command, args).stdout)

        assert first["risk"] == second["risk"]

    def test_negative_mc_runs_rejected(self, cli_runner, trades_json):
        result = cli_runner.invoke(analyze_command, [str(trades_json), "--mc-runs", "-1"])

        assert result.exit_code == 2

    def test_no_valid_trades(self, cli_runner, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text("[]")

        result = cli_runner.invoke(analyze_command, [str(path), "--sync"])

        assert result.exit_code == 0
        assert "No valid trades" in result.output

    def test_no_valid_trades_json_is_null(self, cli_runner, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text("[]")

        result = cli_runner.invoke(analyze_command, [str(path), "--sync", "--json"])

        assert result.exit_code == 0
        assert result.stdout.strip() == "null"

    def test_missing_file(self, cli_runner, tmp_path):
        result = cli_runner.invoke(analyze_command, [str(tmp_path / "missing.json")])

        assert result.exit_code == 2

    def test_invalid_file_exits_with_error(self, cli_runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('"not trades"')

        result = cli_runner.invoke(analyze_command, [str(path), "--sync"])

        assert result.exit_code == 1
        assert "Analysis failed" in result.output

    def test_compute_failure_exits_with_error(self, cli_runner, trades_json):
        with patch("tradestats.services.compute.bridge.compute_analytics", side_effect=RuntimeError("boom")):
            result = cli_runner.invoke(analyze_command, [str(trades_json), "--sync"])

        assert result.exit_code == 1
        assert "boom" in result.output

    def test_log_level_option(self, cli_runner, trades_json):
        result = cli_runner.invoke(analyze_command, [str(trades_json), "--sync", "-l", "warning"])

        assert result.exit_code == 0, result.output


class TestMainGroup:
    def test_version(self, cli_runner):
        result = cli_runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert "tradestats, version" in result.output

    def test_config_option_selects_system_config(self, cli_runner, tmp_path, trades_json, monkeypatch):
        # Arrange
        monkeypatch.setenv("TRADESTATS_CONFIG", "unused.yaml")
        config = tmp_path / "custom.yaml"
        config.write_text("compute:\n  use_worker: false\n")

        # Act
        result = cli_runner.invoke(main, ["--config", str(config), "analyze", str(trades_json)])

        # Assert
        assert result.exit_code == 0, result.output
        assert "sync mode" in result.output

    def test_analyze_registered(self, cli_runner):
        result = cli_runner.invoke(main, ["analyze", "--help"])

        assert result.exit_code == 0
        assert "--mc-runs" in result.output
