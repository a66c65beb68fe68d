"""Tests for the Click and Rich command line interface."""

import json

from click.testing import CliRunner
import pandas as pd
import pytest
import structlog

from prisma_engine import __version__
from prisma_engine.cli import cli
from prisma_engine.data.fixtures import demo_payload


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep structlog output out of the captured command output."""
    monkeypatch.setattr("prisma_engine.cli.configure_logging", lambda **kwargs: None)
    structlog.configure(logger_factory=structlog.ReturnLoggerFactory())
    yield
    structlog.configure(logger_factory=structlog.PrintLoggerFactory())


@pytest.fixture
def runner():
    """Create Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "delivery.json"
    path.write_text(json.dumps(demo_payload()))
    return str(path)


@pytest.fixture
def investment_file(tmp_path, investment_payload):
    path = tmp_path / "investment.json"
    path.write_text(json.dumps(investment_payload))
    return str(path)


@pytest.fixture
def broken_file(tmp_path, simple_payload):
    simple_payload["outcome"]["formula"] = "daily_delivery * 10"
    path = tmp_path / "broken.json"
    path.write_text(json.dumps(simple_payload))
    return str(path)


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_cli_help(self, runner):
        """Test that CLI help works."""
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("validate", "simulate", "sensitivity", "demo"):
            assert command in result.output

    def test_cli_version(self, runner):
        """Test version flag."""
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_missing_file(self, runner):
        result = runner.invoke(cli, ["validate", "does-not-exist.json"])
        assert result.exit_code == 2

    def test_not_json(self, runner, tmp_path):
        path = tmp_path / "model.json"
        path.write_text("{not json")
        result = runner.invoke(cli, ["validate", str(path)])
        assert result.exit_code == 1


class TestValidateCommand:
    """Test the validate command."""

    def test_valid_model(self, runner, model_file):
        result = runner.invoke(cli, ["validate", model_file])
        assert result.exit_code == 0
        assert "Model is valid" in result.output

    def test_invalid_model_shows_correction(self, runner, broken_file):
        result = runner.invoke(cli, ["validate", broken_file])
        assert result.exit_code == 1
        assert "Correction" in result.output
        assert "daily_delivery" in result.output

    def test_json_format(self, runner, broken_file):
        result = runner.invoke(cli, ["validate", broken_file, "--format", "json"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["valid"] is False
        assert data["reason"] == "formula_mismatch"
        assert data["unknownIdentifiers"] == ["daily_delivery"]
        assert "`daily_deliveries`" in data["retryHint"]

    def test_json_format_valid(self, runner, model_file):
        result = runner.invoke(cli, ["validate", model_file, "-f", "json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["retryHint"] is None


class TestSimulateCommand:
    """Test the simulate command."""

    def test_table_output(self, runner, investment_file):
        result = runner.invoke(cli, ["simulate", investment_file, "-n", "200", "--seed", "1"])
        assert result.exit_code == 0, result.output
        assert "aggressive:" in result.output
        assert "conservative:" in result.output

    def test_json_output(self, runner, investment_file):
        result = runner.invoke(
            cli, ["simulate", investment_file, "-n", "200", "--seed", "1", "-f", "json"]
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert list(data) == ["nothing", "aggressive", "conservative"]
        assert data["aggressive"]["summary"]["median"] > data["conservative"]["summary"]["median"]
        assert data["conservative"]["assessment"]["classification"] == "HIGH_RISK"
        assert "outcomes" not in data["aggressive"]

    def test_selected_scenarios(self, runner, investment_file):
        result = runner.invoke(
            cli, ["simulate", investment_file, "-n", "50", "-s", "aggressive", "-f", "json"]
        )
        assert result.exit_code == 0, result.output
        assert list(json.loads(result.stdout)) == ["aggressive"]

    def test_seed_reproduces(self, runner, investment_file):
        args = ["simulate", investment_file, "-n", "100", "--seed", "9", "-f", "json"]
        first = json.loads(runner.invoke(cli, args).stdout)
        second = json.loads(runner.invoke(cli, args).stdout)
        assert first == second

    def test_csv_export(self, runner, investment_file, tmp_path):
        output = tmp_path / "outcomes.csv"
        result = runner.invoke(
            cli, ["simulate", investment_file, "-n", "50", "--seed", "2", "-o", str(output)]
        )
        assert result.exit_code == 0, result.output
        frame = pd.read_csv(output, index_col="iteration")
        assert list(frame.columns) == ["nothing", "aggressive", "conservative"]
        assert len(frame) == 50

    def test_unknown_scenario(self, runner, investment_file):
        result = runner.invoke(cli, ["simulate", investment_file, "-n", "10", "-s", "ghost"])
        assert result.exit_code == 1

    def test_invalid_model(self, runner, broken_file):
        result = runner.invoke(cli, ["simulate", broken_file])
        assert result.exit_code == 1


class TestSensitivityCommand:
    """Test the sensitivity command."""

    def test_requires_scenario(self, runner, investment_file):
        result = runner.invoke(cli, ["sensitivity", investment_file])
        assert result.exit_code == 2

    def test_json_output(self, runner, model_file):
        result = runner.invoke(
            cli,
            ["sensitivity", model_file, "-s", "hire_two_drivers", "-n", "100",
             "--seed", "4", "-f", "json"],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["mostSensitiveVariable"] == "daily_deliveries"
        assert data["unit"] == "€/month"
        assert len(data["results"]) == 11

    def test_table_output(self, runner, investment_file):
        result = runner.invoke(
            cli, ["sensitivity", investment_file, "-s", "aggressive", "-n", "100", "--seed", "4"]
        )
        assert result.exit_code == 0, result.output
        assert "Key findings" in result.output
        assert "Annual Return" in result.output

    def test_unknown_scenario(self, runner, investment_file):
        result = runner.invoke(cli, ["sensitivity", investment_file, "-s", "ghost"])
        assert result.exit_code == 1


class TestDemoCommand:
    """Test the demo command."""

    def test_export(self, runner, tmp_path):
        path = tmp_path / "demo.json"
        result = runner.invoke(cli, ["demo", "--export", str(path)])
        assert result.exit_code == 0
        payload = json.loads(path.read_text())
        assert len(payload["variables"]) == 12
        assert payload["edges"][0]["from"] == "driver_count"

    def test_exported_model_validates(self, runner, tmp_path):
        path = tmp_path / "demo.json"
        runner.invoke(cli, ["demo", "--export", str(path)])
        result = runner.invoke(cli, ["validate", str(path)])
        assert result.exit_code == 0

    @pytest.mark.slow
    def test_demo_run(self, runner, monkeypatch):
        monkeypatch.setenv("PRISMA_SENSITIVITY_ITERATIONS", "50")
        monkeypatch.setenv("PRISMA_STRESS_ITERATIONS", "50")
        result = runner.invoke(cli, ["demo", "-n", "100", "--seed", "3"])
        assert result.exit_code == 0, result.output
        assert "Delivery business demo" in result.output
        assert "What matters most" in result.output
        assert "Month" in result.output
