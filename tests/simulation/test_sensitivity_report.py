"""Unit tests for sensitivity analysis reports."""

import json

import pytest

from prisma_engine.simulation.analysis.sensitivity_analyzer import SensitivityResult
from prisma_engine.simulation.analysis.sensitivity_report import (
    SensitivityReport,
    TornadoChartData,
)


class TestSensitivityReport:
    """Test SensitivityReport class."""

    @pytest.fixture
    def results(self):
        """A ranking as SensitivityAnalyzer would return it."""
        return [
            SensitivityResult("daily_deliveries", "Daily Deliveries", -10320.0, 15480.0, 25800.0, 3900.0),
            SensitivityResult("cost_per_delivery", "Cost per Delivery", 1500.0, 2100.0, 600.0, 3900.0),
            SensitivityResult("fuel_cost_monthly", "Monthly Fuel Cost", -300.0, -100.0, 200.0, 3900.0),
            SensitivityResult("overtime_hours_weekly", "Overtime", 0.0, 0.0, 0.0, 3900.0),
        ]

    @pytest.fixture
    def report(self, results):
        return SensitivityReport(results, outcome_unit="€/month", outcome_label="Monthly Profit Change")

    def test_sensitivity_report_creation(self, report, results):
        """Test creating sensitivity report."""
        assert report.results == results
        assert report.baseline_median == 3900

    def test_generate_summary_text(self, report):
        """Test generating summary text."""
        summary = report.generate_summary_text()

        assert "SENSITIVITY ANALYSIS REPORT" in summary
        assert "Outcome: Monthly Profit Change" in summary
        assert "Baseline Median: 3,900 €/month" in summary
        assert "Variables Analyzed: 4" in summary
        assert "1. Daily Deliveries (daily_deliveries):" in summary
        assert "At Minimum:   -10,320 €/month" in summary
        assert "Total Swing:  25,800 €/month" in summary

    def test_get_table_data(self, report):
        """Test getting table data."""
        table_data = report.get_table_data()

        assert len(table_data) == 4
        assert table_data[0]["rank"] == 1
        assert table_data[0]["variable_id"] == "daily_deliveries"
        assert table_data[0]["share_of_swing"] == pytest.approx(25800 / 26600)
        assert table_data[3]["share_of_swing"] == 0

    def test_get_tornado_chart_data(self, report):
        """Test getting tornado chart data."""
        chart = report.get_tornado_chart_data()

        assert isinstance(chart, TornadoChartData)
        assert chart.outcome_label == "Monthly Profit Change"
        assert chart.variables["daily_deliveries"] == (-10320.0, 15480.0)
        assert chart.labels["fuel_cost_monthly"] == "Monthly Fuel Cost"
        assert chart.baseline_median == 3900

    def test_most_and_least_sensitive(self, report):
        assert report.get_most_sensitive_variable() == ("daily_deliveries", 25800.0)
        assert report.get_least_sensitive_variable() == ("overtime_hours_weekly", 0.0)

    def test_key_findings(self, report):
        """Test generating key findings."""
        findings = report.get_key_findings()

        assert findings[0] == (
            "Daily Deliveries drives the most uncertainty (swing 25,800 €/month, 97% of total)"
        )
        assert "Cost per Delivery swings the outcome by 600 €/month" in findings
        assert "Cost per Delivery keeps the median above baseline across its whole range" in findings
        assert "Monthly Fuel Cost keeps the median below baseline across its whole range" in findings
        assert findings[-1] == "No measurable effect: Overtime"

    def test_top_n_limits_findings(self, report):
        findings = report.get_key_findings(top_n=1)
        assert not any("swings the outcome by" in finding for finding in findings)

    def test_export_json(self, report):
        """Test exporting report as JSON."""
        data = json.loads(report.export_json())

        assert data["outcomeLabel"] == "Monthly Profit Change"
        assert data["unit"] == "€/month"
        assert data["baselineMedian"] == 3900
        assert data["mostSensitiveVariable"] == "daily_deliveries"
        assert data["leastSensitiveVariable"] == "overtime_hours_weekly"
        assert data["results"][0]["totalSwing"] == 25800
        assert data["keyFindings"]

    def test_empty_report(self):
        report = SensitivityReport([])
        assert report.baseline_median == 0
        assert report.get_most_sensitive_variable() is None
        assert report.get_least_sensitive_variable() is None
        assert report.get_key_findings() == ["No uncertain variables to analyze"]
        assert json.loads(report.export_json())["mostSensitiveVariable"] is None

    def test_no_unit(self, results):
        summary = SensitivityReport(results).generate_summary_text()
        assert "Baseline Median: 3,900\n" in summary
        assert "Outcome: Outcome" in summary
