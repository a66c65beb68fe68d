"""Reporting and visualization data for sensitivity analysis."""

from dataclasses import dataclass
import json
from typing import Any, Dict, List, Optional, Tuple

from prisma_engine.simulation.analysis.risk import format_number
from prisma_engine.simulation.analysis.sensitivity_analyzer import SensitivityResult


@dataclass
class TornadoChartData:
    """Data for tornado chart visualization."""

    outcome_label: str
    variables: Dict[str, Tuple[float, float]]  # variable_id -> (impact_low, impact_high)
    labels: Dict[str, str]
    baseline_median: float


class SensitivityReport:
    """Generate reports and visualization data from a sensitivity ranking."""

    def __init__(
        self,
        results: List[SensitivityResult],
        outcome_unit: str = "",
        outcome_label: str = "Outcome",
    ):
        """Initialize report generator.

        Args:
            results: Ranking from SensitivityAnalyzer, most impactful first
            outcome_unit: Display unit of the outcome
            outcome_label: Label of the outcome the swings are measured on
        """
        self.results = results
        self.outcome_label = outcome_label
        self.unit = outcome_unit

    @property
    def baseline_median(self) -> float:
        return self.results[0].baseline_median if self.results else 0.0

    def generate_summary_text(self) -> str:
        """Generate human-readable summary of the sensitivity ranking.

        Returns:
            Formatted summary text
        """
        lines = []
        lines.append("=" * 70)
        lines.append("SENSITIVITY ANALYSIS REPORT")
        lines.append("=" * 70)
        lines.append("")

        lines.append(f"Outcome: {self.outcome_label}")
        lines.append(f"Baseline Median: {self._money(self.baseline_median)}")
        lines.append(f"Variables Analyzed: {len(self.results)}")
        lines.append("")

        lines.append("SWING BY VARIABLE:")
        lines.append("-" * 70)

        for rank, result in enumerate(self.results, start=1):
            lines.append(f"\n{rank}. {result.variable_label} ({result.variable_id}):")
            lines.append(f"  At Minimum:   {self._signed(result.impact_low)}")
            lines.append(f"  At Maximum:   {self._signed(result.impact_high)}")
            lines.append(f"  Total Swing:  {self._money(result.total_swing)}")

        lines.append("\n" + "=" * 70)
        return "\n".join(lines)

    def get_table_data(self) -> List[Dict[str, Any]]:
        """Get sensitivity metrics as table data.

        Returns:
            List of dictionaries suitable for DataFrame conversion
        """
        return [
            {
                "rank": rank,
                "variable_id": result.variable_id,
                "variable_label": result.variable_label,
                "impact_low": result.impact_low,
                "impact_high": result.impact_high,
                "total_swing": result.total_swing,
                "share_of_swing": self._share(result),
            }
            for rank, result in enumerate(self.results, start=1)
        ]

    def get_tornado_chart_data(self) -> TornadoChartData:
        """Get data for tornado chart visualization.

        Returns:
            TornadoChartData with low/high impacts for each variable
        """
        return TornadoChartData(
            outcome_label=self.outcome_label,
            variables={r.variable_id: (r.impact_low, r.impact_high) for r in self.results},
            labels={r.variable_id: r.variable_label for r in self.results},
            baseline_median=self.baseline_median,
        )

    def get_most_sensitive_variable(self) -> Optional[Tuple[str, float]]:
        """Variable with the largest swing, or None for an empty ranking."""
        if not self.results:
            return None
        top = max(self.results, key=lambda result: result.total_swing)
        return top.variable_id, top.total_swing

    def get_least_sensitive_variable(self) -> Optional[Tuple[str, float]]:
        """Variable with the smallest swing, or None for an empty ranking."""
        if not self.results:
            return None
        bottom = min(self.results, key=lambda result: result.total_swing)
        return bottom.variable_id, bottom.total_swing

    def get_key_findings(self, top_n: int = 3) -> List[str]:
        """Generate key findings from the ranking.

        Returns:
            List of key finding strings
        """
        if not self.results:
            return ["No uncertain variables to analyze"]

        findings = []
        top = self.results[0]
        findings.append(
            f"{top.variable_label} drives the most uncertainty "
            f"(swing {self._money(top.total_swing)}, {self._share(top):.0%} of total)"
        )

        for result in self.results[1:top_n]:
            findings.append(
                f"{result.variable_label} swings the outcome by {self._money(result.total_swing)}"
            )

        for result in self.results[:top_n]:
            if min(result.impact_low, result.impact_high) > 0:
                direction = "above"
            elif max(result.impact_low, result.impact_high) < 0:
                direction = "below"
            else:
                continue
            findings.append(
                f"{result.variable_label} keeps the median {direction} baseline "
                "across its whole range"
            )

        negligible = [r.variable_label for r in self.results if r.total_swing == 0]
        if negligible:
            findings.append(f"No measurable effect: {', '.join(negligible)}")

        return findings

    def export_json(self) -> str:
        """Export report as JSON string.

        Returns:
            JSON string with all report data
        """
        most = self.get_most_sensitive_variable()
        least = self.get_least_sensitive_variable()
        report = {
            "outcomeLabel": self.outcome_label,
            "unit": self.unit,
            "baselineMedian": self.baseline_median,
            "results": [result.to_dict() for result in self.results],
            "mostSensitiveVariable": most[0] if most else None,
            "leastSensitiveVariable": least[0] if least else None,
            "keyFindings": self.get_key_findings(),
        }
        return json.dumps(report, indent=2)

    def _share(self, result: SensitivityResult) -> float:
        total = sum(r.total_swing for r in self.results)
        return result.total_swing / total if total > 0 else 0.0

    def _money(self, value: float) -> str:
        suffix = f" {self.unit}" if self.unit else ""
        return f"{format_number(value)}{suffix}"

    def _signed(self, value: float) -> str:
        sign = "+" if value >= 0 else "-"
        return f"{sign}{self._money(abs(value))}"
