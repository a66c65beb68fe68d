"""Analysis tools for simulated outcome distributions."""

from prisma_engine.simulation.analysis.risk import (
    RiskAssessment,
    RiskClassifier,
    RiskTier,
    Verdict,
    VolatilityResponse,
    classify,
    classify_all_scenarios,
    create_stress_model,
    decision_score,
    format_number,
    verdict,
)
from prisma_engine.simulation.analysis.sensitivity_analyzer import (
    SensitivityAnalyzer,
    SensitivityResult,
    StagedSensitivity,
    top_variables,
)
from prisma_engine.simulation.analysis.sensitivity_report import (
    SensitivityReport,
    TornadoChartData,
)
from prisma_engine.simulation.analysis.statistics import OutcomeSummary, summarize

__all__ = [
    # Statistics
    "OutcomeSummary",
    "summarize",
    # Risk
    "RiskAssessment",
    "RiskClassifier",
    "RiskTier",
    "Verdict",
    "VolatilityResponse",
    "classify",
    "classify_all_scenarios",
    "create_stress_model",
    "decision_score",
    "format_number",
    "verdict",
    # Sensitivity Analysis
    "SensitivityAnalyzer",
    "SensitivityResult",
    "StagedSensitivity",
    "top_variables",
    "SensitivityReport",
    "TornadoChartData",
]
