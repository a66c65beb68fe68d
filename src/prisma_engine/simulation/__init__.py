"""Decision simulation and what-if analysis engine.

Main Components:
- Core: Distribution sampling, scenario application, causal propagation
- Engine: Monte Carlo simulator and Markov state engine
- Analysis: Statistics, risk classification, sensitivity analysis
"""

from prisma_engine.simulation.core.distributions import DistributionSampler
from prisma_engine.simulation.core.graph import CausalGraph
from prisma_engine.simulation.engine.markov import (
    MarkovChain,
    MarkovResult,
    outcome_timeline,
    run_all_markov,
)
from prisma_engine.simulation.engine.simulator import (
    MonteCarloSimulator,
    SimulationResult,
)
from prisma_engine.simulation.analysis.risk import (
    RiskAssessment,
    RiskClassifier,
    RiskTier,
    classify_all_scenarios,
    verdict,
)
from prisma_engine.simulation.analysis.sensitivity_analyzer import (
    SensitivityAnalyzer,
    SensitivityResult,
)
from prisma_engine.simulation.analysis.sensitivity_report import (
    SensitivityReport,
    TornadoChartData,
)
from prisma_engine.simulation.analysis.statistics import OutcomeSummary, summarize

__all__ = [
    # Core
    "CausalGraph",
    "DistributionSampler",
    # Engine
    "MarkovChain",
    "MarkovResult",
    "MonteCarloSimulator",
    "SimulationResult",
    "outcome_timeline",
    "run_all_markov",
    # Analysis - Statistics and risk
    "OutcomeSummary",
    "RiskAssessment",
    "RiskClassifier",
    "RiskTier",
    "classify_all_scenarios",
    "summarize",
    "verdict",
    # Analysis - Sensitivity
    "SensitivityAnalyzer",
    "SensitivityResult",
    "SensitivityReport",
    "TornadoChartData",
]
