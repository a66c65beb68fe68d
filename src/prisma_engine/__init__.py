"""Prisma: Monte Carlo decision simulation engine.

Turns a decision model (uncertain variables, causal edges, scenarios and
an outcome formula) into outcome distributions per scenario, risk tiers,
plain-language verdicts and a sensitivity ranking.
"""

__version__ = "0.1.0"

from prisma_engine.data.models import DecisionModel
from prisma_engine.data.validation import load_model, validate_payload
from prisma_engine.exceptions import (
    FormulaError,
    FormulaRejectedError,
    FormulaSyntaxError,
    MalformedModelError,
    PrismaError,
    UnknownScenarioError,
    UnknownStateError,
    UnknownVariableError,
)
from prisma_engine.session import DecisionSession, SessionSnapshot
from prisma_engine.simulation.analysis.risk import RiskTier
from prisma_engine.simulation.analysis.sensitivity_analyzer import SensitivityAnalyzer
from prisma_engine.simulation.engine.simulator import MonteCarloSimulator, SimulationResult

__all__ = [
    "__version__",
    "DecisionModel",
    "DecisionSession",
    "FormulaError",
    "FormulaRejectedError",
    "FormulaSyntaxError",
    "MalformedModelError",
    "MonteCarloSimulator",
    "PrismaError",
    "RiskTier",
    "SensitivityAnalyzer",
    "SessionSnapshot",
    "SimulationResult",
    "UnknownScenarioError",
    "UnknownStateError",
    "UnknownVariableError",
    "load_model",
    "validate_payload",
]
