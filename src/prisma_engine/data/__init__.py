"""Decision model schema and bundled fixtures.

Payload validation lives in :mod:`prisma_engine.data.validation`.
"""

from prisma_engine.data.fixtures import demo_model, demo_payload
from prisma_engine.data.models import (
    BASELINE_SCENARIO_IDS,
    DecisionModel,
    Direction,
    Distribution,
    Edge,
    Effect,
    MarkovConfig,
    MarkovEntity,
    Outcome,
    Scenario,
    ScenarioChange,
    Variable,
)

__all__ = [
    "BASELINE_SCENARIO_IDS",
    "DecisionModel",
    "Direction",
    "Distribution",
    "Edge",
    "Effect",
    "MarkovConfig",
    "MarkovEntity",
    "Outcome",
    "Scenario",
    "ScenarioChange",
    "Variable",
    "demo_model",
    "demo_payload",
]
