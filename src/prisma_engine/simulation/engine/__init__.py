"""Monte Carlo simulation and Markov state engines."""

from prisma_engine.simulation.engine.markov import (
    MarkovChain,
    MarkovResult,
    TimelinePoint,
    TransitionValidation,
    apply_state_effects,
    outcome_timeline,
    run_all_markov,
    run_markov_monte_carlo,
    validate_transition_matrix,
)
from prisma_engine.simulation.engine.simulator import (
    MonteCarloSimulator,
    SimulationResult,
)

__all__ = [
    "MarkovChain",
    "MarkovResult",
    "MonteCarloSimulator",
    "SimulationResult",
    "TimelinePoint",
    "TransitionValidation",
    "apply_state_effects",
    "outcome_timeline",
    "run_all_markov",
    "run_markov_monte_carlo",
    "validate_transition_matrix",
]
