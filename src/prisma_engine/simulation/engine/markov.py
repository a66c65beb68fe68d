"""Markov state transitions over time.

Models how an entity's state (e.g. a driver going from ``unreliable`` to
``burned_out`` to ``quit``) evolves month to month. Each scenario may
carry its own transition matrix, so different decisions produce
different futures. Monthly state probabilities feed back into the
outcome through per-state variable effects.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import numpy as np
import structlog

from prisma_engine.data.models import BASELINE_SCENARIO_IDS, DecisionModel, MarkovEntity
from prisma_engine.exceptions import InvalidTransitionMatrixError, UnknownStateError
from prisma_engine.formula.evaluator import SCENARIO_IDENTIFIER, EvaluationError, evaluate
from prisma_engine.formula.validator import check_formula
from prisma_engine.simulation.core.scenarios import apply_scenario

logger = structlog.get_logger(__name__)

ROW_SUM_TOLERANCE = 0.01
SAMPLE_PATH_COUNT = 10
DEFAULT_MONTHS = 6

TransitionMatrix = Mapping[str, Mapping[str, float]]


@dataclass(frozen=True)
class TransitionValidation:
    """Result of checking a transition matrix."""

    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass
class MarkovResult:
    """State distribution of one entity over time.

    Attributes:
        entity_id: Simulated entity
        entity_label: Display label
        monthly_distributions: Probability of each state, month 0 to N
        sample_paths: A few individual walks for visualization
    """

    entity_id: str
    entity_label: str
    monthly_distributions: list[dict[str, float]]
    sample_paths: list[list[str]] = field(default_factory=list)

    @property
    def months(self) -> int:
        return len(self.monthly_distributions) - 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "entityId": self.entity_id,
            "entityLabel": self.entity_label,
            "monthlyDistributions": self.monthly_distributions,
            "paths": self.sample_paths,
        }


@dataclass(frozen=True)
class TimelinePoint:
    """Projected outcome for one month."""

    month: int
    outcome_median: float
    outcome_p25: float
    outcome_p75: float

    def to_dict(self) -> dict[str, float]:
        return {
            "month": self.month,
            "outcomeMedian": self.outcome_median,
            "outcomeP25": self.outcome_p25,
            "outcomeP75": self.outcome_p75,
        }


def validate_transition_matrix(transitions: TransitionMatrix) -> TransitionValidation:
    """Check that a transition matrix is well-formed.

    Every probability lies in [0, 1], every destination state is itself a
    row of the matrix, and each row sums to 1 within a small tolerance.
    """
    errors = []
    from_states = set(transitions)

    for from_state, row in transitions.items():
        for to_state, probability in row.items():
            if probability < 0 or probability > 1:
                errors.append(
                    f"Invalid probability {probability} for {from_state} -> {to_state} "
                    "(must be 0-1)"
                )
            if to_state not in from_states:
                errors.append(
                    f'State "{to_state}" referenced in transitions but not defined as a state'
                )

        total = sum(row.values())
        if abs(total - 1.0) > ROW_SUM_TOLERANCE:
            errors.append(
                f'Transition probabilities from "{from_state}" sum to {total:.3f}, not 1.0'
            )

    return TransitionValidation(valid=not errors, errors=errors)


class MarkovChain:
    """Random walks through a validated transition matrix."""

    def __init__(
        self,
        transitions: TransitionMatrix,
        random_state: Optional[int] = None,
        rng: Optional[np.random.RandomState] = None,
    ) -> None:
        """Initialize chain.

        Args:
            transitions: ``{from_state: {to_state: probability}}``
            random_state: Random seed for reproducibility
            rng: Existing random stream to draw from instead of a new one

        Raises:
            InvalidTransitionMatrixError: If the matrix is not well-formed
        """
        validation = validate_transition_matrix(transitions)
        if not validation.valid:
            logger.error("invalid_transition_matrix", errors=validation.errors)
            raise InvalidTransitionMatrixError(validation.errors)

        self.transitions = {state: dict(row) for state, row in transitions.items()}
        self.rng = rng if rng is not None else np.random.RandomState(random_state)

    def sample_next_state(self, current_state: str) -> str:
        """Draw the next state by cumulative probability.

        Raises:
            UnknownStateError: If the state has no row in the matrix
        """
        row = self.transitions.get(current_state)
        if row is None:
            raise UnknownStateError(
                f'State "{current_state}" not found in transition matrix', current_state
            )

        states = list(row)
        draw = self.rng.random_sample()
        cumulative = 0.0
        for state in states:
            cumulative += row[state]
            if draw < cumulative:
                return state

        # Rows summing to slightly under 1 fall through to the last state
        return states[-1]

    def walk_chain(self, initial_state: str, steps: int) -> list[str]:
        """Walk the chain forward.

        Returns:
            States visited, including the initial one (length ``steps + 1``)
        """
        path = [initial_state]
        current = initial_state
        for _ in range(steps):
            current = self.sample_next_state(current)
            path.append(current)
        return path


def run_markov_monte_carlo(
    entity: MarkovEntity,
    scenario_id: Optional[str] = None,
    iterations: int = 1000,
    months: int = DEFAULT_MONTHS,
    random_state: Optional[int] = None,
) -> MarkovResult:
    """Estimate an entity's monthly state distribution by repeated walks.

    Args:
        entity: Entity with its default and per-scenario matrices
        scenario_id: Scenario selecting the transition matrix
        iterations: Number of walks
        months: Months to simulate
        random_state: Random seed for reproducibility

    Returns:
        MarkovResult with one distribution per month (month 0 included)

    Raises:
        InvalidTransitionMatrixError: If the selected matrix is not well-formed
        UnknownStateError: If the initial state is missing from the matrix
    """
    chain = MarkovChain(entity.transitions_for(scenario_id), random_state=random_state)

    states = list(entity.states)
    for row_state in chain.transitions:
        if row_state not in states:
            states.append(row_state)

    counts = [dict.fromkeys(states, 0) for _ in range(months + 1)]
    sample_paths = []

    for iteration in range(iterations):
        path = chain.walk_chain(entity.initial_state, months)
        if iteration < SAMPLE_PATH_COUNT:
            sample_paths.append(path)
        for month, state in enumerate(path):
            counts[month][state] = counts[month].get(state, 0) + 1

    divisor = max(iterations, 1)
    distributions = [
        {state: count / divisor for state, count in month_counts.items()}
        for month_counts in counts
    ]

    logger.debug(
        "markov_simulation_complete",
        entity_id=entity.id,
        scenario_id=scenario_id,
        iterations=iterations,
        months=months,
    )
    return MarkovResult(
        entity_id=entity.id,
        entity_label=entity.label or entity.id,
        monthly_distributions=distributions,
        sample_paths=sample_paths,
    )


def run_all_markov(
    model: DecisionModel,
    scenario_id: Optional[str] = None,
    iterations: int = 1000,
    random_state: Optional[int] = None,
) -> dict[str, MarkovResult]:
    """Run every Markov entity of a model (empty when Markov is disabled)."""
    if model.markov is None or not model.markov.enabled:
        return {}

    rng = np.random.RandomState(random_state)
    results = {}
    for entity in model.markov.entities:
        results[entity.id] = run_markov_monte_carlo(
            entity,
            scenario_id,
            iterations,
            model.markov.months,
            random_state=int(rng.randint(0, 2**31 - 1)),
        )
    return results


def apply_state_effects(
    values: Mapping[str, float],
    state_distribution: Mapping[str, float],
    state_effects: Mapping[str, Mapping[str, float]],
) -> dict[str, float]:
    """Shift variable values by state effects weighted by state probability.

    Args:
        values: Variable values (not modified)
        state_distribution: ``{"entity.state": probability}``
        state_effects: ``{"entity.state": {variable_id: effect}}``

    Returns:
        New mapping; effects on unknown variables are ignored
    """
    modified = dict(values)
    for state_key, probability in state_distribution.items():
        for variable_id, effect in state_effects.get(state_key, {}).items():
            if variable_id in modified:
                modified[variable_id] += effect * probability
    return modified


def outcome_timeline(
    model: DecisionModel,
    scenario_id: str,
    markov_results: Mapping[str, MarkovResult],
    summary=None,
) -> list[TimelinePoint]:
    """Project the outcome month by month under the Markov state drift.

    Each month evaluates the outcome formula on the scenario's centre
    values shifted by the state effects, relative to the baseline
    reference outcome. The band around it is half the interquartile range
    of the Monte Carlo summary on each side.

    Args:
        model: Decision model with a Markov block
        scenario_id: Scenario the Markov results were run for
        markov_results: Output of :func:`run_all_markov`
        summary: Optional OutcomeSummary of the scenario's simulation

    Raises:
        UnknownScenarioError: If the scenario is not declared
    """
    scenario = model.get_scenario(scenario_id)
    centre = {v.id: v.value for v in apply_scenario(model.variables, scenario)}
    baseline_values = {v.id: v.value for v in model.variables}

    reference = _evaluate_outcome(model, baseline_values, BASELINE_SCENARIO_IDS[0])
    half_band = summary.interquartile_range / 2 if summary is not None else 0.0
    state_effects = model.markov.state_effects if model.markov else {}
    months = max((result.months for result in markov_results.values()), default=0)

    timeline = []
    for month in range(months + 1):
        state_distribution = {}
        for entity_id, result in markov_results.items():
            if month < len(result.monthly_distributions):
                for state, probability in result.monthly_distributions[month].items():
                    state_distribution[f"{entity_id}.{state}"] = probability

        modified = apply_state_effects(centre, state_distribution, state_effects)
        median = _evaluate_outcome(model, modified, scenario_id) - reference
        timeline.append(
            TimelinePoint(
                month=month,
                outcome_median=median,
                outcome_p25=median - half_band,
                outcome_p75=median + half_band,
            )
        )
    return timeline


def _evaluate_outcome(model: DecisionModel, values: Mapping[str, float], scenario_id: str) -> float:
    if not check_formula(model.outcome.formula).valid:
        return 0.0
    environment: dict[str, Any] = dict(values)
    environment[SCENARIO_IDENTIFIER] = scenario_id
    result = evaluate(model.outcome.formula, environment)
    if isinstance(result, EvaluationError):
        logger.warning("timeline_evaluation_failed", reason=result.reason)
        return 0.0
    return result
