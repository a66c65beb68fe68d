"""Monte Carlo decision simulator."""

from dataclasses import dataclass, field
import time
from typing import Any, Optional

import numpy as np
import structlog

from prisma_engine.config import SimulationConfig, get_config
from prisma_engine.data.models import BASELINE_SCENARIO_IDS, DecisionModel
from prisma_engine.exceptions import FormulaError
from prisma_engine.formula.evaluator import (
    RESERVED_IDENTIFIERS,
    SCENARIO_IDENTIFIER,
    CompiledExpression,
    EvaluationError,
    compile_formula,
)
from prisma_engine.logging_config import log_simulation_run
from prisma_engine.simulation.analysis.statistics import OutcomeSummary, summarize
from prisma_engine.simulation.core.distributions import DistributionSampler
from prisma_engine.simulation.core.graph import CausalGraph
from prisma_engine.simulation.core.scenarios import apply_scenario

logger = structlog.get_logger(__name__)

# Scenario id injected when evaluating the no-uncertainty reference
BASELINE_REFERENCE_SCENARIO = BASELINE_SCENARIO_IDS[0]


@dataclass
class SimulationResult:
    """Outcome distribution of one scenario.

    Attributes:
        scenario_id: Simulated scenario
        outcomes: Baseline-relative outcomes, one per iteration (read-only)
        summary: Summary statistics of ``outcomes``
        baseline_outcome: Reference outcome subtracted from every iteration
        failed_iterations: Iterations whose outcome could not be evaluated
        formula_rejected: Whether the outcome formula failed validation
    """

    scenario_id: str
    outcomes: np.ndarray
    summary: OutcomeSummary
    baseline_outcome: float = 0.0
    failed_iterations: int = 0
    formula_rejected: bool = False
    duration_ms: float = field(default=0.0, compare=False)

    @property
    def iterations(self) -> int:
        return len(self.outcomes)

    @property
    def median(self) -> float:
        return self.summary.median

    def to_dict(self, include_outcomes: bool = True) -> dict[str, Any]:
        """Wire representation with camelCase keys."""
        data: dict[str, Any] = {
            "scenarioId": self.scenario_id,
            "summary": self.summary.to_dict(),
            "baselineOutcome": self.baseline_outcome,
            "failedIterations": self.failed_iterations,
            "formulaRejected": self.formula_rejected,
        }
        if include_outcomes:
            data["outcomes"] = self.outcomes.tolist()
        return data


class MonteCarloSimulator:
    """Execute Monte Carlo simulations of a decision model.

    Each iteration samples every scenario variable, propagates derived
    values through the causal edges and evaluates the outcome formula.
    Outcomes are reported relative to a no-uncertainty reference
    evaluation of the baseline model.

    The outcome formula is evaluated against the raw sampled values.
    Edge-derived values are only visible to it for identifiers that have
    no sampled value of their own.
    """

    def __init__(
        self,
        random_state: Optional[int] = None,
        config: Optional[SimulationConfig] = None,
    ) -> None:
        """Initialize simulator.

        Args:
            random_state: Random seed for reproducibility (falls back to
                the configured seed)
            config: Simulation configuration (defaults to the environment)
        """
        self.config = config or get_config().simulation
        self.random_state = random_state if random_state is not None else self.config.random_seed
        self.sampler = DistributionSampler(self.random_state)
        self.logger = logger.bind(component="MonteCarloSimulator")

    @property
    def rng(self) -> np.random.RandomState:
        return self.sampler.rng

    def spawn(self) -> "MonteCarloSimulator":
        """Create an independently seeded simulator sharing this configuration.

        Background work uses a spawned simulator so random streams are
        never shared across threads.
        """
        return self.with_seed(int(self.rng.randint(0, 2**31 - 1)))

    def with_seed(self, random_state: Optional[int]) -> "MonteCarloSimulator":
        """Create a simulator with the same configuration and a fresh stream."""
        return MonteCarloSimulator(random_state=random_state, config=self.config)

    def run(
        self,
        model: DecisionModel,
        scenario_id: str,
        iterations: Optional[int] = None,
        reference: Optional[float] = None,
    ) -> SimulationResult:
        """Simulate one scenario.

        Args:
            model: Decision model (not modified)
            scenario_id: Scenario to simulate
            iterations: Number of iterations (defaults to the configured count)
            reference: Outcome to subtract from every iteration (defaults to
                the baseline reference of ``model``)

        Returns:
            SimulationResult with baseline-relative outcomes

        Raises:
            UnknownScenarioError: If the scenario is not declared
            ValueError: If iterations is negative
        """
        iterations = self.config.iterations if iterations is None else iterations
        if iterations < 0:
            raise ValueError("iterations must be >= 0")

        start_time = time.perf_counter()
        scenario = model.get_scenario(scenario_id)
        variables = apply_scenario(model.variables, scenario)
        graph = CausalGraph(
            model.edges, self.config.max_propagation_passes, self.config.max_formula_length
        )

        expression = self._prepare_outcome(model, scenario_id)
        if expression is None:
            outcomes = np.zeros(iterations)
            outcomes.setflags(write=False)
            return SimulationResult(
                scenario_id=scenario_id,
                outcomes=outcomes,
                summary=summarize(outcomes),
                formula_rejected=True,
            )

        if reference is None:
            baseline = self.baseline_outcome(model, expression, graph)
        else:
            baseline = reference
        variable_ids = {variable.id for variable in variables}
        needs_derived = bool(
            (expression.identifiers() - variable_ids - RESERVED_IDENTIFIERS)
            & graph.derived_identifiers
        )

        outcomes = np.empty(iterations)
        failed = 0
        first_failure: Optional[EvaluationError] = None

        for i in range(iterations):
            raw = {variable.id: self.sampler.sample(variable) for variable in variables}

            if needs_derived:
                environment: dict[str, Any] = graph.propagate(raw)
                environment.update(raw)
            else:
                environment = raw
            environment[SCENARIO_IDENTIFIER] = scenario_id

            value = expression.evaluate(environment)
            if isinstance(value, EvaluationError):
                failed += 1
                first_failure = first_failure or value
                value = 0.0
            outcomes[i] = value - baseline

        if first_failure is not None:
            self.logger.warning(
                "outcome_evaluation_failed",
                scenario_id=scenario_id,
                failed_iterations=failed,
                reason=first_failure.reason,
            )

        outcomes.setflags(write=False)
        summary = summarize(outcomes)
        duration_ms = (time.perf_counter() - start_time) * 1000
        log_simulation_run(
            self.logger,
            scenario_id=scenario_id,
            iterations=iterations,
            summary=summary.to_dict(),
            failed_iterations=failed,
            duration_ms=duration_ms,
        )

        return SimulationResult(
            scenario_id=scenario_id,
            outcomes=outcomes,
            summary=summary,
            baseline_outcome=baseline,
            failed_iterations=failed,
            duration_ms=duration_ms,
        )

    def run_outcomes(
        self,
        model: DecisionModel,
        scenario_id: str,
        iterations: Optional[int] = None,
    ) -> np.ndarray:
        """Simulate one scenario and return only its outcome array."""
        return self.run(model, scenario_id, iterations).outcomes

    def run_all(
        self, model: DecisionModel, iterations: Optional[int] = None
    ) -> dict[str, SimulationResult]:
        """Simulate every declared scenario, in declaration order.

        Args:
            model: Decision model
            iterations: Iterations per scenario

        Returns:
            Dictionary mapping scenario id to its result
        """
        self.logger.info(
            "simulating_all_scenarios",
            scenario_count=len(model.scenarios),
            iterations=iterations or self.config.iterations,
        )
        return {
            scenario.id: self.run(model, scenario.id, iterations)
            for scenario in model.scenarios
        }

    def baseline_outcome(
        self,
        model: DecisionModel,
        expression: CompiledExpression,
        graph: Optional[CausalGraph] = None,
    ) -> float:
        """Evaluate the outcome on the baseline model's centre values.

        Derived identifiers come from propagating those centre values.
        A failed evaluation yields a reference of 0.
        """
        centre = {variable.id: variable.value for variable in model.variables}
        graph = graph or CausalGraph(
            model.edges, self.config.max_propagation_passes, self.config.max_formula_length
        )
        environment: dict[str, Any] = graph.propagate(centre)
        environment.update(centre)
        environment[SCENARIO_IDENTIFIER] = BASELINE_REFERENCE_SCENARIO

        value = expression.evaluate(environment)
        if isinstance(value, EvaluationError):
            self.logger.warning("baseline_evaluation_failed", reason=value.reason)
            return 0.0
        return value

    def _prepare_outcome(
        self, model: DecisionModel, scenario_id: str
    ) -> Optional[CompiledExpression]:
        """Validate and compile the outcome formula once per run."""
        formula = model.outcome.formula.strip()
        try:
            return compile_formula(formula, self.config.max_formula_length)
        except FormulaError as e:
            self.logger.warning(
                "outcome_formula_rejected",
                scenario_id=scenario_id,
                reason=getattr(e, "reason", str(e)),
            )
            return None
