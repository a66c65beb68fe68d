"""Sensitivity (tornado) analysis of decision models.

Each uncertain variable is pinned to the low and then the high end of its
range while everything else keeps its distribution. The shift in the
outcome median measures how much the decision hinges on that variable.

Variables the outcome formula reads directly are analyzed first and
returned synchronously. The rest can run in a deferred second phase on a
background worker, which merges and re-sorts everything when done.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
import threading
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

import structlog

from prisma_engine.data.models import DecisionModel, Variable
from prisma_engine.formula.evaluator import referenced_identifiers
from prisma_engine.simulation.core.scenarios import apply_scenario

if TYPE_CHECKING:
    from prisma_engine.simulation.engine.simulator import MonteCarloSimulator, SimulationResult

logger = structlog.get_logger(__name__)

Scheduler = Callable[[Callable[[], Any]], Any]


@dataclass(frozen=True)
class SensitivityResult:
    """Outcome swing attributable to one variable.

    Attributes:
        variable_id: Analyzed variable
        variable_label: Display label
        impact_low: Median shift with the variable pinned at its minimum
        impact_high: Median shift with the variable pinned at its maximum
        total_swing: ``|impact_high - impact_low|``
        baseline_median: Median of the unpinned run
    """

    variable_id: str
    variable_label: str
    impact_low: float
    impact_high: float
    total_swing: float
    baseline_median: float

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation with camelCase keys."""
        return {
            "variableId": self.variable_id,
            "variableLabel": self.variable_label,
            "impactLow": self.impact_low,
            "impactHigh": self.impact_high,
            "totalSwing": self.total_swing,
            "baselineMedian": self.baseline_median,
        }


@dataclass
class StagedSensitivity:
    """Phase-one results plus the variables still to analyze.

    ``reference`` is the outcome every pinned run is measured against, so
    pinning a variable never moves the zero point.
    """

    results: List[SensitivityResult]
    pending_variable_ids: List[str] = field(default_factory=list)
    baseline_median: float = 0.0
    reference: float = 0.0

    @property
    def complete(self) -> bool:
        return not self.pending_variable_ids


def sort_by_swing(results: List[SensitivityResult]) -> List[SensitivityResult]:
    """Sort results by descending total swing (stable for ties)."""
    return sorted(results, key=lambda result: result.total_swing, reverse=True)


def top_variables(results: List[SensitivityResult], n: int = 3) -> List[SensitivityResult]:
    """The ``n`` most impactful variables of an already ranked list."""
    return list(results[:n])


_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


def default_scheduler(task: Callable[[], Any]) -> Future:
    """Run a task on the shared single-worker background executor."""
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="prisma-sensitivity")
    return _executor.submit(task)


class SensitivityAnalyzer:
    """Rank variables by how much they move the outcome median.

    Example:
        >>> analyzer = SensitivityAnalyzer(MonteCarloSimulator(random_state=42))
        >>> ranking = analyzer.rank(model, "hire_two_drivers")
        >>> ranking[0].variable_id
        'daily_deliveries'
    """

    def __init__(
        self,
        simulator: "MonteCarloSimulator",
        iterations: Optional[int] = None,
        random_state: Optional[int] = None,
    ) -> None:
        """Initialize sensitivity analyzer.

        Args:
            simulator: Simulator used for every run
            iterations: Iterations per run (defaults to the configured count)
            random_state: When set, every run restarts from this seed so
                pinned and baseline runs share their random draws
        """
        self.simulator = simulator
        self.iterations = iterations or simulator.config.sensitivity_iterations
        self.random_state = random_state
        self.logger = logger.bind(component="SensitivityAnalyzer")

    def rank(
        self,
        model: DecisionModel,
        scenario_id: str,
        iterations: Optional[int] = None,
    ) -> List[SensitivityResult]:
        """Analyze every uncertain variable synchronously.

        Args:
            model: Decision model (not modified)
            scenario_id: Scenario to analyze
            iterations: Iterations per run

        Returns:
            Results sorted by descending total swing

        Raises:
            UnknownScenarioError: If the scenario is not declared
        """
        staged = self.run_phase_one(model, scenario_id, iterations)
        return self.run_phase_two(model, scenario_id, staged, iterations)

    def run_phase_one(
        self,
        model: DecisionModel,
        scenario_id: str,
        iterations: Optional[int] = None,
    ) -> StagedSensitivity:
        """Baseline run plus the variables the outcome formula reads directly."""
        iterations = iterations or self.iterations
        model.get_scenario(scenario_id)

        baseline = self._run(model, scenario_id, iterations, self.simulator)
        candidates = [variable for variable in model.variables if not variable.is_fixed]
        referenced = referenced_identifiers(model.outcome.formula)

        results = [
            self.test_variable(
                model,
                scenario_id,
                variable,
                baseline.median,
                iterations,
                reference=baseline.baseline_outcome,
            )
            for variable in candidates
            if variable.id in referenced
        ]
        pending = [variable.id for variable in candidates if variable.id not in referenced]

        self.logger.info(
            "sensitivity_phase_one_complete",
            scenario_id=scenario_id,
            analyzed=len(results),
            pending=len(pending),
        )
        return StagedSensitivity(
            results=sort_by_swing(results),
            pending_variable_ids=pending,
            baseline_median=baseline.median,
            reference=baseline.baseline_outcome,
        )

    def run_phase_two(
        self,
        model: DecisionModel,
        scenario_id: str,
        staged: StagedSensitivity,
        iterations: Optional[int] = None,
        simulator: Optional["MonteCarloSimulator"] = None,
    ) -> List[SensitivityResult]:
        """Analyze the pending variables and merge with phase one.

        Returns:
            All results, re-sorted by descending total swing
        """
        iterations = iterations or self.iterations
        results = list(staged.results)
        for variable_id in staged.pending_variable_ids:
            results.append(
                self.test_variable(
                    model,
                    scenario_id,
                    model.get_variable(variable_id),
                    staged.baseline_median,
                    iterations,
                    simulator,
                    reference=staged.reference,
                )
            )

        if staged.pending_variable_ids:
            self.logger.info(
                "sensitivity_phase_two_complete",
                scenario_id=scenario_id,
                analyzed=len(staged.pending_variable_ids),
            )
        return sort_by_swing(results)

    def rank_deferred(
        self,
        model: DecisionModel,
        scenario_id: str,
        on_complete: Callable[[List[SensitivityResult]], Any],
        iterations: Optional[int] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> List[SensitivityResult]:
        """Run phase one now and hand phase two to a scheduler.

        Phase two works on its own copy of the model and its own spawned
        simulator, then calls ``on_complete`` with the merged ranking.
        There is no cancellation.

        Args:
            model: Decision model
            scenario_id: Scenario to analyze
            on_complete: Receives the full ranking when phase two finishes
            iterations: Iterations per run
            scheduler: Callable that runs a zero-argument task
                (defaults to a background worker thread)

        Returns:
            Phase-one results, sorted by descending total swing
        """
        staged = self.run_phase_one(model, scenario_id, iterations)
        snapshot = model.clone()
        background = self.simulator.spawn()

        def phase_two() -> List[SensitivityResult]:
            try:
                merged = self.run_phase_two(
                    snapshot, scenario_id, staged, iterations, simulator=background
                )
            except Exception as e:
                self.logger.error(
                    "sensitivity_phase_two_failed",
                    scenario_id=scenario_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise
            on_complete(merged)
            return merged

        (scheduler or default_scheduler)(phase_two)
        return list(staged.results)

    def test_variable(
        self,
        model: DecisionModel,
        scenario_id: str,
        variable: Variable,
        baseline_median: float,
        iterations: Optional[int] = None,
        simulator: Optional["MonteCarloSimulator"] = None,
        reference: Optional[float] = None,
    ) -> SensitivityResult:
        """Pin one variable to each end of its range and measure the median shift.

        Pinned runs subtract ``reference`` (by default the unpinned model's
        baseline reference) instead of re-running the plain simulation on the
        pinned copy, whose reference would follow the pin and cancel the swing.
        """
        iterations = iterations or self.iterations
        simulator = simulator or self.simulator
        if reference is None:
            reference = simulator.run(model, scenario_id, 0).baseline_outcome

        low, high = self._effective_range(model, scenario_id, variable)
        median_at_min = self._run(
            self._pinned_model(model, scenario_id, variable, low),
            scenario_id,
            iterations,
            simulator,
            reference,
        ).median
        median_at_max = self._run(
            self._pinned_model(model, scenario_id, variable, high),
            scenario_id,
            iterations,
            simulator,
            reference,
        ).median

        impact_low = median_at_min - baseline_median
        impact_high = median_at_max - baseline_median
        return SensitivityResult(
            variable_id=variable.id,
            variable_label=variable.label or variable.id,
            impact_low=impact_low,
            impact_high=impact_high,
            total_swing=abs(impact_high - impact_low),
            baseline_median=baseline_median,
        )

    def _run(
        self,
        model: DecisionModel,
        scenario_id: str,
        iterations: int,
        simulator: "MonteCarloSimulator",
        reference: Optional[float] = None,
    ) -> "SimulationResult":
        if self.random_state is not None:
            simulator = simulator.with_seed(self.random_state)
        return simulator.run(model, scenario_id, iterations, reference)

    @staticmethod
    def _effective_range(
        model: DecisionModel, scenario_id: str, variable: Variable
    ) -> Tuple[float, float]:
        """The variable's range once the scenario's overrides are applied."""
        applied = apply_scenario([variable], model.get_scenario(scenario_id))[0]
        return applied.min, applied.max

    @staticmethod
    def _pinned_model(
        model: DecisionModel, scenario_id: str, variable: Variable, value: float
    ) -> DecisionModel:
        """Deep copy with ``variable`` fixed at ``value``.

        The scenario's own override of the variable is dropped from the copy
        so the pin is what gets simulated.
        """
        pinned = model.with_variable(variable.pinned(value))
        scenarios = []
        for scenario in pinned.scenarios:
            if scenario.id == scenario_id and variable.id in scenario.changes:
                changes = {k: v for k, v in scenario.changes.items() if k != variable.id}
                scenario = scenario.model_copy(update={"changes": changes})
            scenarios.append(scenario)
        pinned.scenarios = scenarios
        return pinned
