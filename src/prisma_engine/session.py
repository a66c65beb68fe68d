"""Interactive decision session.

A session owns one decision model and re-runs the whole pipeline
(Monte Carlo per scenario, risk classification, sensitivity on the best
scenario, Markov timelines) whenever a baseline value is adjusted.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import uuid

import structlog

from prisma_engine.config import SimulationConfig, get_config
from prisma_engine.data.models import DecisionModel
from prisma_engine.logging_config import log_performance
from prisma_engine.simulation.analysis.risk import (
    RiskAssessment,
    Verdict,
    classify_all_scenarios,
    verdict,
)
from prisma_engine.simulation.analysis.sensitivity_analyzer import (
    SensitivityAnalyzer,
    SensitivityResult,
)
from prisma_engine.simulation.engine.markov import (
    TimelinePoint,
    outcome_timeline,
    run_all_markov,
)
from prisma_engine.simulation.engine.simulator import MonteCarloSimulator, SimulationResult

logger = structlog.get_logger(__name__)


@dataclass
class SessionSnapshot:
    """Everything a rendering layer needs after one run.

    Attributes:
        results: Simulation result per scenario, in declaration order
        assessments: Risk assessment per scenario
        best_scenario_id: Scenario with the best median for the outcome direction
        sensitivity: Ranking for the best scenario (empty when skipped)
        verdicts: Plain-language verdict per scenario
        timelines: Markov outcome timeline per scenario (empty without Markov)
    """

    results: Dict[str, SimulationResult]
    assessments: Dict[str, RiskAssessment]
    best_scenario_id: Optional[str]
    sensitivity: List[SensitivityResult] = field(default_factory=list)
    verdicts: Dict[str, Verdict] = field(default_factory=dict)
    timelines: Dict[str, List[TimelinePoint]] = field(default_factory=dict)

    def to_dict(self, include_outcomes: bool = False) -> Dict[str, Any]:
        return {
            "results": {
                sid: result.to_dict(include_outcomes) for sid, result in self.results.items()
            },
            "assessments": {sid: a.to_dict() for sid, a in self.assessments.items()},
            "bestScenarioId": self.best_scenario_id,
            "sensitivity": [result.to_dict() for result in self.sensitivity],
            "verdicts": {sid: v.to_dict() for sid, v in self.verdicts.items()},
            "timelines": {
                sid: [point.to_dict() for point in points]
                for sid, points in self.timelines.items()
            },
        }


def best_scenario(model: DecisionModel, results: Dict[str, SimulationResult]) -> Optional[str]:
    """Scenario whose median is best for the outcome's direction.

    Ties go to the scenario declared first.
    """
    if not results:
        return None
    sign = 1 if model.outcome.higher_is_better else -1
    best_id = None
    best_value = None
    for scenario_id, result in results.items():
        value = sign * result.median
        if best_value is None or value > best_value:
            best_id, best_value = scenario_id, value
    return best_id


class DecisionSession:
    """Run and re-run a decision model for one user.

    Example:
        >>> session = DecisionSession(demo_model(), random_state=42)
        >>> snapshot = session.run()
        >>> snapshot = session.update_variable("daily_deliveries", 100)
    """

    def __init__(
        self,
        model: DecisionModel,
        config: Optional[SimulationConfig] = None,
        random_state: Optional[int] = None,
    ) -> None:
        """Initialize session.

        Args:
            model: Decision model (the session works on its own copy)
            config: Simulation configuration (defaults to the environment)
            random_state: Random seed; each run restarts from it so slider
                moves compare like with like
        """
        self.model = model.clone()
        self.config = config or get_config().simulation
        self.random_state = random_state
        self.session_id = uuid.uuid4().hex[:12]
        self.snapshot: Optional[SessionSnapshot] = None
        self.logger = logger.bind(component="DecisionSession", session_id=self.session_id)

    @log_performance()
    def run(self, include_sensitivity: bool = True) -> SessionSnapshot:
        """Simulate, classify and rank every scenario of the model.

        Args:
            include_sensitivity: Whether to rank variables for the best scenario

        Returns:
            SessionSnapshot of the run
        """
        simulator = MonteCarloSimulator(random_state=self.random_state, config=self.config)
        results = simulator.run_all(self.model)
        assessments = classify_all_scenarios(results, self.model, simulator)
        best_id = best_scenario(self.model, results)

        verdicts = {}
        for scenario in self.model.scenarios:
            verdicts[scenario.id] = verdict(
                assessments[scenario.id],
                results[scenario.id].summary,
                unit=self.model.outcome.unit,
                scenario_label=scenario.display_label,
                iterations=results[scenario.id].iterations,
            )

        sensitivity: List[SensitivityResult] = []
        if include_sensitivity and best_id is not None:
            analyzer = SensitivityAnalyzer(
                simulator, self.config.sensitivity_iterations, random_state=self.random_state
            )
            sensitivity = analyzer.rank(self.model, best_id)

        timelines = {}
        if self.model.markov is not None and self.model.markov.enabled:
            for scenario in self.model.scenarios:
                markov_results = run_all_markov(
                    self.model,
                    scenario.id,
                    self.config.iterations,
                    random_state=self.random_state,
                )
                timelines[scenario.id] = outcome_timeline(
                    self.model, scenario.id, markov_results, results[scenario.id].summary
                )

        self.snapshot = SessionSnapshot(
            results=results,
            assessments=assessments,
            best_scenario_id=best_id,
            sensitivity=sensitivity,
            verdicts=verdicts,
            timelines=timelines,
        )
        self.logger.info(
            "session_run_complete",
            scenarios=len(results),
            best_scenario_id=best_id,
            sensitivity_variables=len(sensitivity),
        )
        return self.snapshot

    def update_variable(
        self, variable_id: str, value: float, include_sensitivity: bool = True
    ) -> SessionSnapshot:
        """Change one variable's baseline centre value and re-run.

        Range, distribution and scenario overrides are left as they are.

        Raises:
            UnknownVariableError: If the variable is not declared
        """
        previous = self.model.get_variable(variable_id).value
        self.model = self.model.with_variable_value(variable_id, value)
        self.logger.info(
            "variable_updated", variable_id=variable_id, previous=previous, value=value
        )
        return self.run(include_sensitivity=include_sensitivity)
