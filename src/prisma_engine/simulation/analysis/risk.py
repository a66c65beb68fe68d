"""Risk classification of scenario outcome distributions.

Maps summary statistics into one of four tiers with a deterministic,
templated rationale. An optional stress run, simulated with every
uncertain variable's range widened around its centre, adds a volatility
response to the assessment: does the decision gain, hold or degrade when
the world gets noisier?
"""

from dataclasses import dataclass
from enum import Enum
import math
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence, Union

import numpy as np
import structlog

from prisma_engine.data.models import DecisionModel
from prisma_engine.simulation.analysis.statistics import OutcomeSummary, summarize

if TYPE_CHECKING:
    from prisma_engine.simulation.engine.simulator import MonteCarloSimulator, SimulationResult

logger = structlog.get_logger(__name__)

# p10 worse than this multiple of |median| is a catastrophic tail
CATASTROPHIC_TAIL_MULTIPLE = 3.0
STRONG_POSITIVE_RATE = 75.0
LOW_RISK_POSITIVE_RATE = 60.0
MODERATE_POSITIVE_RATE = 40.0
# Stress median shift, as a fraction of |median|, that counts as a response
VOLATILITY_RESPONSE_THRESHOLD = 0.15
# Ratio reported when there is upside and no downside at all
UNBOUNDED_RISK_REWARD = 10.0


class RiskTier(str, Enum):
    """Risk tiers, from best to worst."""

    STRONG = "STRONG"
    LOW_RISK = "LOW_RISK"
    MODERATE_RISK = "MODERATE_RISK"
    HIGH_RISK = "HIGH_RISK"


class VolatilityResponse(str, Enum):
    """How the median reacts when uncertainty is widened."""

    GAINS = "GAINS"
    HOLDS = "HOLDS"
    DEGRADES = "DEGRADES"


@dataclass(frozen=True)
class RiskAssessment:
    """Risk classification of one scenario.

    Attributes:
        classification: Risk tier
        percent_positive: Share of strictly positive outcomes (0-100)
        percent_negative: Share of strictly negative outcomes (0-100)
        median_outcome: Median outcome
        worst_case: 10th percentile outcome
        best_case: 90th percentile outcome
        risk_reward_ratio: Upside (p90) over downside (-p10)
        reasoning: Templated explanation
        confidence: How clearly the statistics place the scenario in its tier (0-1)
        catastrophic_tail: Whether p10 is worse than 3x the median
        stress_median: Median of the widened-uncertainty run, if any
        volatility_response: Reaction to widened uncertainty, if measured
    """

    classification: RiskTier
    percent_positive: float
    percent_negative: float
    median_outcome: float
    worst_case: float
    best_case: float
    risk_reward_ratio: float
    reasoning: str
    confidence: float = 0.5
    catastrophic_tail: bool = False
    stress_median: Optional[float] = None
    volatility_response: Optional[VolatilityResponse] = None

    def to_dict(self) -> dict[str, Any]:
        """Wire representation with camelCase keys."""
        return {
            "classification": self.classification.value,
            "percentPositive": self.percent_positive,
            "percentNegative": self.percent_negative,
            "medianOutcome": self.median_outcome,
            "worstCase": self.worst_case,
            "bestCase": self.best_case,
            "riskRewardRatio": self.risk_reward_ratio,
            "reasoning": self.reasoning,
            "confidence": self.confidence,
            "catastrophicTail": self.catastrophic_tail,
            "stressMedian": self.stress_median,
            "volatilityResponse": (
                self.volatility_response.value if self.volatility_response else None
            ),
        }


@dataclass(frozen=True)
class Verdict:
    """Plain-language verdict for display."""

    headline: str
    summary_text: str
    risk_text: str
    score: int
    tone: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "headline": self.headline,
            "summary": self.summary_text,
            "risk": self.risk_text,
            "score": self.score,
            "tone": self.tone,
        }


def format_number(value: float) -> str:
    """Thousands separators; no decimals from 1,000 up, otherwise one at most."""
    if abs(value) >= 1000:
        return f"{value:,.0f}"
    text = f"{value:,.1f}"
    return text[:-2] if text.endswith(".0") else text


def has_catastrophic_tail(summary: OutcomeSummary) -> bool:
    abs_median = abs(summary.median)
    return abs_median > 0 and abs(summary.p10) > CATASTROPHIC_TAIL_MULTIPLE * abs_median


def risk_reward_ratio(summary: OutcomeSummary) -> float:
    upside = max(summary.p90, 0.0)
    downside = max(-summary.p10, 0.0)
    if downside == 0:
        return UNBOUNDED_RISK_REWARD if upside > 0 else 1.0
    return upside / downside


class RiskClassifier:
    """Classify outcome distributions into risk tiers.

    Example:
        >>> classifier = RiskClassifier()
        >>> assessment = classifier.classify(result.outcomes)
        >>> assessment.classification
        <RiskTier.STRONG: 'STRONG'>
    """

    def classify(
        self,
        outcomes: Union[Sequence[float], np.ndarray],
        stress_outcomes: Optional[Union[Sequence[float], np.ndarray]] = None,
    ) -> RiskAssessment:
        """Classify an outcome distribution.

        Args:
            outcomes: Baseline-relative outcomes of one scenario
            stress_outcomes: Outcomes of the same scenario under widened uncertainty

        Returns:
            RiskAssessment
        """
        stress_summary = None
        if stress_outcomes is not None and len(stress_outcomes) > 0:
            stress_summary = summarize(stress_outcomes)
        return self.classify_summary(summarize(outcomes), stress_summary)

    def classify_summary(
        self,
        summary: OutcomeSummary,
        stress_summary: Optional[OutcomeSummary] = None,
    ) -> RiskAssessment:
        """Classify already-computed summary statistics."""
        pp = summary.percent_positive
        pn = summary.percent_negative
        tail = has_catastrophic_tail(summary)

        if tail:
            tier = RiskTier.HIGH_RISK
        elif pp > STRONG_POSITIVE_RATE and summary.median > 0:
            tier = RiskTier.STRONG
        elif pp > LOW_RISK_POSITIVE_RATE:
            tier = RiskTier.LOW_RISK
        elif pp >= MODERATE_POSITIVE_RATE:
            tier = RiskTier.MODERATE_RISK
        else:
            tier = RiskTier.HIGH_RISK

        response = None
        stress_median = None
        if stress_summary is not None:
            stress_median = stress_summary.median
            response = self._volatility_response(summary.median, stress_median)

        return RiskAssessment(
            classification=tier,
            percent_positive=pp,
            percent_negative=pn,
            median_outcome=summary.median,
            worst_case=summary.p10,
            best_case=summary.p90,
            risk_reward_ratio=risk_reward_ratio(summary),
            reasoning=self._reasoning(tier, summary, tail, response, stress_median),
            confidence=self._confidence(tier, pp, pn, tail),
            catastrophic_tail=tail,
            stress_median=stress_median,
            volatility_response=response,
        )

    @staticmethod
    def _volatility_response(median: float, stress_median: float) -> VolatilityResponse:
        shift = stress_median - median
        threshold = VOLATILITY_RESPONSE_THRESHOLD * abs(median)
        if shift > threshold:
            return VolatilityResponse.GAINS
        if shift < -threshold:
            return VolatilityResponse.DEGRADES
        return VolatilityResponse.HOLDS

    @staticmethod
    def _confidence(tier: RiskTier, pp: float, pn: float, tail: bool) -> float:
        if tier == RiskTier.HIGH_RISK:
            confidence = 0.5
            if pn > 60:
                confidence += 0.3
            elif pn > 50:
                confidence += 0.2
            elif pn > 40:
                confidence += 0.1
            if tail:
                confidence += 0.2
        elif tier == RiskTier.STRONG:
            confidence = 0.6 + (0.25 if pp > 80 else 0.15)
        elif tier == RiskTier.LOW_RISK:
            confidence = 0.6 + (0.1 if pp > 70 else 0.0)
        else:
            confidence = 0.45
        return min(0.95, confidence)

    @staticmethod
    def _reasoning(
        tier: RiskTier,
        summary: OutcomeSummary,
        tail: bool,
        response: Optional[VolatilityResponse],
        stress_median: Optional[float],
    ) -> str:
        pp = f"{summary.percent_positive:.0f}%"
        pn = f"{summary.percent_negative:.0f}%"
        p10 = format_number(summary.p10)

        if tier == RiskTier.HIGH_RISK and tail:
            text = (
                f"This decision succeeds in {pp} of futures, but the worst 10% reach "
                f"{p10} (more than 3x the median). Catastrophic downside risk makes it high risk."
            )
        elif tier == RiskTier.HIGH_RISK:
            text = (
                f"This decision fails in {pn} of futures and succeeds in only {pp}. "
                f"The worst 10% reach {p10}."
            )
        elif tier == RiskTier.STRONG:
            text = (
                f"This decision works in {pp} of futures with a positive median of "
                f"{format_number(summary.median)}. Even in the worst 10%, the outcome "
                f"stays at {p10}."
            )
        elif tier == RiskTier.LOW_RISK:
            text = (
                f"This decision works in {pp} of futures. The worst 10% reach {p10}, "
                "a manageable downside."
            )
        else:
            text = (
                f"This could go either way: {pp} of futures come out positive and {pn} "
                f"negative. The worst 10% reach {p10}."
            )

        if response == VolatilityResponse.GAINS:
            shift = format_number(abs(stress_median - summary.median))
            text += f" Under widened uncertainty the median improves by {shift}."
        elif response == VolatilityResponse.DEGRADES:
            shift = format_number(abs(stress_median - summary.median))
            text += f" Under widened uncertainty the median drops by {shift}."
        elif response == VolatilityResponse.HOLDS:
            text += " Under widened uncertainty the median holds steady."
        return text


_default_classifier = RiskClassifier()


def classify(
    outcomes: Union[Sequence[float], np.ndarray],
    stress_outcomes: Optional[Union[Sequence[float], np.ndarray]] = None,
) -> RiskAssessment:
    """Classify with the default classifier."""
    return _default_classifier.classify(outcomes, stress_outcomes)


def create_stress_model(model: DecisionModel, range_factor: float = 2.0) -> DecisionModel:
    """Widen every uncertain variable's range around its centre.

    Fixed variables are left untouched; the input model is not modified.
    """
    stressed = model.clone()
    widened = []
    for variable in stressed.variables:
        if variable.is_fixed:
            widened.append(variable)
            continue
        half_width = (variable.max - variable.min) * range_factor / 2
        widened.append(
            variable.model_copy(
                update={"min": variable.value - half_width, "max": variable.value + half_width}
            )
        )
    stressed.variables = widened
    return stressed


def classify_all_scenarios(
    results: Mapping[str, "SimulationResult"],
    model: DecisionModel,
    simulator: "MonteCarloSimulator",
    stress_iterations: Optional[int] = None,
    classifier: Optional[RiskClassifier] = None,
) -> dict[str, RiskAssessment]:
    """Classify every simulated scenario, with a stress run for each.

    Args:
        results: Simulation results keyed by scenario id
        model: The model the results were simulated from
        simulator: Simulator used for the stress runs
        stress_iterations: Iterations per stress run (defaults to the configured count)
        classifier: Classifier to use (defaults to a shared instance)

    Returns:
        Dictionary mapping scenario id to its assessment
    """
    classifier = classifier or _default_classifier
    stress_iterations = stress_iterations or simulator.config.stress_iterations
    stress_model = create_stress_model(model, simulator.config.stress_range_factor)

    assessments = {}
    for scenario_id, result in results.items():
        stress = simulator.run(stress_model, scenario_id, stress_iterations)
        assessments[scenario_id] = classifier.classify_summary(result.summary, stress.summary)
        logger.debug(
            "scenario_classified",
            scenario_id=scenario_id,
            classification=assessments[scenario_id].classification.value,
        )
    return assessments


def decision_score(assessment: Optional[RiskAssessment]) -> int:
    """Collapse an assessment into a 0-100 score.

    Starts from the positive rate, boosted for the low-risk tiers and
    penalized for high risk, then nudged by the volatility response.
    """
    if assessment is None:
        return 50

    score = assessment.percent_positive
    if assessment.classification in (RiskTier.STRONG, RiskTier.LOW_RISK):
        score += assessment.confidence * 5
    elif assessment.classification == RiskTier.HIGH_RISK:
        score -= assessment.confidence * 10

    if assessment.volatility_response == VolatilityResponse.GAINS:
        score += 5
    elif assessment.volatility_response == VolatilityResponse.DEGRADES:
        score -= 5

    return int(math.floor(max(0.0, min(100.0, score)) + 0.5))


_HEADLINES = (
    (80, "This looks strong", "{label} looks strongest"),
    (60, "Solid bet with manageable downside", "{label} is a solid bet"),
    (40, "This could go either way", "{label} could go either way"),
    (20, "Proceed with caution", "{label} needs caution"),
    (0, "This is risky", "{label} looks risky"),
)


def verdict(
    assessment: RiskAssessment,
    summary: OutcomeSummary,
    unit: str = "",
    scenario_label: Optional[str] = None,
    iterations: int = 1000,
) -> Verdict:
    """Plain-language verdict for one scenario.

    Args:
        assessment: Risk assessment of the scenario
        summary: Summary statistics of the same scenario
        unit: Outcome unit appended to numbers
        scenario_label: Scenario name to put in the headline
        iterations: Number of simulated futures behind the summary

    Returns:
        Verdict with headline, two sentences, score and tone
    """
    score = decision_score(assessment)

    for threshold, generic, labelled in _HEADLINES:
        if score >= threshold:
            headline = labelled.format(label=scenario_label) if scenario_label else generic
            break

    if score >= 60:
        tone = "positive"
    elif score >= 40:
        tone = "caution"
    else:
        tone = "negative"

    suffix = f" {unit}" if unit else ""
    summary_text = (
        f"Most likely outcome: {format_number(summary.median)}{suffix}. "
        f"In {assessment.percent_positive:.0f}% of {iterations:,} simulated futures, "
        "this decision comes out positive."
    )

    if assessment.classification == RiskTier.HIGH_RISK:
        risk_text = (
            f"In the worst 10% of futures, losses reach {format_number(abs(summary.p10))}{suffix}."
        )
    elif summary.p10 < 0:
        risk_text = (
            "Downside: the worst 10% of futures show losses of "
            f"{format_number(abs(summary.p10))}{suffix}."
        )
    else:
        risk_text = (
            f"Even in the worst 10%, the outcome stays at {format_number(summary.p10)}{suffix}."
        )

    return Verdict(
        headline=headline,
        summary_text=summary_text,
        risk_text=risk_text,
        score=score,
        tone=tone,
    )
