"""Pydantic models for decision model data structures.

This module defines the models that correspond to the decision-model JSON
produced by the authoring source (an LLM tool call or a static fixture),
providing type safety and validation for variables, causal edges,
scenarios, the outcome and the optional Markov block.

Wire names follow the authoring JSON (``isInput``, ``from``,
``isFeedbackLoop``...); Python code uses the snake_case attributes.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from prisma_engine.exceptions import UnknownScenarioError, UnknownVariableError

BASELINE_SCENARIO_IDS = ("nothing", "do_nothing")
DEFAULT_EDGE_STRENGTH = 0.5


class Distribution(str, Enum):
    """Supported uncertainty shapes for a variable."""

    FIXED = "fixed"
    UNIFORM = "uniform"
    NORMAL = "normal"
    RIGHT_SKEWED = "right_skewed"
    LEFT_SKEWED = "left_skewed"


class Effect(str, Enum):
    """Direction of a causal edge without a formula."""

    POSITIVE = "positive"
    NEGATIVE = "negative"


class Direction(str, Enum):
    """Which way the outcome metric improves."""

    HIGHER_IS_BETTER = "higher_is_better"
    LOWER_IS_BETTER = "lower_is_better"


class Variable(BaseModel):
    """An uncertain quantity in the decision model.

    ``distribution`` is kept as a plain string so an unknown shape survives
    validation; the sampler falls back to uniform for it.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    label: str = ""
    value: float
    min: float
    max: float
    distribution: str = Distribution.UNIFORM.value
    unit: str = ""
    is_input: bool = Field(False, alias="isInput")

    @model_validator(mode="before")
    @classmethod
    def fill_defaults(cls, data: Any) -> Any:
        """Default missing bounds to the centre value and the label to the id."""
        if isinstance(data, dict) and "value" in data:
            data = dict(data)
            data.setdefault("min", data["value"])
            data.setdefault("max", data["value"])
            if not data.get("label"):
                data["label"] = data.get("id", "")
        return data

    @field_validator("distribution", mode="before")
    @classmethod
    def normalize_distribution(cls, v: Any) -> Any:
        if isinstance(v, Distribution):
            return v.value
        if v is None:
            return Distribution.UNIFORM.value
        return v

    @property
    def is_fixed(self) -> bool:
        return self.distribution == Distribution.FIXED.value

    def pinned(self, value: float) -> "Variable":
        """Return a copy fixed at ``value`` with a zero-width range."""
        return self.model_copy(
            update={
                "value": value,
                "min": value,
                "max": value,
                "distribution": Distribution.FIXED.value,
            }
        )


class Edge(BaseModel):
    """A causal relationship used during propagation."""

    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(..., alias="from")
    target: str = Field(..., alias="to")
    effect: Effect = Effect.POSITIVE
    strength: float = Field(DEFAULT_EDGE_STRENGTH, ge=0, le=1)
    formula: Optional[str] = None
    is_feedback_loop: bool = Field(False, alias="isFeedbackLoop")

    @field_validator("strength", mode="before")
    @classmethod
    def default_strength(cls, v: Any) -> Any:
        return DEFAULT_EDGE_STRENGTH if v is None else v

    @field_validator("formula", mode="before")
    @classmethod
    def blank_formula(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def sign(self) -> int:
        return 1 if self.effect == Effect.POSITIVE else -1


class ScenarioChange(BaseModel):
    """Overrides a scenario applies to one baseline variable."""

    value: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    delta: Optional[float] = None


class Scenario(BaseModel):
    """A decision option expressed as a diff over the baseline variables."""

    id: str
    label: str = ""
    color: Optional[str] = None
    changes: Dict[str, ScenarioChange] = Field(default_factory=dict)
    assumptions: List[str] = Field(default_factory=list)

    @field_validator("changes", mode="before")
    @classmethod
    def null_changes(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def is_baseline(self) -> bool:
        return self.id in BASELINE_SCENARIO_IDS

    @property
    def display_label(self) -> str:
        return self.label or self.id


class Outcome(BaseModel):
    """The single metric every scenario is measured on."""

    id: str
    label: str = ""
    unit: str = ""
    formula: str
    direction: Direction = Direction.HIGHER_IS_BETTER

    @property
    def higher_is_better(self) -> bool:
        return self.direction == Direction.HIGHER_IS_BETTER


class MarkovEntity(BaseModel):
    """An entity whose state evolves month to month."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    label: str = ""
    states: List[str]
    initial_state: str = Field(..., alias="initialState")
    transitions: Dict[str, Dict[str, float]]
    scenario_transitions: Dict[str, Dict[str, Dict[str, float]]] = Field(
        default_factory=dict, alias="scenarioTransitions"
    )

    def transitions_for(self, scenario_id: Optional[str]) -> Dict[str, Dict[str, float]]:
        """Transition matrix for a scenario, falling back to the default matrix."""
        if scenario_id and scenario_id in self.scenario_transitions:
            return self.scenario_transitions[scenario_id]
        return self.transitions


class MarkovConfig(BaseModel):
    """Optional state-transition block of a decision model."""

    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    months: int = Field(6, ge=0)
    entities: List[MarkovEntity] = Field(default_factory=list)
    # "entity.state" -> {variable_id: effect per unit probability}
    state_effects: Dict[str, Dict[str, float]] = Field(
        default_factory=dict, alias="stateEffects"
    )


class DecisionModel(BaseModel):
    """Variables, causal edges, scenarios and the outcome being optimized."""

    variables: List[Variable]
    edges: List[Edge] = Field(default_factory=list)
    scenarios: List[Scenario]
    outcome: Outcome
    markov: Optional[MarkovConfig] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "DecisionModel":
        """Build a model from authoring JSON.

        Use :func:`prisma_engine.data.validation.load_model` for untrusted
        payloads; this constructor only applies the schema.
        """
        return cls.model_validate(payload)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    def variable_ids(self) -> List[str]:
        return [variable.id for variable in self.variables]

    def get_variable(self, variable_id: str) -> Variable:
        for variable in self.variables:
            if variable.id == variable_id:
                return variable
        raise UnknownVariableError(variable_id)

    def get_scenario(self, scenario_id: str) -> Scenario:
        for scenario in self.scenarios:
            if scenario.id == scenario_id:
                return scenario
        raise UnknownScenarioError(scenario_id)

    def clone(self) -> "DecisionModel":
        return self.model_copy(deep=True)

    def with_variable(self, variable: Variable) -> "DecisionModel":
        """Return a deep copy with one variable replaced by id."""
        self.get_variable(variable.id)
        model = self.clone()
        model.variables = [
            variable if existing.id == variable.id else existing
            for existing in model.variables
        ]
        return model

    def with_variable_value(self, variable_id: str, value: float) -> "DecisionModel":
        """Return a deep copy with one variable's centre value changed."""
        variable = self.get_variable(variable_id)
        return self.with_variable(variable.model_copy(update={"value": value}))
