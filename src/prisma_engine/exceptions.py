"""Custom exceptions for the Prisma simulation engine.

This module defines the exception hierarchy for decision-model errors:
unsafe or malformed formulas, malformed models, references to undefined
scenarios, variables or Markov states, and invalid transition matrices.

Runtime evaluation failures inside a Monte Carlo run are *not* raised;
they are returned as :class:`prisma_engine.formula.evaluator.EvaluationError`
values and counted on the simulation result.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from prisma_engine.data.validation import ModelValidationReport


class PrismaError(Exception):
    """Base exception for all engine errors."""

    pass


class FormulaError(PrismaError):
    """Base exception for formula problems."""

    def __init__(self, message: str, formula: Optional[str] = None) -> None:
        super().__init__(message)
        self.formula = formula


class FormulaSyntaxError(FormulaError):
    """Exception raised when a formula cannot be parsed."""

    def __init__(
        self, message: str, formula: Optional[str] = None, position: Optional[int] = None
    ) -> None:
        super().__init__(message, formula)
        self.position = position


class FormulaRejectedError(FormulaError):
    """Exception raised when a formula fails the static safety check."""

    def __init__(self, reason: str, formula: Optional[str] = None) -> None:
        super().__init__(f"Formula rejected: {reason}", formula)
        self.reason = reason


class ModelError(PrismaError):
    """Base exception for decision model problems."""

    pass


class MalformedModelError(ModelError):
    """Exception raised when a decision model fails validation.

    Carries the full validation report so callers can branch on the
    missing fields or feed :meth:`ModelValidationReport.retry_hint` back
    to the authoring source.
    """

    def __init__(self, report: "ModelValidationReport") -> None:
        super().__init__(report.describe())
        self.report = report

    @property
    def missing_fields(self) -> list[str]:
        return list(self.report.missing_fields)


class UnknownStateError(PrismaError):
    """Exception raised when an input references an undefined state or id."""

    def __init__(self, message: str, state: Optional[str] = None) -> None:
        super().__init__(message)
        self.state = state


class UnknownScenarioError(UnknownStateError):
    """Exception raised when a scenario id is not declared in the model."""

    def __init__(self, scenario_id: str) -> None:
        super().__init__(f"Scenario not found: {scenario_id}", scenario_id)
        self.scenario_id = scenario_id


class UnknownVariableError(UnknownStateError):
    """Exception raised when a variable id is not declared in the model."""

    def __init__(self, variable_id: str) -> None:
        super().__init__(f"Variable not found: {variable_id}", variable_id)
        self.variable_id = variable_id


class InvalidTransitionMatrixError(ModelError):
    """Exception raised when a Markov transition matrix is not well-formed."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("Invalid transition matrix: " + "; ".join(errors))
        self.errors = errors
