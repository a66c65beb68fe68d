"""Formula evaluation against a named-value environment.

Evaluation never raises across this module's boundary: every failure
(syntax, unknown identifier, division by zero, non-finite result) comes
back as an :class:`EvaluationError` value the caller can branch on.
"""

from dataclasses import dataclass
import math
import re
from typing import FrozenSet, Mapping, Optional, Union

from prisma_engine.exceptions import FormulaRejectedError, FormulaSyntaxError
from prisma_engine.formula.parser import (
    CONSTANTS,
    FUNCTIONS,
    MATH_NAMESPACE,
    EvaluationFailure,
    Value,
    compile_expression,
    tokenize,
)
from prisma_engine.formula.validator import check_formula

# Injected by the simulator so outcome formulas can branch per scenario
SCENARIO_IDENTIFIER = "scenario"
RESERVED_IDENTIFIERS = frozenset({SCENARIO_IDENTIFIER})

_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class EvaluationError:
    """A formula that could not produce a finite number.

    Attributes:
        expression: The expression text that failed
        reason: Human-readable failure description
    """

    expression: str
    reason: str


@dataclass(frozen=True)
class EdgeFormula:
    """An edge formula split into its target and right-hand side."""

    target: str
    expression: str


class CompiledExpression:
    """A parsed expression ready for repeated evaluation."""

    def __init__(self, text: str, tree) -> None:
        self.text = text
        self._tree = tree

    def evaluate(self, environment: Mapping[str, Value]) -> Union[float, EvaluationError]:
        try:
            result = self._tree.evaluate(environment)
        except EvaluationFailure as e:
            return EvaluationError(self.text, e.reason)
        except (ZeroDivisionError, OverflowError, ValueError, TypeError) as e:
            return EvaluationError(self.text, f"{type(e).__name__}: {e}")
        except RecursionError:
            return EvaluationError(self.text, "expression nested too deeply")

        if isinstance(result, str):
            return EvaluationError(self.text, "non-numeric result")
        result = float(result)
        if not math.isfinite(result):
            return EvaluationError(self.text, "non-finite result")
        return result

    def identifiers(self) -> FrozenSet[str]:
        return frozenset(self._tree.names())

    def __repr__(self) -> str:
        return f"CompiledExpression({self.text!r})"


def prepare(expression: str) -> Union[CompiledExpression, EvaluationError]:
    """Compile an expression once for use across many evaluations."""
    try:
        return CompiledExpression(expression, _compile(expression))
    except FormulaSyntaxError as e:
        return EvaluationError(expression, f"syntax error: {e}")


def compile_formula(
    expression: str, max_length: Optional[int] = None
) -> CompiledExpression:
    """Safety-check and compile an untrusted formula.

    Args:
        expression: Formula text from the authoring source
        max_length: Length cap (defaults to the configured cap)

    Raises:
        FormulaRejectedError: If the formula fails the safety check
        FormulaSyntaxError: If it does not match the grammar
    """
    check = check_formula(expression, max_length)
    if not check.valid:
        raise FormulaRejectedError(check.reason, expression)
    return CompiledExpression(expression, _compile(expression))


def _compile(expression: str):
    try:
        return compile_expression(expression)
    except RecursionError:
        raise FormulaSyntaxError("Expression nested too deeply", expression) from None


def evaluate(
    expression: str, environment: Mapping[str, Value]
) -> Union[float, EvaluationError]:
    """Evaluate an arithmetic expression.

    Args:
        expression: Pure arithmetic/ternary expression text
        environment: Identifier values visible to the expression

    Returns:
        The finite numeric result, or an EvaluationError
    """
    compiled = prepare(expression)
    if isinstance(compiled, EvaluationError):
        return compiled
    return compiled.evaluate(environment)


def is_error(value: object) -> bool:
    return isinstance(value, EvaluationError)


def find_assignment(formula: str, start: int = 0) -> int:
    """Return the index of the first bare '=' at or after ``start``, or -1.

    An '=' belonging to ``==``, ``===``, ``!=``, ``!==``, ``<=`` or ``>=``
    is not an assignment.
    """
    for index in range(start, len(formula)):
        if formula[index] != "=":
            continue
        previous = formula[index - 1] if index > 0 else ""
        following = formula[index + 1] if index + 1 < len(formula) else ""
        if previous in ("=", "!", "<", ">") or following == "=":
            continue
        return index
    return -1


def parse_edge_formula(formula: Optional[str]) -> Optional[EdgeFormula]:
    """Split ``"target = expression"`` at its first bare '='.

    A bare '=' with nothing on one side is skipped in favour of a later one.
    Returns None when there is no usable assignment or the target is not a
    plain identifier.
    """
    if not formula:
        return None
    index = find_assignment(formula)
    while index >= 0:
        target = formula[:index].strip()
        expression = formula[index + 1:].strip()
        if target and expression:
            if not _IDENTIFIER_PATTERN.match(target):
                return None
            return EdgeFormula(target=target, expression=expression)
        index = find_assignment(formula, index + 1)
    return None


def referenced_identifiers(expression: str) -> FrozenSet[str]:
    """Identifiers an expression reads from its environment.

    Works from the token stream so partially malformed expressions still
    report what they reference. Function names, ``Math`` members and
    built-in constants are excluded. Text that cannot be tokenized
    references nothing.
    """
    try:
        tokens = tokenize(expression)
    except FormulaSyntaxError:
        return frozenset()

    names = set()
    for index, token in enumerate(tokens):
        if token.kind != "name":
            continue
        previous = tokens[index - 1] if index > 0 else None
        following = tokens[index + 1]
        if previous is not None and previous.text == ".":
            continue
        if token.text == MATH_NAMESPACE or token.text in CONSTANTS:
            continue
        if following.text == "(" and token.text in FUNCTIONS:
            continue
        names.add(token.text)
    return frozenset(names)
