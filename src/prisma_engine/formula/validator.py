"""Static safety filter for authored formula strings.

Formulas arrive from an untrusted authoring source (an LLM tool call), so
every formula passes this conservative, pattern-based check before it is
parsed or evaluated. The check is not a parser: it rejects anything
ambiguous and leaves grammar errors to :mod:`prisma_engine.formula.parser`.
"""

from dataclasses import dataclass
import re
from typing import Any, Optional

import structlog

from prisma_engine.config import get_config

logger = structlog.get_logger(__name__)

MAX_FORMULA_LENGTH = 1000

# Whole-word tokens that never belong in an arithmetic expression
DENYLISTED_TOKENS = frozenset({
    # runtime / global objects
    "window", "document", "globalThis", "global", "self", "top", "parent",
    "frames", "location", "navigator", "console",
    # reflection and object internals
    "constructor", "prototype", "__proto__", "Function", "Reflect", "Proxy",
    "__import__", "__builtins__", "__class__", "__subclasses__", "__globals__",
    "getattr", "setattr", "delattr", "globals", "locals", "vars", "lambda",
    # code loading and evaluation
    "eval", "exec", "compile", "import", "require", "evaluate",
    # network primitives
    "fetch", "XMLHttpRequest", "WebSocket", "URL", "socket", "urllib",
    # timers and workers
    "setTimeout", "setInterval", "Worker", "Blob",
    # process control
    "process", "child_process", "spawn", "subprocess", "os", "sys", "open",
    # user interaction
    "alert", "confirm", "prompt",
})

_DENYLIST_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(token) for token in sorted(DENYLISTED_TOKENS)) + r")\b"
)
_TEMPLATE_OR_INDEX_PATTERN = re.compile(r"[`\[\]]")
_STATEMENT_PATTERN = re.compile(r"[;{}]")
_COMPARISON_OPERATORS = ("===", "!==", "==", "!=", ">=", "<=")
_ALLOWED_PATTERN = re.compile(r"^[a-zA-Z0-9_\s+\-*/%().,:?<>=!&|^~'\"]+$")


@dataclass(frozen=True)
class FormulaCheck:
    """Outcome of a safety check.

    Attributes:
        valid: Whether the formula may be evaluated
        reason: Short machine-readable rejection reason (None when valid)
    """

    valid: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid


class FormulaValidator:
    """Conservative static filter for formula text."""

    def __init__(self, max_length: int = MAX_FORMULA_LENGTH) -> None:
        self.max_length = max_length

    def check(self, formula: Any) -> FormulaCheck:
        """Check a formula and report why it was rejected.

        Args:
            formula: Candidate formula text

        Returns:
            FormulaCheck describing the decision
        """
        if not isinstance(formula, str):
            return FormulaCheck(False, "not_a_string")
        if not formula.strip():
            return FormulaCheck(False, "empty")
        if len(formula) > self.max_length:
            return FormulaCheck(False, "too_long")

        match = _DENYLIST_PATTERN.search(formula)
        if match:
            return FormulaCheck(False, f"denylisted_token:{match.group(1)}")

        if _TEMPLATE_OR_INDEX_PATTERN.search(formula):
            return FormulaCheck(False, "template_or_index_syntax")

        if _STATEMENT_PATTERN.search(formula):
            return FormulaCheck(False, "statement_syntax")

        if "=" in strip_comparison_operators(formula):
            return FormulaCheck(False, "assignment")

        if not _ALLOWED_PATTERN.match(formula):
            return FormulaCheck(False, "disallowed_character")

        return FormulaCheck(True)

    def is_safe(self, formula: Any) -> bool:
        """Return True when the formula passes every check."""
        result = self.check(formula)
        if not result.valid:
            logger.debug("formula_rejected", reason=result.reason)
        return result.valid


def strip_comparison_operators(formula: str) -> str:
    """Remove comparison operators so any remaining '=' is an assignment.

    Longer operators are removed first so '===' is not left as '='.
    """
    stripped = formula
    for operator in _COMPARISON_OPERATORS:
        stripped = stripped.replace(operator, "")
    return stripped


def default_validator(max_length: Optional[int] = None) -> FormulaValidator:
    """Validator using ``max_length`` or the configured formula length cap."""
    if max_length is None:
        max_length = get_config().simulation.max_formula_length
    return FormulaValidator(max_length)


def validate_formula(formula: Any, max_length: Optional[int] = None) -> bool:
    """Module-level wrapper around the default validator."""
    return default_validator(max_length).is_safe(formula)


def check_formula(formula: Any, max_length: Optional[int] = None) -> FormulaCheck:
    """Module-level wrapper returning the rejection reason."""
    return default_validator(max_length).check(formula)
