"""Formula safety validation, parsing and evaluation."""

from prisma_engine.formula.evaluator import (
    RESERVED_IDENTIFIERS,
    SCENARIO_IDENTIFIER,
    CompiledExpression,
    EdgeFormula,
    EvaluationError,
    compile_formula,
    evaluate,
    find_assignment,
    parse_edge_formula,
    prepare,
    referenced_identifiers,
)
from prisma_engine.formula.parser import compile_expression
from prisma_engine.formula.validator import (
    FormulaCheck,
    FormulaValidator,
    check_formula,
    default_validator,
    validate_formula,
)

__all__ = [
    "RESERVED_IDENTIFIERS",
    "SCENARIO_IDENTIFIER",
    "CompiledExpression",
    "EdgeFormula",
    "EvaluationError",
    "FormulaCheck",
    "FormulaValidator",
    "check_formula",
    "default_validator",
    "compile_expression",
    "compile_formula",
    "evaluate",
    "find_assignment",
    "parse_edge_formula",
    "prepare",
    "referenced_identifiers",
    "validate_formula",
]
