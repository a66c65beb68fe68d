"""Structural and semantic validation of authored decision models.

Authoring payloads are untrusted. :func:`validate_payload` checks them
before any sampling happens and returns a structured report listing
exactly what is wrong, so an upstream authoring loop can retry with a
correction message (:meth:`ModelValidationReport.retry_hint`).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from pydantic import ValidationError
import structlog

from prisma_engine.data.models import DecisionModel
from prisma_engine.exceptions import (
    FormulaRejectedError,
    FormulaSyntaxError,
    MalformedModelError,
)
from prisma_engine.formula.evaluator import (
    RESERVED_IDENTIFIERS,
    compile_formula,
    parse_edge_formula,
    referenced_identifiers,
)
from prisma_engine.simulation.engine.markov import validate_transition_matrix

logger = structlog.get_logger(__name__)

REQUIRED_FIELDS = ("variables", "scenarios", "outcome with formula", "edges")


@dataclass
class ModelValidationReport:
    """Everything wrong with one authored payload.

    Attributes:
        missing_fields: Required top-level fields that are absent or empty
        errors: Schema errors, unsafe formulas and unknown edge endpoints
        unknown_identifiers: Formula identifiers that resolve to no variable
        warnings: Non-blocking findings (e.g. scenarios that cannot move the outcome)
        variable_ids: Declared variable ids
        formula_identifiers: Identifiers the outcome formula references
        scenario_change_keys: Variable ids overridden by non-baseline scenarios
        model: The parsed model when the schema was satisfied
    """

    missing_fields: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    unknown_identifiers: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    variable_ids: List[str] = field(default_factory=list)
    formula_identifiers: List[str] = field(default_factory=list)
    scenario_change_keys: List[str] = field(default_factory=list)
    model: Optional[DecisionModel] = field(default=None, repr=False)

    @property
    def valid(self) -> bool:
        return not (self.missing_fields or self.errors or self.unknown_identifiers)

    @property
    def reason(self) -> Optional[str]:
        """Primary failure category, or None when nothing needs correcting."""
        if self.missing_fields:
            return "missing_fields"
        if self.errors:
            return "invalid_model"
        if self.unknown_identifiers:
            return "formula_mismatch"
        if "no_scenario_overlap" in self.warnings:
            return "no_scenario_overlap"
        return None

    def describe(self) -> str:
        parts = []
        if self.missing_fields:
            parts.append("Missing required fields: " + ", ".join(self.missing_fields))
        if self.errors:
            parts.append("Errors: " + "; ".join(self.errors))
        if self.unknown_identifiers:
            parts.append("Unknown identifiers: " + ", ".join(self.unknown_identifiers))
        if not parts:
            return "Decision model is valid"
        return ". ".join(parts)

    def retry_hint(self) -> Optional[str]:
        """Correction message for the authoring source, or None."""
        reason = self.reason
        if reason is None:
            return None

        if reason == "missing_fields":
            return (
                "VALIDATION ERROR: Missing required fields: "
                + ", ".join(self.missing_fields)
                + ". You MUST include ALL of: variables (array), scenarios (array "
                'with "Do Nothing"), outcome (object with formula using exact '
                "variable IDs), edges (array of causal relationships). Retry now."
            )

        if reason == "formula_mismatch":
            bad = ", ".join(f"`{name}`" for name in self.unknown_identifiers)
            known = ", ".join(f"`{name}`" for name in self.variable_ids)
            return (
                f"Your formula references {bad} but the variable ids are [{known}]. "
                "The formula MUST use exact variable ids. Also, at least one formula "
                "variable must appear in scenario changes. Regenerate the tool call "
                "with the corrected formula."
            )

        if reason == "no_scenario_overlap":
            return (
                f"Your formula uses variables [{', '.join(self.formula_identifiers)}] "
                "but none of these appear in any scenario's changes (scenario change "
                f"keys: [{', '.join(self.scenario_change_keys)}]). At least one formula "
                "variable must be overridden in scenario changes so outcomes differ "
                "between scenarios. Regenerate the tool call."
            )

        return (
            "VALIDATION ERROR: " + "; ".join(self.errors)
            + ". Regenerate the tool call with these problems fixed."
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "reason": self.reason,
            "missingFields": list(self.missing_fields),
            "errors": list(self.errors),
            "unknownIdentifiers": list(self.unknown_identifiers),
            "warnings": list(self.warnings),
        }


def find_missing_fields(payload: Dict[str, Any]) -> List[str]:
    """Required top-level fields that are absent, empty or of the wrong shape."""
    missing = []
    variables = payload.get("variables")
    if not isinstance(variables, list) or not variables:
        missing.append("variables")
    scenarios = payload.get("scenarios")
    if not isinstance(scenarios, list) or not scenarios:
        missing.append("scenarios")
    outcome = payload.get("outcome")
    if not isinstance(outcome, dict) or not outcome.get("formula"):
        missing.append("outcome with formula")
    if not isinstance(payload.get("edges"), list):
        missing.append("edges")
    return missing


def validate_payload(payload: Any) -> ModelValidationReport:
    """Validate an authored decision-model payload.

    Args:
        payload: Decoded authoring JSON

    Returns:
        Report; ``report.model`` holds the parsed model when the schema passed
    """
    report = ModelValidationReport()

    if not isinstance(payload, dict):
        report.missing_fields = list(REQUIRED_FIELDS)
        report.errors.append("payload must be a JSON object")
        return report

    report.missing_fields = find_missing_fields(payload)
    if report.missing_fields:
        logger.warning("model_missing_fields", missing_fields=report.missing_fields)
        return report

    try:
        model = DecisionModel.from_payload(payload)
    except ValidationError as e:
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            report.errors.append(f"{location}: {error['msg']}")
        logger.warning("model_schema_invalid", error_count=len(report.errors))
        return report

    return validate_model(model, report)


def validate_model(
    model: DecisionModel, report: Optional[ModelValidationReport] = None
) -> ModelValidationReport:
    """Semantic checks on a schema-valid model."""
    report = report or ModelValidationReport()
    report.model = model
    report.variable_ids = model.variable_ids()
    variable_ids = set(report.variable_ids)

    _check_duplicates(report.variable_ids, "variable", report)
    _check_duplicates([s.id for s in model.scenarios], "scenario", report)

    derived_ids: Set[str] = set()
    for index, edge in enumerate(model.edges):
        if edge.source not in variable_ids:
            report.errors.append(f"edge {index}: unknown source '{edge.source}'")
        if edge.target not in variable_ids:
            report.errors.append(f"edge {index}: unknown target '{edge.target}'")
        if edge.formula:
            parsed = parse_edge_formula(edge.formula)
            expression = parsed.expression if parsed else edge.formula
            derived_ids.add(parsed.target if parsed else edge.target)
            _check_formula(expression, f"edge {index} formula", report)

    known_ids = variable_ids | derived_ids | RESERVED_IDENTIFIERS
    unknown: List[str] = []

    for index, edge in enumerate(model.edges):
        if edge.formula:
            parsed = parse_edge_formula(edge.formula)
            expression = parsed.expression if parsed else edge.formula
            unknown.extend(sorted(referenced_identifiers(expression) - known_ids))

    _check_formula(model.outcome.formula, "outcome formula", report)
    outcome_ids = referenced_identifiers(model.outcome.formula) - RESERVED_IDENTIFIERS
    report.formula_identifiers = sorted(outcome_ids)
    unknown.extend(sorted(outcome_ids - known_ids))

    report.unknown_identifiers = list(dict.fromkeys(unknown))

    _check_scenarios(model, variable_ids, outcome_ids, report)
    _check_markov(model, report)

    if report.valid:
        logger.debug("model_validated", warnings=report.warnings)
    else:
        logger.warning(
            "model_invalid",
            errors=report.errors,
            unknown_identifiers=report.unknown_identifiers,
        )
    return report


def load_model(payload: Any) -> DecisionModel:
    """Validate a payload and return its model.

    Raises:
        MalformedModelError: If the payload fails validation
    """
    report = validate_payload(payload)
    if not report.valid:
        raise MalformedModelError(report)
    return report.model


def _check_duplicates(ids: List[str], kind: str, report: ModelValidationReport) -> None:
    seen: Set[str] = set()
    for item in ids:
        if item in seen:
            report.errors.append(f"duplicate {kind} id '{item}'")
        seen.add(item)


def _check_formula(formula: str, context: str, report: ModelValidationReport) -> None:
    try:
        compile_formula(formula)
    except FormulaRejectedError as e:
        report.errors.append(f"{context} rejected ({e.reason})")
    except FormulaSyntaxError as e:
        report.errors.append(f"{context} does not parse ({e})")


def _check_scenarios(
    model: DecisionModel,
    variable_ids: Set[str],
    outcome_ids: Set[str],
    report: ModelValidationReport,
) -> None:
    change_keys: List[str] = []
    for scenario in model.scenarios:
        for variable_id in scenario.changes:
            if variable_id not in variable_ids:
                report.warnings.append(
                    f"scenario '{scenario.id}' changes unknown variable '{variable_id}'"
                )
            if not scenario.is_baseline:
                change_keys.append(variable_id)

    report.scenario_change_keys = list(dict.fromkeys(change_keys))
    has_options = any(not scenario.is_baseline for scenario in model.scenarios)
    if has_options and outcome_ids and not outcome_ids & set(change_keys):
        report.warnings.append("no_scenario_overlap")


def _check_markov(model: DecisionModel, report: ModelValidationReport) -> None:
    if model.markov is None or not model.markov.enabled:
        return

    for entity in model.markov.entities:
        if entity.initial_state not in entity.states:
            report.errors.append(
                f"markov entity '{entity.id}': initial state '{entity.initial_state}' "
                "is not one of its states"
            )
        matrices = {"default": entity.transitions, **entity.scenario_transitions}
        for name, matrix in matrices.items():
            validation = validate_transition_matrix(matrix)
            for error in validation.errors:
                report.errors.append(f"markov entity '{entity.id}' ({name}): {error}")
