"""Overlay a scenario's overrides onto baseline variables."""

from typing import Sequence

from prisma_engine.data.models import Scenario, ScenarioChange, Variable


def apply_change(variable: Variable, change: ScenarioChange) -> Variable:
    """Return a copy of ``variable`` with one scenario change applied.

    ``value``, ``min`` and ``max`` overrides replace independently; a
    ``delta`` is applied afterwards and shifts the centre and both bounds,
    preserving the range width.
    """
    update = {}
    if change.value is not None:
        update["value"] = change.value
    if change.min is not None:
        update["min"] = change.min
    if change.max is not None:
        update["max"] = change.max

    if change.delta is not None:
        update["value"] = update.get("value", variable.value) + change.delta
        update["min"] = update.get("min", variable.min) + change.delta
        update["max"] = update.get("max", variable.max) + change.delta

    return variable.model_copy(update=update)


def apply_scenario(variables: Sequence[Variable], scenario: Scenario) -> list[Variable]:
    """Build the per-scenario variable set.

    Args:
        variables: Baseline variables (left untouched)
        scenario: Scenario whose changes are overlaid

    Returns:
        Fresh variable objects, in the baseline order
    """
    result = []
    for variable in variables:
        change = scenario.changes.get(variable.id)
        if change is None:
            result.append(variable.model_copy())
        else:
            result.append(apply_change(variable, change))
    return result
