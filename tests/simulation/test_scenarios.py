"""Tests for scenario overlays."""

import pytest

from prisma_engine.data.models import Scenario, ScenarioChange, Variable
from prisma_engine.simulation.core.scenarios import apply_change, apply_scenario


@pytest.fixture
def variables():
    return [
        Variable(id="drivers", value=5, min=5, max=5, distribution="fixed"),
        Variable(id="deliveries", value=80, min=60, max=110, distribution="normal"),
    ]


class TestApplyChange:
    """Test single-variable overrides."""

    def test_value_only_keeps_bounds(self, variables):
        changed = apply_change(variables[1], ScenarioChange(value=100))
        assert (changed.value, changed.min, changed.max) == (100, 60, 110)

    def test_bounds_replace_independently(self, variables):
        changed = apply_change(variables[1], ScenarioChange(max=130))
        assert (changed.value, changed.min, changed.max) == (80, 60, 130)

    def test_delta_shifts_centre_and_bounds(self, variables):
        changed = apply_change(variables[1], ScenarioChange(delta=-10))
        assert (changed.value, changed.min, changed.max) == (70, 50, 100)

    def test_delta_applies_after_overrides(self, variables):
        changed = apply_change(variables[1], ScenarioChange(value=100, min=90, delta=5))
        assert (changed.value, changed.min, changed.max) == (105, 95, 115)

    def test_distribution_is_kept(self, variables):
        assert apply_change(variables[0], ScenarioChange(value=7)).distribution == "fixed"


class TestApplyScenario:
    """Test whole-scenario overlays."""

    def test_baseline_is_not_mutated(self, variables):
        scenario = Scenario(id="hire", changes={"drivers": ScenarioChange(value=7, min=7, max=7)})
        result = apply_scenario(variables, scenario)
        assert result[0].value == 7
        assert variables[0].value == 5

    def test_unchanged_variables_are_fresh_copies(self, variables):
        result = apply_scenario(variables, Scenario(id="nothing"))
        assert result == variables
        assert result[1] is not variables[1]

    def test_order_is_kept(self, variables):
        scenario = Scenario(id="s", changes={"deliveries": ScenarioChange(value=90)})
        assert [v.id for v in apply_scenario(variables, scenario)] == ["drivers", "deliveries"]

    def test_unknown_change_keys_are_ignored(self, variables):
        scenario = Scenario(id="s", changes={"ghost": ScenarioChange(value=1)})
        assert apply_scenario(variables, scenario) == variables
