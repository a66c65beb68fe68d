"""Tests for the Monte Carlo decision simulator."""

import numpy as np
import pytest

from prisma_engine.config import SimulationConfig
from prisma_engine.data.models import DecisionModel
from prisma_engine.exceptions import UnknownScenarioError
from prisma_engine.simulation.engine.simulator import MonteCarloSimulator, SimulationResult


@pytest.fixture
def simulator(fast_config):
    return MonteCarloSimulator(random_state=42, config=fast_config)


def payload(formula, variables, scenarios=None, edges=None):
    return DecisionModel.from_payload({
        "variables": variables,
        "edges": edges or [],
        "scenarios": scenarios or [{"id": "nothing", "changes": {}}],
        "outcome": {"id": "out", "formula": formula},
    })


class TestMonteCarloSimulator:
    """Test MonteCarloSimulator class."""

    def test_delivery_baseline_end_to_end(self, simple_model):
        """Test the skewed-clamp normal baseline over 1000 iterations."""
        result = MonteCarloSimulator(random_state=11).run(simple_model, "nothing", 1000)
        assert result.iterations == 1000
        assert result.baseline_outcome == pytest.approx(800)
        assert abs(result.summary.mean) < 0.03 * result.baseline_outcome
        assert result.summary.percent_positive + result.summary.percent_negative <= 100
        assert result.summary.min >= -200
        assert result.summary.max <= 300

    def test_baseline_scenario_centres_on_zero(self, simulator, investment_model):
        """Test that outcomes are reported relative to the baseline reference."""
        result = simulator.run(investment_model, "nothing", iterations=2000)
        assert result.baseline_outcome == pytest.approx(500)
        assert result.summary.mean == pytest.approx(0, abs=25)
        assert result.summary.percent_positive + result.summary.percent_negative <= 100

    def test_scenarios_order_by_return(self, simulator, investment_model):
        results = simulator.run_all(investment_model)
        assert list(results) == ["nothing", "aggressive", "conservative"]
        assert results["aggressive"].median > results["nothing"].median
        assert results["nothing"].median > results["conservative"].median
        assert results["aggressive"].median == pytest.approx(400, abs=60)
        assert results["conservative"].summary.max < -199.9

    def test_result_shape(self, simulator, simple_model):
        result = simulator.run(simple_model, "nothing", iterations=123)
        assert isinstance(result, SimulationResult)
        assert result.iterations == 123
        assert result.scenario_id == "nothing"
        assert result.failed_iterations == 0
        assert not result.formula_rejected

    def test_outcomes_are_read_only(self, simulator, simple_model):
        outcomes = simulator.run_outcomes(simple_model, "nothing", iterations=10)
        with pytest.raises(ValueError):
            outcomes[0] = 1.0

    def test_zero_iterations(self, simulator, simple_model):
        result = simulator.run(simple_model, "nothing", iterations=0)
        assert result.iterations == 0
        assert result.median == 0

    def test_negative_iterations(self, simulator, simple_model):
        with pytest.raises(ValueError):
            simulator.run(simple_model, "nothing", iterations=-1)

    def test_default_iterations_come_from_config(self, simulator, simple_model, fast_config):
        assert simulator.run(simple_model, "nothing").iterations == fast_config.iterations

    def test_unknown_scenario(self, simulator, simple_model):
        with pytest.raises(UnknownScenarioError):
            simulator.run(simple_model, "ghost")

    def test_seeded_runs_reproduce(self, fast_config, investment_model):
        first = MonteCarloSimulator(7, fast_config).run(investment_model, "aggressive", 200)
        second = MonteCarloSimulator(7, fast_config).run(investment_model, "aggressive", 200)
        np.testing.assert_array_equal(first.outcomes, second.outcomes)

    def test_with_seed_shares_config(self, simulator, fast_config):
        other = simulator.with_seed(5)
        assert other.config is fast_config
        assert other.random_state == 5

    def test_spawn_is_deterministic_for_seeded_parent(self, fast_config):
        first = MonteCarloSimulator(9, fast_config).spawn()
        second = MonteCarloSimulator(9, fast_config).spawn()
        assert first.random_state == second.random_state

    def test_model_is_not_modified(self, simulator, delivery_model):
        before = delivery_model.to_payload()
        simulator.run(delivery_model, "hire_two_drivers", iterations=50)
        assert delivery_model.to_payload() == before


class TestOutcomeEvaluation:
    """Test how the outcome formula sees sampled and derived values."""

    def test_deeply_nested_formula_is_rejected(self, simulator):
        nested = "(" * 300 + "a" + ")" * 300
        result = simulator.run(payload(nested, [{"id": "a", "value": 1}]), "nothing", 10)
        assert result.formula_rejected
        assert np.all(result.outcomes == 0)

    def test_deeply_nested_edge_formula_is_skipped(self, simulator):
        model = payload(
            "a * 2",
            [{"id": "a", "value": 1}, {"id": "b", "value": 1}],
            edges=[{"from": "a", "to": "b", "formula": "b = " + "(" * 300 + "a" + ")" * 300}],
        )
        result = simulator.run(model, "nothing", 10)
        assert not result.formula_rejected
        assert result.failed_iterations == 0

    def test_configured_formula_length_cap(self, simple_model):
        config = SimulationConfig(iterations=10, max_formula_length=5)
        result = MonteCarloSimulator(1, config).run(simple_model, "nothing")
        assert result.formula_rejected

    def test_rejected_formula_yields_zeros(self, simulator):
        model = payload("fetch(a)", [{"id": "a", "value": 1}])
        result = simulator.run(model, "nothing", iterations=20)
        assert result.formula_rejected
        assert np.all(result.outcomes == 0)
        assert result.iterations == 20

    def test_failed_evaluations_are_counted(self, simulator):
        model = payload(
            "a / b",
            [{"id": "a", "value": 10}, {"id": "b", "value": 2}],
            scenarios=[
                {"id": "nothing", "changes": {}},
                {"id": "broken", "changes": {"b": {"value": 0, "min": 0, "max": 0}}},
            ],
        )
        result = simulator.run(model, "broken", iterations=30)
        assert result.failed_iterations == 30
        assert result.baseline_outcome == 5
        assert np.all(result.outcomes == -5)

    def test_scenario_identifier(self, simulator):
        model = payload(
            "scenario == 'hire' ? 100 : 0",
            [{"id": "a", "value": 1}],
            scenarios=[{"id": "nothing"}, {"id": "hire"}],
        )
        assert simulator.run(model, "nothing", iterations=5).median == 0
        assert simulator.run(model, "hire", iterations=5).median == 100

    def test_derived_identifier_is_visible(self, simulator):
        model = payload(
            "late_pct * 100",
            [{"id": "reliability", "value": 0.8, "min": 0.6, "max": 1.0, "distribution": "uniform"}],
            edges=[{"from": "reliability", "to": "late_pct",
                    "formula": "late_pct = (1 - reliability) * 0.25"}],
        )
        result = simulator.run(model, "nothing", iterations=500)
        assert result.baseline_outcome == pytest.approx(5)
        assert result.summary.min >= -5 - 1e-9
        assert result.summary.max <= 5 + 1e-9

    def test_raw_value_wins_over_derived(self, simulator):
        model = payload(
            "b",
            [{"id": "a", "value": 10}, {"id": "b", "value": 3}],
            edges=[{"from": "a", "to": "b", "strength": 1}],
        )
        result = simulator.run(model, "nothing", iterations=10)
        assert result.baseline_outcome == 3
        assert np.all(result.outcomes == 0)

    def test_demo_model_scenarios(self, simulator, delivery_model):
        results = simulator.run_all(delivery_model, iterations=300)
        assert results["hire_two_drivers"].median > results["restructure_routes"].median
        assert results["restructure_routes"].median > results["do_nothing"].median
        assert results["do_nothing"].median < 0

    def test_to_dict(self, simulator, simple_model):
        result = simulator.run(simple_model, "nothing", iterations=5)
        data = result.to_dict()
        assert data["scenarioId"] == "nothing"
        assert len(data["outcomes"]) == 5
        assert "outcomes" not in result.to_dict(include_outcomes=False)
