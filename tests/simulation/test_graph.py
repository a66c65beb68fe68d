"""Tests for the causal graph and value propagation."""

import pytest

from prisma_engine.data.models import Edge
from prisma_engine.simulation.core.graph import CausalGraph, propagate


def edge(source, target, **kwargs):
    return Edge(source=source, target=target, **kwargs)


class TestGraphStructure:
    """Test adjacency queries."""

    @pytest.fixture
    def graph(self):
        return CausalGraph([
            edge("drivers", "capacity"),
            edge("capacity", "deliveries"),
            edge("weather", "deliveries"),
        ])

    def test_nodes(self, graph):
        assert graph.nodes == {"drivers", "capacity", "deliveries", "weather"}

    def test_parents_and_children(self, graph):
        assert graph.get_parents("deliveries") == ["capacity", "weather"]
        assert graph.get_children("drivers") == ["capacity"]
        assert graph.get_children("ghost") == []

    def test_descendants(self, graph):
        assert graph.get_descendants("drivers") == {"capacity", "deliveries"}

    def test_acyclic_graph_has_no_cycles(self, graph):
        assert graph.find_cycles() == []

    def test_feedback_loop_is_reported_once(self):
        graph = CausalGraph([edge("a", "b"), edge("b", "a", is_feedback_loop=True)])
        assert graph.find_cycles() == [["a", "b", "a"]]

    def test_derived_identifiers_include_formula_targets(self):
        graph = CausalGraph([edge("a", "b", formula="late_pct = a * 0.1")])
        assert graph.derived_identifiers == {"b", "late_pct"}


class TestPropagation:
    """Test propagate()."""

    def test_strength_edge(self):
        values = propagate({"a": 10}, [edge("a", "b", strength=0.5)])
        assert values["b"] == pytest.approx(0.5)

    def test_negative_strength_edge_adds_to_existing_value(self):
        values = propagate({"a": 10, "b": 100}, [edge("a", "b", strength=1, effect="negative")])
        assert values["b"] == pytest.approx(99)

    def test_formula_edge(self):
        values = propagate({"a": 4}, [edge("a", "b", formula="b = a * 3 + 1")])
        assert values["b"] == 13

    def test_formula_target_wins_over_declared_target(self):
        values = propagate({"a": 4}, [edge("a", "b", formula="z = a * 3")])
        assert values["z"] == 12
        assert "b" not in values

    def test_formula_without_assignment_writes_declared_target(self):
        values = propagate({"a": 4}, [edge("a", "b", formula="a * 2")])
        assert values["b"] == 8

    def test_chain_resolves_regardless_of_edge_order(self):
        edges = [
            edge("b", "c", formula="c = b + 1"),
            edge("a", "b", formula="b = a * 2"),
        ]
        assert propagate({"a": 5}, edges)["c"] == 11

    def test_pass_cap_stops_propagation(self):
        edges = [
            edge("b", "c", formula="c = b + 1"),
            edge("a", "b", formula="b = a * 2"),
        ]
        values = propagate({"a": 5}, edges, max_passes=1)
        assert values["b"] == 10
        assert "c" not in values

    def test_cycle_terminates_with_each_edge_once(self):
        edges = [edge("a", "b", strength=1), edge("b", "a", strength=1, is_feedback_loop=True)]
        values = propagate({"a": 10}, edges)
        assert values["b"] == pytest.approx(1.0)
        assert values["a"] == pytest.approx(10.1)

    def test_rejected_formula_is_skipped(self):
        values = propagate({"a": 4}, [edge("a", "b", formula="b = a[0]")])
        assert values == {"a": 4}

    def test_failed_evaluation_is_skipped(self):
        values = propagate({"a": 4, "zero": 0}, [edge("a", "b", formula="b = a / zero")])
        assert "b" not in values

    def test_input_is_not_modified(self):
        sampled = {"a": 4}
        propagate(sampled, [edge("a", "b", formula="b = a * 2")])
        assert sampled == {"a": 4}

    def test_prebuilt_graph_is_reused(self):
        graph = CausalGraph([edge("a", "b", formula="b = a * 2")])
        assert propagate({"a": 1}, graph) == {"a": 1, "b": 2}
        assert propagate({"a": 3}, graph)["b"] == 6

    def test_demo_edges(self, delivery_model):
        sampled = {v.id: v.value for v in delivery_model.variables}
        values = propagate(sampled, delivery_model.edges)
        assert set(sampled) <= set(values)
