"""Causal graph over decision-model variables.

Edges are not required to be acyclic: a feedback loop is an explicitly
flagged cycle. Propagation therefore walks the edge list in bounded
passes instead of a single topological sweep, retrying edges whose source
value is not known yet.
"""

from collections.abc import Mapping, Sequence
from typing import Optional, Union

import structlog

from prisma_engine.data.models import Edge
from prisma_engine.exceptions import FormulaError
from prisma_engine.formula.evaluator import EvaluationError, compile_formula, parse_edge_formula

logger = structlog.get_logger(__name__)

DEFAULT_MAX_PASSES = 100
# Scale applied to source * strength for edges without a formula
STRENGTH_SCALE = 0.1


class CausalGraph:
    """Adjacency view and propagator for a list of causal edges.

    Example:
        >>> graph = CausalGraph(model.edges)
        >>> graph.get_children("driver_count")
        >>> derived = graph.propagate({"driver_count": 5, "daily_deliveries": 80})
    """

    def __init__(
        self,
        edges: Sequence[Edge],
        max_passes: int = DEFAULT_MAX_PASSES,
        max_formula_length: Optional[int] = None,
    ) -> None:
        """Initialize graph.

        Args:
            edges: Causal edges, in evaluation order
            max_passes: Cap on propagation passes (cycle safety)
            max_formula_length: Formula length cap (defaults to the configured cap)
        """
        self.edges = list(edges)
        self.max_passes = max_passes
        self.max_formula_length = max_formula_length
        self._adjacency: dict[str, set[str]] = {}  # parent -> children
        self._reverse_adjacency: dict[str, set[str]] = {}  # child -> parents
        self.logger = logger.bind(component="CausalGraph")

        for edge in self.edges:
            self._adjacency.setdefault(edge.source, set()).add(edge.target)
            self._adjacency.setdefault(edge.target, set())
            self._reverse_adjacency.setdefault(edge.target, set()).add(edge.source)
            self._reverse_adjacency.setdefault(edge.source, set())

        self._compiled = [self._compile_edge(index, edge) for index, edge in enumerate(self.edges)]

    @property
    def nodes(self) -> set[str]:
        return set(self._adjacency)

    @property
    def derived_identifiers(self) -> set[str]:
        """Identifiers propagation can write: edge targets and formula targets."""
        derived = {edge.target for edge in self.edges}
        for compiled in self._compiled:
            if isinstance(compiled, tuple):
                derived.add(compiled[0])
        return derived

    def get_parents(self, node_name: str) -> list[str]:
        """Get parent nodes (direct causes) of a node."""
        return sorted(self._reverse_adjacency.get(node_name, ()))

    def get_children(self, node_name: str) -> list[str]:
        """Get children nodes (direct effects) of a node."""
        return sorted(self._adjacency.get(node_name, ()))

    def get_descendants(self, node_name: str) -> set[str]:
        """Get every node reachable from a node."""
        descendants: set[str] = set()
        stack = list(self._adjacency.get(node_name, ()))

        while stack:
            current = stack.pop()
            if current in descendants:
                continue
            descendants.add(current)
            stack.extend(self._adjacency.get(current, ()))

        return descendants

    def find_cycles(self) -> list[list[str]]:
        """Find elementary cycles, each reported once from its smallest node.

        Returns:
            Cycles as node paths, e.g. ``[["a", "b", "a"]]``
        """
        cycles: list[list[str]] = []

        for start in sorted(self._adjacency):
            stack: list[tuple[str, list[str]]] = [(start, [start])]
            while stack:
                current, path = stack.pop()
                for child in sorted(self._adjacency.get(current, ())):
                    if child == start:
                        cycles.append(path + [start])
                    elif child not in path and child > start:
                        stack.append((child, path + [child]))

        return cycles

    def propagate(self, sampled_values: Mapping[str, float]) -> dict[str, float]:
        """Compute derived values by walking the edges to a fixpoint.

        Each edge is evaluated at most once, as soon as its source value is
        known. Passes repeat until one produces no change or the pass cap
        is reached.

        Args:
            sampled_values: Sampled value per variable id (not modified)

        Returns:
            Working map of raw and derived values
        """
        values = dict(sampled_values)
        processed: set[int] = set()

        for _ in range(self.max_passes):
            changed = False

            for index, edge in enumerate(self.edges):
                if index in processed or edge.source not in values:
                    continue

                compiled = self._compiled[index]
                if compiled is None:
                    current = values.get(edge.target, 0.0)
                    values[edge.target] = (
                        current + values[edge.source] * edge.strength * STRENGTH_SCALE * edge.sign
                    )
                    changed = True
                elif compiled is not _REJECTED:
                    target, expression = compiled
                    result = expression.evaluate(values)
                    if isinstance(result, EvaluationError):
                        self.logger.debug(
                            "edge_formula_failed",
                            source=edge.source,
                            target=target,
                            reason=result.reason,
                        )
                    else:
                        values[target] = result
                        changed = True

                processed.add(index)

            if not changed:
                break

        return values

    def _compile_edge(self, index: int, edge: Edge):
        """Validate and compile an edge formula once per graph.

        Returns None for strength-based edges and a sentinel for rejected
        formulas. A formula without an assignment is treated as an
        expression for ``edge.target``.
        """
        if not edge.formula:
            return None

        parsed = parse_edge_formula(edge.formula)
        target, text = (parsed.target, parsed.expression) if parsed else (edge.target, edge.formula)

        try:
            expression = compile_formula(text, self.max_formula_length)
        except FormulaError as e:
            self.logger.warning(
                "edge_formula_rejected",
                source=edge.source,
                target=edge.target,
                reason=getattr(e, "reason", str(e)),
            )
            return _REJECTED

        if parsed and parsed.target != edge.target:
            self.logger.debug(
                "edge_target_mismatch", declared=edge.target, formula_target=parsed.target
            )
        return target, expression


_REJECTED = object()


def propagate(
    sampled_values: Mapping[str, float],
    edges: Union[Sequence[Edge], CausalGraph],
    max_passes: Optional[int] = None,
) -> dict[str, float]:
    """Propagate sampled values through causal edges.

    Args:
        sampled_values: Sampled value per variable id
        edges: Edge list, or a prebuilt graph to reuse compiled formulas
        max_passes: Cap on propagation passes

    Returns:
        Working map of raw and derived values
    """
    if isinstance(edges, CausalGraph):
        graph = edges
        if max_passes is not None and max_passes != graph.max_passes:
            graph = CausalGraph(graph.edges, max_passes, graph.max_formula_length)
    else:
        graph = CausalGraph(edges, max_passes or DEFAULT_MAX_PASSES)
    return graph.propagate(sampled_values)
