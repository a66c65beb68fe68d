"""Sampling, scenario application and causal propagation."""

from prisma_engine.simulation.core.distributions import DistributionSampler, sample
from prisma_engine.simulation.core.graph import CausalGraph, propagate
from prisma_engine.simulation.core.scenarios import apply_change, apply_scenario

__all__ = [
    "CausalGraph",
    "DistributionSampler",
    "apply_change",
    "apply_scenario",
    "propagate",
    "sample",
]
