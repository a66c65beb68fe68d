"""Random draws for a single uncertain variable."""

import math
from typing import Optional

import numpy as np
import structlog

from prisma_engine.data.models import Distribution, Variable

logger = structlog.get_logger(__name__)

# Decay rate of the exponential transform behind the skewed shapes
SKEW_LAMBDA = 2.5
# Exponential draws are truncated at this value before normalizing to [0, 1]
SKEW_CUTOFF = 3.0
# The declared range spans +/- this many standard deviations
NORMAL_RANGE_SIGMAS = 6.0


class DistributionSampler:
    """Draw values for variables from their declared distribution shape.

    The sampler owns its random stream so independent simulations never
    share state, and a seeded sampler reproduces the same sequence.
    """

    def __init__(self, random_state: Optional[int] = None) -> None:
        """Initialize sampler.

        Args:
            random_state: Random seed for reproducibility
        """
        self.rng = np.random.RandomState(random_state)
        self._warned: set[str] = set()

    def sample(self, variable: Variable) -> float:
        """Draw one value for a variable.

        Args:
            variable: Variable to sample

        Returns:
            Sampled value (always ``variable.value`` for fixed variables)
        """
        distribution = variable.distribution

        if distribution == Distribution.FIXED.value:
            return variable.value

        low, high = variable.min, variable.max

        if distribution == Distribution.UNIFORM.value:
            return self._uniform(low, high)

        if distribution == Distribution.NORMAL.value:
            std_dev = (high - low) / NORMAL_RANGE_SIGMAS
            drawn = variable.value + self._standard_normal() * std_dev
            return min(max(drawn, low), high)

        if distribution == Distribution.RIGHT_SKEWED.value:
            return low + self._skew_fraction() * (high - low)

        if distribution == Distribution.LEFT_SKEWED.value:
            return high - self._skew_fraction() * (high - low)

        if distribution not in self._warned:
            self._warned.add(distribution)
            logger.warning(
                "unknown_distribution",
                distribution=distribution,
                variable_id=variable.id,
                fallback="uniform",
            )
        return self._uniform(low, high)

    def _uniform(self, low: float, high: float) -> float:
        return low + self.rng.random_sample() * (high - low)

    def _standard_normal(self) -> float:
        """Box-Muller transform over two uniform draws."""
        # 1 - u keeps u1 in (0, 1] so the log is finite
        u1 = 1.0 - self.rng.random_sample()
        u2 = self.rng.random_sample()
        return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)

    def _skew_fraction(self) -> float:
        """Truncated exponential draw normalized into [0, 1]."""
        u = self.rng.random_sample()
        t = -math.log(1.0 - u) / SKEW_LAMBDA
        return min(t, SKEW_CUTOFF) / SKEW_CUTOFF


_default_sampler: Optional[DistributionSampler] = None


def sample(variable: Variable, rng: Optional[DistributionSampler] = None) -> float:
    """Draw one value using ``rng`` or a lazily created module-level sampler."""
    global _default_sampler
    if rng is None:
        if _default_sampler is None:
            _default_sampler = DistributionSampler()
        rng = _default_sampler
    return rng.sample(variable)
