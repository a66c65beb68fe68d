"""Summary statistics over an outcome distribution."""

from dataclasses import asdict, dataclass
import math
from typing import Sequence, Union

import numpy as np

PERCENTILES = {"p10": 0.10, "p25": 0.25, "median": 0.50, "p75": 0.75, "p90": 0.90}


@dataclass(frozen=True)
class OutcomeSummary:
    """Order statistics and moments of one outcome distribution.

    Percentiles are order-statistic lookups (no interpolation) and ``std``
    is the population standard deviation.
    """

    median: float = 0.0
    mean: float = 0.0
    p10: float = 0.0
    p25: float = 0.0
    p75: float = 0.0
    p90: float = 0.0
    min: float = 0.0
    max: float = 0.0
    std: float = 0.0
    percent_positive: float = 0.0
    percent_negative: float = 0.0

    @property
    def interquartile_range(self) -> float:
        return self.p75 - self.p25

    def to_dict(self) -> dict[str, float]:
        """Wire representation with camelCase keys."""
        data = asdict(self)
        data["percentPositive"] = data.pop("percent_positive")
        data["percentNegative"] = data.pop("percent_negative")
        return data


def order_statistic(sorted_values: np.ndarray, fraction: float) -> float:
    """Value at index ``floor(fraction * n)``, clamped to the last index."""
    n = len(sorted_values)
    index = min(int(math.floor(fraction * n)), n - 1)
    return float(sorted_values[index])


def summarize(outcomes: Union[Sequence[float], np.ndarray]) -> OutcomeSummary:
    """Reduce an outcome distribution to its summary.

    Args:
        outcomes: Outcome values in any order

    Returns:
        OutcomeSummary (all zeros for empty input)
    """
    values = np.sort(np.asarray(outcomes, dtype=float))
    n = len(values)
    if n == 0:
        return OutcomeSummary()

    quantiles = {name: order_statistic(values, fraction) for name, fraction in PERCENTILES.items()}

    return OutcomeSummary(
        mean=float(np.mean(values)),
        min=float(values[0]),
        max=float(values[-1]),
        std=float(np.std(values)),
        percent_positive=float(np.count_nonzero(values > 0)) / n * 100,
        percent_negative=float(np.count_nonzero(values < 0)) / n * 100,
        **quantiles,
    )
