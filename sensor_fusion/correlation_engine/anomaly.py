"""
Anomaly scoring for correlation values.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import numpy as np

ANOMALOUS_SCORE = 0.8
NORMAL_SCORE = 0.2
OUTLIER_STD_DEVIATIONS = 2.0


@runtime_checkable
class AnomalyScorer(Protocol):
    """Scores a set of correlation values; higher means more anomalous."""

    def score(self, values: Sequence[float]) -> float: ...


class StatisticalAnomalyScorer:
    """Flags a value set containing an outlier beyond two standard deviations."""

    def __init__(self, std_deviations: float = OUTLIER_STD_DEVIATIONS):
        self.std_deviations = std_deviations

    def score(self, values: Sequence[float]) -> float:
        """Return 0.8 if any value lies more than N std devs from the mean, else 0.2."""
        data = np.asarray(values, dtype=float)
        if data.size == 0:
            return 0.0

        deviation = np.abs(data - data.mean())
        if np.any(deviation > self.std_deviations * data.std()):
            return ANOMALOUS_SCORE
        return NORMAL_SCORE
