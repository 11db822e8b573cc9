"""
Correlation history and baseline tracking.
"""

from collections import deque
from collections.abc import Iterable

from sensor_fusion.correlation_engine.config import BASELINE_DECAY, MAX_HISTORY_SIZE
from sensor_fusion.correlation_engine.schemas import CorrelationResult


class CorrelationHistory:
    """FIFO of accepted results; the oldest entries are evicted past the cap."""

    def __init__(self, max_size: int = MAX_HISTORY_SIZE):
        self.max_size = max_size
        self._results: deque[CorrelationResult] = deque(maxlen=max_size)

    def extend(self, results: Iterable[CorrelationResult]) -> None:
        self._results.extend(results)

    def snapshot(self) -> list[CorrelationResult]:
        """Copy of retained results, oldest first. Results are immutable."""
        return list(self._results)

    def clear(self) -> None:
        self._results.clear()

    def __len__(self) -> int:
        return len(self._results)


class BaselineTracker:
    """Exponential moving average of |temporal correlation| per result key.

    Kept as a slow reference level for external trend comparison; the
    engine itself does not read it back.
    """

    def __init__(self, decay: float = BASELINE_DECAY):
        self.decay = decay
        self._baselines: dict[str, float] = {}

    def update(self, results: Iterable[CorrelationResult]) -> None:
        for result in results:
            temporal = result.temporal_correlation
            magnitude = abs(temporal.correlation) if temporal else 0.0
            previous = self._baselines.get(result.baseline_key, 0.0)
            self._baselines[result.baseline_key] = (
                previous * self.decay + magnitude * (1 - self.decay)
            )

    def get(self, key: str) -> float | None:
        return self._baselines.get(key)

    def snapshot(self) -> dict[str, float]:
        return dict(self._baselines)

    def clear(self) -> None:
        self._baselines.clear()

    def __len__(self) -> int:
        return len(self._baselines)
