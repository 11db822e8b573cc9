"""
Multi-Source Correlator - correlation matrix and eigen-analysis across all streams.
"""

import numpy as np

from sensor_fusion.correlation_engine.anomaly import AnomalyScorer
from sensor_fusion.correlation_engine.buffers import BufferSnapshot
from sensor_fusion.correlation_engine.config import (
    MIN_MULTI_SOURCES,
    POWER_ITERATIONS,
    CorrelationConfig,
)
from sensor_fusion.correlation_engine.pairwise import new_correlation_id
from sensor_fusion.correlation_engine.patterns import (
    determine_strength,
    identify_multi_source_pattern,
)
from sensor_fusion.correlation_engine.schemas import (
    CorrelationResult,
    CorrelationType,
    SourceType,
    StatisticalMeasures,
)
from sensor_fusion.correlation_engine.stats import cross_correlate, dominant_eigenvalue


class MultiSourceCorrelator:
    """Correlates every available stream against every other.

    ``eigen_significance = |dominant eigenvalue| / N`` is a rough proxy for
    how much of the matrix a single common factor explains. It is not a
    rigorous decomposition.
    """

    def __init__(
        self,
        config: CorrelationConfig,
        anomaly_scorer: AnomalyScorer | None = None,
        iterations: int = POWER_ITERATIONS,
    ):
        self.config = config
        self.anomaly_scorer = anomaly_scorer
        self.iterations = iterations

    def correlation_matrix(self, snapshot: BufferSnapshot, sources: list[SourceType]) -> np.ndarray:
        """N x N matrix: 1 on the diagonal, lag-searched correlation elsewhere.

        Each ordered pair is computed on its own, so the matrix need not
        be symmetric.
        """
        series = {source: snapshot.series(source) for source in sources}
        size = len(sources)
        matrix = np.eye(size)
        for i in range(size):
            for j in range(size):
                if i != j:
                    matrix[i, j] = cross_correlate(series[sources[i]], series[sources[j]]).max_correlation
        return matrix

    def analyze(self, snapshot: BufferSnapshot, now: int) -> CorrelationResult | None:
        """Run the multi-source analysis.

        Returns:
            A result, or None with fewer than three active sources or when
            no off-diagonal entry reaches the threshold
        """
        sources = snapshot.available_sources()
        if len(sources) < MIN_MULTI_SOURCES:
            return None

        matrix = self.correlation_matrix(snapshot, sources)
        off_diagonal = matrix[~np.eye(len(sources), dtype=bool)]
        magnitudes = np.abs(off_diagonal)

        max_correlation = float(magnitudes.max())
        if max_correlation < self.config.min_correlation_threshold:
            return None

        mean_correlation = float(magnitudes.mean())
        eigenvalue = dominant_eigenvalue(matrix, self.iterations)
        eigen_significance = abs(eigenvalue) / len(sources)

        return CorrelationResult(
            correlation_id=new_correlation_id(CorrelationType.MULTI_SOURCE, now),
            timestamp=now,
            correlation_type=CorrelationType.MULTI_SOURCE,
            strength=determine_strength(max_correlation),
            confidence=(mean_correlation + max_correlation) / 2,
            sources=tuple(source.value for source in sources),
            pattern=identify_multi_source_pattern(
                max_correlation, mean_correlation, eigen_significance
            ),
            statistical_measures=self.matrix_statistics(off_diagonal),
            anomaly_score=self.anomaly_score(off_diagonal),
            significance=eigen_significance,
            correlation_matrix=tuple(tuple(float(v) for v in row) for row in matrix),
            dominant_eigenvalue=eigenvalue,
        )

    @staticmethod
    def matrix_statistics(values: np.ndarray) -> StatisticalMeasures:
        """Summary of off-diagonal entries, mirrored into both sides of the bundle."""
        mean = float(values.mean())
        variance = float(values.var())
        std = float(np.sqrt(variance))
        return StatisticalMeasures(
            mean1=mean,
            mean2=mean,
            variance1=variance,
            variance2=variance,
            covariance=variance,
            standard_deviation1=std,
            standard_deviation2=std,
            correlation=mean,
        )

    def anomaly_score(self, values: np.ndarray) -> float:
        if self.anomaly_scorer is None or values.size == 0:
            return 0.0
        return float(self.anomaly_scorer.score(values.tolist()))
