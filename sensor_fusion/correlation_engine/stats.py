"""
Numeric kernels for correlation analysis.

Alignment, Pearson correlation, lag search, heuristic significance,
power iteration and spectral features. Degenerate inputs (empty series,
zero variance, too little overlap) return neutral values instead of
raising.
"""

import math

import numpy as np

from sensor_fusion.correlation_engine.config import (
    ALIGNMENT_TOLERANCE_MS,
    MAX_LAG,
    MIN_OVERLAP,
    POWER_ITERATIONS,
    SPECTRAL_ROLLOFF_FRACTION,
)
from sensor_fusion.correlation_engine.schemas import (
    CrossCorrelationResult,
    FrequencyDomain,
    StatisticalMeasures,
    TimeSeries,
)


def align_series(
    series1: TimeSeries,
    series2: TimeSeries,
    tolerance_ms: float = ALIGNMENT_TOLERANCE_MS,
) -> tuple[np.ndarray, np.ndarray]:
    """Join two series on nearest timestamps.

    Every sample of ``series1`` is paired with the sample of ``series2``
    closest in time; pairs further apart than ``tolerance_ms`` are
    dropped. Output follows the order of ``series1``.

    Returns:
        Tuple of equally long value arrays (series1, series2)
    """
    t1 = np.asarray(series1.timestamps, dtype=float)
    v1 = np.asarray(series1.values, dtype=float)
    t2 = np.asarray(series2.timestamps, dtype=float)
    v2 = np.asarray(series2.values, dtype=float)

    if t1.size == 0 or t2.size == 0:
        return np.empty(0), np.empty(0)

    order = np.argsort(t2, kind="stable")
    t2, v2 = t2[order], v2[order]

    idx = np.searchsorted(t2, t1)
    left = np.clip(idx - 1, 0, t2.size - 1)
    right = np.clip(idx, 0, t2.size - 1)
    nearest = np.where(np.abs(t2[right] - t1) < np.abs(t1 - t2[left]), right, left)

    mask = np.abs(t2[nearest] - t1) < tolerance_ms
    return v1[mask], v2[nearest][mask]


def pearson(x: np.ndarray, y: np.ndarray) -> float:
    """Pearson correlation coefficient.

    Returns 0.0 when fewer than ``MIN_OVERLAP`` samples overlap or
    either series has zero variance.
    """
    n = min(len(x), len(y))
    if n < MIN_OVERLAP:
        return 0.0

    dx = np.asarray(x[:n], dtype=float)
    dy = np.asarray(y[:n], dtype=float)
    dx = dx - dx.mean()
    dy = dy - dy.mean()

    denominator = math.sqrt(float(np.dot(dx, dx)) * float(np.dot(dy, dy)))
    if denominator == 0:
        return 0.0
    return float(np.clip(np.dot(dx, dy) / denominator, -1.0, 1.0))


def lagged_pearson(x: np.ndarray, y: np.ndarray, lag: int) -> float:
    """Pearson correlation of ``x`` shifted by ``lag`` against ``y``.

    A positive lag compares ``x[i + lag]`` with ``y[i]``; a negative lag
    compares ``x[i]`` with ``y[i - lag]``.
    """
    if lag >= 0:
        shifted_x, shifted_y = x[lag:], y[: len(y) - lag]
    else:
        shifted_x, shifted_y = x[: len(x) + lag], y[-lag:]
    return pearson(shifted_x, shifted_y)


def max_lag_for(length: int) -> int:
    """Search radius: min(MAX_LAG, length // 4)."""
    return min(MAX_LAG, length // 4)


def significance(correlation: float, sample_size: int) -> float:
    """Approximate significance of a correlation.

    clamp(|r| * sqrt((n - 2) / (1 - r^2)) / 3, 0, 1). This is a t-like
    statistic scaled to [0, 1], not a calibrated p-value.
    """
    if sample_size < MIN_OVERLAP:
        return 0.0
    r_squared = correlation * correlation
    if r_squared >= 1.0:
        return 1.0
    t_stat = abs(correlation) * math.sqrt((sample_size - 2) / (1 - r_squared))
    return float(min(1.0, max(0.0, t_stat / 3)))


def cross_correlate(series1: TimeSeries, series2: TimeSeries) -> CrossCorrelationResult:
    """Lag-searched cross-correlation of two series.

    Series are aligned first, then every lag in [-L, L] with
    ``L = max_lag_for(aligned length)`` is evaluated. The lag with the
    largest |coefficient| wins; ties keep the earliest lag searched.
    """
    x, y = align_series(series1, series2)
    n = len(x)
    max_lag = max_lag_for(n)

    correlations: list[float] = []
    best_correlation = 0.0
    best_lag = 0

    for lag in range(-max_lag, max_lag + 1):
        correlation = lagged_pearson(x, y, lag)
        correlations.append(correlation)
        if abs(correlation) > abs(best_correlation):
            best_correlation = correlation
            best_lag = lag

    return CrossCorrelationResult(
        max_correlation=best_correlation,
        lag=best_lag,
        correlations=tuple(correlations),
        significance=significance(best_correlation, n),
        sample_count=n,
    )


def descriptive_statistics(x: np.ndarray, y: np.ndarray) -> StatisticalMeasures:
    """Means, population variances, covariance and zero-lag correlation."""
    n = min(len(x), len(y))
    if n == 0:
        return StatisticalMeasures()

    x = np.asarray(x[:n], dtype=float)
    y = np.asarray(y[:n], dtype=float)
    mean1, mean2 = float(x.mean()), float(y.mean())
    variance1, variance2 = float(x.var()), float(y.var())
    covariance = float(np.mean((x - mean1) * (y - mean2)))
    std1, std2 = math.sqrt(variance1), math.sqrt(variance2)

    return StatisticalMeasures(
        mean1=mean1,
        mean2=mean2,
        variance1=variance1,
        variance2=variance2,
        covariance=covariance,
        standard_deviation1=std1,
        standard_deviation2=std2,
        correlation=covariance / (std1 * std2) if std1 > 0 and std2 > 0 else 0.0,
    )


def dominant_eigenvalue(matrix: np.ndarray, iterations: int = POWER_ITERATIONS) -> float:
    """Approximate the dominant eigenvalue by power iteration.

    Starts from an all-ones vector and runs a fixed number of iterations.
    Convergence is not checked; on small correlation matrices the
    estimate is usually close but carries no guarantee.
    """
    matrix = np.asarray(matrix, dtype=float)
    if matrix.size == 0:
        return 0.0

    vector = np.ones(matrix.shape[0])
    for _ in range(iterations):
        product = matrix @ vector
        norm = np.linalg.norm(product)
        if norm == 0:
            return 0.0
        vector = product / norm

    return float(vector @ (matrix @ vector))


def spectral_features(frequencies: np.ndarray, magnitudes: np.ndarray) -> FrequencyDomain:
    """Dominant frequency, centroid, bandwidth and rolloff of a spectrum.

    Rolloff is the lowest frequency at which cumulative magnitude, scanned
    from low to high frequency, reaches ``SPECTRAL_ROLLOFF_FRACTION`` of
    the total.
    """
    frequencies = np.asarray(frequencies, dtype=float)
    magnitudes = np.asarray(magnitudes, dtype=float)
    if frequencies.size == 0:
        return FrequencyDomain()

    dominant_frequency = float(frequencies[int(np.argmax(magnitudes))])
    bandwidth = float(frequencies.max() - frequencies.min())

    total = float(magnitudes.sum())
    if total <= 0:
        return FrequencyDomain(dominant_frequency=dominant_frequency, bandwidth=bandwidth)

    spectral_centroid = float(np.dot(frequencies, magnitudes) / total)

    order = np.argsort(frequencies, kind="stable")
    cumulative = np.cumsum(magnitudes[order])
    rolloff_index = int(np.searchsorted(cumulative, SPECTRAL_ROLLOFF_FRACTION * total))
    rolloff_index = min(rolloff_index, order.size - 1)

    return FrequencyDomain(
        dominant_frequency=dominant_frequency,
        bandwidth=bandwidth,
        spectral_centroid=spectral_centroid,
        spectral_rolloff=float(frequencies[order][rolloff_index]),
    )
