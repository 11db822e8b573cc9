"""
Pattern Classification - maps numeric correlation output to qualitative labels.
"""

from sensor_fusion.correlation_engine.schemas import (
    CorrelationPattern,
    CorrelationStrength,
    CrossCorrelationResult,
    FrequencyDomain,
    SpatialCorrelation,
)

# Breakpoints on |correlation|, highest first
STRENGTH_BREAKPOINTS: tuple[tuple[float, CorrelationStrength], ...] = (
    (0.8, CorrelationStrength.VERY_STRONG),
    (0.6, CorrelationStrength.STRONG),
    (0.4, CorrelationStrength.MODERATE),
    (0.2, CorrelationStrength.WEAK),
)

SPATIAL_COMPONENT_THRESHOLD = 0.3
RANDOM_CORRELATION_THRESHOLD = 0.1

# Multi-source pattern thresholds
SYNCHRONOUS_MAX = 0.8
SYNCHRONOUS_MEAN = 0.6
CAUSAL_EIGEN_SIGNIFICANCE = 0.7
LINEAR_MAX = 0.5


def determine_strength(correlation: float) -> CorrelationStrength:
    """Strength for a correlation value; monotonic in |correlation|."""
    magnitude = abs(correlation)
    for breakpoint, strength in STRENGTH_BREAKPOINTS:
        if magnitude >= breakpoint:
            return strength
    return CorrelationStrength.NONE


def identify_pattern(
    cross_correlation: CrossCorrelationResult,
    spatial: SpatialCorrelation | None = None,
    frequency: FrequencyDomain | None = None,
) -> CorrelationPattern:
    """Classify a pairwise correlation.

    Rules are checked in priority order and overlap, so the first match
    wins.
    """
    correlation = cross_correlation.max_correlation
    positive = correlation > 0
    lagged = cross_correlation.lag != 0
    has_spatial = spatial is not None and spatial.correlation > SPATIAL_COMPONENT_THRESHOLD
    has_frequency = frequency is not None and frequency.dominant_frequency > 0

    if positive and lagged and has_spatial:
        return CorrelationPattern.CAUSAL_CHAIN
    if positive and not lagged:
        return CorrelationPattern.SYNCHRONOUS
    if lagged:
        return CorrelationPattern.LAGGED
    if abs(correlation) < RANDOM_CORRELATION_THRESHOLD:
        return CorrelationPattern.RANDOM
    if has_frequency:
        return CorrelationPattern.RESONANT
    return CorrelationPattern.LINEAR


def identify_multi_source_pattern(
    max_correlation: float,
    mean_correlation: float,
    eigen_significance: float,
) -> CorrelationPattern:
    """Classify a correlation matrix from its off-diagonal max/mean magnitudes."""
    if max_correlation > SYNCHRONOUS_MAX and mean_correlation > SYNCHRONOUS_MEAN:
        return CorrelationPattern.SYNCHRONOUS
    if eigen_significance > CAUSAL_EIGEN_SIGNIFICANCE:
        return CorrelationPattern.CAUSAL_CHAIN
    if max_correlation > LINEAR_MAX:
        return CorrelationPattern.LINEAR
    return CorrelationPattern.RANDOM
