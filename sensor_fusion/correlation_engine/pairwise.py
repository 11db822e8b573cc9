"""
Pairwise Correlator - lagged, spatial and frequency-domain correlation of two streams.
"""

import uuid

import numpy as np

from sensor_fusion.correlation_engine.anomaly import AnomalyScorer
from sensor_fusion.correlation_engine.buffers import BufferSnapshot
from sensor_fusion.correlation_engine.config import CorrelationConfig
from sensor_fusion.correlation_engine.patterns import determine_strength, identify_pattern
from sensor_fusion.correlation_engine.schemas import (
    AudioReading,
    CorrelationResult,
    CorrelationType,
    CrossCorrelationResult,
    EMFReading,
    FrequencyDomain,
    MotionEvent,
    SourceType,
    SpatialCorrelation,
    TemporalCorrelation,
)
from sensor_fusion.correlation_engine.stats import (
    align_series,
    cross_correlate,
    descriptive_statistics,
    spectral_features,
)

# Streams compared by each pairwise correlation type (order matters for lag sign)
PAIR_SOURCES: dict[CorrelationType, tuple[SourceType, SourceType]] = {
    CorrelationType.MOTION_EMF: (SourceType.MOTION, SourceType.EMF),
    CorrelationType.MOTION_AUDIO: (SourceType.MOTION, SourceType.AUDIO),
    CorrelationType.EMF_AUDIO: (SourceType.EMF, SourceType.AUDIO),
    CorrelationType.ENVIRONMENTAL_MOTION: (SourceType.ENVIRONMENTAL, SourceType.MOTION),
}

SPATIAL_BASE_WEIGHT = 0.7
SPATIAL_BONUS_WEIGHT = 0.3
MAX_SAMPLE_SIZE_BONUS = 0.2


def new_correlation_id(correlation_type: CorrelationType, timestamp: int) -> str:
    return f"{correlation_type.value}-{timestamp}-{uuid.uuid4().hex[:8]}"


class PairwiseCorrelator:
    """Analyzes one pair of buffered streams."""

    def __init__(self, config: CorrelationConfig, anomaly_scorer: AnomalyScorer | None = None):
        """Initialize pairwise correlator.

        Args:
            config: Engine configuration in effect for this cycle
            anomaly_scorer: Optional scorer; without one anomaly scores are 0
        """
        self.config = config
        self.anomaly_scorer = anomaly_scorer

    def analyze(
        self,
        correlation_type: CorrelationType,
        snapshot: BufferSnapshot,
        now: int,
    ) -> CorrelationResult | None:
        """Correlate the two streams behind ``correlation_type``.

        Returns:
            A result, or None when either stream is empty or the best
            correlation falls below the configured threshold
        """
        source1, source2 = PAIR_SOURCES[correlation_type]
        if not snapshot.readings(source1) or not snapshot.readings(source2):
            return None

        series1 = snapshot.series(source1)
        series2 = snapshot.series(source2)
        cross_correlation = cross_correlate(series1, series2)

        if abs(cross_correlation.max_correlation) < self.config.min_correlation_threshold:
            return None

        spatial = None
        if correlation_type is CorrelationType.MOTION_EMF:
            spatial = self.spatial_correlation(snapshot.motion, snapshot.emf)

        frequency = None
        if SourceType.AUDIO in (source1, source2):
            frequency = self.frequency_features(snapshot.audio)

        aligned1, aligned2 = align_series(series1, series2)

        return CorrelationResult(
            correlation_id=new_correlation_id(correlation_type, now),
            timestamp=now,
            correlation_type=correlation_type,
            strength=determine_strength(cross_correlation.max_correlation),
            confidence=self.confidence(cross_correlation, spatial),
            sources=(source1.value, source2.value),
            pattern=identify_pattern(cross_correlation, spatial, frequency),
            spatial_correlation=spatial,
            temporal_correlation=TemporalCorrelation(
                lag=cross_correlation.lag,
                correlation=cross_correlation.max_correlation,
                significance=cross_correlation.significance,
            ),
            frequency_correlation=frequency,
            statistical_measures=descriptive_statistics(aligned1, aligned2),
            anomaly_score=self.anomaly_score([cross_correlation.max_correlation]),
            significance=cross_correlation.significance,
        )

    def spatial_correlation(
        self,
        motion_events: tuple[MotionEvent, ...],
        emf_readings: tuple[EMFReading, ...],
    ) -> SpatialCorrelation:
        """Average inverse-distance score of motion/EMF location pairs within the radius.

        Motion events without region area and EMF readings without a
        location are ignored.
        """
        radius = self.config.spatial_radius
        motion_centers = [
            (center.x, center.y)
            for center in (event.weighted_centroid for event in motion_events)
            if center is not None
        ]
        emf_centers = [
            (reading.location.x, reading.location.y)
            for reading in emf_readings
            if reading.location is not None
        ]

        if not motion_centers or not emf_centers:
            return SpatialCorrelation(correlation=0.0, radius=radius, sample_count=0, average_distance=0.0)

        motion_xy = np.asarray(motion_centers, dtype=float)
        emf_xy = np.asarray(emf_centers, dtype=float)
        distances = np.linalg.norm(motion_xy[:, None, :] - emf_xy[None, :, :], axis=-1)
        within = distances[distances <= radius]

        if within.size == 0:
            return SpatialCorrelation(correlation=0.0, radius=radius, sample_count=0, average_distance=0.0)

        return SpatialCorrelation(
            correlation=float(np.mean(1.0 / (1.0 + within))),
            radius=radius,
            sample_count=int(within.size),
            average_distance=float(within.mean()),
        )

    @staticmethod
    def frequency_features(audio_readings: tuple[AudioReading, ...]) -> FrequencyDomain:
        """Spectral features over the per-band magnitudes of all buffered audio."""
        bands = [band for reading in audio_readings for band in reading.frequency_bands]
        if not bands:
            return FrequencyDomain()
        return spectral_features(
            np.array([band.frequency for band in bands]),
            np.array([band.magnitude for band in bands]),
        )

    @staticmethod
    def confidence(
        cross_correlation: CrossCorrelationResult,
        spatial: SpatialCorrelation | None = None,
    ) -> float:
        """Confidence in [0, 1] from correlation, significance, spatial support and lag count."""
        confidence = abs(cross_correlation.max_correlation) * cross_correlation.significance

        if spatial is not None and spatial.sample_count > 0:
            confidence *= SPATIAL_BASE_WEIGHT + SPATIAL_BONUS_WEIGHT * spatial.correlation

        confidence += min(MAX_SAMPLE_SIZE_BONUS, len(cross_correlation.correlations) / 100)
        return float(min(1.0, max(0.0, confidence)))

    def anomaly_score(self, values: list[float]) -> float:
        if self.anomaly_scorer is None or not values:
            return 0.0
        return float(self.anomaly_scorer.score(values))
