"""
Tests for the multi-source correlator.
"""

import numpy as np
import pytest

from sensor_fusion.correlation_engine.buffers import StreamBuffers
from sensor_fusion.correlation_engine.config import CorrelationConfig
from sensor_fusion.correlation_engine.multi_source import MultiSourceCorrelator
from sensor_fusion.correlation_engine.schemas import (
    AudioReading,
    CorrelationPattern,
    CorrelationStrength,
    CorrelationType,
    EMFReading,
    SourceType,
)
from sensor_fusion.correlation_engine.simulation import (
    motion_event,
    noise_scenario,
    synchronous_scenario,
)


def snapshot_of(feed, config=None):
    config = config or CorrelationConfig()
    buffers = StreamBuffers(config.time_window_ms, config.max_buffer_size)
    for source, reading in feed:
        buffers.add(source, reading, now=reading.timestamp)
    return buffers.snapshot()


def proportional_feed(samples=30, seed=7):
    """Motion, EMF and audio all driven by the same activity level."""
    rng = np.random.default_rng(seed)
    feed = []
    for i in range(samples):
        timestamp = i * 1000
        activity = float(rng.uniform(0.1, 1.0))
        feed.append((SourceType.MOTION, motion_event(timestamp, activity)))
        feed.append((SourceType.EMF, EMFReading(timestamp=timestamp, strength=5.0 * activity)))
        feed.append((SourceType.AUDIO, AudioReading(timestamp=timestamp, amplitude=2.0 * activity + 1.0)))
    return feed


class TestMultiSourceCorrelator:

    def test_needs_three_sources(self):
        correlator = MultiSourceCorrelator(CorrelationConfig())
        assert correlator.analyze(snapshot_of(synchronous_scenario()), now=0) is None

    def test_fully_correlated_sources(self):
        correlator = MultiSourceCorrelator(CorrelationConfig())

        result = correlator.analyze(snapshot_of(proportional_feed()), now=29_000)

        assert result is not None
        assert result.correlation_type is CorrelationType.MULTI_SOURCE
        assert result.sources == ("motion", "emf", "audio")
        assert result.strength is CorrelationStrength.VERY_STRONG
        assert result.pattern is CorrelationPattern.SYNCHRONOUS
        assert result.dominant_eigenvalue == pytest.approx(3.0)
        assert result.significance == pytest.approx(1.0)
        assert result.confidence == pytest.approx(1.0)
        assert result.temporal_correlation is None
        assert result.correlation_id.startswith("multi_source-29000-")

    def test_matrix_shape_and_diagonal(self):
        correlator = MultiSourceCorrelator(CorrelationConfig())
        snapshot = snapshot_of(proportional_feed())

        matrix = correlator.correlation_matrix(snapshot, snapshot.available_sources())

        assert matrix.shape == (3, 3)
        np.testing.assert_allclose(np.diag(matrix), 1.0)
        np.testing.assert_allclose(matrix, np.ones((3, 3)))

    def test_result_carries_matrix(self):
        correlator = MultiSourceCorrelator(CorrelationConfig())

        result = correlator.analyze(snapshot_of(proportional_feed()), now=0)

        assert len(result.correlation_matrix) == 3
        assert all(len(row) == 3 for row in result.correlation_matrix)
        assert result.to_dict()["correlation_matrix"][0][0] == 1.0

    def test_independent_noise_is_rejected(self):
        correlator = MultiSourceCorrelator(CorrelationConfig())
        feed = [(s, r) for s, r in noise_scenario() if r.timestamp >= 29_900]

        assert correlator.analyze(snapshot_of(feed), now=59_900) is None

    def test_matrix_statistics_uses_off_diagonal(self):
        stats = MultiSourceCorrelator.matrix_statistics(np.array([0.2, 0.4, 0.6]))

        assert stats.mean1 == pytest.approx(0.4)
        assert stats.variance1 == pytest.approx(0.08 / 3)
        assert stats.correlation == pytest.approx(0.4)

    def test_no_scorer_means_zero_anomaly(self):
        correlator = MultiSourceCorrelator(CorrelationConfig())
        result = correlator.analyze(snapshot_of(proportional_feed()), now=0)
        assert result.anomaly_score == 0.0
