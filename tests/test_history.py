"""
Tests for correlation history and baseline tracking.
"""

import pytest

from sensor_fusion.correlation_engine.history import BaselineTracker, CorrelationHistory
from sensor_fusion.correlation_engine.schemas import (
    CorrelationPattern,
    CorrelationResult,
    CorrelationStrength,
    CorrelationType,
    StatisticalMeasures,
    TemporalCorrelation,
)


def make_result(index, correlation=0.5, correlation_type=CorrelationType.MOTION_EMF, temporal=True):
    return CorrelationResult(
        correlation_id=f"r-{index}",
        timestamp=index,
        correlation_type=correlation_type,
        strength=CorrelationStrength.MODERATE,
        confidence=0.5,
        sources=("motion", "emf"),
        pattern=CorrelationPattern.SYNCHRONOUS,
        statistical_measures=StatisticalMeasures(),
        anomaly_score=0.2,
        significance=0.5,
        temporal_correlation=(
            TemporalCorrelation(lag=0, correlation=correlation, significance=0.5) if temporal else None
        ),
    )


class TestCorrelationHistory:

    def test_capped_at_500_oldest_first(self):
        history = CorrelationHistory()
        history.extend(make_result(i) for i in range(520))

        snapshot = history.snapshot()
        assert len(snapshot) == 500
        assert snapshot[0].correlation_id == "r-20"
        assert snapshot[-1].correlation_id == "r-519"

    def test_snapshot_is_a_copy(self):
        history = CorrelationHistory()
        history.extend([make_result(0)])

        snapshot = history.snapshot()
        snapshot.clear()

        assert len(history) == 1
        assert history.snapshot() == history.snapshot()

    def test_clear(self):
        history = CorrelationHistory(max_size=3)
        history.extend(make_result(i) for i in range(3))
        history.clear()
        assert len(history) == 0


class TestBaselineTracker:

    def test_exponential_moving_average(self):
        tracker = BaselineTracker()

        tracker.update([make_result(0, correlation=-0.8)])
        assert tracker.get("motion_emf_motion_emf") == pytest.approx(0.08)

        tracker.update([make_result(1, correlation=0.5)])
        assert tracker.get("motion_emf_motion_emf") == pytest.approx(0.9 * 0.08 + 0.05)

    def test_missing_temporal_correlation_decays(self):
        tracker = BaselineTracker()
        tracker.update([make_result(0, correlation=1.0)])
        tracker.update([make_result(1, temporal=False)])

        assert tracker.get("motion_emf_motion_emf") == pytest.approx(0.09)

    def test_keys_per_type_and_sources(self):
        tracker = BaselineTracker()
        tracker.update([
            make_result(0),
            make_result(1, correlation_type=CorrelationType.MOTION_AUDIO),
        ])

        assert set(tracker.snapshot()) == {"motion_emf_motion_emf", "motion_audio_motion_emf"}

    def test_snapshot_is_a_copy(self):
        tracker = BaselineTracker()
        tracker.update([make_result(0)])
        tracker.snapshot().clear()
        assert len(tracker) == 1
