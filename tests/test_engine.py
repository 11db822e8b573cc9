"""
Tests for the correlation engine: ingestion, cycles, events,
configuration updates and the asyncio scheduler.
"""

import asyncio
import sys
import threading
import time

import pytest
from pydantic import ValidationError

from sensor_fusion.correlation_engine.anomaly import StatisticalAnomalyScorer
from sensor_fusion.correlation_engine.config import CorrelationConfig
from sensor_fusion.correlation_engine.events import (
    AnalysisError,
    AnalysisRestarted,
    AnalysisStopped,
    ConfigurationUpdated,
    CorrelationAnomaly,
    CorrelationDetected,
    CycleComplete,
    DataAdded,
    HistoryCleared,
    StrongCorrelation,
)
from sensor_fusion.correlation_engine.schemas import (
    CorrelationPattern,
    CorrelationStrength,
    CorrelationType,
    EMFReading,
    EnvironmentalReading,
    SourceType,
)
from sensor_fusion.correlation_engine.server import (
    RESULT_COLUMNS,
    CorrelationEngine,
    _result_rows,
    main,
)
from sensor_fusion.correlation_engine.simulation import (
    lagged_scenario,
    motion_event,
    noise_scenario,
    replay,
    synchronous_scenario,
)


class FixedScorer:
    def __init__(self, value):
        self.value = value

    def score(self, values):
        return self.value


class FailingScorer:
    def score(self, values):
        raise ValueError("scorer exploded")


class SlowScorer:
    def score(self, values):
        time.sleep(0.3)
        return 0.2


class CountingSlowScorer:
    """Tracks how many score() calls run at the same time."""

    def __init__(self, delay):
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self.calls = 0
        self._lock = threading.Lock()

    def score(self, values):
        with self._lock:
            self.active += 1
            self.calls += 1
            self.max_active = max(self.max_active, self.active)
        time.sleep(self.delay)
        with self._lock:
            self.active -= 1
        return 0.2


def of_type(events, event_type):
    return [event for event in events if isinstance(event, event_type)]


# ─────────────────────────────────────────────────────────────────────
# Scenarios
# ─────────────────────────────────────────────────────────────────────

class TestScenarios:

    def test_synchronous_motion_and_emf(self, engine, clock):
        replay(engine, synchronous_scenario(), clock)

        results = asyncio.run(engine.run_cycle())

        assert len(results) == 1
        result = results[0]
        assert result.correlation_type is CorrelationType.MOTION_EMF
        assert result.temporal_correlation.lag == 0
        assert result.strength is CorrelationStrength.VERY_STRONG
        assert result.pattern is CorrelationPattern.SYNCHRONOUS
        assert result.timestamp == 29_000

    def test_lagged_emf_and_audio(self, engine, clock):
        replay(engine, lagged_scenario(), clock)

        results = asyncio.run(engine.run_cycle())

        assert engine.status()["buffer_sizes"]["emf"] == 31
        assert [r.correlation_type for r in results] == [CorrelationType.EMF_AUDIO]
        assert results[0].temporal_correlation.lag == -3
        assert results[0].pattern is CorrelationPattern.LAGGED
        assert results[0].frequency_correlation.dominant_frequency == 440.0

    def test_independent_noise(self, engine, clock, recorded):
        replay(engine, noise_scenario(), clock)

        results = asyncio.run(engine.run_cycle())

        assert results == []
        assert engine.history() == []
        assert of_type(recorded, CycleComplete) == []
        assert engine.cycle_count == 1

    @pytest.mark.parametrize("seed", [3, 4])
    def test_noise_multi_source_results_are_random(self, clock, seed):
        engine = CorrelationEngine(config=CorrelationConfig(min_correlation_threshold=0.05), clock=clock)
        replay(engine, noise_scenario(seed=seed), clock)

        results = asyncio.run(engine.run_cycle())

        multi_source = [r for r in results if r.correlation_type is CorrelationType.MULTI_SOURCE]
        assert multi_source
        assert all(r.pattern is CorrelationPattern.RANDOM for r in multi_source)
        assert all(
            r.strength not in (CorrelationStrength.STRONG, CorrelationStrength.VERY_STRONG)
            for r in results
        )


# ─────────────────────────────────────────────────────────────────────
# Ingestion
# ─────────────────────────────────────────────────────────────────────

class TestIngestion:

    def test_typed_helpers(self, engine, recorded):
        engine.add_motion_event(motion_event(0, 0.5))
        engine.add_emf_reading(EMFReading(timestamp=0, strength=1.0))
        engine.add_environmental_reading(EnvironmentalReading(timestamp=0, value=20.0))

        added = of_type(recorded, DataAdded)
        assert [event.source for event in added] == [
            SourceType.MOTION,
            SourceType.EMF,
            SourceType.ENVIRONMENTAL,
        ]
        assert engine.buffered_count() == 3

    def test_wrong_reading_type_raises(self, engine, recorded):
        with pytest.raises(TypeError):
            engine.add_reading(SourceType.AUDIO, EMFReading(timestamp=0, strength=1.0))
        assert recorded == []

    def test_failing_listener_does_not_break_ingestion(self, engine):
        def explode(event):
            raise RuntimeError("listener failed")

        engine.subscribe(explode)
        engine.add_emf_reading(EMFReading(timestamp=0, strength=1.0))

        assert engine.buffered_count() == 1

    def test_unsubscribe(self, engine):
        events = []
        unsubscribe = engine.subscribe(events.append, DataAdded)
        engine.add_emf_reading(EMFReading(timestamp=0, strength=1.0))
        unsubscribe()
        engine.add_emf_reading(EMFReading(timestamp=1, strength=1.0))

        assert len(events) == 1


# ─────────────────────────────────────────────────────────────────────
# Analysis cycles
# ─────────────────────────────────────────────────────────────────────

class TestCycle:

    def test_skips_with_too_few_readings(self, engine, clock, recorded):
        replay(engine, synchronous_scenario(duration_ms=4_000), clock)

        assert engine.buffered_count() == 8
        assert asyncio.run(engine.run_cycle()) == []
        assert engine.cycle_count == 0

    def test_events_for_detected_correlation(self, engine, clock, recorded):
        replay(engine, synchronous_scenario(), clock)
        results = asyncio.run(engine.run_cycle())

        detected = of_type(recorded, CorrelationDetected)
        assert [event.result for event in detected] == results
        assert [event.result for event in of_type(recorded, StrongCorrelation)] == results
        assert of_type(recorded, CorrelationAnomaly) == []

        complete = of_type(recorded, CycleComplete)
        assert len(complete) == 1
        assert complete[0].results == tuple(results)
        assert complete[0].total_correlations == 1
        assert complete[0].timestamp == 29_000

    def test_anomaly_event(self, clock, config):
        engine = CorrelationEngine(config=config, anomaly_scorer=FixedScorer(0.9), clock=clock)
        events = []
        engine.subscribe(events.append, CorrelationAnomaly)
        replay(engine, synchronous_scenario(), clock)

        results = asyncio.run(engine.run_cycle())

        assert results[0].anomaly_score == 0.9
        assert len(events) == 1

    def test_advanced_analysis_disabled(self, engine, clock):
        engine.update_configuration(enable_advanced_analysis=False)
        engine.anomaly_scorer = FixedScorer(0.9)
        replay(engine, synchronous_scenario(), clock)

        results = asyncio.run(engine.run_cycle())

        assert results[0].anomaly_score == 0.0

    def test_error_is_published_and_engine_recovers(self, clock, config):
        engine = CorrelationEngine(config=config, anomaly_scorer=FailingScorer(), clock=clock)
        errors = []
        engine.subscribe(errors.append, AnalysisError)
        replay(engine, synchronous_scenario(), clock)

        assert asyncio.run(engine.run_cycle()) == []
        assert len(errors) == 1
        assert "scorer exploded" in errors[0].message
        assert isinstance(errors[0].error, ValueError)

        engine.anomaly_scorer = StatisticalAnomalyScorer()
        assert len(asyncio.run(engine.run_cycle())) == 1

    def test_cycle_timeout(self, clock):
        config = CorrelationConfig(cycle_timeout_ms=50)
        engine = CorrelationEngine(config=config, anomaly_scorer=SlowScorer(), clock=clock)
        errors = []
        engine.subscribe(errors.append, AnalysisError)
        replay(engine, synchronous_scenario(), clock)

        assert asyncio.run(engine.run_cycle()) == []
        assert len(errors) == 1
        assert "50ms budget" in errors[0].message
        assert engine.history() == []

    def test_timed_out_worker_blocks_later_cycles(self, clock):
        scorer = CountingSlowScorer(delay=0.5)
        engine = CorrelationEngine(
            config=CorrelationConfig(cycle_timeout_ms=50), anomaly_scorer=scorer, clock=clock
        )
        errors = []
        engine.subscribe(errors.append, AnalysisError)
        replay(engine, synchronous_scenario(), clock)

        async def run():
            outcomes = [await engine.run_cycle() for _ in range(4)]
            blocked = engine.cycle_in_progress
            await asyncio.sleep(0.8)
            released = not engine.cycle_in_progress
            engine.anomaly_scorer = StatisticalAnomalyScorer()
            return outcomes, blocked, released, await engine.run_cycle()

        outcomes, blocked, released, recovered = asyncio.run(run())

        assert outcomes == [[], [], [], []]
        assert blocked is True
        assert released is True
        assert scorer.max_active == 1
        assert scorer.calls == 1
        assert len(errors) == 1
        assert engine.cycle_count == 2
        assert len(recovered) == 1

    def test_overlapping_cycle_is_skipped(self, clock):
        engine = CorrelationEngine(anomaly_scorer=SlowScorer(), clock=clock, config=CorrelationConfig())
        replay(engine, synchronous_scenario(), clock)

        async def run_two():
            return await asyncio.gather(engine.run_cycle(), engine.run_cycle())

        first, second = asyncio.run(run_two())

        assert len(first) == 1
        assert second == []
        assert engine.cycle_count == 1

    def test_stale_readings_pruned_at_cycle_start(self, engine, clock):
        replay(engine, synchronous_scenario(), clock)
        clock.advance_to(120_000)

        assert asyncio.run(engine.run_cycle()) == []
        assert engine.buffered_count() == 0

    def test_correlation_types_restriction(self, engine, clock):
        engine.update_configuration(correlation_types=[CorrelationType.EMF_AUDIO])
        replay(engine, synchronous_scenario(), clock)

        assert asyncio.run(engine.run_cycle()) == []


# ─────────────────────────────────────────────────────────────────────
# History and baselines
# ─────────────────────────────────────────────────────────────────────

class TestHistory:

    def test_history_and_baselines(self, engine, clock):
        replay(engine, synchronous_scenario(), clock)

        first = asyncio.run(engine.run_cycle())
        magnitude = abs(first[0].temporal_correlation.correlation)
        assert engine.baselines() == {"motion_emf_motion_emf": pytest.approx(0.1 * magnitude)}

        asyncio.run(engine.run_cycle())
        assert engine.baselines()["motion_emf_motion_emf"] == pytest.approx(0.19 * magnitude)
        assert len(engine.history()) == 2

    def test_history_reads_are_idempotent(self, engine, clock):
        replay(engine, synchronous_scenario(), clock)
        asyncio.run(engine.run_cycle())

        assert engine.history() == engine.history()
        assert engine.history() is not engine.history()

    def test_clear_history(self, engine, clock, recorded):
        replay(engine, synchronous_scenario(), clock)
        asyncio.run(engine.run_cycle())

        engine.clear_history()

        assert engine.history() == []
        assert engine.baselines() == {}
        assert engine.buffered_count() == 60
        assert len(of_type(recorded, HistoryCleared)) == 1


# ─────────────────────────────────────────────────────────────────────
# Configuration and status
# ─────────────────────────────────────────────────────────────────────

class TestConfiguration:

    def test_partial_update_merges(self, engine, recorded):
        updated = engine.update_configuration({"min_correlation_threshold": 0.5}, spatial_radius=2.0)

        assert updated.min_correlation_threshold == 0.5
        assert updated.spatial_radius == 2.0
        assert updated.time_window_ms == 30_000
        assert engine.config is updated
        assert of_type(recorded, ConfigurationUpdated)[0].config is updated

    def test_invalid_update_leaves_config_unchanged(self, engine, recorded):
        before = engine.config

        with pytest.raises(ValidationError):
            engine.update_configuration(min_correlation_threshold=1.5)
        with pytest.raises(ValidationError):
            engine.update_configuration(unknown_field=1)

        assert engine.config is before
        assert of_type(recorded, ConfigurationUpdated) == []

    def test_shrinking_buffer_cap(self, engine, clock):
        replay(engine, synchronous_scenario(), clock)

        engine.update_configuration(max_buffer_size=5)

        assert engine.status()["buffer_sizes"] == {"motion": 5, "emf": 5, "audio": 0, "environmental": 0}

    def test_status(self, engine, clock):
        replay(engine, synchronous_scenario(), clock)
        asyncio.run(engine.run_cycle())

        status = engine.status()

        assert status["active"] is False
        assert status["buffer_sizes"]["motion"] == 30
        assert status["correlation_count"] == 1
        assert status["configuration"] == engine.config

    def test_status_configuration_cannot_be_mutated(self, engine):
        configuration = engine.status()["configuration"]

        assert isinstance(configuration.correlation_types, tuple)
        with pytest.raises(AttributeError):
            configuration.correlation_types.append(CorrelationType.EMF_AUDIO)
        with pytest.raises(ValidationError):
            configuration.correlation_types = (CorrelationType.EMF_AUDIO,)
        assert engine.config.correlation_types == tuple(CorrelationType)


# ─────────────────────────────────────────────────────────────────────
# Scheduler and lifecycle
# ─────────────────────────────────────────────────────────────────────

class TestScheduler:

    def test_start_requires_running_loop(self, engine):
        with pytest.raises(RuntimeError):
            engine.start()
        assert engine.active is False

    def test_periodic_cycles(self, clock):
        engine = CorrelationEngine(config=CorrelationConfig(analysis_interval_ms=10), clock=clock)
        completed = []
        engine.subscribe(completed.append, CycleComplete)
        replay(engine, synchronous_scenario(), clock)

        async def run():
            engine.start()
            assert engine.active is True
            await asyncio.sleep(0.3)
            engine.stop()

        asyncio.run(run())

        assert engine.active is False
        assert engine.cycle_count >= 2
        assert len(completed) >= 2

    def test_stop_and_restart(self, engine, recorded):
        async def run():
            engine.start()
            engine.stop()
            engine.restart_if_stopped()
            assert engine.active is True
            engine.restart_if_stopped()
            engine.stop()

        asyncio.run(run())

        assert len(of_type(recorded, AnalysisStopped)) == 2
        assert len(of_type(recorded, AnalysisRestarted)) == 1

    def test_dispose_keeps_data_by_default(self, engine, clock, recorded):
        replay(engine, synchronous_scenario(), clock)
        asyncio.run(engine.run_cycle())

        engine.dispose()

        assert len(engine.events) == 0
        assert len(engine.history()) == 1
        assert engine.buffered_count() == 60

    def test_dispose_clear(self, engine, clock):
        replay(engine, synchronous_scenario(), clock)
        asyncio.run(engine.run_cycle())

        engine.dispose(clear=True)

        assert engine.history() == []
        assert engine.baselines() == {}
        assert engine.buffered_count() == 0


# ─────────────────────────────────────────────────────────────────────
# Command line
# ─────────────────────────────────────────────────────────────────────

class TestCommandLine:

    def test_replays_scenario(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["sensor-fusion", "--scenario", "synchronous", "--seed", "1"])

        main()

        output = capsys.readouterr().err
        assert "Scenario: synchronous" in output
        assert "correlations detected" in output

    def test_result_rows(self, engine, clock):
        replay(engine, synchronous_scenario(), clock)
        results = asyncio.run(engine.run_cycle())

        rows = _result_rows(results)

        assert len(rows) == 1
        assert len(rows[0]) == len(RESULT_COLUMNS)
        assert rows[0][:3] == ["motion_emf", "very_strong", "synchronous"]
        assert rows[0][4] == 0
