"""
Correlation Engine Server - ingestion, analysis cycles and the CLI entry point.
"""

import asyncio
import time
from collections.abc import Callable
from typing import Any

import numpy as np

from sensor_fusion.correlation_engine.anomaly import AnomalyScorer, StatisticalAnomalyScorer
from sensor_fusion.correlation_engine.buffers import BufferSnapshot, StreamBuffers
from sensor_fusion.correlation_engine.config import (
    ANOMALY_EVENT_THRESHOLD,
    MIN_BUFFERED_SAMPLES,
    CorrelationConfig,
)
from sensor_fusion.correlation_engine.events import (
    AnalysisError,
    AnalysisRestarted,
    AnalysisStopped,
    ConfigurationUpdated,
    CorrelationAnomaly,
    CorrelationDetected,
    CycleComplete,
    DataAdded,
    EngineEvent,
    EventDispatcher,
    HistoryCleared,
    Listener,
    StrongCorrelation,
)
from sensor_fusion.correlation_engine.history import BaselineTracker, CorrelationHistory
from sensor_fusion.correlation_engine.multi_source import MultiSourceCorrelator
from sensor_fusion.correlation_engine.pairwise import PairwiseCorrelator
from sensor_fusion.correlation_engine.schemas import (
    AudioReading,
    CorrelationResult,
    CorrelationStrength,
    CorrelationType,
    EMFReading,
    EnvironmentalReading,
    MotionEvent,
    Reading,
    SourceType,
)
from sensor_fusion.shared.logger import (
    Logger,
    get_logger,
    log_config_status,
    log_cycle_summary,
    log_result_table,
)

logger = get_logger()


def epoch_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class CorrelationEngine:
    """Multi-source correlation engine.

    Readings are pushed into per-source buffers. A self-rescheduling
    asyncio loop runs one analysis cycle every ``analysis_interval_ms``
    after the previous cycle finished, so cycles never overlap. Each cycle
    analyzes an immutable buffer snapshot in a worker thread, bounded by
    ``cycle_timeout_ms``; history, baselines and buffers are only touched
    on the event loop.
    """

    def __init__(
        self,
        config: CorrelationConfig | None = None,
        anomaly_scorer: AnomalyScorer | None = None,
        logger: Logger | None = None,
        clock: Callable[[], int] | None = None,
    ):
        """Initialize the correlation engine.

        Args:
            config: Engine configuration (defaults to settings)
            anomaly_scorer: Scorer for correlation values (defaults to the
                statistical outlier scorer)
            logger: Logger capability (defaults to the shared rich logger)
            clock: Epoch-millisecond clock (defaults to wall clock)
        """
        self.config = config or CorrelationConfig.from_settings()
        self.anomaly_scorer = anomaly_scorer or StatisticalAnomalyScorer()
        self.logger = logger or get_logger()
        self.clock = clock or epoch_ms

        self.events = EventDispatcher(self.logger)
        self._buffers = StreamBuffers(self.config.time_window_ms, self.config.max_buffer_size)
        self._history = CorrelationHistory()
        self._baselines = BaselineTracker()

        self.active = False
        self.cycle_count = 0
        self._task: asyncio.Task | None = None
        self._worker: asyncio.Future | None = None

        self.logger.info(
            f"Correlation Engine initialized "
            f"(window: {self.config.time_window_ms}ms, interval: {self.config.analysis_interval_ms}ms)"
        )

    # =========================================================================
    # Ingestion
    # =========================================================================

    def add_reading(self, source: SourceType, reading: Reading) -> None:
        """Buffer a reading and publish a data-added event."""
        self._buffers.add(source, reading, self.clock())
        self.events.publish(DataAdded(source=source, reading=reading))

    def add_motion_event(self, event: MotionEvent) -> None:
        self.add_reading(SourceType.MOTION, event)

    def add_emf_reading(self, reading: EMFReading) -> None:
        self.add_reading(SourceType.EMF, reading)

    def add_audio_reading(self, reading: AudioReading) -> None:
        self.add_reading(SourceType.AUDIO, reading)

    def add_environmental_reading(self, reading: EnvironmentalReading) -> None:
        self.add_reading(SourceType.ENVIRONMENTAL, reading)

    def buffered_count(self) -> int:
        return self._buffers.total()

    # =========================================================================
    # Control
    # =========================================================================

    def subscribe(self, listener: Listener, *event_types: type[EngineEvent]) -> Callable[[], None]:
        """Register a listener; see ``EventDispatcher.subscribe``."""
        return self.events.subscribe(listener, *event_types)

    def update_configuration(self, partial: dict[str, Any] | None = None, **fields: Any) -> CorrelationConfig:
        """Merge fields over the current configuration.

        Takes effect from the next cycle.

        Raises:
            pydantic.ValidationError: if the merged configuration is invalid
        """
        self.config = self.config.merged({**(partial or {}), **fields})
        self._buffers.reconfigure(self.config.time_window_ms, self.config.max_buffer_size)
        self.logger.info("Correlation configuration updated")
        self.events.publish(ConfigurationUpdated(config=self.config))
        return self.config

    def start(self) -> None:
        """Start the analysis loop on the running event loop.

        Raises:
            RuntimeError: if called without a running event loop
        """
        if self._task is not None and not self._task.done():
            return

        loop = asyncio.get_running_loop()
        self.active = True
        self._task = loop.create_task(self._analysis_loop(), name="correlation-analysis")
        self.logger.info("Correlation analysis started")

    def stop(self) -> None:
        """Stop the analysis loop. History and baselines are kept."""
        self.active = False
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self.logger.info("Correlation analysis stopped")
        self.events.publish(AnalysisStopped())

    def restart_if_stopped(self) -> None:
        if not self.active:
            self.start()
            self.events.publish(AnalysisRestarted())

    async def run_forever(self) -> None:
        """Run the analysis loop until cancelled."""
        self.start()
        try:
            if self._task is not None:
                await self._task
        except asyncio.CancelledError:
            self.logger.info("Received shutdown signal")
        finally:
            if self.active:
                self.stop()

    def dispose(self, clear: bool = False) -> None:
        """Stop analysis and detach listeners; drop data only when ``clear`` is set."""
        if self.active:
            self.stop()
        self.events.clear()
        if clear:
            self._buffers.clear()
            self._history.clear()
            self._baselines.clear()

    def status(self) -> dict[str, Any]:
        return {
            "active": self.active,
            "buffer_sizes": self._buffers.counts(),
            "correlation_count": len(self._history),
            "configuration": self.config,
        }

    # =========================================================================
    # Query
    # =========================================================================

    def history(self) -> list[CorrelationResult]:
        """Snapshot of retained correlation results, oldest first."""
        return self._history.snapshot()

    def baselines(self) -> dict[str, float]:
        return self._baselines.snapshot()

    def clear_history(self) -> None:
        """Empty history and baselines."""
        self._history.clear()
        self._baselines.clear()
        self.logger.info("Correlation history cleared")
        self.events.publish(HistoryCleared())

    # =========================================================================
    # Analysis
    # =========================================================================

    @property
    def cycle_in_progress(self) -> bool:
        """True while an analysis worker is running, including one that timed out."""
        return self._worker is not None and not self._worker.done()

    async def _analysis_loop(self) -> None:
        while self.active:
            await asyncio.sleep(self.config.analysis_interval_ms / 1000)
            await self.run_cycle()

    async def run_cycle(self) -> list[CorrelationResult]:
        """Run a single analysis cycle.

        Failures are logged and published as ``AnalysisError``; they never
        propagate to the caller.

        Returns:
            The results accepted this cycle (empty when skipped)
        """
        if self.cycle_in_progress:
            self.logger.debug("Analysis cycle already in progress, skipping")
            return []

        now = self.clock()
        self._buffers.prune_all(now)
        if self._buffers.total() < MIN_BUFFERED_SAMPLES:
            self.logger.debug(
                f"Only {self._buffers.total()} readings buffered, waiting for {MIN_BUFFERED_SAMPLES}"
            )
            return []

        config = self.config
        snapshot = self._buffers.snapshot()
        self.cycle_count += 1

        # A worker abandoned on timeout keeps later cycles out until it returns
        worker = asyncio.get_running_loop().run_in_executor(
            None, self.analyze, snapshot, config, now
        )
        worker.add_done_callback(self._release_cycle)
        self._worker = worker

        try:
            results = await asyncio.wait_for(
                asyncio.shield(worker),
                timeout=config.cycle_timeout_ms / 1000,
            )
            if results:
                self._process_results(results, now)
            return results
        except asyncio.TimeoutError as e:
            message = f"Analysis cycle exceeded {config.cycle_timeout_ms}ms budget"
            self.logger.error(message)
            self.events.publish(AnalysisError(message=message, error=e))
        except Exception as e:
            self.logger.error(f"Error during correlation analysis: {e}", exc_info=True)
            self.events.publish(AnalysisError(message=str(e), error=e))
        return []

    def _release_cycle(self, worker: asyncio.Future) -> None:
        if worker is self._worker:
            self._worker = None
        if not worker.cancelled() and worker.exception() is not None:
            self.logger.debug(f"Analysis worker finished with error: {worker.exception()}")

    def analyze(
        self,
        snapshot: BufferSnapshot,
        config: CorrelationConfig,
        now: int,
    ) -> list[CorrelationResult]:
        """Run every enabled analyzer over ``snapshot``.

        Pure with respect to engine state, so it is safe to call off the
        event loop.
        """
        scorer = self.anomaly_scorer if config.enable_advanced_analysis else None
        pairwise = PairwiseCorrelator(config, scorer)
        multi_source = MultiSourceCorrelator(config, scorer)

        results: list[CorrelationResult] = []
        for correlation_type in config.correlation_types:
            if correlation_type is CorrelationType.MULTI_SOURCE:
                result = multi_source.analyze(snapshot, now)
            else:
                result = pairwise.analyze(correlation_type, snapshot, now)

            if result is not None and result.strength is not CorrelationStrength.NONE:
                results.append(result)

        return results

    def _process_results(self, results: list[CorrelationResult], now: int) -> None:
        self._history.extend(results)

        for result in results:
            self.events.publish(CorrelationDetected(result=result))
            if result.anomaly_score > ANOMALY_EVENT_THRESHOLD:
                self.events.publish(CorrelationAnomaly(result=result))
            if result.strength is CorrelationStrength.VERY_STRONG:
                self.events.publish(StrongCorrelation(result=result))

        self._baselines.update(results)

        self.logger.info(
            f"Cycle #{self.cycle_count}: {len(results)} correlations "
            f"({len(self._history)} in history)"
        )
        self.events.publish(
            CycleComplete(
                results=tuple(results),
                total_correlations=len(self._history),
                timestamp=now,
            )
        )


# =============================================================================
# CLI
# =============================================================================


def _result_rows(results: list[CorrelationResult]) -> list[list[Any]]:
    rows = []
    for result in results:
        temporal = result.temporal_correlation
        rows.append([
            result.correlation_type.value,
            result.strength.value,
            result.pattern.value,
            f"{temporal.correlation:+.3f}" if temporal else "-",
            temporal.lag if temporal else "-",
            f"{result.confidence:.2f}",
            f"{result.significance:.2f}",
            f"{result.anomaly_score:.1f}",
        ])
    return rows


RESULT_COLUMNS = ["Type", "Strength", "Pattern", "r", "Lag", "Confidence", "Significance", "Anomaly"]


async def _replay_scenario(args) -> list[CorrelationResult]:
    from sensor_fusion.correlation_engine.simulation import SCENARIOS, VirtualClock, replay

    clock = VirtualClock()
    config = CorrelationConfig.from_settings()
    if args.threshold is not None:
        config = config.merged({"min_correlation_threshold": args.threshold})

    engine = CorrelationEngine(config=config, clock=clock)
    kwargs = {"seed": args.seed}
    if args.duration:
        kwargs["duration_ms"] = args.duration * 1000
    feed = SCENARIOS[args.scenario](**kwargs)
    count = replay(engine, feed, clock)
    logger.info(f"Replayed {count} readings from the '{args.scenario}' scenario")

    return await engine.run_cycle()


async def _run_live(args) -> None:
    from sensor_fusion.correlation_engine.simulation import noise_reading

    engine = CorrelationEngine()
    engine.subscribe(
        lambda event: log_cycle_summary(engine.cycle_count, len(event.results), event.total_correlations),
        CycleComplete,
    )
    rng = np.random.default_rng(args.seed)

    async def produce() -> None:
        while True:
            now = engine.clock()
            for source in SourceType:
                engine.add_reading(source, noise_reading(source, now, rng))
            await asyncio.sleep(0.2)

    producer = asyncio.create_task(produce())
    try:
        await engine.run_forever()
    finally:
        producer.cancel()


def main() -> None:
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Multi-Source Correlation Engine")
    parser.add_argument(
        "--scenario",
        choices=["synchronous", "lagged", "noise"],
        default="synchronous",
        help="Synthetic scenario to replay (default: synchronous)",
    )
    parser.add_argument("--seed", type=int, default=0, help="Random seed")
    parser.add_argument("--duration", type=int, help="Scenario duration in seconds")
    parser.add_argument("--threshold", type=float, help="Minimum correlation threshold")
    parser.add_argument(
        "--live",
        action="store_true",
        help="Run the scheduler against a live synthetic noise feed until interrupted",
    )

    args = parser.parse_args()
    log_config_status(CorrelationConfig.from_settings().model_dump(mode="json"))

    if args.live:
        try:
            asyncio.run(_run_live(args))
        except KeyboardInterrupt:
            logger.info("Received shutdown signal")
        return

    logger.divider(f"Scenario: {args.scenario}")
    results = asyncio.run(_replay_scenario(args))
    if results:
        logger.success(f"{len(results)} correlations detected")
        log_result_table(f"Correlations ({args.scenario})", RESULT_COLUMNS, _result_rows(results))
    else:
        logger.info("No correlations above threshold")


if __name__ == "__main__":
    main()
