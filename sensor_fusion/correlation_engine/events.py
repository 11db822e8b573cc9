"""
Engine notifications - a closed set of typed events and their dispatcher.

Listeners are plain callables. A failing listener is logged and skipped;
it never interrupts ingestion or an analysis cycle.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

from sensor_fusion.correlation_engine.schemas import CorrelationResult, Reading, SourceType
from sensor_fusion.shared.logger import Logger, get_logger

if TYPE_CHECKING:
    from sensor_fusion.correlation_engine.config import CorrelationConfig


@dataclass(frozen=True)
class EngineEvent:
    """Base class for all engine notifications."""

    type: ClassVar[str] = "event"


@dataclass(frozen=True)
class DataAdded(EngineEvent):
    type: ClassVar[str] = "data-added"

    source: SourceType
    reading: Reading


@dataclass(frozen=True)
class CorrelationDetected(EngineEvent):
    type: ClassVar[str] = "correlation-detected"

    result: CorrelationResult


@dataclass(frozen=True)
class CorrelationAnomaly(EngineEvent):
    type: ClassVar[str] = "correlation-anomaly"

    result: CorrelationResult


@dataclass(frozen=True)
class StrongCorrelation(EngineEvent):
    type: ClassVar[str] = "strong-correlation"

    result: CorrelationResult


@dataclass(frozen=True)
class AnalysisError(EngineEvent):
    type: ClassVar[str] = "analysis-error"

    message: str
    error: BaseException | None = field(default=None, compare=False)


@dataclass(frozen=True)
class CycleComplete(EngineEvent):
    type: ClassVar[str] = "cycle-complete"

    results: tuple[CorrelationResult, ...]
    total_correlations: int
    timestamp: int


@dataclass(frozen=True)
class ConfigurationUpdated(EngineEvent):
    type: ClassVar[str] = "configuration-updated"

    config: CorrelationConfig


@dataclass(frozen=True)
class AnalysisStopped(EngineEvent):
    type: ClassVar[str] = "analysis-stopped"


@dataclass(frozen=True)
class AnalysisRestarted(EngineEvent):
    type: ClassVar[str] = "analysis-restarted"


@dataclass(frozen=True)
class HistoryCleared(EngineEvent):
    type: ClassVar[str] = "history-cleared"


Listener = Callable[[EngineEvent], None]


class EventDispatcher:
    """Delivers events to subscribed listeners, optionally filtered by type."""

    def __init__(self, logger: Logger | None = None) -> None:
        self._logger = logger or get_logger()
        self._subscriptions: list[tuple[Listener, tuple[type[EngineEvent], ...]]] = []

    def subscribe(
        self,
        listener: Listener,
        *event_types: type[EngineEvent],
    ) -> Callable[[], None]:
        """Register a listener for the given event classes (all when none given).

        Returns:
            A callable that removes this subscription
        """
        subscription = (listener, event_types)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    def publish(self, event: EngineEvent) -> None:
        for listener, event_types in list(self._subscriptions):
            if event_types and not isinstance(event, event_types):
                continue
            try:
                listener(event)
            except Exception as e:
                self._logger.warning(f"Listener failed on {event.type} event: {e}")

    def clear(self) -> None:
        """Detach all listeners."""
        self._subscriptions.clear()

    def __len__(self) -> int:
        return len(self._subscriptions)
