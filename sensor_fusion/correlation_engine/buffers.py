"""
Stream Buffers - bounded, time-windowed reading queues per source.
"""

from collections import deque
from dataclasses import dataclass

from sensor_fusion.correlation_engine.schemas import (
    AudioReading,
    EMFReading,
    EnvironmentalReading,
    MotionEvent,
    Reading,
    SourceType,
    TimeSeries,
)

# Reading type accepted by each buffer
SOURCE_READING_TYPES: dict[SourceType, type] = {
    SourceType.MOTION: MotionEvent,
    SourceType.EMF: EMFReading,
    SourceType.AUDIO: AudioReading,
    SourceType.ENVIRONMENTAL: EnvironmentalReading,
}


def reading_value(source: SourceType, reading: Reading) -> float:
    """Scalar a reading contributes to its source's time series."""
    if source is SourceType.MOTION:
        return reading.activity
    if source is SourceType.EMF:
        return reading.strength
    if source is SourceType.AUDIO:
        return reading.amplitude
    return reading.composite_value


@dataclass(frozen=True)
class BufferSnapshot:
    """Immutable view of all buffers at one instant."""

    motion: tuple[MotionEvent, ...] = ()
    emf: tuple[EMFReading, ...] = ()
    audio: tuple[AudioReading, ...] = ()
    environmental: tuple[EnvironmentalReading, ...] = ()

    def readings(self, source: SourceType) -> tuple:
        return getattr(self, source.value)

    def available_sources(self) -> list[SourceType]:
        """Sources with at least one buffered reading, in canonical order."""
        return [source for source in SourceType if self.readings(source)]

    def series(self, source: SourceType) -> TimeSeries:
        """Extract the scalar time series for ``source``."""
        readings = self.readings(source)
        return TimeSeries(
            timestamps=tuple(r.timestamp for r in readings),
            values=tuple(float(reading_value(source, r)) for r in readings),
        )


class StreamBuffers:
    """One bounded deque per source.

    A buffer only holds readings with ``timestamp >= now - time_window_ms``
    and never more than ``max_buffer_size`` of them (oldest dropped first).
    """

    def __init__(self, time_window_ms: int, max_buffer_size: int):
        self.time_window_ms = time_window_ms
        self.max_buffer_size = max_buffer_size
        self._buffers: dict[SourceType, deque] = {
            source: deque(maxlen=max_buffer_size) for source in SourceType
        }
        # False once a reading arrives older than the newest buffered one
        self._ordered: dict[SourceType, bool] = {source: True for source in SourceType}

    def add(self, source: SourceType, reading: Reading, now: int) -> None:
        """Append a reading, then prune by age. The deque enforces the size cap."""
        expected = SOURCE_READING_TYPES[source]
        if not isinstance(reading, expected):
            raise TypeError(
                f"{source.value} buffer expects {expected.__name__}, got {type(reading).__name__}"
            )

        buffer = self._buffers[source]
        if buffer and reading.timestamp < buffer[-1].timestamp:
            self._ordered[source] = False
        buffer.append(reading)
        self.prune(source, now)

    def prune(self, source: SourceType, now: int) -> None:
        """Drop readings older than the time window."""
        buffer = self._buffers[source]
        cutoff = now - self.time_window_ms

        if self._ordered[source]:
            while buffer and buffer[0].timestamp < cutoff:
                buffer.popleft()
        elif any(r.timestamp < cutoff for r in buffer):
            self._buffers[source] = deque(
                (r for r in buffer if r.timestamp >= cutoff),
                maxlen=self.max_buffer_size,
            )

    def prune_all(self, now: int) -> None:
        for source in SourceType:
            self.prune(source, now)

    def reconfigure(self, time_window_ms: int, max_buffer_size: int) -> None:
        """Apply new limits. Shrinking the cap keeps the most recent readings."""
        self.time_window_ms = time_window_ms
        if max_buffer_size != self.max_buffer_size:
            self.max_buffer_size = max_buffer_size
            self._buffers = {
                source: deque(buffer, maxlen=max_buffer_size)
                for source, buffer in self._buffers.items()
            }

    def counts(self) -> dict[str, int]:
        return {source.value: len(buffer) for source, buffer in self._buffers.items()}

    def total(self) -> int:
        """Readings buffered across all sources."""
        return sum(len(buffer) for buffer in self._buffers.values())

    def snapshot(self) -> BufferSnapshot:
        return BufferSnapshot(
            **{source.value: tuple(buffer) for source, buffer in self._buffers.items()}
        )

    def clear(self) -> None:
        for source, buffer in self._buffers.items():
            buffer.clear()
            self._ordered[source] = True
