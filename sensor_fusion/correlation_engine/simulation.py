"""
Synthetic sensor feeds for demos and tests.

Every scenario is a time-ordered list of (source, reading) pairs on a
1-second (or finer) sampling grid, generated from a seeded numpy RNG.
"""

from collections.abc import Callable, Iterable

import numpy as np

from sensor_fusion.correlation_engine.schemas import (
    AudioReading,
    EMFReading,
    EnvironmentalReading,
    FrequencyBand,
    MotionEvent,
    MotionRegion,
    Point,
    Reading,
    SourceType,
    Velocity,
)

Feed = list[tuple[SourceType, Reading]]


class VirtualClock:
    """Manually advanced epoch-ms clock."""

    def __init__(self, start_ms: int = 0):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance_to(self, timestamp: int) -> None:
        self.now = max(self.now, timestamp)


def motion_event(timestamp: int, activity: float, x: float = 2.0, y: float = 2.0) -> MotionEvent:
    """Single-region motion event whose activity equals its confidence."""
    region = MotionRegion(
        area=4.0,
        centroid=Point(x, y),
        velocity=Velocity(x=0.1, y=0.0, magnitude=0.1),
        confidence=activity,
    )
    return MotionEvent(timestamp=timestamp, regions=(region,), confidence=activity)


def audio_spectrum(peak_hz: float, peak_magnitude: float) -> tuple[FrequencyBand, ...]:
    """Small spectrum with a peak at ``peak_hz``."""
    return (
        FrequencyBand(frequency=peak_hz / 2, magnitude=peak_magnitude * 0.2),
        FrequencyBand(frequency=peak_hz, magnitude=peak_magnitude),
        FrequencyBand(frequency=peak_hz * 2, magnitude=peak_magnitude * 0.3),
    )


def synchronous_scenario(
    start_ms: int = 0,
    duration_ms: int = 30_000,
    period_ms: int = 2_000,
    step_ms: int = 1_000,
    seed: int = 0,
) -> Feed:
    """Motion and EMF spike together every ``period_ms``; low noise in between.

    Spike activity varies around 1.0 and EMF strength tracks it at 5x.
    """
    rng = np.random.default_rng(seed)
    feed: Feed = []
    for timestamp in range(start_ms, start_ms + duration_ms, step_ms):
        if (timestamp - start_ms) % period_ms == 0:
            activity = float(rng.uniform(0.5, 1.0))
            emf_strength = 5.0 * activity
        else:
            activity = float(rng.uniform(0.0, 0.05))
            emf_strength = float(rng.uniform(0.0, 0.2))
        feed.append((SourceType.MOTION, motion_event(timestamp, activity)))
        feed.append(
            (SourceType.EMF, EMFReading(timestamp=timestamp, strength=emf_strength, location=Point(2.5, 2.0)))
        )
    return feed


def lagged_scenario(
    start_ms: int = 0,
    duration_ms: int = 60_000,
    period_ms: int = 5_000,
    lag_ms: int = 3_000,
    step_ms: int = 1_000,
    seed: int = 0,
) -> Feed:
    """EMF spikes every ``period_ms`` and audio echoes each spike ``lag_ms`` later."""
    rng = np.random.default_rng(seed)
    emf_spikes: dict[int, float] = {}
    audio_spikes: dict[int, float] = {}
    for timestamp in range(start_ms, start_ms + duration_ms, period_ms):
        amplitude = float(rng.uniform(0.3, 1.0))
        emf_spikes[timestamp] = 5.0 * amplitude
        audio_spikes[timestamp + lag_ms] = amplitude

    feed: Feed = []
    for timestamp in range(start_ms, start_ms + duration_ms, step_ms):
        emf_strength = emf_spikes.get(timestamp, float(rng.uniform(0.0, 0.2)))
        amplitude = audio_spikes.get(timestamp, float(rng.uniform(0.0, 0.05)))
        feed.append((SourceType.EMF, EMFReading(timestamp=timestamp, strength=emf_strength)))
        feed.append(
            (
                SourceType.AUDIO,
                AudioReading(
                    timestamp=timestamp,
                    amplitude=amplitude,
                    frequency_bands=audio_spectrum(440.0, amplitude),
                ),
            )
        )
    return feed


def noise_reading(source: SourceType, timestamp: int, rng: np.random.Generator) -> Reading:
    """Independent random reading for ``source``."""
    if source is SourceType.MOTION:
        return motion_event(
            timestamp,
            float(rng.uniform(0.0, 1.0)),
            x=float(rng.uniform(0.0, 20.0)),
            y=float(rng.uniform(0.0, 20.0)),
        )
    if source is SourceType.EMF:
        return EMFReading(timestamp=timestamp, strength=float(rng.normal(1.0, 0.3)))
    if source is SourceType.AUDIO:
        return AudioReading(timestamp=timestamp, amplitude=float(rng.normal(40.0, 5.0)))
    return EnvironmentalReading(
        timestamp=timestamp,
        temperature=float(rng.normal(20.0, 0.5)),
        humidity=float(rng.normal(45.0, 2.0)),
        pressure=float(rng.normal(1013.0, 1.0)),
    )


def noise_scenario(
    start_ms: int = 0,
    duration_ms: int = 60_000,
    step_ms: int = 100,
    seed: int = 0,
) -> Feed:
    """Independent random values on all four sources."""
    rng = np.random.default_rng(seed)
    return [
        (source, noise_reading(source, timestamp, rng))
        for timestamp in range(start_ms, start_ms + duration_ms, step_ms)
        for source in SourceType
    ]


SCENARIOS: dict[str, Callable[..., Feed]] = {
    "synchronous": synchronous_scenario,
    "lagged": lagged_scenario,
    "noise": noise_scenario,
}


def replay(engine, feed: Iterable[tuple[SourceType, Reading]], clock: VirtualClock) -> int:
    """Push a feed into ``engine``, advancing ``clock`` to each reading's time.

    Returns:
        Number of readings pushed
    """
    count = 0
    for source, reading in feed:
        clock.advance_to(reading.timestamp)
        engine.add_reading(source, reading)
        count += 1
    return count
