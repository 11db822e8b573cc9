"""
Reading and Correlation schemas for the Correlation Engine.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class SourceType(str, Enum):
    """Sensor streams the engine buffers."""

    MOTION = "motion"
    EMF = "emf"
    AUDIO = "audio"
    ENVIRONMENTAL = "environmental"


class CorrelationType(str, Enum):
    """Types of correlations."""

    MOTION_EMF = "motion_emf"
    MOTION_AUDIO = "motion_audio"
    EMF_AUDIO = "emf_audio"
    ENVIRONMENTAL_MOTION = "environmental_motion"
    MULTI_SOURCE = "multi_source"


class CorrelationStrength(str, Enum):
    """Qualitative strength, a step function of |correlation|."""

    NONE = "none"
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"
    VERY_STRONG = "very_strong"


class CorrelationPattern(str, Enum):
    """Qualitative shape of the relationship between streams."""

    SYNCHRONOUS = "synchronous"
    LAGGED = "lagged"
    CAUSAL_CHAIN = "causal_chain"
    RESONANT = "resonant"
    LINEAR = "linear"
    RANDOM = "random"


class EnvironmentalSensor(str, Enum):
    """Environmental sensor kinds."""

    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    PRESSURE = "pressure"
    VIBRATION = "vibration"
    SEISMIC = "seismic"
    MAGNETIC = "magnetic"
    ELECTRIC_FIELD = "electric_field"
    RADIATION = "radiation"
    AIR_QUALITY = "air_quality"


# =============================================================================
# Readings
# =============================================================================


@dataclass(frozen=True)
class Point:
    """Planar location in the monitored space (meters)."""

    x: float
    y: float


@dataclass(frozen=True)
class Velocity:
    """Motion vector of a region."""

    x: float = 0.0
    y: float = 0.0
    magnitude: float = 0.0


@dataclass(frozen=True)
class MotionRegion:
    """A connected region of detected motion."""

    area: float
    centroid: Point
    velocity: Velocity = field(default_factory=Velocity)
    confidence: float = 1.0


@dataclass(frozen=True)
class MotionEvent:
    """Motion detection result for one frame window."""

    timestamp: int  # epoch ms
    regions: tuple[MotionRegion, ...] = ()
    confidence: float = 0.0

    @property
    def activity(self) -> float:
        """Scalar activity level used for time series extraction."""
        return self.confidence * len(self.regions)

    @property
    def weighted_centroid(self) -> Point | None:
        """Area-weighted centroid of all regions, or None without area."""
        total_area = sum(region.area for region in self.regions)
        if total_area <= 0:
            return None
        x = sum(region.centroid.x * region.area for region in self.regions) / total_area
        y = sum(region.centroid.y * region.area for region in self.regions) / total_area
        return Point(x, y)


@dataclass(frozen=True)
class EMFReading:
    """Electromagnetic field sample."""

    timestamp: int  # epoch ms
    strength: float  # μT or V/m
    frequency_band: str = "elf"
    location: Point | None = None


@dataclass(frozen=True)
class FrequencyBand:
    """Magnitude observed at one frequency."""

    frequency: float  # Hz
    magnitude: float


@dataclass(frozen=True)
class AudioReading:
    """Audio level sample with optional spectrum."""

    timestamp: int  # epoch ms
    amplitude: float
    frequency_band: str = "midrange"
    frequency_bands: tuple[FrequencyBand, ...] = ()


@dataclass(frozen=True)
class EnvironmentalReading:
    """Environmental station sample.

    A reading either carries a single ``value`` for its ``sensor`` or a
    composite of temperature, humidity and pressure.
    """

    timestamp: int  # epoch ms
    sensor: EnvironmentalSensor = EnvironmentalSensor.TEMPERATURE
    value: float = 0.0
    temperature: float | None = None
    humidity: float | None = None
    pressure: float | None = None

    @property
    def composite_value(self) -> float:
        """Sum of temperature, humidity and pressure (not physically normalized)."""
        parts = (self.temperature, self.humidity, self.pressure)
        if all(part is None for part in parts):
            return self.value
        return sum(part or 0.0 for part in parts)


Reading = MotionEvent | EMFReading | AudioReading | EnvironmentalReading


# =============================================================================
# Analysis results
# =============================================================================


@dataclass(frozen=True)
class TimeSeries:
    """Parallel timestamps and scalar values for one source."""

    timestamps: tuple[int, ...]
    values: tuple[float, ...]

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class CrossCorrelationResult:
    """Outcome of a lag-searched cross-correlation.

    ``significance`` is a heuristic: a t-like statistic divided by 3 and
    clamped to [0, 1]. It is not a calibrated p-value.
    """

    max_correlation: float
    lag: int  # sample units
    correlations: tuple[float, ...]
    significance: float
    sample_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_correlation": self.max_correlation,
            "lag": self.lag,
            "correlations": list(self.correlations),
            "significance": self.significance,
            "sample_count": self.sample_count,
        }


@dataclass(frozen=True)
class SpatialCorrelation:
    """Proximity-weighted association between motion and EMF locations."""

    correlation: float
    radius: float
    sample_count: int
    average_distance: float


@dataclass(frozen=True)
class TemporalCorrelation:
    """Lag-optimized correlation summary."""

    lag: int
    correlation: float
    significance: float


@dataclass(frozen=True)
class FrequencyDomain:
    """Spectral features of buffered audio."""

    dominant_frequency: float = 0.0
    bandwidth: float = 0.0
    spectral_centroid: float = 0.0
    spectral_rolloff: float = 0.0


@dataclass(frozen=True)
class StatisticalMeasures:
    """Descriptive statistics of two aligned series.

    ``correlation`` is computed directly on the aligned series without a
    lag search, alongside the lag-optimized value of the result.
    """

    mean1: float = 0.0
    mean2: float = 0.0
    variance1: float = 0.0
    variance2: float = 0.0
    covariance: float = 0.0
    standard_deviation1: float = 0.0
    standard_deviation2: float = 0.0
    correlation: float = 0.0


@dataclass(frozen=True)
class CorrelationResult:
    """A detected correlation. Never mutated after creation."""

    correlation_id: str
    timestamp: int  # epoch ms
    correlation_type: CorrelationType
    strength: CorrelationStrength
    confidence: float
    sources: tuple[str, ...]
    pattern: CorrelationPattern
    statistical_measures: StatisticalMeasures
    anomaly_score: float
    significance: float
    spatial_correlation: SpatialCorrelation | None = None
    temporal_correlation: TemporalCorrelation | None = None
    frequency_correlation: FrequencyDomain | None = None
    # Populated for multi-source results only
    correlation_matrix: tuple[tuple[float, ...], ...] | None = None
    dominant_eigenvalue: float | None = None

    @property
    def baseline_key(self) -> str:
        """Key of the baseline this result feeds."""
        return f"{self.correlation_type.value}_{'_'.join(self.sources)}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        data = asdict(self)
        data["correlation_type"] = self.correlation_type.value
        data["strength"] = self.strength.value
        data["pattern"] = self.pattern.value
        data["sources"] = list(self.sources)
        if self.correlation_matrix is not None:
            data["correlation_matrix"] = [list(row) for row in self.correlation_matrix]
        return data
