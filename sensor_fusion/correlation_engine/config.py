"""
Configuration for the Correlation Engine.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sensor_fusion.correlation_engine.schemas import CorrelationType
from sensor_fusion.shared.config import settings


# Scheduler
MIN_BUFFERED_SAMPLES = 10  # Total buffered readings required to run a cycle

# History
MAX_HISTORY_SIZE = 500
BASELINE_DECAY = 0.9  # new = decay * old + (1 - decay) * |correlation|

# Alignment and lag search
ALIGNMENT_TOLERANCE_MS = 1000
MAX_LAG = 50
MIN_OVERLAP = 3

# Multi-source analysis
MIN_MULTI_SOURCES = 3
POWER_ITERATIONS = 10  # Tunable; convergence is not checked

# Frequency features
SPECTRAL_ROLLOFF_FRACTION = 0.85

# Event thresholds
ANOMALY_EVENT_THRESHOLD = 0.7


def _default_correlation_types() -> tuple[CorrelationType, ...]:
    return tuple(CorrelationType)


class CorrelationConfig(BaseModel):
    """Tunables for one engine instance."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    time_window_ms: int = Field(default=30_000, gt=0, description="Buffer retention window")
    spatial_radius: float = Field(default=10.0, ge=0, description="Spatial pairing radius")
    min_correlation_threshold: float = Field(default=0.3, ge=0, le=1)
    max_buffer_size: int = Field(default=1000, ge=1, description="Per-source buffer cap")
    analysis_interval_ms: int = Field(default=5_000, gt=0)
    cycle_timeout_ms: int = Field(default=30_000, gt=0, description="Per-cycle time budget")
    enable_advanced_analysis: bool = Field(
        default=True, description="Wire the anomaly scorer"
    )
    correlation_types: tuple[CorrelationType, ...] = Field(default_factory=_default_correlation_types)

    @classmethod
    def from_settings(cls) -> "CorrelationConfig":
        """Build defaults from environment-backed settings."""
        return cls(
            time_window_ms=settings.correlation_time_window_ms,
            spatial_radius=settings.correlation_spatial_radius,
            min_correlation_threshold=settings.correlation_min_threshold,
            max_buffer_size=settings.correlation_max_buffer_size,
            analysis_interval_ms=settings.correlation_analysis_interval_ms,
            cycle_timeout_ms=settings.correlation_cycle_timeout_ms,
            enable_advanced_analysis=settings.correlation_enable_advanced_analysis,
        )

    def merged(self, partial: dict[str, Any]) -> "CorrelationConfig":
        """Return a validated copy with ``partial`` applied over this config.

        Raises:
            pydantic.ValidationError: if a field is unknown or out of range
        """
        return type(self).model_validate({**self.model_dump(), **partial})
