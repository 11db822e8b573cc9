"""Shared fixtures for correlation engine tests."""

import pytest

from sensor_fusion.correlation_engine.config import CorrelationConfig
from sensor_fusion.correlation_engine.server import CorrelationEngine
from sensor_fusion.correlation_engine.simulation import VirtualClock


@pytest.fixture
def clock():
    return VirtualClock(0)


@pytest.fixture
def config():
    return CorrelationConfig()


@pytest.fixture
def engine(config, clock):
    return CorrelationEngine(config=config, clock=clock)


@pytest.fixture
def recorded(engine):
    """Every event the engine publishes, in order."""
    events = []
    engine.subscribe(events.append)
    return events
