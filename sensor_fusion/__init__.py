"""
Sensor Fusion - multi-source correlation analysis for field sensor streams.

This package contains:
- correlation_engine: buffering, correlation analysis and the cycle scheduler
- shared: Shared utilities and configuration
"""

__version__ = "0.1.0"
