"""
Multi-Source Correlation Engine for Sensor Fusion.

This module implements buffering of motion, EMF, audio and environmental
readings, continuous correlation analysis between the streams, and
typed notifications for detected correlations.
"""

__version__ = "0.1.0"
