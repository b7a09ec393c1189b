"""Sinks de mediciones: gauges Prometheus o puntos InfluxDB."""

from .base import MeasurementSink
from .factory import create_sink
from .gauge import GaugeSink
from .influx import TimeSeriesSink

__all__ = [
    "MeasurementSink",
    "GaugeSink",
    "TimeSeriesSink",
    "create_sink",
]
