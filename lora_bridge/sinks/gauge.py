"""Sink de gauges Prometheus.

Cada tipo de medición tiene un gauge que guarda solo el último valor.
El registry es propio del sink; la exposición HTTP la hace metrics_app.
"""

from __future__ import annotations

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Gauge, generate_latest

from ..decoding import Measurement, MeasurementKind
from .base import MeasurementSink

logger = logging.getLogger(__name__)

_GAUGE_HELP = {
    MeasurementKind.TEMPERATURE: "Current temperature in C",
    MeasurementKind.AIR_QUALITY: "Current air quality",
}


class GaugeSink(MeasurementSink):
    """Mantiene un gauge por tipo de medición (last-write-wins)."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry()
        self._gauges: dict[str, Gauge] = {}
        for kind, help_text in _GAUGE_HELP.items():
            self._gauges[kind.gauge_name] = Gauge(
                kind.gauge_name,
                help_text,
                registry=self.registry,
            )

    def set_gauge(self, name: str, value: float) -> None:
        """Sobrescribe el valor del gauge ``name``.

        Raises:
            KeyError: si el gauge no existe
        """
        self._gauges[name].set(value)

    def write(self, measurement: Measurement) -> bool:
        self.set_gauge(measurement.kind.gauge_name, measurement.value)
        logger.debug(
            "[GAUGE] %s=%s devEUI=%s",
            measurement.kind.gauge_name,
            measurement.value,
            measurement.dev_eui,
        )
        return True

    def render(self) -> bytes:
        """Exposición en formato texto de Prometheus."""
        return generate_latest(self.registry)
