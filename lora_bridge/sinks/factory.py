"""Factory para crear el sink configurado."""

from __future__ import annotations

import logging

from ..config import SINK_INFLUXDB, SINK_PROMETHEUS, Settings
from .base import MeasurementSink
from .gauge import GaugeSink
from .influx import TimeSeriesSink

logger = logging.getLogger(__name__)


def create_sink(settings: Settings) -> MeasurementSink:
    """Crea el sink seleccionado en ``settings.sink``.

    Errores del cliente InfluxDB se propagan: son fatales al arrancar.
    """
    if settings.sink == SINK_PROMETHEUS:
        logger.info("[SINK_FACTORY] Using Prometheus gauges")
        return GaugeSink()
    if settings.sink == SINK_INFLUXDB:
        logger.info("[SINK_FACTORY] Using InfluxDB at %s", settings.influx_url)
        return TimeSeriesSink(
            url=settings.influx_url,
            username=settings.influx_user,
            password=settings.influx_password,
        )
    raise ValueError(f"unknown sink: {settings.sink!r}")
