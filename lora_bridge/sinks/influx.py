"""Sink de series temporales sobre InfluxDB.

Cada medición se escribe como un único punto, de forma síncrona, en la
base ``sensors``. Los fallos se loguean y la medición se descarta: no hay
reintentos ni buffer local.

Usa influxdb-client en modo compatibilidad 1.x: el token es
``usuario:password`` y el bucket es el nombre de la base.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, Optional

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS

from ..decoding import Measurement, MeasurementKind
from .base import MeasurementSink

logger = logging.getLogger(__name__)

DATABASE = "sensors"
DEV_EUI_TAG = "devEUI"
# Org ignorada por InfluxDB 1.8; el cliente exige un valor.
COMPAT_ORG = "-"


class TimeSeriesSink(MeasurementSink):
    """Escribe cada medición como un punto etiquetado con el devEUI."""

    def __init__(
        self,
        url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client: Optional[InfluxDBClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.url = url
        self._clock = clock
        if client is None:
            token = f"{username or ''}:{password or ''}"
            client = InfluxDBClient(url=url, token=token, org=COMPAT_ORG)
        self._client = client
        self._write_api = client.write_api(write_options=SYNCHRONOUS)
        logger.info("[INFLUX] Writing to %s database=%s", url, DATABASE)

    def build_point(self, measurement: Measurement) -> Point:
        """Construye el punto para una medición.

        Raises:
            ValueError: si el valor no es finito (NaN, inf)
        """
        value = measurement.value
        if measurement.kind is MeasurementKind.AIR_QUALITY:
            value = int(value)
        else:
            value = float(value)
            if not math.isfinite(value):
                raise ValueError(f"non-finite {measurement.kind.value} value: {value}")
        return (
            Point(measurement.kind.value)
            .tag(DEV_EUI_TAG, measurement.dev_eui)
            .field(measurement.kind.field_name, value)
            .time(int(self._clock()), WritePrecision.S)
        )

    def write(self, measurement: Measurement) -> bool:
        try:
            point = self.build_point(measurement)
        except Exception as e:
            logger.error("[INFLUX] Point construction failed: %s", e)
            return False

        try:
            self._write_api.write(
                bucket=DATABASE,
                org=COMPAT_ORG,
                record=point,
                write_precision=WritePrecision.S,
            )
        except Exception as e:
            logger.error(
                "[INFLUX] Write failed: measurement=%s devEUI=%s error=%s",
                measurement.kind.value,
                measurement.dev_eui,
                e,
            )
            return False

        logger.debug("[INFLUX] Wrote %s", point.to_line_protocol())
        return True

    def close(self) -> None:
        try:
            self._write_api.close()
            self._client.close()
        except Exception as e:
            logger.warning("[INFLUX] Error closing client: %s", e)
