"""Message handling logic for the uplink receiver.

Flujo por mensaje:
  JSON → UplinkEnvelope → fPort → Measurement → MeasurementSink
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import orjson

from ..decoding import MeasurementDecodeError, decode_measurement
from ..sinks import MeasurementSink
from .receiver_stats import ReceiverStats
from .validators import validate_uplink

logger = logging.getLogger(__name__)

# JSON válido puede ser null, así que el fallo de parseo usa un centinela.
INVALID_JSON = object()


def parse_json(payload: bytes, topic: str, stats: ReceiverStats) -> Any:
    """Parsea el payload JSON con orjson; INVALID_JSON si no es JSON."""
    try:
        return orjson.loads(payload)
    except orjson.JSONDecodeError as e:
        logger.warning("[MQTT] Invalid JSON: %s (topic=%s)", e, topic)
        stats.failed += 1
        return INVALID_JSON


class UplinkHandler:
    """Decodifica uplinks y entrega la medición al sink.

    Ningún error por mensaje se propaga: se loguea y el mensaje se descarta.
    """

    def __init__(self, sink: MeasurementSink, stats: Optional[ReceiverStats] = None):
        self._sink = sink
        self.stats = stats if stats is not None else ReceiverStats()

    def __call__(self, topic: str, payload: bytes) -> bool:
        return self.handle(topic, payload)

    def handle(self, topic: str, payload: bytes) -> bool:
        """Procesa un mensaje MQTT.

        Returns:
            True si se escribió una medición en el sink.
        """
        self.stats.received += 1
        self.stats.last_message_at = time.time()

        data = parse_json(payload, topic, self.stats)
        if data is INVALID_JSON:
            return False

        validation = validate_uplink(data)
        if not validation.valid:
            logger.warning("[MQTT] Invalid uplink: %s (topic=%s)", validation.error, topic)
            self.stats.failed += 1
            return False

        envelope = validation.envelope
        logger.info("[MQTT] topic: %s, payload: %s", topic, envelope)

        try:
            measurement = decode_measurement(envelope)
        except MeasurementDecodeError as e:
            logger.error("[DECODER] %s (devEUI=%s)", e, envelope.dev_eui)
            self.stats.failed += 1
            return False

        if measurement is None:
            logger.info("[DECODER] unknown FPort: %d", envelope.f_port)
            self.stats.ignored += 1
            return False

        logger.info("[DECODER] %s: %s", measurement.kind.value, measurement.value)

        if not self._sink.write(measurement):
            self.stats.failed += 1
            return False

        self.stats.processed += 1
        if self.stats.processed % 100 == 0:
            logger.info("[MQTT] %s", self.stats)
        return True
