"""CLI entry point for the LoRa sensor bridge."""

from __future__ import annotations

import logging
import os
import signal
import sys
import threading
from typing import Optional, Sequence

import uvicorn

from .config import SINK_PROMETHEUS, Settings, get_settings
from .metrics_app import create_metrics_app
from .mqtt import (
    BrokerConnectionError,
    SubscriptionError,
    UplinkHandler,
    UplinkReceiver,
    build_uplink_topic,
)
from .sinks import MeasurementSink, create_sink

logger = logging.getLogger(__name__)


def _exit_on_fatal(error: Exception) -> None:
    # Llamado desde el thread de paho: sys.exit solo terminaría ese thread.
    logger.critical("[BRIDGE] Fatal MQTT error: %s", error)
    logging.shutdown()
    os._exit(1)


def wait_for_termination() -> None:
    """Bloquea hasta recibir SIGINT o SIGTERM."""
    stop = threading.Event()

    def _handle(signum, frame):
        logger.info("[BRIDGE] Signal %s received", signal.Signals(signum).name)
        stop.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)
    stop.wait()


def build_receiver(settings: Settings, sink: MeasurementSink) -> UplinkReceiver:
    topic = build_uplink_topic(settings.application_id, settings.device_eui)
    return UplinkReceiver(
        broker_url=settings.mqtt_server,
        topic=topic,
        handler=UplinkHandler(sink),
        username=settings.mqtt_username,
        password=settings.mqtt_password,
        on_fatal=_exit_on_fatal,
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    settings = get_settings(argv)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    logger.info("LoRa sensor bridge started")
    logger.info(
        "Config: mqtt=%s sink=%s application=%s device=%s",
        settings.mqtt_server,
        settings.sink,
        settings.application_id,
        settings.device_eui or "*",
    )

    try:
        sink = create_sink(settings)
    except Exception as e:
        logger.critical("[BRIDGE] Cannot create %s sink: %s", settings.sink, e)
        sys.exit(1)

    try:
        receiver = build_receiver(settings, sink)
        receiver.start()
    except (BrokerConnectionError, SubscriptionError, ValueError) as e:
        logger.critical("[BRIDGE] %s", e)
        sink.close()
        sys.exit(1)

    try:
        if settings.sink == SINK_PROMETHEUS:
            app = create_metrics_app(sink, receiver)
            uvicorn.run(app, host="0.0.0.0", port=settings.metrics_port, log_level="warning")
        else:
            wait_for_termination()
    finally:
        receiver.stop()
        sink.close()


if __name__ == "__main__":
    main()
