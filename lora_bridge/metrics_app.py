"""App HTTP que expone los gauges en /metrics."""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST

from .mqtt import UplinkReceiver
from .sinks import GaugeSink


def create_metrics_app(sink: GaugeSink, receiver: Optional[UplinkReceiver] = None) -> FastAPI:
    app = FastAPI(title="LoRa Sensor Bridge", version="0.1.0")

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(content=sink.render(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health")
    def health() -> dict:
        if receiver is None:
            return {"healthy": False, "running": False}
        return receiver.health_check()

    return app
