from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

SINK_PROMETHEUS = "prometheus"
SINK_INFLUXDB = "influxdb"

DEFAULT_APPLICATION_ID = "0101010101010101"

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(frozen=True)
class Settings:
    mqtt_server: str
    mqtt_username: Optional[str]
    mqtt_password: Optional[str]

    influx_url: str
    influx_user: Optional[str]
    influx_password: Optional[str]

    sink: str
    application_id: str
    # None = todos los dispositivos de la aplicación
    device_eui: Optional[str]
    metrics_port: int
    log_level: str


def _load_env_file() -> None:
    # Real environment variables win over the file.
    env_file = os.getenv("BRIDGE_ENV_FILE", ".env")
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)


def build_parser() -> argparse.ArgumentParser:
    """Parser de flags; los defaults salen del entorno."""
    env = os.environ.get
    p = argparse.ArgumentParser(
        prog="lora-bridge",
        description="handler for air-quality sensor payloads",
    )
    p.add_argument("--mqtt-server", default=env("MQTT_SERVER", "tcp://localhost:1883"),
                   help="MQTT server [$MQTT_SERVER]")
    p.add_argument("--mqtt-username", default=env("MQTT_USERNAME", ""),
                   help="MQTT username [$MQTT_USERNAME]")
    p.add_argument("--mqtt-password", default=env("MQTT_PASSWORD", ""),
                   help="MQTT password [$MQTT_PASSWORD]")
    p.add_argument("--influx-url", default=env("INFLUX_URL", "http://localhost:8086"),
                   help="InfluxDB URL [$INFLUX_URL]")
    p.add_argument("--influx-user", default=env("INFLUX_USER", ""),
                   help="InfluxDB username [$INFLUX_USER]")
    p.add_argument("--influx-password", default=env("INFLUX_PASSWORD", ""),
                   help="InfluxDB password [$INFLUX_PASSWORD]")
    p.add_argument("--sink", choices=[SINK_PROMETHEUS, SINK_INFLUXDB],
                   default=env("SINK", SINK_PROMETHEUS),
                   help="measurement backend [$SINK]")
    p.add_argument("--application-id", default=env("APPLICATION_ID", DEFAULT_APPLICATION_ID),
                   help="LoRa application id in the uplink topic [$APPLICATION_ID]")
    p.add_argument("--device-eui", default=env("DEVICE_EUI", ""),
                   help="only this device; empty subscribes to all devices [$DEVICE_EUI]")
    p.add_argument("--metrics-port", type=int, default=env("METRICS_PORT", "8080"),
                   help="port of the /metrics endpoint [$METRICS_PORT]")
    p.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS,
                   default=env("LOG_LEVEL", "INFO"),
                   help="logging level [$LOG_LEVEL]")
    return p


def get_settings(argv: Optional[Sequence[str]] = None) -> Settings:
    _load_env_file()
    args = build_parser().parse_args(argv)

    # argparse no valida choices de defaults tomados del entorno.
    if args.sink not in (SINK_PROMETHEUS, SINK_INFLUXDB):
        raise SystemExit(f"lora-bridge: invalid sink {args.sink!r}")
    log_level = args.log_level.upper()
    if log_level not in LOG_LEVELS:
        raise SystemExit(f"lora-bridge: invalid log level {args.log_level!r}")

    return Settings(
        mqtt_server=args.mqtt_server,
        mqtt_username=args.mqtt_username or None,
        mqtt_password=args.mqtt_password or None,
        influx_url=args.influx_url,
        influx_user=args.influx_user or None,
        influx_password=args.influx_password or None,
        sink=args.sink,
        application_id=args.application_id,
        device_eui=args.device_eui.strip().lower() or None,
        metrics_port=int(args.metrics_port),
        log_level=log_level,
    )
