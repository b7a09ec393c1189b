"""Decodificación de mediciones a partir de payloads LoRa."""

from .measurements import (
    Measurement,
    MeasurementDecodeError,
    MeasurementKind,
    PayloadTooShort,
    decode_air_quality,
    decode_measurement,
    decode_temperature,
    kind_for_port,
)

__all__ = [
    "Measurement",
    "MeasurementDecodeError",
    "MeasurementKind",
    "PayloadTooShort",
    "decode_air_quality",
    "decode_measurement",
    "decode_temperature",
    "kind_for_port",
]
