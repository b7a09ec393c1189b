"""Decodificación de payloads binarios de sensores LoRa.

El fPort del envelope selecciona cómo interpretar los bytes:
- fPort 1: calidad de aire, uint16 little-endian
- fPort 2: temperatura en °C, float32 IEEE-754 little-endian

Bytes extra al final del payload se ignoran.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from ..mqtt.validators import UplinkEnvelope


class MeasurementKind(str, Enum):
    """Tipo de medición transportado por un fPort."""

    AIR_QUALITY = "air_quality"
    TEMPERATURE = "temperature"

    @property
    def f_port(self) -> int:
        return _LAYOUTS[self].f_port

    @property
    def byte_width(self) -> int:
        return _LAYOUTS[self].fmt.size

    @property
    def field_name(self) -> str:
        """Nombre del field en InfluxDB."""
        return _LAYOUTS[self].field_name

    @property
    def gauge_name(self) -> str:
        """Nombre del gauge Prometheus."""
        return _LAYOUTS[self].gauge_name


@dataclass(frozen=True)
class _Layout:
    f_port: int
    fmt: struct.Struct
    field_name: str
    gauge_name: str


_LAYOUTS = {
    MeasurementKind.AIR_QUALITY: _Layout(
        f_port=1,
        fmt=struct.Struct("<H"),
        field_name="quality",
        gauge_name="lora_sensor_airquality",
    ),
    MeasurementKind.TEMPERATURE: _Layout(
        f_port=2,
        fmt=struct.Struct("<f"),
        field_name="celcius",
        gauge_name="lora_sensor_temperature_celsius",
    ),
}

_KIND_BY_PORT = {layout.f_port: kind for kind, layout in _LAYOUTS.items()}


class MeasurementDecodeError(ValueError):
    """Base de errores de decodificación de payload."""


class PayloadTooShort(MeasurementDecodeError):
    """El payload no tiene los bytes que requiere su tipo de medición."""

    def __init__(self, kind: MeasurementKind, expected: int, actual: int):
        self.kind = kind
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{kind.value} payload too short: expected {expected} bytes, got {actual}"
        )


@dataclass(frozen=True)
class Measurement:
    """Valor escalar decodificado de un uplink."""

    kind: MeasurementKind
    value: Union[int, float]
    dev_eui: str


def kind_for_port(f_port: int) -> Optional[MeasurementKind]:
    """Retorna el tipo de medición del fPort, o None si no se conoce."""
    return _KIND_BY_PORT.get(f_port)


def _unpack(kind: MeasurementKind, data: bytes):
    layout = _LAYOUTS[kind]
    if len(data) < layout.fmt.size:
        raise PayloadTooShort(kind, layout.fmt.size, len(data))
    return layout.fmt.unpack_from(data)[0]


def decode_air_quality(data: bytes) -> int:
    """Índice de calidad de aire: bytes [0,2) como uint16 little-endian."""
    return _unpack(MeasurementKind.AIR_QUALITY, data)


def decode_temperature(data: bytes) -> float:
    """Temperatura en °C: bytes [0,4) como float32 little-endian.

    Equivale a leer un uint32 little-endian y reinterpretar sus bits como
    IEEE-754 de precisión simple.
    """
    return _unpack(MeasurementKind.TEMPERATURE, data)


_DECODERS = {
    MeasurementKind.AIR_QUALITY: decode_air_quality,
    MeasurementKind.TEMPERATURE: decode_temperature,
}


def decode_measurement(envelope: "UplinkEnvelope") -> Optional[Measurement]:
    """Decodifica la medición de un envelope validado.

    Returns:
        Measurement, o None si el fPort no corresponde a ningún sensor.

    Raises:
        PayloadTooShort: si el payload es más corto que el tipo requiere.
    """
    kind = kind_for_port(envelope.f_port)
    if kind is None:
        return None
    value = _DECODERS[kind](envelope.data)
    return Measurement(kind=kind, value=value, dev_eui=envelope.dev_eui)
