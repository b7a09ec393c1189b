"""Validadores de envelopes de uplink LoRa.

Valida y transforma mensajes MQTT del application server al formato interno.

Formato esperado (campos extra como rxInfo/txInfo se ignoran):
{
    "applicationID": "1",
    "applicationName": "air-sensors",
    "nodeName": "office",
    "devEUI": "0202020202020202",
    "fCnt": 10,
    "fPort": 1,
    "data": "ZAA="
}

``data`` llega como base64 (codificación JSON de bytes) o como array de
enteros 0..255.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

DEV_EUI_BYTES = 8


class UplinkEnvelope(BaseModel):
    """Schema de validación para uplinks LoRa."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    dev_eui: str = Field(..., alias="devEUI")
    f_port: int = Field(..., alias="fPort", ge=0, le=255)
    data: bytes = b""
    f_cnt: Optional[int] = Field(default=None, alias="fCnt", ge=0)
    application_id: Optional[str] = Field(default=None, alias="applicationID")
    application_name: Optional[str] = Field(default=None, alias="applicationName")
    node_name: Optional[str] = Field(default=None, alias="nodeName")

    @field_validator("dev_eui")
    @classmethod
    def validate_dev_eui(cls, v: str) -> str:
        v = v.strip()
        try:
            raw = bytes.fromhex(v)
        except ValueError:
            raise ValueError(f"devEUI must be hex, got: {v!r}")
        if len(raw) != DEV_EUI_BYTES:
            raise ValueError(f"devEUI must be {DEV_EUI_BYTES} bytes, got {len(raw)}")
        return raw.hex()

    @field_validator("data", mode="before")
    @classmethod
    def decode_data(cls, v: Any) -> bytes:
        if v is None:
            return b""
        if isinstance(v, (bytes, bytearray)):
            return bytes(v)
        if isinstance(v, str):
            try:
                return base64.b64decode(v, validate=True)
            except binascii.Error as e:
                raise ValueError(f"data is not valid base64: {e}")
        if isinstance(v, list):
            if not all(isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 255 for b in v):
                raise ValueError("data array must contain integers in 0..255")
            return bytes(v)
        raise ValueError(f"data must be base64 string or byte array, got {type(v).__name__}")

    @field_validator("application_id", mode="before")
    @classmethod
    def coerce_application_id(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        return str(v)


@dataclass
class ValidationResult:
    """Resultado de validación."""

    valid: bool
    envelope: Optional[UplinkEnvelope] = None
    error: Optional[str] = None


def validate_uplink(data: Any) -> ValidationResult:
    """Valida el envelope de un uplink.

    Args:
        data: Objeto JSON ya parseado del mensaje MQTT

    Returns:
        ValidationResult con el envelope validado o el error
    """
    if not isinstance(data, dict):
        return ValidationResult(
            valid=False,
            error=f"envelope must be a JSON object, got {type(data).__name__}",
        )

    try:
        envelope = UplinkEnvelope.model_validate(data)
    except ValidationError as e:
        logger.debug("[MQTT_VALIDATOR] Validation failed: %s", e)
        return ValidationResult(valid=False, error=str(e))

    return ValidationResult(valid=True, envelope=envelope)
