"""Receptor MQTT de uplinks LoRa.

Estructura modular:
- validators.py: Envelope JSON del application server
- message_handler.py: JSON → medición → sink
- receiver.py: Cliente paho-mqtt y suscripción
- receiver_stats.py: Contadores del receptor
"""

from .message_handler import UplinkHandler, parse_json
from .receiver import (
    BrokerAddress,
    BrokerConnectionError,
    SubscriptionError,
    UplinkReceiver,
    build_uplink_topic,
    parse_broker_url,
)
from .receiver_stats import ReceiverStats
from .validators import UplinkEnvelope, ValidationResult, validate_uplink

__all__ = [
    "UplinkHandler",
    "parse_json",
    "BrokerAddress",
    "BrokerConnectionError",
    "SubscriptionError",
    "UplinkReceiver",
    "build_uplink_topic",
    "parse_broker_url",
    "ReceiverStats",
    "UplinkEnvelope",
    "ValidationResult",
    "validate_uplink",
]
