"""Receptor MQTT de uplinks LoRa.

Usa paho-mqtt para suscribirse a application/{app}/node/{dev}/rx y entrega
cada mensaje al UplinkHandler.

Fallar al conectar o al suscribirse durante el arranque se reporta con
BrokerConnectionError / SubscriptionError; el entrypoint decide terminar.
La reconexión posterior queda a cargo de paho.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt

from .message_handler import UplinkHandler

logger = logging.getLogger(__name__)

SINGLE_LEVEL_WILDCARD = "+"

# scheme -> (tls, transport, puerto por defecto)
_SCHEMES = {
    "tcp": (False, "tcp", 1883),
    "mqtt": (False, "tcp", 1883),
    "ssl": (True, "tcp", 8883),
    "tls": (True, "tcp", 8883),
    "mqtts": (True, "tcp", 8883),
    "ws": (False, "websockets", 80),
    "wss": (True, "websockets", 443),
}


class BrokerConnectionError(Exception):
    """No se pudo establecer la conexión con el broker."""


class SubscriptionError(Exception):
    """El broker rechazó la suscripción."""


@dataclass(frozen=True)
class BrokerAddress:
    host: str
    port: int
    tls: bool = False
    transport: str = "tcp"
    path: str = ""


def parse_broker_url(url: str) -> BrokerAddress:
    """Parsea una URL de broker estilo ``tcp://host:1883``.

    Sin scheme se asume ``tcp``.
    """
    if "://" not in url:
        url = f"tcp://{url}"
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme not in _SCHEMES:
        raise ValueError(f"unsupported MQTT scheme: {scheme!r}")
    tls, transport, default_port = _SCHEMES[scheme]
    path = ""
    if transport == "websockets":
        path = parts.path or "/mqtt"
    return BrokerAddress(
        host=parts.hostname or "localhost",
        port=parts.port or default_port,
        tls=tls,
        transport=transport,
        path=path,
    )


def build_uplink_topic(application_id: str, dev_eui: Optional[str] = None) -> str:
    """Topic de uplinks de un dispositivo, o de todos si dev_eui es None."""
    device = dev_eui or SINGLE_LEVEL_WILDCARD
    return f"application/{application_id}/node/{device}/rx"


class UplinkReceiver:
    """Receptor MQTT que entrega uplinks al handler."""

    def __init__(
        self,
        broker_url: str,
        topic: str,
        handler: UplinkHandler,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = "lora-bridge",
        connect_timeout: float = 5.0,
        on_fatal: Optional[Callable[[Exception], None]] = None,
    ):
        self.broker_url = broker_url
        self.address = parse_broker_url(broker_url)
        self.topic = topic
        self.username = username
        self.password = password
        self.client_id = f"{client_id}-{int(time.time())}"
        self.connect_timeout = connect_timeout

        self._handler = handler
        self._on_fatal = on_fatal
        self._client: Optional[mqtt.Client] = None
        self._running = False
        self._connected = False
        self._subscribed = False

        self._ready = threading.Event()
        self._startup_error: Optional[Exception] = None

    def _create_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
            protocol=mqtt.MQTTv311,
            transport=self.address.transport,
        )
        if self.address.transport == "websockets":
            client.ws_set_options(path=self.address.path)
        if self.address.tls:
            client.tls_set()
        if self.username:
            client.username_pw_set(self.username, self.password)

        client.on_connect = self._on_connect
        client.on_subscribe = self._on_subscribe
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message
        return client

    def start(self) -> None:
        """Conecta, se suscribe y deja corriendo el loop de paho.

        Raises:
            BrokerConnectionError: conexión fallida, rechazada o timeout
            SubscriptionError: suscripción rechazada por el broker
        """
        self._ready.clear()
        self._startup_error = None
        self._client = self._create_client()

        logger.info("[MQTT] Connecting to %s:%d", self.address.host, self.address.port)
        try:
            self._client.connect(self.address.host, self.address.port, keepalive=60)
        except (OSError, ValueError) as e:
            raise BrokerConnectionError(f"cannot connect to {self.broker_url}: {e}") from e

        self._client.loop_start()
        self._running = True

        if not self._ready.wait(self.connect_timeout):
            self.stop()
            raise BrokerConnectionError(
                f"timeout after {self.connect_timeout:.1f}s waiting for {self.broker_url}"
            )

        if self._startup_error is not None:
            error = self._startup_error
            self.stop()
            raise error

        logger.info("[MQTT] Started successfully, listening on %s", self.topic)

    def stop(self) -> None:
        """Detiene el receptor."""
        self._running = False

        if self._client:
            try:
                self._client.loop_stop()
                self._client.disconnect()
            except Exception as e:
                logger.warning("[MQTT] Error stopping: %s", e)

        self._connected = False
        logger.info("[MQTT] Stopped. %s", self._handler.stats)

    def _fail(self, error: Exception) -> None:
        logger.error("[MQTT] %s", error)
        if not self._ready.is_set():
            self._startup_error = error
            self._ready.set()
        elif self._on_fatal is not None:
            self._on_fatal(error)

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        """Callback de conexión."""
        if reason_code.is_failure:
            self._connected = False
            if not self._ready.is_set():
                self._fail(BrokerConnectionError(f"connection refused: {reason_code}"))
            else:
                logger.error("[MQTT] Reconnection refused: %s", reason_code)
            return

        self._connected = True
        logger.info("[MQTT] connected to mqtt server")

        result, _mid = client.subscribe(self.topic, qos=0)
        if result != mqtt.MQTT_ERR_SUCCESS:
            self._fail(SubscriptionError(
                f"subscribe to {self.topic} failed: {mqtt.error_string(result)}"
            ))

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties=None):
        """Callback de SUBACK."""
        rejected = [rc for rc in reason_code_list if rc.is_failure]
        if rejected:
            self._subscribed = False
            self._fail(SubscriptionError(f"subscription to {self.topic} rejected: {rejected[0]}"))
            return

        self._subscribed = True
        logger.info("[MQTT] Subscribed to %s", self.topic)
        self._ready.set()

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        """Callback de desconexión."""
        self._connected = False
        self._subscribed = False
        logger.warning("[MQTT] Disconnected (%s)", reason_code)

    def _on_message(self, client, userdata, msg):
        """Callback de mensaje - delega al handler."""
        try:
            self._handler(msg.topic, msg.payload)
        except Exception as e:
            logger.exception("[MQTT] Processing error: %s", e)
            self._handler.stats.failed += 1

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def stats(self) -> dict:
        return {
            "running": self._running,
            "connected": self._connected,
            "subscribed": self._subscribed,
            "broker": f"{self.address.host}:{self.address.port}",
            "topic": self.topic,
            **self._handler.stats.to_dict(),
        }

    def health_check(self) -> dict:
        stats = self._handler.stats
        return {
            "healthy": self._running and self._connected and self._subscribed,
            "running": self._running,
            "connected": self._connected,
            "subscribed": self._subscribed,
            "messages_received": stats.received,
            "messages_processed": stats.processed,
            "messages_failed": stats.failed,
            "last_message_age_seconds": (
                time.time() - stats.last_message_at if stats.last_message_at > 0 else None
            ),
        }
