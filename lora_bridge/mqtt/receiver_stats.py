"""Statistics for the uplink receiver."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field


@dataclass
class ReceiverStats:
    """Contadores de mensajes del receptor MQTT.

    ``ignored`` cuenta uplinks con fPort desconocido; ``failed`` cuenta
    JSON inválido, envelopes inválidos, payloads cortos y fallos del sink.
    """

    received: int = field(default=0)
    processed: int = field(default=0)
    ignored: int = field(default=0)
    failed: int = field(default=0)
    last_message_at: float = field(default=0.0)

    def __str__(self) -> str:
        return (
            f"Stats: received={self.received} processed={self.processed} "
            f"ignored={self.ignored} failed={self.failed}"
        )

    def to_dict(self) -> dict:
        return asdict(self)
