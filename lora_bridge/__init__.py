"""Bridge de uplinks LoRa (MQTT) hacia Prometheus o InfluxDB."""

__version__ = "0.1.0"
