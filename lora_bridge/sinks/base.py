"""Abstract interface for measurement sinks.

Decouples the MQTT handler from the observability backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..decoding import Measurement


class MeasurementSink(ABC):
    """Destino de las mediciones decodificadas.

    Implementations:
    - GaugeSink: gauges Prometheus expuestos en /metrics
    - TimeSeriesSink: escribe puntos en InfluxDB
    """

    @abstractmethod
    def write(self, measurement: Measurement) -> bool:
        """Entrega una medición al backend.

        Args:
            measurement: Medición decodificada

        Returns:
            True si se entregó, False si se descartó (ya logueado)
        """
        pass

    def close(self) -> None:
        """Libera recursos del backend."""
        pass
