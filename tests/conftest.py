from unittest.mock import MagicMock

import pytest

from lora_bridge.sinks import MeasurementSink


@pytest.fixture
def mock_sink():
    """Sink que acepta todas las escrituras."""
    sink = MagicMock(spec=MeasurementSink)
    sink.write.return_value = True
    return sink
