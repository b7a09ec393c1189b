"""Tests de los sinks Prometheus e InfluxDB.

Ejecutar:
    pytest tests/test_sinks.py -v
"""

import logging
import struct
from unittest.mock import MagicMock, patch

import pytest
from influxdb_client import Point, WritePrecision
from prometheus_client import CollectorRegistry

from lora_bridge.config import SINK_INFLUXDB, SINK_PROMETHEUS, get_settings
from lora_bridge.decoding import Measurement, MeasurementKind
from lora_bridge.sinks import GaugeSink, TimeSeriesSink, create_sink

from .factories import DEV_EUI

NOW = 1700000000.75


def _air(value=100):
    return Measurement(MeasurementKind.AIR_QUALITY, value, DEV_EUI)


def _temp(value=22.5):
    return Measurement(MeasurementKind.TEMPERATURE, value, DEV_EUI)


@pytest.fixture
def influx_client():
    """Mock del cliente InfluxDB."""
    client = MagicMock()
    client.write_api.return_value = MagicMock()
    return client


@pytest.fixture
def ts_sink(influx_client):
    return TimeSeriesSink("http://influx:8086", client=influx_client, clock=lambda: NOW)


# =============================================================================
# GAUGE SINK
# =============================================================================

class TestGaugeSink:

    def test_air_quality_gauge(self):
        sink = GaugeSink()

        assert sink.write(_air(100)) is True
        assert sink.registry.get_sample_value("lora_sensor_airquality") == 100.0

    def test_temperature_gauge(self):
        sink = GaugeSink()

        sink.write(_temp(22.5))
        assert sink.registry.get_sample_value("lora_sensor_temperature_celsius") == 22.5

    def test_last_write_wins(self):
        sink = GaugeSink()

        for value in (10, 500, 42):
            sink.write(_air(value))

        assert sink.registry.get_sample_value("lora_sensor_airquality") == 42.0

    def test_gauges_are_independent(self):
        sink = GaugeSink()

        sink.write(_temp(19.0))
        sink.write(_air(7))

        assert sink.registry.get_sample_value("lora_sensor_temperature_celsius") == 19.0
        assert sink.registry.get_sample_value("lora_sensor_airquality") == 7.0

    def test_set_gauge_unknown_name(self):
        with pytest.raises(KeyError):
            GaugeSink().set_gauge("nope", 1)

    def test_registries_are_isolated(self):
        a, b = GaugeSink(), GaugeSink()

        a.write(_air(1))
        b.write(_air(2))

        assert a.registry.get_sample_value("lora_sensor_airquality") == 1.0
        assert b.registry.get_sample_value("lora_sensor_airquality") == 2.0

    def test_injected_registry(self):
        registry = CollectorRegistry()
        sink = GaugeSink(registry=registry)

        sink.write(_air(3))
        assert registry.get_sample_value("lora_sensor_airquality") == 3.0

    def test_render_exposition(self):
        sink = GaugeSink()
        sink.write(_air(100))

        text = sink.render().decode()

        assert "# HELP lora_sensor_airquality Current air quality" in text
        assert "# TYPE lora_sensor_temperature_celsius gauge" in text
        assert "lora_sensor_airquality 100.0" in text


# =============================================================================
# TIME SERIES SINK
# =============================================================================

class TestTimeSeriesSink:

    def test_single_point_per_measurement(self, ts_sink, influx_client):
        write_api = influx_client.write_api.return_value

        assert ts_sink.write(_air(100)) is True

        write_api.write.assert_called_once()
        kwargs = write_api.write.call_args.kwargs
        assert kwargs["bucket"] == "sensors"
        assert kwargs["write_precision"] == WritePrecision.S
        assert isinstance(kwargs["record"], Point)

    def test_air_quality_line_protocol(self, ts_sink):
        point = ts_sink.build_point(_air(100))

        assert point.to_line_protocol() == (
            f"air_quality,devEUI={DEV_EUI} quality=100i 1700000000"
        )

    def test_temperature_line_protocol(self, ts_sink):
        point = ts_sink.build_point(_temp(22.5))

        assert point.to_line_protocol() == (
            f"temperature,devEUI={DEV_EUI} celcius=22.5 1700000000"
        )

    def test_one_write_per_message(self, ts_sink, influx_client):
        write_api = influx_client.write_api.return_value

        ts_sink.write(_air(1))
        ts_sink.write(_temp(2.5))

        assert write_api.write.call_count == 2
        for c in write_api.write.call_args_list:
            assert isinstance(c.kwargs["record"], Point)

    def test_write_failure_is_logged_and_dropped(self, ts_sink, influx_client, caplog):
        influx_client.write_api.return_value.write.side_effect = RuntimeError("influx down")

        with caplog.at_level(logging.ERROR, logger="lora_bridge.sinks.influx"):
            assert ts_sink.write(_air(1)) is False

        assert "influx down" in caplog.text
        assert influx_client.write_api.return_value.write.call_count == 1

    def test_point_failure_is_logged_and_dropped(self, influx_client, caplog):
        def broken_clock():
            raise OSError("no clock")

        sink = TimeSeriesSink("http://influx:8086", client=influx_client, clock=broken_clock)

        with caplog.at_level(logging.ERROR, logger="lora_bridge.sinks.influx"):
            assert sink.write(_air(1)) is False

        influx_client.write_api.return_value.write.assert_not_called()
        assert "Point construction failed" in caplog.text

    @pytest.mark.parametrize("bits", [0x7FC00000, 0x7F800000, 0xFF800000])
    def test_non_finite_temperature_not_written(self, ts_sink, influx_client, caplog, bits):
        value = struct.unpack("<f", struct.pack("<I", bits))[0]

        with caplog.at_level(logging.ERROR, logger="lora_bridge.sinks.influx"):
            assert ts_sink.write(_temp(value)) is False

        influx_client.write_api.return_value.write.assert_not_called()
        assert "Point construction failed" in caplog.text

    def test_close(self, ts_sink, influx_client):
        ts_sink.close()
        influx_client.close.assert_called_once()

    def test_builds_compat_client(self):
        with patch("lora_bridge.sinks.influx.InfluxDBClient") as client_cls:
            TimeSeriesSink("http://influx:8086", username="admin", password="secret")

        client_cls.assert_called_once_with(
            url="http://influx:8086", token="admin:secret", org="-"
        )


# =============================================================================
# FACTORY
# =============================================================================

class TestCreateSink:

    def test_prometheus(self, monkeypatch):
        monkeypatch.setenv("BRIDGE_ENV_FILE", "")
        sink = create_sink(get_settings(["--sink", SINK_PROMETHEUS]))
        assert isinstance(sink, GaugeSink)

    def test_influxdb(self, monkeypatch):
        monkeypatch.setenv("BRIDGE_ENV_FILE", "")
        settings = get_settings([
            "--sink", SINK_INFLUXDB,
            "--influx-url", "http://db:8086",
            "--influx-user", "u",
            "--influx-password", "p",
        ])

        with patch("lora_bridge.sinks.influx.InfluxDBClient") as client_cls:
            sink = create_sink(settings)

        assert isinstance(sink, TimeSeriesSink)
        client_cls.assert_called_once_with(url="http://db:8086", token="u:p", org="-")

    def test_client_failure_propagates(self, monkeypatch):
        monkeypatch.setenv("BRIDGE_ENV_FILE", "")
        settings = get_settings(["--sink", SINK_INFLUXDB])

        with patch("lora_bridge.sinks.influx.InfluxDBClient", side_effect=ValueError("bad url")):
            with pytest.raises(ValueError):
                create_sink(settings)
