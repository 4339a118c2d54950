import math

import pytest

from bridge.errors import UnknownEncodingError
from bridge.models.device import AppDeviceId, AttributeMap
from bridge.models.payload_encoding import PayloadEncoding
from bridge.models.sensor_data import SensorData
from bridge.models.sensor_item import SensorItem


class TestSensorData:
    """Sparse measurement record."""

    def test_absent_value_is_not_zero(self):
        """Test that an absent kind is reported as absent, not as 0."""
        data = SensorData()
        assert not data.has_value(SensorItem.PM10)
        assert SensorItem.PM10 not in data
        with pytest.raises(KeyError):
            data.get_value(SensorItem.PM10)

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_non_finite_values_refused(self, value):
        data = SensorData()
        assert data.add_value(SensorItem.TEMP, value) is False
        assert len(data) == 0

    def test_add_value(self):
        data = SensorData()
        assert data.add_value(SensorItem.TEMP, 21) is True
        assert data.get_value(SensorItem.TEMP) == 21.0
        assert isinstance(data.get_value(SensorItem.TEMP), float)

    def test_read_only(self):
        """Test that a frozen record cannot be changed anymore."""
        data = SensorData()
        data.add_value(SensorItem.PM10, 1.0)
        frozen = data.as_read_only()
        assert frozen is data
        assert frozen.is_read_only
        with pytest.raises(TypeError):
            frozen.add_value(SensorItem.PM2_5, 2.0)
        with pytest.raises(TypeError):
            frozen.items()[SensorItem.PM10] = 5.0

    def test_sensor_item_units(self):
        assert SensorItem.PM10.unit == "ug/m3"
        assert SensorItem.PRESSURE.unit == "Pa"


class TestDeviceModels:

    def test_app_device_id_value_equality(self):
        assert AppDeviceId("app", "dev") == AppDeviceId("app", "dev")
        assert len({AppDeviceId("app", "dev"), AppDeviceId("app", "dev")}) == 1
        assert str(AppDeviceId("app", "dev")) == "app/dev"

    def test_attribute_map_is_case_sensitive(self):
        attributes = AttributeMap({"senscom-id": "1234"})
        assert attributes["senscom-id"] == "1234"
        assert "SENSCOM-ID" not in attributes

    def test_attribute_map_repr_hides_values(self):
        assert "secret" not in repr(AttributeMap({"mydevices-password": "secret"}))


class TestPayloadEncoding:

    @pytest.mark.parametrize("encoding_id, expected", [
        ("ttnulm", PayloadEncoding.TTN_ULM),
        ("SPS30", PayloadEncoding.SPS30),
        (" cayenne ", PayloadEncoding.CAYENNE),
        ("json", PayloadEncoding.JSON),
    ])
    def test_from_id(self, encoding_id, expected):
        assert PayloadEncoding.from_id(encoding_id) is expected

    def test_unknown_id_fails(self):
        with pytest.raises(UnknownEncodingError):
            PayloadEncoding.from_id("lpp2")
