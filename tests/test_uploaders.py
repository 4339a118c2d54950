import base64
import json
import threading
import time

import httpx
import pytest

from bridge.models.config_data import UploaderConfig
from bridge.models.device import AppDeviceId, AttributeMap
from bridge.models.sensor_data import SensorData
from bridge.models.sensor_item import SensorItem
from bridge.uploaders.mydevices import MyDevicesUploader
from bridge.uploaders.opensense import OpenSenseUploader
from bridge.uploaders.senscom import SensComUploader

DEVICE = AppDeviceId("particulatematter", "pm-01")
OTHER = AppDeviceId("particulatematter", "pm-02")


class RecordingTransport:
    """httpx mock transport keeping every request."""

    def __init__(self, status_code: int = 201):
        self.status_code = status_code
        self.requests = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, text="ok")

    def client(self, base_url: str) -> httpx.Client:
        return httpx.Client(base_url=base_url, transport=self.transport)


def _record(**values) -> SensorData:
    data = SensorData()
    for name, value in values.items():
        data.add_value(SensorItem[name], value)
    return data.as_read_only()


def _values(request: httpx.Request):
    body = json.loads(request.content)
    return {item["value_type"]: item["value"] for item in body["sensordatavalues"]}


@pytest.fixture
def transport():
    return RecordingTransport()


class TestSensComUploader:
    """Uploads to sensor.community."""

    def _uploader(self, transport):
        config = UploaderConfig("https://api.sensor.community")
        uploader = SensComUploader(config, client=transport.client(config.url))
        uploader._process_attributes({DEVICE: AttributeMap({"senscom-id": "0004A30B001E00BE"}),
                                      OTHER: AttributeMap({"opensense-id": "box"})})
        return uploader

    def test_particulate_and_meteo_pins(self, transport):
        """Test that particulate matter goes to pin 1 and temperature/humidity to pin 7."""
        uploader = self._uploader(transport)
        uploader._upload_record(DEVICE, _record(PM10=42.0, PM2_5=18.0, TEMP=21.5, HUMI=55.0))

        assert len(transport.requests) == 2
        pm, meteo = transport.requests
        assert pm.url.path == "/v1/push-sensor-data/"
        assert pm.headers["X-Pin"] == "1"
        assert pm.headers["X-Sensor"] == "TTN-0004A30B001E00BE"
        assert _values(pm) == {"P1": "42.0", "P2": "18.0"}
        assert meteo.headers["X-Pin"] == "7"
        assert _values(meteo) == {"temperature": "21.5", "humidity": "55.0"}

    def test_pressure_uses_bme280_pin(self, transport):
        uploader = self._uploader(transport)
        uploader._upload_record(DEVICE, _record(TEMP=20.0, HUMI=50.0, PRESSURE=101300.0))
        assert len(transport.requests) == 1
        assert transport.requests[0].headers["X-Pin"] == "11"
        assert _values(transport.requests[0])["pressure"] == "101300.0"

    def test_unrouted_device_discarded(self, transport):
        uploader = self._uploader(transport)
        uploader._upload_record(OTHER, _record(PM10=1.0))
        uploader._upload_record(AppDeviceId("x", "unknown"), _record(PM10=1.0))
        assert transport.requests == []

    def test_routes_rebuilt_on_snapshot(self, transport):
        uploader = self._uploader(transport)
        assert set(uploader.routes) == {DEVICE}
        uploader._process_attributes({OTHER: AttributeMap({"senscom-id": "42"})})
        assert uploader.routes == {OTHER: "42"}

    def test_http_error_is_logged_not_raised(self):
        transport = RecordingTransport(status_code=500)
        uploader = self._uploader(transport)
        uploader._upload_record(DEVICE, _record(PM10=1.0))
        assert len(transport.requests) == 1

    def test_upload_through_worker(self, transport):
        """Test the asynchronous hand-off path from snapshot to upload."""
        config = UploaderConfig("https://api.sensor.community")
        uploader = SensComUploader(config, client=transport.client(config.url))
        uploader.start()
        uploader.accept_attribute_snapshot({DEVICE: AttributeMap({"senscom-id": "1"})})
        uploader.accept_record(DEVICE, _record(PM10=3.0))
        assert uploader.worker.wait_idle(2.0)
        uploader.stop(1.0)
        assert len(transport.requests) == 1
        assert transport.requests[0].headers["X-Sensor"] == "TTN-1"

    def test_client_outlives_abandoned_upload(self):
        """Test that stopping with an upload in flight closes the client only after it returns."""
        release = threading.Event()
        responses = []

        def handler(request):
            release.wait(5.0)
            return httpx.Response(201, text="ok")

        config = UploaderConfig("https://api.sensor.community")
        client = httpx.Client(base_url=config.url, transport=httpx.MockTransport(handler),
                              event_hooks={"response": [responses.append]})
        uploader = SensComUploader(config, client=client)
        uploader.start()
        uploader.accept_attribute_snapshot({DEVICE: AttributeMap({"senscom-id": "1"})})
        uploader.accept_record(DEVICE, _record(PM10=3.0))

        uploader.stop(0.0)
        assert not client.is_closed
        release.set()
        deadline = time.monotonic() + 2.0
        while uploader.worker.is_running and time.monotonic() < deadline:
            time.sleep(0.01)
        assert [response.status_code for response in responses] == [201]
        assert client.is_closed

    def test_stop_closes_client(self, transport):
        config = UploaderConfig("https://api.sensor.community")
        client = transport.client(config.url)
        uploader = SensComUploader(config, client=client)
        uploader.start()
        uploader.stop(1.0)
        assert client.is_closed


class TestOpenSenseUploader:

    def test_upload_to_box(self, transport):
        config = UploaderConfig("https://api.opensensemap.org")
        uploader = OpenSenseUploader(config, client=transport.client(config.url))
        uploader._process_attributes({DEVICE: AttributeMap({"opensense-id": "5a0c2cc89fd3c200111118f0"})})
        uploader._upload_record(DEVICE, _record(PM10=42.0, TEMP=21.0))

        request = transport.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/boxes/5a0c2cc89fd3c200111118f0/data"
        assert request.url.params["luftdaten"] == "true"
        assert _values(request) == {"P1": "42.0", "temperature": "21.0"}

    def test_empty_attribute_not_routed(self, transport):
        config = UploaderConfig("https://api.opensensemap.org")
        uploader = OpenSenseUploader(config, client=transport.client(config.url))
        uploader._process_attributes({DEVICE: AttributeMap({"opensense-id": " "})})
        assert uploader.routes == {}


class TestMyDevicesUploader:

    def _uploader(self, transport, attributes):
        config = UploaderConfig("https://api.mydevices.com")
        uploader = MyDevicesUploader(config, client=transport.client(config.url))
        uploader._process_attributes({DEVICE: AttributeMap(attributes)})
        return uploader

    def test_upload_with_basic_auth(self, transport):
        uploader = self._uploader(transport, {"mydevices-username": "user", "mydevices-password": "pass",
                                              "mydevices-clientid": "client-1"})
        uploader._upload_record(DEVICE, _record(PM10=42.0, TEMP=21.5))

        request = transport.requests[0]
        assert request.url.path == "/things/client-1/data"
        expected_auth = "Basic " + base64.b64encode(b"user:pass").decode()
        assert request.headers["Authorization"] == expected_auth
        body = json.loads(request.content)
        assert {"channel": 1, "value": 42.0, "type": "pm10", "unit": "micg_m3"} in body
        assert {"channel": 10, "value": 21.5, "type": "temp", "unit": "c"} in body

    def test_incomplete_credentials_not_routed(self, transport):
        """Test that all three credential attributes are required."""
        uploader = self._uploader(transport, {"mydevices-username": "user", "mydevices-clientid": "client-1"})
        assert uploader.routes == {}
        uploader._upload_record(DEVICE, _record(PM10=1.0))
        assert transport.requests == []

    def test_password_not_in_repr(self, transport):
        uploader = self._uploader(transport, {"mydevices-username": "user", "mydevices-password": "secret",
                                              "mydevices-clientid": "client-1"})
        assert "secret" not in repr(uploader.routes)
