import base64
import json
import math
from types import SimpleNamespace

import httpx
import pytest

from bridge.errors import RegistryQueryError
from bridge.models.config_data import TtnAppConfig, TtnConfig
from bridge.models.device import FIELD_ATTRIBUTES, FIELD_IDS
from bridge.services.device_registry import EndDeviceRegistry, Location
from bridge.services.mqtt_listener import MqttListener
from bridge.services.ttn_uplink import TtnUplinkMessage

BASE_URL = "https://eu1.cloud.thethings.network"
APP = TtnAppConfig("particulatematter", key="NNSXS.secret")


def _registry(handler) -> EndDeviceRegistry:
    return EndDeviceRegistry(BASE_URL, APP, client=httpx.Client(transport=httpx.MockTransport(handler)))


class TestEndDeviceRegistry:
    """TTN v3 end device registry client."""

    def test_list_end_devices(self):
        """Test the request and parsing of a device list."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"end_devices": [
                {"ids": {"device_id": "pm-01", "dev_eui": "0004A30B001E00BE",
                         "application_ids": {"application_id": "particulatematter"}},
                 "attributes": {"senscom-id": "1234", "opensense-id": "box"}},
                {"ids": {"device_id": "pm-02"}},
            ]})

        devices = _registry(handler).list_end_devices(FIELD_IDS, FIELD_ATTRIBUTES)

        request = seen[0]
        assert request.url.path == "/api/v3/applications/particulatematter/devices"
        assert request.url.params["field_mask"] == "ids,attributes"
        assert request.headers["Authorization"] == "Bearer NNSXS.secret"
        assert [device.device_id for device in devices] == ["pm-01", "pm-02"]
        assert devices[0].attributes == {"senscom-id": "1234", "opensense-id": "box"}
        assert devices[1].attributes == {}

    def test_http_error_raises_registry_error(self):
        registry = _registry(lambda request: httpx.Response(403, text="forbidden"))
        with pytest.raises(RegistryQueryError) as excinfo:
            registry.list_end_devices(FIELD_IDS)
        assert excinfo.value.app_id == "particulatematter"

    def test_transport_error_raises_registry_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RegistryQueryError):
            _registry(handler).list_end_devices(FIELD_IDS)

    def test_invalid_json_raises_registry_error(self):
        registry = _registry(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(RegistryQueryError):
            registry.list_end_devices(FIELD_IDS)

    def test_update_location(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={})

        _registry(handler).update_location("pm-01", Location(latitude=52.0, longitude=4.7, altitude=3))

        request = seen[0]
        assert request.method == "PUT"
        assert request.url.path == "/api/v3/applications/particulatematter/devices/pm-01"
        body = json.loads(request.content)
        assert body["field_mask"] == {"paths": ["locations"]}
        assert body["end_device"]["locations"]["user"]["latitude"] == 52.0
        assert body["end_device"]["ids"]["device_id"] == "pm-01"


UPLINK_JSON = {
    "end_device_ids": {
        "device_id": "pm-01",
        "dev_eui": "0004A30B001E00BE",
        "application_ids": {"application_id": "particulatematter"},
    },
    "uplink_message": {
        "f_port": 1,
        "f_cnt": 17,
        "frm_payload": base64.b64encode(bytes.fromhex("01a400b4022600d2")).decode(),
        "decoded_payload": {"pm10": 42.0},
        "rx_metadata": [
            {"gateway_ids": {"gateway_id": "gw-far"}, "rssi": -110, "snr": -3.5},
            {"gateway_ids": {"gateway_id": "gw-near"}, "rssi": -70, "snr": 9.25},
        ],
        "settings": {"data_rate": {"lora": {"bandwidth": 125000, "spreading_factor": 7}}},
    },
}


class TestTtnUplink:
    """Parsing of TTN v3 uplink messages."""

    def test_to_uplink(self):
        """Test that the strongest gateway supplies RSSI and SNR."""
        uplink = TtnUplinkMessage.parse_json(json.dumps(UPLINK_JSON).encode()).to_uplink()
        assert uplink.app_id == "particulatematter"
        assert uplink.dev_id == "pm-01"
        assert uplink.dev_eui == "0004A30B001E00BE"
        assert uplink.port == 1
        assert uplink.raw_payload == bytes.fromhex("01a400b4022600d2")
        assert uplink.decoded_fields == {"pm10": 42.0}
        assert uplink.rssi == -70
        assert uplink.snr == 9.25
        assert uplink.sf == 7

    def test_without_metadata(self):
        uplink = TtnUplinkMessage.model_validate({"uplink_message": {"f_port": 30}}).to_uplink()
        assert math.isnan(uplink.rssi)
        assert math.isnan(uplink.snr)
        assert uplink.sf == 0
        assert uplink.raw_payload == b""


class TestMqttListener:
    """Uplink delivery from the MQTT network thread."""

    def _listener(self, callback):
        ttn = TtnConfig(mqtt_url="tcp://eu1.cloud.thethings.network:1883")
        return MqttListener(ttn, APP, callback)

    def test_topic_and_credentials(self):
        listener = self._listener(lambda uplink: None)
        assert listener.username == "particulatematter@ttn"
        assert listener.topic == "v3/particulatematter@ttn/devices/+/up"
        assert listener.broker_host == "eu1.cloud.thethings.network"
        assert listener.broker_port == 1883

    def test_message_delivered_to_callback(self):
        received = []
        listener = self._listener(received.append)
        message = SimpleNamespace(topic="v3/particulatematter@ttn/devices/pm-01/up",
                                  payload=json.dumps(UPLINK_JSON).encode())
        listener._on_message(None, None, message)
        assert len(received) == 1
        assert received[0].dev_id == "pm-01"

    def test_malformed_message_ignored(self):
        received = []
        listener = self._listener(received.append)
        listener._on_message(None, None, SimpleNamespace(topic="t", payload=b"not json"))
        assert received == []

    def test_callback_error_does_not_escape(self):
        def callback(uplink):
            raise RuntimeError("boom")

        listener = self._listener(callback)
        message = SimpleNamespace(topic="t", payload=json.dumps(UPLINK_JSON).encode())
        listener._on_message(None, None, message)
