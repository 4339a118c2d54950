import struct

import pytest
from fastapi.testclient import TestClient

from main import app, settings
from bridge.models.device import AppDeviceId, AttributeMap
from bridge.models.uplink import UplinkMessage
from bridge.service_manager import service_manager


@pytest.fixture
def client():
    with TestClient(app) as client:
        yield client


class TestMetaEndpoints:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {"message": settings.app_name}

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "app": settings.app_name}


class TestBridgeEndpoints:
    """Status surface of a bridge started without network connections."""

    def test_status(self, client):
        response = client.get("/api/bridge/status")
        assert response.status_code == 200
        body = response.json()
        assert body["running"] is True
        assert body["applications"] == ["particulatematter", "cayenne-sensors"]
        assert body["connected"] == []
        assert body["sinks"] == ["senscom", "opensense", "mydevices"]
        assert body["stats"]["received"] == 0

    def test_status_counts_uplinks(self, client):
        """Test that uplinks fed to the dispatcher show up in the counters."""
        frame = struct.pack(">HHHh", 420, 180, 550, 210)
        service_manager.dispatcher.message_received(
            UplinkMessage(app_id="particulatematter", dev_id="pm-01", port=1, raw_payload=frame))
        service_manager.dispatcher.message_received(
            UplinkMessage(app_id="particulatematter", dev_id="pm-01", port=1, raw_payload=b"\x00"))

        stats = client.get("/api/bridge/status").json()["stats"]
        assert stats["received"] == 2
        assert stats["decoded"] == 1
        assert stats["failed"] == 1
        assert stats["last_message_at"] is not None

    def test_devices_hide_attribute_values(self, client):
        service_manager.directory.replace({
            AppDeviceId("particulatematter", "pm-02"): AttributeMap({"mydevices-password": "secret"}),
            AppDeviceId("particulatematter", "pm-01"): AttributeMap({"senscom-id": "1", "opensense-id": "b"}),
        })
        response = client.get("/api/bridge/devices")
        assert response.status_code == 200
        assert response.json() == {"list": [
            {"app_id": "particulatematter", "dev_id": "pm-01", "attribute_names": ["opensense-id", "senscom-id"]},
            {"app_id": "particulatematter", "dev_id": "pm-02", "attribute_names": ["mydevices-password"]},
        ]}
        assert "secret" not in response.text

    def test_refresh_accepted(self, client):
        response = client.post("/api/bridge/refresh")
        assert response.status_code == 202

    def test_not_running_gives_503(self):
        """Test that the bridge endpoints report an unavailable bridge outside the app lifespan."""
        client = TestClient(app)
        assert client.get("/api/bridge/status").status_code == 503
