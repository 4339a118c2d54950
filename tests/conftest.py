"""Pytest configuration and fixtures for test suite."""

import os
import threading
import time
from typing import List, Tuple

import pytest

# The API tests must not connect to TTN or the registries
os.environ.setdefault("BRIDGE_ENABLED", "false")

from bridge.models.device import AppDeviceId
from bridge.models.sensor_data import SensorData
from bridge.models.uplink import UplinkMessage
from bridge.sinks import CommandSink, UploadSink


class RecordingSink(UploadSink):
    """Upload sink that records every hand-off on the calling thread."""

    def __init__(self, name: str = "recording", delay: float = 0.0):
        self._name = name
        self.delay = delay
        self.records: List[Tuple[AppDeviceId, SensorData]] = []
        self.snapshots = []
        self.started = False
        self.stopped = False
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    def start(self):
        self.started = True

    def stop(self, timeout: float = 5.0):
        self.stopped = True

    def accept_attribute_snapshot(self, directory):
        with self._lock:
            self.snapshots.append(directory)

    def accept_record(self, app_device_id, sensor_data):
        if self.delay:
            time.sleep(self.delay)
        with self._lock:
            self.records.append((app_device_id, sensor_data))


class FailingSink(RecordingSink):
    """Upload sink raising on every hand-off."""

    def start(self):
        raise RuntimeError("cannot start")

    def stop(self, timeout: float = 5.0):
        raise RuntimeError("cannot stop")

    def accept_attribute_snapshot(self, directory):
        raise RuntimeError("broken snapshot handling")

    def accept_record(self, app_device_id, sensor_data):
        raise RuntimeError("broken upload")


class RecordingCommandSink(CommandSink):

    def __init__(self, name: str = "commands"):
        self._name = name
        self.commands: List[UplinkMessage] = []
        self.snapshots = []

    @property
    def name(self) -> str:
        return self._name

    def start(self):
        pass

    def stop(self, timeout: float = 5.0):
        pass

    def accept_attribute_snapshot(self, directory):
        self.snapshots.append(directory)

    def accept_command(self, uplink):
        self.commands.append(uplink)


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def make_uplink():
    """Factory for uplinks with sensible defaults."""

    def _make(payload: bytes = b"", port: int = 1, app_id: str = "particulatematter", dev_id: str = "pm-01",
              **kwargs) -> UplinkMessage:
        return UplinkMessage(app_id=app_id, dev_id=dev_id, port=port, raw_payload=payload, **kwargs)

    return _make
