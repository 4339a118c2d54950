"""
Contracts for components that receive decoded data and attribute snapshots.

All hand-offs return immediately: implementations queue the work on their own
background thread.
"""
from abc import ABC, abstractmethod
from typing import Mapping

from bridge.models.device import AppDeviceId, AttributeMap
from bridge.models.sensor_data import SensorData
from bridge.models.uplink import UplinkMessage

AttributeSnapshot = Mapping[AppDeviceId, AttributeMap]


class AttributeListener(ABC):
    """Lifecycle and attribute snapshot hand-off shared by all sinks."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def start(self) -> None:
        """Start background processing. Calling it twice has no effect."""

    @abstractmethod
    def stop(self, timeout: float = 5.0) -> None:
        """Stop background processing, waiting at most timeout seconds."""

    @abstractmethod
    def accept_attribute_snapshot(self, directory: AttributeSnapshot) -> None:
        """Replace derived routing state with one computed from directory."""


class UploadSink(AttributeListener):
    """Uploads decoded sensor data to one telemetry platform."""

    @abstractmethod
    def accept_record(self, app_device_id: AppDeviceId, sensor_data: SensorData) -> None:
        """Schedule an upload, silently discarded when the device has no route."""


class CommandSink(AttributeListener):
    """Handles responses arriving on the command port."""

    @abstractmethod
    def accept_command(self, uplink: UplinkMessage) -> None:
        """Schedule processing of a command response."""
