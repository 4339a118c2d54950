"""
Handles responses to downlink commands, received on the command port.

Response frame: one byte command id followed by command specific data.
    0x00  version / acknowledge, logged only
    0x01  WiFi scan result, N entries of 7 bytes: 6 byte BSSID, int8 RSSI
A WiFi scan is geolocated and the registry location of the device is updated
when it moved more than the configured distance.
"""
import logging
import struct
from typing import List, Optional, Set

from bridge.commands.geo_model import SimpleGeoModel
from bridge.commands.geolocation import GeoLocationRequest, GeoLocationService, WifiAccessPoint
from bridge.errors import BridgeError, PayloadParseError
from bridge.models.config_data import CommandConfig
from bridge.models.device import FIELD_LOCATIONS, AppDeviceId
from bridge.models.uplink import UplinkMessage
from bridge.services.background_worker import BackgroundWorker
from bridge.services.device_registry import LOCATION_USER, EndDeviceRegistry, Location
from bridge.sinks import AttributeSnapshot, CommandSink

logger = logging.getLogger(__name__)

CMD_VERSION = 0x00
CMD_WIFI_SCAN = 0x01

_SCAN_ENTRY = struct.Struct(">6sb")


def parse_wifi_scan(data: bytes) -> List[WifiAccessPoint]:
    if len(data) % _SCAN_ENTRY.size != 0:
        raise PayloadParseError(f"WiFi scan length {len(data)} is not a multiple of {_SCAN_ENTRY.size}")
    access_points = []
    for bssid, rssi in _SCAN_ENTRY.iter_unpack(data):
        access_points.append(WifiAccessPoint(macAddress=":".join(f"{b:02X}" for b in bssid), signalStrength=rssi))
    return access_points


class CommandHandler(CommandSink):
    """Command sink for one application."""

    def __init__(self, app_id: str, geolocation: GeoLocationService, registry: EndDeviceRegistry,
                 config: Optional[CommandConfig] = None, geo_model: Optional[SimpleGeoModel] = None):
        self.app_id = app_id
        self.config = config or CommandConfig()
        self._geolocation = geolocation
        self._registry = registry
        self._geo_model = geo_model or SimpleGeoModel()
        self._worker = BackgroundWorker(f"command-{app_id}")
        self._known_devices: Set[AppDeviceId] = set()

    @property
    def name(self) -> str:
        return f"command-{self.app_id}"

    @property
    def worker(self) -> BackgroundWorker:
        return self._worker

    def start(self):
        self._worker.start()

    def stop(self, timeout: float = 5.0):
        self._worker.stop(timeout)

    def accept_attribute_snapshot(self, directory: AttributeSnapshot):
        self._worker.submit(self._process_attributes, directory)

    def _process_attributes(self, directory: AttributeSnapshot):
        self._known_devices = {key for key in directory if key.app_id == self.app_id}

    def accept_command(self, uplink: UplinkMessage):
        self._worker.submit(self.process_response, uplink)

    def process_response(self, uplink: UplinkMessage):
        payload = uplink.raw_payload
        if not payload:
            logger.warning(f"Empty command response from {uplink.app_device_id}")
            return
        if self._known_devices and uplink.app_device_id not in self._known_devices:
            logger.debug(f"Command response from device {uplink.app_device_id} not in registry")
        command, data = payload[0], payload[1:]
        if command == CMD_VERSION:
            logger.info(f"Command acknowledge from {uplink.app_device_id}: {data.hex()}")
        elif command == CMD_WIFI_SCAN:
            try:
                self.handle_wifi_scan(uplink.dev_id, parse_wifi_scan(data))
            except PayloadParseError as e:
                logger.warning(f"Invalid WiFi scan from {uplink.app_device_id}: {e}")
        else:
            logger.warning(f"Unhandled command 0x{command:02X} from {uplink.app_device_id}")

    def handle_wifi_scan(self, dev_id: str, access_points: List[WifiAccessPoint]) -> bool:
        """
        Geolocate a WiFi scan and update the device location if it moved.

        Returns:
            True if the registry location was updated.
        """
        if not access_points:
            logger.info(f"Empty WiFi scan from {self.app_id}/{dev_id}")
            return False
        result = self._geolocation.geolocate(GeoLocationRequest(wifiAccessPoints=access_points))
        if result is None:
            return False
        new_position = (result.location.lat, result.location.lng)
        logger.info(f"Geolocated {self.app_id}/{dev_id} at {new_position} (accuracy {result.accuracy}m)")

        try:
            device = self._registry.get_end_device(dev_id, FIELD_LOCATIONS)
            current = device.locations.get(LOCATION_USER)
            if current is not None:
                distance = self._geo_model.distance((current.latitude, current.longitude), new_position)
                if distance < self.config.min_move_distance:
                    logger.info(f"Device {self.app_id}/{dev_id} moved {distance:.0f}m, not updating location")
                    return False
            self._registry.update_location(dev_id, Location(latitude=new_position[0], longitude=new_position[1],
                                                            altitude=current.altitude if current else 0))
        except BridgeError as e:
            logger.warning(f"Could not update location of {self.app_id}/{dev_id}: {e}")
            return False
        return True
