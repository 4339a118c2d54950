"""
Uploader for myDevices (Cayenne) using the HTTP variant of their MQTT API.

Each measurement becomes one channel in a JSON list posted to
/things/<clientid>/data, authenticated with the device's MQTT credentials.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import httpx

from bridge.models.config_data import UploaderConfig
from bridge.models.device import AppDeviceId, AttributeMap
from bridge.models.sensor_data import SensorData
from bridge.models.sensor_item import SensorItem
from bridge.uploaders.base import HttpUploader

logger = logging.getLogger(__name__)

ATTRIBUTE_USERNAME = "mydevices-username"
ATTRIBUTE_PASSWORD = "mydevices-password"
ATTRIBUTE_CLIENTID = "mydevices-clientid"

# channel, type, unit
CHANNELS: Dict[SensorItem, Tuple[int, str, str]] = {
    SensorItem.PM10: (1, "pm10", "micg_m3"),
    SensorItem.PM2_5: (2, "pm25", "micg_m3"),
    SensorItem.PM1_0: (3, "pm1", "micg_m3"),
    SensorItem.PM4_0: (4, "pm", "micg_m3"),
    SensorItem.TEMP: (10, "temp", "c"),
    SensorItem.HUMI: (11, "rel_hum", "p"),
    SensorItem.PRESSURE: (12, "bp", "pa"),
    SensorItem.LORA_RSSI: (20, "rssi", "dbm"),
    SensorItem.LORA_SNR: (21, "snr", "db"),
}


@dataclass(frozen=True)
class MyDevicesCredentials:
    username: str
    password: str
    client_id: str

    def __repr__(self) -> str:
        return f"MyDevicesCredentials(client_id={self.client_id})"


def build_message(sensor_data: SensorData) -> List[dict]:
    message = []
    for item, (channel, value_type, unit) in CHANNELS.items():
        if sensor_data.has_value(item):
            message.append({"channel": channel, "value": sensor_data.get_value(item),
                            "type": value_type, "unit": unit})
    return message


class MyDevicesUploader(HttpUploader[MyDevicesCredentials]):

    def __init__(self, config: UploaderConfig, client: Optional[httpx.Client] = None):
        super().__init__("mydevices", config, client)

    def route_from_attributes(self, attributes: AttributeMap) -> Optional[MyDevicesCredentials]:
        if all(key in attributes for key in (ATTRIBUTE_USERNAME, ATTRIBUTE_PASSWORD, ATTRIBUTE_CLIENTID)):
            return MyDevicesCredentials(attributes[ATTRIBUTE_USERNAME], attributes[ATTRIBUTE_PASSWORD],
                                        attributes[ATTRIBUTE_CLIENTID])
        return None

    def describe_route(self, route: MyDevicesCredentials) -> str:
        return route.client_id

    def upload(self, app_device_id: AppDeviceId, route: MyDevicesCredentials, sensor_data: SensorData):
        message = build_message(sensor_data)
        if not message:
            return
        logger.info(f"Upload to myDevices for client {route.client_id}: {message}")
        response = self.post(f"/things/{route.client_id}/data", json=message,
                             auth=(route.username, route.password))
        logger.info(f"Upload to myDevices for {app_device_id} to client {route.client_id} success: {response.text}")
