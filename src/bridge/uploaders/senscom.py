import logging
from typing import Optional

import httpx

from bridge.models.config_data import UploaderConfig
from bridge.models.device import AppDeviceId, AttributeMap
from bridge.models.sensor_data import SensorData
from bridge.uploaders.base import HttpUploader
from bridge.uploaders.senscom_message import (
    PIN_PARTICULATE, SensComMessage, meteo_message, particulate_message
)

logger = logging.getLogger(__name__)

ATTRIBUTE_SENSCOM_ID = "senscom-id"
PUSH_PATH = "/v1/push-sensor-data/"


class SensComUploader(HttpUploader[str]):
    """Uploads to sensor.community, routed by the 'senscom-id' device attribute."""

    def __init__(self, config: UploaderConfig, client: Optional[httpx.Client] = None):
        super().__init__("senscom", config, client)

    def route_from_attributes(self, attributes: AttributeMap) -> Optional[str]:
        senscom_id = attributes.get(ATTRIBUTE_SENSCOM_ID, "").strip()
        return senscom_id or None

    @staticmethod
    def sensor_name(senscom_id: str) -> str:
        return f"TTN-{senscom_id}"

    def upload(self, app_device_id: AppDeviceId, route: str, sensor_data: SensorData):
        pm = particulate_message(sensor_data)
        if pm is not None:
            self._push(route, PIN_PARTICULATE, pm)
        meteo = meteo_message(sensor_data)
        if meteo is not None:
            pin, message = meteo
            self._push(route, pin, message)

    def _push(self, senscom_id: str, pin: str, message: SensComMessage):
        sensor = self.sensor_name(senscom_id)
        logger.info(f"Sending to sensor.community for {sensor} pin {pin}: {message.model_dump()}")
        response = self.post(PUSH_PATH, headers={"X-Pin": pin, "X-Sensor": sensor}, json=message.model_dump())
        logger.info(f"Upload to sensor.community for {sensor} pin {pin} success: {response.text}")
