import logging
from typing import Optional

import httpx

from bridge.models.config_data import UploaderConfig
from bridge.models.device import AppDeviceId, AttributeMap
from bridge.models.sensor_data import SensorData
from bridge.uploaders.base import HttpUploader
from bridge.uploaders.senscom_message import combined_message

logger = logging.getLogger(__name__)

ATTRIBUTE_OPENSENSE_ID = "opensense-id"


class OpenSenseUploader(HttpUploader[str]):
    """Uploads to openSenseMap in luftdaten format, routed by the 'opensense-id' box id."""

    def __init__(self, config: UploaderConfig, client: Optional[httpx.Client] = None):
        super().__init__("opensense", config, client)

    def route_from_attributes(self, attributes: AttributeMap) -> Optional[str]:
        box_id = attributes.get(ATTRIBUTE_OPENSENSE_ID, "").strip()
        return box_id or None

    def upload(self, app_device_id: AppDeviceId, route: str, sensor_data: SensorData):
        message = combined_message(sensor_data)
        if message is None:
            return
        logger.info(f"Sending to openSenseMap box {route}: {message.model_dump()}")
        response = self.post(f"/boxes/{route}/data", params={"luftdaten": "true"}, json=message.model_dump())
        logger.info(f"Upload to openSenseMap box {route} success: {response.text}")
