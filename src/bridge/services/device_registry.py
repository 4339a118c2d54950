"""
Client for the TTN v3 end device registry.

Used to fetch the attributes of all devices of an application, and to read
and update the location of a single device.
"""
import logging
from typing import Dict, List, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from bridge.errors import RegistryQueryError
from bridge.models.config_data import TtnAppConfig
from bridge.models.device import FIELD_LOCATIONS

logger = logging.getLogger(__name__)

# Location entry maintained by the bridge
LOCATION_USER = "user"


class ApplicationIds(BaseModel):
    application_id: str = ""


class DeviceIds(BaseModel):
    device_id: str = ""
    dev_eui: str = ""
    application_ids: ApplicationIds = Field(default_factory=ApplicationIds)


class Location(BaseModel):
    latitude: float = 0.0
    longitude: float = 0.0
    altitude: int = 0
    source: str = "SOURCE_REGISTRY"


class EndDevice(BaseModel):
    ids: DeviceIds = Field(default_factory=DeviceIds)
    attributes: Dict[str, str] = Field(default_factory=dict)
    locations: Dict[str, Location] = Field(default_factory=dict)

    @property
    def device_id(self) -> str:
        return self.ids.device_id


class EndDeviceList(BaseModel):
    end_devices: List[EndDevice] = Field(default_factory=list)


class EndDeviceRegistry:
    """Registry access for one application, authenticated with its API key."""

    def __init__(self, base_url: str, app_config: TtnAppConfig, timeout: float = 20.0,
                 client: Optional[httpx.Client] = None):
        self.app_id = app_config.name
        self._client = client or httpx.Client(timeout=timeout)
        self._base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {app_config.key}"}

    def _devices_url(self) -> str:
        return f"{self._base_url}/api/v3/applications/{self.app_id}/devices"

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, url, headers=self._headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RegistryQueryError(self.app_id, f"HTTP {e.response.status_code}: {e.response.text}") from e
        except httpx.HTTPError as e:
            raise RegistryQueryError(self.app_id, str(e)) from e
        return response

    def list_end_devices(self, *fields: str) -> List[EndDevice]:
        """List all devices of the application, with the given fields filled in."""
        response = self._request("GET", self._devices_url(), params={"field_mask": ",".join(fields)})
        try:
            devices = EndDeviceList.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RegistryQueryError(self.app_id, f"invalid device list: {e}") from e
        logger.debug(f"Registry {self.app_id} returned {len(devices.end_devices)} devices")
        return devices.end_devices

    def get_end_device(self, dev_id: str, *fields: str) -> EndDevice:
        response = self._request("GET", f"{self._devices_url()}/{dev_id}",
                                 params={"field_mask": ",".join(fields)})
        try:
            return EndDevice.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RegistryQueryError(self.app_id, f"invalid device {dev_id}: {e}") from e

    def update_location(self, dev_id: str, location: Location):
        """Replace the user location of a device."""
        body = {
            "end_device": {
                "ids": {"device_id": dev_id, "application_ids": {"application_id": self.app_id}},
                "locations": {LOCATION_USER: location.model_dump()},
            },
            "field_mask": {"paths": [FIELD_LOCATIONS]},
        }
        self._request("PUT", f"{self._devices_url()}/{dev_id}", json=body)
        logger.info(f"Updated location of {self.app_id}/{dev_id} to {location.latitude},{location.longitude}")

    def close(self):
        self._client.close()
