"""Client for the Google geolocation API, resolving WiFi scans to a position."""
import logging
from typing import List, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from bridge.models.config_data import GeoLocationConfig

logger = logging.getLogger(__name__)


class WifiAccessPoint(BaseModel):
    macAddress: str
    signalStrength: int


class GeoLocationRequest(BaseModel):
    considerIp: bool = False
    wifiAccessPoints: List[WifiAccessPoint] = Field(default_factory=list)


class LatLng(BaseModel):
    lat: float
    lng: float


class GeoLocationResponse(BaseModel):
    location: LatLng
    accuracy: float = 0.0


class GeoLocationService:

    def __init__(self, config: GeoLocationConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self._client = client or httpx.Client(base_url=config.url, timeout=config.timeout)

    def geolocate(self, request: GeoLocationRequest) -> Optional[GeoLocationResponse]:
        """Resolve a scan, or None when the service could not locate it."""
        try:
            response = self._client.post("/geolocation/v1/geolocate", params={"key": self.config.api_key},
                                         json=request.model_dump())
            response.raise_for_status()
            return GeoLocationResponse.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            logger.warning(f"Geolocation failed: HTTP {e.response.status_code} {e.response.text}")
        except httpx.HTTPError as e:
            logger.warning(f"Geolocation request failed: {e}")
        except (ValueError, ValidationError) as e:
            logger.warning(f"Invalid geolocation response: {e}")
        return None

    def close(self):
        self._client.close()
