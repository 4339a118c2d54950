from dataclasses import dataclass, field
from typing import List

from bridge.models.payload_encoding import PayloadEncoding
from bridge.models.sensor_item import SensorItem


@dataclass
class TtnAppConfig:
    name: str
    key: str = ""
    encoding: PayloadEncoding = PayloadEncoding.TTN_ULM


@dataclass
class TtnConfig:
    mqtt_url: str = "tcp://eu1.cloud.thethings.network:1883"
    identity_server_url: str = "https://eu1.cloud.thethings.network"
    identity_server_timeout: float = 20.0
    apps: List[TtnAppConfig] = field(default_factory=list)


@dataclass
class JsonDecoderItem:
    path: str
    item: SensorItem


@dataclass
class UploaderConfig:
    url: str
    timeout: float = 20.0
    enabled: bool = True


@dataclass
class GeoLocationConfig:
    url: str = "https://www.googleapis.com"
    timeout: float = 5.0
    api_key: str = ""


@dataclass
class CommandConfig:
    enabled: bool = True
    # Minimum displacement in metres before a registry location is updated
    min_move_distance: float = 100.0


@dataclass
class BridgeConfig:
    ttn: TtnConfig = field(default_factory=TtnConfig)
    # Seconds between attribute directory refreshes
    refresh_interval: float = 3600.0
    # Upper bound for one registry query during a refresh
    refresh_timeout: float = 60.0
    json_decoder: List[JsonDecoderItem] = field(default_factory=list)
    senscom: UploaderConfig = field(default_factory=lambda: UploaderConfig("https://api.sensor.community"))
    opensense: UploaderConfig = field(default_factory=lambda: UploaderConfig("https://api.opensensemap.org"))
    mydevices: UploaderConfig = field(default_factory=lambda: UploaderConfig("https://api.mydevices.com"))
    geolocation: GeoLocationConfig = field(default_factory=GeoLocationConfig)
    command: CommandConfig = field(default_factory=CommandConfig)
