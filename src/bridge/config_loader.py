import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from bridge.models.config_data import (
    BridgeConfig, CommandConfig, GeoLocationConfig, JsonDecoderItem, TtnAppConfig, TtnConfig, UploaderConfig
)
from bridge.models.payload_encoding import PayloadEncoding
from bridge.models.sensor_item import SensorItem

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Loads the bridge configuration from a JSON file."""

    def __init__(self, config_path: Optional[Path] = None):
        self._config_path = Path(config_path) if config_path else self.get_default_config_path()
        self._config = BridgeConfig()

    @staticmethod
    def get_default_config_path() -> Path:
        """Get the path to the bundled bridge_config.json file."""
        return Path(__file__).parent.parent.parent / "config" / "bridge_config.json"

    @property
    def config_path(self) -> Path:
        return self._config_path

    def load_config(self) -> BridgeConfig:
        """
        Load configuration from the JSON file.

        A missing file yields the defaults. Malformed JSON, unknown encodings
        and unknown sensor items raise, so that a broken configuration stops
        startup instead of being discovered per message.
        """
        self._config = BridgeConfig()

        if not self._config_path.exists():
            logger.error(f"Configuration file not found: {self._config_path}, using defaults")
            return self._config

        with open(self._config_path, 'r') as f:
            json_data = json.load(f)
        self._config = self.parse_config(json_data)
        logger.info(f"Configuration loaded from {self._config_path}")
        return self._config

    @staticmethod
    def parse_config(json_data: Dict[str, Any]) -> BridgeConfig:
        """Parse a JSON document into a BridgeConfig, defaulting missing sections."""
        defaults = BridgeConfig()

        ttn_data = json_data.get("ttn", {})
        ttn = TtnConfig(
            mqtt_url=ttn_data.get("mqtt_url", defaults.ttn.mqtt_url),
            identity_server_url=ttn_data.get("identity_server_url", defaults.ttn.identity_server_url),
            identity_server_timeout=float(ttn_data.get("identity_server_timeout",
                                                       defaults.ttn.identity_server_timeout)),
        )
        for app_data in ttn_data.get("apps", []):
            ttn.apps.append(TtnAppConfig(
                name=app_data["name"],
                key=app_data.get("key", ""),
                encoding=PayloadEncoding.from_id(app_data.get("encoding", PayloadEncoding.TTN_ULM.value)),
            ))

        json_decoder = []
        for item_data in json_data.get("json_decoder", []):
            item_name = item_data["item"]
            try:
                item = SensorItem[item_name]
            except KeyError:
                raise ValueError(f"Unknown sensor item '{item_name}' in json_decoder configuration")
            json_decoder.append(JsonDecoderItem(path=item_data["path"], item=item))

        geo_data = json_data.get("geolocation", {})
        command_data = json_data.get("command", {})

        return BridgeConfig(
            ttn=ttn,
            refresh_interval=float(json_data.get("refresh_interval", defaults.refresh_interval)),
            refresh_timeout=float(json_data.get("refresh_timeout", defaults.refresh_timeout)),
            json_decoder=json_decoder,
            senscom=ConfigLoader._parse_uploader(json_data.get("senscom"), defaults.senscom),
            opensense=ConfigLoader._parse_uploader(json_data.get("opensense"), defaults.opensense),
            mydevices=ConfigLoader._parse_uploader(json_data.get("mydevices"), defaults.mydevices),
            geolocation=GeoLocationConfig(
                url=geo_data.get("url", defaults.geolocation.url),
                timeout=float(geo_data.get("timeout", defaults.geolocation.timeout)),
                api_key=geo_data.get("api_key", defaults.geolocation.api_key),
            ),
            command=CommandConfig(
                enabled=command_data.get("enabled", defaults.command.enabled),
                min_move_distance=float(command_data.get("min_move_distance",
                                                         defaults.command.min_move_distance)),
            ),
        )

    @staticmethod
    def _parse_uploader(data: Optional[Dict[str, Any]], default: UploaderConfig) -> UploaderConfig:
        if data is None:
            return default
        return UploaderConfig(
            url=data.get("url", default.url),
            timeout=float(data.get("timeout", default.timeout)),
            enabled=data.get("enabled", default.enabled),
        )

    def get_config(self) -> BridgeConfig:
        return self._config

    def reload_config(self) -> BridgeConfig:
        """Reload configuration from file."""
        config = self.load_config()
        logger.info("Configuration reloaded")
        return config
