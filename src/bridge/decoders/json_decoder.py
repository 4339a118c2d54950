"""
Decoder for uplinks already decoded to JSON by the network server.

Each configured item maps a path in the decoded fields to a SensorItem.
Paths use JSON pointer notation ("/pm10", "/sds011/pm2_5"); a path without a
leading slash is taken as a top-level field name.
"""
import logging
import math
from typing import Any, Iterable, List, Mapping, Optional

from bridge.errors import PayloadParseError
from bridge.models.config_data import JsonDecoderItem
from bridge.models.sensor_data import SensorData

logger = logging.getLogger(__name__)

_MISSING = object()


class JsonDecoder:

    def __init__(self, items: Iterable[JsonDecoderItem]):
        self._items: List[JsonDecoderItem] = list(items)

    @property
    def items(self) -> List[JsonDecoderItem]:
        return list(self._items)

    @staticmethod
    def _split_path(path: str) -> List[str]:
        if not path.startswith("/"):
            return [path]
        # JSON pointer escapes
        return [part.replace("~1", "/").replace("~0", "~") for part in path[1:].split("/")]

    @classmethod
    def _resolve(cls, fields: Mapping[str, Any], path: str) -> Any:
        node: Any = fields
        for part in cls._split_path(path):
            if isinstance(node, Mapping) and part in node:
                node = node[part]
            elif isinstance(node, list) and part.isdigit() and int(part) < len(node):
                node = node[int(part)]
            else:
                return _MISSING
        return node

    def parse(self, decoded_fields: Optional[Mapping[str, Any]], sensor_data: SensorData) -> SensorData:
        """Add every configured, numeric and finite field to sensor_data."""
        if decoded_fields is None:
            raise PayloadParseError("Uplink has no decoded fields")
        if not isinstance(decoded_fields, Mapping):
            raise PayloadParseError(f"Decoded fields must be an object, got {type(decoded_fields).__name__}")
        for item in self._items:
            value = self._resolve(decoded_fields, item.path)
            if value is _MISSING:
                continue
            # bool is an int subclass but never a measurement
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                logger.debug(f"Ignoring non-numeric value for {item.path}: {value!r}")
                continue
            try:
                number = float(value)
            except OverflowError:
                continue
            if math.isfinite(number):
                sensor_data.add_value(item.item, number)
        return sensor_data

    def decode(self, decoded_fields: Optional[Mapping[str, Any]]) -> SensorData:
        return self.parse(decoded_fields, SensorData())
