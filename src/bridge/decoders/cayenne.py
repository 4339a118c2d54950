"""
Decoder for Cayenne LPP encoded uplinks.

Frames are split into items by pycayennelpp. Particulate matter values are
sent as analog inputs on well-known channels, the other measurements use
their dedicated Cayenne types on any channel. Items of other types are
parsed and ignored.
"""
from typing import List, Optional, Tuple

from cayennelpp import LppData, LppFrame

from bridge.errors import PayloadParseError
from bridge.models.sensor_data import SensorData
from bridge.models.sensor_item import SensorItem

# Cayenne LPP type ids
LPP_ANALOG_INPUT = 2
LPP_TEMPERATURE = 103
LPP_HUMIDITY = 104
LPP_BAROMETER = 115
LPP_LOCATION = 136


def parse_items(raw: bytes) -> List[LppData]:
    """Split a Cayenne LPP frame into its items."""
    try:
        frame = LppFrame().from_bytes(raw)
    except (AttributeError, BufferError, TypeError, ValueError) as e:
        # unknown type ids surface as AttributeError from the library
        raise PayloadParseError(f"Invalid Cayenne frame {raw.hex()}: {e}") from e
    return list(frame)


class TtnCayenneMessage:
    """Measurement view on a Cayenne frame, as sent by particulate matter sensors."""

    CHANNEL_PM1_0 = 0
    CHANNEL_PM10 = 1
    CHANNEL_PM2_5 = 2
    CHANNEL_PM4_0 = 4

    def __init__(self, items: List[LppData]):
        self._items = items

    @classmethod
    def parse(cls, raw: bytes) -> "TtnCayenneMessage":
        return cls(parse_items(raw))

    def _find(self, lpp_type: int, channel: Optional[int] = None) -> Optional[LppData]:
        for item in self._items:
            if int(item.type) == lpp_type and (channel is None or item.channel == channel):
                return item
        return None

    def _analog(self, channel: int) -> Optional[LppData]:
        return self._find(LPP_ANALOG_INPUT, channel)

    def has_pm1_0(self) -> bool:
        return self._analog(self.CHANNEL_PM1_0) is not None

    def get_pm1_0(self) -> float:
        return self._analog(self.CHANNEL_PM1_0).value[0]

    def has_pm2_5(self) -> bool:
        return self._analog(self.CHANNEL_PM2_5) is not None

    def get_pm2_5(self) -> float:
        return self._analog(self.CHANNEL_PM2_5).value[0]

    def has_pm4(self) -> bool:
        return self._analog(self.CHANNEL_PM4_0) is not None

    def get_pm4(self) -> float:
        return self._analog(self.CHANNEL_PM4_0).value[0]

    def has_pm10(self) -> bool:
        return self._analog(self.CHANNEL_PM10) is not None

    def get_pm10(self) -> float:
        return self._analog(self.CHANNEL_PM10).value[0]

    def has_temp_c(self) -> bool:
        return self._find(LPP_TEMPERATURE) is not None

    def get_temp_c(self) -> float:
        return self._find(LPP_TEMPERATURE).value[0]

    def has_rh_perc(self) -> bool:
        return self._find(LPP_HUMIDITY) is not None

    def get_rh_perc(self) -> float:
        return self._find(LPP_HUMIDITY).value[0]

    def has_pressure_millibar(self) -> bool:
        return self._find(LPP_BAROMETER) is not None

    def get_pressure_millibar(self) -> float:
        return self._find(LPP_BAROMETER).value[0]

    def has_position(self) -> bool:
        return self._find(LPP_LOCATION) is not None

    def get_position(self) -> Tuple[float, float, float]:
        """Returns (latitude, longitude, altitude)."""
        lat, lon, alt = self._find(LPP_LOCATION).value
        return lat, lon, alt


def decode(raw: bytes) -> SensorData:
    cayenne = TtnCayenneMessage.parse(raw)
    sensor_data = SensorData()
    if cayenne.has_pm10():
        sensor_data.add_value(SensorItem.PM10, cayenne.get_pm10())
    if cayenne.has_pm4():
        sensor_data.add_value(SensorItem.PM4_0, cayenne.get_pm4())
    if cayenne.has_pm2_5():
        sensor_data.add_value(SensorItem.PM2_5, cayenne.get_pm2_5())
    if cayenne.has_pm1_0():
        sensor_data.add_value(SensorItem.PM1_0, cayenne.get_pm1_0())
    if cayenne.has_rh_perc():
        sensor_data.add_value(SensorItem.HUMI, cayenne.get_rh_perc())
    if cayenne.has_temp_c():
        sensor_data.add_value(SensorItem.TEMP, cayenne.get_temp_c())
    if cayenne.has_pressure_millibar():
        # canonical pressure is in Pa
        sensor_data.add_value(SensorItem.PRESSURE, 100.0 * cayenne.get_pressure_millibar())
    if cayenne.has_position():
        lat, lon, alt = cayenne.get_position()
        sensor_data.add_value(SensorItem.POS_LAT, lat)
        sensor_data.add_value(SensorItem.POS_LON, lon)
        sensor_data.add_value(SensorItem.POS_ALT, alt)
    if len(sensor_data) == 0:
        raise PayloadParseError("Cayenne frame contains no known measurement")
    return sensor_data
