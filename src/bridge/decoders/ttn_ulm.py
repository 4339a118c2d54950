"""
Decoder for the TTN-Ulm particulate matter sensor payload.

Frame layout (8 bytes, big endian):
    0-1  PM10         uint16, 0.1 ug/m3
    2-3  PM2.5        uint16, 0.1 ug/m3
    4-5  humidity     uint16, 0.1 %
    6-7  temperature  int16,  0.1 degC
"""
import struct
from dataclasses import dataclass

from bridge.errors import PayloadParseError
from bridge.models.sensor_data import SensorData
from bridge.models.sensor_item import SensorItem

FRAME_LENGTH = 8
_FRAME = struct.Struct(">HHHh")


@dataclass(frozen=True)
class TtnUlmMessage:
    pm10: float
    pm2_5: float
    rh_perc: float
    temp_c: float

    @classmethod
    def parse(cls, raw: bytes) -> "TtnUlmMessage":
        if len(raw) != FRAME_LENGTH:
            raise PayloadParseError(f"TTN-Ulm frame must be {FRAME_LENGTH} bytes, got {len(raw)}")
        pm10, pm2_5, rh, temp = _FRAME.unpack(raw)
        return cls(pm10=pm10 / 10.0, pm2_5=pm2_5 / 10.0, rh_perc=rh / 10.0, temp_c=temp / 10.0)


def decode(raw: bytes) -> SensorData:
    message = TtnUlmMessage.parse(raw)
    sensor_data = SensorData()
    sensor_data.add_value(SensorItem.PM10, message.pm10)
    sensor_data.add_value(SensorItem.PM2_5, message.pm2_5)
    sensor_data.add_value(SensorItem.HUMI, message.rh_perc)
    sensor_data.add_value(SensorItem.TEMP, message.temp_c)
    return sensor_data
