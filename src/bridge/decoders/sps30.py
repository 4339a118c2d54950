"""
Decoder for the SPS30 particulate matter frame.

The frame is recognized by its LoRaWAN port only, independent of the
encoding configured for the application. Layout: ten big endian uint16 words
    PM1.0, PM2.5, PM4.0, PM10          0.1 ug/m3
    N0.5, N1.0, N2.5, N4.0, N10        0.1 #/cm3
    typical particle size              0.001 um
Trailing bytes are ignored.
"""
import struct
from dataclasses import dataclass

from bridge.errors import PayloadParseError
from bridge.models.sensor_data import SensorData
from bridge.models.sensor_item import SensorItem

LORAWAN_PORT = 30
FRAME_LENGTH = 20
_FRAME = struct.Struct(">10H")


@dataclass(frozen=True)
class Sps30Message:
    pm1_0: float
    pm2_5: float
    pm4_0: float
    pm10: float
    n0_5: float
    n1_0: float
    n2_5: float
    n4_0: float
    n10: float
    tps: float

    @classmethod
    def parse(cls, raw: bytes) -> "Sps30Message":
        if len(raw) < FRAME_LENGTH:
            raise PayloadParseError(f"SPS30 frame needs {FRAME_LENGTH} bytes, got {len(raw)}")
        words = _FRAME.unpack_from(raw)
        mass = [w / 10.0 for w in words[0:4]]
        counts = [w / 10.0 for w in words[4:9]]
        return cls(*mass, *counts, tps=words[9] / 1000.0)


def decode(raw: bytes) -> SensorData:
    message = Sps30Message.parse(raw)
    sensor_data = SensorData()
    sensor_data.add_value(SensorItem.PM1_0, message.pm1_0)
    sensor_data.add_value(SensorItem.PM2_5, message.pm2_5)
    sensor_data.add_value(SensorItem.PM4_0, message.pm4_0)
    sensor_data.add_value(SensorItem.PM10, message.pm10)
    sensor_data.add_value(SensorItem.PM0_5_N, message.n0_5)
    sensor_data.add_value(SensorItem.PM1_0_N, message.n1_0)
    sensor_data.add_value(SensorItem.PM2_5_N, message.n2_5)
    sensor_data.add_value(SensorItem.PM4_0_N, message.n4_0)
    sensor_data.add_value(SensorItem.PM10_N, message.n10)
    sensor_data.add_value(SensorItem.PM_TPS, message.tps)
    return sensor_data
