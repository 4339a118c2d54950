"""
Message body of the sensor.community (luftdaten) push API, also accepted by
openSenseMap with the luftdaten flag.

Measurements are grouped per pin: pin 1 carries particulate matter, pin 7
temperature and humidity, pin 11 temperature, humidity and pressure.
"""
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from bridge.models.sensor_data import SensorData
from bridge.models.sensor_item import SensorItem

SOFTWARE_VERSION = "sensor-data-bridge"

PIN_PARTICULATE = "1"
PIN_TEMP_HUMI = "7"
PIN_TEMP_HUMI_PRESSURE = "11"

PARTICULATE_VALUES: List[Tuple[SensorItem, str]] = [
    (SensorItem.PM1_0, "P0"),
    (SensorItem.PM10, "P1"),
    (SensorItem.PM2_5, "P2"),
    (SensorItem.PM4_0, "P4"),
    (SensorItem.PM0_5_N, "N05"),
    (SensorItem.PM1_0_N, "N1"),
    (SensorItem.PM2_5_N, "N25"),
    (SensorItem.PM4_0_N, "N4"),
    (SensorItem.PM10_N, "N10"),
    (SensorItem.PM_TPS, "TS"),
]

METEO_VALUES: List[Tuple[SensorItem, str]] = [
    (SensorItem.TEMP, "temperature"),
    (SensorItem.HUMI, "humidity"),
    (SensorItem.PRESSURE, "pressure"),
]


class SensComValue(BaseModel):
    value_type: str
    value: str


class SensComMessage(BaseModel):
    software_version: str = SOFTWARE_VERSION
    sensordatavalues: List[SensComValue] = Field(default_factory=list)

    def add_item(self, value_type: str, value: float):
        self.sensordatavalues.append(SensComValue(value_type=value_type, value=str(round(value, 3))))

    @classmethod
    def from_items(cls, sensor_data: SensorData, mapping: List[Tuple[SensorItem, str]]) -> "SensComMessage":
        message = cls()
        for item, value_type in mapping:
            if sensor_data.has_value(item):
                message.add_item(value_type, sensor_data.get_value(item))
        return message

    def is_empty(self) -> bool:
        return not self.sensordatavalues


def particulate_message(sensor_data: SensorData) -> Optional[SensComMessage]:
    message = SensComMessage.from_items(sensor_data, PARTICULATE_VALUES)
    return None if message.is_empty() else message


def meteo_message(sensor_data: SensorData) -> Optional[Tuple[str, SensComMessage]]:
    """Temperature/humidity message and its pin, or None without meteo values."""
    if not (sensor_data.has_value(SensorItem.TEMP) or sensor_data.has_value(SensorItem.HUMI)):
        return None
    message = SensComMessage.from_items(sensor_data, METEO_VALUES)
    pin = PIN_TEMP_HUMI_PRESSURE if sensor_data.has_value(SensorItem.PRESSURE) else PIN_TEMP_HUMI
    return pin, message


def combined_message(sensor_data: SensorData) -> Optional[SensComMessage]:
    """All supported values in one message."""
    message = SensComMessage.from_items(sensor_data, PARTICULATE_VALUES + METEO_VALUES)
    return None if message.is_empty() else message
