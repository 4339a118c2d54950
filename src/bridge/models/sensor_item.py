"""Measurement kind enumeration for type-safe sensor data references."""
from enum import Enum


class SensorItem(Enum):
    """Enumeration of all measurement kinds the bridge understands."""
    PM1_0 = ("pm1.0", "ug/m3", "Particulate matter 1.0 um")
    PM2_5 = ("pm2.5", "ug/m3", "Particulate matter 2.5 um")
    PM4_0 = ("pm4.0", "ug/m3", "Particulate matter 4.0 um")
    PM10 = ("pm10", "ug/m3", "Particulate matter 10 um")

    PM0_5_N = ("n0.5", "#/cm3", "Particle count 0.5 um")
    PM1_0_N = ("n1.0", "#/cm3", "Particle count 1.0 um")
    PM2_5_N = ("n2.5", "#/cm3", "Particle count 2.5 um")
    PM4_0_N = ("n4.0", "#/cm3", "Particle count 4.0 um")
    PM10_N = ("n10", "#/cm3", "Particle count 10 um")
    PM_TPS = ("tps", "um", "Typical particle size")

    TEMP = ("temp", "degC", "Temperature")
    HUMI = ("humi", "%", "Relative humidity")
    PRESSURE = ("pressure", "Pa", "Barometric pressure")

    POS_LAT = ("lat", "degree", "Latitude")
    POS_LON = ("lon", "degree", "Longitude")
    POS_ALT = ("alt", "m", "Altitude")

    LORA_RSSI = ("rssi", "dBm", "LoRa received signal strength")
    LORA_SNR = ("snr", "dB", "LoRa signal-to-noise ratio")
    LORA_SF = ("sf", "", "LoRa spreading factor")

    def __init__(self, key: str, unit: str, description: str):
        self.key = key
        self.unit = unit
        self.description = description
