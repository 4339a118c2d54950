"""
Sensor data model.

A decoded uplink is represented as a sparse set of measurement values keyed
by SensorItem. A kind that is absent is unknown, never zero.
"""
import math
from types import MappingProxyType
from typing import Dict, Iterator, Mapping

from bridge.models.sensor_item import SensorItem


class SensorData:
    """
    Sparse collection of measurement values, one per SensorItem.
    Only finite values are accepted.
    """

    __slots__ = ('_values', '_read_only')

    def __init__(self):
        self._values: Dict[SensorItem, float] = {}
        self._read_only = False

    def add_value(self, item: SensorItem, value: float) -> bool:
        """
        Add a value for a measurement kind.

        Returns:
            True if the value was stored, False if it was not finite.
        """
        if self._read_only:
            raise TypeError("SensorData is read-only")
        value = float(value)
        if not math.isfinite(value):
            return False
        self._values[item] = value
        return True

    def has_value(self, item: SensorItem) -> bool:
        return item in self._values

    def get_value(self, item: SensorItem) -> float:
        """Get the value of a measurement kind, raises KeyError when absent."""
        return self._values[item]

    def items(self) -> Mapping[SensorItem, float]:
        return MappingProxyType(self._values)

    def as_read_only(self) -> "SensorData":
        """Freeze this record so it can be shared between sinks."""
        self._read_only = True
        return self

    @property
    def is_read_only(self) -> bool:
        return self._read_only

    def __contains__(self, item: object) -> bool:
        return item in self._values

    def __iter__(self) -> Iterator[SensorItem]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SensorData):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        values = ", ".join(f"{item.name}={value}" for item, value in self._values.items())
        return f"SensorData({values})"
