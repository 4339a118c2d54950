"""Device identification and attribute models."""
from dataclasses import dataclass
from typing import Iterator, Mapping, Optional, Protocol

# Field mask paths of the end device registry
FIELD_IDS = "ids"
FIELD_ATTRIBUTES = "attributes"
FIELD_LOCATIONS = "locations"


@dataclass(frozen=True)
class AppDeviceId:
    """
    Unique key of a device across applications.
    Two ids with the same application and device name refer to the same device.
    """
    app_id: str
    dev_id: str

    def __str__(self) -> str:
        return f"{self.app_id}/{self.dev_id}"


class AttributeMap(Mapping[str, str]):
    """Read-only, case-sensitive map of device attributes from the registry."""

    __slots__ = ('_attributes',)

    def __init__(self, attributes: Optional[Mapping[str, str]] = None):
        self._attributes = {str(k): str(v) for k, v in (attributes or {}).items()}

    def __getitem__(self, key: str) -> str:
        return self._attributes[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._attributes)

    def __len__(self) -> int:
        return len(self._attributes)

    def __repr__(self) -> str:
        return f"AttributeMap({sorted(self._attributes)})"


class RegistryDevice(Protocol):
    """An end device as listed by a registry: its name and raw attributes."""

    @property
    def device_id(self) -> str:
        ...

    @property
    def attributes(self) -> Mapping[str, str]:
        ...
