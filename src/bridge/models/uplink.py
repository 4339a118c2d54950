"""Uplink envelope as delivered by the transport."""
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from bridge.models.device import AppDeviceId


@dataclass(frozen=True)
class UplinkMessage:
    """
    One uplink received from the network.

    decoded_fields holds the network server's payload formatter output,
    if any, and is used by textual encodings.
    """
    app_id: str
    dev_id: str
    port: int
    raw_payload: bytes
    decoded_fields: Optional[Mapping[str, Any]] = field(default=None, hash=False, compare=False)
    rssi: float = float("nan")
    snr: float = float("nan")
    sf: int = 0
    dev_eui: str = ""

    @property
    def app_device_id(self) -> AppDeviceId:
        return AppDeviceId(self.app_id, self.dev_id)

    def __str__(self) -> str:
        return (f"{self.app_id}/{self.dev_id} port={self.port} payload={self.raw_payload.hex()} "
                f"rssi={self.rssi} snr={self.snr} sf={self.sf}")
