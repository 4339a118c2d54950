"""
TTN v3 uplink message, as published on v3/<app>@ttn/devices/<dev>/up.

Only the fields used by the bridge are modelled, everything else is ignored.
"""
import base64
import binascii
import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from bridge.errors import PayloadParseError
from bridge.models.uplink import UplinkMessage


class ApplicationIds(BaseModel):
    application_id: str = ""


class EndDeviceIds(BaseModel):
    device_id: str = ""
    dev_eui: str = ""
    application_ids: ApplicationIds = Field(default_factory=ApplicationIds)


class RxMetadata(BaseModel):
    gateway_ids: Dict[str, Any] = Field(default_factory=dict)
    rssi: float = float("nan")
    snr: float = float("nan")


class LoraDataRate(BaseModel):
    bandwidth: int = 0
    spreading_factor: int = 0


class DataRate(BaseModel):
    lora: LoraDataRate = Field(default_factory=LoraDataRate)


class TxSettings(BaseModel):
    data_rate: DataRate = Field(default_factory=DataRate)


class Uplink(BaseModel):
    f_port: int = 0
    f_cnt: int = 0
    frm_payload: str = ""
    decoded_payload: Optional[Dict[str, Any]] = None
    rx_metadata: List[RxMetadata] = Field(default_factory=list)
    settings: TxSettings = Field(default_factory=TxSettings)


class TtnUplinkMessage(BaseModel):
    end_device_ids: EndDeviceIds = Field(default_factory=EndDeviceIds)
    uplink_message: Uplink = Field(default_factory=Uplink)

    @classmethod
    def parse_json(cls, data: bytes) -> "TtnUplinkMessage":
        return cls.model_validate_json(data)

    def to_uplink(self) -> UplinkMessage:
        """Convert to the transport-independent uplink, using the strongest gateway for RSSI and SNR."""
        uplink = self.uplink_message
        try:
            raw_payload = base64.b64decode(uplink.frm_payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise PayloadParseError(f"Invalid frm_payload: {e}") from e

        rssi = snr = float("nan")
        gateways = [meta for meta in uplink.rx_metadata if math.isfinite(meta.rssi)]
        if gateways:
            best = max(gateways, key=lambda meta: meta.rssi)
            rssi, snr = best.rssi, best.snr

        ids = self.end_device_ids
        return UplinkMessage(
            app_id=ids.application_ids.application_id,
            dev_id=ids.device_id,
            dev_eui=ids.dev_eui,
            port=uplink.f_port,
            raw_payload=raw_payload,
            decoded_fields=uplink.decoded_payload,
            rssi=rssi,
            snr=snr,
            sf=uplink.settings.data_rate.lora.spreading_factor,
        )
