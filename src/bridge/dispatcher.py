import logging
import math
import threading
import time
from typing import Callable, Dict, Mapping, Optional

from bridge.decoders import cayenne, sps30, ttn_ulm
from bridge.decoders.json_decoder import JsonDecoder
from bridge.errors import PayloadParseError, UnknownEncodingError
from bridge.models.config_data import TtnAppConfig
from bridge.models.payload_encoding import PayloadEncoding
from bridge.models.sensor_data import SensorData
from bridge.models.sensor_item import SensorItem
from bridge.models.uplink import UplinkMessage
from bridge.sink_hub import SinkHub

logger = logging.getLogger(__name__)

# Responses to downlink commands arrive on this port
COMMAND_PORT = 100

Decoder = Callable[[UplinkMessage], SensorData]


class Dispatcher:
    """
    Entry point for every uplink: routes command responses to the command
    sink of their application and decodes telemetry for the upload sinks.

    Called synchronously from the transport thread of each application, so
    the uplinks of one device are handled one at a time in arrival order.
    """

    def __init__(self, app_configs: Mapping[str, TtnAppConfig], sink_hub: SinkHub,
                 json_decoder: Optional[JsonDecoder] = None):
        self._app_configs = dict(app_configs)
        self._sink_hub = sink_hub
        json_decoder = json_decoder or JsonDecoder([])
        self._decoders: Dict[PayloadEncoding, Decoder] = {
            PayloadEncoding.TTN_ULM: lambda uplink: ttn_ulm.decode(uplink.raw_payload),
            PayloadEncoding.SPS30: lambda uplink: sps30.decode(uplink.raw_payload),
            PayloadEncoding.CAYENNE: lambda uplink: cayenne.decode(uplink.raw_payload),
            PayloadEncoding.JSON: lambda uplink: json_decoder.decode(uplink.decoded_fields),
        }
        for app_config in self._app_configs.values():
            if app_config.encoding not in self._decoders:
                raise UnknownEncodingError(str(app_config.encoding))

        self._stats_lock = threading.Lock()
        self.received = 0
        self.decoded = 0
        self.failed = 0
        self.commands = 0
        self.dropped_commands = 0
        self.last_message_at: Optional[float] = None

    def _count(self, counter: str):
        with self._stats_lock:
            setattr(self, counter, getattr(self, counter) + 1)

    def get_stats(self) -> Dict[str, Optional[float]]:
        with self._stats_lock:
            return {
                "received": self.received,
                "decoded": self.decoded,
                "failed": self.failed,
                "commands": self.commands,
                "dropped_commands": self.dropped_commands,
                "last_message_at": self.last_message_at,
            }

    def message_received(self, uplink: UplinkMessage):
        logger.info(f"Received: {uplink}")
        with self._stats_lock:
            self.received += 1
            self.last_message_at = time.time()

        if uplink.port == COMMAND_PORT:
            if self._sink_hub.send_command(uplink):
                self._count("commands")
            else:
                self._count("dropped_commands")
            return

        app_config = self._app_configs.get(uplink.app_id)
        if app_config is None and uplink.port != sps30.LORAWAN_PORT:
            logger.warning(f"Uplink for unconfigured application {uplink.app_id}, dropping")
            self._count("failed")
            return

        encoding = PayloadEncoding.SPS30 if uplink.port == sps30.LORAWAN_PORT else app_config.encoding
        try:
            sensor_data = self.decode_uplink(encoding, uplink)
        except PayloadParseError as e:
            logger.warning(f"Could not parse '{encoding.value}' payload from {uplink}: {e}")
            self._count("failed")
            return

        logger.info(f"Decoded: {sensor_data}")
        self._count("decoded")
        self._sink_hub.send_record(uplink.app_device_id, sensor_data.as_read_only())

    def decode_uplink(self, encoding: PayloadEncoding, uplink: UplinkMessage) -> SensorData:
        """
        Decode the payload of an uplink and add the radio metadata.

        The SPS30 frame is selected by port, regardless of encoding.
        """
        if uplink.port == sps30.LORAWAN_PORT:
            encoding = PayloadEncoding.SPS30
        decoder = self._decoders.get(encoding)
        if decoder is None:
            raise UnknownEncodingError(str(encoding))
        sensor_data = decoder(uplink)

        if math.isfinite(uplink.rssi):
            sensor_data.add_value(SensorItem.LORA_RSSI, uplink.rssi)
        if math.isfinite(uplink.snr):
            sensor_data.add_value(SensorItem.LORA_SNR, uplink.snr)
        if uplink.sf > 0:
            sensor_data.add_value(SensorItem.LORA_SF, float(uplink.sf))
        return sensor_data
