import logging
from typing import Callable, Optional
from urllib.parse import urlparse

import paho.mqtt.client as mqtt
from pydantic import ValidationError

from bridge.errors import PayloadParseError
from bridge.models.config_data import TtnAppConfig, TtnConfig
from bridge.models.uplink import UplinkMessage
from bridge.services.ttn_uplink import TtnUplinkMessage

logger = logging.getLogger(__name__)

UplinkCallback = Callable[[UplinkMessage], None]

RECONNECT_MIN_DELAY = 1
RECONNECT_MAX_DELAY = 120


class MqttListener:
    """
    Listens for uplinks of one TTN application.

    Uplinks are delivered to the callback on the paho network thread, one at
    a time in the order they arrive. Lost connections are re-established by
    paho with an exponentially growing delay.
    """

    def __init__(self, ttn_config: TtnConfig, app_config: TtnAppConfig, callback: UplinkCallback,
                 client: Optional[mqtt.Client] = None):
        self.app_id = app_config.name
        self._callback = callback
        self.username = f"{app_config.name}@ttn"
        self.topic = f"v3/{self.username}/devices/+/up"

        url = urlparse(ttn_config.mqtt_url)
        self._tls = url.scheme in ("ssl", "mqtts")
        self.broker_host = url.hostname or "localhost"
        self.broker_port = url.port or (8883 if self._tls else 1883)

        self._client = client or mqtt.Client(
            client_id="",
            protocol=mqtt.MQTTv311,
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        )
        self._client.username_pw_set(self.username, app_config.key)
        if self._tls:
            self._client.tls_set()
        self._client.reconnect_delay_set(RECONNECT_MIN_DELAY, RECONNECT_MAX_DELAY)
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message
        self._connected = False
        self._started = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def start(self):
        if self._started:
            return
        logger.info(f"Connecting to MQTT broker {self.broker_host}:{self.broker_port} as {self.username}")
        self._client.connect_async(self.broker_host, self.broker_port, keepalive=60)
        self._client.loop_start()
        self._started = True

    def stop(self):
        if not self._started:
            return
        logger.info(f"Stopping MQTT listener for {self.app_id}")
        try:
            self._client.disconnect()
        finally:
            self._client.loop_stop()
            self._started = False
            self._connected = False

    def _on_connect(self, client, userdata, flags, rc, properties=None):
        if rc == 0:
            self._connected = True
            logger.info(f"Connected to {self.broker_host}, subscribing to {self.topic}")
            client.subscribe(self.topic)
        else:
            self._connected = False
            logger.error(f"MQTT connection for {self.app_id} refused: {rc}")

    def _on_disconnect(self, client, userdata, flags, rc, properties=None):
        self._connected = False
        if self._started:
            logger.warning(f"MQTT connection for {self.app_id} lost ({rc}), reconnecting")

    def _on_message(self, client, userdata, msg):
        try:
            uplink = TtnUplinkMessage.parse_json(msg.payload).to_uplink()
        except (ValidationError, PayloadParseError) as e:
            logger.warning(f"Ignoring malformed uplink on {msg.topic}: {e}")
            return
        try:
            self._callback(uplink)
        except Exception as e:
            # keep the network thread alive
            logger.error(f"Error handling uplink from {msg.topic}: {e}", exc_info=True)
