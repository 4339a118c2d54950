# External libs
import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional

# Internal libs
from bridge.attribute_directory import AttributeDirectory
from bridge.commands.command_handler import CommandHandler
from bridge.commands.geolocation import GeoLocationService
from bridge.config_loader import ConfigLoader
from bridge.decoders.json_decoder import JsonDecoder
from bridge.dispatcher import Dispatcher
from bridge.models.config_data import BridgeConfig
from bridge.refresh_scheduler import AttributeRefreshScheduler
from bridge.services.device_registry import EndDeviceRegistry
from bridge.services.mqtt_listener import MqttListener
from bridge.sink_hub import SinkHub
from bridge.uploaders.mydevices import MyDevicesUploader
from bridge.uploaders.opensense import OpenSenseUploader
from bridge.uploaders.senscom import SensComUploader

logger = logging.getLogger(__name__)

# Overall time allowed for all sinks to finish their queued work on shutdown
SINK_STOP_TIMEOUT = 10.0


class ServiceManager:
    """Builds the bridge from its configuration and runs its background services."""

    def __init__(self):
        self.config: Optional[BridgeConfig] = None
        self.sink_hub: Optional[SinkHub] = None
        self.directory: Optional[AttributeDirectory] = None
        self.dispatcher: Optional[Dispatcher] = None
        self.scheduler: Optional[AttributeRefreshScheduler] = None
        self.registries: Dict[str, EndDeviceRegistry] = {}
        self.listeners: List[MqttListener] = []
        self.geolocation: Optional[GeoLocationService] = None
        self.running = False
        self._refresh_task: Optional[asyncio.Task] = None

    def build(self, config: BridgeConfig):
        """Create all components. Raises on configuration errors."""
        self.config = config
        self.sink_hub = SinkHub()
        self.directory = AttributeDirectory()

        # Upload sinks
        if config.senscom.enabled:
            self.sink_hub.register_sink(SensComUploader(config.senscom))
        if config.opensense.enabled:
            self.sink_hub.register_sink(OpenSenseUploader(config.opensense))
        if config.mydevices.enabled:
            self.sink_hub.register_sink(MyDevicesUploader(config.mydevices))

        # Registry and command handler per application
        self.geolocation = GeoLocationService(config.geolocation)
        self.registries = {}
        for app_config in config.ttn.apps:
            registry = EndDeviceRegistry(config.ttn.identity_server_url, app_config,
                                         timeout=config.ttn.identity_server_timeout)
            self.registries[app_config.name] = registry
            if config.command.enabled:
                self.sink_hub.register_command_sink(
                    app_config.name, CommandHandler(app_config.name, self.geolocation, registry, config.command))

        self.dispatcher = Dispatcher({app.name: app for app in config.ttn.apps}, self.sink_hub,
                                     JsonDecoder(config.json_decoder))

        self.listeners = []
        for app_config in config.ttn.apps:
            logger.info(f"Adding MQTT listener for application '{app_config.name}' "
                        f"with encoding '{app_config.encoding.value}'")
            self.listeners.append(MqttListener(config.ttn, app_config, self.dispatcher.message_received))

        self.scheduler = AttributeRefreshScheduler(self.registries, self.directory, self.sink_hub,
                                                   interval=config.refresh_interval,
                                                   query_timeout=config.refresh_timeout)

    async def start_services(self, config_path: Optional[Path] = None, connect: bool = True):
        """Start the bridge.

        Args:
            config_path: configuration file, the bundled one when None.
            connect: When False, build and start the sinks but do not connect
                to the network or the registries.
        """
        if self.running:
            return
        logger.info("Starting background services...")
        self.build(ConfigLoader(config_path).load_config())

        self.sink_hub.start_all()
        if connect:
            for listener in self.listeners:
                listener.start()
            self._refresh_task = asyncio.get_running_loop().create_task(self.scheduler.run())
        self.running = True
        logger.info("Background services started.")

    async def stop_services(self):
        """Stop background services: first the inputs, then the sinks."""
        if not self.running:
            return
        self.running = False

        # paho joins its network thread in loop_stop
        for listener in self.listeners:
            try:
                await asyncio.to_thread(listener.stop)
            except Exception as e:
                logger.error(f"Error stopping MQTT listener for {listener.app_id}: {e}")

        if self.scheduler is not None:
            self.scheduler.stop()
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
            self._refresh_task = None

        # worker threads are joined off the event loop
        await asyncio.to_thread(self.sink_hub.stop_all, SINK_STOP_TIMEOUT)

        for registry in self.registries.values():
            registry.close()
        if self.geolocation is not None:
            self.geolocation.close()
        logger.info("Background services stopped.")


service_manager = ServiceManager()
