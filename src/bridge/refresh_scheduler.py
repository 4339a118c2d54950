import asyncio
import logging
import time
from typing import Dict, List, Mapping, Optional, Protocol, Sequence

from bridge.attribute_directory import AttributeDirectory
from bridge.errors import RegistryQueryError
from bridge.models.device import FIELD_ATTRIBUTES, FIELD_IDS, AppDeviceId, AttributeMap, RegistryDevice
from bridge.sink_hub import SinkHub

logger = logging.getLogger(__name__)


class DeviceRegistry(Protocol):
    def list_end_devices(self, *fields: str) -> Sequence[RegistryDevice]:
        ...


class AttributeRefreshScheduler:
    """
    Periodically rebuilds the attribute directory from the device registries
    and hands every new table to the sinks.

    Registries are queried concurrently, each in a worker thread bounded by
    query_timeout. An application whose query fails keeps its previous
    entries until a later refresh succeeds.
    """

    def __init__(self, registries: Mapping[str, DeviceRegistry], directory: AttributeDirectory,
                 sink_hub: SinkHub, interval: float = 3600.0, query_timeout: float = 60.0):
        self._registries = dict(registries)
        self._directory = directory
        self._sink_hub = sink_hub
        self.interval = interval
        self.query_timeout = query_timeout
        self._running = False
        self._wakeup = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.last_refresh_at: Optional[float] = None
        self.last_failed_apps: List[str] = []

    @property
    def is_running(self) -> bool:
        return self._running

    async def _query(self, app_id: str, registry: DeviceRegistry) -> Dict[AppDeviceId, AttributeMap]:
        logger.info(f"Fetching attributes for application '{app_id}'")
        try:
            devices = await asyncio.wait_for(
                asyncio.to_thread(registry.list_end_devices, FIELD_IDS, FIELD_ATTRIBUTES),
                timeout=self.query_timeout,
            )
        except asyncio.TimeoutError as e:
            raise RegistryQueryError(app_id, f"no response within {self.query_timeout:.0f}s") from e
        return {AppDeviceId(app_id, device.device_id): AttributeMap(device.attributes) for device in devices}

    async def refresh_once(self) -> Mapping[AppDeviceId, AttributeMap]:
        """Run one refresh cycle and return the published table."""
        app_ids = list(self._registries)
        results = await asyncio.gather(
            *(self._query(app_id, self._registries[app_id]) for app_id in app_ids),
            return_exceptions=True,
        )

        refreshed: Dict[str, Dict[AppDeviceId, AttributeMap]] = {}
        stale: List[str] = []
        for app_id, result in zip(app_ids, results):
            if isinstance(result, RegistryQueryError):
                logger.warning(f"Keeping previous attributes of '{app_id}': {result}")
                stale.append(app_id)
            elif isinstance(result, BaseException):
                logger.error(f"Unexpected error fetching attributes of '{app_id}': {result}", exc_info=result)
                stale.append(app_id)
            else:
                refreshed[app_id] = result

        snapshot = self._directory.merge_refresh(refreshed, stale)
        self.last_refresh_at = time.time()
        self.last_failed_apps = stale
        self._sink_hub.send_attributes(snapshot)
        return snapshot

    def request_refresh(self):
        """Run a refresh cycle now instead of waiting for the next interval."""
        if self._loop is not None and self._loop.is_running():
            self._loop.call_soon_threadsafe(self._wakeup.set)
        else:
            self._wakeup.set()

    async def run(self):
        """Refresh immediately, then every interval seconds until stopped."""
        if self._running:
            return
        self._running = True
        self._loop = asyncio.get_running_loop()
        logger.info(f"Starting attribute refresh every {self.interval:.0f}s")
        try:
            while self._running:
                self._wakeup.clear()
                try:
                    await self.refresh_once()
                except Exception as e:
                    logger.error(f"Attribute refresh failed: {e}", exc_info=True)
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=self.interval)
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            logger.info("Attribute refresh stopped")
            raise
        finally:
            self._running = False

    def stop(self):
        """Let the loop exit after the current cycle."""
        self._running = False
        self.request_refresh()
