import logging
from abc import abstractmethod
from typing import Any, Dict, Generic, Optional, TypeVar

import httpx

from bridge.models.config_data import UploaderConfig
from bridge.models.device import AppDeviceId, AttributeMap
from bridge.models.sensor_data import SensorData
from bridge.services.background_worker import BackgroundWorker
from bridge.sinks import AttributeSnapshot, UploadSink

logger = logging.getLogger(__name__)

Route = TypeVar("Route")


class HttpUploader(UploadSink, Generic[Route]):
    """
    Upload sink posting records to a REST API from its own worker thread.

    Each device is routed by a value derived from its registry attributes.
    The routing table is only touched on the worker thread: new snapshots are
    queued like uploads, so a record is always routed with the table that was
    current when its upload job runs.
    """

    def __init__(self, name: str, config: UploaderConfig, client: Optional[httpx.Client] = None):
        self._name = name
        self.config = config
        self._client = client or httpx.Client(base_url=config.url, timeout=config.timeout)
        # the client is closed by the worker once its last upload has returned
        self._worker = BackgroundWorker(name, on_exit=self._client.close)
        self._routes: Dict[AppDeviceId, Route] = {}

    @property
    def name(self) -> str:
        return self._name

    @property
    def routes(self) -> Dict[AppDeviceId, Route]:
        return dict(self._routes)

    @property
    def worker(self) -> BackgroundWorker:
        return self._worker

    def start(self):
        logger.info(f"Starting {self.name} uploader for {self.config.url}")
        self._worker.start()

    def stop(self, timeout: float = 5.0):
        logger.info(f"Stopping {self.name} uploader")
        self._worker.stop(timeout)

    def accept_attribute_snapshot(self, directory: AttributeSnapshot):
        self._worker.submit(self._process_attributes, directory)

    def accept_record(self, app_device_id: AppDeviceId, sensor_data: SensorData):
        self._worker.submit(self._upload_record, app_device_id, sensor_data)

    def _process_attributes(self, directory: AttributeSnapshot):
        routes: Dict[AppDeviceId, Route] = {}
        for app_device_id, attributes in directory.items():
            route = self.route_from_attributes(attributes)
            if route is not None:
                routes[app_device_id] = route
        self._routes = routes
        for app_device_id, route in routes.items():
            logger.info(f"{self.name} mapping: {app_device_id} -> {self.describe_route(route)}")

    def _upload_record(self, app_device_id: AppDeviceId, sensor_data: SensorData):
        route = self._routes.get(app_device_id)
        if route is None:
            return
        try:
            self.upload(app_device_id, route, sensor_data)
        except httpx.HTTPStatusError as e:
            logger.warning(f"Upload to {self.name} for {app_device_id} failed: "
                           f"HTTP {e.response.status_code} {e.response.text}")
        except httpx.HTTPError as e:
            logger.warning(f"Upload to {self.name} for {app_device_id} failed: {e}")

    def post(self, url: str, **kwargs: Any) -> httpx.Response:
        response = self._client.post(url, **kwargs)
        response.raise_for_status()
        return response

    def describe_route(self, route: Route) -> str:
        return str(route)

    @abstractmethod
    def route_from_attributes(self, attributes: AttributeMap) -> Optional[Route]:
        """Routing value of a device, or None when it is not configured for this platform."""

    @abstractmethod
    def upload(self, app_device_id: AppDeviceId, route: Route, sensor_data: SensorData) -> None:
        """Perform the upload, raising httpx.HTTPError on failure."""
