import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from bridge.errors import SinkDeliveryError
from bridge.models.device import AppDeviceId
from bridge.models.sensor_data import SensorData
from bridge.models.uplink import UplinkMessage
from bridge.sinks import AttributeListener, AttributeSnapshot, CommandSink, UploadSink

logger = logging.getLogger(__name__)

# A sink hand-off taking longer than this is reported
SLOW_CALL_WARNING = 0.5


class SinkHub:
    """
    Fans decoded records and attribute snapshots out to every registered sink.
    Each sink is called in turn; a failing sink is logged and skipped.
    """

    def __init__(self):
        self._sinks: List[UploadSink] = []
        self._command_sinks: Dict[str, CommandSink] = {}
        self._lock = threading.Lock()

    def register_sink(self, sink: UploadSink):
        with self._lock:
            if sink not in self._sinks:
                self._sinks.append(sink)
        logger.debug(f"Registered sink {sink.name}")

    def unregister_sink(self, sink: UploadSink):
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)
                logger.debug(f"Unregistered sink {sink.name}")

    def register_command_sink(self, app_id: str, sink: CommandSink):
        with self._lock:
            self._command_sinks[app_id] = sink
        logger.debug(f"Registered command sink {sink.name} for {app_id}")

    @property
    def sinks(self) -> List[UploadSink]:
        with self._lock:
            return self._sinks[:]

    @property
    def command_sinks(self) -> Dict[str, CommandSink]:
        with self._lock:
            return dict(self._command_sinks)

    def get_command_sink(self, app_id: str) -> Optional[CommandSink]:
        with self._lock:
            return self._command_sinks.get(app_id)

    def _listeners(self) -> List[AttributeListener]:
        # a command sink may serve several applications
        listeners: List[AttributeListener] = []
        for listener in [*self.sinks, *self.command_sinks.values()]:
            if listener not in listeners:
                listeners.append(listener)
        return listeners

    @staticmethod
    def _call(listener: AttributeListener, what: str, call: Callable[[], None]) -> bool:
        start = time.monotonic()
        try:
            call()
            return True
        except SinkDeliveryError as e:
            logger.warning(f"Dropped {what} for {listener.name}: {e}")
        except Exception as e:
            logger.error(f"Error handing {what} to {listener.name}: {e}", exc_info=True)
        finally:
            elapsed = time.monotonic() - start
            if elapsed > SLOW_CALL_WARNING:
                logger.warning(f"Sink {listener.name} took {elapsed:.2f}s to accept {what}")
        return False

    def send_record(self, app_device_id: AppDeviceId, sensor_data: SensorData) -> int:
        """Hand a decoded record to every sink. Returns the number of sinks that accepted it."""
        accepted = 0
        for sink in self.sinks:
            if self._call(sink, "record", lambda s=sink: s.accept_record(app_device_id, sensor_data)):
                accepted += 1
        return accepted

    def send_attributes(self, snapshot: AttributeSnapshot) -> int:
        """Hand an attribute snapshot to every sink and command sink."""
        accepted = 0
        for listener in self._listeners():
            if self._call(listener, "attributes", lambda s=listener: s.accept_attribute_snapshot(snapshot)):
                accepted += 1
        return accepted

    def send_command(self, uplink: UplinkMessage) -> bool:
        """Hand a command response to the command sink of its application, if any."""
        sink = self.get_command_sink(uplink.app_id)
        if sink is None:
            logger.debug(f"No command handler for application {uplink.app_id}, dropping {uplink}")
            return False
        return self._call(sink, "command", lambda: sink.accept_command(uplink))

    def start_all(self):
        for listener in self._listeners():
            self._call(listener, "start", listener.start)

    def stop_all(self, timeout: float = 5.0):
        """
        Stop every sink. All sinks share one deadline, so a sink that is slow to
        stop only shortens the wait for the ones after it.
        """
        deadline = time.monotonic() + timeout
        for listener in self._listeners():
            remaining = max(0.0, deadline - time.monotonic())
            self._call(listener, "stop", lambda s=listener, t=remaining: s.stop(t))
