import asyncio
import threading

from bridge.service_manager import ServiceManager
from conftest import RecordingSink


class StoppingListener:
    """Listener stand-in recording the thread it is stopped on."""

    def __init__(self, events):
        self.app_id = "particulatematter"
        self.events = events
        self.stop_thread = None

    def stop(self):
        self.stop_thread = threading.get_ident()
        self.events.append("listener")


class OrderedSink(RecordingSink):

    def __init__(self, events):
        super().__init__("ordered")
        self.events = events

    def stop(self, timeout: float = 5.0):
        super().stop(timeout)
        self.events.append("sink")


class TestServiceManagerShutdown:
    """Order and threading of the shutdown sequence."""

    def test_listeners_stopped_off_loop_before_sinks(self):
        events = []
        listener = StoppingListener(events)
        sink = OrderedSink(events)
        manager = ServiceManager()

        async def run():
            await manager.start_services(connect=False)
            manager.listeners = [listener]
            manager.sink_hub.register_sink(sink)
            await manager.stop_services()
            return threading.get_ident()

        loop_thread = asyncio.run(run())

        assert listener.stop_thread is not None
        assert listener.stop_thread != loop_thread
        assert events == ["listener", "sink"]
        assert manager.running is False

    def test_failing_listener_does_not_block_shutdown(self):
        sink = OrderedSink([])
        manager = ServiceManager()

        class BrokenListener:
            app_id = "particulatematter"

            def stop(self):
                raise RuntimeError("already disconnected")

        async def run():
            await manager.start_services(connect=False)
            manager.listeners = [BrokenListener()]
            manager.sink_hub.register_sink(sink)
            await manager.stop_services()

        asyncio.run(run())
        assert sink.stopped
