import logging
import queue
import threading
import time
from typing import Any, Callable, Optional, Tuple

from bridge.errors import SinkDeliveryError

logger = logging.getLogger(__name__)

Job = Tuple[Callable[..., Any], Tuple[Any, ...]]


class BackgroundWorker:
    """
    Runs submitted jobs one at a time, in submission order, on a daemon thread.
    A job raising an exception is logged and does not stop the worker.

    on_exit runs once after the last job, on the worker thread, or in stop()
    when the thread was never started. A thread abandoned by stop() still runs
    it when its current job returns.
    """

    def __init__(self, name: str, max_queue: int = 1000, on_exit: Optional[Callable[[], Any]] = None):
        self.name = name
        self._on_exit = on_exit
        self._exited = False
        self._queue: "queue.Queue[Job]" = queue.Queue(maxsize=max_queue)
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._stopped = False

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self):
        with self._lock:
            if self._thread is not None or self._stopped:
                return
            self._thread = threading.Thread(target=self._loop, name=f"worker-{self.name}", daemon=True)
            self._thread.start()
        logger.debug(f"Worker {self.name} started")

    def submit(self, func: Callable[..., Any], *args: Any):
        """Queue a job without blocking, raises SinkDeliveryError when that is not possible."""
        if self._stopped:
            raise SinkDeliveryError(self.name, "worker is stopped")
        try:
            self._queue.put_nowait((func, args))
        except queue.Full:
            raise SinkDeliveryError(self.name, f"queue full ({self._queue.maxsize} jobs pending)")

    def request_stop(self):
        """Signal the worker to finish queued jobs and exit, without waiting."""
        self._stopped = True
        self._stop_event.set()

    def stop(self, timeout: float = 5.0) -> bool:
        """
        Stop the worker, letting queued jobs finish for at most timeout seconds.

        Returns:
            True if the worker thread has exited.
        """
        self.request_stop()
        with self._lock:
            thread = self._thread
        if thread is None:
            self._finish()
            return True
        thread.join(max(0.0, timeout))
        if thread.is_alive():
            logger.warning(f"Worker {self.name} did not stop within {timeout:.1f}s, "
                           f"abandoning {self._queue.qsize()} pending jobs")
            return False
        logger.debug(f"Worker {self.name} stopped")
        return True

    def wait_idle(self, timeout: float = 5.0) -> bool:
        """Wait until every queued job has been processed."""
        deadline = time.monotonic() + timeout
        while self._queue.unfinished_tasks > 0:
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.01)
        return True

    def _finish(self):
        with self._lock:
            if self._exited:
                return
            self._exited = True
        if self._on_exit is not None:
            try:
                self._on_exit()
            except Exception as e:
                logger.error(f"[{self.name}] Error in exit handler: {e}", exc_info=True)

    def _loop(self):
        try:
            while True:
                try:
                    func, args = self._queue.get(timeout=0.1)
                except queue.Empty:
                    if self._stop_event.is_set():
                        return
                    continue
                try:
                    func(*args)
                except Exception as e:
                    logger.error(f"[{self.name}] Error in background job {getattr(func, '__name__', func)}: {e}",
                                 exc_info=True)
                finally:
                    self._queue.task_done()
        finally:
            self._finish()
