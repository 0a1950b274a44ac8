# watcher.py

"""Background discovery of unscheduled pods."""

import logging
import queue
import threading
from typing import Optional

from .client import abort_stream
from .config import SchedulerConfig
from .models import Pod

logger = logging.getLogger(__name__)

ADDED = "ADDED"
RECONNECT_DELAY = 1.0  # Pause before reopening a stream the server closed


class PodWatcher:
    """
    Watch for unscheduled pods on a daemon thread, reconnecting forever.

    Pods meant for this scheduler land on `pods`; every failure lands on
    `errors` and is followed by a `watch_backoff` pause. stop() ends the
    loop, including a read blocked on the stream.
    """

    def __init__(self, client, config: SchedulerConfig):
        self.client = client
        self.config = config
        self.pods: "queue.Queue[Pod]" = queue.Queue()
        self.errors: "queue.Queue[Exception]" = queue.Queue()
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._response = None
        self._thread: Optional[threading.Thread] = None

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self.run, name="pod-watcher", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        with self._lock:
            response = self._response
        if response is not None:
            abort_stream(response)
        if self._thread is not None:
            self._thread.join(timeout)

    def run(self) -> None:
        logger.info(f"Watching unscheduled pods for scheduler {self.config.scheduler_name}")
        while not self._stop.is_set():
            try:
                self._watch_once()
                self._stop.wait(RECONNECT_DELAY)
            except Exception as e:
                if self._stop.is_set():
                    break
                logger.warning(f"Pod watch failed: {e}; retrying in {self.config.watch_backoff}s")
                self.errors.put(e.with_traceback(None))
                self._stop.wait(self.config.watch_backoff)
        logger.info("Pod watcher stopped")

    def _register(self, response) -> None:
        with self._lock:
            self._response = response
            stopping = self._stop.is_set()
        # stop() may have run before the stream was registered
        if stopping:
            abort_stream(response)

    def _watch_once(self) -> None:
        try:
            for event in self.client.watch_unscheduled_pods(on_open=self._register):
                if self._stop.is_set():
                    return
                self._handle(event)
        finally:
            with self._lock:
                self._response = None

    def _handle(self, event) -> None:
        if event.get("type") != ADDED:
            return
        pod = Pod.from_dict(event.get("object") or {})
        if pod.is_bound or not pod.wants_scheduler(self.config.scheduler_name):
            return
        logger.debug(f"Discovered unscheduled pod {pod.namespace}/{pod.name}")
        self.pods.put(pod)
