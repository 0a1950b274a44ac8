"""
Tests for background pod discovery.

These tests verify:
    1. Only unbound pods for this scheduler are queued
    2. Failures are reported on the error queue and the watch reconnects
    3. stop() returns promptly while a read is blocked on a live socket
    4. A stop that lands before the stream is registered still ends it
"""

import json
import queue
import socket
import threading
import time

import pytest

from capacity_scheduler.client import KubernetesClient
from capacity_scheduler.config import SchedulerConfig
from capacity_scheduler.exceptions import TransportError
from capacity_scheduler.watcher import PodWatcher

CONFIG = SchedulerConfig(scheduler_name="my-scheduler", watch_backoff=0.01)


def _added(name, scheduler="my-scheduler", node="", event_type="ADDED"):
    return {
        "type": event_type,
        "object": {
            "metadata": {"name": name, "uid": f"uid-{name}", "namespace": "default"},
            "spec": {"schedulerName": scheduler, "nodeName": node, "containers": [{"name": "main"}]},
        },
    }


class ScriptedClient:
    """Each watch call plays the next script entry: an exception or a list of events."""

    def __init__(self, *scripts):
        self.scripts = list(scripts)
        self.opened = 0

    def watch_unscheduled_pods(self, on_open=None, timeout_seconds=None):
        self.opened += 1
        script = self.scripts.pop(0) if self.scripts else []
        if isinstance(script, Exception):
            raise script
        yield from script


class StreamServer:
    """
    A real HTTP endpoint that answers every request with `head` and
    `body`, then keeps the connection open without sending more.
    """

    def __init__(self, head, body=b""):
        self.payload = head + body
        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.listener.bind(("127.0.0.1", 0))
        self.listener.listen(5)
        self.listener.settimeout(0.1)
        self.port = self.listener.getsockname()[1]
        self.served = threading.Event()
        self.requests = []
        self._connections = []
        self._closed = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self):
        while not self._closed.is_set():
            try:
                conn, _ = self.listener.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            self._connections.append(conn)
            request = b""
            while b"\r\n\r\n" not in request:
                chunk = conn.recv(4096)
                if not chunk:
                    break
                request += chunk
            self.requests.append(request.decode("latin-1").split("\r\n")[0])
            conn.sendall(self.payload)
            self.served.set()

    def close(self):
        self._closed.set()
        self._thread.join(2)
        self.listener.close()
        for conn in self._connections:
            conn.close()


def _chunk(data):
    return b"%x\r\n%s\r\n" % (len(data), data)


STREAM_HEAD = (
    b"HTTP/1.1 200 OK\r\n"
    b"Content-Type: application/json\r\n"
    b"Transfer-Encoding: chunked\r\n"
    b"\r\n"
)


@pytest.fixture
def serve():
    servers = []

    def start(head, body=b""):
        server = StreamServer(head, body)
        servers.append(server)
        return server
    yield start
    for server in servers:
        server.close()


def _live_watcher(server, **config):
    config = SchedulerConfig(
        api_host=f"127.0.0.1:{server.port}", scheduler_name="my-scheduler", **config
    )
    return PodWatcher(KubernetesClient(config), config)


class TestPodWatcher:
    """The watcher forwards pods and errors on separate queues and never gives up."""

    def test_added_pod_for_this_scheduler_is_queued(self):
        watcher = PodWatcher(ScriptedClient(), CONFIG)

        watcher._handle(_added("p1"))

        assert watcher.pods.get_nowait().name == "p1"

    @pytest.mark.parametrize("event", [
        _added("other", scheduler="default-scheduler"),
        _added("bound", node="node-1"),
        _added("changed", event_type="MODIFIED"),
        _added("gone", event_type="DELETED"),
    ])
    def test_irrelevant_events_are_dropped(self, event):
        watcher = PodWatcher(ScriptedClient(), CONFIG)

        watcher._handle(event)

        assert watcher.pods.empty()

    def test_reconnects_after_failure(self):
        client = ScriptedClient(TransportError("connection refused"), [_added("p1")])
        watcher = PodWatcher(client, CONFIG)

        watcher.start()
        try:
            error = watcher.errors.get(timeout=2)
            pod = watcher.pods.get(timeout=2)
        finally:
            watcher.stop(timeout=2)

        assert isinstance(error, TransportError)
        assert error.__traceback__ is None
        assert pod.name == "p1"
        assert client.opened >= 2
        assert not watcher._thread.is_alive()

    def test_stop_before_registration_aborts_the_stream(self, monkeypatch):
        aborted = []
        monkeypatch.setattr("capacity_scheduler.watcher.abort_stream", aborted.append)
        watcher = PodWatcher(ScriptedClient(), CONFIG)
        watcher.stop()

        watcher._register("response")

        assert aborted == ["response"]


class TestPodWatcherOverSocket:
    """End to end against a real HTTP server."""

    def test_stop_interrupts_a_silent_stream(self, serve):
        server = serve(STREAM_HEAD)
        watcher = _live_watcher(server)

        watcher.start()
        assert server.served.wait(5)
        time.sleep(0.2)
        started = time.monotonic()
        watcher.stop(timeout=3)
        elapsed = time.monotonic() - started

        assert not watcher._thread.is_alive()
        assert elapsed < 3
        assert watcher.errors.empty()

    def test_added_event_reaches_the_queue(self, serve):
        event = json.dumps(_added("p1")).encode() + b"\n"
        server = serve(STREAM_HEAD, _chunk(event))
        watcher = _live_watcher(server)

        watcher.start()
        try:
            pod = watcher.pods.get(timeout=5)
        finally:
            watcher.stop(timeout=3)

        assert (pod.namespace, pod.name) == ("default", "p1")
        assert "/api/v1/pods?" in server.requests[0]
        assert "watch=True" in server.requests[0]
        assert not watcher._thread.is_alive()

    def test_failed_open_is_reported(self, serve):
        server = serve(
            b"HTTP/1.1 503 Service Unavailable\r\n"
            b"Content-Type: application/json\r\n"
            b"Content-Length: 2\r\n"
            b"\r\n",
            b"{}",
        )
        watcher = _live_watcher(server, watch_backoff=60)

        watcher.start()
        try:
            error = watcher.errors.get(timeout=5)
        finally:
            watcher.stop(timeout=3)

        assert isinstance(error, TransportError)
        assert error.status_code == 503
        assert not watcher._thread.is_alive()
        with pytest.raises(queue.Empty):
            watcher.pods.get_nowait()
