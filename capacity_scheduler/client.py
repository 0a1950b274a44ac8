# client.py

"""Transport to the cluster control plane over the Kubernetes API client."""

import functools
import logging
import socket
from typing import Any, Callable, Dict, Iterator, List, Optional

import urllib3
from kubernetes import client, watch
from kubernetes import config as kube_config
from kubernetes.client.rest import ApiException

from .config import ACTIVE_SELECTOR, UNSCHEDULED_SELECTOR, SchedulerConfig
from .exceptions import ConfigurationError, TransportError
from .models import Event, Node, Pod

logger = logging.getLogger(__name__)


def build_api_client(config: SchedulerConfig) -> client.ApiClient:
    """API client for the kubeconfig file if one is set, else for base_url."""
    configuration = client.Configuration()
    if config.kubeconfig:
        try:
            kube_config.load_kube_config(config_file=config.kubeconfig, client_configuration=configuration)
        except kube_config.ConfigException as e:
            raise ConfigurationError(f"Cannot load kubeconfig {config.kubeconfig}: {e}")
    else:
        configuration.host = config.base_url
    return client.ApiClient(configuration)


def _api_error(action: str, e: ApiException) -> TransportError:
    status = e.status or None
    return TransportError(
        f"Failed to {action}: HTTP {e.status} {e.reason}",
        status_code=status,
        retriable=status is None or status >= 500,
    )


def abort_stream(response) -> None:
    """
    Wake a thread blocked reading `response` by shutting its socket down.

    Closing the response from another thread would wait for the blocked
    read to time out; shutdown makes the read return at once.
    """
    connection = getattr(response, "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as e:
        logger.debug(f"Watch socket already closed: {e}")


class KubernetesClient:
    """Nodes, pods, bindings and events through CoreV1Api."""

    def __init__(self, config: SchedulerConfig, api_client: Optional[client.ApiClient] = None):
        self.config = config
        self.api_client = api_client or build_api_client(config)
        self.core = client.CoreV1Api(self.api_client)

    def _timeout(self, timeout: Optional[float]) -> float:
        return self.config.request_timeout if timeout is None else timeout

    def _call(self, action: str, func: Callable, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ApiException as e:
            raise _api_error(action, e)
        except urllib3.exceptions.TimeoutError as e:
            raise TransportError(f"Failed to {action}: timed out: {e}")
        except urllib3.exceptions.HTTPError as e:
            raise TransportError(f"Failed to {action}: {e}")

    def _to_dict(self, obj) -> Dict[str, Any]:
        return self.api_client.sanitize_for_serialization(obj)

    def close(self) -> None:
        self.api_client.close()

    def list_nodes(self, timeout: Optional[float] = None) -> List[Node]:
        nodes = self._call("list nodes", self.core.list_node, _request_timeout=self._timeout(timeout))
        return [Node.from_dict(self._to_dict(item)) for item in nodes.items or []]

    def list_pods(self, field_selector: Optional[str] = None,
                  timeout: Optional[float] = None) -> List[Pod]:
        kwargs = {"_request_timeout": self._timeout(timeout)}
        if field_selector:
            kwargs["field_selector"] = field_selector
        pods = self._call("list pods", self.core.list_pod_for_all_namespaces, **kwargs)
        return [Pod.from_dict(self._to_dict(item)) for item in pods.items or []]

    def list_active_pods(self, timeout: Optional[float] = None) -> List[Pod]:
        """Running and pending pods, the population that consumes capacity."""
        return self.list_pods(ACTIVE_SELECTOR, timeout=timeout)

    def list_unscheduled_pods(self, scheduler_name: str,
                              timeout: Optional[float] = None) -> List[Pod]:
        """Unscheduled pods that ask for `scheduler_name`."""
        pods = self.list_pods(UNSCHEDULED_SELECTOR, timeout=timeout)
        return [pod for pod in pods if pod.wants_scheduler(scheduler_name)]

    def get_pod(self, namespace: str, name: str, timeout: Optional[float] = None) -> Pod:
        pod = self._call(
            f"read pod {namespace}/{name}", self.core.read_namespaced_pod,
            name, namespace, _request_timeout=self._timeout(timeout),
        )
        return Pod.from_dict(self._to_dict(pod))

    def bind(self, pod: Pod, node_name: str, timeout: Optional[float] = None) -> None:
        """Commit `pod` to `node_name`. Raises TransportError on any non-2xx answer."""
        body = client.V1Binding(
            metadata=client.V1ObjectMeta(name=pod.name, namespace=pod.namespace),
            target=client.V1ObjectReference(api_version="v1", kind="Node", name=node_name),
        )
        # The server answers with a Status, which does not decode as a V1Binding
        self._call(
            f"bind {pod.namespace}/{pod.name} to {node_name}", self.core.create_namespaced_binding,
            pod.namespace, body, _preload_content=False, _request_timeout=self._timeout(timeout),
        )

    def post_event(self, event: Event, timeout: Optional[float] = None) -> None:
        self._call(
            f"post {event.reason} event", self.core.create_namespaced_event,
            event.involved_object.namespace, event.to_dict(),
            _preload_content=False, _request_timeout=self._timeout(timeout),
        )

    def watch_unscheduled_pods(self, on_open: Optional[Callable[[Any], None]] = None,
                               timeout_seconds: Optional[int] = None) -> Iterator[Dict[str, Any]]:
        """
        Stream watch events for unscheduled pods as {"type", "object"} dicts.

        `on_open` receives the raw response once the server accepts the
        watch, so another thread can abort_stream() it. The server ends
        the stream after `timeout_seconds`; the client read timeout is
        set slightly above it so an idle but healthy stream is not
        reported as a failure.
        """
        timeout_seconds = timeout_seconds or self.config.watch_timeout
        list_pods = self.core.list_pod_for_all_namespaces

        # Watch.stream reads the return type from the wrapped docstring
        @functools.wraps(list_pods)
        def open_stream(*args, **kwargs):
            response = list_pods(*args, **kwargs)
            if on_open is not None:
                on_open(response)
            return response

        stream = watch.Watch().stream(
            open_stream,
            field_selector=UNSCHEDULED_SELECTOR,
            timeout_seconds=timeout_seconds,
            _request_timeout=(self.config.request_timeout, timeout_seconds + self.config.request_timeout),
        )
        try:
            for event in stream:
                yield {"type": event["type"], "object": event["raw_object"]}
        except ApiException as e:
            raise _api_error("watch pods", e)
        except urllib3.exceptions.HTTPError as e:
            raise TransportError(f"Watch stream failed: {e}")
        finally:
            stream.close()
