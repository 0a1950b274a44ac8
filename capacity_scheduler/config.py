# config.py

"""Configuration settings for the capacity scheduler."""

import os
from dataclasses import dataclass
from typing import Optional

from .exceptions import ConfigurationError

# Control plane endpoint (a `kubectl proxy` by default)
DEFAULT_API_HOST = "127.0.0.1:8001"
DEFAULT_API_SCHEME = "http"
DEFAULT_NAMESPACE = "default"

# Scheduler identity
DEFAULT_SCHEDULER_NAME = "hightower-scheduler"
SCHEDULER_NAME_ANNOTATION = "scheduler.alpha.kubernetes.io/name"
DEFAULT_GROUP_LABEL = "job-name"  # Pods sharing this label value are placed together

# Timing (seconds)
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_WATCH_BACKOFF = 5.0  # Wait before reconnecting a failed watch
DEFAULT_WATCH_TIMEOUT = 300  # Server-side lifetime of one watch request
DEFAULT_RECONCILE_INTERVAL = 30.0

# Field selectors
UNSCHEDULED_SELECTOR = "spec.nodeName="
ACTIVE_SELECTOR = "status.phase!=Succeeded,status.phase!=Failed"

# Environment overrides
ENV_PREFIX = "SCHEDULER_"

# Logging format
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _positive_float(name: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class SchedulerConfig:
    """Connection and identity settings, read-only after construction."""
    api_host: str = DEFAULT_API_HOST
    api_scheme: str = DEFAULT_API_SCHEME
    scheduler_name: str = DEFAULT_SCHEDULER_NAME
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    watch_backoff: float = DEFAULT_WATCH_BACKOFF
    watch_timeout: int = DEFAULT_WATCH_TIMEOUT
    reconcile_interval: float = DEFAULT_RECONCILE_INTERVAL
    group_label: str = DEFAULT_GROUP_LABEL
    kubeconfig: Optional[str] = None  # When set, replaces api_host and api_scheme

    @property
    def base_url(self) -> str:
        return f"{self.api_scheme}://{self.api_host}"

    @classmethod
    def from_env(cls, environ=None, **overrides) -> "SchedulerConfig":
        """
        Build a configuration from SCHEDULER_* environment variables.
        Explicit keyword overrides win over the environment; unset
        values keep their defaults.
        """
        environ = os.environ if environ is None else environ
        values = {}

        text_settings = {
            "api_host": "API_HOST",
            "api_scheme": "API_SCHEME",
            "scheduler_name": "NAME",
            "group_label": "GROUP_LABEL",
            "kubeconfig": "KUBECONFIG",
        }
        for field_name, suffix in text_settings.items():
            raw = environ.get(ENV_PREFIX + suffix)
            if raw:
                values[field_name] = raw

        timing_settings = {
            "request_timeout": "REQUEST_TIMEOUT",
            "watch_backoff": "WATCH_BACKOFF",
            "reconcile_interval": "RECONCILE_INTERVAL",
        }
        for field_name, suffix in timing_settings.items():
            raw = environ.get(ENV_PREFIX + suffix)
            if raw:
                values[field_name] = _positive_float(ENV_PREFIX + suffix, raw)

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
