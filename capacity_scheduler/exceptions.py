# exceptions.py

"""Custom exceptions for the capacity scheduler."""

from typing import List, Optional


class SchedulerError(Exception):
    """Base exception for scheduler errors."""
    pass


class QuantityParseError(SchedulerError, ValueError):
    """A resource quantity string could not be normalized."""

    def __init__(self, raw: str, resource: str):
        self.raw = raw
        self.resource = resource
        super().__init__(f"Invalid {resource} quantity: {raw!r}")


class TransportError(SchedulerError):
    """Failure reaching the control plane or an unexpected response."""

    def __init__(self, message: str, status_code: Optional[int] = None, retriable: bool = True):
        self.status_code = status_code
        self.retriable = retriable
        super().__init__(message)


class NoNodesAvailable(SchedulerError):
    """No node can be considered for placement."""
    pass


class PartialCommitFailure(SchedulerError):
    """Some bindings of a placed group failed after the target was chosen."""

    def __init__(self, node_name: str, failed: List):
        self.node_name = node_name
        self.failed = failed
        names = ", ".join(outcome.pod.name for outcome in failed)
        super().__init__(
            f"{len(failed)} binding(s) to node {node_name} failed: {names}"
        )


class ConfigurationError(SchedulerError):
    """Exception for configuration-related errors."""
    pass
