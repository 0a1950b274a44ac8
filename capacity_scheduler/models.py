# models.py

"""Data models for the capacity scheduler."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional

from .config import DEFAULT_NAMESPACE, SCHEDULER_NAME_ANNOTATION
from .exceptions import PartialCommitFailure


@dataclass(frozen=True)
class Container:
    """A container and the resource requests it declares."""
    name: str
    requests: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Container":
        resources = data.get("resources") or {}
        return cls(
            name=data.get("name", ""),
            requests=dict(resources.get("requests") or {}),
        )


@dataclass(frozen=True)
class Pod:
    """A workload unit; an empty node_name means it is unscheduled."""
    name: str
    uid: str = ""
    namespace: str = DEFAULT_NAMESPACE
    node_name: str = ""
    scheduler_name: str = ""
    phase: str = ""
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    containers: List[Container] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pod":
        metadata = data.get("metadata") or {}
        spec = data.get("spec") or {}
        status = data.get("status") or {}
        return cls(
            name=metadata.get("name", ""),
            uid=metadata.get("uid", ""),
            namespace=metadata.get("namespace") or DEFAULT_NAMESPACE,
            node_name=spec.get("nodeName") or "",
            scheduler_name=spec.get("schedulerName") or "",
            phase=status.get("phase") or "",
            labels=dict(metadata.get("labels") or {}),
            annotations=dict(metadata.get("annotations") or {}),
            containers=[Container.from_dict(c) for c in spec.get("containers") or []],
        )

    @property
    def is_bound(self) -> bool:
        return bool(self.node_name)

    def wants_scheduler(self, scheduler_name: str) -> bool:
        """True if the pod asks for this scheduler by spec field or annotation."""
        return (
            self.scheduler_name == scheduler_name
            or self.annotations.get(SCHEDULER_NAME_ANNOTATION) == scheduler_name
        )

    def group_key(self, label: str) -> Optional[str]:
        return self.labels.get(label) or None


@dataclass(frozen=True)
class Node:
    """A machine with allocatable CPU and memory quantity strings."""
    name: str
    allocatable: Dict[str, str] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        metadata = data.get("metadata") or {}
        status = data.get("status") or {}
        return cls(
            name=metadata.get("name", ""),
            allocatable=dict(status.get("allocatable") or {}),
            labels=dict(metadata.get("labels") or {}),
        )


class Resources(NamedTuple):
    """CPU in millicores and memory in memory units."""
    cpu: int = 0
    memory: int = 0

    def __add__(self, other):
        return Resources(self.cpu + other.cpu, self.memory + other.memory)

    def __sub__(self, other):
        return Resources(self.cpu - other.cpu, self.memory - other.memory)

    @property
    def is_negative(self) -> bool:
        return self.cpu < 0 or self.memory < 0

    def fits(self, demand: "Resources") -> bool:
        return self.cpu >= demand.cpu and self.memory >= demand.memory


@dataclass
class ResourceUsage:
    """Per-node accumulator, created zeroed for every ledger computation."""
    cpu: int = 0
    memory: int = 0

    def add(self, request: Resources) -> None:
        self.cpu += request.cpu
        self.memory += request.memory

    def as_resources(self) -> Resources:
        return Resources(self.cpu, self.memory)


class NodeResources(NamedTuple):
    """Resources for a node, for reporting."""
    name: str
    cpu_allocatable: int
    cpu_used: int
    memory_allocatable: int
    memory_used: int
    cpu_ratio: float
    memory_ratio: float

    @property
    def cpu_free(self) -> int:
        return self.cpu_allocatable - self.cpu_used

    @property
    def memory_free(self) -> int:
        return self.memory_allocatable - self.memory_used


@dataclass(frozen=True)
class ObjectReference:
    kind: str
    name: str
    namespace: str = DEFAULT_NAMESPACE
    uid: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "kind": self.kind,
            "name": self.name,
            "namespace": self.namespace,
            "uid": self.uid,
        }


@dataclass(frozen=True)
class EventSource:
    """The component that reports an event."""
    component: str

    def to_dict(self) -> Dict[str, str]:
        return {"component": self.component}


@dataclass(frozen=True)
class Event:
    """A write-once notification record for the control plane."""
    reason: str
    message: str
    type: str
    involved_object: ObjectReference
    source: EventSource
    timestamp: str
    count: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "apiVersion": "v1",
            "kind": "Event",
            "count": self.count,
            "message": self.message,
            "metadata": {
                "generateName": self.involved_object.name + "-",
                "namespace": self.involved_object.namespace,
            },
            "reason": self.reason,
            "type": self.type,
            "firstTimestamp": self.timestamp,
            "lastTimestamp": self.timestamp,
            "source": self.source.to_dict(),
            "involvedObject": self.involved_object.to_dict(),
        }


class Outcome(str, Enum):
    """Terminal states of one group placement."""
    PLACED = "placed"
    PARTIAL = "partial"
    REJECTED = "rejected"


@dataclass(frozen=True)
class BindingOutcome:
    """Result of committing one unit to a node."""
    pod: Pod
    node_name: str
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PlacementResult:
    """Outcome of a group placement with everything needed to reconcile it."""
    outcome: Outcome
    demand: Resources
    node: Optional[Node] = None
    reasons: List[str] = field(default_factory=list)
    bindings: List[BindingOutcome] = field(default_factory=list)
    notify_errors: List[Exception] = field(default_factory=list)

    @property
    def placed_units(self) -> List[Pod]:
        return [b.pod for b in self.bindings if b.ok]

    @property
    def failed_units(self) -> List[BindingOutcome]:
        return [b for b in self.bindings if not b.ok]

    def raise_for_commit(self) -> None:
        """Raise PartialCommitFailure if any binding of a placed group failed."""
        if self.outcome is Outcome.PARTIAL:
            raise PartialCommitFailure(self.node.name, self.failed_units)
