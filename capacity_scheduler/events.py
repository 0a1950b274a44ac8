# events.py

"""Builders for the notification records sent to the control plane."""

from datetime import datetime, timezone
from typing import Optional, Sequence

from .models import Event, EventSource, Node, ObjectReference, Pod

SCHEDULED = "Scheduled"
FAILED_SCHEDULING = "FailedScheduling"
NORMAL = "Normal"
WARNING = "Warning"


def utc_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%SZ")


def pod_reference(pod: Pod) -> ObjectReference:
    return ObjectReference(kind="Pod", name=pod.name, namespace=pod.namespace, uid=pod.uid)


def scheduled_event(pod: Pod, node: Node, component: str, now: Optional[datetime] = None) -> Event:
    return Event(
        reason=SCHEDULED,
        message=f"Successfully assigned {pod.name} to {node.name}",
        type=NORMAL,
        involved_object=pod_reference(pod),
        source=EventSource(component),
        timestamp=utc_timestamp(now),
    )


def failed_scheduling_event(
    pod: Pod,
    reasons: Sequence[str],
    component: str,
    now: Optional[datetime] = None,
) -> Event:
    """One warning for a whole group, addressed at its first pod."""
    lines = [f"pod ({pod.name}) failed to fit in any node"]
    lines.extend(reasons)
    return Event(
        reason=FAILED_SCHEDULING,
        message="\n".join(lines),
        type=WARNING,
        involved_object=pod_reference(pod),
        source=EventSource(component),
        timestamp=utc_timestamp(now),
    )
