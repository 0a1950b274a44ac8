# ledger.py

"""Per-node resource usage derived from a snapshot of all pods."""

import logging
from typing import Dict, Iterable, List, Optional

from .models import Node, Pod, ResourceUsage, Resources
from .quantity import pod_request

logger = logging.getLogger(__name__)


def build_ledger(
    nodes: Iterable[Node],
    pods: Iterable[Pod],
    unknown: Optional[List[Pod]] = None,
) -> Dict[str, ResourceUsage]:
    """
    Fold the requests of every bound pod into its node's usage.

    Unscheduled pods contribute nothing. Pods bound to a node missing
    from the snapshot are ignored with a warning and appended to
    `unknown` if a list is given. A malformed request aborts the whole
    computation with QuantityParseError.
    """
    ledger = {node.name: ResourceUsage() for node in nodes}

    for pod in pods:
        if not pod.is_bound:
            continue
        usage = ledger.get(pod.node_name)
        if usage is None:
            logger.warning(
                f"Pod {pod.namespace}/{pod.name} is bound to unknown node "
                f"{pod.node_name}; ignoring it"
            )
            if unknown is not None:
                unknown.append(pod)
            continue
        usage.add(pod_request(pod))

    return ledger


def aggregate_demand(units: Iterable[Pod]) -> Resources:
    """Total requests over every container of every unit in a group."""
    return sum((pod_request(unit) for unit in units), Resources())
