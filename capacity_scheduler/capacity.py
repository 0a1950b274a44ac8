# capacity.py

"""Allocatable and free capacity per node."""

import logging
from collections import OrderedDict
from typing import Dict, List, Sequence

from .ledger import build_ledger
from .models import Node, NodeResources, Pod, Resources
from .quantity import normalize_resources

logger = logging.getLogger(__name__)

INSUFFICIENT_CPU = "Insufficient CPU"
INSUFFICIENT_MEMORY = "Insufficient memory"


def capacity_of(node: Node) -> Resources:
    """Allocatable CPU and memory of a node, in base units."""
    return normalize_resources(node.allocatable)


def free_capacity(nodes: Sequence[Node], pods: Sequence[Pod]) -> Dict[str, Resources]:
    """
    Allocatable minus used for every node, in node list order.

    Values are not clamped: a negative figure means the snapshot is
    inconsistent and the node cannot host anything.
    """
    ledger = build_ledger(nodes, pods)
    free = OrderedDict()
    for node in nodes:
        allocatable = capacity_of(node)
        used = ledger[node.name].as_resources()
        free[node.name] = allocatable - used
        logger.debug(
            f"Node {node.name}: CPU total {allocatable.cpu}m free {free[node.name].cpu}m, "
            f"memory total {allocatable.memory} free {free[node.name].memory}"
        )
    return free


def rejection_reasons(free: Resources, demand: Resources) -> List[str]:
    """Every resource for which `free` falls short of `demand`."""
    reasons = []
    if free.cpu < demand.cpu:
        reasons.append(INSUFFICIENT_CPU)
    if free.memory < demand.memory:
        reasons.append(INSUFFICIENT_MEMORY)
    return reasons


def describe_nodes(nodes: Sequence[Node], pods: Sequence[Pod]) -> List[NodeResources]:
    """Allocatable, used and utilization figures for reporting."""
    ledger = build_ledger(nodes, pods)
    rows = []
    for node in nodes:
        allocatable = capacity_of(node)
        used = ledger[node.name]
        rows.append(NodeResources(
            name=node.name,
            cpu_allocatable=allocatable.cpu,
            cpu_used=used.cpu,
            memory_allocatable=allocatable.memory,
            memory_used=used.memory,
            cpu_ratio=used.cpu / allocatable.cpu if allocatable.cpu > 0 else 1.0,
            memory_ratio=used.memory / allocatable.memory if allocatable.memory > 0 else 1.0,
        ))
    return rows
