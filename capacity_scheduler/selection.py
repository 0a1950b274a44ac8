# selection.py

"""
Advisory best-fit ranking of nodes.

select_best_node() ranks nodes by spare capacity only; it never checks
whether a particular pod fits. Use placement.place_group() to admit and
bind pods.
"""

import logging
from typing import Callable, Optional, Sequence

from .capacity import capacity_of, free_capacity
from .exceptions import NoNodesAvailable
from .models import Node, Pod, Resources

logger = logging.getLogger(__name__)

ScoreFunction = Callable[[Resources, Resources], float]


def mean_free_score(free: Resources, allocatable: Resources) -> float:
    """Arithmetic mean of free millicores and free memory units."""
    return (free.cpu + free.memory) / 2


def fractional_free_score(free: Resources, allocatable: Resources) -> float:
    """Mean of the free fraction of each resource; dimensionless."""
    fractions = [
        f / a if a > 0 else 0.0
        for f, a in ((free.cpu, allocatable.cpu), (free.memory, allocatable.memory))
    ]
    return sum(fractions) / len(fractions)


def select_best_node(
    nodes: Sequence[Node],
    pods: Sequence[Pod],
    score: ScoreFunction = mean_free_score,
) -> Node:
    """
    Return the node with the strictly greatest score.

    Ties go to the node listed first. Nodes with negative free capacity
    are skipped. Raises NoNodesAvailable for an empty node list or when
    every node is overcommitted.
    """
    if not nodes:
        raise NoNodesAvailable("No nodes available")

    free = free_capacity(nodes, pods)
    best_node: Optional[Node] = None
    best_score = 0.0

    for node in nodes:
        node_free = free[node.name]
        if node_free.is_negative:
            logger.debug(f"Skipping node {node.name}: negative free capacity {node_free}")
            continue
        node_score = score(node_free, capacity_of(node))
        logger.debug(f"Node {node.name}: score={node_score}")
        if best_node is None or node_score > best_score:
            best_node = node
            best_score = node_score

    if best_node is None:
        raise NoNodesAvailable("No node has non-negative free capacity")

    logger.info(f"Best node by spare capacity: {best_node.name} (score={best_score})")
    return best_node
