# utils.py

"""Utility functions for the capacity scheduler."""

import logging
from typing import List

from .config import LOG_FORMAT, LOG_DATE_FORMAT
from .models import NodeResources


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with appropriate level and format."""
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT
    )


def format_node_resources(resources: NodeResources) -> List[str]:
    """
    Render one node's capacity as report lines.

    Args:
        resources: Allocatable and used figures for the node

    Returns:
        List of lines ready for logging
    """
    return [
        f"Node: {resources.name}",
        f"  CPU:    {resources.cpu_used}m / {resources.cpu_allocatable}m "
        f"({resources.cpu_ratio*100:.1f}%), free {resources.cpu_free}m",
        f"  Memory: {resources.memory_used} / {resources.memory_allocatable} "
        f"({resources.memory_ratio*100:.1f}%), free {resources.memory_free}",
    ]
