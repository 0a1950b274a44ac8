"""Capacity-aware pod scheduler."""

from .exceptions import (
    ConfigurationError, NoNodesAvailable, PartialCommitFailure,
    QuantityParseError, SchedulerError, TransportError,
)
from .placement import place_group
from .selection import select_best_node

__version__ = "0.1.0"
