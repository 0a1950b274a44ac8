# placement.py

"""
All-or-nothing placement of a pod group onto a single node.

The decision is first-fit over the node list: the whole group must land
on one node, so the first node with enough free CPU and memory wins.
Commits and notifications go through injected callables so the
decision can run against any snapshot.
"""

import logging
from typing import Callable, Collection, List, NamedTuple, Optional, Sequence

from .capacity import free_capacity, rejection_reasons
from .events import failed_scheduling_event, scheduled_event
from .ledger import aggregate_demand
from .models import (
    BindingOutcome, Event, Node, Outcome, PlacementResult, Pod, Resources
)

logger = logging.getLogger(__name__)

Binder = Callable[[Pod, Node], None]
Notifier = Callable[[Event], None]


class TargetDecision(NamedTuple):
    """Result of the pure first-fit scan."""
    node: Optional[Node]
    demand: Resources
    reasons: List[str]


def find_target(
    nodes: Sequence[Node],
    pods: Sequence[Pod],
    units: Sequence[Pod],
    candidates: Optional[Collection[str]] = None,
) -> TargetDecision:
    """
    Pick the first node whose free capacity covers the group's demand.

    Every node rejected before the match (or every node, when nothing
    matches) contributes one reason string naming the short resources.
    With `candidates`, only nodes of those names are considered; usage
    is still accounted on every node.
    """
    demand = aggregate_demand(units)
    free = free_capacity(nodes, pods)
    reasons = []

    for node in nodes:
        if candidates is not None and node.name not in candidates:
            continue
        if free[node.name].fits(demand):
            return TargetDecision(node, demand, reasons)
        short = rejection_reasons(free[node.name], demand)
        reasons.append(f"fit failure on node ({node.name}): {', '.join(short)}")

    return TargetDecision(None, demand, reasons)


def _notify(notifier: Notifier, event: Event, errors: List[Exception]) -> None:
    try:
        notifier(event)
    except Exception as e:
        logger.error(f"Failed to post {event.reason} event for {event.involved_object.name}: {e}")
        errors.append(e)


def place_group(
    units: Sequence[Pod],
    nodes: Sequence[Node],
    pods: Sequence[Pod],
    binder: Binder,
    notifier: Notifier,
    component: str,
    candidates: Optional[Collection[str]] = None,
) -> PlacementResult:
    """
    Admit a group onto one node, bind every unit and report the outcome.

    Returns a PlacementResult with outcome PLACED, PARTIAL (some bindings
    failed; see failed_units / raise_for_commit) or REJECTED (no node
    fits; one FailedScheduling event was sent). Quantity errors propagate
    before any side effect happens. `candidates` restricts the target to
    the named nodes.
    """
    if not units:
        raise ValueError("Cannot place an empty group")

    decision = find_target(nodes, pods, units, candidates)
    notify_errors: List[Exception] = []

    if decision.node is None:
        logger.warning(
            f"Group of {len(units)} pod(s) led by {units[0].name} "
            f"(cpu={decision.demand.cpu}m, memory={decision.demand.memory}) fits no node"
        )
        for reason in decision.reasons:
            logger.info(reason)
        _notify(notifier, failed_scheduling_event(units[0], decision.reasons, component), notify_errors)
        return PlacementResult(
            outcome=Outcome.REJECTED,
            demand=decision.demand,
            reasons=decision.reasons,
            notify_errors=notify_errors,
        )

    node = decision.node
    logger.info(f"Placing group of {len(units)} pod(s) led by {units[0].name} on node {node.name}")

    bindings = []
    for unit in units:
        try:
            binder(unit, node)
        except Exception as e:
            logger.error(f"Failed to bind {unit.namespace}/{unit.name} to {node.name}: {e}")
            bindings.append(BindingOutcome(unit, node.name, e))
            continue
        bindings.append(BindingOutcome(unit, node.name))
        logger.info(f"Successfully assigned {unit.name} to {node.name}")
        _notify(notifier, scheduled_event(unit, node, component), notify_errors)

    outcome = Outcome.PLACED if all(b.ok for b in bindings) else Outcome.PARTIAL
    return PlacementResult(
        outcome=outcome,
        demand=decision.demand,
        node=node,
        reasons=decision.reasons,
        bindings=bindings,
        notify_errors=notify_errors,
    )
