# scheduler.py

"""
The decision loop: snapshot, decide, commit, notify.

Every decision re-reads the full node and pod lists; nothing is cached
between decisions. Decisions are serialized by running them on a single
loop. Nothing protects against another writer binding pods between our
snapshot and our commit, so two schedulers sharing nodes can still
oversubscribe them.
"""

import logging
import queue
import threading
import time
from collections import OrderedDict
from typing import List, Optional, Sequence, Tuple

from .config import SchedulerConfig
from .exceptions import NoNodesAvailable, QuantityParseError, TransportError
from .models import Event, Node, Outcome, PlacementResult, Pod
from .placement import place_group
from .selection import ScoreFunction, mean_free_score, select_best_node
from .watcher import PodWatcher

logger = logging.getLogger(__name__)

POLL_INTERVAL = 1.0
HTTP_CONFLICT = 409

# Errors that abort one decision but never the loop
DECISION_ERRORS = (TransportError, QuantityParseError, NoNodesAvailable)


class Scheduler:
    def __init__(self, client, config: SchedulerConfig, watcher: Optional[PodWatcher] = None):
        self.client = client
        self.config = config
        self.watcher = watcher or PodWatcher(client, config)

    def snapshot(self) -> Tuple[List[Node], List[Pod]]:
        """Fetch the node list and the active pods for one decision."""
        nodes = self.client.list_nodes()
        pods = self.client.list_active_pods()
        return nodes, pods

    def best_node(self, score: ScoreFunction = mean_free_score) -> Node:
        """Advisory: the node with the most spare capacity. Does not bind."""
        nodes, pods = self.snapshot()
        return select_best_node(nodes, pods, score=score)

    def bind(self, pod: Pod, node: Node) -> None:
        """
        Commit one pod. A conflict is accepted only if the pod already
        sits on the target node.
        """
        try:
            self.client.bind(pod, node.name)
        except TransportError as e:
            if e.status_code != HTTP_CONFLICT:
                raise
            current = self.client.get_pod(pod.namespace, pod.name)
            if current.node_name != node.name:
                raise TransportError(
                    f"Pod {pod.name} is already bound to {current.node_name or 'another node'}",
                    status_code=HTTP_CONFLICT,
                    retriable=False,
                )
            logger.info(f"Pod {pod.name} already bound to {node.name}")

    def notify(self, event: Event) -> None:
        self.client.post_event(event)

    def anchor_node(self, units: Sequence[Pod], nodes: Sequence[Node], pods: Sequence[Pod]) -> Optional[str]:
        """
        The node already running bound members of the units' group.

        A group left partially bound must finish on that node. None for
        unlabelled pods, or when the node has left the snapshot.
        """
        key = units[0].group_key(self.config.group_label)
        if key is None:
            return None
        for pod in pods:
            if (pod.is_bound and pod.namespace == units[0].namespace
                    and pod.group_key(self.config.group_label) == key):
                if any(node.name == pod.node_name for node in nodes):
                    return pod.node_name
                logger.warning(f"Group {key} has pods on unknown node {pod.node_name}; not pinning")
                return None
        return None

    def schedule_group(self, units: Sequence[Pod]) -> PlacementResult:
        """Place a group on one node against a fresh snapshot."""
        nodes, pods = self.snapshot()
        anchor = self.anchor_node(units, nodes, pods)
        if anchor is not None:
            logger.info(f"Group led by {units[0].name} is pinned to node {anchor}")
        result = place_group(
            units, nodes, pods,
            binder=self.bind,
            notifier=self.notify,
            component=self.config.scheduler_name,
            candidates=None if anchor is None else {anchor},
        )
        self._report(result)
        return result

    def group_for(self, pod: Pod, unscheduled: Optional[Sequence[Pod]] = None) -> List[Pod]:
        """
        The still-unscheduled group a pod belongs to, ordered by name.

        Empty if the pod itself has been scheduled in the meantime.
        """
        if unscheduled is None:
            unscheduled = self.client.list_unscheduled_pods(self.config.scheduler_name)
        if not any(p.uid == pod.uid and p.name == pod.name for p in unscheduled):
            return []

        key = pod.group_key(self.config.group_label)
        if key is None:
            return [p for p in unscheduled if p.uid == pod.uid and p.name == pod.name]
        members = [
            p for p in unscheduled
            if p.namespace == pod.namespace and p.group_key(self.config.group_label) == key
        ]
        return sorted(members, key=lambda p: p.name)

    def schedule_pod(self, pod: Pod) -> Optional[PlacementResult]:
        """Schedule a discovered pod together with the rest of its group."""
        group = self.group_for(pod)
        if not group:
            logger.debug(f"Pod {pod.namespace}/{pod.name} is no longer unscheduled")
            return None
        return self.schedule_group(group)

    def reconcile(self) -> List[PlacementResult]:
        """Schedule every unscheduled group once."""
        unscheduled = self.client.list_unscheduled_pods(self.config.scheduler_name)
        groups = OrderedDict()
        for pod in unscheduled:
            key = pod.group_key(self.config.group_label)
            group_id = (pod.namespace, key) if key is not None else (pod.namespace, None, pod.uid, pod.name)
            groups.setdefault(group_id, []).append(pod)

        if groups:
            logger.info(f"Reconciling {len(unscheduled)} unscheduled pod(s) in {len(groups)} group(s)")

        results = []
        for members in groups.values():
            members = sorted(members, key=lambda p: p.name)
            try:
                results.append(self.schedule_group(members))
            except DECISION_ERRORS as e:
                logger.error(f"Failed to schedule group led by {members[0].name}: {e}")
        return results

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """Process discovered pods and periodic reconciles until stopped."""
        stop_event = stop_event or threading.Event()
        logger.info(f"Starting scheduler {self.config.scheduler_name} against {self.config.kubeconfig or self.config.base_url}")
        self.watcher.start()
        next_reconcile = 0.0
        try:
            while not stop_event.is_set():
                now = time.monotonic()
                if now >= next_reconcile:
                    self._guarded(self.reconcile)
                    next_reconcile = now + self.config.reconcile_interval

                self._drain_errors()
                try:
                    pod = self.watcher.pods.get(timeout=POLL_INTERVAL)
                except queue.Empty:
                    continue
                self._guarded(self.schedule_pod, pod)
        finally:
            self.watcher.stop(timeout=POLL_INTERVAL)
            logger.info("Scheduler stopped")

    def _guarded(self, decision, *args):
        try:
            return decision(*args)
        except DECISION_ERRORS as e:
            logger.error(f"Scheduling decision aborted: {e}")
            return None

    def _drain_errors(self) -> None:
        while True:
            try:
                error = self.watcher.errors.get_nowait()
            except queue.Empty:
                return
            logger.debug(f"Watcher reported: {error}")

    def _report(self, result: PlacementResult) -> None:
        if result.outcome is Outcome.PARTIAL:
            logger.error(
                f"Group on node {result.node.name} partially bound: "
                f"{len(result.placed_units)} of {len(result.bindings)} pod(s) committed"
            )
