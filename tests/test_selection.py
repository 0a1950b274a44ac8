"""Tests for the advisory best-fit node ranking."""

import pytest

from capacity_scheduler.exceptions import NoNodesAvailable, QuantityParseError
from capacity_scheduler.models import Container, Node, Pod, Resources
from capacity_scheduler.selection import (
    fractional_free_score, mean_free_score, select_best_node,
)


class TestSelectBestNode:
    """Greatest mean of free CPU and memory wins; ties go to the first node."""

    def _make_node(self, name: str, cpu: str, memory: str) -> Node:
        return Node(name=name, allocatable={"cpu": cpu, "memory": memory})

    def _make_pod(self, name: str, node: str, cpu: str = "0m", memory: str = "0Mi") -> Pod:
        return Pod(name=name, node_name=node, containers=[
            Container(name="main", requests={"cpu": cpu, "memory": memory}),
        ])

    def test_picks_most_spare_capacity(self):
        nodes = [
            self._make_node("small", "1", "1000Mi"),
            self._make_node("large", "4", "8Gi"),
        ]
        assert select_best_node(nodes, []).name == "large"

    def test_usage_changes_the_ranking(self):
        nodes = [
            self._make_node("a", "4", "4000Mi"),
            self._make_node("b", "2", "2000Mi"),
        ]
        pods = [self._make_pod("hog", "a", "3500m", "3800Mi")]

        assert select_best_node(nodes, pods).name == "b"

    def test_tie_goes_to_first_node(self):
        nodes = [
            self._make_node("first", "2", "1000Mi"),
            self._make_node("second", "1", "2000Mi"),
        ]
        assert select_best_node(nodes, []).name == "first"
        assert select_best_node(list(reversed(nodes)), []).name == "second"

    def test_repeated_calls_are_deterministic(self):
        nodes = [self._make_node(f"n{i}", "2", "2Gi") for i in range(5)]
        picks = {select_best_node(nodes, []).name for _ in range(10)}
        assert picks == {"n0"}

    def test_no_nodes_raises(self):
        with pytest.raises(NoNodesAvailable):
            select_best_node([], [])

    def test_overcommitted_nodes_are_skipped(self):
        nodes = [
            self._make_node("over", "8", "1024Mi"),
            self._make_node("tiny", "500m", "256Mi"),
        ]
        pods = [self._make_pod("big", "over", "1", "2048Mi")]

        assert select_best_node(nodes, pods).name == "tiny"

    def test_all_overcommitted_raises(self):
        nodes = [self._make_node("over", "1", "1024Mi")]
        pods = [self._make_pod("big", "over", "2", "512Mi")]

        with pytest.raises(NoNodesAvailable):
            select_best_node(nodes, pods)

    def test_custom_score_function(self):
        nodes = [
            self._make_node("idle", "1", "1000Mi"),
            self._make_node("busy", "4", "4000Mi"),
        ]
        pods = [self._make_pod("half", "busy", "2", "2000Mi")]

        assert select_best_node(nodes, pods).name == "busy"
        assert select_best_node(nodes, pods, score=fractional_free_score).name == "idle"

    def test_quantity_errors_propagate(self):
        nodes = [self._make_node("a", "two", "1Gi")]
        with pytest.raises(QuantityParseError):
            select_best_node(nodes, [])


class TestScores:
    def test_mean_free_score(self):
        assert mean_free_score(Resources(1000, 3000), Resources(2000, 4000)) == 2000

    def test_fractional_free_score(self):
        assert fractional_free_score(Resources(500, 3000), Resources(1000, 4000)) == pytest.approx(0.625)

    def test_fractional_free_score_with_zero_allocatable(self):
        assert fractional_free_score(Resources(0, 1000), Resources(0, 1000)) == pytest.approx(0.5)
