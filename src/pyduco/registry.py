"""Registry of the nodes attached to the controller."""

from __future__ import annotations

import logging
import typing as t

from pyduco.data_model import MqttData, NodeActions, NodeInfo
from pyduco.exceptions import DucoProtocolMismatch, DucoUnknownNode
from pyduco.node import DucoNode

LOGGER = logging.getLogger(__name__)


def pair_reports(
    infos: t.Sequence[NodeInfo], actions: t.Sequence[NodeActions]
) -> list[tuple[NodeInfo, NodeActions]]:
    """Pair node reports with their actions.

    Both lists are matched after sorting by node number, counts and numbers must agree.
    """
    if len(infos) != len(actions):
        raise DucoProtocolMismatch(
            f"Node and action count mismatch ({len(infos)} <-> {len(actions)})"
        )

    pairs = list(
        zip(
            sorted(infos, key=lambda x: x.number),
            sorted(actions, key=lambda x: x.number),
            strict=True,
        )
    )
    for info, action in pairs:
        if info.number != action.number:
            raise DucoProtocolMismatch(f"Node mismatch ({info.number} <-> {action.number})")
    return pairs


class NodeRegistry:
    """Nodes indexed by their number.

    Nodes are never removed unless prune_after is set, then a node that is missing from
    that many consecutive successful polls is dropped.
    """

    prune_after: int | None
    _nodes: dict[int, DucoNode]
    _missed: dict[int, int]

    def __init__(self, prune_after: int | None = None) -> None:
        if prune_after is not None and prune_after < 1:
            raise ValueError(f"prune_after must be at least 1, got {prune_after}")
        self.prune_after = prune_after
        self._nodes = {}
        self._missed = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, number: object) -> bool:
        return number in self._nodes

    def __iter__(self) -> t.Iterator[DucoNode]:
        return iter(sorted(self._nodes.values(), key=lambda x: x.number))

    def is_empty(self) -> bool:
        """True until the first discovery."""
        return not self._nodes

    def node(self, number: int) -> DucoNode:
        """Get a node by its number."""
        try:
            return self._nodes[number]
        except KeyError as ex:
            raise DucoUnknownNode(number) from ex

    def discover(
        self, infos: t.Sequence[NodeInfo], actions: t.Sequence[NodeActions]
    ) -> list[DucoNode]:
        """Build nodes from matching status and action lists.

        Nothing is added to the registry unless every node and its commands were built.
        """
        nodes: list[DucoNode] = []
        for info, node_actions in pair_reports(infos, actions):
            node = DucoNode.from_info(info)
            node.set_commands(node_actions)
            nodes.append(node)

        for node in nodes:
            self._add(node)
        LOGGER.info("Discovered %d node(s): %s", len(nodes), nodes)
        return nodes

    def unknown_numbers(self, infos: t.Iterable[NodeInfo]) -> list[int]:
        """Numbers of reported nodes that are not registered yet."""
        return [info.number for info in infos if info.number not in self._nodes]

    def merge(
        self,
        infos: t.Sequence[NodeInfo],
        actions: t.Sequence[NodeActions] = (),
    ) -> list[DucoNode]:
        """Merge status reports, returning the nodes that were added.

        Known nodes are updated in place, new nodes get their commands from actions when
        present there.
        """
        actions_by_number = {a.number: a for a in actions}
        added: list[DucoNode] = []
        for info in infos:
            node = self._nodes.get(info.number)
            if node is not None:
                node.merge_status(info)
                continue

            node = DucoNode.from_info(info)
            node_actions = actions_by_number.get(info.number)
            if node_actions is not None:
                node.set_commands(node_actions)
            else:
                LOGGER.warning("No actions reported for new node %d", info.number)
            added.append(node)

        for node in added:
            LOGGER.info("New node %s", node)
            self._add(node)
        self._track_missing({info.number for info in infos})
        return added

    def reset(self) -> None:
        """Force every field of every node to unknown."""
        for node in self._nodes.values():
            node.reset()

    def topics_that_need_updating(self) -> list[MqttData]:
        """Drain the changed fields of every node."""
        topics: list[MqttData] = []
        for node in self:
            topics.extend(node.topics_that_need_updating())
        return topics

    def _add(self, node: DucoNode) -> None:
        self._nodes[node.number] = node
        self._missed[node.number] = 0

    def _track_missing(self, reported: set[int]) -> None:
        for number in list(self._nodes):
            if number in reported:
                self._missed[number] = 0
                continue

            self._missed[number] += 1
            if self.prune_after is not None and self._missed[number] >= self.prune_after:
                LOGGER.info(
                    "Removing node %d, not reported for %d polls", number, self._missed[number]
                )
                del self._nodes[number]
                del self._missed[number]
