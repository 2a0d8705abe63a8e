"""Routing of inbound command messages to nodes."""

from __future__ import annotations

import logging
import re

from pyduco.constants import COMMAND_SEGMENT
from pyduco.data_model import MqttData
from pyduco.exceptions import DucoInvalidTopic
from pyduco.node import ActionPerformer, DucoNode
from pyduco.registry import NodeRegistry

LOGGER = logging.getLogger(__name__)

NODE_NAME_PATTERN = re.compile(r"duco_node_([0-9]+)")


def node_number_for_node_name(name: str) -> int:
    """Extract the number from a "duco_node_<n>" topic segment."""
    match = NODE_NAME_PATTERN.fullmatch(name)
    if match is None:
        raise DucoInvalidTopic(f"Invalid node topic provided: {name}")
    return int(match.group(1))


def parse_command_topic(topic: str) -> tuple[int, str]:
    """Split "duco_node_<n>/cmnd/<command>" into node number and command name."""
    parts = topic.split("/")
    if len(parts) != 3 or parts[1] != COMMAND_SEGMENT or not parts[2]:
        raise DucoInvalidTopic(f"Invalid node topic provided: {topic} ({parts})")
    return node_number_for_node_name(parts[0]), parts[2]


class CommandRouter:
    """Validates inbound commands and dispatches them to the addressed node."""

    base_topic: str
    nodes: NodeRegistry
    performer: ActionPerformer

    def __init__(self, base_topic: str, nodes: NodeRegistry, performer: ActionPerformer) -> None:
        self.base_topic = base_topic
        self.nodes = nodes
        self.performer = performer

    def route(self, topic: str) -> tuple[DucoNode, str]:
        """Find the node and command addressed by a full topic."""
        prefix = f"{self.base_topic}/"
        if not topic.startswith(prefix):
            raise DucoInvalidTopic(f"Unexpected command path: {topic}")
        number, command = parse_command_topic(topic.removeprefix(prefix))
        return self.nodes.node(number), command

    async def dispatch(self, message: MqttData) -> DucoNode:
        """Execute the command carried by a message, returning the node it addressed."""
        node, command = self.route(message.topic)
        await node.process_command(command, message.payload, self.performer)
        return node
