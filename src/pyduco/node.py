"""Node attached to the ventilation controller."""

from __future__ import annotations

import logging
import typing as t
from dataclasses import dataclass

from pyduco.constants import GENERAL, NODE_TOPIC_PREFIX, SENSOR, VENTILATION, NodeType
from pyduco.data_model import (
    MqttData,
    NodeAction,
    NodeActionDescription,
    NodeActions,
    NodeBoolAction,
    NodeEnumAction,
    NodeInfo,
    StringValue,
)
from pyduco.exceptions import (
    DucoCommandNotFound,
    DucoInvalidCommandValue,
    DucoNodeNumberMismatch,
    DucoParseError,
    DucoUnknownCommand,
)
from pyduco.fields import StatusFields

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SetBoolean:
    """Command switching a node value on or off."""

    name: str


@dataclass(frozen=True)
class SetEnum:
    """Command selecting one of a fixed set of values."""

    name: str
    values: tuple[str, ...]


type NodeCommand = SetBoolean | SetEnum


class ActionPerformer(t.Protocol):
    """Device transport able to execute node actions."""

    async def perform_action(self, node_number: int, action: NodeAction) -> None:
        """Send the action to the node."""


def command_from_description(description: NodeActionDescription) -> NodeCommand:
    """Convert an action description reported by the device to a command."""
    if description.val_type == "Boolean":
        return SetBoolean(description.action)
    if description.val_type == "Enum":
        if description.values is None:
            raise DucoParseError(f"Enum values missing for action '{description.action}'")
        return SetEnum(description.action, tuple(description.values))
    raise DucoParseError(
        f"Unsupported action type '{description.val_type}' for action '{description.action}'"
    )


def node_topic(number: int) -> str:
    """Topic segment addressing a node."""
    return f"{NODE_TOPIC_PREFIX}{number}"


class DucoNode:
    """A physical device attached to the controller.

    The node number is assigned by the controller and never changes for the lifetime of
    the instance, neither does the node type.
    """

    _number: int
    _node_type: NodeType
    status: StatusFields
    commands: list[NodeCommand]

    def __init__(self, node_type: NodeType, number: int) -> None:
        """Initialize the node instance."""
        self._number = int(number)
        self._node_type = node_type
        self.status = StatusFields()
        self.commands = []

    def __repr__(self) -> str:
        return f"DucoNode({self._node_type!s}, {self._number})"

    @classmethod
    def create_for_type(cls, node_type: NodeType, number: int) -> DucoNode:
        """Create an empty node of the given type."""
        return cls(node_type, number)

    @classmethod
    def from_info(cls, info: NodeInfo) -> DucoNode:
        """Create a node from its first status report, classified by General/Type."""
        type_value = info.general.get("Type")
        if type_value is None:
            raise DucoParseError(f"Type missing for node {info.number}")
        if not isinstance(type_value, StringValue):
            raise DucoParseError(f"Type of node {info.number} is not a string value")

        node_type = NodeType.parse(type_value.text)
        if node_type == NodeType.UNKNOWN:
            LOGGER.warning("Node %d has unsupported type '%s'", info.number, type_value.text)

        node = cls.create_for_type(node_type, info.number)
        node.merge_status(info)
        return node

    @property
    def number(self) -> int:
        """The node number assigned by the controller."""
        return self._number

    @property
    def node_type(self) -> NodeType:
        """The node classification."""
        return self._node_type

    def merge_status(self, info: NodeInfo) -> None:
        """Merge a status report into the node."""
        if info.number != self._number:
            raise DucoNodeNumberMismatch(self._number, info.number)

        self.status.merge(info.general, GENERAL)
        self.status.merge(info.ventilation, VENTILATION)
        if info.sensor is not None:
            self.status.merge(info.sensor, SENSOR)

    def set_commands(self, actions: NodeActions | t.Iterable[NodeActionDescription]) -> None:
        """Replace the command list.

        Either every description converts or the previous list is kept.
        """
        if isinstance(actions, NodeActions):
            if actions.number != self._number:
                raise DucoNodeNumberMismatch(self._number, actions.number)
            descriptions: t.Iterable[NodeActionDescription] = actions.actions
        else:
            descriptions = actions

        self.commands = [command_from_description(d) for d in descriptions]

    def valid_values_for(self, command_name: str) -> tuple[str, ...]:
        """Get the legal values of an enumerated command."""
        for command in self.commands:
            if isinstance(command, SetEnum) and command.name == command_name:
                return command.values
        raise DucoCommandNotFound(f"No valid values found for action '{command_name}'")

    def find_command(self, command_name: str) -> NodeCommand:
        """Get a declared command by name."""
        for command in self.commands:
            if command.name == command_name:
                return command
        raise DucoUnknownCommand(f"Invalid action for node {self._number}: '{command_name}'")

    def verify_enum_action_is_valid(self, action: NodeEnumAction) -> None:
        """Check the action names a declared enum command and one of its values."""
        for command in self.commands:
            if isinstance(command, SetEnum) and command.name == action.action:
                if action.val not in command.values:
                    raise DucoInvalidCommandValue(
                        f"Invalid value for action '{action.action}': '{action.val}'"
                    )
                return
        raise DucoUnknownCommand(f"Invalid action for node {self._number}: '{action.action}'")

    def verify_bool_action_is_valid(self, action: NodeBoolAction) -> None:
        """Check the action names a declared boolean command."""
        for command in self.commands:
            if isinstance(command, SetBoolean) and command.name == action.action:
                return
        raise DucoUnknownCommand(f"Invalid action for node {self._number}: '{action.action}'")

    def action_for_command(self, command_name: str, payload: str) -> NodeAction:
        """Validate a command and its raw payload, building the device action."""
        command = self.find_command(command_name)
        if isinstance(command, SetBoolean):
            if payload not in ("1", "0"):
                raise DucoInvalidCommandValue(
                    f"Invalid value for action '{command_name}': '{payload}'"
                )
            bool_action = NodeBoolAction(command_name, payload == "1")
            self.verify_bool_action_is_valid(bool_action)
            return bool_action

        enum_action = NodeEnumAction(command_name, payload)
        self.verify_enum_action_is_valid(enum_action)
        return enum_action

    async def process_command(
        self, command_name: str, payload: str, performer: ActionPerformer
    ) -> None:
        """Validate a command and send it to the device.

        Validation failures never reach the transport. Transport errors propagate
        unchanged and leave the node status untouched.
        """
        action = self.action_for_command(command_name, payload)
        LOGGER.info("Node %d: %s -> %s", self._number, action.action, action.val)
        await performer.perform_action(self._number, action)

    def topics_that_need_updating(self) -> list[MqttData]:
        """Drain the changed fields as "duco_node_<n>/<group>/<field>" messages."""
        return self.status.drain(f"{node_topic(self._number)}/")

    def reset(self) -> None:
        """Force every field to unknown."""
        self.status.reset()
