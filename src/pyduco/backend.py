"""Device backends, one per controller generation."""

from __future__ import annotations

import logging
import typing as t

from pyduco.api import DucoApiClient, DucoApiTransport
from pyduco.constants import GENERAL, SENSOR, VENTILATION, NodeType, VentilationPosition
from pyduco.data_model import (
    DeviceInfo,
    NodeAction,
    NodeActions,
    NodeBoolAction,
    NodeEnumAction,
    NodeInfo,
    StatusGroup,
)
from pyduco.exceptions import (
    DucoInvalidArgumentException,
    DucoInvalidCommandValue,
    DucoReadException,
    DucoUnknownCommand,
)
from pyduco.modbus import AsyncDucoModbusClient, DucoModbusTransport
from pyduco.registers import (
    NODE_BITMAP_ADDRESS,
    NODE_BITMAP_REGISTERS,
    SYSTEM_TYPE,
    NodeRegister,
    RegisterAccess,
    RegisterKind,
    actions_for_type,
    node_numbers_from_bitmap,
    register_for_action,
    registers_for_type,
    system_type,
)

LOGGER = logging.getLogger(__name__)


class DucoBackend(t.Protocol):
    """Device transport consumed by the bridge."""

    async def get_device_info(self) -> DeviceInfo:
        """Get the global controller status."""

    async def get_nodes(self) -> list[NodeInfo]:
        """Get the status of every node, sorted by node number."""

    async def get_node_actions(self) -> list[NodeActions]:
        """Get the actions of every node, sorted by node number."""

    async def perform_action(self, node_number: int, action: NodeAction) -> None:
        """Execute an action on a node."""

    async def close(self) -> None:
        """Release the transport."""


class DucoModbusBackend:
    """Register based backend.

    Nodes are discovered from the presence bitmap on every poll and classified by their
    system type register. Unrecognised type codes are skipped.
    """

    client: AsyncDucoModbusClient
    _node_types: dict[int, NodeType]

    def __init__(self, client: AsyncDucoModbusClient) -> None:
        self.client = client
        self._node_types = {}

    async def discover(self) -> dict[int, NodeType]:
        """Read the node bitmap and classify every present node."""
        bitmap = await self.client.read_input_registers(
            NODE_BITMAP_ADDRESS, NODE_BITMAP_REGISTERS
        )
        node_types: dict[int, NodeType] = {}
        for number in node_numbers_from_bitmap(bitmap):
            code = await self.client.read_input_register(SYSTEM_TYPE.address(number))
            node_type = NodeType.from_code(code)
            if node_type is None:
                LOGGER.warning("Skipping node %d with unknown type code %d", number, code)
                continue
            node_types[number] = node_type
        self._node_types = node_types
        return node_types

    async def _read(self, register: NodeRegister, number: int) -> int | None:
        address = register.address(number)
        try:
            if register.kind == RegisterKind.INPUT:
                return await self.client.read_input_register(address)
            return await self.client.read_holding_register(address)
        except DucoReadException as ex:
            LOGGER.warning("Failed to read register %s of node %d: %s", register.field, number, ex)
            return None

    async def _node_info(self, number: int, node_type: NodeType) -> NodeInfo:
        groups: dict[str, StatusGroup] = {GENERAL: {}, VENTILATION: {}}
        groups[GENERAL][SYSTEM_TYPE.field] = system_type(node_type.value)
        for register in registers_for_type(node_type):
            if register is SYSTEM_TYPE:
                continue
            value = register.decode(await self._read(register, number))
            groups.setdefault(register.group, {})[register.field] = value

        return NodeInfo(
            number=number,
            general=groups[GENERAL],
            ventilation=groups[VENTILATION],
            sensor=groups.get(SENSOR),
        )

    async def get_device_info(self) -> DeviceInfo:
        """The register map has no global controller status."""
        return DeviceInfo()

    async def get_nodes(self) -> list[NodeInfo]:
        """Discover the nodes and read their registers."""
        node_types = await self.discover()
        return [await self._node_info(n, node_types[n]) for n in sorted(node_types)]

    async def get_node_actions(self) -> list[NodeActions]:
        """Actions of the nodes found by the last discovery."""
        if not self._node_types:
            await self.discover()
        return [
            NodeActions(number, actions_for_type(self._node_types[number]))
            for number in sorted(self._node_types)
        ]

    async def perform_action(self, node_number: int, action: NodeAction) -> None:
        """Translate the action to a holding register write."""
        try:
            register = register_for_action(action.action)
        except KeyError as ex:
            raise DucoUnknownCommand(f"No register for action '{action.action}'") from ex
        if RegisterAccess.WRITE not in register.access:
            raise DucoInvalidArgumentException(f"Register {register.field} is not writable")

        if isinstance(action, NodeBoolAction):
            value = int(action.val)
        elif isinstance(action, NodeEnumAction):
            try:
                value = VentilationPosition.parse(action.val).value
            except ValueError as ex:
                raise DucoInvalidCommandValue(str(ex)) from ex
        await self.client.write_holding_register(register.address(node_number), value)

    async def close(self) -> None:
        """Close the Modbus connection."""
        self.client.close()


def create_backend(transport: DucoApiTransport | DucoModbusTransport) -> DucoBackend:
    """Create the backend matching the transport."""
    if isinstance(transport, DucoApiTransport):
        return DucoApiClient(transport)
    if isinstance(transport, DucoModbusTransport):
        return DucoModbusBackend(AsyncDucoModbusClient.from_transport(transport))
    raise DucoInvalidArgumentException(f"Unknown transport {transport}")
