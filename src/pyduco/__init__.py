"""The Duco ventilation API entrypoint."""

import logging

from pyduco.api import DucoApiClient, DucoApiTransport
from pyduco.backend import DucoBackend, DucoModbusBackend, create_backend
from pyduco.bridge import DucoMqttBridge, DucoMqttBridgeConfig
from pyduco.constants import NodeType, VentilationPosition
from pyduco.data_model import DeviceInfo, MqttData, NodeActions, NodeInfo
from pyduco.device import DucoDevice
from pyduco.exceptions import DucoException
from pyduco.modbus import AsyncDucoModbusClient, DucoModbusTransport
from pyduco.mqtt import DucoMqttConnection, MqttConfig
from pyduco.node import DucoNode
from pyduco.registry import NodeRegistry

LOGGER = logging.getLogger(__name__)


class Duco:
    """The Duco ventilation API."""

    backend: DucoBackend
    nodes: NodeRegistry

    def __init__(self, transport: DucoApiTransport | DucoModbusTransport) -> None:
        """Initialize the API instance."""
        self.backend = create_backend(transport)
        self.nodes = NodeRegistry()

    async def device(self) -> DucoDevice:
        """Get the global controller status."""
        return DucoDevice.from_info(await self.backend.get_device_info())

    async def discover(self) -> list[DucoNode]:
        """Discover the nodes, only the first call queries the device."""
        if self.nodes.is_empty():
            self.nodes.discover(
                await self.backend.get_nodes(), await self.backend.get_node_actions()
            )
        return list(self.nodes)

    async def node(self, number: int) -> DucoNode:
        """Get a node by its number."""
        await self.discover()
        return self.nodes.node(number)

    async def refresh(self, node: DucoNode) -> DucoNode:
        """Merge the latest status report of a node."""
        for info in await self.backend.get_nodes():
            if info.number == node.number:
                node.merge_status(info)
        return node

    async def command(self, number: int, command: str, value: str) -> None:
        """Validate a command and send it to a node."""
        node = await self.node(number)
        await node.process_command(command, value, self.backend)

    async def close(self) -> None:
        """Release the device transport."""
        await self.backend.close()


__all__ = [
    "AsyncDucoModbusClient",
    "DeviceInfo",
    "Duco",
    "DucoApiClient",
    "DucoApiTransport",
    "DucoBackend",
    "DucoDevice",
    "DucoException",
    "DucoModbusBackend",
    "DucoModbusTransport",
    "DucoMqttBridge",
    "DucoMqttBridgeConfig",
    "DucoMqttConnection",
    "DucoNode",
    "MqttConfig",
    "MqttData",
    "NodeActions",
    "NodeInfo",
    "NodeRegistry",
    "NodeType",
    "VentilationPosition",
]
