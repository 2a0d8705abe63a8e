"""Bridge between the ventilation controller and the message bus."""

from __future__ import annotations

import asyncio
import logging
import typing as t
from dataclasses import dataclass

from pyduco.api import DucoApiTransport
from pyduco.backend import DucoBackend, create_backend
from pyduco.data_model import DeviceInfo, MqttData, NodeActions, NodeInfo
from pyduco.device import DucoDevice
from pyduco.exceptions import DucoException
from pyduco.hassdiscovery import device_documents, node_documents
from pyduco.modbus import DucoModbusTransport
from pyduco.mqtt import MqttConfig
from pyduco.node import DucoNode
from pyduco.registry import NodeRegistry
from pyduco.router import CommandRouter

LOGGER = logging.getLogger(__name__)

POLL_INTERVAL = 10.0


@dataclass
class DucoMqttBridgeConfig:
    """Bridge settings."""

    transport: DucoApiTransport | DucoModbusTransport
    mqtt: MqttConfig
    poll_interval: float = POLL_INTERVAL
    hass_discovery: bool = False
    prune_after: int | None = None


class MessageBus(t.Protocol):
    """Message bus consumed by the bridge."""

    async def publish_multiple(self, messages: t.Iterable[MqttData]) -> None:
        """Publish retained messages in order."""

    async def publish_online(self) -> None:
        """Mark the bridge online."""

    async def publish_offline(self) -> None:
        """Mark the bridge offline."""

    def messages(self) -> t.AsyncIterator[MqttData]:
        """Inbound command messages."""


@dataclass
class PollResult:
    """Everything fetched in one poll, applied only when every request succeeded."""

    device: DeviceInfo
    nodes: list[NodeInfo]
    actions: list[NodeActions] | None


async def _next_message(messages: t.AsyncIterator[MqttData]) -> MqttData | None:
    try:
        return await anext(messages)
    except StopAsyncIteration:
        return None


class DucoMqttBridge:
    """Polls the controller, publishes changed fields and executes inbound commands.

    All state is owned by the task running the bridge. A poll and a command are never
    handled concurrently.
    """

    backend: DucoBackend
    bus: MessageBus
    base_topic: str
    poll_interval: float
    hass_discovery: bool
    device: DucoDevice | None
    nodes: NodeRegistry
    router: CommandRouter

    def __init__(
        self,
        backend: DucoBackend,
        bus: MessageBus,
        base_topic: str,
        poll_interval: float = POLL_INTERVAL,
        hass_discovery: bool = False,
        prune_after: int | None = None,
    ) -> None:
        self.backend = backend
        self.bus = bus
        self.base_topic = base_topic
        self.poll_interval = poll_interval
        self.hass_discovery = hass_discovery
        self.device = None
        self.nodes = NodeRegistry(prune_after)
        self.router = CommandRouter(base_topic, self.nodes, backend)

    @classmethod
    def from_config(cls, config: DucoMqttBridgeConfig, bus: MessageBus) -> DucoMqttBridge:
        """Create a bridge and its backend from the configuration."""
        return cls(
            create_backend(config.transport),
            bus,
            config.mqtt.base_topic,
            poll_interval=config.poll_interval,
            hass_discovery=config.hass_discovery,
            prune_after=config.prune_after,
        )

    def _prefixed(self, messages: t.Iterable[MqttData]) -> list[MqttData]:
        return [MqttData(f"{self.base_topic}/{m.topic}", m.payload) for m in messages]

    async def fetch(self) -> PollResult:
        """Read the controller, actions are only fetched when new nodes need them."""
        device = await self.backend.get_device_info()
        nodes = await self.backend.get_nodes()
        actions = None
        if self.nodes.is_empty() or self.nodes.unknown_numbers(nodes):
            actions = await self.backend.get_node_actions()
        return PollResult(device, nodes, actions)

    def apply(self, result: PollResult) -> tuple[bool, list[DucoNode]]:
        """Merge a poll result, returns whether the device is new and the new nodes."""
        if self.nodes.is_empty():
            new_nodes = self.nodes.discover(result.nodes, result.actions or [])
        else:
            new_nodes = self.nodes.merge(result.nodes, result.actions or [])

        first_poll = self.device is None
        if self.device is None:
            self.device = DucoDevice.from_info(result.device)
        else:
            self.device.update_status(result.device)
        return first_poll, new_nodes

    def discovery_documents(self, first_poll: bool, new_nodes: list[DucoNode]) -> list[MqttData]:
        """Home Assistant documents for a new device and new nodes."""
        if not self.hass_discovery:
            return []

        documents: list[MqttData] = []
        if first_poll and self.device is not None:
            documents.extend(device_documents(self.device, self.base_topic))
        for node in new_nodes:
            documents.extend(node_documents(node, self.base_topic))
        return documents

    def changed_topics(self) -> list[MqttData]:
        """Drain the changed device and node fields, prefixed with the base topic."""
        topics: list[MqttData] = []
        if self.device is not None:
            topics.extend(self.device.drain_changed_fields())
        topics.extend(self.nodes.topics_that_need_updating())
        return self._prefixed(topics)

    async def poll(self) -> bool:
        """Poll the controller and publish the result, returns True on success.

        On failure every known field is forced to unknown and published, and the bridge
        is marked offline.
        """
        try:
            result = await self.fetch()
            first_poll, new_nodes = self.apply(result)
        except DucoException as ex:
            LOGGER.error("Failed to poll the ventilation device: %s", ex)
            self.reset()
            await self.bus.publish_multiple(self.changed_topics())
            await self.bus.publish_offline()
            return False

        await self.bus.publish_multiple(self.discovery_documents(first_poll, new_nodes))
        await self.bus.publish_multiple(self.changed_topics())
        await self.bus.publish_online()
        return True

    def reset(self) -> None:
        """Force the device and every node to unknown."""
        if self.device is not None:
            self.device.reset()
        self.nodes.reset()

    def mark_all_modified(self) -> None:
        """Publish every known field again on the next poll."""
        if self.device is not None:
            self.device.status.mark_all_modified()
        for node in self.nodes:
            node.status.mark_all_modified()

    async def handle_command(self, message: MqttData) -> bool:
        """Execute an inbound command and poll the result, returns True on success.

        A rejected or failed command is logged and dropped.
        """
        LOGGER.info("Command %s: %s", message.topic, message.payload)
        try:
            await self.router.dispatch(message)
        except DucoException as ex:
            LOGGER.error("Failed to process command %s: %s", message.topic, ex)
            return False

        # the device is assumed to have applied the write by the time it is read again
        await self.poll()
        return True

    async def run(self) -> None:
        """Serve polls and commands until the command stream ends or the task is cancelled."""
        loop = asyncio.get_running_loop()
        messages = aiter(self.bus.messages())
        next_message = asyncio.ensure_future(_next_message(messages))
        next_tick = loop.time()
        tick: asyncio.Future[None] | None = None

        try:
            while True:
                tick = asyncio.ensure_future(asyncio.sleep(max(0.0, next_tick - loop.time())))
                done, _ = await asyncio.wait(
                    {next_message, tick}, return_when=asyncio.FIRST_COMPLETED
                )

                if next_message in done:
                    tick.cancel()
                    message = next_message.result()
                    if message is None:
                        LOGGER.warning("Command stream closed")
                        return
                    await self.handle_command(message)
                    next_message = asyncio.ensure_future(_next_message(messages))
                    continue

                await self.poll()
                next_tick = max(next_tick + self.poll_interval, loop.time())
        finally:
            next_message.cancel()
            if tick is not None:
                tick.cancel()

    async def close(self) -> None:
        """Release the device transport."""
        await self.backend.close()
