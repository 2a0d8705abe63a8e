"""Shared fixtures and fakes for the pyduco test suite."""

import asyncio
import logging
import sys
import typing as t
from pathlib import Path

import pytest

from pyduco.api import parse_device_info, parse_node_actions, parse_node_info
from pyduco.data_model import DeviceInfo, MqttData, NodeAction, NodeActions, NodeInfo
from pyduco.exceptions import DucoConnectionException

logging.basicConfig(stream=sys.stdout, level=logging.DEBUG, format="%(levelname)s - %(message)s")

DATA_DIR = Path(__file__).parent / "data"


def load_data(name: str) -> bytes:
    """Read a captured device response."""
    return (DATA_DIR / name).read_bytes()


class FakeBackend:
    """Backend serving canned reports and recording performed actions."""

    def __init__(
        self,
        device: DeviceInfo,
        nodes: list[NodeInfo],
        actions: list[NodeActions],
    ) -> None:
        self.device = device
        self.nodes = nodes
        self.actions = actions
        self.performed: list[tuple[int, NodeAction]] = []
        self.failing = False
        self.action_requests = 0
        self.closed = False

    def _check(self) -> None:
        if self.failing:
            raise DucoConnectionException("device unreachable")

    async def get_device_info(self) -> DeviceInfo:
        self._check()
        return self.device

    async def get_nodes(self) -> list[NodeInfo]:
        self._check()
        return sorted(self.nodes, key=lambda x: x.number)

    async def get_node_actions(self) -> list[NodeActions]:
        self._check()
        self.action_requests += 1
        return sorted(self.actions, key=lambda x: x.number)

    async def perform_action(self, node_number: int, action: NodeAction) -> None:
        self._check()
        self.performed.append((node_number, action))

    async def close(self) -> None:
        self.closed = True


class FakeBus:
    """Message bus recording publications, with edge triggered availability."""

    def __init__(self, inbound: t.Iterable[MqttData] = (), delay: float = 0.0) -> None:
        self.published: list[MqttData] = []
        self.online = False
        self.inbound = list(inbound)
        self.delay = delay

    async def publish_multiple(self, messages: t.Iterable[MqttData]) -> None:
        self.published.extend(messages)

    async def publish_online(self) -> None:
        if not self.online:
            self.published.append(MqttData("duco/state", "online"))
            self.online = True

    async def publish_offline(self) -> None:
        if self.online:
            self.published.append(MqttData("duco/state", "offline"))
            self.online = False

    async def messages(self) -> t.AsyncIterator[MqttData]:
        for message in self.inbound:
            await asyncio.sleep(self.delay)
            yield message

    def take(self) -> list[MqttData]:
        """Return and forget the recorded publications."""
        published, self.published = self.published, []
        return published

    def topics(self) -> dict[str, str]:
        """Recorded publications as a topic to payload map, later ones win."""
        return {m.topic: m.payload for m in self.published}


@pytest.fixture
def device_info() -> DeviceInfo:
    return parse_device_info(load_data("info.json"))


@pytest.fixture
def node_infos() -> list[NodeInfo]:
    return parse_node_info(load_data("nodes.json"))


@pytest.fixture
def node_actions() -> list[NodeActions]:
    return parse_node_actions(load_data("actions.json"))


@pytest.fixture
def backend(device_info, node_infos, node_actions) -> FakeBackend:
    return FakeBackend(device_info, node_infos, node_actions)
