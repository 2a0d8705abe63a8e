"""Duco ventilation Command Line Interface."""

import argparse
import asyncio
import logging
import pprint

from aiocmd import aiocmd

from pyduco import Duco
from pyduco.api import DucoApiTransport
from pyduco.config import parse_log_level
from pyduco.exceptions import DucoConnectionException
from pyduco.modbus import DucoModbusTransport
from pyduco.node import DucoNode, SetEnum

LOGGER = logging.getLogger(__name__)


def _print_fields(title: str, items) -> None:
    print(title)
    print("-" * len(title))
    for name, tracked in sorted(items):
        print(f"    {name + ':': <40}{tracked.value}")
    print("")


class DucoNodeCLI(aiocmd.PromptToolkitCmd):
    """The node CLI interface."""

    node: DucoNode

    def __init__(self, duco: Duco, node: DucoNode) -> None:
        super().__init__()
        self.prompt = f"[{node.node_type}@{node.number}]>> "
        self.duco = duco
        self.node = node

    async def do_status(self) -> None:
        """Print the node status."""
        await self.duco.refresh(self.node)

        log = logging.getLogger()
        if log.isEnabledFor(logging.DEBUG):
            print("Raw data")
            print("--------")
            pprint.pprint(dict(self.node.status.items()))

        _print_fields(f"Node {self.node.number} ({self.node.node_type})", self.node.status.items())

    async def do_actions(self) -> None:
        """Print the commands the node accepts."""
        for command in self.node.commands:
            if isinstance(command, SetEnum):
                print(f"    {command.name: <25}{', '.join(command.values)}")
            else:
                print(f"    {command.name: <25}0, 1")

    async def do_command(self, name: str, value: str) -> None:
        """Send a command to the node, e.g. `command SetVentilationState Manual1`."""
        await self.duco.command(self.node.number, name, value)
        await self.do_status()


class DucoDeviceCLI(aiocmd.PromptToolkitCmd):
    """The ventilation device CLI interface."""

    def __init__(self, duco: Duco, name: str) -> None:
        super().__init__()
        self.prompt = f"[{name}]>> "
        self.duco = duco

    async def do_device(self) -> None:
        """Print the device status."""
        device = await self.duco.device()
        _print_fields("Device data", device.status.items())

    async def do_nodes(self) -> None:
        """Print the list of nodes."""
        for node in await self.duco.discover():
            print(f"    {node.number: <6}{node.node_type}")

    async def do_node(self, number: str) -> None:
        """Manage a node."""
        node = await self.duco.node(int(number))
        await DucoNodeCLI(self.duco, node).run()


class DucoRootCLI(aiocmd.PromptToolkitCmd):
    """CLI root context."""

    prompt = ">> "
    intro = 'Welcome to DucoCLI. Type "help" for available commands.'
    duco: Duco | None = None

    async def do_connect_api(
        self, host: str, ip_address: str | None = None, certificate: str | None = None
    ) -> None:
        """Connect to the connectivity board API."""
        transport = DucoApiTransport(host, ip_address=ip_address, certificate=certificate)
        await self._run(transport, host)

    async def do_connect_modbus(
        self, host: str = "192.168.0.200", port: str = "502", slave_id: str = "1"
    ) -> None:
        """Connect to the Modbus TCP interface."""
        transport = DucoModbusTransport(host, port=int(port), slave_id=int(slave_id))
        await self._run(transport, f"{host}:{port}")

    async def _run(self, transport: DucoApiTransport | DucoModbusTransport, name: str) -> None:
        if self.duco:
            raise DucoConnectionException("Already connected")
        self.duco = Duco(transport)
        try:
            await DucoDeviceCLI(self.duco, name).run()
        finally:
            await self.duco.close()
            self.duco = None

    async def do_set_log_level(self, level: str) -> None:
        "Set the log level: critical, fatal, error, warning, info or debug."
        logging.basicConfig()
        logging.getLogger().setLevel(parse_log_level(level))


async def run() -> None:
    """Run the async CLI."""
    await DucoRootCLI().run()


def main() -> None:
    """Entry point of the duco-cli command."""
    parser = argparse.ArgumentParser(description="Duco ventilation Command Line Interface")
    parser.parse_args()
    asyncio.run(run())


if __name__ == "__main__":
    main()
