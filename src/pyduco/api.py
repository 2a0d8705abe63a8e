"""HTTPS client for the Duco connectivity board API."""

from __future__ import annotations

import asyncio
import json
import logging
import ssl
import typing as t
from dataclasses import dataclass

import aiohttp

from pyduco.data_model import (
    DeviceInfo,
    NodeAction,
    NodeActionDescription,
    NodeActions,
    NodeInfo,
    StatusGroup,
    status_value,
)
from pyduco.exceptions import (
    DucoActionException,
    DucoConnectionException,
    DucoParseError,
    DucoTimeoutException,
)

LOGGER = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15.0

DEVICE_GROUPS = ("General", "HeatRecovery")


@dataclass
class DucoApiTransport:
    """Parameters for the HTTPS API transport."""

    host: str
    ip_address: str | None = None
    certificate: str | None = None
    timeout: float = REQUEST_TIMEOUT


def _load(json_data: bytes | str) -> dict[str, t.Any]:
    try:
        data = json.loads(json_data)
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        raise DucoParseError(f"Invalid JSON response: {err}") from err
    if not isinstance(data, dict):
        raise DucoParseError("Expected a JSON object")
    return data


def _nodes(data: dict[str, t.Any]) -> list[t.Any]:
    nodes = data.get("Nodes", [])
    if not isinstance(nodes, list):
        raise DucoParseError("Expected a Nodes array")
    return nodes


def _status_field(name: str, field: t.Any) -> t.Any:
    if not isinstance(field, dict) or "Val" not in field:
        raise DucoParseError(f"Field '{name}' has no value")
    return field["Val"]


def _status_group(name: str, group: t.Any) -> StatusGroup:
    if not isinstance(group, dict):
        raise DucoParseError(f"Group '{name}' is not an object")
    return {key: status_value(_status_field(key, field)) for key, field in group.items()}


def _node_number(value: t.Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise DucoParseError(f"Invalid node id {value!r}")
    return value


def parse_device_info(json_data: bytes | str) -> DeviceInfo:
    """Parse the /info response, flattening it to "<Top>/<Group>/<Field>" keys."""
    data = _load(json_data)

    info = DeviceInfo()
    for top in DEVICE_GROUPS:
        groups = data.get(top)
        if groups is None:
            continue
        if not isinstance(groups, dict):
            raise DucoParseError(f"Unexpected {top} object")
        for group, fields in groups.items():
            if not isinstance(fields, dict):
                raise DucoParseError(f"Unexpected {top}/{group} object")
            for key, field in fields.items():
                if isinstance(field, list):
                    continue
                value = _status_field(key, field)
                if isinstance(value, list):
                    continue
                info.general[f"{top}/{group}/{key}"] = status_value(value)
    return info


def parse_node_info(json_data: bytes | str) -> list[NodeInfo]:
    """Parse the /info/nodes response."""
    data = _load(json_data)

    nodes: list[NodeInfo] = []
    for node in _nodes(data):
        if not isinstance(node, dict):
            raise DucoParseError("Unexpected node object")
        if "Node" not in node:
            raise DucoParseError("Missing node id")
        number = _node_number(node["Node"])
        if "General" not in node:
            raise DucoParseError(f"Missing general object for node {number}")
        if "Ventilation" not in node:
            raise DucoParseError(f"Missing ventilation object for node {number}")

        sensor = node.get("Sensor")
        nodes.append(
            NodeInfo(
                number=number,
                general=_status_group("General", node["General"]),
                ventilation=_status_group("Ventilation", node["Ventilation"]),
                sensor=_status_group("Sensor", sensor) if sensor is not None else None,
            )
        )
    return nodes


def parse_node_actions(json_data: bytes | str) -> list[NodeActions]:
    """Parse the /action/nodes response."""
    data = _load(json_data)

    node_actions: list[NodeActions] = []
    for node in _nodes(data):
        try:
            number = _node_number(node["Node"])
            actions = [
                NodeActionDescription(
                    action=str(action["Action"]),
                    val_type=str(action["ValType"]),
                    values=[str(v) for v in action["Enum"]] if "Enum" in action else None,
                )
                for action in node["Actions"]
            ]
        except (KeyError, TypeError) as err:
            raise DucoParseError(f"Invalid node action description: {err}") from err
        node_actions.append(NodeActions(number, actions))
    return node_actions


def create_ssl_context(certificate: str | None) -> ssl.SSLContext | bool:
    """TLS settings for the board, the pinned bundle is the only trust root."""
    if certificate is None:
        LOGGER.warning("No certificate provided, disabling certificate validation")
        return False
    return ssl.create_default_context(cafile=certificate)


class DucoApiClient:
    """Client for the connectivity board HTTPS API."""

    transport: DucoApiTransport
    _ssl: ssl.SSLContext | bool
    _session: aiohttp.ClientSession | None

    def __init__(
        self,
        transport: DucoApiTransport,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.transport = transport
        self._ssl = create_ssl_context(transport.certificate)
        self._session = session
        self._owns_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        """The HTTP session, created on first use."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(
                    total=self.transport.timeout, connect=self.transport.timeout
                )
            )
            self._owns_session = True
        return self._session

    def _url(self, path: str) -> str:
        # the static address bypasses name resolution, the host name is kept for TLS
        address = self.transport.ip_address or self.transport.host
        return f"https://{address}{path}"

    def _request_kwargs(self) -> dict[str, t.Any]:
        kwargs: dict[str, t.Any] = {"ssl": self._ssl}
        if self.transport.ip_address:
            kwargs["headers"] = {"Host": self.transport.host}
            kwargs["server_hostname"] = self.transport.host
        return kwargs

    async def _get(self, path: str) -> bytes:
        LOGGER.debug("GET %s", path)
        try:
            async with self.session.get(self._url(path), **self._request_kwargs()) as resp:
                resp.raise_for_status()
                return await resp.read()
        except asyncio.TimeoutError as err:
            raise DucoTimeoutException(f"Timeout requesting {path}") from err
        except aiohttp.ClientError as err:
            raise DucoConnectionException(f"Failed to request {path}: {err}") from err

    async def get_device_info(self) -> DeviceInfo:
        """Get the global controller status."""
        return parse_device_info(await self._get("/info"))

    async def get_nodes(self) -> list[NodeInfo]:
        """Get the status of every node, sorted by node number."""
        nodes = parse_node_info(await self._get("/info/nodes"))
        return sorted(nodes, key=lambda x: x.number)

    async def get_node_actions(self) -> list[NodeActions]:
        """Get the actions of every node, sorted by node number."""
        actions = parse_node_actions(await self._get("/action/nodes"))
        return sorted(actions, key=lambda x: x.number)

    async def perform_action(self, node_number: int, action: NodeAction) -> None:
        """Execute an action on a node."""
        path = f"/action/nodes/{node_number}"
        LOGGER.debug("POST %s %s", path, action)
        try:
            async with self.session.post(
                self._url(path), json=action.to_json(), **self._request_kwargs()
            ) as resp:
                if resp.status >= 400:
                    raise DucoActionException(
                        f"Failed to perform node action {action.action}: HTTP {resp.status}",
                        status=resp.status,
                    )
        except asyncio.TimeoutError as err:
            raise DucoTimeoutException(f"Timeout performing node action {action.action}") from err
        except aiohttp.ClientError as err:
            raise DucoConnectionException(f"Failed to perform node action: {err}") from err

    async def close(self) -> None:
        """Close the internally owned HTTP session."""
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None
