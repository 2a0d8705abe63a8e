"""Data model shared by the device transports and the bridge."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pyduco.constants import UNKNOWN
from pyduco.exceptions import DucoParseError


@dataclass(frozen=True)
class StringValue:
    """A string value reported by the device."""

    text: str

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class NumberValue:
    """An integer value reported by the device."""

    number: int

    def __str__(self) -> str:
        return f"{self.number}"


# Dataclass equality compares the class first, so a StringValue is never equal to a
# NumberValue, even when both render to the same text.
type StatusValue = StringValue | NumberValue

UNKNOWN_VALUE = StringValue(UNKNOWN)


def status_value(raw: Any) -> StatusValue:
    """Convert a decoded JSON value to a status value."""
    # bool is an int subclass, reject it explicitly
    if isinstance(raw, bool):
        raise DucoParseError(f"Unsupported status value {raw!r}")
    if isinstance(raw, int):
        return NumberValue(raw)
    if isinstance(raw, str):
        return StringValue(raw)
    raise DucoParseError(f"Expected an integer or a string value, got {raw!r}")


type StatusGroup = dict[str, StatusValue]


@dataclass
class DeviceInfo:
    """Global controller status, keyed by "<Top>/<Group>/<Field>"."""

    general: StatusGroup = field(default_factory=dict)


@dataclass
class NodeInfo:
    """Status report for a single node."""

    number: int
    general: StatusGroup
    ventilation: StatusGroup
    sensor: StatusGroup | None = None


@dataclass
class NodeActionDescription:
    """An action a node declares it accepts."""

    action: str
    val_type: str
    values: list[str] | None = None


@dataclass
class NodeActions:
    """The actions declared by a single node."""

    number: int
    actions: list[NodeActionDescription]


@dataclass(frozen=True)
class NodeEnumAction:
    """Request to set an enumerated node value."""

    action: str
    val: str

    def to_json(self) -> dict[str, Any]:
        """Request body understood by the device API."""
        return {"Action": self.action, "Val": self.val}


@dataclass(frozen=True)
class NodeBoolAction:
    """Request to set a boolean node value."""

    action: str
    val: bool

    def to_json(self) -> dict[str, Any]:
        """Request body understood by the device API."""
        return {"Action": self.action, "Val": self.val}


type NodeAction = NodeEnumAction | NodeBoolAction


@dataclass(frozen=True, order=True)
class MqttData:
    """A topic/payload pair exchanged on the message bus."""

    topic: str
    payload: str
