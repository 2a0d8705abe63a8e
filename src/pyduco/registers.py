"""Register definitions for the Modbus generation of the controller.

Every node owns a block of 100 registers, a register of node n lives at
n * 100 + offset.
"""

from __future__ import annotations

import typing as t
from dataclasses import dataclass
from enum import Enum, Flag, IntEnum, auto

from pyduco.constants import (
    GENERAL,
    SENSOR,
    SET_IDENTIFY,
    SET_VENTILATION_STATE,
    VENTILATION,
    NodeType,
    VentilationPosition,
)
from pyduco.data_model import (
    UNKNOWN_VALUE,
    NodeActionDescription,
    NumberValue,
    StatusValue,
    StringValue,
)

# Input registers holding the node presence bitmap, 16 nodes per register.
NODE_BITMAP_ADDRESS = 10
NODE_BITMAP_REGISTERS = 5

NODE_REGISTER_BLOCK = 100


class InputRegister(IntEnum):
    """Read-only register offsets."""

    SYSTEM_TYPE = 0
    REMAINING_TIME_CURRENT_VENTILATION_MODE = 2
    FLOW_RATE_VS_TARGET_LEVEL = 3
    INDOOR_AIR_QUALITY_BASED_ON_RH = 4
    INDOOR_AIR_QUALITY_BASED_ON_CO2 = 5
    FILTER_TIME_REMAINING = 7


class HoldingRegister(IntEnum):
    """Read/write register offsets."""

    VENTILATION_POSITION = 0
    IDENTIFICATION = 1
    SUPPLY_TEMPERATURE_TARGET_ZONE_1 = 2
    SUPPLY_TEMPERATURE_TARGET_ZONE_2 = 3


class RegisterKind(Enum):
    """Modbus register table."""

    INPUT = auto()
    HOLDING = auto()


class RegisterAccess(Flag):
    """Register access flags."""

    READ = auto()
    WRITE = auto()


def system_type(value: int) -> StatusValue:
    """Decode the system type register."""
    node_type = NodeType.from_code(value)
    if node_type is None:
        return UNKNOWN_VALUE
    return StringValue(str(node_type))


def ventilation_position(value: int) -> StatusValue:
    """Decode the ventilation position register."""
    try:
        return StringValue(str(VentilationPosition(value)))
    except ValueError:
        return UNKNOWN_VALUE


@dataclass(frozen=True)
class NodeRegister:
    """A register of a node, published under group/field."""

    group: str
    field: str
    kind: RegisterKind
    offset: int
    access: RegisterAccess = RegisterAccess.READ
    result_adapter: t.Callable[[int], StatusValue] | None = None

    def address(self, node_number: int) -> int:
        """Absolute register address for a node."""
        return node_number * NODE_REGISTER_BLOCK + self.offset

    def decode(self, value: int | None) -> StatusValue:
        """Decode a raw register value, None when it could not be read."""
        if value is None:
            return UNKNOWN_VALUE
        if self.result_adapter:
            return self.result_adapter(value)
        return NumberValue(value)


SYSTEM_TYPE = NodeRegister(
    GENERAL, "Type", RegisterKind.INPUT, InputRegister.SYSTEM_TYPE, result_adapter=system_type
)
REMAINING_TIME = NodeRegister(
    VENTILATION,
    "TimeStateRemain",
    RegisterKind.INPUT,
    InputRegister.REMAINING_TIME_CURRENT_VENTILATION_MODE,
)
FLOW_LEVEL_TARGET = NodeRegister(
    VENTILATION, "FlowLvlTgt", RegisterKind.INPUT, InputRegister.FLOW_RATE_VS_TARGET_LEVEL
)
IAQ_RH = NodeRegister(
    SENSOR, "IaqRh", RegisterKind.INPUT, InputRegister.INDOOR_AIR_QUALITY_BASED_ON_RH
)
IAQ_CO2 = NodeRegister(
    SENSOR, "IaqCo2", RegisterKind.INPUT, InputRegister.INDOOR_AIR_QUALITY_BASED_ON_CO2
)
FILTER_TIME_REMAINING = NodeRegister(
    VENTILATION, "TimeFilterRemain", RegisterKind.INPUT, InputRegister.FILTER_TIME_REMAINING
)
VENTILATION_POSITION = NodeRegister(
    VENTILATION,
    "State",
    RegisterKind.HOLDING,
    HoldingRegister.VENTILATION_POSITION,
    RegisterAccess.READ | RegisterAccess.WRITE,
    result_adapter=ventilation_position,
)
IDENTIFICATION = NodeRegister(
    GENERAL,
    "Identify",
    RegisterKind.HOLDING,
    HoldingRegister.IDENTIFICATION,
    RegisterAccess.READ | RegisterAccess.WRITE,
)
SUPPLY_TEMPERATURE_TARGET_ZONE_1 = NodeRegister(
    VENTILATION,
    "TempSupTgtZone1",
    RegisterKind.HOLDING,
    HoldingRegister.SUPPLY_TEMPERATURE_TARGET_ZONE_1,
    RegisterAccess.READ | RegisterAccess.WRITE,
)
SUPPLY_TEMPERATURE_TARGET_ZONE_2 = NodeRegister(
    VENTILATION,
    "TempSupTgtZone2",
    RegisterKind.HOLDING,
    HoldingRegister.SUPPLY_TEMPERATURE_TARGET_ZONE_2,
    RegisterAccess.READ | RegisterAccess.WRITE,
)

_VALVE_REGISTERS = (SYSTEM_TYPE, REMAINING_TIME, FLOW_LEVEL_TARGET, VENTILATION_POSITION)

NODE_REGISTERS: dict[NodeType, tuple[NodeRegister, ...]] = {
    NodeType.DUCO_BOX: (
        SYSTEM_TYPE,
        FLOW_LEVEL_TARGET,
        FILTER_TIME_REMAINING,
        VENTILATION_POSITION,
        SUPPLY_TEMPERATURE_TARGET_ZONE_1,
        SUPPLY_TEMPERATURE_TARGET_ZONE_2,
    ),
    NodeType.CO2_ROOM_SENSOR: (SYSTEM_TYPE, IAQ_CO2, VENTILATION_POSITION, IDENTIFICATION),
    NodeType.HUMIDITY_ROOM_SENSOR: (SYSTEM_TYPE, IAQ_RH, VENTILATION_POSITION, IDENTIFICATION),
    NodeType.SENSORLESS_CONTROL_VALVE: _VALVE_REGISTERS,
    NodeType.HUMIDITY_CONTROL_VALVE: _VALVE_REGISTERS,
    NodeType.CO2_CONTROL_VALVE: _VALVE_REGISTERS,
    NodeType.CO2_RH_CONTROL_VALVE: _VALVE_REGISTERS,
}


def node_numbers_from_bitmap(registers: t.Sequence[int]) -> list[int]:
    """Decode the node presence bitmap.

    Bit b of register i set means node i * 16 + b is present.
    """
    numbers: list[int] = []
    for index, value in enumerate(registers):
        for bit in range(16):
            if value & (1 << bit):
                numbers.append(index * 16 + bit)
    return numbers


def registers_for_type(node_type: NodeType) -> tuple[NodeRegister, ...]:
    """Registers polled for a node type, at least its system type."""
    return NODE_REGISTERS.get(node_type, (SYSTEM_TYPE,))


def actions_for_type(node_type: NodeType) -> list[NodeActionDescription]:
    """Actions a node type supports through its writable registers."""
    registers = registers_for_type(node_type)
    actions: list[NodeActionDescription] = []
    if VENTILATION_POSITION in registers:
        actions.append(
            NodeActionDescription(
                SET_VENTILATION_STATE, "Enum", [str(p) for p in VentilationPosition]
            )
        )
    if IDENTIFICATION in registers:
        actions.append(NodeActionDescription(SET_IDENTIFY, "Boolean"))
    return actions


def register_for_action(action_name: str) -> NodeRegister:
    """The holding register written by an action."""
    if action_name == SET_VENTILATION_STATE:
        return VENTILATION_POSITION
    if action_name == SET_IDENTIFY:
        return IDENTIFICATION
    raise KeyError(action_name)
