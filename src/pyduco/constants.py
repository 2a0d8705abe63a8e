"""Constants and data types used by this library."""

from enum import IntEnum

VERSION = "1.0.0"

UNKNOWN = "UNKNOWN"

GENERAL = "General"
VENTILATION = "Ventilation"
SENSOR = "Sensor"
HEAT_RECOVERY = "HeatRecovery"

NODE_TOPIC_PREFIX = "duco_node_"
COMMAND_SEGMENT = "cmnd"
STATE_TOPIC = "state"
ONLINE_PAYLOAD = "online"
OFFLINE_PAYLOAD = "offline"

SET_VENTILATION_STATE = "SetVentilationState"
SET_IDENTIFY = "SetIdentify"


class NodeType(IntEnum):
    """Classification of a node attached to the ventilation controller.

    The value is the system type code reported in the node's first input register.
    """

    UNKNOWN = 0
    REMOTE_CONTROL_RF_BAT = 8
    REMOTE_CONTROL_RF_WIRED = 9
    HUMIDITY_ROOM_SENSOR = 10
    CO2_ROOM_SENSOR = 12
    SENSORLESS_CONTROL_VALVE = 13
    HUMIDITY_CONTROL_VALVE = 14
    CO2_CONTROL_VALVE = 16
    DUCO_BOX = 17
    SWITCH_SENSOR = 18
    CONTROL_UNIT = 27
    CO2_RH_CONTROL_VALVE = 28
    REMOTE_CONTROL_SUN_CONTROL_RF_WIRED = 29
    REMOTE_CONTROL_NIGHTVENT_RF_WIRED = 30
    EXTERNAL_MULTI_ZONE_VALVE = 31
    HUMIDITY_BOX_SENSOR = 35
    CO2_BOX_SENSORS = 37
    DUCO_WEATHER_STATION = 39

    def __str__(self) -> str:
        return _API_NAMES.get(self, self.name.lower())

    @classmethod
    def parse(cls, value: str) -> "NodeType":
        """Instantiate by the type name reported by the device API.

        Unrecognised names map to UNKNOWN, new accessory types must not break discovery.
        """
        for node_type, name in _API_NAMES.items():
            if value.casefold() == name.casefold():
                return node_type
        for node_type in cls:
            if value.casefold() == node_type.name.casefold():
                return node_type
        return cls.UNKNOWN

    @classmethod
    def from_code(cls, code: int) -> "NodeType | None":
        """Instantiate by system type register code, None if not recognised."""
        try:
            return cls(code)
        except ValueError:
            return None


_API_NAMES: dict[NodeType, str] = {
    NodeType.DUCO_BOX: "BOX",
    NodeType.CO2_ROOM_SENSOR: "UCCO2",
    NodeType.HUMIDITY_ROOM_SENSOR: "UCRH",
    NodeType.REMOTE_CONTROL_RF_BAT: "UCBAT",
    NodeType.REMOTE_CONTROL_RF_WIRED: "UC",
    NodeType.CO2_CONTROL_VALVE: "VLV",
    NodeType.HUMIDITY_CONTROL_VALVE: "VLVRH",
    NodeType.CO2_RH_CONTROL_VALVE: "VLVCO2RH",
    NodeType.SWITCH_SENSOR: "SWITCH",
    NodeType.HUMIDITY_BOX_SENSOR: "BSRH",
    NodeType.CO2_BOX_SENSORS: "BSCO2",
}


class VentilationPosition(IntEnum):
    """Ventilation position as stored in the ventilation position holding register."""

    AUTO = 0
    MANUAL_1 = 4
    MANUAL_2 = 5
    MANUAL_3 = 6
    NOT_AT_HOME = 7
    PERMANENT_1 = 8
    PERMANENT_2 = 9
    PERMANENT_3 = 10

    def __str__(self) -> str:
        if self.value == self.AUTO:
            return "Auto"
        if self.value == self.MANUAL_1:
            return "Manual1"
        if self.value == self.MANUAL_2:
            return "Manual2"
        if self.value == self.MANUAL_3:
            return "Manual3"
        if self.value == self.NOT_AT_HOME:
            return "NotAtHome"
        if self.value == self.PERMANENT_1:
            return "Permanent1"
        if self.value == self.PERMANENT_2:
            return "Permanent2"
        if self.value == self.PERMANENT_3:
            return "Permanent3"
        raise ValueError(f"Unknown ventilation position {self.value}")

    @classmethod
    def parse(cls, value: str) -> "VentilationPosition":
        """Instantiate by string."""
        for position in cls:
            if value.casefold() == str(position).casefold():
                return position
        raise ValueError(f"Unknown ventilation position {value}")
