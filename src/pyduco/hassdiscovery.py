"""Home Assistant MQTT discovery documents."""

from __future__ import annotations

import json
import logging
import typing as t
from dataclasses import asdict, dataclass, field

from pyduco.constants import (
    GENERAL,
    SENSOR,
    SET_IDENTIFY,
    SET_VENTILATION_STATE,
    STATE_TOPIC,
    VENTILATION,
    VERSION,
    NodeType,
)
from pyduco.data_model import MqttData
from pyduco.device import DucoDevice
from pyduco.node import DucoNode, node_topic

LOGGER = logging.getLogger(__name__)

HASS_DISCOVERY_TOPIC = "homeassistant"
FILTER_TIME_REMAINING_TOPIC = "HeatRecovery/General/TimeFilterRemain"


@dataclass
class Origin:
    """Software publishing the entities."""

    name: str = "pyduco"
    sw: str = VERSION
    url: str = "https://github.com/dirkvdb/duco2mqtt"


@dataclass
class Entity:
    """Fields common to every entity."""

    name: str
    obj_id: str
    unique_id: str
    stat_t: str
    avty_t: str
    origin: Origin = field(default_factory=Origin)
    icon: str | None = None


@dataclass
class Sensor(Entity):
    """Read-only value."""

    state_class: str | None = None
    unit_of_measurement: str | None = None


@dataclass
class Select(Entity):
    """Value picked from a list of options."""

    cmd_t: str = ""
    options: list[str] = field(default_factory=list)


@dataclass
class Light(Entity):
    """On/off value."""

    cmd_t: str = ""
    payload_on: str = "1"
    payload_off: str = "0"


def _document(component: str, entity: Entity) -> MqttData:
    payload = {k: v for k, v in asdict(entity).items() if v is not None}
    return MqttData(
        f"{HASS_DISCOVERY_TOPIC}/{component}/{entity.unique_id}/config", json.dumps(payload)
    )


def _entity_args(base_topic: str, state_topic: str, unique_id: str, name: str) -> dict[str, str]:
    return {
        "name": name,
        "obj_id": unique_id,
        "unique_id": unique_id,
        "stat_t": f"{base_topic}/{state_topic}",
        "avty_t": f"{base_topic}/{STATE_TOPIC}",
    }


def _node_args(node: DucoNode, base_topic: str, status: str, unique: str) -> dict[str, str]:
    prefix = node_topic(node.number)
    return _entity_args(base_topic, f"{prefix}/{status}", f"{prefix}_{unique}", status)


def _command_topic(node: DucoNode, base_topic: str, command: str) -> str:
    return f"{base_topic}/{node_topic(node.number)}/cmnd/{command}"


def filter_days_remaining(base_topic: str) -> MqttData:
    """Sensor for the remaining filter time of the controller."""
    sensor = Sensor(
        **_entity_args(
            base_topic,
            FILTER_TIME_REMAINING_TOPIC,
            "duco_filter_days_remaining",
            "Filter days remaining",
        ),
        state_class="measurement",
        unit_of_measurement="d",
        icon="mdi:air-filter",
    )
    return _document("sensor", sensor)


def ventilation_state(node: DucoNode, base_topic: str) -> MqttData:
    """Select for the ventilation state, the options are the node's enum values."""
    select = Select(
        **_node_args(node, base_topic, f"{VENTILATION}/State", "ventilation_state"),
        cmd_t=_command_topic(node, base_topic, SET_VENTILATION_STATE),
        options=list(node.valid_values_for(SET_VENTILATION_STATE)),
        icon="mdi:fan",
    )
    return _document("select", select)


def flow_level_target(node: DucoNode, base_topic: str) -> MqttData:
    """Sensor for the target flow level."""
    sensor = Sensor(
        **_node_args(
            node, base_topic, f"{VENTILATION}/FlowLvlTgt", "ventilation_flow_level_target"
        ),
        state_class="measurement",
        unit_of_measurement="%",
        icon="mdi:fan-clock",
    )
    return _document("sensor", sensor)


def state_time_remaining(node: DucoNode, base_topic: str) -> MqttData:
    """Sensor for the remaining time of the current ventilation state."""
    sensor = Sensor(
        **_node_args(
            node, base_topic, f"{VENTILATION}/TimeStateRemain", "ventilation_state_time_remaining"
        ),
        state_class="measurement",
        unit_of_measurement="s",
        icon="mdi:timer",
    )
    return _document("sensor", sensor)


def co2_sensor(node: DucoNode, base_topic: str) -> MqttData:
    """Sensor for the CO2 based air quality."""
    sensor = Sensor(
        **_node_args(node, base_topic, f"{SENSOR}/IaqCo2", "sensor_iaq_co2"),
        state_class="measurement",
        unit_of_measurement="%",
        icon="mdi:molecule-co2",
    )
    return _document("sensor", sensor)


def humidity_sensor(node: DucoNode, base_topic: str) -> MqttData:
    """Sensor for the humidity based air quality."""
    sensor = Sensor(
        **_node_args(node, base_topic, f"{SENSOR}/IaqRh", "sensor_iaq_rh"),
        state_class="measurement",
        unit_of_measurement="%",
        icon="mdi:water-percent",
    )
    return _document("sensor", sensor)


def identify(node: DucoNode, base_topic: str) -> MqttData:
    """Light switching the node's identification led."""
    light = Light(
        **_node_args(node, base_topic, f"{GENERAL}/Identify", "identify"),
        cmd_t=_command_topic(node, base_topic, SET_IDENTIFY),
        icon="mdi:led-on",
    )
    return _document("light", light)


# builder, state field it reads, command it sends
type NodeEntity = tuple[t.Callable[[DucoNode, str], MqttData], str, str | None]

_IDENTIFY: NodeEntity = (identify, f"{GENERAL}/Identify", SET_IDENTIFY)
_VENTILATION_ENTITIES: list[NodeEntity] = [
    (ventilation_state, f"{VENTILATION}/State", SET_VENTILATION_STATE),
    (flow_level_target, f"{VENTILATION}/FlowLvlTgt", None),
    (state_time_remaining, f"{VENTILATION}/TimeStateRemain", None),
    _IDENTIFY,
]


def _node_entities(node_type: NodeType) -> list[NodeEntity]:
    match node_type:
        case (
            NodeType.DUCO_BOX
            | NodeType.CO2_CONTROL_VALVE
            | NodeType.HUMIDITY_CONTROL_VALVE
            | NodeType.SENSORLESS_CONTROL_VALVE
            | NodeType.CO2_RH_CONTROL_VALVE
        ):
            return _VENTILATION_ENTITIES
        case NodeType.CO2_ROOM_SENSOR:
            return [(co2_sensor, f"{SENSOR}/IaqCo2", None), _IDENTIFY]
        case NodeType.HUMIDITY_ROOM_SENSOR:
            return [(humidity_sensor, f"{SENSOR}/IaqRh", None), _IDENTIFY]
        case _:
            return []


def _has_command(node: DucoNode, name: str) -> bool:
    return any(command.name == name for command in node.commands)


def device_documents(device: DucoDevice, base_topic: str) -> list[MqttData]:
    """Discovery documents for the controller, for the fields it reports."""
    if FILTER_TIME_REMAINING_TOPIC not in device.status:
        return []
    return [filter_days_remaining(base_topic)]


def node_documents(node: DucoNode, base_topic: str) -> list[MqttData]:
    """Discovery documents for a node.

    The candidate entities depend on the node type. Only entities whose state field
    the node reports, and whose command it accepts, are announced.
    """
    documents = [
        build(node, base_topic)
        for build, status, command in _node_entities(node.node_type)
        if status in node.status and (command is None or _has_command(node, command))
    ]
    if not documents:
        LOGGER.debug("No discovery documents for %s", node)
    return documents
