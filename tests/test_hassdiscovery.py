"""Home Assistant discovery document tests."""

import json

from pyduco.constants import NodeType
from pyduco.data_model import (
    DeviceInfo,
    NodeActionDescription,
    NodeInfo,
    NumberValue,
    StringValue,
)
from pyduco.device import DucoDevice
from pyduco.hassdiscovery import device_documents, node_documents
from pyduco.node import DucoNode
from pyduco.registers import actions_for_type

ACTIONS = [
    NodeActionDescription("SetVentilationState", "Enum", ["AUTO", "MAN1"]),
    NodeActionDescription("SetIdentify", "Boolean"),
]


def _node(node_type: NodeType, number: int, sensor=None, actions=None) -> DucoNode:
    node = DucoNode.create_for_type(node_type, number)
    node.merge_status(
        NodeInfo(
            number,
            general={"Type": StringValue("BOX"), "Identify": NumberValue(0)},
            ventilation={
                "State": StringValue("AUTO"),
                "TimeStateRemain": NumberValue(0),
                "FlowLvlTgt": NumberValue(0),
            },
            sensor=sensor,
        )
    )
    node.set_commands(ACTIONS if actions is None else actions)
    return node


class TestHassDiscovery:
    """
    Discovery document tests.
    """

    def test_device(self) -> None:
        """
        The controller publishes its filter state.
        """

        device = DucoDevice.from_info(
            DeviceInfo({"HeatRecovery/General/TimeFilterRemain": NumberValue(120)})
        )
        (document,) = device_documents(device, "duco")
        assert document.topic == "homeassistant/sensor/duco_filter_days_remaining/config"
        payload = json.loads(document.payload)
        assert payload["stat_t"] == "duco/HeatRecovery/General/TimeFilterRemain"
        assert payload["avty_t"] == "duco/state"
        assert payload["unit_of_measurement"] == "d"

    def test_device_without_filter(self) -> None:
        """
        A controller that does not report its filter time announces nothing.
        """

        assert device_documents(DucoDevice.from_info(DeviceInfo()), "duco") == []

    def test_box(self) -> None:
        """
        The ventilation state select offers the declared values.
        """

        box = _node(NodeType.DUCO_BOX, 1)
        documents = {d.topic: json.loads(d.payload) for d in node_documents(box, "duco")}
        select = documents["homeassistant/select/duco_node_1_ventilation_state/config"]
        assert select["options"] == ["AUTO", "MAN1"]
        assert select["stat_t"] == "duco/duco_node_1/Ventilation/State"
        assert select["cmd_t"] == "duco/duco_node_1/cmnd/SetVentilationState"
        assert "icon" in select

        light = documents["homeassistant/light/duco_node_1_identify/config"]
        assert light["cmd_t"] == "duco/duco_node_1/cmnd/SetIdentify"
        assert light["payload_on"] == "1"
        assert "homeassistant/sensor/duco_node_1_ventilation_state_time_remaining/config" in (
            documents
        )

    def test_register_box(self) -> None:
        """
        Entities without a reported field or an accepted command are left out.
        """

        box = DucoNode.create_for_type(NodeType.DUCO_BOX, 1)
        box.merge_status(
            NodeInfo(
                1,
                general={"Type": StringValue("BOX")},
                ventilation={
                    "State": StringValue("Auto"),
                    "FlowLvlTgt": NumberValue(0),
                    "TimeFilterRemain": NumberValue(90),
                },
            )
        )
        box.set_commands(actions_for_type(NodeType.DUCO_BOX))

        topics = [d.topic for d in node_documents(box, "duco")]
        assert topics == [
            "homeassistant/select/duco_node_1_ventilation_state/config",
            "homeassistant/sensor/duco_node_1_ventilation_flow_level_target/config",
        ]

    def test_sensors(self) -> None:
        """
        Room sensors publish their air quality.
        """

        co2 = _node(NodeType.CO2_ROOM_SENSOR, 2, sensor={"IaqCo2": NumberValue(81)})
        assert "homeassistant/sensor/duco_node_2_sensor_iaq_co2/config" in [
            d.topic for d in node_documents(co2, "duco")
        ]
        rh = _node(NodeType.HUMIDITY_ROOM_SENSOR, 3, sensor={"IaqRh": NumberValue(40)})
        assert "homeassistant/sensor/duco_node_3_sensor_iaq_rh/config" in [
            d.topic for d in node_documents(rh, "duco")
        ]

    def test_identify_requires_command(self) -> None:
        """
        The identify light is only announced when the node accepts the command.
        """

        co2 = _node(NodeType.CO2_ROOM_SENSOR, 2, sensor={"IaqCo2": NumberValue(81)}, actions=[])
        assert [d.topic for d in node_documents(co2, "duco")] == [
            "homeassistant/sensor/duco_node_2_sensor_iaq_co2/config"
        ]

    def test_unsupported_type(self) -> None:
        """
        Node types without entities publish nothing.
        """

        assert node_documents(_node(NodeType.SWITCH_SENSOR, 4), "duco") == []
        assert node_documents(_node(NodeType.UNKNOWN, 5), "duco") == []

    def test_none_values_are_dropped(self) -> None:
        """
        Optional attributes that are not set are left out.
        """

        co2 = _node(NodeType.CO2_ROOM_SENSOR, 2, sensor={"IaqCo2": NumberValue(81)})
        documents = node_documents(co2, "duco")
        light = json.loads(next(d for d in documents if "/light/" in d.topic).payload)
        assert "state_class" not in light
        assert None not in light.values()
