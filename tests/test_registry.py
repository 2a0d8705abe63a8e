"""Node discovery, registry and command routing tests."""

import pytest

from pyduco.constants import NodeType
from pyduco.data_model import (
    MqttData,
    NodeActionDescription,
    NodeActions,
    NodeBoolAction,
    NodeInfo,
    StringValue,
)
from pyduco.exceptions import (
    DucoInvalidTopic,
    DucoParseError,
    DucoProtocolMismatch,
    DucoUnknownNode,
)
from pyduco.registry import NodeRegistry, pair_reports
from pyduco.router import CommandRouter, node_number_for_node_name, parse_command_topic


def _info(number: int, node_type: str = "VLV") -> NodeInfo:
    return NodeInfo(number, {"Type": StringValue(node_type)}, {"State": StringValue("AUTO")})


def _actions(number: int) -> NodeActions:
    return NodeActions(number, [NodeActionDescription("SetIdentify", "Boolean")])


class TestDiscovery:
    """
    Report driven discovery tests.
    """

    def test_discover(self, node_infos, node_actions) -> None:
        """
        Nodes are built from the captured reports.
        """

        registry = NodeRegistry()
        nodes = registry.discover(node_infos, node_actions)
        assert [n.number for n in nodes] == [1, 2, 67]
        assert [n.node_type for n in registry] == [
            NodeType.DUCO_BOX,
            NodeType.CO2_ROOM_SENSOR,
            NodeType.CO2_CONTROL_VALVE,
        ]
        assert registry.node(67).valid_values_for("SetVentilationState") == (
            "AUTO",
            "MAN1",
            "MAN2",
            "MAN3",
        )

    def test_count_mismatch(self) -> None:
        """
        Five reports and four action lists build no node.
        """

        registry = NodeRegistry()
        with pytest.raises(DucoProtocolMismatch):
            registry.discover([_info(n) for n in range(1, 6)], [_actions(n) for n in range(1, 5)])
        assert registry.is_empty()

    def test_number_mismatch(self) -> None:
        """
        Lists are paired after sorting, numbers must agree pairwise.
        """

        assert [(i.number, a.number) for i, a in pair_reports(
            [_info(3), _info(1)], [_actions(1), _actions(3)]
        )] == [(1, 1), (3, 3)]
        with pytest.raises(DucoProtocolMismatch):
            pair_reports([_info(1), _info(2)], [_actions(1), _actions(3)])

    def test_invalid_action_fails_discovery(self) -> None:
        """
        An unsupported action type builds no node at all.
        """

        registry = NodeRegistry()
        bad = NodeActions(2, [NodeActionDescription("SetTemperature", "Integer")])
        with pytest.raises(DucoParseError):
            registry.discover([_info(1), _info(2)], [_actions(1), bad])
        assert registry.is_empty()


class TestRegistry:
    """
    Registry merge and prune tests.
    """

    def test_merge_adds_new_nodes(self) -> None:
        """
        Known nodes are updated, new nodes are appended with their actions.
        """

        registry = NodeRegistry()
        registry.discover([_info(1)], [_actions(1)])
        registry.topics_that_need_updating()

        assert registry.unknown_numbers([_info(1), _info(5)]) == [5]
        added = registry.merge([_info(1), _info(5)], [_actions(1), _actions(5)])
        assert [n.number for n in added] == [5]
        assert registry.node(5).find_command("SetIdentify")
        assert all(m.topic.startswith("duco_node_5/") for m in registry.topics_that_need_updating())

    def test_missing_nodes_are_kept(self) -> None:
        """
        Without a prune policy nodes are never removed.
        """

        registry = NodeRegistry()
        registry.discover([_info(1), _info(2)], [_actions(1), _actions(2)])
        for _ in range(10):
            registry.merge([_info(1)])
        assert 2 in registry

    def test_prune(self) -> None:
        """
        A node missing from consecutive polls is removed, reappearing resets the count.
        """

        registry = NodeRegistry(prune_after=2)
        registry.discover([_info(1), _info(2)], [_actions(1), _actions(2)])

        registry.merge([_info(1)])
        registry.merge([_info(1), _info(2)])
        registry.merge([_info(1)])
        assert 2 in registry

        registry.merge([_info(1)])
        assert 2 not in registry
        with pytest.raises(DucoUnknownNode):
            registry.node(2)

    def test_invalid_prune_policy(self) -> None:
        """
        Pruning after zero polls is rejected.
        """

        with pytest.raises(ValueError):
            NodeRegistry(prune_after=0)


class TestTopicParsing:
    """
    Command topic tests.
    """

    def test_parse(self) -> None:
        """
        A node command topic yields the node number and command.
        """

        assert parse_command_topic("duco_node_12/cmnd/SetIdentify") == (12, "SetIdentify")

    @pytest.mark.parametrize(
        "topic",
        [
            "duco_node_/cmnd/X",
            "node_12/cmnd/X",
            "duco_node_12/SetIdentify",
            "duco_node_12/state/X",
            "duco_node_12/cmnd/",
            "duco_node_12a/cmnd/X",
            "xduco_node_12/cmnd/X",
            "duco_node_12/cmnd/X/Y",
        ],
    )
    def test_invalid(self, topic: str) -> None:
        """
        Anything but an exact match is rejected.
        """

        with pytest.raises(DucoInvalidTopic):
            parse_command_topic(topic)

    def test_node_name(self) -> None:
        """
        Non ASCII digits are not node numbers.
        """

        assert node_number_for_node_name("duco_node_007") == 7
        with pytest.raises(DucoInvalidTopic):
            node_number_for_node_name("duco_node_٣")


class TestCommandRouter:
    """
    Command routing tests.
    """

    @pytest.mark.asyncio
    async def test_dispatch(self, backend) -> None:
        """
        A command reaches the addressed node.
        """

        registry = NodeRegistry()
        registry.discover(backend.nodes, backend.actions)
        router = CommandRouter("duco", registry, backend)

        node = await router.dispatch(MqttData("duco/duco_node_2/cmnd/SetIdentify", "1"))
        assert node.number == 2
        assert backend.performed == [(2, NodeBoolAction("SetIdentify", True))]

    @pytest.mark.asyncio
    async def test_unknown_node(self, backend) -> None:
        """
        Commands for unknown nodes are rejected.
        """

        router = CommandRouter("duco", NodeRegistry(), backend)
        with pytest.raises(DucoUnknownNode):
            await router.dispatch(MqttData("duco/duco_node_9/cmnd/SetIdentify", "1"))
        assert not backend.performed

    def test_foreign_prefix(self, backend) -> None:
        """
        Topics outside the base topic are rejected.
        """

        router = CommandRouter("duco", NodeRegistry(), backend)
        with pytest.raises(DucoInvalidTopic):
            router.route("other/duco_node_1/cmnd/SetIdentify")
