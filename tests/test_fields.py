"""Change tracking tests."""

import pytest

from pyduco.data_model import UNKNOWN_VALUE, MqttData, NumberValue, StringValue, status_value
from pyduco.device import DucoDevice
from pyduco.exceptions import DucoParseError
from pyduco.fields import ChangeTrackedField, StatusFields


class TestStatusValue:
    """
    Status value tests.
    """

    def test_cross_type_values_differ(self) -> None:
        """
        A string and a number rendering to the same text are not equal.
        """

        assert StringValue("1") != NumberValue(1)
        assert str(StringValue("1")) == str(NumberValue(1))

    def test_from_json(self) -> None:
        """
        Integers and strings convert, anything else is rejected.
        """

        assert status_value(3) == NumberValue(3)
        assert status_value("AUTO") == StringValue("AUTO")
        for raw in (True, 1.5, None, [1], {"Val": 1}):
            with pytest.raises(DucoParseError):
                status_value(raw)


class TestChangeTrackedField:
    """
    ChangeTrackedField tests.
    """

    def test_new_field_is_modified_once(self) -> None:
        """
        A new field is dirty until its value is taken.
        """

        field = ChangeTrackedField(NumberValue(1))
        assert field.is_modified()
        assert field.is_modified(), "observing must not clear the flag"
        assert field.take_and_clear() == NumberValue(1)
        assert not field.is_modified()

    def test_set(self) -> None:
        """
        Only a different value marks the field dirty.
        """

        field = ChangeTrackedField(NumberValue(1))
        field.take_and_clear()

        field.set(NumberValue(1))
        assert not field.is_modified()

        field.set(StringValue("1"))
        assert field.is_modified()
        field.take_and_clear()

        field.set(NumberValue(2))
        field.set(StringValue("1"))
        assert field.is_modified(), "changed since last taken, even if the final value is equal"

    def test_take_and_clear_always_clears(self) -> None:
        """
        Taking a clean value keeps it clean.
        """

        field = ChangeTrackedField(StringValue("x"))
        field.take_and_clear()
        assert field.take_and_clear() == StringValue("x")
        assert not field.is_modified()

    def test_reset(self) -> None:
        """
        Reset forces unknown, an unknown field stays clean.
        """

        field = ChangeTrackedField(NumberValue(5))
        field.take_and_clear()
        field.reset()
        assert field.is_modified()
        assert field.take_and_clear() == UNKNOWN_VALUE

        field.reset()
        assert not field.is_modified()


class TestStatusFields:
    """
    StatusFields tests.
    """

    def test_merge_keeps_absent_fields(self) -> None:
        """
        Fields missing from a merge keep their last value.
        """

        fields = StatusFields()
        fields.merge({"Type": StringValue("BOX"), "SubType": NumberValue(1)}, "General")
        fields.drain()
        fields.merge({"SubType": NumberValue(2)}, "General")

        assert fields["General/Type"].value == StringValue("BOX")
        assert fields.drain("duco_node_1/") == [
            MqttData("duco_node_1/General/SubType", "2"),
        ]

    def test_mark_all_modified(self) -> None:
        """
        Every field is drained again after marking.
        """

        fields = StatusFields()
        fields.merge({"A": NumberValue(1), "B": StringValue("b")})
        fields.drain()
        fields.mark_all_modified()
        assert sorted(m.topic for m in fields.drain()) == ["A", "B"]


class TestDucoDevice:
    """
    Device tests.
    """

    def test_drain_twice(self, device_info) -> None:
        """
        The second drain without an update is empty.
        """

        device = DucoDevice.from_info(device_info)
        first = device.drain_changed_fields()
        assert first
        assert not device.drain_changed_fields()

    def test_drain_topics(self, device_info) -> None:
        """
        Device topics are the qualified field names.
        """

        device = DucoDevice.from_info(device_info)
        topics = {m.topic: m.payload for m in device.drain_changed_fields()}
        assert topics["General/Board/BoxName"] == "SILENT"
        assert topics["HeatRecovery/General/TimeFilterRemain"] == "120"
        assert "General/Board/SwVersions" not in topics

    def test_reset_republishes_known_fields(self) -> None:
        """
        Reset republishes known values as unknown, fields already unknown stay silent.
        """

        device = DucoDevice()
        device.status.merge({"A": NumberValue(1), "B": StringValue("UNKNOWN")})
        device.drain_changed_fields()

        device.reset()
        assert device.drain_changed_fields() == [MqttData("A", "UNKNOWN")]
