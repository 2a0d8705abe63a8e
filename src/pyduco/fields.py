"""Change tracked status fields."""

from __future__ import annotations

import typing as t

from pyduco.data_model import UNKNOWN_VALUE, MqttData, StatusValue


class ChangeTrackedField:
    """A status value with a dirty flag.

    A new field is dirty so its first value is always published once.
    """

    _value: StatusValue
    _modified: bool

    def __init__(self, value: StatusValue) -> None:
        self._value = value
        self._modified = True

    def __repr__(self) -> str:
        return f"ChangeTrackedField({self._value!r}, modified={self._modified})"

    @property
    def value(self) -> StatusValue:
        """The current value, observing it does not clear the dirty flag."""
        return self._value

    def set(self, value: StatusValue) -> None:
        """Store the value, marking the field dirty if it differs from the current one."""
        if value != self._value:
            self._value = value
            self._modified = True

    def is_modified(self) -> bool:
        """True if the value changed since it was last taken."""
        return self._modified

    def take_and_clear(self) -> StatusValue:
        """Return the current value and clear the dirty flag."""
        self._modified = False
        return self._value

    def reset(self) -> None:
        """Force the value to unknown."""
        self.set(UNKNOWN_VALUE)

    def mark_modified(self) -> None:
        """Mark the field dirty without changing its value."""
        self._modified = True


class StatusFields:
    """Flat map of change tracked fields keyed by their qualified name."""

    _fields: dict[str, ChangeTrackedField]

    def __init__(self) -> None:
        self._fields = {}

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __getitem__(self, name: str) -> ChangeTrackedField:
        return self._fields[name]

    def items(self) -> t.ItemsView[str, ChangeTrackedField]:
        """All fields by name."""
        return self._fields.items()

    def merge(self, values: t.Mapping[str, StatusValue], prefix: str = "") -> None:
        """Merge values into the map.

        Known fields are updated, new ones are inserted dirty. Fields absent from values
        keep their last value.
        """
        for name, value in values.items():
            key = f"{prefix}/{name}" if prefix else name
            tracked = self._fields.get(key)
            if tracked is None:
                self._fields[key] = ChangeTrackedField(value)
            else:
                tracked.set(value)

    def reset(self) -> None:
        """Force every field to unknown."""
        for tracked in self._fields.values():
            tracked.reset()

    def mark_all_modified(self) -> None:
        """Mark every field dirty so the next drain returns all of them."""
        for tracked in self._fields.values():
            tracked.mark_modified()

    def drain(self, topic_prefix: str = "") -> list[MqttData]:
        """Take every modified field as a message, clearing its dirty flag."""
        return [
            MqttData(f"{topic_prefix}{name}", str(tracked.take_and_clear()))
            for name, tracked in self._fields.items()
            if tracked.is_modified()
        ]
