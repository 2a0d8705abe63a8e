"""Duco controller device."""

from __future__ import annotations

import logging

from pyduco.data_model import DeviceInfo, MqttData
from pyduco.fields import StatusFields

LOGGER = logging.getLogger(__name__)


class DucoDevice:
    """Global status of the ventilation controller."""

    status: StatusFields

    def __init__(self) -> None:
        """Initialize the class instance."""
        self.status = StatusFields()

    @classmethod
    def from_info(cls, info: DeviceInfo) -> DucoDevice:
        """Create a device from its first status report."""
        dev = cls()
        dev.update_status(info)
        return dev

    def update_status(self, info: DeviceInfo) -> None:
        """Merge a status report, fields missing from the report keep their value."""
        self.status.merge(info.general)

    def reset(self) -> None:
        """Force every field to unknown."""
        LOGGER.debug("Resetting %d device fields", len(self.status))
        self.status.reset()

    def drain_changed_fields(self) -> list[MqttData]:
        """Drain the changed fields, the topic is the field name."""
        return self.status.drain()
