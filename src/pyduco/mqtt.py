"""MQTT connection of the bridge."""

from __future__ import annotations

import logging
import sys
import typing as t
from dataclasses import dataclass

import aiomqtt

from pyduco.constants import COMMAND_SEGMENT, OFFLINE_PAYLOAD, ONLINE_PAYLOAD, STATE_TOPIC
from pyduco.data_model import MqttData

LOGGER = logging.getLogger(__name__)

KEEP_ALIVE = 180

QOS_AT_LEAST_ONCE = 1
QOS_EXACTLY_ONCE = 2


@dataclass
class MqttConfig:
    """MQTT server settings."""

    server: str
    port: int = 1883
    client_id: str = "duco2mqtt"
    user: str = ""
    password: str = ""
    base_topic: str = "duco"
    keep_alive: int = KEEP_ALIVE


def state_topic(base_topic: str) -> str:
    """Availability topic."""
    return f"{base_topic}/{STATE_TOPIC}"


def command_subscription(base_topic: str) -> str:
    """Wildcard matching every node command topic."""
    return f"{base_topic}/+/{COMMAND_SEGMENT}/+"


class DucoMqttConnection:
    """Publishes device state and receives node commands.

    Use as an async context manager. The availability topic is published on its
    online/offline edges only, the last will sets it to offline.
    """

    config: MqttConfig
    client: aiomqtt.Client
    online: bool

    def __init__(self, config: MqttConfig) -> None:
        self.config = config
        self.online = False
        self.client = self._create_client()

    def _create_client(self) -> aiomqtt.Client:
        will = aiomqtt.Will(
            topic=state_topic(self.config.base_topic),
            payload=OFFLINE_PAYLOAD,
            qos=QOS_AT_LEAST_ONCE,
            retain=True,
        )
        return aiomqtt.Client(
            self.config.server,
            port=self.config.port,
            identifier=self.config.client_id,
            username=self.config.user or None,
            password=self.config.password or None,
            keepalive=self.config.keep_alive,
            clean_session=True,
            will=will,
        )

    async def __aenter__(self) -> DucoMqttConnection:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: t.Any) -> None:
        await self.disconnect()

    async def connect(self) -> None:
        """Connect and subscribe to the node commands."""
        LOGGER.info("Connecting to MQTT server %s:%d", self.config.server, self.config.port)
        # an aiomqtt client can not be reused after it disconnected
        self.client = self._create_client()
        self.online = False
        await self.client.__aenter__()
        subscription = command_subscription(self.config.base_topic)
        LOGGER.info("Subscribe to mqtt commands: %s", subscription)
        try:
            await self.client.subscribe(subscription, qos=QOS_EXACTLY_ONCE)
        except BaseException:
            await self.client.__aexit__(*sys.exc_info())
            raise

    async def disconnect(self) -> None:
        """Set the bridge offline and disconnect."""
        try:
            await self.publish_offline()
        except aiomqtt.MqttError as err:
            LOGGER.debug("Failed to publish offline state: %s", err)
        await self.client.__aexit__(None, None, None)

    async def publish(self, data: MqttData) -> None:
        """Publish a retained message."""
        LOGGER.debug("%s: %s", data.topic, data.payload)
        await self.client.publish(
            data.topic, payload=data.payload, qos=QOS_AT_LEAST_ONCE, retain=True
        )

    async def publish_multiple(self, messages: t.Iterable[MqttData]) -> None:
        """Publish retained messages in order."""
        for data in messages:
            await self.publish(data)

    async def publish_online(self) -> None:
        """Mark the bridge online, only sent when it was offline."""
        if not self.online:
            LOGGER.info("Device online")
            await self.publish(MqttData(state_topic(self.config.base_topic), ONLINE_PAYLOAD))
            self.online = True

    async def publish_offline(self) -> None:
        """Mark the bridge offline, only sent when it was online."""
        if self.online:
            LOGGER.info("Device offline")
            await self.publish(MqttData(state_topic(self.config.base_topic), OFFLINE_PAYLOAD))
            self.online = False

    async def messages(self) -> t.AsyncIterator[MqttData]:
        """Inbound command messages."""
        async for message in self.client.messages:
            payload = message.payload
            if isinstance(payload, (bytes, bytearray)):
                try:
                    text = payload.decode("utf-8")
                except UnicodeDecodeError:
                    LOGGER.warning("Dropping non UTF-8 payload on %s", message.topic)
                    continue
            else:
                text = "" if payload is None else str(payload)
            yield MqttData(message.topic.value, text)
