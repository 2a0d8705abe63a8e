"""Duco to MQTT bridge daemon."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import aiomqtt

from pyduco.bridge import DucoMqttBridge, DucoMqttBridgeConfig
from pyduco.config import build_parser, config_from_args, parse_log_level
from pyduco.constants import VERSION
from pyduco.exceptions import DucoInvalidArgumentException
from pyduco.mqtt import DucoMqttConnection

LOGGER = logging.getLogger(__name__)

RECONNECT_DELAY = 5.0


async def serve(config: DucoMqttBridgeConfig) -> None:
    """Run the bridge until cancelled, reconnecting to the MQTT server when it drops."""
    connection = DucoMqttConnection(config.mqtt)
    bridge = DucoMqttBridge.from_config(config, connection)
    try:
        while True:
            try:
                async with connection:
                    # retained values may have been lost with the previous session
                    bridge.mark_all_modified()
                    await bridge.run()
            except aiomqtt.MqttError as err:
                LOGGER.error("MQTT connection error: %s", err)
            LOGGER.info("Reconnecting to MQTT in %.0f seconds", RECONNECT_DELAY)
            await asyncio.sleep(RECONNECT_DELAY)
    finally:
        await bridge.close()


async def run(config: DucoMqttBridgeConfig) -> None:
    """Serve until SIGINT or SIGTERM is received."""
    loop = asyncio.get_running_loop()
    task = asyncio.ensure_future(serve(config))
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, task.cancel)
    try:
        await task
    except asyncio.CancelledError:
        LOGGER.info("Stopped")
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


def main() -> None:
    """Entry point of the duco2mqtt command."""
    parser = build_parser()
    args = parser.parse_args()
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=parse_log_level(args.log_level),
    )
    try:
        config = config_from_args(args)
    except DucoInvalidArgumentException as ex:
        parser.error(str(ex))

    LOGGER.info("duco2mqtt %s", VERSION)
    asyncio.run(run(config))


if __name__ == "__main__":
    sys.exit(main())
