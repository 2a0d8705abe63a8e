"""Command line and environment configuration of the bridge daemon."""

from __future__ import annotations

import argparse
import logging
import os
import typing as t

from pyduco.api import DucoApiTransport
from pyduco.bridge import POLL_INTERVAL, DucoMqttBridgeConfig
from pyduco.exceptions import DucoInvalidArgumentException
from pyduco.modbus import DucoModbusTransport
from pyduco.mqtt import MqttConfig

ENV_PREFIX = "D2M_"

LOG_LEVELS: dict[str, int] = {
    "critical": logging.CRITICAL,
    "fatal": logging.FATAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def parse_log_level(level: str) -> int:
    """Convert a log level name to its logging constant."""
    try:
        return LOG_LEVELS[level.casefold()]
    except KeyError as ex:
        raise DucoInvalidArgumentException(f"Invalid log level: {level}") from ex


def _env(name: str, default: t.Any = None, environ: t.Mapping[str, str] | None = None) -> t.Any:
    environ = os.environ if environ is None else environ
    return environ.get(f"{ENV_PREFIX}{name}", default)


def _env_flag(name: str, environ: t.Mapping[str, str] | None = None) -> bool:
    return str(_env(name, "", environ)).casefold() in ("1", "true", "yes", "on")


def build_parser(environ: t.Mapping[str, str] | None = None) -> argparse.ArgumentParser:
    """Parser for the daemon flags, every flag defaults to its D2M_* environment variable."""
    parser = argparse.ArgumentParser(
        prog="duco2mqtt",
        description="Publish the state of a Duco ventilation system on MQTT",
    )

    device = parser.add_argument_group("ventilation device")
    target = device.add_mutually_exclusive_group()
    target.add_argument(
        "--duco-host",
        default=_env("DUCO_HOST", environ=environ),
        help="host name of the connectivity board API (D2M_DUCO_HOST)",
    )
    target.add_argument(
        "--modbus",
        default=_env("MODBUS", environ=environ),
        metavar="HOST[:PORT]",
        help="address of the Modbus TCP interface (D2M_MODBUS)",
    )
    device.add_argument(
        "--duco-ip",
        default=_env("DUCO_IP", environ=environ),
        help="static address of the API host, skips name resolution (D2M_DUCO_IP)",
    )
    device.add_argument(
        "--duco-cert",
        default=_env("DUCO_CERT", environ=environ),
        help="certificate bundle used to verify the API host (D2M_DUCO_CERT)",
    )
    device.add_argument(
        "--modbus-slave-id",
        type=int,
        default=int(_env("MODBUS_SLAVE_ID", 1, environ)),
        help="Modbus slave id (D2M_MODBUS_SLAVE_ID)",
    )

    mqtt = parser.add_argument_group("mqtt")
    mqtt.add_argument(
        "--mqtt-address",
        default=_env("MQTT_ADDRESS", environ=environ),
        help="MQTT server (D2M_MQTT_ADDRESS)",
    )
    mqtt.add_argument(
        "--mqtt-port",
        type=int,
        default=int(_env("MQTT_PORT", 1883, environ)),
        help="MQTT server port (D2M_MQTT_PORT)",
    )
    mqtt.add_argument("--mqtt-user", default=_env("MQTT_USER", "", environ), help="(D2M_MQTT_USER)")
    mqtt.add_argument("--mqtt-pass", default=_env("MQTT_PASS", "", environ), help="(D2M_MQTT_PASS)")
    mqtt.add_argument(
        "--mqtt-client-id",
        default=_env("MQTT_CLIENT_ID", "duco2mqtt", environ),
        help="(D2M_MQTT_CLIENT_ID)",
    )
    mqtt.add_argument(
        "--mqtt-base-topic",
        default=_env("MQTT_BASE_TOPIC", "duco", environ),
        help="prefix of every published topic (D2M_MQTT_BASE_TOPIC)",
    )

    parser.add_argument(
        "--poll-interval",
        type=float,
        default=float(_env("POLL_INTERVAL", POLL_INTERVAL, environ)),
        help="seconds between polls (D2M_POLL_INTERVAL)",
    )
    parser.add_argument(
        "--hass-discovery",
        action="store_true",
        default=_env_flag("HASS_DISCOVERY", environ),
        help="publish Home Assistant discovery documents (D2M_HASS_DISCOVERY)",
    )
    parser.add_argument(
        "--prune-after",
        type=int,
        default=_env("PRUNE_AFTER", environ=environ),
        help="remove nodes missing from this many consecutive polls (D2M_PRUNE_AFTER)",
    )
    parser.add_argument(
        "--log-level",
        default=_env("LOG_LEVEL", "info", environ),
        choices=list(LOG_LEVELS),
        type=str.casefold,
        help="(D2M_LOG_LEVEL)",
    )
    return parser


def _modbus_transport(address: str, slave_id: int) -> DucoModbusTransport:
    host, _, port = address.partition(":")
    if not host:
        raise DucoInvalidArgumentException(f"Invalid Modbus address: {address}")
    if port:
        try:
            return DucoModbusTransport(host, port=int(port), slave_id=slave_id)
        except ValueError as ex:
            raise DucoInvalidArgumentException(f"Invalid Modbus port: {port}") from ex
    return DucoModbusTransport(host, slave_id=slave_id)


def config_from_args(args: argparse.Namespace) -> DucoMqttBridgeConfig:
    """Build the bridge configuration from parsed arguments."""
    if args.duco_host and args.modbus:
        raise DucoInvalidArgumentException("Configure either a Duco host or a Modbus address")
    transport: DucoApiTransport | DucoModbusTransport
    if args.duco_host:
        transport = DucoApiTransport(
            args.duco_host, ip_address=args.duco_ip, certificate=args.duco_cert
        )
    elif args.modbus:
        transport = _modbus_transport(args.modbus, args.modbus_slave_id)
    else:
        raise DucoInvalidArgumentException("No Duco host or Modbus address configured")

    if not args.mqtt_address:
        raise DucoInvalidArgumentException("No MQTT server address configured")

    if args.poll_interval <= 0:
        raise DucoInvalidArgumentException("The poll interval must be positive")

    prune_after = int(args.prune_after) if args.prune_after is not None else None
    if prune_after is not None and prune_after < 1:
        raise DucoInvalidArgumentException("prune-after must be at least 1")

    return DucoMqttBridgeConfig(
        transport=transport,
        mqtt=MqttConfig(
            args.mqtt_address,
            port=args.mqtt_port,
            client_id=args.mqtt_client_id,
            user=args.mqtt_user,
            password=args.mqtt_pass,
            base_topic=args.mqtt_base_topic.rstrip("/"),
        ),
        poll_interval=args.poll_interval,
        hass_discovery=args.hass_discovery,
        prune_after=prune_after,
    )
