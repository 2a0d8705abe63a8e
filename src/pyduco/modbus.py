"""Async Modbus-TCP client for the Duco connectivity board."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

import pymodbus.client as modbusClient
from pymodbus.constants import ExcCodes
from pymodbus.exceptions import ConnectionException as ModbusConnectionException
from pymodbus.exceptions import ModbusException, ModbusIOException
from pymodbus.pdu import ExceptionResponse, ModbusPDU

from .exceptions import (
    DucoConnectionException,
    DucoIOException,
    DucoReadException,
    DucoTimeoutException,
    DucoTransportException,
    DucoWriteException,
)

LOGGER = logging.getLogger(__name__)

# Minimum time to wait between two requests sent to the board.
MIN_TIME_BETWEEN_COMMANDS = 0.01

CONNECTION_TIMEOUT = 5.0


@dataclass
class DucoModbusTransport:
    """Parameters for the Modbus-TCP transport."""

    host: str = "192.168.0.200"
    port: int = 502
    slave_id: int = 1
    timeout: float = CONNECTION_TIMEOUT


class AsyncDucoModbusClient:
    """Reconnect-on-demand register client.

    Requests are serialised, a dropped connection is re-established on the next request.
    """

    client: modbusClient.ModbusBaseClient
    slave_id: int
    timeout: float
    ts: float
    lock: asyncio.Lock

    def __init__(
        self,
        client: modbusClient.ModbusBaseClient,
        slave_id: int = 1,
        timeout: float = CONNECTION_TIMEOUT,
    ) -> None:
        self.client = client
        self.slave_id = slave_id
        self.timeout = timeout
        self.ts = 0
        self.lock = asyncio.Lock()

    @classmethod
    def from_transport(cls, transport: DucoModbusTransport) -> AsyncDucoModbusClient:
        """Create a client for a TCP transport."""
        client = modbusClient.AsyncModbusTcpClient(
            transport.host, port=transport.port, timeout=transport.timeout
        )
        return cls(client, transport.slave_id, transport.timeout)

    async def _reconnect(self) -> bool:
        try:
            if not self.client.connected:
                LOGGER.debug("Establishing modbus connection")
                await asyncio.wait_for(self.client.connect(), self.timeout)
            if not self.client.connected:
                LOGGER.error("Failed to establish modbus connection")
                self.client.close()
                raise DucoConnectionException("Failed to connect to duco modbus server")
        except asyncio.TimeoutError as err:
            self.client.close()
            raise DucoTimeoutException(
                f"Timeout connecting to duco modbus server ({self.timeout}s)"
            ) from err
        except ModbusException as err:
            message = f"Failed to establish modbus connection: {err}"
            LOGGER.error(message)
            self.client.close()
            raise DucoConnectionException(message) from err
        return self.client.connected

    async def _throttle(self) -> None:
        elapsed = time.time() - self.ts
        if elapsed < MIN_TIME_BETWEEN_COMMANDS:
            await asyncio.sleep(MIN_TIME_BETWEEN_COMMANDS - elapsed)

    async def _read_registers(self, address: int, count: int, holding: bool) -> list[int]:
        kind = "holding" if holding else "input"
        async with self.lock:
            LOGGER.debug("Reading %d %s register(s) from %d", count, kind, address)

            await self._reconnect()
            try:
                await self._throttle()
                if holding:
                    response: ModbusPDU = await self.client.read_holding_registers(
                        address, count=count, device_id=self.slave_id
                    )
                else:
                    response = await self.client.read_input_registers(
                        address, count=count, device_id=self.slave_id
                    )
                if isinstance(response, ExceptionResponse):
                    message = (
                        f"Got an error while reading {kind} register {address} "
                        f"(count {count}): {response}"
                    )
                    if response.exception_code == ExcCodes.DEVICE_BUSY:
                        LOGGER.info(message)
                    else:
                        LOGGER.warning(message)
                    raise DucoReadException(message, modbus_exception_code=response.exception_code)

                if len(response.registers) != count:
                    message = (
                        f"Mismatch between number of requested registers ({count}) "
                        f"and number of received registers ({len(response.registers)})"
                    )
                    LOGGER.error(message)
                    raise DucoReadException(message)
            except ModbusIOException as err:
                message = f"Could not read register, I/O exception: {err}"
                LOGGER.error(message)
                self.client.close()
                raise DucoIOException(message) from err
            except ModbusConnectionException as err:
                message = f"Could not read register, bad connection: {err}"
                LOGGER.error(message)
                self.client.close()
                raise DucoConnectionException(message) from err
            except ModbusException as err:
                message = f"Modbus exception reading register: {err}"
                LOGGER.error(message)
                raise DucoTransportException(message) from err
            finally:
                self.ts = time.time()
            return list(response.registers)

    async def read_input_register(self, address: int) -> int:
        """Read a single input register."""
        return (await self._read_registers(address, 1, holding=False))[0]

    async def read_input_registers(self, address: int, count: int) -> list[int]:
        """Read a contiguous block of input registers."""
        return await self._read_registers(address, count, holding=False)

    async def read_holding_register(self, address: int) -> int:
        """Read a single holding register."""
        return (await self._read_registers(address, 1, holding=True))[0]

    async def write_holding_register(self, address: int, value: int) -> None:
        """Write a single holding register."""
        async with self.lock:
            LOGGER.debug("Writing holding register %d: %d", address, value)

            await self._reconnect()
            try:
                await self._throttle()
                response = await self.client.write_register(
                    address, value, device_id=self.slave_id
                )
                if isinstance(response, ExceptionResponse):
                    message = (
                        f"Failed to write value {value} to register {address}: "
                        f"{response.exception_code:02X}"
                    )
                    LOGGER.info(message)
                    raise DucoWriteException(
                        message, modbus_exception_code=response.exception_code
                    )
            except ModbusIOException as err:
                message = f"Could not write register, I/O exception: {err}"
                LOGGER.error(message)
                self.client.close()
                raise DucoIOException(message) from err
            except ModbusConnectionException as err:
                message = f"Could not write register, bad connection: {err}"
                LOGGER.error(message)
                self.client.close()
                raise DucoConnectionException(message) from err
            except ModbusException as err:
                message = f"Could not write register: {err}"
                LOGGER.error(message)
                raise DucoTransportException(message) from err
            finally:
                self.ts = time.time()

    async def connect(self) -> bool:
        """Establish underlying Modbus connection."""
        async with self.lock:
            return await self._reconnect()

    def close(self) -> None:
        """Close underlying Modbus connection."""
        self.client.close()
