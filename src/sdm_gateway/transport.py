"""ModbusTransport: the single downstream link (RTU serial or TCP) over pymodbus' asyncio clients."""

import asyncio
import logging
import socket
import struct
from typing import Any

from pymodbus import FramerType
from pymodbus.client import AsyncModbusSerialClient, AsyncModbusTcpClient
from pymodbus.exceptions import ModbusException as PymodbusException

from .errors import ConnectError, HostLookupError, RegisterReadError
from .types import ConnectionTarget, RegisterClass, SerialTarget, TcpTarget

logger = logging.getLogger(__name__)

# The TCP peer may itself be multiplexing other clients onto a bus, so it gets longer
TCP_TIMEOUT = 5.0
SERIAL_TIMEOUT = 3.0


async def resolve_host(host: str, port: int) -> str:
    """Resolve host to an IP address string; raise HostLookupError on failure."""
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except OSError as e:
        raise HostLookupError(host, cause=e) from e
    if not infos:
        raise HostLookupError(host)
    return infos[0][4][0]


class ModbusTransport:
    """
    Owns one physical downstream connection and exposes raw holding/input reads.

    Reads return the big-endian byte buffer of the requested words. Each read is a
    single transaction (pymodbus retries are disabled); retry policy belongs to callers.
    """

    def __init__(
        self,
        target: ConnectionTarget,
        unit_id: int = 1,
        timeout: float | None = None,
    ) -> None:
        self._target = target
        self._unit_id = unit_id
        if timeout is None:
            timeout = TCP_TIMEOUT if isinstance(target, TcpTarget) else SERIAL_TIMEOUT
        self._timeout = timeout
        self._client: AsyncModbusTcpClient | AsyncModbusSerialClient | None = None

    @property
    def target(self) -> ConnectionTarget:
        return self._target

    @property
    def unit_id(self) -> int:
        return self._unit_id

    @property
    def timeout(self) -> float:
        return self._timeout

    def set_unit_id(self, unit_id: int) -> None:
        """Address subsequent reads to unit_id."""
        if unit_id != self._unit_id:
            logger.debug("Unit id %d -> %d", self._unit_id, unit_id)
        self._unit_id = unit_id

    async def _make_client(self) -> AsyncModbusTcpClient | AsyncModbusSerialClient:
        target = self._target
        if isinstance(target, TcpTarget):
            ip = await resolve_host(target.host, target.port)
            logger.debug("Resolved %s to %s", target.host, ip)
            return AsyncModbusTcpClient(
                host=ip,
                port=target.port,
                framer=FramerType.RTU if target.rtu_framing else FramerType.SOCKET,
                timeout=self._timeout,
                retries=0,
            )
        if isinstance(target, SerialTarget):
            return AsyncModbusSerialClient(
                port=target.device,
                framer=FramerType.RTU,
                baudrate=target.baudrate,
                timeout=self._timeout,
                retries=0,
            )
        raise TypeError(f"Unsupported target: {target!r}")

    async def connect(self) -> None:
        """Open the downstream link. Raises HostLookupError or ConnectError."""
        if self._client is not None:
            return
        client = await self._make_client()
        try:
            connected = await client.connect()
        except (OSError, PymodbusException) as e:
            client.close()
            raise ConnectError(str(self._target), cause=e) from e
        if not connected:
            client.close()
            raise ConnectError(str(self._target))
        self._client = client
        logger.info("Connected to %s (timeout %.1fs)", self._target, self._timeout)

    def close(self) -> None:
        """Close the downstream link."""
        if self._client is not None:
            try:
                self._client.close()
            except Exception as e:
                logger.warning("Error closing Modbus client: %s", e)
            self._client = None
            logger.debug("Closed %s", self._target)

    async def __aenter__(self) -> "ModbusTransport":
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        self.close()

    async def _read(self, table: RegisterClass, address: int, count: int) -> bytes:
        if self._client is None:
            raise RegisterReadError("Not connected", register_class=table.value, address=address)
        logger.debug("read %s @%d x%d unit %d", table.value, address, count, self._unit_id)
        try:
            if table == RegisterClass.HOLDING:
                rr = await self._client.read_holding_registers(address, count=count, device_id=self._unit_id)
            else:
                rr = await self._client.read_input_registers(address, count=count, device_id=self._unit_id)
        except (PymodbusException, OSError, asyncio.TimeoutError) as e:
            raise RegisterReadError(
                str(e) or type(e).__name__,
                register_class=table.value,
                address=address,
                cause=e,
            ) from e

        if rr.isError():
            raise RegisterReadError(
                str(rr),
                register_class=table.value,
                address=address,
                cause=getattr(rr, "exception", None),
            )
        registers = getattr(rr, "registers", None)
        if not registers or len(registers) < count:
            raise RegisterReadError(
                "Short register response",
                register_class=table.value,
                address=address,
            )
        return struct.pack(f">{count}H", *registers[:count])

    async def read_holding(self, address: int, count: int) -> bytes:
        """Read count holding registers at 0-based address."""
        return await self._read(RegisterClass.HOLDING, address, count)

    async def read_input(self, address: int, count: int) -> bytes:
        """Read count input registers at 0-based address."""
        return await self._read(RegisterClass.INPUT, address, count)
