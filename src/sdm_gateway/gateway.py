"""
Modbus TCP gateway: re-exposes downstream input registers to any number of TCP clients.

GatewaySession owns the single downstream ModbusTransport. Requests from all TCP
clients are queued to one worker task, so at most one downstream transaction is in
flight. The TCP side is a pymodbus server whose datastore forwards function code
0x04 reads through the session.
"""

import asyncio
import logging
import struct
from contextlib import suppress
from dataclasses import dataclass
from typing import Any

from pymodbus.datastore import ModbusDeviceContext, ModbusServerContext
from pymodbus.server import ServerAsyncStop, StartAsyncTcpServer

from .errors import RegisterReadError, SdmGatewayError
from .transport import ModbusTransport
from .types import ListenAddress

logger = logging.getLogger(__name__)

GATEWAY_ATTEMPTS = 3
# Inbound requests carry only an address, so the register's declared word length is unknown
GATEWAY_WORD_COUNT = 2

READ_INPUT_REGISTERS = 0x04


@dataclass
class _ReadJob:
    address: int
    unit_id: int
    reply: "asyncio.Future[int]"


class GatewaySession:
    """
    Serializes downstream input-register reads onto one transport.

    read_input() enqueues a job and awaits its reply; a single worker dequeues jobs,
    switches the unit id when it changes, and performs the read with bounded retry.
    The worker holds the link for all attempts of one job.
    """

    def __init__(self, transport: ModbusTransport, attempts: int = GATEWAY_ATTEMPTS) -> None:
        if attempts < 1:
            raise ValueError(f"attempts must be >= 1, got {attempts}")
        self.transport = transport
        self.attempts = attempts
        self.unit_id = transport.unit_id
        self._queue: asyncio.Queue[_ReadJob] = asyncio.Queue()
        self._worker_task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    def start(self) -> None:
        if self._worker_task is None:
            self._worker_task = asyncio.create_task(self._worker(), name="gateway-worker")

    async def stop(self) -> None:
        """Stop the worker and cancel any requests still queued."""
        if self._worker_task is not None:
            self._worker_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._worker_task
            self._worker_task = None
        while not self._queue.empty():
            job = self._queue.get_nowait()
            job.reply.cancel()

    async def __aenter__(self) -> "GatewaySession":
        self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()

    async def read_input(self, address: int, unit_id: int) -> int:
        """Return the first data word of input register address on unit_id."""
        if not self.running:
            raise RuntimeError("Gateway session is not running")
        reply: asyncio.Future[int] = asyncio.get_running_loop().create_future()
        await self._queue.put(_ReadJob(address, unit_id, reply))
        return await reply

    async def _worker(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                if job.reply.cancelled():
                    continue
                try:
                    word = await self._read_with_retry(job.address, job.unit_id)
                except asyncio.CancelledError:
                    job.reply.cancel()
                    raise
                except Exception as e:
                    if not job.reply.done():
                        job.reply.set_exception(e)
                else:
                    if not job.reply.done():
                        job.reply.set_result(word)
            finally:
                self._queue.task_done()

    async def _read_with_retry(self, address: int, unit_id: int) -> int:
        if unit_id != self.unit_id:
            self.transport.set_unit_id(unit_id)
            self.unit_id = unit_id
        for attempt in range(1, self.attempts + 1):
            try:
                raw = await self.transport.read_input(address, GATEWAY_WORD_COUNT)
            except RegisterReadError as e:
                if attempt >= self.attempts:
                    logger.error(
                        "Read input %d unit %d failed after %d attempts: %s", address, unit_id, attempt, e
                    )
                    raise
                logger.warning(
                    "Read input %d unit %d failed (attempt %d/%d), retrying: %s",
                    address,
                    unit_id,
                    attempt,
                    self.attempts,
                    e,
                )
                continue
            return struct.unpack(">H", raw[:2])[0]
        raise RuntimeError("unreachable")


class GatewayDeviceContext(ModbusDeviceContext):
    """
    Datastore for one unit id: input-register reads go downstream, nothing else is served.

    Each requested address is its own serialized downstream read. An exception raised
    here is answered by the pymodbus server with exception code 0x04 (device failure).
    """

    def __init__(self, session: GatewaySession, unit_id: int) -> None:
        super().__init__()
        self.session = session
        self.unit_id = unit_id

    def validate(self, func_code: int, address: int, count: int = 1) -> bool:
        return func_code == READ_INPUT_REGISTERS and 0 <= address and address + count <= 0x10000

    def getValues(self, func_code: int, address: int, count: int = 1) -> list[int]:
        raise SdmGatewayError(f"Function code 0x{func_code:02X} is not served synchronously")

    async def async_getValues(self, func_code: int, address: int, count: int = 1) -> list[int]:
        if func_code != READ_INPUT_REGISTERS:
            logger.warning("Unsupported function code 0x%02X from unit %d", func_code, self.unit_id)
            raise SdmGatewayError(f"Function code 0x{func_code:02X} is not served")
        logger.debug("read input @%d (qty %d) unit %d", address, count, self.unit_id)
        words: list[int] = []
        for offset in range(count):
            words.append(await self.session.read_input(address + offset, self.unit_id))
        return words

    def setValues(self, func_code: int, address: int, values: Any) -> None:
        raise SdmGatewayError("Writes are not supported")

    async def async_setValues(self, func_code: int, address: int, values: Any) -> None:
        self.setValues(func_code, address, values)


class GatewayServerContext(ModbusServerContext):
    """Server context that answers for every unit id, creating device contexts on demand."""

    def __init__(self, session: GatewaySession) -> None:
        super().__init__(devices={}, single=False)
        self.session = session
        self._units: dict[int, GatewayDeviceContext] = {}

    def __contains__(self, device_id: object) -> bool:
        return isinstance(device_id, int)

    def __getitem__(self, device_id: int) -> GatewayDeviceContext:
        if device_id not in self._units:
            self._units[device_id] = GatewayDeviceContext(self.session, device_id)
        return self._units[device_id]

    def device_ids(self) -> list[int]:
        return list(self._units)


class GatewayServer:
    """pymodbus Modbus TCP server answering read-input-registers through a GatewaySession."""

    def __init__(self, session: GatewaySession, listen: ListenAddress) -> None:
        self.session = session
        self.listen = listen
        self.context = GatewayServerContext(session)

    async def serve_forever(self) -> None:
        """Serve until cancelled; the listener is shut down on the way out."""
        logger.info("Gateway listening on %s", self.listen)
        try:
            await StartAsyncTcpServer(
                context=self.context,
                address=(self.listen.host, self.listen.port),
            )
        finally:
            # RuntimeError: the server never came up, nothing to stop
            with suppress(RuntimeError):
                await ServerAsyncStop()
            logger.info("Gateway stopped")


async def run_gateway(transport: ModbusTransport, listen: ListenAddress) -> None:
    """
    Connect downstream, then serve until cancelled.

    A connect failure propagates before the listener is started.
    """
    await transport.connect()
    try:
        async with GatewaySession(transport) as session:
            logger.info("Serving %s for %s", listen, transport.target)
            await GatewayServer(session, listen).serve_forever()
    finally:
        transport.close()
