"""One-shot batch read: holding registers (optional) then input registers, fail-fast."""

import logging
from typing import Callable, Sequence

from .decode import DecodedValue, decode
from .errors import RegisterReadError
from .registers import HOLDING_REGISTERS, INPUT_REGISTERS
from .transport import ModbusTransport
from .types import Register, RegisterClass

logger = logging.getLogger(__name__)

Emitter = Callable[[str], None]


def format_line(register: Register, value: DecodedValue) -> str:
    return f"{register.name}:{value}"


async def _read_class(
    transport: ModbusTransport,
    table: RegisterClass,
    registers: Sequence[Register],
    emit: Emitter,
    out: list[tuple[Register, DecodedValue]],
) -> None:
    read = transport.read_holding if table == RegisterClass.HOLDING else transport.read_input
    for register in registers:
        context = f"read {table.value} {register.label()}"
        logger.debug(context)
        try:
            raw = await read(register.address, register.word_length)
            value = decode(register, raw)
        except (RegisterReadError, ValueError) as e:
            raise RegisterReadError(
                context,
                register_class=table.value,
                address=register.address,
                register=register.name,
                cause=e,
            ) from e
        out.append((register, value))
        emit(format_line(register, value))


async def read_snapshot(
    transport: ModbusTransport,
    *,
    with_holding: bool = False,
    inputs: Sequence[Register] | None = None,
    emit: Emitter = print,
) -> list[tuple[Register, DecodedValue]]:
    """
    Connect, then read and emit every register as "Name:Value".

    Holding registers come first (catalog order) when with_holding is set, then
    inputs in the order supplied, or the full input catalog when inputs is None.
    The first failure raises RegisterReadError naming the register; lines already
    emitted stay emitted. Connect failures propagate as HostLookupError/ConnectError.
    """
    await transport.connect()
    out: list[tuple[Register, DecodedValue]] = []
    if with_holding:
        await _read_class(transport, RegisterClass.HOLDING, HOLDING_REGISTERS, emit, out)
    selected = INPUT_REGISTERS if inputs is None else inputs
    await _read_class(transport, RegisterClass.INPUT, selected, emit, out)
    return out
