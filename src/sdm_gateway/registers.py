"""SDM72D register catalog and lookup by id or name for the register filter."""

import logging
from typing import Iterable, Sequence

from .errors import UnknownRegisterError
from .types import Register, RegisterClass, RegisterType

logger = logging.getLogger(__name__)

_F = RegisterType.FLOAT32_BE

# SDM72D holding registers (ids as listed in the meter documentation)
HOLDING_REGISTERS: tuple[Register, ...] = (
    Register(13, "Pulse 1 Width", _F),
    Register(19, "Parity / Stop", _F),
    Register(21, "Modbus Address", _F),
    Register(23, "Pulse 1 Rate", _F),
    Register(25, "Password", _F),
    Register(29, "Network Baud Rate", _F),
    Register(59, "Time for scrolling display", _F),
    Register(61, "Time of back light", _F),
)

# SDM72D input registers
INPUT_REGISTERS: tuple[Register, ...] = (
    Register(53, "Total system power", _F),
    Register(73, "Import Wh since last reset", _F),
    Register(75, "Export Wh since last reset", _F),
    Register(343, "Total kwh", _F),
    Register(385, "Settable total kWh", _F),
    Register(389, "Settable import kWh", _F),
    Register(391, "Settable export kWh", _F),
    Register(1281, "Import power", _F),
    Register(1283, "Export power", _F),
)

CATALOG: dict[RegisterClass, tuple[Register, ...]] = {
    RegisterClass.HOLDING: HOLDING_REGISTERS,
    RegisterClass.INPUT: INPUT_REGISTERS,
}


def _as_id(key: str) -> int | None:
    """Return the numeric id for a numeric-looking key, else None."""
    s = key.strip()
    if s.isdigit():
        return int(s)
    return None


def find_register(key: str, registers: Sequence[Register] = INPUT_REGISTERS) -> Register:
    """
    Find a register by id (numeric keys) or exact name (anything else).

    Raises UnknownRegisterError if nothing matches.
    """
    reg_id = _as_id(key)
    for register in registers:
        if reg_id is not None:
            if register.id == reg_id:
                return register
        elif register.name == key:
            return register
    raise UnknownRegisterError(key)


def select_registers(keys: Iterable[str], registers: Sequence[Register] = INPUT_REGISTERS) -> list[Register]:
    """Resolve each key with find_register, keeping the order supplied (duplicates included)."""
    selected = [find_register(k, registers) for k in keys]
    logger.debug("Selected %d registers: %s", len(selected), [r.id for r in selected])
    return selected
