"""Core data model: register types, catalog entries and connection targets."""

from dataclasses import dataclass
from enum import Enum
from typing import Union

DEFAULT_WORD_LENGTH = 2


class RegisterType(str, Enum):
    """How the first 4 bytes of a register buffer are decoded."""

    FLOAT32_BE = "float32_be"
    INT32_BE = "int32_be"


class RegisterClass(str, Enum):
    """Modbus register classes the meter exposes."""

    HOLDING = "holding"
    INPUT = "input"


@dataclass(frozen=True)
class Register:
    """Catalog entry; id is 1-based as in the meter documentation."""

    id: int
    name: str
    type: RegisterType = RegisterType.FLOAT32_BE
    word_length: int = DEFAULT_WORD_LENGTH

    def __post_init__(self) -> None:
        if self.id < 1:
            raise ValueError(f"register id must be >= 1, got {self.id}")
        if self.word_length < 2:
            raise ValueError(f"word_length must be >= 2, got {self.word_length}")

    @property
    def address(self) -> int:
        """0-based wire address."""
        return self.id - 1

    def label(self) -> str:
        return f"{self.id}:{self.name}"


@dataclass(frozen=True)
class TcpTarget:
    """Downstream Modbus device reached over TCP."""

    host: str
    port: int = 502
    # RTU frames over the socket (serial-to-TCP bridge); False selects plain Modbus TCP
    rtu_framing: bool = True

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class SerialTarget:
    """Downstream Modbus RTU device on a local serial port."""

    device: str
    baudrate: int = 9600

    def __str__(self) -> str:
        return f"{self.device}:{self.baudrate}"


ConnectionTarget = Union[TcpTarget, SerialTarget]


@dataclass(frozen=True)
class ListenAddress:
    """Bind address for the gateway listener."""

    port: int
    host: str = "0.0.0.0"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"
