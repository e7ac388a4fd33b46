"""sdm-gateway: read SDM72D meter registers and bridge them to Modbus TCP clients via pymodbus."""

__version__ = "0.1.0"

from .decode import decode, format_float
from .errors import (
    ConnectError,
    HostLookupError,
    RegisterReadError,
    SdmGatewayError,
    UnknownRegisterError,
)
from .gateway import GatewayServer, GatewaySession, run_gateway
from .reader import read_snapshot
from .registers import HOLDING_REGISTERS, INPUT_REGISTERS, find_register, select_registers
from .transport import ModbusTransport
from .types import (
    ConnectionTarget,
    ListenAddress,
    Register,
    RegisterClass,
    RegisterType,
    SerialTarget,
    TcpTarget,
)

__all__ = [
    "__version__",
    "decode",
    "format_float",
    "ConnectError",
    "HostLookupError",
    "RegisterReadError",
    "SdmGatewayError",
    "UnknownRegisterError",
    "GatewayServer",
    "GatewaySession",
    "run_gateway",
    "read_snapshot",
    "HOLDING_REGISTERS",
    "INPUT_REGISTERS",
    "find_register",
    "select_registers",
    "ModbusTransport",
    "ConnectionTarget",
    "ListenAddress",
    "Register",
    "RegisterClass",
    "RegisterType",
    "SerialTarget",
    "TcpTarget",
]
