#!/usr/bin/env python3
"""Command-line interface for sdm-gateway using Typer."""

import asyncio
import json
import logging
from typing import Optional

import typer
from typing_extensions import Annotated

from . import __version__  # type: ignore
from .errors import ConnectError, HostLookupError, RegisterReadError, UnknownRegisterError
from .gateway import run_gateway
from .reader import read_snapshot
from .registers import CATALOG, select_registers
from .transport import ModbusTransport
from .types import ConnectionTarget, ListenAddress, SerialTarget, TcpTarget

app = typer.Typer(
    name="sdm-gateway",
    help="Read SDM72D meter registers over Modbus RTU/TCP, or bridge them to Modbus TCP clients.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

DEFAULT_DESTINATION = "127.0.0.1"
MAX_BAUDRATE = 115200

# ============================================================================
# Shared options and helpers
# ============================================================================

DestinationArgument = Annotated[
    str,
    typer.Argument(
        help="Serial device with optional baud (/dev/ttyUSB1:19200) or host with optional port (meter:1502)",
        envvar="SDMGW_DESTINATION",
    ),
]
DeviceIdOption = Annotated[
    int,
    typer.Option("--device-id", "-i", help="Modbus unit id of the meter", envvar="SDMGW_DEVICE_ID"),
]
TimeoutOption = Annotated[
    Optional[float],
    typer.Option(
        "--timeout",
        "-t",
        help="Response timeout in seconds (default 5 for TCP, 3 for serial)",
        envvar="SDMGW_TIMEOUT",
    ),
]
SocketFramingOption = Annotated[
    bool,
    typer.Option(
        "--socket-framing",
        help="Use plain Modbus TCP framing instead of RTU frames over TCP",
        envvar="SDMGW_SOCKET_FRAMING",
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _parse_port(value: str, what: str, upper: int) -> int:
    try:
        num = int(value, 10)
    except ValueError:
        raise ValueError(f"Invalid {what}: {value!r}") from None
    if not (0 < num <= upper):
        raise ValueError(f"{what.capitalize()} out of range 1-{upper}: {num}")
    return num


def parse_destination(value: str, socket_framing: bool = False) -> ConnectionTarget:
    """
    Parse a destination: paths starting with / or COM are serial devices
    (optional :baud, default 9600); anything else is host[:port] (default 502).
    """
    v = value.strip()
    if not v:
        raise ValueError("Destination cannot be empty")
    parts = v.split(":")
    if len(parts) > 2:
        raise ValueError(f"Invalid destination: {value!r}")
    if v.startswith("/") or v.startswith("COM"):
        baud = _parse_port(parts[1], "baud rate", MAX_BAUDRATE) if len(parts) == 2 else 9600
        return SerialTarget(device=parts[0], baudrate=baud)
    if not parts[0]:
        raise ValueError(f"Missing host in destination: {value!r}")
    port = _parse_port(parts[1], "port", 65535) if len(parts) == 2 else 502
    return TcpTarget(host=parts[0], port=port, rtu_framing=not socket_framing)


def parse_listen(value: str) -> ListenAddress:
    """Parse a gateway bind address: [addr:]port, addr defaults to 0.0.0.0."""
    parts = value.strip().split(":")
    if len(parts) == 1:
        return ListenAddress(port=_parse_port(parts[0], "port", 65535))
    if len(parts) == 2:
        return ListenAddress(port=_parse_port(parts[1], "port", 65535), host=parts[0] or "0.0.0.0")
    raise ValueError(f"Invalid listen address: {value!r}")


def validate_device_id(device_id: int) -> int:
    if not (0 <= device_id <= 255):
        raise ValueError(f"Device id out of range 0-255: {device_id}")
    return device_id


def create_transport(
    destination: str,
    device_id: int,
    timeout: Optional[float],
    socket_framing: bool,
) -> ModbusTransport:
    """Validate CLI inputs and build the downstream transport; usage errors exit 2."""
    try:
        target = parse_destination(destination, socket_framing)
        validate_device_id(device_id)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)
    if timeout is not None and timeout <= 0:
        typer.echo(f"Error: Timeout must be positive, got {timeout}", err=True)
        raise typer.Exit(2)
    return ModbusTransport(target, unit_id=device_id, timeout=timeout)


# ============================================================================
# Commands
# ============================================================================


@app.command()
def read(
    destination: DestinationArgument = DEFAULT_DESTINATION,
    device_id: DeviceIdOption = 1,
    registers: Annotated[
        Optional[list[str]],
        typer.Option("--register", "-r", help="Input register id or name to read instead of all (repeatable)"),
    ] = None,
    with_holding: Annotated[
        bool,
        typer.Option("--all", "-a", help="Read all holding registers as well"),
    ] = False,
    timeout: TimeoutOption = None,
    socket_framing: SocketFramingOption = False,
    verbose: VerboseOption = False,
) -> None:
    """
    Print a snapshot of the meter registers as Name:Value lines, then exit.

    Holding registers (with --all) come first, then the input registers.
    """
    setup_logging(verbose)

    try:
        inputs = select_registers(registers) if registers else None
    except UnknownRegisterError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)

    transport = create_transport(destination, device_id, timeout, socket_framing)

    async def _run() -> None:
        try:
            await read_snapshot(transport, with_holding=with_holding, inputs=inputs, emit=typer.echo)
        finally:
            transport.close()

    try:
        asyncio.run(_run())
    except (HostLookupError, ConnectError) as e:
        typer.echo(f"Error: unable to {e}", err=True)
        raise typer.Exit(3)
    except RegisterReadError as e:
        typer.echo(f"Error: unable to {e}: {e.cause}", err=True)
        raise typer.Exit(3)
    except Exception as e:
        typer.echo(f"Error: Unexpected error: {e}", err=True)
        if verbose:
            import traceback
            traceback.print_exc()
        raise typer.Exit(4)


@app.command()
def gateway(
    listen: Annotated[str, typer.Argument(help="Address to serve Modbus TCP on: [addr:]port")],
    destination: DestinationArgument = DEFAULT_DESTINATION,
    device_id: DeviceIdOption = 1,
    timeout: TimeoutOption = None,
    socket_framing: SocketFramingOption = False,
    verbose: VerboseOption = False,
) -> None:
    """
    Serve the meter's input registers to Modbus TCP clients over one downstream link.

    Runs until interrupted. Downstream connect failures exit before listening.
    """
    setup_logging(verbose)
    # Retries and client connections are logged at INFO/WARNING even without --verbose
    logging.getLogger("sdm_gateway").setLevel(logging.DEBUG if verbose else logging.INFO)

    try:
        bind = parse_listen(listen)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)
    transport = create_transport(destination, device_id, timeout, socket_framing)

    typer.echo(f"server on {bind} for {transport.target}")
    try:
        asyncio.run(run_gateway(transport, bind))
    except (HostLookupError, ConnectError) as e:
        typer.echo(f"Error: unable to {e}", err=True)
        raise typer.Exit(3)
    except OSError as e:
        typer.echo(f"Error: unable to listen on {bind}: {e}", err=True)
        raise typer.Exit(3)
    except KeyboardInterrupt:
        typer.echo("\nStopped by user", err=True)
        raise typer.Exit(0)
    except Exception as e:
        typer.echo(f"Error: Unexpected error: {e}", err=True)
        if verbose:
            import traceback
            traceback.print_exc()
        raise typer.Exit(4)


@app.command(name="registers")
def list_registers(
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List the register catalog (no connection needed)."""
    if json_output:
        data = {
            table.value: [
                {
                    "id": r.id,
                    "address": r.address,
                    "name": r.name,
                    "type": r.type.value,
                    "word_length": r.word_length,
                }
                for r in regs
            ]
            for table, regs in CATALOG.items()
        }
        typer.echo(json.dumps(data, indent=2))
        return
    for table, regs in CATALOG.items():
        typer.echo(f"{table.value} registers:")
        for r in regs:
            typer.echo(f"  {r.id:>5}  {r.name}  ({r.type.value})")


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"sdm-gateway {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """sdm-gateway - SDM72D register reader and Modbus TCP gateway."""
    pass


if __name__ == "__main__":
    app()
