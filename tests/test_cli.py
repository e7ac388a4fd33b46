"""Tests for CLI module - destination/listen parsing and command behavior."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from sdm_gateway.cli import app, parse_destination, parse_listen, validate_device_id
from sdm_gateway.errors import ConnectError, HostLookupError, RegisterReadError
from sdm_gateway.transport import ModbusTransport
from sdm_gateway.types import ListenAddress, SerialTarget, TcpTarget

runner = CliRunner()


# ============================================================================
# Parsing Tests
# ============================================================================


class TestParseDestination:
    """Test serial-vs-TCP destination parsing."""

    def test_host_default_port(self) -> None:
        assert parse_destination("meter.local") == TcpTarget("meter.local", 502)

    def test_host_with_port(self) -> None:
        assert parse_destination("modbusserver:1502") == TcpTarget("modbusserver", 1502)

    def test_socket_framing(self) -> None:
        assert parse_destination("10.0.0.2", socket_framing=True) == TcpTarget("10.0.0.2", 502, rtu_framing=False)

    def test_serial_default_baud(self) -> None:
        assert parse_destination("/dev/ttyUSB1") == SerialTarget("/dev/ttyUSB1", 9600)

    def test_serial_with_baud(self) -> None:
        assert parse_destination("/dev/ttyUSB1:19200") == SerialTarget("/dev/ttyUSB1", 19200)

    def test_windows_com_port(self) -> None:
        assert parse_destination("COM3:4800") == SerialTarget("COM3", 4800)

    @pytest.mark.parametrize(
        "bad",
        ["", "a:b:c", "meter:0", "meter:65536", "meter:abc", "/dev/ttyUSB0:230400", "/dev/ttyUSB0:0", ":502"],
    )
    def test_invalid(self, bad: str) -> None:
        with pytest.raises(ValueError):
            parse_destination(bad)


class TestParseListen:
    """Test gateway bind parsing."""

    def test_port_only(self) -> None:
        assert parse_listen("1502") == ListenAddress(port=1502, host="0.0.0.0")

    def test_addr_and_port(self) -> None:
        assert parse_listen("127.0.0.1:1502") == ListenAddress(port=1502, host="127.0.0.1")

    def test_empty_addr(self) -> None:
        assert parse_listen(":502") == ListenAddress(port=502)

    @pytest.mark.parametrize("bad", ["", "0", "70000", "a:b:c", "host:"])
    def test_invalid(self, bad: str) -> None:
        with pytest.raises(ValueError):
            parse_listen(bad)


def test_validate_device_id() -> None:
    assert validate_device_id(0) == 0
    assert validate_device_id(247) == 247
    with pytest.raises(ValueError, match="out of range"):
        validate_device_id(256)


# ============================================================================
# Command Tests (with mocked reader / gateway)
# ============================================================================


@patch("sdm_gateway.cli.read_snapshot", new_callable=AsyncMock)
def test_read_command(mock_read: AsyncMock) -> None:
    async def _emit(transport, *, with_holding, inputs, emit):
        emit("Total system power:1234.5")
        return []

    mock_read.side_effect = _emit
    result = runner.invoke(app, ["read", "meter.local:1502", "-i", "3"])

    assert result.exit_code == 0
    assert "Total system power:1234.5" in result.stdout
    transport = mock_read.call_args.args[0]
    assert isinstance(transport, ModbusTransport)
    assert transport.target == TcpTarget("meter.local", 1502)
    assert transport.unit_id == 3
    assert mock_read.call_args.kwargs["with_holding"] is False
    assert mock_read.call_args.kwargs["inputs"] is None


@patch("sdm_gateway.cli.read_snapshot", new_callable=AsyncMock)
def test_read_command_register_filter(mock_read: AsyncMock) -> None:
    result = runner.invoke(app, ["read", "/dev/ttyUSB0", "-r", "1281", "-r", "Total system power", "-a"])

    assert result.exit_code == 0
    kwargs = mock_read.call_args.kwargs
    assert [r.id for r in kwargs["inputs"]] == [1281, 53]
    assert kwargs["with_holding"] is True
    assert mock_read.call_args.args[0].target == SerialTarget("/dev/ttyUSB0", 9600)


def test_read_command_unknown_register() -> None:
    result = runner.invoke(app, ["read", "-r", "Nope"])
    assert result.exit_code == 2
    assert "Unknown register" in result.output


def test_read_command_invalid_destination() -> None:
    result = runner.invoke(app, ["read", "meter:99999"])
    assert result.exit_code == 2
    assert "out of range" in result.output


@patch("sdm_gateway.cli.read_snapshot", new_callable=AsyncMock)
def test_read_command_partial_output_then_error(mock_read: AsyncMock) -> None:
    async def _emit(transport, *, with_holding, inputs, emit):
        emit("Total system power:12")
        raise RegisterReadError(
            "read input 73:Import Wh since last reset",
            register_class="input",
            cause=TimeoutError("timed out"),
        )

    mock_read.side_effect = _emit
    result = runner.invoke(app, ["read", "127.0.0.1"])

    assert result.exit_code == 3
    assert "Total system power:12" in result.output
    assert "unable to read input 73:Import Wh since last reset" in result.output


@patch("sdm_gateway.cli.read_snapshot", new_callable=AsyncMock)
def test_read_command_lookup_error(mock_read: AsyncMock) -> None:
    mock_read.side_effect = HostLookupError("meter.invalid")
    result = runner.invoke(app, ["read", "meter.invalid"])
    assert result.exit_code == 3
    assert "unable to lookup meter.invalid" in result.output


@patch("sdm_gateway.cli.run_gateway", new_callable=AsyncMock)
def test_gateway_command(mock_run: AsyncMock) -> None:
    result = runner.invoke(app, ["gateway", "127.0.0.1:1502", "/dev/ttyUSB0:19200", "-i", "2"])

    assert result.exit_code == 0
    assert "server on 127.0.0.1:1502" in result.stdout
    transport, bind = mock_run.call_args.args
    assert transport.target == SerialTarget("/dev/ttyUSB0", 19200)
    assert transport.unit_id == 2
    assert bind == ListenAddress(port=1502, host="127.0.0.1")


@patch("sdm_gateway.cli.run_gateway", new_callable=AsyncMock)
def test_gateway_command_connect_failure(mock_run: AsyncMock) -> None:
    mock_run.side_effect = ConnectError("/dev/ttyUSB0:9600")
    result = runner.invoke(app, ["gateway", "1502", "/dev/ttyUSB0"])
    assert result.exit_code == 3
    assert "unable to connect /dev/ttyUSB0:9600" in result.output


@patch("sdm_gateway.cli.run_gateway", new_callable=AsyncMock)
def test_gateway_command_unexpected_error(mock_run: AsyncMock) -> None:
    mock_run.side_effect = ValueError("boom")
    result = runner.invoke(app, ["gateway", "1502", "/dev/ttyUSB0"])
    assert result.exit_code == 4
    assert "Unexpected error: boom" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_gateway_command_invalid_listen() -> None:
    result = runner.invoke(app, ["gateway", "a:b:c"])
    assert result.exit_code == 2
    assert "Invalid listen address" in result.output


def test_registers_command() -> None:
    result = runner.invoke(app, ["registers"])
    assert result.exit_code == 0
    assert "holding registers:" in result.stdout
    assert "Total system power" in result.stdout


def test_registers_command_json() -> None:
    result = runner.invoke(app, ["registers", "--json"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["input"][0] == {
        "id": 53,
        "address": 52,
        "name": "Total system power",
        "type": "float32_be",
        "word_length": 2,
    }
    assert len(data["holding"]) == 8


def test_command_help() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "read" in result.stdout
    assert "gateway" in result.stdout
    assert "registers" in result.stdout


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "sdm-gateway" in result.stdout
