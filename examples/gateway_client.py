#!/usr/bin/env python3
"""Example: read meter values through a running sdm-gateway with a plain pymodbus client."""

import struct
import sys

from pymodbus.client import ModbusTcpClient

from sdm_gateway import INPUT_REGISTERS


def main() -> None:
    host = "127.0.0.1"  # where `sdm-gateway gateway 1502 /dev/ttyUSB0` is running
    port = 1502
    unit_id = 1

    client = ModbusTcpClient(host=host, port=port, timeout=10)
    if not client.connect():
        print(f"Unable to connect to {host}:{port}", file=sys.stderr)
        sys.exit(1)
    try:
        for register in INPUT_REGISTERS:
            # Each requested word is one downstream read; two words make up the float
            rr = client.read_input_registers(register.address, count=2, device_id=unit_id)
            if rr.isError():
                print(f"{register.name}: error {rr}", file=sys.stderr)
                continue
            value = struct.unpack(">f", struct.pack(">HH", *rr.registers))[0]
            print(f"{register.name}: {value:.3f}")
    finally:
        client.close()


if __name__ == "__main__":
    main()
