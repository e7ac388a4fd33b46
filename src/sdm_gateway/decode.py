"""Decode raw register buffers into display values per register type."""

import struct

from .types import Register, RegisterType

DecodedValue = str | int


def format_float(value: float) -> str:
    """
    Format a float with 3 decimals, then strip trailing zeros and a dangling point.

    12.000 -> "12", 12.340 -> "12.34", 1234.5 -> "1234.5".
    """
    # -0.0 + 0.0 == 0.0; keeps "0" rather than "-0" for a negative zero reading
    text = f"{value + 0.0:.3f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def decode(register: Register, raw: bytes) -> DecodedValue:
    """
    Decode the first 4 bytes of raw according to register.type.

    FLOAT32_BE yields a display string; anything else a signed 32-bit integer.
    Raises ValueError if raw is shorter than 4 bytes.
    """
    if len(raw) < 4:
        raise ValueError(f"need 4 bytes to decode {register.label()}, got {len(raw)}")
    head = bytes(raw[:4])
    if register.type == RegisterType.FLOAT32_BE:
        return format_float(struct.unpack(">f", head)[0])
    return struct.unpack(">i", head)[0]
