"""Fixed-width hex and ABI slot helpers."""

import logging
from typing import Union

from hexbytes import HexBytes

from .errors import EncodingError

logger = logging.getLogger(__name__)

HexLike = Union[str, bytes]
SLOT_SIZE = 32


def to_bytes(value: HexLike) -> bytes:
    """Convert a hex string (with or without 0x prefix) or bytes to bytes."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    hexstr = value[2:] if value[:2] in ("0x", "0X") else value
    if len(hexstr) % 2:
        hexstr = "0" + hexstr
    try:
        return bytes.fromhex(hexstr)
    except ValueError as exc:
        raise EncodingError(f"Invalid hex value '{value}'") from exc


def pad_hex(value: HexLike, size: int = SLOT_SIZE) -> HexBytes:
    """Left-pad a hex value with zeros to `size` bytes."""
    raw = to_bytes(value)
    if len(raw) > size:
        raise EncodingError(
            f"Value 0x{raw.hex()} exceeds {size}-byte length ({len(raw)} bytes)"
        )
    return HexBytes(raw.rjust(size, b"\x00"))


def encode_uint(value: int, size: int = SLOT_SIZE) -> HexBytes:
    if value < 0:
        raise EncodingError(f"Cannot encode negative integer {value}")
    try:
        return HexBytes(value.to_bytes(size, "big"))
    except OverflowError as exc:
        raise EncodingError(f"Integer {value} exceeds {size}-byte length") from exc


def encode_with_selector(selector: HexLike, *args: Union[HexLike, int]) -> HexBytes:
    """Concatenate a 4-byte selector with 32-byte ABI slots for each argument.

    Integers are encoded big-endian, while hex strings and bytes (addresses,
    bytes32) are right-aligned in their slot.
    """
    selector_bytes = to_bytes(selector)
    if len(selector_bytes) != 4:
        raise EncodingError(
            f"Selector must be exactly 4 bytes, got {len(selector_bytes)}"
        )
    slots: list[bytes] = []
    for arg in args:
        # bool is an int subclass and would silently encode as 0 or 1
        if isinstance(arg, bool):
            raise EncodingError("Boolean arguments are not supported")
        if isinstance(arg, int):
            slots.append(encode_uint(arg))
        else:
            slots.append(pad_hex(arg))
    return HexBytes(selector_bytes + b"".join(slots))


def concat_hex(*parts: HexLike) -> HexBytes:
    return HexBytes(b"".join(to_bytes(part) for part in parts))
