import pytest
from hexbytes import HexBytes

from minisafe.encoding import concat_hex, encode_with_selector, pad_hex
from minisafe.errors import EncodingError


def test_pad_hex():
    assert pad_hex("0x") == HexBytes(b"\x00" * 32)
    assert pad_hex(b"") == HexBytes(b"\x00" * 32)
    assert pad_hex("0x1") == HexBytes(b"\x00" * 31 + b"\x01")
    assert pad_hex("abcd", size=4) == HexBytes("0x0000abcd")
    assert pad_hex(b"\xff" * 32) == HexBytes(b"\xff" * 32)
    with pytest.raises(EncodingError):
        pad_hex(b"\xff" * 33)
    with pytest.raises(EncodingError):
        pad_hex("0x123456", size=2)
    with pytest.raises(EncodingError):
        pad_hex("0xnothex")


def test_encode_with_selector():
    owner = "0xdeadbeef00000000000000000000000000000000"
    data = encode_with_selector("0x0d582f13", owner, 2)
    assert len(data) == 4 + 2 * 32
    assert data[:4] == HexBytes("0x0d582f13")
    assert data[4:36] == HexBytes(b"\x00" * 12 + bytes.fromhex(owner[2:]))
    assert data[36:68] == HexBytes((2).to_bytes(32, "big"))

    assert encode_with_selector("0x694e80c3") == HexBytes("0x694e80c3")
    bytes32 = HexBytes(b"\x01" * 32)
    assert encode_with_selector(b"\x12\x34\x56\x78", bytes32)[4:] == bytes32


def test_encode_with_selector_errors():
    for selector in ("0x", "0x123456", "0x1234567890"):
        with pytest.raises(EncodingError):
            encode_with_selector(selector, 1)
    with pytest.raises(EncodingError):
        encode_with_selector("0x694e80c3", -1)
    with pytest.raises(EncodingError):
        encode_with_selector("0x694e80c3", 2**256)
    with pytest.raises(EncodingError):
        encode_with_selector("0x694e80c3", b"\x01" * 33)
    with pytest.raises(EncodingError):
        encode_with_selector("0x694e80c3", True)


def test_encoding_errors_are_value_errors():
    with pytest.raises(ValueError):
        encode_with_selector("0x00", 1)


def test_concat_hex():
    assert concat_hex() == HexBytes(b"")
    assert concat_hex("0x01", b"\x02", "03") == HexBytes("0x010203")
