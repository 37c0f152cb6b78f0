import logging
from typing import (
    TYPE_CHECKING,
    Any,
    cast,
)

from hexbytes import (
    HexBytes,
)

from .errors import EncodingError

if TYPE_CHECKING:
    from eth_typing import ChecksumAddress

logger = logging.getLogger(__name__)


def as_checksum(checksum_str: str) -> "ChecksumAddress":
    """Cast to satisfy type checker."""
    return cast("ChecksumAddress", checksum_str)


def hexbytes_json_encoder(obj: Any):
    if isinstance(obj, HexBytes):
        return obj.to_0x_hex()
    if isinstance(obj, bytes):
        return HexBytes(obj).to_0x_hex()
    raise TypeError(f"Cannot serialize object of {type(obj)}")


def hash_eip712_data(data: Any) -> HexBytes:  # using eth_account
    """Compute EIP-712 typed data hash.

    This replicates `eth_account.account.sign_typed_data()` except it
    doesn't require a private key.
    """
    from eth_account.messages import (
        _hash_eip191_message,  # pyright: ignore[reportPrivateUsage]
        encode_typed_data,
    )

    encoded = encode_typed_data(full_message=data)
    return HexBytes(_hash_eip191_message(encoded))


def eip712_preimage(data: Any) -> HexBytes:
    """Return `0x19 || 0x01 || domainSeparator || structHash` for typed data."""
    from eth_account.messages import encode_typed_data

    encoded = encode_typed_data(full_message=data)
    return HexBytes(b"\x19" + encoded.version + encoded.header + encoded.body)


def personal_hash(message: bytes) -> HexBytes:
    """EIP-191 `personal_sign` hash of raw message bytes."""
    from eth_account.messages import (
        _hash_eip191_message,  # pyright: ignore[reportPrivateUsage]
        encode_defunct,
    )

    return HexBytes(_hash_eip191_message(encode_defunct(primitive=bytes(message))))


def to_checksum_address(address: "str | bytes") -> "ChecksumAddress":
    from eth_utils.address import to_checksum_address

    try:
        return to_checksum_address(address)
    except (ValueError, TypeError) as exc:
        raise EncodingError(f"Invalid address '{address!r}'") from exc
