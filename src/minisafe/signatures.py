"""Packing and unpacking of the `signatures` argument of `execTransaction`.

Layout: one 65-byte static slot per signature in ascending signer order,
followed by a dynamic region holding `pad32(length) || bytes` for each
contract signature. A contract signature's static slot stores
`pad32(signer) || pad32(offset) || 0x00`, where `offset` is measured from the
start of the signature bytes.
"""

import logging
from typing import (
    TYPE_CHECKING,
    Sequence,
)

from hexbytes import (
    HexBytes,
)

from .constants import ECDSA_SIGNATURE_LENGTH
from .encoding import concat_hex, encode_uint, pad_hex
from .errors import EncodingError, UnknownSignatureTypeError
from .models import (
    ApprovedHashSignature,
    ContractSignature,
    ECDSASignature,
    Signature,
    SignatureType,
)
from .util import personal_hash, to_checksum_address

if TYPE_CHECKING:
    from eth_typing import ChecksumAddress

logger = logging.getLogger(__name__)

ETH_SIGN_V_OFFSET = 4


def get_signature_type(data: bytes) -> SignatureType:
    """Return the type encoded in the v-byte (offset 64) of a signature."""
    if len(data) < ECDSA_SIGNATURE_LENGTH:
        raise EncodingError(
            f"Signature too short to determine v-byte ({len(data)} bytes)"
        )
    vbyte = data[ECDSA_SIGNATURE_LENGTH - 1]
    try:
        return SignatureType(vbyte)
    except ValueError:
        raise UnknownSignatureTypeError(vbyte) from None


def approved_hash_signature_bytes(signer: str) -> HexBytes:
    return concat_hex(
        pad_hex(to_checksum_address(signer)),
        pad_hex(b""),
        bytes([SignatureType.APPROVED_HASH]),
    )


def recover_ecdsa_signer(data: bytes, data_hash: bytes) -> "ChecksumAddress":
    """Recover the signer of a 65-byte EIP-712 or eth_sign signature."""
    from eth_account import Account

    sigtype = get_signature_type(data)
    if len(data) != ECDSA_SIGNATURE_LENGTH:
        raise EncodingError(
            f"Invalid ECDSA signature length: expected {ECDSA_SIGNATURE_LENGTH} "
            f"bytes, got {len(data)}"
        )
    if sigtype in (SignatureType.EIP712_RECID_1, SignatureType.EIP712_RECID_2):
        message_hash, signature = bytes(data_hash), bytes(data)
    elif sigtype in (SignatureType.ETH_SIGN_RECID_1, SignatureType.ETH_SIGN_RECID_2):
        # eth_sign signatures commit to the personal-message hash with v + 4
        message_hash = bytes(personal_hash(data_hash))
        signature = bytes(data[:64]) + bytes([data[64] - ETH_SIGN_V_OFFSET])
    else:
        raise EncodingError(f"Not an ECDSA signature (v-byte {int(sigtype)})")
    try:
        signer = Account._recover_hash(message_hash, signature=signature)  # pyright: ignore[reportPrivateUsage]
    except Exception as exc:
        raise EncodingError(f"Cannot recover ECDSA signer: {exc}") from exc
    return to_checksum_address(signer)


def _sort_key(signature: Signature) -> int:
    return int(signature.signer, 16)


def encode_safe_signatures(signatures: Sequence[Signature]) -> HexBytes:
    if not signatures:
        raise EncodingError("Cannot encode empty signatures list")
    ordered = sorted(signatures, key=_sort_key)
    for previous, current in zip(ordered, ordered[1:]):
        if _sort_key(previous) == _sort_key(current):
            raise EncodingError(f"Duplicate signature from {current.signer}")
    static_part: list[bytes] = []
    dynamic_part: list[bytes] = []
    dynamic_length = 0
    for signature in ordered:
        match signature:
            case ApprovedHashSignature(signer=signer):
                static_part.append(approved_hash_signature_bytes(signer))
            case ECDSASignature(data=data):
                if len(data) != ECDSA_SIGNATURE_LENGTH:
                    raise EncodingError(
                        f"Invalid ECDSA signature length: expected "
                        f"{ECDSA_SIGNATURE_LENGTH} bytes, got {len(data)}"
                    )
                static_part.append(bytes(data))
            case ContractSignature(signer=signer, data=data):
                offset = len(ordered) * ECDSA_SIGNATURE_LENGTH + dynamic_length
                static_part.append(
                    concat_hex(
                        pad_hex(signer),
                        encode_uint(offset),
                        bytes([SignatureType.CONTRACT]),
                    )
                )
                blob = concat_hex(encode_uint(len(data)), data)
                dynamic_part.append(blob)
                dynamic_length += len(blob)
    return HexBytes(b"".join(static_part) + b"".join(dynamic_part))


def _read_dynamic(encoded: bytes, offset: int) -> HexBytes:
    if offset + 32 > len(encoded):
        raise EncodingError(
            f"Invalid signature: dynamic offset {offset} out of bounds "
            f"({len(encoded)} bytes)"
        )
    length = int.from_bytes(encoded[offset : offset + 32], "big")
    start = offset + 32
    if start + length > len(encoded):
        raise EncodingError(
            f"Invalid signature: dynamic data [{start}, {start + length}] "
            f"exceeds {len(encoded)} bytes"
        )
    return HexBytes(encoded[start : start + length])


def decode_safe_signatures(encoded: bytes, data_hash: bytes) -> list[Signature]:
    """Split packed signature bytes back into typed signatures.

    ECDSA signers are recovered against `data_hash`. Static slots are read
    until the first byte of the dynamic region.
    """
    encoded = bytes(encoded)
    signatures: list[Signature] = []
    end = len(encoded)
    pos = 0
    while pos + ECDSA_SIGNATURE_LENGTH <= end:
        slot = encoded[pos : pos + ECDSA_SIGNATURE_LENGTH]
        sigtype = get_signature_type(slot)
        if sigtype == SignatureType.CONTRACT:
            signer = to_checksum_address(slot[12:32])
            offset = int.from_bytes(slot[32:64], "big")
            signatures.append(
                ContractSignature(signer=signer, data=_read_dynamic(encoded, offset))
            )
            end = min(end, offset)
        elif sigtype == SignatureType.APPROVED_HASH:
            signatures.append(ApprovedHashSignature(signer=to_checksum_address(slot[12:32])))
        else:
            signatures.append(
                ECDSASignature(
                    signer=recover_ecdsa_signer(slot, data_hash), data=HexBytes(slot)
                )
            )
        pos += ECDSA_SIGNATURE_LENGTH
    logger.debug(f"Decoded {len(signatures)} signatures")
    return signatures
