"""Storage layout of Safe v1.4.1 proxies.

Mapping entries live at `keccak256(pad32(key) || pad32(slot))`.
"""

from eth_utils.crypto import keccak
from hexbytes import HexBytes

from .encoding import HexLike, concat_hex, pad_hex

SINGLETON_SLOT = 0
MODULES_MAPPING_SLOT = 1
OWNERS_MAPPING_SLOT = 2
OWNER_COUNT_SLOT = 3
THRESHOLD_SLOT = 4
NONCE_SLOT = 5
APPROVED_HASHES_MAPPING_SLOT = 8
# keccak256("fallback_manager.handler.address")
FALLBACK_HANDLER_SLOT = int(
    "0x6c9a6c4a39284e37ed1cf53d337577d14212a4870fb976a4366c693b939918d5", 16
)
# keccak256("guard_manager.guard.address")
GUARD_SLOT = int("0x4a204f620c8c5ccdca3fd54d003badd85ba500436a431f0cbda4f558c93c34c8", 16)


def compute_mapping_storage_slot(key: HexLike, mapping_slot: int) -> HexBytes:
    return HexBytes(keccak(concat_hex(pad_hex(key), pad_hex(hex(mapping_slot)))))


def compute_owners_mapping_slot(owner: HexLike) -> HexBytes:
    return compute_mapping_storage_slot(owner, OWNERS_MAPPING_SLOT)


def compute_modules_mapping_slot(module: HexLike) -> HexBytes:
    return compute_mapping_storage_slot(module, MODULES_MAPPING_SLOT)


def compute_approved_hash_slot(owner: HexLike, data_hash: HexLike) -> HexBytes:
    """Slot of `approvedHashes[owner][data_hash]`."""
    inner = compute_mapping_storage_slot(owner, APPROVED_HASHES_MAPPING_SLOT)
    return HexBytes(keccak(concat_hex(pad_hex(data_hash), inner)))
