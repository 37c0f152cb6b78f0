"""Reads of a Safe's on-chain state.

Each function returns a `StateRead`; `await read.call(provider)` runs it.
Scalar configuration is read through `getStorageAt` so that it works even
against proxies whose singleton is unknown.
"""

import asyncio
import logging
from typing import (
    TYPE_CHECKING,
    Union,
)

from eth_abi.abi import decode as abi_decode
from eth_abi.abi import encode as abi_encode
from eth_abi.exceptions import DecodingError
from hexbytes import (
    HexBytes,
)

from .constants import SENTINEL_ADDRESS, selector
from .errors import ProviderError
from .provider import BlockIdentifier, Provider, StateRead
from .storage import (
    FALLBACK_HANDLER_SLOT,
    GUARD_SLOT,
    NONCE_SLOT,
    OWNER_COUNT_SLOT,
    SINGLETON_SLOT,
    THRESHOLD_SLOT,
    compute_owners_mapping_slot,
)
from .util import to_checksum_address

if TYPE_CHECKING:
    from eth_typing import ChecksumAddress

logger = logging.getLogger(__name__)

GET_STORAGE_AT_SELECTOR = selector("getStorageAt(uint256,uint256)")
GET_OWNERS_SELECTOR = selector("getOwners()")
GET_MODULES_PAGINATED_SELECTOR = selector("getModulesPaginated(address,uint256)")
VERSION_SELECTOR = selector("VERSION()")

DEFAULT_MODULES_PAGE_SIZE = 100


def _decode(types: list[str], raw: HexBytes, what: str, safe_address: str):
    if not raw:
        raise ProviderError(f"Failed to retrieve {what} for Safe at {safe_address}")
    try:
        return abi_decode(types, raw)
    except DecodingError as exc:
        raise ProviderError(
            f"Malformed {what} result for Safe at {safe_address}"
        ) from exc


def get_storage_at(
    safe_address: str,
    slot: Union[int, bytes],
    length: int = 1,
    block: BlockIdentifier = "latest",
) -> StateRead[list[HexBytes]]:
    """Read `length` consecutive 32-byte words starting at `slot`."""
    safe_address = to_checksum_address(safe_address)
    if isinstance(slot, bytes):
        slot = int.from_bytes(slot, "big")
    data = HexBytes(
        GET_STORAGE_AT_SELECTOR + abi_encode(["uint256", "uint256"], [slot, length])
    )

    def decoder(raw: HexBytes) -> list[HexBytes]:
        (value,) = _decode(["bytes"], raw, f"storage at slot {hex(slot)}", safe_address)
        return [HexBytes(value[i : i + 32]) for i in range(0, len(value), 32)]

    return StateRead(to=safe_address, data=data, decoder=decoder, block=block)


def _storage_word(
    safe_address: str, slot: int, what: str, block: BlockIdentifier
) -> StateRead[HexBytes]:
    read = get_storage_at(safe_address, slot, block=block)

    def decoder(raw: HexBytes) -> HexBytes:
        words = read.decoder(raw)
        if not words:
            raise ProviderError(f"Failed to retrieve {what} for Safe at {read.to}")
        return words[0]

    return StateRead(to=read.to, data=read.data, decoder=decoder, block=block)


def _storage_uint(
    safe_address: str, slot: int, what: str, block: BlockIdentifier
) -> StateRead[int]:
    read = _storage_word(safe_address, slot, what, block)
    return StateRead(
        to=read.to,
        data=read.data,
        decoder=lambda raw: int.from_bytes(read.decoder(raw), "big"),
        block=block,
    )


def _storage_address(
    safe_address: str, slot: int, what: str, block: BlockIdentifier
) -> StateRead["ChecksumAddress"]:
    read = _storage_word(safe_address, slot, what, block)
    return StateRead(
        to=read.to,
        data=read.data,
        decoder=lambda raw: to_checksum_address(read.decoder(raw)[-20:]),
        block=block,
    )


def get_nonce(safe_address: str, block: BlockIdentifier = "latest") -> StateRead[int]:
    return _storage_uint(safe_address, NONCE_SLOT, "nonce", block)


def get_threshold(
    safe_address: str, block: BlockIdentifier = "latest"
) -> StateRead[int]:
    return _storage_uint(safe_address, THRESHOLD_SLOT, "threshold", block)


def get_owner_count(
    safe_address: str, block: BlockIdentifier = "latest"
) -> StateRead[int]:
    return _storage_uint(safe_address, OWNER_COUNT_SLOT, "owner count", block)


def get_guard(
    safe_address: str, block: BlockIdentifier = "latest"
) -> StateRead["ChecksumAddress"]:
    return _storage_address(safe_address, GUARD_SLOT, "guard", block)


def get_fallback_handler(
    safe_address: str, block: BlockIdentifier = "latest"
) -> StateRead["ChecksumAddress"]:
    return _storage_address(
        safe_address, FALLBACK_HANDLER_SLOT, "fallback handler", block
    )


def get_singleton(
    safe_address: str, block: BlockIdentifier = "latest"
) -> StateRead["ChecksumAddress"]:
    return _storage_address(safe_address, SINGLETON_SLOT, "singleton", block)


def get_owners(
    safe_address: str, block: BlockIdentifier = "latest"
) -> StateRead[list["ChecksumAddress"]]:
    safe_address = to_checksum_address(safe_address)

    def decoder(raw: HexBytes) -> list["ChecksumAddress"]:
        (owners,) = _decode(["address[]"], raw, "owners", safe_address)
        return [to_checksum_address(owner) for owner in owners]

    return StateRead(
        to=safe_address, data=GET_OWNERS_SELECTOR, decoder=decoder, block=block
    )


def get_modules_paginated(
    safe_address: str,
    start: str = SENTINEL_ADDRESS,
    page_size: int = DEFAULT_MODULES_PAGE_SIZE,
    block: BlockIdentifier = "latest",
) -> StateRead[tuple[list["ChecksumAddress"], "ChecksumAddress"]]:
    """Read one page of enabled modules and the cursor for the next page.

    The returned cursor is the sentinel when there are no further pages.
    """
    safe_address = to_checksum_address(safe_address)
    data = HexBytes(
        GET_MODULES_PAGINATED_SELECTOR
        + abi_encode(["address", "uint256"], [to_checksum_address(start), page_size])
    )

    def decoder(raw: HexBytes) -> tuple[list["ChecksumAddress"], "ChecksumAddress"]:
        modules, next_cursor = _decode(
            ["address[]", "address"], raw, "modules", safe_address
        )
        return (
            [to_checksum_address(module) for module in modules],
            to_checksum_address(next_cursor),
        )

    return StateRead(to=safe_address, data=data, decoder=decoder, block=block)


def get_version(safe_address: str, block: BlockIdentifier = "latest") -> StateRead[str]:
    safe_address = to_checksum_address(safe_address)

    def decoder(raw: HexBytes) -> str:
        (version,) = _decode(["string"], raw, "version", safe_address)
        return version

    return StateRead(to=safe_address, data=VERSION_SELECTOR, decoder=decoder, block=block)


async def is_safe_account(
    provider: Provider, address: str, block: BlockIdentifier = "latest"
) -> bool:
    """Check that `address` behaves like a Safe.

    The owners list must start at the entry the sentinel points to in the
    owners mapping. Any failed read means the address is not a Safe.
    """
    address = to_checksum_address(address)
    sentinel_slot = compute_owners_mapping_slot(SENTINEL_ADDRESS)
    try:
        owners, words = await asyncio.gather(
            get_owners(address, block).call(provider),
            get_storage_at(address, sentinel_slot, block=block).call(provider),
        )
    except ProviderError as exc:
        logger.debug(f"{address} is not a Safe: {exc}")
        return False
    if not owners or not words:
        return False
    return owners[0] == to_checksum_address(words[0][-20:])
