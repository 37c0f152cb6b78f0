"""Owner management transactions.

The Safe stores owners in a linked list headed by the sentinel address, so
removing or replacing an owner requires the address pointing to it.
"""

import logging
from typing import (
    TYPE_CHECKING,
    Any,
    Optional,
    Sequence,
)

from .account_state import get_owners
from .constants import (
    ADD_OWNER_SELECTOR,
    CHANGE_THRESHOLD_SELECTOR,
    REMOVE_OWNER_SELECTOR,
    SENTINEL_ADDRESS,
    SWAP_OWNER_SELECTOR,
)
from .encoding import encode_with_selector
from .errors import OwnerNotFoundError
from .models import FullSafeTransaction
from .provider import Provider
from .transactions import build_self_transaction
from .util import as_checksum, to_checksum_address

if TYPE_CHECKING:
    from eth_typing import ChecksumAddress

logger = logging.getLogger(__name__)


def find_previous_owner(
    owners: Sequence[str], owner: str, safe_address: str
) -> "ChecksumAddress":
    owners = [to_checksum_address(o) for o in owners]
    owner = to_checksum_address(owner)
    if owner not in owners:
        raise OwnerNotFoundError(owner, safe_address)
    index = owners.index(owner)
    if index == 0:
        return as_checksum(SENTINEL_ADDRESS)
    return as_checksum(owners[index - 1])


async def _resolve_previous_owner(
    provider: Provider, safe_address: str, owner: str, prev_owner: Optional[str]
) -> "ChecksumAddress":
    if prev_owner is not None:
        return to_checksum_address(prev_owner)
    owners = await get_owners(safe_address).call(provider)
    return find_previous_owner(owners, owner, safe_address)


async def get_add_owner_transaction(
    provider: Provider,
    safe_address: str,
    new_owner: str,
    new_threshold: int,
    **options: Any,
) -> FullSafeTransaction:
    data = encode_with_selector(
        ADD_OWNER_SELECTOR, to_checksum_address(new_owner), new_threshold
    )
    return await build_self_transaction(provider, safe_address, data, **options)


async def get_remove_owner_transaction(
    provider: Provider,
    safe_address: str,
    owner: str,
    new_threshold: int,
    *,
    prev_owner: Optional[str] = None,
    **options: Any,
) -> FullSafeTransaction:
    owner = to_checksum_address(owner)
    prev = await _resolve_previous_owner(provider, safe_address, owner, prev_owner)
    data = encode_with_selector(REMOVE_OWNER_SELECTOR, prev, owner, new_threshold)
    return await build_self_transaction(provider, safe_address, data, **options)


async def get_swap_owner_transaction(
    provider: Provider,
    safe_address: str,
    old_owner: str,
    new_owner: str,
    *,
    prev_owner: Optional[str] = None,
    **options: Any,
) -> FullSafeTransaction:
    old_owner = to_checksum_address(old_owner)
    prev = await _resolve_previous_owner(provider, safe_address, old_owner, prev_owner)
    data = encode_with_selector(
        SWAP_OWNER_SELECTOR, prev, old_owner, to_checksum_address(new_owner)
    )
    return await build_self_transaction(provider, safe_address, data, **options)


async def get_change_threshold_transaction(
    provider: Provider,
    safe_address: str,
    new_threshold: int,
    **options: Any,
) -> FullSafeTransaction:
    data = encode_with_selector(CHANGE_THRESHOLD_SELECTOR, new_threshold)
    return await build_self_transaction(provider, safe_address, data, **options)
