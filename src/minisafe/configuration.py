"""Guard and fallback handler transactions.

Passing the zero address removes the guard or the fallback handler.
"""

from typing import Any

from .constants import (
    SET_FALLBACK_HANDLER_SELECTOR,
    SET_GUARD_SELECTOR,
    ZERO_ADDRESS,
)
from .encoding import encode_with_selector
from .models import FullSafeTransaction
from .provider import Provider
from .transactions import build_self_transaction
from .util import to_checksum_address


async def get_set_guard_transaction(
    provider: Provider, safe_address: str, guard: str, **options: Any
) -> FullSafeTransaction:
    data = encode_with_selector(SET_GUARD_SELECTOR, to_checksum_address(guard))
    return await build_self_transaction(provider, safe_address, data, **options)


async def get_remove_guard_transaction(
    provider: Provider, safe_address: str, **options: Any
) -> FullSafeTransaction:
    return await get_set_guard_transaction(
        provider, safe_address, ZERO_ADDRESS, **options
    )


async def get_set_fallback_handler_transaction(
    provider: Provider, safe_address: str, handler: str, **options: Any
) -> FullSafeTransaction:
    data = encode_with_selector(
        SET_FALLBACK_HANDLER_SELECTOR, to_checksum_address(handler)
    )
    return await build_self_transaction(provider, safe_address, data, **options)


async def get_remove_fallback_handler_transaction(
    provider: Provider, safe_address: str, **options: Any
) -> FullSafeTransaction:
    return await get_set_fallback_handler_transaction(
        provider, safe_address, ZERO_ADDRESS, **options
    )
