"""Module management transactions."""

import logging
from typing import (
    TYPE_CHECKING,
    Any,
    Optional,
)

from .account_state import DEFAULT_MODULES_PAGE_SIZE, get_modules_paginated
from .constants import (
    DISABLE_MODULE_SELECTOR,
    ENABLE_MODULE_SELECTOR,
    SENTINEL_ADDRESS,
    ZERO_ADDRESS,
)
from .encoding import encode_with_selector
from .errors import ModuleNotFoundError
from .models import FullSafeTransaction
from .provider import Provider
from .transactions import build_self_transaction
from .util import as_checksum, to_checksum_address

if TYPE_CHECKING:
    from eth_typing import ChecksumAddress

logger = logging.getLogger(__name__)


async def get_all_modules(
    provider: Provider,
    safe_address: str,
    page_size: int = DEFAULT_MODULES_PAGE_SIZE,
) -> list["ChecksumAddress"]:
    """Walk every page of `getModulesPaginated`."""
    modules: list["ChecksumAddress"] = []
    cursor = SENTINEL_ADDRESS
    while True:
        page, cursor = await get_modules_paginated(
            safe_address, start=cursor, page_size=page_size
        ).call(provider)
        modules.extend(page)
        if cursor in (SENTINEL_ADDRESS, ZERO_ADDRESS) or not page:
            break
    logger.debug(f"Found {len(modules)} modules on Safe {safe_address}")
    return modules


async def get_enable_module_transaction(
    provider: Provider, safe_address: str, module: str, **options: Any
) -> FullSafeTransaction:
    """Enabling a module grants it unrestricted execution rights on the Safe."""
    data = encode_with_selector(ENABLE_MODULE_SELECTOR, to_checksum_address(module))
    return await build_self_transaction(provider, safe_address, data, **options)


async def get_disable_module_transaction(
    provider: Provider,
    safe_address: str,
    module: str,
    *,
    prev_module: Optional[str] = None,
    **options: Any,
) -> FullSafeTransaction:
    module = to_checksum_address(module)
    if prev_module is None:
        modules = await get_all_modules(provider, safe_address)
        if module not in modules:
            raise ModuleNotFoundError(module, safe_address)
        index = modules.index(module)
        prev = as_checksum(SENTINEL_ADDRESS) if index == 0 else modules[index - 1]
    else:
        prev = to_checksum_address(prev_module)
    data = encode_with_selector(DISABLE_MODULE_SELECTOR, prev, module)
    return await build_self_transaction(provider, safe_address, data, **options)
