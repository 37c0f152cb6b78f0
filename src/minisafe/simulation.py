"""Dry runs of Safe transactions through `eth_call`.

With signatures the full `execTransaction` is called, so the Safe checks
signatures and nonce as it would on execution. Without signatures the call
goes through `SimulateTxAccessor` via `simulateAndRevert`, which skips the
signature checks and reports the gas used in its revert payload.
"""

import dataclasses
import logging
import re
from typing import (
    Optional,
    Sequence,
    Union,
)

from eth_abi.abi import decode as abi_decode
from eth_abi.abi import encode as abi_encode
from eth_abi.exceptions import DecodingError
from hexbytes import (
    HexBytes,
)

from .constants import DEFAULT_SIMULATE_TX_ACCESSOR_ADDRESS, selector
from .errors import ProviderError
from .models import FullSafeTransaction, Signature
from .provider import BlockIdentifier, Provider, to_quantity
from .transactions import encode_exec_transaction_data
from .util import to_checksum_address

logger = logging.getLogger(__name__)

SIMULATE_SELECTOR = selector("simulate(address,uint256,bytes,uint8)")
SIMULATE_AND_REVERT_SELECTOR = selector("simulateAndRevert(address,bytes)")
SIMULATE_RESULT_TYPES = ("uint256", "bool", "bytes")

HEX_DATA_RE = re.compile(r"0x[0-9a-fA-F]+")


@dataclasses.dataclass(frozen=True, kw_only=True)
class SimulationResult:
    success: bool
    gas_used: Optional[int] = None
    return_data: Optional[HexBytes] = None
    error: Optional[str] = None


def _block_param(block: BlockIdentifier) -> str:
    return block if isinstance(block, str) else to_quantity(block)


def _revert_data(exc: ProviderError) -> Optional[HexBytes]:
    if isinstance(exc.data, str) and HEX_DATA_RE.fullmatch(exc.data):
        return HexBytes(exc.data)
    match = HEX_DATA_RE.search(str(exc))
    return HexBytes(match.group()) if match else None


def decode_simulation_revert(revert_data: bytes) -> SimulationResult:
    """Decode the payload `simulateAndRevert` reverts with.

    Layout: delegatecall success word, return data length word, then the
    accessor's `(uint256 estimate, bool success, bytes returnData)`.
    """
    if len(revert_data) < 64:
        return SimulationResult(success=False, error="Malformed simulation result")
    delegated = int.from_bytes(revert_data[:32], "big") != 0
    length = int.from_bytes(revert_data[32:64], "big")
    payload = bytes(revert_data[64 : 64 + length])
    if len(payload) != length:
        return SimulationResult(success=False, error="Malformed simulation result")
    if not delegated:
        return SimulationResult(
            success=False,
            return_data=HexBytes(payload),
            error="SimulateTxAccessor call reverted",
        )
    try:
        estimate, success, return_data = abi_decode(SIMULATE_RESULT_TYPES, payload)
    except DecodingError:
        return SimulationResult(success=False, error="Malformed simulation result")
    return SimulationResult(
        success=success, gas_used=estimate, return_data=HexBytes(return_data)
    )


async def _simulate_with_signatures(
    provider: Provider,
    tx: FullSafeTransaction,
    signatures: Union[Sequence[Signature], bytes],
    executor: Optional[str],
    block: BlockIdentifier,
) -> SimulationResult:
    call = {
        "to": tx.safe_address,
        "data": encode_exec_transaction_data(tx, signatures).to_0x_hex(),
    }
    if executor is not None:
        call["from"] = to_checksum_address(executor)
    try:
        result = await provider.request("eth_call", [call, _block_param(block)])
    except ProviderError as exc:
        logger.debug(f"execTransaction simulation on {tx.safe_address} failed: {exc}")
        return SimulationResult(success=False, error=str(exc))
    return_data = HexBytes(result or b"")
    # execTransaction returns a single bool word
    success = bool(return_data) and int.from_bytes(return_data, "big") != 0
    return SimulationResult(success=success, return_data=return_data)


async def _simulate_with_accessor(
    provider: Provider,
    tx: FullSafeTransaction,
    accessor: str,
    block: BlockIdentifier,
) -> SimulationResult:
    simulate_data = SIMULATE_SELECTOR + abi_encode(
        ["address", "uint256", "bytes", "uint8"],
        [tx.to, tx.value, bytes(tx.data), int(tx.operation)],
    )
    data = SIMULATE_AND_REVERT_SELECTOR + abi_encode(
        ["address", "bytes"], [to_checksum_address(accessor), simulate_data]
    )
    call = {
        "from": tx.safe_address,
        "to": tx.safe_address,
        "data": HexBytes(data).to_0x_hex(),
    }
    try:
        await provider.request("eth_call", [call, _block_param(block)])
    except ProviderError as exc:
        revert_data = _revert_data(exc)
        if revert_data is None:
            return SimulationResult(
                success=False, error=f"No simulation result in revert: {exc}"
            )
        return decode_simulation_revert(revert_data)
    return SimulationResult(
        success=False, error="Simulation did not revert as expected"
    )


async def simulate_safe_transaction(
    provider: Provider,
    tx: FullSafeTransaction,
    signatures: Optional[Union[Sequence[Signature], bytes]] = None,
    *,
    executor: Optional[str] = None,
    accessor: str = DEFAULT_SIMULATE_TX_ACCESSOR_ADDRESS,
    block: BlockIdentifier = "latest",
) -> SimulationResult:
    """Simulate `tx` against the current chain state.

    Reverts are reported as `success=False` with the error, never raised.
    Malformed signatures still raise `EncodingError` before any request.
    """
    if signatures:
        result = await _simulate_with_signatures(
            provider, tx, signatures, executor, block
        )
    else:
        result = await _simulate_with_accessor(provider, tx, accessor, block)
    logger.info(
        f"Simulated Safe transaction on {tx.safe_address}: success={result.success}"
    )
    return result
