"""MultiSend batch encoding.

Each call is packed without padding as
`uint8 operation || address to || uint256 value || uint256 len(data) || data`
and the concatenation is passed to `multiSend(bytes)`.
"""

import logging
from typing import Sequence, Union

from eth_abi.abi import encode as abi_encode
from eth_abi.packed import encode_packed
from hexbytes import (
    HexBytes,
)

from .constants import MULTISEND_SELECTOR
from .errors import EncodingError
from .models import MetaTransaction, MultiSendCall, Operation

logger = logging.getLogger(__name__)


def _operation(tx: Union[MetaTransaction, MultiSendCall]) -> Operation:
    if isinstance(tx, MultiSendCall):
        return tx.operation
    return Operation.CALL


def encode_multisend_data(
    txs: Sequence[Union[MetaTransaction, MultiSendCall]],
) -> HexBytes:
    if not txs:
        raise EncodingError("No transactions provided for MultiSend")
    return HexBytes(
        b"".join(
            encode_packed(
                ["uint8", "address", "uint256", "uint256", "bytes"],
                [int(_operation(tx)), tx.to, tx.value, len(tx.data), bytes(tx.data)],
            )
            for tx in txs
        )
    )


def encode_multisend_call(
    txs: Sequence[Union[MetaTransaction, MultiSendCall]],
) -> HexBytes:
    """Calldata for `multiSend(bytes transactions)`."""
    packed = encode_multisend_data(txs)
    logger.debug(f"Encoded {len(txs)} MultiSend calls ({len(packed)} bytes)")
    return HexBytes(HexBytes(MULTISEND_SELECTOR) + abi_encode(["bytes"], [bytes(packed)]))
