import asyncio
import json
import logging
from typing import (
    TYPE_CHECKING,
    Any,
    Optional,
    Sequence,
    Union,
)

from eth_abi.abi import encode as abi_encode
from hexbytes import (
    HexBytes,
)

from .account_state import get_nonce
from .constants import (
    DEFAULT_MULTISEND_CALL_ONLY_ADDRESS,
    EXEC_TRANSACTION_SIGNATURE,
    EXEC_TRANSACTION_TYPES,
    ZERO_ADDRESS,
    selector,
)
from .eip712 import safe_tx_typed_data
from .errors import EncodingError, ProviderError
from .models import (
    ECDSASignature,
    FullSafeTransaction,
    MetaTransaction,
    MultiSendCall,
    Operation,
    Signature,
)
from .multisend import encode_multisend_call
from .provider import EthereumTransaction, Provider, get_accounts, get_chain_id
from .signatures import encode_safe_signatures
from .util import hexbytes_json_encoder, to_checksum_address

if TYPE_CHECKING:
    from eth_typing import ChecksumAddress

logger = logging.getLogger(__name__)

EXEC_TRANSACTION_SELECTOR = selector(EXEC_TRANSACTION_SIGNATURE)


async def build_safe_transaction(
    provider: Provider,
    safe_address: str,
    calls: Sequence[Union[MetaTransaction, MultiSendCall]],
    *,
    delegatecall: bool = False,
    safe_tx_gas: int = 0,
    base_gas: int = 0,
    gas_price: int = 0,
    gas_token: str = ZERO_ADDRESS,
    refund_receiver: str = ZERO_ADDRESS,
    nonce: Optional[int] = None,
    chain_id: Optional[int] = None,
    multisend: str = DEFAULT_MULTISEND_CALL_ONLY_ADDRESS,
) -> FullSafeTransaction:
    """Build a Safe transaction executing `calls`.

    A single call is executed directly, as a delegatecall when
    `delegatecall` is set or the call itself requests one. Several calls are batched through `multisend`
    with a delegatecall. Nonce and chain ID are read from the provider
    when not given.
    """
    if not calls:
        raise EncodingError("No transactions provided")
    safe_address = to_checksum_address(safe_address)

    if len(calls) > 1:
        multisend = to_checksum_address(multisend)
        if multisend == DEFAULT_MULTISEND_CALL_ONLY_ADDRESS and any(
            isinstance(call, MultiSendCall) and call.operation == Operation.DELEGATECALL
            for call in calls
        ):
            raise EncodingError("MultiSendCallOnly cannot execute delegatecall sub-calls")
        to, value, data = multisend, 0, encode_multisend_call(calls)
        operation = Operation.DELEGATECALL
    else:
        (call,) = calls
        to, value, data = call.to, call.value, call.data
        if delegatecall or (
            isinstance(call, MultiSendCall) and call.operation == Operation.DELEGATECALL
        ):
            operation = Operation.DELEGATECALL
        else:
            operation = Operation.CALL

    async def fetch_nonce() -> int:
        if nonce is not None:
            return nonce
        return await get_nonce(safe_address).call(provider)

    async def fetch_chain_id() -> int:
        if chain_id is not None:
            return chain_id
        return await get_chain_id(provider)

    safe_nonce, safe_chain_id = await asyncio.gather(fetch_nonce(), fetch_chain_id())
    tx = FullSafeTransaction(
        to=to,
        value=value,
        data=data,
        operation=operation,
        safe_tx_gas=safe_tx_gas,
        base_gas=base_gas,
        gas_price=gas_price,
        gas_token=to_checksum_address(gas_token),
        refund_receiver=to_checksum_address(refund_receiver),
        nonce=safe_nonce,
        safe_address=safe_address,
        chain_id=safe_chain_id,
    )
    logger.info(
        f"Built Safe transaction for {safe_address} "
        f"({len(calls)} call{'s' if len(calls) > 1 else ''}, nonce {safe_nonce})"
    )
    return tx


def _typed_data_json(tx: FullSafeTransaction) -> str:
    typed_data: dict[str, Any] = safe_tx_typed_data(tx)
    # Wallets expect uint256 values as decimal strings.
    message = typed_data["message"]
    for key in ("value", "safeTxGas", "baseGas", "gasPrice", "nonce"):
        message[key] = str(message[key])
    typed_data["domain"]["chainId"] = str(typed_data["domain"]["chainId"])
    return json.dumps(typed_data, default=hexbytes_json_encoder)


async def sign_safe_transaction(
    provider: Provider,
    tx: FullSafeTransaction,
    signer: Optional[str] = None,
) -> ECDSASignature:
    """Ask the provider's wallet to sign `tx` with `eth_signTypedData_v4`."""
    if signer is None:
        accounts = await get_accounts(provider)
        if not accounts:
            raise ProviderError("No signer address provided and no accounts found")
        signer_address: "ChecksumAddress" = accounts[0]
    else:
        signer_address = to_checksum_address(signer)
    signature = await provider.request(
        "eth_signTypedData_v4", [signer_address, _typed_data_json(tx)]
    )
    logger.info(f"Signed Safe transaction with {signer_address}")
    return ECDSASignature(signer=signer_address, data=HexBytes(signature))


def encode_exec_transaction_data(
    tx: FullSafeTransaction, signatures: Union[Sequence[Signature], bytes]
) -> HexBytes:
    if isinstance(signatures, (bytes, bytearray)):
        encoded = bytes(signatures)
    else:
        encoded = bytes(encode_safe_signatures(signatures))
    args = abi_encode(
        EXEC_TRANSACTION_TYPES,
        (
            tx.to,
            tx.value,
            bytes(tx.data),
            int(tx.operation),
            tx.safe_tx_gas,
            tx.base_gas,
            tx.gas_price,
            tx.gas_token,
            tx.refund_receiver,
            encoded,
        ),
    )
    return HexBytes(EXEC_TRANSACTION_SELECTOR + args)


def execute_safe_transaction(
    tx: FullSafeTransaction, signatures: Union[Sequence[Signature], bytes]
) -> EthereumTransaction:
    """Prepare the `execTransaction` call; run it with `.send(provider)`."""
    return EthereumTransaction(
        to=tx.safe_address, data=encode_exec_transaction_data(tx, signatures)
    )


async def build_self_transaction(
    provider: Provider, safe_address: str, data: bytes, **options: Any
) -> FullSafeTransaction:
    """Build a transaction in which the Safe calls itself, e.g. to reconfigure."""
    safe_address = to_checksum_address(safe_address)
    return await build_safe_transaction(
        provider,
        safe_address,
        [MetaTransaction(to=safe_address, data=HexBytes(data))],
        **options,
    )
