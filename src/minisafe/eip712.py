"""EIP-712 typed data for Safe transactions and messages.

The Safe v1.4.1 domain has no name or version, only `chainId` and
`verifyingContract`, so any change of chain or Safe changes every hash.
"""

from typing import Any

from eth_abi.abi import encode as abi_encode
from eth_utils.crypto import keccak
from hexbytes import (
    HexBytes,
)

from .constants import DOMAIN_SEPARATOR_TYPEHASH
from .models import FullSafeTransaction, SafeMessage
from .util import eip712_preimage, hash_eip712_data, to_checksum_address

EIP712_DOMAIN_TYPES = [
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

SAFE_TX_TYPES = [
    {"name": "to", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "data", "type": "bytes"},
    {"name": "operation", "type": "uint8"},
    {"name": "safeTxGas", "type": "uint256"},
    {"name": "baseGas", "type": "uint256"},
    {"name": "gasPrice", "type": "uint256"},
    {"name": "gasToken", "type": "address"},
    {"name": "refundReceiver", "type": "address"},
    {"name": "nonce", "type": "uint256"},
]

SAFE_MESSAGE_TYPES = [
    {"name": "message", "type": "bytes"},
]


def calculate_domain_separator(safe_address: str, chain_id: int) -> HexBytes:
    return HexBytes(
        keccak(
            abi_encode(
                ["bytes32", "uint256", "address"],
                [
                    bytes(DOMAIN_SEPARATOR_TYPEHASH),
                    chain_id,
                    to_checksum_address(safe_address),
                ],
            )
        )
    )


def _domain(safe_address: str, chain_id: int) -> dict[str, Any]:
    return {
        "chainId": chain_id,
        "verifyingContract": to_checksum_address(safe_address),
    }


def safe_tx_typed_data(tx: FullSafeTransaction) -> dict[str, Any]:
    """Full typed data structure, as accepted by `eth_signTypedData_v4`."""
    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_TYPES,
            "SafeTx": SAFE_TX_TYPES,
        },
        "primaryType": "SafeTx",
        "domain": _domain(tx.safe_address, tx.chain_id),
        "message": {
            "to": tx.to,
            "value": tx.value,
            "data": tx.data.to_0x_hex(),
            "operation": int(tx.operation),
            "safeTxGas": tx.safe_tx_gas,
            "baseGas": tx.base_gas,
            "gasPrice": tx.gas_price,
            "gasToken": tx.gas_token,
            "refundReceiver": tx.refund_receiver,
            "nonce": tx.nonce,
        },
    }


def safe_message_typed_data(
    safe_address: str, chain_id: int, message: SafeMessage
) -> dict[str, Any]:
    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_TYPES,
            "SafeMessage": SAFE_MESSAGE_TYPES,
        },
        "primaryType": "SafeMessage",
        "domain": _domain(safe_address, chain_id),
        "message": {"message": message.message.to_0x_hex()},
    }


def calculate_safe_transaction_hash(tx: FullSafeTransaction) -> HexBytes:
    return hash_eip712_data(safe_tx_typed_data(tx))


def encode_safe_transaction_data(tx: FullSafeTransaction) -> HexBytes:
    return eip712_preimage(safe_tx_typed_data(tx))


def calculate_safe_message_hash(
    safe_address: str, chain_id: int, message: SafeMessage
) -> HexBytes:
    return hash_eip712_data(safe_message_typed_data(safe_address, chain_id, message))


def encode_safe_message_data(
    safe_address: str, chain_id: int, message: SafeMessage
) -> HexBytes:
    return eip712_preimage(safe_message_typed_data(safe_address, chain_id, message))


def safe_tx_from_typed_data(typed_data: dict[str, Any]) -> FullSafeTransaction:
    """Inverse of `safe_tx_typed_data`, for reading saved EIP-712 JSON."""
    domain, message = typed_data["domain"], typed_data["message"]
    return FullSafeTransaction(
        to=message["to"],
        value=int(message["value"]),
        data=HexBytes(message["data"]),
        operation=int(message["operation"]),  # pyright: ignore[reportArgumentType]
        safe_tx_gas=int(message["safeTxGas"]),
        base_gas=int(message["baseGas"]),
        gas_price=int(message["gasPrice"]),
        gas_token=message["gasToken"],
        refund_receiver=message["refundReceiver"],
        nonce=int(message["nonce"]),
        safe_address=domain["verifyingContract"],
        chain_id=int(domain["chainId"]),
    )
