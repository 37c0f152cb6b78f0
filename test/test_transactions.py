import json

import pytest
from eth_abi.abi import decode as abi_decode
from eth_utils.address import to_checksum_address
from hexbytes import HexBytes

from minisafe.constants import (
    DEFAULT_MULTISEND_ADDRESS,
    DEFAULT_MULTISEND_CALL_ONLY_ADDRESS,
    EXEC_TRANSACTION_TYPES,
)
from minisafe.eip712 import calculate_safe_transaction_hash
from minisafe.errors import EncodingError, ProviderError
from minisafe.models import MetaTransaction, MultiSendCall, Operation
from minisafe.multisend import encode_multisend_call
from minisafe.provider import EthereumTransaction
from minisafe.signatures import encode_safe_signatures
from minisafe.transactions import (
    build_safe_transaction,
    encode_exec_transaction_data,
    execute_safe_transaction,
    sign_safe_transaction,
)

from conftest import SAFE, eip712_signature

RECIPIENT = to_checksum_address("0x000000000000000000000000000000000000beef")
TOKEN = to_checksum_address("0x00000000000000000000000000000000000070ce")


@pytest.mark.asyncio
async def test_build_single_call(provider):
    call = MetaTransaction(to=RECIPIENT, value=3, data=HexBytes("0x01"))
    tx = await build_safe_transaction(provider, SAFE, [call], nonce=4, chain_id=100)
    assert tx.to == RECIPIENT
    assert tx.value == 3
    assert tx.data == HexBytes("0x01")
    assert tx.operation == Operation.CALL
    assert (tx.nonce, tx.chain_id, tx.safe_address) == (4, 100, SAFE)
    assert tx.safe_tx_gas == tx.base_gas == tx.gas_price == 0
    assert provider.requests == []

    tx = await build_safe_transaction(
        provider, SAFE, [call], delegatecall=True, nonce=4, chain_id=100
    )
    assert tx.operation == Operation.DELEGATECALL


@pytest.mark.asyncio
async def test_build_single_call_keeps_own_operation(provider):
    call = MultiSendCall(to=TOKEN, operation=Operation.DELEGATECALL)
    tx = await build_safe_transaction(provider, SAFE, [call], nonce=0, chain_id=1)
    assert tx.to == TOKEN
    assert tx.operation == Operation.DELEGATECALL

    call = MultiSendCall(to=TOKEN, operation=Operation.CALL)
    tx = await build_safe_transaction(provider, SAFE, [call], nonce=0, chain_id=1)
    assert tx.operation == Operation.CALL


@pytest.mark.asyncio
async def test_build_fetches_nonce_and_chain_id(safe_provider):
    provider = safe_provider([RECIPIENT], threshold=1, nonce=9, chain_id=10)
    tx = await build_safe_transaction(provider, SAFE, [MetaTransaction(to=RECIPIENT)])
    assert tx.nonce == 9
    assert tx.chain_id == 10
    assert sorted(provider.methods_requested()) == ["eth_call", "eth_chainId"]


@pytest.mark.asyncio
async def test_build_batch(provider):
    calls = [MetaTransaction(to=RECIPIENT, value=1), MetaTransaction(to=TOKEN, value=2)]
    tx = await build_safe_transaction(provider, SAFE, calls, nonce=0, chain_id=1)
    assert tx.to == DEFAULT_MULTISEND_CALL_ONLY_ADDRESS
    assert tx.value == 0
    assert tx.operation == Operation.DELEGATECALL
    assert tx.data == encode_multisend_call(calls)


@pytest.mark.asyncio
async def test_build_batch_with_delegatecall(provider):
    calls = [
        MetaTransaction(to=RECIPIENT),
        MultiSendCall(to=TOKEN, operation=Operation.DELEGATECALL),
    ]
    with pytest.raises(EncodingError):
        await build_safe_transaction(provider, SAFE, calls, nonce=0, chain_id=1)
    tx = await build_safe_transaction(
        provider, SAFE, calls, nonce=0, chain_id=1, multisend=DEFAULT_MULTISEND_ADDRESS
    )
    assert tx.to == DEFAULT_MULTISEND_ADDRESS


@pytest.mark.asyncio
async def test_build_without_calls(provider):
    with pytest.raises(EncodingError, match="No transactions provided"):
        await build_safe_transaction(provider, SAFE, [], nonce=0, chain_id=1)


@pytest.mark.asyncio
async def test_sign_safe_transaction(provider, accounts):
    account = accounts[0]
    tx = await build_safe_transaction(
        provider, SAFE, [MetaTransaction(to=RECIPIENT, value=10**18)], nonce=1, chain_id=1
    )

    def sign(params):
        signer, payload = params
        typed_data = json.loads(payload)
        assert signer == account.address
        assert typed_data["message"]["value"] == str(10**18)
        assert typed_data["domain"]["verifyingContract"] == SAFE
        signed = account.unsafe_sign_hash(calculate_safe_transaction_hash(tx))
        return HexBytes(signed.signature).to_0x_hex()

    provider.on("eth_accounts", [account.address.lower()])
    provider.on("eth_signTypedData_v4", sign)
    signature = await sign_safe_transaction(provider, tx)
    assert signature.signer == account.address
    assert signature == eip712_signature(account, calculate_safe_transaction_hash(tx))


@pytest.mark.asyncio
async def test_sign_without_accounts(provider):
    tx = await build_safe_transaction(
        provider, SAFE, [MetaTransaction(to=RECIPIENT)], nonce=1, chain_id=1
    )
    provider.on("eth_accounts", [])
    with pytest.raises(ProviderError):
        await sign_safe_transaction(provider, tx)


@pytest.mark.asyncio
async def test_exec_transaction(provider, accounts):
    tx = await build_safe_transaction(
        provider,
        SAFE,
        [MetaTransaction(to=RECIPIENT, value=5, data=HexBytes("0xabcdef"))],
        nonce=0,
        chain_id=1,
    )
    signatures = [
        eip712_signature(account, calculate_safe_transaction_hash(tx))
        for account in accounts[:2]
    ]
    data = encode_exec_transaction_data(tx, signatures)
    assert data[:4] == HexBytes("0x6a761202")
    decoded = abi_decode(EXEC_TRANSACTION_TYPES, data[4:])
    assert decoded[1:8] == (5, b"\xab\xcd\xef", 0, 0, 0, 0, tx.gas_token.lower())
    assert decoded[9] == bytes(encode_safe_signatures(signatures))

    assert encode_exec_transaction_data(tx, encode_safe_signatures(signatures)) == data

    exec_tx = execute_safe_transaction(tx, signatures)
    assert exec_tx == EthereumTransaction(to=SAFE, data=data)


@pytest.mark.asyncio
async def test_send_transaction(provider, accounts):
    sent = []

    def send(params):
        sent.append(params[0])
        return "0x" + "ab" * 32

    provider.on("eth_accounts", [accounts[0].address])
    provider.on("eth_estimateGas", "0x5208")
    provider.on("eth_gasPrice", "0x3b9aca00")
    provider.on("eth_sendTransaction", send)

    tx = EthereumTransaction(to=SAFE, value=7, data=HexBytes("0x1234"))
    tx_hash = await tx.send(provider)
    assert tx_hash == HexBytes("0x" + "ab" * 32)
    assert sent[-1] == {
        "to": SAFE,
        "from": accounts[0].address,
        "data": "0x1234",
        "value": "0x7",
        # 21000 plus the 20% buffer
        "gas": hex(25200),
        "gasPrice": "0x3b9aca00",
    }

    await tx.send(provider, gas=100_000, max_fee_per_gas=10, gas_buffer=50)
    assert sent[-1]["gas"] == hex(100_000)
    assert sent[-1]["maxFeePerGas"] == "0xa"
    assert "gasPrice" not in sent[-1]
    assert provider.methods_requested().count("eth_estimateGas") == 1
    assert provider.methods_requested().count("eth_gasPrice") == 1
