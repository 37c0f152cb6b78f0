from typing import Any, Callable, Optional, Union

import pytest
from eth_abi.abi import encode as abi_encode
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils.address import to_checksum_address
from eth_utils.crypto import keccak
from hexbytes import HexBytes

from minisafe.account_state import (
    GET_OWNERS_SELECTOR,
    GET_STORAGE_AT_SELECTOR,
)
from minisafe.errors import ProviderError
from minisafe.models import ECDSASignature

SAFE = to_checksum_address("0x5afe000000000000000000000000000000005afe")
DATA_HASH = keccak(text="safe transaction")

CallResult = Union[str, Exception, Callable[[HexBytes], Union[str, Exception]]]


class FakeProvider:
    """In-memory provider routing `eth_call` by target and selector."""

    def __init__(self):
        self.methods: dict[str, Any] = {}
        self.calls: dict[tuple[str, bytes], CallResult] = {}
        self.requests: list[tuple[str, Optional[list[Any]]]] = []

    def on(self, method: str, result: Any) -> "FakeProvider":
        self.methods[method] = result
        return self

    def on_call(self, to: str, selector: bytes, result: CallResult) -> "FakeProvider":
        self.calls[(to_checksum_address(to), bytes(selector))] = result
        return self

    def methods_requested(self) -> list[str]:
        return [method for method, _ in self.requests]

    async def request(self, method: str, params: Optional[list[Any]] = None) -> Any:
        self.requests.append((method, params))
        if method == "eth_call":
            assert params is not None
            call = params[0]
            data = HexBytes(call["data"])
            key = (to_checksum_address(call["to"]), bytes(data[:4]))
            if key not in self.calls:
                raise ProviderError(f"execution reverted: no handler for {key}")
            result = self.calls[key]
            if callable(result) and not isinstance(result, Exception):
                result = result(data)
        elif method in self.methods:
            result = self.methods[method]
            if callable(result) and not isinstance(result, Exception):
                result = result(params)
        else:
            raise ProviderError(f"Method not supported: {method}", code=-32601)
        if isinstance(result, Exception):
            raise result
        return result


class StubHTTPProvider:
    def __init__(self, response):
        self.response = response
        self.calls = []
        self.disconnected = False

    async def make_request(self, method, params):
        self.calls.append((method, params))
        return self.response

    async def disconnect(self):
        self.disconnected = True


class StubWeb3:
    def __init__(self, response):
        self.provider = StubHTTPProvider(response)


def abi_result(types: list[str], values: list[Any]) -> str:
    return HexBytes(abi_encode(types, values)).to_0x_hex()


def storage_result(*words: int) -> str:
    return abi_result(["bytes"], [b"".join(word.to_bytes(32, "big") for word in words)])


def storage_handler(slots: dict[int, int]) -> Callable[[HexBytes], str]:
    """Answer `getStorageAt(slot, 1)` from a slot -> value mapping."""

    def handler(data: HexBytes) -> str:
        slot = int.from_bytes(data[4:36], "big")
        return storage_result(slots.get(slot, 0))

    return handler


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def safe_provider(provider: FakeProvider) -> Callable[..., FakeProvider]:
    """Provider serving a Safe's owners, threshold, nonce and chain ID."""

    def make(
        owners: list[str],
        threshold: int,
        nonce: int = 0,
        chain_id: int = 1,
        safe: str = SAFE,
    ) -> FakeProvider:
        from minisafe.storage import NONCE_SLOT, THRESHOLD_SLOT

        provider.on("eth_chainId", hex(chain_id))
        provider.on_call(
            safe, GET_OWNERS_SELECTOR, abi_result(["address[]"], [owners])
        )
        provider.on_call(
            safe,
            GET_STORAGE_AT_SELECTOR,
            storage_handler({THRESHOLD_SLOT: threshold, NONCE_SLOT: nonce}),
        )
        return provider

    return make


@pytest.fixture
def accounts():
    """Deterministic local accounts, sorted by address."""
    keys = [bytes([i + 1]) * 32 for i in range(4)]
    return sorted(
        (Account.from_key(key) for key in keys), key=lambda acct: int(acct.address, 16)
    )


def eip712_signature(account, data_hash: bytes = DATA_HASH) -> ECDSASignature:
    signed = account.unsafe_sign_hash(data_hash)
    return ECDSASignature(signer=account.address, data=HexBytes(signed.signature))


def eth_sign_signature(account, data_hash: bytes = DATA_HASH) -> ECDSASignature:
    """Signature over the personal-message hash, with v shifted by 4."""
    signed = account.sign_message(encode_defunct(primitive=bytes(data_hash)))
    raw = bytes(signed.signature)
    return ECDSASignature(
        signer=account.address, data=HexBytes(raw[:64] + bytes([raw[64] + 4]))
    )
