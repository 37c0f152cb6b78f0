"""JSON-RPC access and the command objects built on top of it.

Every network interaction of the engine goes through an object implementing
`Provider`: a single `request(method, params)` coroutine in the style of
EIP-1193. Operations that touch the chain return a command object
(`StateRead` for `eth_call` reads, `EthereumTransaction` for writes) which
the caller may inspect before running it.
"""

import dataclasses
import logging
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Generic,
    Optional,
    Protocol,
    TypeVar,
    Union,
)

from hexbytes import (
    HexBytes,
)

from .errors import ProviderError
from .util import to_checksum_address

if TYPE_CHECKING:
    from eth_typing import ChecksumAddress
    from web3 import AsyncWeb3

logger = logging.getLogger(__name__)

T = TypeVar("T")

BlockIdentifier = Union[str, int]

DEFAULT_GAS_BUFFER_PERCENT = 20


class Provider(Protocol):
    async def request(self, method: str, params: Optional[list[Any]] = None) -> Any:
        ...


class Web3Provider:
    """Provider backed by an `AsyncWeb3` HTTP connection."""

    def __init__(self, rpc_url: str, *, w3: Optional["AsyncWeb3"] = None):
        from web3 import AsyncHTTPProvider, AsyncWeb3

        if w3 is None:
            w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self.w3 = w3
        self.rpc_url = rpc_url

    async def request(self, method: str, params: Optional[list[Any]] = None) -> Any:
        logger.debug(f"RPC request {method} {params}")
        response = await self.w3.provider.make_request(
            method,  # pyright: ignore[reportArgumentType]
            params if params is not None else [],
        )
        if response.get("error"):
            error = response["error"]
            if isinstance(error, dict):
                raise ProviderError(
                    str(error.get("message", error)),
                    code=error.get("code"),
                    data=error.get("data"),
                )
            raise ProviderError(str(error))
        return response.get("result")

    async def disconnect(self) -> None:
        """Close the underlying HTTP session."""
        try:
            await self.w3.provider.disconnect()  # pyright: ignore[reportAttributeAccessIssue]
        except AttributeError as exc:
            logger.debug(f"Provider has no disconnect method: {exc}")


class OfflineProvider:
    """Provider for offline use; any request is an error."""

    async def request(self, method: str, params: Optional[list[Any]] = None) -> Any:
        raise ProviderError(f"Cannot call {method} while offline")


def make_provider(rpc: Optional[str]) -> Provider:
    if rpc is None:
        return OfflineProvider()
    return Web3Provider(rpc)


async def close_provider(provider: Provider) -> None:
    if isinstance(provider, Web3Provider):
        await provider.disconnect()


def to_quantity(value: int) -> str:
    return hex(value)


def from_quantity(value: Union[str, int]) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16)


@dataclasses.dataclass(frozen=True, kw_only=True)
class StateRead(Generic[T]):
    """An `eth_call` against `to` whose raw result is passed to `decoder`."""

    to: "ChecksumAddress"
    data: HexBytes
    decoder: Callable[[HexBytes], T]
    block: BlockIdentifier = "latest"

    def to_call_params(self) -> list[Any]:
        block = self.block if isinstance(self.block, str) else to_quantity(self.block)
        return [{"to": self.to, "data": self.data.to_0x_hex()}, block]

    async def call(self, provider: Provider) -> T:
        result = await provider.request("eth_call", self.to_call_params())
        if result is None:
            raise ProviderError(f"Empty eth_call result from {self.to}")
        return self.decoder(HexBytes(result))


@dataclasses.dataclass(frozen=True, kw_only=True)
class EthereumTransaction:
    """A transaction ready to be sent with `eth_sendTransaction`."""

    to: "ChecksumAddress"
    value: int = 0
    data: HexBytes = dataclasses.field(default_factory=lambda: HexBytes(b""))

    def to_rpc_params(
        self,
        *,
        from_: Optional[str] = None,
        gas: Optional[int] = None,
        gas_price: Optional[int] = None,
        max_fee_per_gas: Optional[int] = None,
        max_priority_fee_per_gas: Optional[int] = None,
        nonce: Optional[int] = None,
    ) -> dict[str, str]:
        params: dict[str, str] = {"to": self.to}
        if from_ is not None:
            params["from"] = to_checksum_address(from_)
        if self.data:
            params["data"] = self.data.to_0x_hex()
        if self.value:
            params["value"] = to_quantity(self.value)
        for key, val in (
            ("gas", gas),
            ("gasPrice", gas_price),
            ("maxFeePerGas", max_fee_per_gas),
            ("maxPriorityFeePerGas", max_priority_fee_per_gas),
            ("nonce", nonce),
        ):
            if val is not None:
                params[key] = to_quantity(val)
        return params

    async def send(
        self,
        provider: Provider,
        *,
        from_: Optional[str] = None,
        gas: Optional[int] = None,
        gas_price: Optional[int] = None,
        max_fee_per_gas: Optional[int] = None,
        max_priority_fee_per_gas: Optional[int] = None,
        nonce: Optional[int] = None,
        gas_buffer: int = DEFAULT_GAS_BUFFER_PERCENT,
    ) -> HexBytes:
        """Send the transaction and return its hash.

        The sender defaults to the provider's first account. Gas is estimated
        with a `gas_buffer` percent margin unless given, and the legacy gas
        price is fetched unless any fee field is set.
        """
        if from_ is None:
            accounts = await get_accounts(provider)
            if not accounts:
                raise ProviderError("No accounts available")
            from_ = accounts[0]
        params = self.to_rpc_params(
            from_=from_,
            gas=gas,
            gas_price=gas_price,
            max_fee_per_gas=max_fee_per_gas,
            max_priority_fee_per_gas=max_priority_fee_per_gas,
            nonce=nonce,
        )
        if "gas" not in params:
            estimate = from_quantity(await provider.request("eth_estimateGas", [params]))
            params["gas"] = to_quantity(estimate * (100 + gas_buffer) // 100)
        if not any(
            key in params for key in ("gasPrice", "maxFeePerGas", "maxPriorityFeePerGas")
        ):
            params["gasPrice"] = await provider.request("eth_gasPrice", [])
        tx_hash = HexBytes(await provider.request("eth_sendTransaction", [params]))
        logger.info(f"Sent transaction {tx_hash.to_0x_hex()} to {self.to}")
        return tx_hash


async def get_chain_id(provider: Provider) -> int:
    return from_quantity(await provider.request("eth_chainId", []))


async def get_accounts(provider: Provider) -> list["ChecksumAddress"]:
    accounts = await provider.request("eth_accounts", [])
    return [to_checksum_address(account) for account in accounts or []]
