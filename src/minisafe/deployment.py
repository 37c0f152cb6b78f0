import dataclasses
import logging
from typing import (
    TYPE_CHECKING,
    Any,
    Mapping,
    Optional,
    Sequence,
    Union,
    cast,
)

from eth_abi.abi import decode as abi_decode
from eth_abi.abi import encode as abi_encode
from eth_abi.exceptions import DecodingError
from eth_abi.packed import encode_packed
from eth_utils.crypto import keccak
from hexbytes import (
    HexBytes,
)

from .constants import (
    CREATE_PROXY_WITH_NONCE_SIGNATURE,
    DEFAULT_PROXYFACTORY_ADDRESS,
    DEFAULT_SAFEL2_SINGLETON_ADDRESS,
    SAFE_SETUP_FUNC_SELECTOR,
    SAFE_SETUP_FUNC_TYPES,
    selector,
)
from .models import SafeDeploymentConfig
from .provider import EthereumTransaction
from .util import to_checksum_address

if TYPE_CHECKING:
    from eth_typing import ChecksumAddress, HexStr

logger = logging.getLogger(__name__)

CREATE_PROXY_WITH_NONCE_SELECTOR = selector(CREATE_PROXY_WITH_NONCE_SIGNATURE)
# SafeSetup(address indexed initiator, address[] owners, uint256 threshold,
#           address initializer, address fallbackHandler)
SAFE_SETUP_EVENT_TOPIC = HexBytes(
    keccak(text="SafeSetup(address,address[],uint256,address,address)")
)
SAFE_SETUP_EVENT_DATA_TYPES = ("address[]", "uint256", "address", "address")


@dataclasses.dataclass(frozen=True, kw_only=True)
class SafeDeployment:
    """Factory transaction deploying a Safe, with its predicted address."""

    transaction: EthereumTransaction
    safe_address: "ChecksumAddress"
    config: SafeDeploymentConfig


@dataclasses.dataclass(frozen=True, kw_only=True)
class SafeSetupEvent:
    initiator: "ChecksumAddress"
    owners: tuple["ChecksumAddress", ...]
    threshold: int
    initializer: "ChecksumAddress"
    fallback_handler: "ChecksumAddress"


def get_proxy_creation_code() -> HexBytes:
    """SafeProxy v1.4.1 creation bytecode, as emitted by `proxyCreationCode()`."""
    from safe_eth.eth.contracts import load_contract_interface

    return HexBytes(load_contract_interface("Proxy_V1_4_1.json")["bytecode"])


def encode_setup_data(config: SafeDeploymentConfig) -> HexBytes:
    """Encode the `setup()` initializer called on the freshly created proxy."""
    initializer_args = abi_encode(
        SAFE_SETUP_FUNC_TYPES,
        (
            list(config.owners),
            config.threshold,
            config.delegatecall_to,
            bytes(config.delegatecall_data),
            config.fallback_handler,
            config.payment_token,
            config.payment,
            config.payment_receiver,
        ),
    )
    return HexBytes(HexBytes(SAFE_SETUP_FUNC_SELECTOR) + initializer_args)


def calculate_safe_address(
    config_or_setup_data: Union[SafeDeploymentConfig, bytes],
    *,
    salt_nonce: Optional[int] = None,
    singleton: Optional[str] = None,
    proxy_factory: Optional[str] = None,
) -> "ChecksumAddress":
    """Compute Safe address via SafeProxyFactory v1.4.1.

    Given a config, its own salt nonce, singleton and factory are used unless
    overridden. Given raw setup data, missing parameters fall back to salt
    nonce 0 and the canonical SafeL2 singleton and factory.
    """
    from web3.utils.address import get_create2_address

    if isinstance(config_or_setup_data, SafeDeploymentConfig):
        config = config_or_setup_data
        initializer = encode_setup_data(config)
        salt_nonce = config.salt_nonce if salt_nonce is None else salt_nonce
        singleton = singleton or config.singleton
        proxy_factory = proxy_factory or config.proxy_factory
    else:
        initializer = HexBytes(config_or_setup_data)
        salt_nonce = salt_nonce or 0
        singleton = singleton or DEFAULT_SAFEL2_SINGLETON_ADDRESS
        proxy_factory = proxy_factory or DEFAULT_PROXYFACTORY_ADDRESS

    # bytes32 salt = keccak256(abi.encodePacked(keccak256(initializer), saltNonce));
    salt = keccak(
        encode_packed(("bytes32", "uint256"), (keccak(initializer), salt_nonce))
    )
    deployment_data = encode_packed(
        ["bytes", "uint256"], [get_proxy_creation_code(), int(singleton, 16)]
    )
    address = get_create2_address(
        to_checksum_address(proxy_factory),
        cast("HexStr", salt.hex()),
        cast("HexStr", deployment_data.hex()),
    )
    return to_checksum_address(address)


def deploy_safe_account(config: SafeDeploymentConfig) -> SafeDeployment:
    """Prepare the factory call `createProxyWithNonce(singleton, setup, saltNonce)`."""
    initializer = encode_setup_data(config)
    data = HexBytes(
        CREATE_PROXY_WITH_NONCE_SELECTOR
        + abi_encode(
            ["address", "bytes", "uint256"],
            [config.singleton, bytes(initializer), config.salt_nonce],
        )
    )
    safe_address = calculate_safe_address(config)
    logger.info(f"Prepared deployment of Safe {safe_address} via {config.proxy_factory}")
    return SafeDeployment(
        transaction=EthereumTransaction(to=config.proxy_factory, data=data),
        safe_address=safe_address,
        config=config,
    )


def decode_safe_setup_event_from_logs(
    logs: Sequence[Mapping[str, Any]],
) -> list[SafeSetupEvent]:
    """Decode every `SafeSetup` event in a receipt's logs.

    Logs emitted by other events, or that fail to decode, are skipped.
    """
    events: list[SafeSetupEvent] = []
    for log in logs:
        topics = [HexBytes(topic) for topic in log.get("topics", [])]
        if len(topics) != 2 or topics[0] != SAFE_SETUP_EVENT_TOPIC:
            continue
        try:
            owners, threshold, initializer, fallback_handler = abi_decode(
                SAFE_SETUP_EVENT_DATA_TYPES, HexBytes(log.get("data", b""))
            )
        except DecodingError as exc:
            logger.debug(f"Skipping malformed SafeSetup log: {exc}")
            continue
        events.append(
            SafeSetupEvent(
                initiator=to_checksum_address(topics[1][-20:]),
                owners=tuple(to_checksum_address(owner) for owner in owners),
                threshold=threshold,
                initializer=to_checksum_address(initializer),
                fallback_handler=to_checksum_address(fallback_handler),
            )
        )
    return events
