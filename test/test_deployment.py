import random

import pytest
from eth_abi.abi import decode as abi_decode
from eth_abi.abi import encode as abi_encode
from eth_utils.address import to_checksum_address
from eth_utils.crypto import keccak
from hexbytes import HexBytes
from safe_eth.eth.contracts import load_contract_interface

from minisafe.constants import (
    DEFAULT_FALLBACK_ADDRESS,
    DEFAULT_PROXYFACTORY_ADDRESS,
    DEFAULT_SAFE_SINGLETON_ADDRESS,
    DEFAULT_SAFEL2_SINGLETON_ADDRESS,
    SAFE_SETUP_FUNC_TYPES,
    ZERO_ADDRESS,
)
from minisafe.deployment import (
    SAFE_SETUP_EVENT_TOPIC,
    SafeSetupEvent,
    calculate_safe_address,
    decode_safe_setup_event_from_logs,
    deploy_safe_account,
    encode_setup_data,
)
from minisafe.errors import ConfigurationError
from minisafe.models import SafeDeploymentConfig

OWNER = to_checksum_address("0xdeadbeef00000000000000000000000000000000")


def create2_address(factory: str, salt: bytes, init_code: bytes) -> str:
    digest = keccak(b"\xff" + bytes.fromhex(factory[2:]) + salt + keccak(init_code))
    return to_checksum_address(digest[12:])


def reference_address(config: SafeDeploymentConfig) -> str:
    """Address computed the way SafeProxyFactory.createProxyWithNonce does."""
    initializer = bytes(encode_setup_data(config))
    salt = keccak(keccak(initializer) + config.salt_nonce.to_bytes(32, "big"))
    proxy_code = bytes(HexBytes(load_contract_interface("Proxy_V1_4_1.json")["bytecode"]))
    singleton = bytes.fromhex(config.singleton[2:]).rjust(32, b"\x00")
    return create2_address(config.proxy_factory, salt, proxy_code + singleton)


def random_address(rng: random.Random) -> str:
    return to_checksum_address(bytes(rng.getrandbits(8) for _ in range(20)))


def test_happy_path():
    config = SafeDeploymentConfig(
        owners=(OWNER,),
        threshold=1,
        fallback_handler=DEFAULT_FALLBACK_ADDRESS,  # pyright: ignore[reportArgumentType]
        proxy_factory=DEFAULT_PROXYFACTORY_ADDRESS,  # pyright: ignore[reportArgumentType]
        singleton=DEFAULT_SAFEL2_SINGLETON_ADDRESS,  # pyright: ignore[reportArgumentType]
    )
    address = calculate_safe_address(config)
    assert address == "0x1B751A15d6aEd26aC3e2A5320548F390ccE76ED2"

    address = calculate_safe_address(config, singleton=DEFAULT_SAFE_SINGLETON_ADDRESS)
    assert address == "0x09e5830Fdf94340474B54fCDE0F3A2d408Df56DE"

    address = calculate_safe_address(
        config, singleton=DEFAULT_SAFE_SINGLETON_ADDRESS, salt_nonce=123
    )
    assert address == "0x06bA263c7Fd42Ac736e7b782540693696Cf7D9Ec"


def test_defaults():
    config = SafeDeploymentConfig(owners=(OWNER.lower(),), threshold=1)  # pyright: ignore[reportArgumentType]
    assert config.owners == (OWNER,)
    assert config.singleton == DEFAULT_SAFEL2_SINGLETON_ADDRESS
    assert config.proxy_factory == DEFAULT_PROXYFACTORY_ADDRESS
    assert config.fallback_handler == DEFAULT_FALLBACK_ADDRESS
    assert config.salt_nonce == 0
    assert calculate_safe_address(config) == "0x1B751A15d6aEd26aC3e2A5320548F390ccE76ED2"


def test_setup_data_address():
    config = SafeDeploymentConfig(owners=(OWNER,), threshold=1, salt_nonce=123)
    setup_data = encode_setup_data(config)
    assert calculate_safe_address(setup_data, salt_nonce=123) == calculate_safe_address(
        config
    )


def test_invalid_config():
    other = "0x0000000000000000000000000000000000000002"
    with pytest.raises(ConfigurationError):
        SafeDeploymentConfig(owners=(), threshold=1)
    with pytest.raises(ConfigurationError):
        SafeDeploymentConfig(owners=(OWNER,), threshold=0)
    with pytest.raises(ConfigurationError):
        SafeDeploymentConfig(owners=(OWNER, other), threshold=3)  # pyright: ignore[reportArgumentType]
    with pytest.raises(ConfigurationError):
        SafeDeploymentConfig(owners=(OWNER, OWNER.lower()), threshold=1)  # pyright: ignore[reportArgumentType]
    with pytest.raises(ConfigurationError):
        SafeDeploymentConfig(owners=(OWNER,), threshold=1, salt_nonce=-1)


def test_encode_setup_data():
    owners = (OWNER, to_checksum_address("0x" + "12" * 20))
    config = SafeDeploymentConfig(
        owners=owners,
        threshold=2,
        delegatecall_to=to_checksum_address("0x" + "34" * 20),
        delegatecall_data=HexBytes("0xcafe"),
        payment=7,
    )
    data = encode_setup_data(config)
    assert data[:4] == keccak(
        text="setup(address[],uint256,address,bytes,address,address,uint256,address)"
    )[:4]
    assert data[:4] == HexBytes("0xb63e800d")
    (
        decoded_owners,
        threshold,
        delegatecall_to,
        delegatecall_data,
        fallback_handler,
        payment_token,
        payment,
        payment_receiver,
    ) = abi_decode(SAFE_SETUP_FUNC_TYPES, data[4:])
    assert tuple(to_checksum_address(o) for o in decoded_owners) == owners
    assert threshold == 2
    assert to_checksum_address(delegatecall_to) == to_checksum_address("0x" + "34" * 20)
    assert delegatecall_data == b"\xca\xfe"
    assert to_checksum_address(fallback_handler) == DEFAULT_FALLBACK_ADDRESS
    assert int(payment_token, 16) == 0
    assert payment == 7
    assert int(payment_receiver, 16) == 0


def test_randomized_configs():
    rng = random.Random(20250101)
    for _ in range(100):
        owners = tuple(random_address(rng) for _ in range(rng.randint(1, 5)))
        delegatecall = rng.random() < 0.5
        config = SafeDeploymentConfig(
            owners=owners,  # pyright: ignore[reportArgumentType]
            threshold=rng.randint(1, len(owners)),
            salt_nonce=rng.getrandbits(256),
            delegatecall_to=random_address(rng) if delegatecall else ZERO_ADDRESS,  # pyright: ignore[reportArgumentType]
            delegatecall_data=(
                HexBytes(bytes(rng.getrandbits(8) for _ in range(rng.randint(0, 100))))
                if delegatecall
                else HexBytes(b"")
            ),
            singleton=rng.choice(
                (DEFAULT_SAFEL2_SINGLETON_ADDRESS, DEFAULT_SAFE_SINGLETON_ADDRESS)
            ),  # pyright: ignore[reportArgumentType]
        )
        assert calculate_safe_address(config) == reference_address(config)


def test_deploy_safe_account():
    config = SafeDeploymentConfig(owners=(OWNER,), threshold=1, salt_nonce=42)
    deployment = deploy_safe_account(config)
    assert deployment.config is config
    assert deployment.safe_address == calculate_safe_address(config)
    tx = deployment.transaction
    assert tx.to == DEFAULT_PROXYFACTORY_ADDRESS
    assert tx.value == 0
    assert tx.data[:4] == keccak(text="createProxyWithNonce(address,bytes,uint256)")[:4]
    singleton, initializer, salt_nonce = abi_decode(
        ["address", "bytes", "uint256"], tx.data[4:]
    )
    assert to_checksum_address(singleton) == DEFAULT_SAFEL2_SINGLETON_ADDRESS
    assert initializer == bytes(encode_setup_data(config))
    assert salt_nonce == 42


SAFE_SETUP_LOG = {
    "address": "0xd9f8de3b1e996b792c5ebb78a747f974d618d172",
    "topics": [
        "0x141df868a6331af528e38c83b7aa03edc19be66e37ae67f9285bf4f8e3c6a1a8",
        "0x0000000000000000000000004e1dcf7ad4e460cfd30791ccc4f9c8a4f820ec67",
    ],
    "data": "0x"
    + "0000000000000000000000000000000000000000000000000000000000000080"
    + "0000000000000000000000000000000000000000000000000000000000000001"
    + "0000000000000000000000000000000000000000000000000000000000000000"
    + "000000000000000000000000fd0732dc9e303f09fcef3a7388ad10a83459ec99"
    + "0000000000000000000000000000000000000000000000000000000000000001"
    + "000000000000000000000000f39fd6e51aad88f6f4ce6ab8827279cfffb92266",
}

# ProxyCreation(address indexed proxy, address singleton)
PROXY_CREATION_LOG = {
    "address": DEFAULT_PROXYFACTORY_ADDRESS,
    "topics": [
        keccak(text="ProxyCreation(address,address)"),
        HexBytes(bytes(12) + bytes.fromhex("d9f8de3b1e996b792c5ebb78a747f974d618d172")),
    ],
    "data": HexBytes(bytes(12) + bytes.fromhex(DEFAULT_SAFEL2_SINGLETON_ADDRESS[2:])),
}


def test_safe_setup_topic():
    assert SAFE_SETUP_EVENT_TOPIC == HexBytes(SAFE_SETUP_LOG["topics"][0])


def test_decode_safe_setup_event():
    events = decode_safe_setup_event_from_logs([PROXY_CREATION_LOG, SAFE_SETUP_LOG])
    assert events == [
        SafeSetupEvent(
            initiator=DEFAULT_PROXYFACTORY_ADDRESS,  # pyright: ignore[reportArgumentType]
            owners=(to_checksum_address("0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266"),),
            threshold=1,
            initializer=ZERO_ADDRESS,  # pyright: ignore[reportArgumentType]
            fallback_handler=DEFAULT_FALLBACK_ADDRESS,  # pyright: ignore[reportArgumentType]
        )
    ]


def test_decode_safe_setup_event_skips_other_logs():
    assert decode_safe_setup_event_from_logs([]) == []
    assert decode_safe_setup_event_from_logs([PROXY_CREATION_LOG]) == []
    truncated = dict(SAFE_SETUP_LOG, data=SAFE_SETUP_LOG["data"][:130])
    assert decode_safe_setup_event_from_logs([truncated, PROXY_CREATION_LOG]) == []


def test_decode_safe_setup_event_from_setup_data():
    config = SafeDeploymentConfig(
        owners=(OWNER, DEFAULT_FALLBACK_ADDRESS), threshold=2, salt_nonce=5
    )
    owners, threshold, to, _, fallback_handler, *_ = abi_decode(
        SAFE_SETUP_FUNC_TYPES, encode_setup_data(config)[4:]
    )
    log = {
        "topics": [
            SAFE_SETUP_EVENT_TOPIC,
            HexBytes(bytes(12) + bytes.fromhex(DEFAULT_PROXYFACTORY_ADDRESS[2:])),
        ],
        "data": abi_encode(
            ["address[]", "uint256", "address", "address"],
            [owners, threshold, to, fallback_handler],
        ),
    }
    (event,) = decode_safe_setup_event_from_logs([log])
    assert event.owners == config.owners
    assert event.threshold == 2
    assert event.initializer == ZERO_ADDRESS
    assert event.fallback_handler == DEFAULT_FALLBACK_ADDRESS
