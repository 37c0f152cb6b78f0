import dataclasses
from enum import IntEnum
from typing import (
    TYPE_CHECKING,
    Optional,
    Union,
)

from hexbytes import (
    HexBytes,
)

from .constants import (
    DEFAULT_FALLBACK_ADDRESS,
    DEFAULT_PROXYFACTORY_ADDRESS,
    DEFAULT_SAFEL2_SINGLETON_ADDRESS,
    ZERO_ADDRESS,
)
from .errors import ConfigurationError
from .util import to_checksum_address

if TYPE_CHECKING:
    from eth_typing import ChecksumAddress


def _checksum_fields(obj: object, *names: str):
    # Frozen dataclasses need object.__setattr__ to normalize in place.
    for name in names:
        object.__setattr__(obj, name, to_checksum_address(getattr(obj, name)))


def _hexbytes_fields(obj: object, *names: str):
    for name in names:
        object.__setattr__(obj, name, HexBytes(getattr(obj, name)))


class Operation(IntEnum):
    CALL = 0
    DELEGATECALL = 1


class SignatureType(IntEnum):
    """Discriminator stored in the last byte of a 65-byte signature slot."""

    CONTRACT = 0
    APPROVED_HASH = 1
    EIP712_RECID_1 = 27
    EIP712_RECID_2 = 28
    ETH_SIGN_RECID_1 = 31
    ETH_SIGN_RECID_2 = 32


@dataclasses.dataclass(frozen=True, kw_only=True)
class MetaTransaction:
    to: "ChecksumAddress"
    value: int = 0
    data: HexBytes = dataclasses.field(default_factory=lambda: HexBytes(b""))

    def __post_init__(self):
        _checksum_fields(self, "to")
        _hexbytes_fields(self, "data")


@dataclasses.dataclass(frozen=True, kw_only=True)
class MultiSendCall(MetaTransaction):
    """A MultiSend sub-call that may request delegatecall individually."""

    operation: Operation = Operation.CALL

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "operation", Operation(self.operation))


@dataclasses.dataclass(frozen=True, kw_only=True)
class FullSafeTransaction(MetaTransaction):
    """A Safe transaction with every EIP-712 field and its signing domain."""

    operation: Operation = Operation.CALL
    safe_tx_gas: int = 0
    base_gas: int = 0
    gas_price: int = 0
    gas_token: "ChecksumAddress" = ZERO_ADDRESS  # pyright: ignore[reportAssignmentType]
    refund_receiver: "ChecksumAddress" = ZERO_ADDRESS  # pyright: ignore[reportAssignmentType]
    nonce: int
    safe_address: "ChecksumAddress"
    chain_id: int

    def __post_init__(self):
        super().__post_init__()
        _checksum_fields(self, "gas_token", "refund_receiver", "safe_address")
        object.__setattr__(self, "operation", Operation(self.operation))


@dataclasses.dataclass(frozen=True, kw_only=True)
class SafeMessage:
    message: HexBytes

    def __post_init__(self):
        _hexbytes_fields(self, "message")


@dataclasses.dataclass(frozen=True, kw_only=True)
class ApprovedHashSignature:
    """Owner approved the hash on-chain (or is the executing sender)."""

    signer: "ChecksumAddress"

    def __post_init__(self):
        _checksum_fields(self, "signer")


@dataclasses.dataclass(frozen=True, kw_only=True)
class ECDSASignature:
    """65 bytes r || s || v; v in {27, 28} for EIP-712, {31, 32} for eth_sign."""

    signer: "ChecksumAddress"
    data: HexBytes

    def __post_init__(self):
        _checksum_fields(self, "signer")
        _hexbytes_fields(self, "data")


@dataclasses.dataclass(frozen=True, kw_only=True)
class ContractSignature:
    """Arbitrary bytes verified by the signer contract via ERC-1271."""

    signer: "ChecksumAddress"
    data: HexBytes

    def __post_init__(self):
        _checksum_fields(self, "signer")
        _hexbytes_fields(self, "data")


Signature = Union[ApprovedHashSignature, ECDSASignature, ContractSignature]


@dataclasses.dataclass(frozen=True, kw_only=True)
class SafeDeploymentConfig:
    owners: tuple["ChecksumAddress", ...]
    threshold: int
    delegatecall_to: "ChecksumAddress" = ZERO_ADDRESS  # pyright: ignore[reportAssignmentType]
    delegatecall_data: HexBytes = dataclasses.field(
        default_factory=lambda: HexBytes(b"")
    )
    fallback_handler: "ChecksumAddress" = DEFAULT_FALLBACK_ADDRESS  # pyright: ignore[reportAssignmentType]
    payment_token: "ChecksumAddress" = ZERO_ADDRESS  # pyright: ignore[reportAssignmentType]
    payment: int = 0
    payment_receiver: "ChecksumAddress" = ZERO_ADDRESS  # pyright: ignore[reportAssignmentType]
    salt_nonce: int = 0
    singleton: "ChecksumAddress" = DEFAULT_SAFEL2_SINGLETON_ADDRESS  # pyright: ignore[reportAssignmentType]
    proxy_factory: "ChecksumAddress" = DEFAULT_PROXYFACTORY_ADDRESS  # pyright: ignore[reportAssignmentType]

    def __post_init__(self):
        if not self.owners:
            raise ConfigurationError("At least one owner is required")
        owners = tuple(to_checksum_address(owner) for owner in self.owners)
        if len(set(owners)) != len(owners):
            raise ConfigurationError("Duplicate owner addresses")
        if not 1 <= self.threshold <= len(owners):
            raise ConfigurationError(
                f"Threshold {self.threshold} must be between 1 and "
                f"number of owners ({len(owners)})"
            )
        if self.salt_nonce < 0 or self.payment < 0:
            raise ConfigurationError("Salt nonce and payment must be non-negative")
        object.__setattr__(self, "owners", owners)
        _checksum_fields(
            self,
            "delegatecall_to",
            "fallback_handler",
            "payment_token",
            "payment_receiver",
            "singleton",
            "proxy_factory",
        )
        _hexbytes_fields(self, "delegatecall_data")


@dataclasses.dataclass(frozen=True, kw_only=True)
class ValidationContext:
    """What a signature is checked against.

    `data` is the raw pre-image; when present, contract signatures are checked
    with the legacy `isValidSignature(bytes,bytes)` form. `safe_address` is
    required for approved-hash signatures.
    """

    data_hash: HexBytes
    data: Optional[HexBytes] = None
    safe_address: Optional["ChecksumAddress"] = None

    def __post_init__(self):
        _hexbytes_fields(self, "data_hash")
        if self.data is not None:
            _hexbytes_fields(self, "data")
        if self.safe_address is not None:
            _checksum_fields(self, "safe_address")


@dataclasses.dataclass(frozen=True, kw_only=True)
class SignatureValidationResult:
    signature: Signature
    valid: bool
    validated_signer: Optional["ChecksumAddress"] = None
    error: Optional[Exception] = None


@dataclasses.dataclass(frozen=True, kw_only=True)
class SafeSignaturesValidation:
    valid: bool
    results: tuple[SignatureValidationResult, ...]
