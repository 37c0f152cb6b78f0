"""Signature verification against a Safe.

Each signature type maps to one validation strategy. Failures (wrong signer,
wrong magic value, unapproved hash, reverts, provider errors) are returned as
`SignatureValidationResult(valid=False, ...)`. Only malformed input raises,
and it does so before any provider request is made.
"""

import asyncio
import dataclasses
import logging
from typing import (
    TYPE_CHECKING,
    Awaitable,
    Callable,
    NamedTuple,
    Optional,
    Sequence,
    Union,
    assert_never,
)

from eth_abi.abi import encode as abi_encode
from hexbytes import (
    HexBytes,
)

from .account_state import get_owners, get_threshold
from .constants import (
    CHECK_N_SIGNATURES_SIGNATURE,
    ERC1271_LEGACY_MAGIC_VALUE,
    ERC1271_MAGIC_VALUE,
    selector,
)
from .errors import EncodingError
from .models import (
    ApprovedHashSignature,
    ContractSignature,
    ECDSASignature,
    SafeSignaturesValidation,
    Signature,
    SignatureType,
    SignatureValidationResult,
    ValidationContext,
)
from .provider import BlockIdentifier, Provider, StateRead
from .signatures import (
    decode_safe_signatures,
    encode_safe_signatures,
    get_signature_type,
    recover_ecdsa_signer,
)
from .util import to_checksum_address

if TYPE_CHECKING:
    from eth_typing import ChecksumAddress

logger = logging.getLogger(__name__)

IS_VALID_SIGNATURE_SELECTOR = selector("isValidSignature(bytes32,bytes)")
IS_VALID_SIGNATURE_LEGACY_SELECTOR = selector("isValidSignature(bytes,bytes)")
APPROVED_HASHES_SELECTOR = selector("approvedHashes(address,bytes32)")
CHECK_N_SIGNATURES_SELECTOR = selector(CHECK_N_SIGNATURES_SIGNATURE)

SignatureValidator = Callable[
    [Provider, Signature, ValidationContext], Awaitable[SignatureValidationResult]
]


class SignatureCheck(NamedTuple):
    valid: bool
    error: Optional[Exception] = None


def _raw_result(raw: HexBytes) -> HexBytes:
    return raw


async def _validate_contract_signature(
    provider: Provider, signature: Signature, context: ValidationContext
) -> SignatureValidationResult:
    assert isinstance(signature, ContractSignature)
    if context.data is not None:
        calldata = IS_VALID_SIGNATURE_LEGACY_SELECTOR + abi_encode(
            ["bytes", "bytes"], [bytes(context.data), bytes(signature.data)]
        )
        magic_value = ERC1271_LEGACY_MAGIC_VALUE
    else:
        calldata = IS_VALID_SIGNATURE_SELECTOR + abi_encode(
            ["bytes32", "bytes"], [bytes(context.data_hash), bytes(signature.data)]
        )
        magic_value = ERC1271_MAGIC_VALUE
    read = StateRead(to=signature.signer, data=HexBytes(calldata), decoder=_raw_result)
    try:
        result = await read.call(provider)
    except Exception as exc:
        return SignatureValidationResult(signature=signature, valid=False, error=exc)
    # Calls to accounts without code succeed with empty return data.
    valid = len(result) >= 4 and result[:4] == magic_value
    return SignatureValidationResult(
        signature=signature,
        valid=valid,
        validated_signer=signature.signer if valid else None,
    )


async def _validate_approved_hash(
    provider: Provider, signature: Signature, context: ValidationContext
) -> SignatureValidationResult:
    assert isinstance(signature, ApprovedHashSignature)
    assert context.safe_address is not None
    calldata = APPROVED_HASHES_SELECTOR + abi_encode(
        ["address", "bytes32"], [signature.signer, bytes(context.data_hash)]
    )
    read = StateRead(
        to=context.safe_address,
        data=HexBytes(calldata),
        decoder=lambda raw: int.from_bytes(raw, "big") if raw else 0,
    )
    try:
        approved = await read.call(provider)
    except Exception as exc:
        return SignatureValidationResult(signature=signature, valid=False, error=exc)
    return SignatureValidationResult(
        signature=signature,
        valid=approved != 0,
        validated_signer=signature.signer if approved else None,
    )


async def _validate_ecdsa_signature(
    provider: Provider, signature: Signature, context: ValidationContext
) -> SignatureValidationResult:
    assert isinstance(signature, ECDSASignature)
    try:
        recovered = recover_ecdsa_signer(signature.data, context.data_hash)
    except EncodingError as exc:
        return SignatureValidationResult(signature=signature, valid=False, error=exc)
    return SignatureValidationResult(
        signature=signature,
        valid=recovered == signature.signer,
        validated_signer=recovered,
    )


SIGNATURE_VALIDATORS: dict[SignatureType, SignatureValidator] = {
    SignatureType.CONTRACT: _validate_contract_signature,
    SignatureType.APPROVED_HASH: _validate_approved_hash,
    SignatureType.EIP712_RECID_1: _validate_ecdsa_signature,
    SignatureType.EIP712_RECID_2: _validate_ecdsa_signature,
    SignatureType.ETH_SIGN_RECID_1: _validate_ecdsa_signature,
    SignatureType.ETH_SIGN_RECID_2: _validate_ecdsa_signature,
}


def signature_type_of(signature: Signature) -> SignatureType:
    match signature:
        case ApprovedHashSignature():
            return SignatureType.APPROVED_HASH
        case ContractSignature():
            return SignatureType.CONTRACT
        case ECDSASignature(data=data):
            sigtype = get_signature_type(data)
            if sigtype in (SignatureType.CONTRACT, SignatureType.APPROVED_HASH):
                raise EncodingError(
                    f"ECDSA signature from {signature.signer} has non-ECDSA "
                    f"v-byte {int(sigtype)}"
                )
            return sigtype
        case _:
            assert_never(signature)


def _prepare(
    signature: Signature, context: ValidationContext
) -> SignatureValidator:
    sigtype = signature_type_of(signature)
    if sigtype == SignatureType.APPROVED_HASH and context.safe_address is None:
        raise EncodingError("Safe address is required to check approved hashes")
    return SIGNATURE_VALIDATORS[sigtype]


async def validate_signature(
    provider: Provider, signature: Signature, context: ValidationContext
) -> SignatureValidationResult:
    validator = _prepare(signature, context)
    result = await validator(provider, signature, context)
    logger.debug(
        f"Signature from {signature.signer}: valid={result.valid}"
        + (f" error={result.error}" if result.error else "")
    )
    return result


async def validate_signatures_for_safe(
    provider: Provider,
    safe_address: str,
    context: ValidationContext,
    signatures: Union[Sequence[Signature], bytes],
    *,
    owners: Optional[Sequence[str]] = None,
    threshold: Optional[int] = None,
    executor: Optional[str] = None,
) -> SafeSignaturesValidation:
    """Check that enough distinct owners signed `context.data_hash`.

    Owners and threshold are read from the Safe when not given. An
    approved-hash signature by `executor` counts without an on-chain lookup,
    the same way the Safe accepts approval from `msg.sender`.

    Per-signature failures are reported in the results. A failed read of the
    owners or threshold raises `ProviderError`, since no verdict is possible
    without them.
    """
    safe_address = to_checksum_address(safe_address)
    if context.safe_address is None:
        context = dataclasses.replace(context, safe_address=safe_address)
    if isinstance(signatures, (bytes, bytearray)):
        signatures = decode_safe_signatures(signatures, context.data_hash)
    executor_address = to_checksum_address(executor) if executor else None

    validators = [_prepare(signature, context) for signature in signatures]

    async def run(
        signature: Signature, validator: SignatureValidator
    ) -> SignatureValidationResult:
        if (
            isinstance(signature, ApprovedHashSignature)
            and signature.signer == executor_address
        ):
            return SignatureValidationResult(
                signature=signature, valid=True, validated_signer=signature.signer
            )
        return await validator(provider, signature, context)

    async def fetch_owners() -> list["ChecksumAddress"]:
        if owners is not None:
            return [to_checksum_address(owner) for owner in owners]
        return await get_owners(safe_address).call(provider)

    async def fetch_threshold() -> int:
        if threshold is not None:
            return threshold
        return await get_threshold(safe_address).call(provider)

    safe_owners, required, *results = await asyncio.gather(
        fetch_owners(),
        fetch_threshold(),
        *(run(sig, validator) for sig, validator in zip(signatures, validators)),
    )

    owner_set = set(safe_owners)
    counted: set[str] = set()
    for result in results:
        logger.debug(
            f"Signature from {result.signature.signer}: valid={result.valid}"
        )
        if (
            result.valid
            and result.validated_signer is not None
            and result.validated_signer in owner_set
        ):
            counted.add(result.validated_signer)
    valid = len(counted) >= required
    logger.info(
        f"{len(counted)} of {required} required owner signatures valid "
        f"for Safe {safe_address}"
    )
    return SafeSignaturesValidation(valid=valid, results=tuple(results))


async def check_n_signatures(
    provider: Provider,
    safe_address: str,
    context: ValidationContext,
    signatures: Union[Sequence[Signature], bytes],
    required: int,
    block: BlockIdentifier = "latest",
) -> SignatureCheck:
    """Run the Safe's own `checkNSignatures` through `eth_call`.

    The call returns nothing on success and reverts otherwise, so a Safe
    without code is reported invalid up front.
    """
    if required <= 0:
        raise EncodingError("Required signatures must be greater than 0")
    safe_address = to_checksum_address(safe_address)
    if isinstance(signatures, (bytes, bytearray)):
        encoded = bytes(signatures)
    elif signatures:
        encoded = bytes(encode_safe_signatures(signatures))
    else:
        encoded = b""
    block_param = block if isinstance(block, str) else hex(block)
    try:
        code = await provider.request("eth_getCode", [safe_address, block_param])
    except Exception as exc:
        return SignatureCheck(valid=False, error=exc)
    if not code or HexBytes(code) == b"":
        return SignatureCheck(valid=False)

    calldata = CHECK_N_SIGNATURES_SELECTOR + abi_encode(
        ["bytes32", "bytes", "bytes", "uint256"],
        [
            bytes(context.data_hash),
            bytes(context.data) if context.data is not None else b"",
            encoded,
            required,
        ],
    )
    read = StateRead(
        to=safe_address, data=HexBytes(calldata), decoder=_raw_result, block=block
    )
    try:
        await read.call(provider)
    except Exception as exc:
        return SignatureCheck(valid=False, error=exc)
    return SignatureCheck(valid=True)
